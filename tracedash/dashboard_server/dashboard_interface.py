"""Typed rows returned by the dashboard metric queries.

ClickHouse aggregates can arrive as text or `Decimal` (large integers and
high precision costs survive the wire that way), and timestamps as text or
naive datetimes. The `from_row` constructors normalize them to python
numbers and timezone-aware UTC datetimes.
"""

import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel

Row = dict[str, Any]


def to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(Decimal(value))
    return int(value)


def to_float(value: Any) -> float:
    if value is None or value == "":
        return 0.0
    return float(value)


def to_optional_float(value: Any) -> Optional[float]:
    # avg() over no rows and nan both mean "no value"
    if value is None or value == "":
        return None
    result = float(value)
    if result != result:
        return None
    return result


def to_utc_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, datetime.date) and not isinstance(
        value, datetime.datetime
    ):
        value = datetime.datetime(value.year, value.month, value.day)
    if not isinstance(value, datetime.datetime):
        raise TypeError(f"Cannot convert {value!r} to datetime")
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def _empty_to_none(value: Any) -> Optional[str]:
    # WITH FILL rows carry '' in string columns
    if value is None or value == "":
        return None
    return str(value)


class TraceCountRow(BaseModel):
    count_trace_id: int

    @classmethod
    def from_row(cls, row: Row) -> "TraceCountRow":
        return cls(count_trace_id=to_int(row["count"]))


class ModelCostRow(BaseModel):
    name: Optional[str]
    sum_cost_details: float
    sum_usage_details: int

    @classmethod
    def from_row(cls, row: Row) -> "ModelCostRow":
        return cls(
            name=_empty_to_none(row["name"]),
            sum_cost_details=to_float(row["sum_cost_details"]),
            sum_usage_details=to_int(row["sum_usage_details"]),
        )


class ScoreAggregateRow(BaseModel):
    name: str
    count: int
    avg_value: Optional[float]
    source: str
    data_type: str

    @classmethod
    def from_row(cls, row: Row) -> "ScoreAggregateRow":
        return cls(
            name=row["name"],
            count=to_int(row["count"]),
            avg_value=to_optional_float(row["avg_value"]),
            source=row["source"],
            data_type=row["data_type"],
        )


class TraceTimeBucketRow(BaseModel):
    timestamp: datetime.datetime
    count_trace_id: int

    @classmethod
    def from_row(cls, row: Row) -> "TraceTimeBucketRow":
        return cls(
            timestamp=to_utc_datetime(row["timestamp"]),
            count_trace_id=to_int(row["count"]),
        )


class ObservationUsageBucketRow(BaseModel):
    start_time: datetime.datetime
    sum_usage_details: int
    sum_cost_details: float
    provided_model_name: Optional[str]

    @classmethod
    def from_row(cls, row: Row) -> "ObservationUsageBucketRow":
        return cls(
            start_time=to_utc_datetime(row["start_time"]),
            sum_usage_details=to_int(row["sum_usage_details"]),
            sum_cost_details=to_float(row["sum_cost_details"]),
            provided_model_name=_empty_to_none(row["provided_model_name"]),
        )


class DistinctModelRow(BaseModel):
    model: Optional[str]

    @classmethod
    def from_row(cls, row: Row) -> "DistinctModelRow":
        return cls(model=row["model"])


class UserUsageRow(BaseModel):
    sum_usage_details: int
    sum_cost_details: float
    user_id: str

    @classmethod
    def from_row(cls, row: Row) -> "UserUsageRow":
        return cls(
            sum_usage_details=to_int(row["sum_usage_details"]),
            sum_cost_details=to_float(row["sum_cost_details"]),
            user_id=row["user_id"],
        )
