import datetime
from decimal import Decimal

import pytest

from tracedash.dashboard_server.dashboard_interface import (
    ModelCostRow,
    ObservationUsageBucketRow,
    ScoreAggregateRow,
    TraceCountRow,
    to_int,
    to_optional_float,
    to_utc_datetime,
)

UTC = datetime.timezone.utc


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, 0), ("", 0), (5, 5), ("5", 5), (Decimal("12"), 12), (3.0, 3)],
)
def test_to_int(value, expected):
    assert to_int(value) == expected


def test_to_optional_float():
    assert to_optional_float(None) is None
    assert to_optional_float(float("nan")) is None
    assert to_optional_float("0.25") == 0.25
    assert to_optional_float(Decimal("1.5")) == 1.5


@pytest.mark.parametrize(
    "value",
    [
        "2024-01-01 10:00:00",
        "2024-01-01T10:00:00Z",
        "2024-01-01T12:00:00+02:00",
        datetime.datetime(2024, 1, 1, 10),
        datetime.datetime(2024, 1, 1, 10, tzinfo=UTC),
    ],
)
def test_to_utc_datetime(value):
    assert to_utc_datetime(value) == datetime.datetime(2024, 1, 1, 10, tzinfo=UTC)
    assert to_utc_datetime(value).tzinfo == UTC


def test_to_utc_datetime_from_date():
    assert to_utc_datetime(datetime.date(2024, 1, 1)) == datetime.datetime(
        2024, 1, 1, tzinfo=UTC
    )


def test_to_utc_datetime_rejects_numbers():
    with pytest.raises(TypeError):
        to_utc_datetime(1704103200)


def test_trace_count_row():
    assert TraceCountRow.from_row({"count": "42"}).count_trace_id == 42


def test_model_cost_row():
    row = ModelCostRow.from_row(
        {"name": "", "sum_cost_details": Decimal("0.125"), "sum_usage_details": 10}
    )
    assert row == ModelCostRow(name=None, sum_cost_details=0.125, sum_usage_details=10)


def test_score_aggregate_row():
    row = ScoreAggregateRow.from_row(
        {
            "name": "quality",
            "count": "3",
            "avg_value": float("nan"),
            "source": "API",
            "data_type": "CATEGORICAL",
        }
    )
    assert row.count == 3
    assert row.avg_value is None


def test_gap_filled_usage_bucket():
    # WITH FILL rows carry default values
    row = ObservationUsageBucketRow.from_row(
        {
            "start_time": datetime.datetime(2024, 1, 2),
            "sum_usage_details": 0,
            "sum_cost_details": 0,
            "provided_model_name": "",
        }
    )
    assert row.start_time == datetime.datetime(2024, 1, 2, tzinfo=UTC)
    assert row.sum_usage_details == 0
    assert row.sum_cost_details == 0.0
    assert row.provided_model_name is None
