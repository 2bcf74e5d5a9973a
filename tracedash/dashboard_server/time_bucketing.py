from enum import Enum
from typing import Optional


class DateTrunc(str, Enum):
    YEAR = "year"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"
    HOUR = "hour"
    MINUTE = "minute"


TRUNCATION_FUNCTIONS: dict[DateTrunc, str] = {
    DateTrunc.YEAR: "toStartOfYear",
    DateTrunc.MONTH: "toStartOfMonth",
    DateTrunc.WEEK: "toStartOfWeek",
    DateTrunc.DAY: "toStartOfDay",
    DateTrunc.HOUR: "toStartOfHour",
    DateTrunc.MINUTE: "toStartOfMinute",
}

FILL_INTERVALS: dict[DateTrunc, str] = {
    DateTrunc.YEAR: "toIntervalYear(1)",
    DateTrunc.MONTH: "toIntervalMonth(1)",
    DateTrunc.WEEK: "toIntervalWeek(1)",
    DateTrunc.DAY: "toIntervalDay(1)",
    DateTrunc.HOUR: "toIntervalHour(1)",
    DateTrunc.MINUTE: "toIntervalMinute(1)",
}


def _as_date_trunc(granularity: object) -> Optional[DateTrunc]:
    try:
        return DateTrunc(granularity)
    except ValueError:
        return None


def select_timeseries_column(
    granularity: DateTrunc, column: str, alias: str
) -> Optional[str]:
    """`toStartOfDay(t.timestamp) AS timestamp`, or None for an unknown granularity."""
    date_trunc = _as_date_trunc(granularity)
    if date_trunc is None:
        return None
    return f"{TRUNCATION_FUNCTIONS[date_trunc]}({column}) AS {alias}"


def order_by_timeseries(granularity: DateTrunc, alias: str) -> Optional[str]:
    """Ascending order over the bucket column with ClickHouse gap filling.

    `WITH FILL` inserts default-valued rows (zero counts and sums) for every
    missing step between the first and last bucket present in the result.
    """
    date_trunc = _as_date_trunc(granularity)
    if date_trunc is None:
        return None
    return f"ORDER BY {alias} ASC WITH FILL STEP {FILL_INTERVALS[date_trunc]}"
