import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_JOIN_TIME_TOLERANCE_SECONDS = 60 * 60

# Clickhouse Settings


def td_clickhouse_host() -> str:
    """The host of the clickhouse server."""
    return os.environ.get("TD_CLICKHOUSE_HOST", "localhost")


def td_clickhouse_port() -> int:
    """The port of the clickhouse server."""
    return int(os.environ.get("TD_CLICKHOUSE_PORT", 8123))


def td_clickhouse_user() -> str:
    """The user of the clickhouse server."""
    return os.environ.get("TD_CLICKHOUSE_USER", "default")


def td_clickhouse_pass() -> str:
    """The password of the clickhouse server."""
    return os.environ.get("TD_CLICKHOUSE_PASS", "")


def td_clickhouse_database() -> str:
    """The name of the clickhouse database."""
    return os.environ.get("TD_CLICKHOUSE_DATABASE", "default")


def _optional_int(env_var: str) -> Optional[int]:
    value = os.environ.get(env_var)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError as e:
        logger.exception(
            f"{env_var} value '{value}' is not a valid integer. Error: {str(e)}"
        )
        return None


def td_clickhouse_max_memory_usage() -> Optional[int]:
    """The maximum memory usage for a single dashboard query."""
    return _optional_int("TD_CLICKHOUSE_MAX_MEMORY_USAGE")


def td_clickhouse_max_execution_time() -> Optional[int]:
    """The maximum execution time (seconds) for a single dashboard query."""
    return _optional_int("TD_CLICKHOUSE_MAX_EXECUTION_TIME")


# Dashboard Settings


def td_dashboard_join_time_tolerance_seconds() -> int:
    """How far back the joined trace timestamp predicate is widened.

    Scores and observations can be written well after their parent trace, so
    when a time lower bound is pushed onto the joined `traces` table it is
    relaxed by this many seconds.
    """
    seconds = _optional_int("TD_DASHBOARD_JOIN_TIME_TOLERANCE_SECONDS")
    if seconds is None or seconds < 0:
        return DEFAULT_JOIN_TIME_TOLERANCE_SECONDS
    return seconds
