from tests.dashboard_server.mock_clickhouse.client import (
    MockClickHouseClient,
    MockQueryResult,
    MockQuerySummary,
    RecordedQuery,
)

__all__ = [
    "MockClickHouseClient",
    "MockQueryResult",
    "MockQuerySummary",
    "RecordedQuery",
]
