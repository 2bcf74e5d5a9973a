"""Mock ClickHouse client for the dashboard server tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass
class MockQuerySummary:
    """Mock implementation of QuerySummary."""

    written_rows: int = 0
    written_bytes: int = 0
    read_rows: int = 0
    read_bytes: int = 0
    elapsed: float = 0.0


@dataclass
class MockQueryResult:
    """Mock implementation of QueryResult."""

    result_rows: list[tuple] = field(default_factory=list)
    column_names: list[str] = field(default_factory=list)
    summary: MockQuerySummary = field(default_factory=MockQuerySummary)

    def __iter__(self):
        return iter(self.result_rows)

    def __len__(self):
        return len(self.result_rows)


@dataclass
class RecordedQuery:
    query: str
    parameters: dict[str, Any]
    settings: dict[str, Any]


QueryHandler = Callable[[str, dict[str, Any]], MockQueryResult]


class MockClickHouseClient:
    """Implements the `query()` method of clickhouse_connect's Client.

    Results come from `handler`, or from a queue of canned results when no
    handler is given. Every call is recorded in `queries`.
    """

    def __init__(self, handler: QueryHandler | None = None):
        self._handler = handler
        self._results: list[MockQueryResult] = []
        self._error: Exception | None = None
        self.queries: list[RecordedQuery] = []
        self.database = "default"

    def add_result(
        self, column_names: Sequence[str], rows: Sequence[Sequence[Any]]
    ) -> None:
        self._results.append(
            MockQueryResult(
                result_rows=[tuple(r) for r in rows], column_names=list(column_names)
            )
        )

    def fail_with(self, error: Exception) -> None:
        self._error = error

    def query(
        self,
        query: str,
        parameters: dict[str, Any] | None = None,
        column_formats: dict[str, Any] | None = None,
        use_none: bool = False,
        settings: dict[str, Any] | None = None,
    ) -> MockQueryResult:
        parameters = parameters or {}
        self.queries.append(RecordedQuery(query, parameters, settings or {}))
        if self._error is not None:
            raise self._error
        if self._handler is not None:
            return self._handler(query, parameters)
        if not self._results:
            return MockQueryResult()
        return self._results.pop(0)

    @property
    def last_query(self) -> RecordedQuery:
        return self.queries[-1]
