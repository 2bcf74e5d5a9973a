"""Column catalog for dashboard filters.

Maps the column names the dashboard UI uses in a `FilterState` onto the
physical ClickHouse column and the logical table that owns it.
"""

from collections.abc import Iterable, Iterator
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TableTag(str, Enum):
    TRACES = "traces"
    OBSERVATIONS = "observations"
    SCORES = "scores"

    @property
    def alias(self) -> str:
        return _TABLE_ALIASES[self]


_TABLE_ALIASES = {
    TableTag.TRACES: "t",
    TableTag.OBSERVATIONS: "o",
    TableTag.SCORES: "s",
}


class ColumnType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    DATETIME = "datetime"
    BOOLEAN = "boolean"
    STRING_OPTIONS = "string_options"
    ARRAY_OPTIONS = "array_options"
    STRING_OBJECT = "string_object"
    NUMBER_OBJECT = "number_object"


class ColumnDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Name shown in the dashboard UI, e.g. "Trace Name"
    name: str
    # Stable identifier used by API callers, e.g. "traceName"
    id: str
    table: TableTag
    # Column name in the ClickHouse table, without alias
    column: str
    type: ColumnType


class ColumnCatalog:
    """Read-only lookup of column definitions by UI name or id."""

    def __init__(self, definitions: Iterable[ColumnDefinition]):
        self._definitions = tuple(definitions)
        self._by_key: dict[str, ColumnDefinition] = {}
        for definition in self._definitions:
            self._by_key.setdefault(definition.name, definition)
            self._by_key.setdefault(definition.id, definition)

    def get(self, column: str) -> Optional[ColumnDefinition]:
        return self._by_key.get(column)

    def __contains__(self, column: object) -> bool:
        return column in self._by_key

    def __iter__(self) -> Iterator[ColumnDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)


def _col(
    name: str, id: str, table: TableTag, column: str, type: ColumnType
) -> ColumnDefinition:
    return ColumnDefinition(name=name, id=id, table=table, column=column, type=type)


DASHBOARD_COLUMN_DEFINITIONS: tuple[ColumnDefinition, ...] = (
    # traces
    _col("Trace Name", "traceName", TableTag.TRACES, "name", ColumnType.STRING_OPTIONS),
    _col("Tags", "traceTags", TableTag.TRACES, "tags", ColumnType.ARRAY_OPTIONS),
    _col("User", "user", TableTag.TRACES, "user_id", ColumnType.STRING),
    _col("Session", "session", TableTag.TRACES, "session_id", ColumnType.STRING),
    _col("Release", "release", TableTag.TRACES, "release", ColumnType.STRING_OPTIONS),
    _col("Version", "version", TableTag.TRACES, "version", ColumnType.STRING_OPTIONS),
    _col("Timestamp", "timestamp", TableTag.TRACES, "timestamp", ColumnType.DATETIME),
    _col("Metadata", "metadata", TableTag.TRACES, "metadata", ColumnType.STRING_OBJECT),
    _col("Bookmarked", "bookmarked", TableTag.TRACES, "bookmarked", ColumnType.BOOLEAN),
    # observations
    _col(
        "Model",
        "model",
        TableTag.OBSERVATIONS,
        "provided_model_name",
        ColumnType.STRING_OPTIONS,
    ),
    _col("Observation Name", "observationName", TableTag.OBSERVATIONS, "name", ColumnType.STRING),
    _col("Type", "type", TableTag.OBSERVATIONS, "type", ColumnType.STRING_OPTIONS),
    _col("Level", "level", TableTag.OBSERVATIONS, "level", ColumnType.STRING_OPTIONS),
    _col("Start Time", "startTime", TableTag.OBSERVATIONS, "start_time", ColumnType.DATETIME),
    _col(
        "Usage Details",
        "usageDetails",
        TableTag.OBSERVATIONS,
        "usage_details",
        ColumnType.NUMBER_OBJECT,
    ),
    # scores
    _col("Score Name", "scoreName", TableTag.SCORES, "name", ColumnType.STRING_OPTIONS),
    _col("Score Source", "scoreSource", TableTag.SCORES, "source", ColumnType.STRING_OPTIONS),
    _col(
        "Score Data Type",
        "scoreDataType",
        TableTag.SCORES,
        "data_type",
        ColumnType.STRING_OPTIONS,
    ),
    _col("Score Value", "value", TableTag.SCORES, "value", ColumnType.NUMBER),
    _col(
        "Score Timestamp",
        "scoreTimestamp",
        TableTag.SCORES,
        "timestamp",
        ColumnType.DATETIME,
    ),
)


_default_catalog: Optional[ColumnCatalog] = None


def default_dashboard_catalog() -> ColumnCatalog:
    """The stock dashboard catalog, built once and shared."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = ColumnCatalog(DASHBOARD_COLUMN_DEFINITIONS)
    return _default_catalog
