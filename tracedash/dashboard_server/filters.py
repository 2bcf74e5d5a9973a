"""
Immutable filter predicates over the dashboard tables and their compilation
into a single parameterized ClickHouse boolean expression.

Each `Filter` knows the logical table that owns its column and renders
itself with the table alias (`t.user_id`), binding every value through the
shared `ParamBuilder`. A `FilterList` conjoins its filters in insertion order,
so the generated SQL text is deterministic for a given `FilterState`.
"""

import datetime
from collections.abc import Iterable, Iterator
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from tracedash.dashboard_server.column_definitions import TableTag
from tracedash.dashboard_server.orm import ParamBuilder, combine_conditions

# Valid boolean expression for an empty filter list so callers can always
# append `AND <filter>` to a fixed WHERE clause.
TAUTOLOGY = "1=1"


class Operator(str, Enum):
    EQ = "="
    NEQ = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    IN = "any of"
    NOT_IN = "none of"
    ALL_OF = "all of"
    CONTAINS = "contains"
    NOT_CONTAINS = "does not contain"
    STARTS_WITH = "starts with"
    ENDS_WITH = "ends with"
    IS_NULL = "is null"
    IS_NOT_NULL = "is not null"


COMPARISON_OPERATORS = frozenset(
    {Operator.EQ, Operator.NEQ, Operator.GT, Operator.GTE, Operator.LT, Operator.LTE}
)
STRING_OPERATORS = frozenset(
    {
        Operator.EQ,
        Operator.NEQ,
        Operator.CONTAINS,
        Operator.NOT_CONTAINS,
        Operator.STARTS_WITH,
        Operator.ENDS_WITH,
    }
)
RANGE_OPERATORS = frozenset({Operator.GT, Operator.GTE, Operator.LT, Operator.LTE})
LOWER_BOUND_OPERATORS = frozenset({Operator.GT, Operator.GTE})
NULL_OPERATORS = frozenset({Operator.IS_NULL, Operator.IS_NOT_NULL})


class Filter(BaseModel):
    model_config = ConfigDict(frozen=True)

    table: TableTag
    # Column name within `table`, without alias
    field: str
    operator: Operator

    @property
    def column_sql(self) -> str:
        return f"{self.table.alias}.{self.field}"

    def as_sql(self, pb: ParamBuilder) -> str:
        raise NotImplementedError


def _string_predicate(column_sql: str, operator: Operator, slot: str) -> str:
    if operator == Operator.EQ:
        return f"{column_sql} = {slot}"
    elif operator == Operator.NEQ:
        return f"{column_sql} != {slot}"
    elif operator == Operator.CONTAINS:
        return f"position({column_sql}, {slot}) > 0"
    elif operator == Operator.NOT_CONTAINS:
        return f"position({column_sql}, {slot}) = 0"
    elif operator == Operator.STARTS_WITH:
        return f"startsWith({column_sql}, {slot})"
    elif operator == Operator.ENDS_WITH:
        return f"endsWith({column_sql}, {slot})"
    raise ValueError(f"Unsupported string operator: {operator.value}")


def _comparison_predicate(column_sql: str, operator: Operator, slot: str) -> str:
    if operator not in COMPARISON_OPERATORS:
        raise ValueError(f"Unsupported comparison operator: {operator.value}")
    return f"{column_sql} {operator.value} {slot}"


class StringFilter(Filter):
    value: str

    def as_sql(self, pb: ParamBuilder) -> str:
        slot = pb.add(self.value, None, "String")
        return _string_predicate(self.column_sql, self.operator, slot)


class NumberFilter(Filter):
    value: float

    def as_sql(self, pb: ParamBuilder) -> str:
        slot = pb.add(self.value, None, "Float64")
        return _comparison_predicate(self.column_sql, self.operator, slot)


class DateTimeFilter(Filter):
    value: datetime.datetime

    @field_validator("value")
    @classmethod
    def _ensure_utc(cls, value: datetime.datetime) -> datetime.datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value

    def as_sql(self, pb: ParamBuilder) -> str:
        if self.operator not in RANGE_OPERATORS:
            raise ValueError(f"Unsupported datetime operator: {self.operator.value}")
        slot = pb.add(self.value, None, "DateTime64(3)")
        return f"{self.column_sql} {self.operator.value} {slot}"


class BooleanFilter(Filter):
    value: bool

    def as_sql(self, pb: ParamBuilder) -> str:
        slot = pb.add(self.value, None, "Bool")
        if self.operator == Operator.EQ:
            return f"{self.column_sql} = {slot}"
        elif self.operator == Operator.NEQ:
            return f"{self.column_sql} != {slot}"
        raise ValueError(f"Unsupported boolean operator: {self.operator.value}")


class StringOptionsFilter(Filter):
    value: tuple[str, ...]

    def as_sql(self, pb: ParamBuilder) -> str:
        slot = pb.add(list(self.value), None, "Array(String)")
        if self.operator == Operator.IN:
            return f"{self.column_sql} IN {slot}"
        elif self.operator == Operator.NOT_IN:
            return f"{self.column_sql} NOT IN {slot}"
        raise ValueError(f"Unsupported options operator: {self.operator.value}")


class ArrayOptionsFilter(Filter):
    """Matches an Array(String) column such as trace tags against a set of options."""

    value: tuple[str, ...]

    def as_sql(self, pb: ParamBuilder) -> str:
        slot = pb.add(list(self.value), None, "Array(String)")
        if self.operator == Operator.IN:
            return f"hasAny({self.column_sql}, {slot})"
        elif self.operator == Operator.NOT_IN:
            return f"NOT hasAny({self.column_sql}, {slot})"
        elif self.operator == Operator.ALL_OF:
            return f"hasAll({self.column_sql}, {slot})"
        raise ValueError(f"Unsupported array operator: {self.operator.value}")


class StringObjectFilter(Filter):
    """Compares one key of a Map(String, String) column, e.g. trace metadata."""

    key: str
    value: str

    def as_sql(self, pb: ParamBuilder) -> str:
        key_slot = pb.add(self.key, None, "String")
        slot = pb.add(self.value, None, "String")
        return _string_predicate(
            f"{self.column_sql}[{key_slot}]", self.operator, slot
        )


class NumberObjectFilter(Filter):
    """Compares one key of a numeric map column, e.g. observation usage details."""

    key: str
    value: float

    def as_sql(self, pb: ParamBuilder) -> str:
        key_slot = pb.add(self.key, None, "String")
        slot = pb.add(self.value, None, "Float64")
        return _comparison_predicate(
            f"{self.column_sql}[{key_slot}]", self.operator, slot
        )


class NullFilter(Filter):
    def as_sql(self, pb: ParamBuilder) -> str:
        if self.operator == Operator.IS_NULL:
            return f"{self.column_sql} IS NULL"
        elif self.operator == Operator.IS_NOT_NULL:
            return f"{self.column_sql} IS NOT NULL"
        raise ValueError(f"Unsupported null operator: {self.operator.value}")


class AppliedFilter(BaseModel):
    """A compiled filter list: one boolean expression and exactly the parameters it uses."""

    query: str
    params: dict[str, Any]


class FilterList:
    def __init__(self, filters: Iterable[Filter] = ()):
        self._filters = tuple(filters)

    def __iter__(self) -> Iterator[Filter]:
        return iter(self._filters)

    def __len__(self) -> int:
        return len(self._filters)

    def find(self, predicate: Callable[[Filter], bool]) -> Optional[Filter]:
        """Returns the first filter matching `predicate`, if any."""
        for f in self._filters:
            if predicate(f):
                return f
        return None

    def has_table(self, table: TableTag) -> bool:
        return self.find(lambda f: f.table == table) is not None

    def tables(self) -> list[TableTag]:
        """Tables referenced by the filters, in order of first use."""
        seen: list[TableTag] = []
        for f in self._filters:
            if f.table not in seen:
                seen.append(f.table)
        return seen

    def find_lower_bound(
        self, table: TableTag, field: str
    ) -> Optional[DateTimeFilter]:
        """Returns the first `>` / `>=` datetime filter on `table.field`."""
        found = self.find(
            lambda f: isinstance(f, DateTimeFilter)
            and f.table == table
            and f.field == field
            and f.operator in LOWER_BOUND_OPERATORS
        )
        return found if isinstance(found, DateTimeFilter) else None

    def apply(self, pb: Optional[ParamBuilder] = None) -> AppliedFilter:
        """Compiles the list into a single AND expression.

        When `pb` is shared with the rest of a query, the returned params are
        only the ones added for these filters.
        """
        pb = pb or ParamBuilder()
        existing = set(pb.param_names())
        conditions = [f.as_sql(pb) for f in self._filters]
        query = combine_conditions(conditions, "AND") or TAUTOLOGY
        params = {k: v for k, v in pb.get_params().items() if k not in existing}
        return AppliedFilter(query=query, params=params)
