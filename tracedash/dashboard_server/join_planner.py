"""
Decides which auxiliary tables a metric query has to join.

ClickHouse has no index based join pruning, so every emitted join costs a
scan of the joined table. A join is therefore only planned when a filter
actually references the other table, or when the metric groups by a column
that only exists there. Filter-only joins are LEFT joins so that base rows
without a match are not dropped by the join itself; joins required by the
metric's grouping are INNER joins.
"""

import datetime
from collections.abc import Iterable
from enum import Enum

from tracedash.dashboard_server.column_definitions import TableTag
from tracedash.dashboard_server.errors import UnsupportedJoinError
from tracedash.dashboard_server.filters import DateTimeFilter, FilterList
from tracedash.dashboard_server.orm import ParamBuilder

DEFAULT_JOIN_TIME_TOLERANCE = datetime.timedelta(hours=1)

# (base, joined) -> (foreign key on base, key on joined)
JOIN_KEYS: dict[tuple[TableTag, TableTag], tuple[str, str]] = {
    (TableTag.OBSERVATIONS, TableTag.TRACES): ("trace_id", "id"),
    (TableTag.SCORES, TableTag.TRACES): ("trace_id", "id"),
    (TableTag.SCORES, TableTag.OBSERVATIONS): ("observation_id", "id"),
}


class JoinKind(str, Enum):
    LEFT = "LEFT"
    INNER = "INNER"


class JoinClause:
    base: TableTag
    table: TableTag
    kind: JoinKind

    def __init__(self, base: TableTag, table: TableTag, kind: JoinKind):
        if (base, table) not in JOIN_KEYS:
            raise UnsupportedJoinError(
                f"Cannot join {table.value} onto {base.value} queries"
            )
        self.base = base
        self.table = table
        self.kind = kind

    def as_sql(self) -> str:
        base_key, joined_key = JOIN_KEYS[(self.base, self.table)]
        b, j = self.base.alias, self.table.alias
        join = "LEFT JOIN" if self.kind == JoinKind.LEFT else "JOIN"
        return (
            f"{join} {self.table.value} {j} FINAL"
            f" ON {b}.{base_key} = {j}.{joined_key}"
            f" AND {b}.project_id = {j}.project_id"
        )

    def __repr__(self) -> str:
        return f"JoinClause({self.base.value} -> {self.table.value}, {self.kind.value})"


def plan_joins(
    filter_list: FilterList,
    base: TableTag,
    required: Iterable[TableTag] = (),
) -> list[JoinClause]:
    """Returns the joins `base` needs, in a stable order.

    `required` lists tables the metric itself depends on (e.g. grouping
    observations by the trace's user); those are always joined, INNER.
    """
    required_tables = [t for t in required if t != base]
    joins = [JoinClause(base, t, JoinKind.INNER) for t in required_tables]
    for table in filter_list.tables():
        if table == base or table in required_tables:
            continue
        joins.append(JoinClause(base, table, JoinKind.LEFT))
    return joins


def joins_as_sql(joins: list[JoinClause]) -> str:
    return "\n".join(j.as_sql() for j in joins)


def has_join(joins: list[JoinClause], table: TableTag) -> bool:
    return any(j.table == table for j in joins)


def lenient_trace_time_predicate(
    lower_bound: DateTimeFilter,
    pb: ParamBuilder,
    tolerance: datetime.timedelta = DEFAULT_JOIN_TIME_TOLERANCE,
) -> str:
    """Pushes a score/observation time lower bound onto the joined traces table.

    The bound is widened by `tolerance` because child rows can be ingested
    well after their trace. It only narrows the scanned trace granules and is
    not an exact time filter.
    """
    timestamp_slot = pb.add(lower_bound.value, None, "DateTime64(3)")
    tolerance_slot = pb.add(int(tolerance.total_seconds()), None, "UInt32")
    alias = TableTag.TRACES.alias
    return f"{alias}.timestamp >= {timestamp_slot} - INTERVAL {tolerance_slot} SECOND"
