"""
SQL templates for the dashboard metrics.

Every template is a pure function of the project, the compiled `FilterList`
and (for time series) a granularity. They share one `ParamBuilder` per query,
so placeholders for the project scope, the filters and the join widening never
collide. The caller executes the returned SQL with `pb.get_params()`.
"""

import datetime
from collections.abc import Iterable

from tracedash.dashboard_server.column_definitions import TableTag
from tracedash.dashboard_server.filters import FilterList
from tracedash.dashboard_server.join_planner import (
    DEFAULT_JOIN_TIME_TOLERANCE,
    has_join,
    joins_as_sql,
    lenient_trace_time_predicate,
    plan_joins,
)
from tracedash.dashboard_server.orm import ParamBuilder
from tracedash.dashboard_server.time_bucketing import (
    DateTrunc,
    order_by_timeseries,
    select_timeseries_column,
)

TRACES = TableTag.TRACES
OBSERVATIONS = TableTag.OBSERVATIONS
SCORES = TableTag.SCORES


def _from_clause(base: TableTag) -> str:
    return f"FROM {base.value} {base.alias} FINAL"


def _where_clause(
    base: TableTag,
    project_id: str,
    filter_list: FilterList,
    pb: ParamBuilder,
    pre_conditions: Iterable[str] = (),
) -> str:
    project_slot = pb.add(project_id, None, "String")
    conditions = [f"{base.alias}.project_id = {project_slot}", *pre_conditions]
    conditions.append(filter_list.apply(pb).query)
    return "WHERE " + "\n    AND ".join(conditions)


def _and(where: str, condition: str) -> str:
    return f"{where}\n    AND {condition}"


def _time_bucket(
    granularity: DateTrunc, column: str, alias: str
) -> tuple[str, str]:
    select = select_timeseries_column(granularity, column, alias)
    order = order_by_timeseries(granularity, alias)
    if select is None or order is None:
        raise ValueError(f"Unsupported granularity: {granularity}")
    return select, order


def _join_lines(*parts: str) -> str:
    return "\n".join(p for p in parts if p)


def make_total_traces_query(
    project_id: str, filter_list: FilterList, pb: ParamBuilder
) -> str:
    """Trace count. Yields no row, rather than a count of 0, when nothing matches."""
    joins = plan_joins(filter_list, TRACES)
    return _join_lines(
        "SELECT count(t.id) AS count",
        _from_clause(TRACES),
        joins_as_sql(joins),
        _where_clause(TRACES, project_id, filter_list, pb),
        "HAVING count(t.id) > 0",
    )


def make_observations_cost_by_model_query(
    project_id: str, filter_list: FilterList, pb: ParamBuilder
) -> str:
    joins = plan_joins(filter_list, OBSERVATIONS)
    return _join_lines(
        "SELECT",
        "    o.provided_model_name AS name,",
        "    sumMap(o.cost_details)['total'] AS sum_cost_details,",
        "    sumMap(o.usage_details)['total'] AS sum_usage_details",
        _from_clause(OBSERVATIONS),
        joins_as_sql(joins),
        _where_clause(OBSERVATIONS, project_id, filter_list, pb),
        "GROUP BY o.provided_model_name",
        "ORDER BY sum_cost_details DESC",
    )


def make_score_aggregate_query(
    project_id: str,
    filter_list: FilterList,
    pb: ParamBuilder,
    join_time_tolerance: datetime.timedelta = DEFAULT_JOIN_TIME_TOLERANCE,
) -> str:
    """Score count and average value per (name, source, data type).

    When traces are joined and the scores are bounded below in time, the
    same bound (widened by `join_time_tolerance`) is applied to the traces.
    """
    joins = plan_joins(filter_list, SCORES)
    score_time_filter = filter_list.find_lower_bound(SCORES, "timestamp")

    where = _where_clause(SCORES, project_id, filter_list, pb)
    if score_time_filter is not None and has_join(joins, TRACES):
        where = _and(
            where,
            lenient_trace_time_predicate(score_time_filter, pb, join_time_tolerance),
        )

    return _join_lines(
        "SELECT",
        "    s.name AS name,",
        "    count(*) AS count,",
        "    avg(s.value) AS avg_value,",
        "    s.source AS source,",
        "    s.data_type AS data_type",
        _from_clause(SCORES),
        joins_as_sql(joins),
        where,
        "GROUP BY s.name, s.source, s.data_type",
        "ORDER BY count(*) DESC",
    )


def make_traces_by_time_query(
    project_id: str,
    filter_list: FilterList,
    pb: ParamBuilder,
    granularity: DateTrunc,
) -> str:
    select_bucket, order_by = _time_bucket(granularity, "t.timestamp", "timestamp")
    joins = plan_joins(filter_list, TRACES)
    return _join_lines(
        "SELECT",
        f"    {select_bucket},",
        "    count(*) AS count",
        _from_clause(TRACES),
        joins_as_sql(joins),
        _where_clause(TRACES, project_id, filter_list, pb),
        "GROUP BY timestamp",
        order_by,
    )


def make_observation_usage_by_time_query(
    project_id: str,
    filter_list: FilterList,
    pb: ParamBuilder,
    granularity: DateTrunc,
) -> str:
    select_bucket, order_by = _time_bucket(granularity, "o.start_time", "start_time")
    joins = plan_joins(filter_list, OBSERVATIONS)
    return _join_lines(
        "SELECT",
        f"    {select_bucket},",
        "    sumMap(o.usage_details)['total'] AS sum_usage_details,",
        "    sumMap(o.cost_details)['total'] AS sum_cost_details,",
        "    o.provided_model_name AS provided_model_name",
        _from_clause(OBSERVATIONS),
        joins_as_sql(joins),
        _where_clause(OBSERVATIONS, project_id, filter_list, pb),
        "GROUP BY start_time, provided_model_name",
        order_by,
    )


def make_distinct_models_query(
    project_id: str, filter_list: FilterList, pb: ParamBuilder
) -> str:
    joins = plan_joins(filter_list, OBSERVATIONS)
    return _join_lines(
        "SELECT DISTINCT o.provided_model_name AS model",
        _from_clause(OBSERVATIONS),
        joins_as_sql(joins),
        _where_clause(OBSERVATIONS, project_id, filter_list, pb),
    )


def make_model_usage_by_user_query(
    project_id: str,
    filter_list: FilterList,
    pb: ParamBuilder,
    join_time_tolerance: datetime.timedelta = DEFAULT_JOIN_TIME_TOLERANCE,
) -> str:
    """Usage and cost per end user.

    Grouping by `t.user_id` needs the trace row, so traces are always INNER
    joined and observations without a user are excluded.
    """
    joins = plan_joins(filter_list, OBSERVATIONS, required=[TRACES])
    start_time_filter = filter_list.find_lower_bound(OBSERVATIONS, "start_time")

    where = _where_clause(
        OBSERVATIONS,
        project_id,
        filter_list,
        pb,
        pre_conditions=["t.user_id IS NOT NULL"],
    )
    if start_time_filter is not None:
        where = _and(
            where,
            lenient_trace_time_predicate(start_time_filter, pb, join_time_tolerance),
        )

    return _join_lines(
        "SELECT",
        "    sumMap(o.usage_details)['total'] AS sum_usage_details,",
        "    sumMap(o.cost_details)['total'] AS sum_cost_details,",
        "    t.user_id AS user_id",
        _from_clause(OBSERVATIONS),
        joins_as_sql(joins),
        where,
        "GROUP BY t.user_id",
    )
