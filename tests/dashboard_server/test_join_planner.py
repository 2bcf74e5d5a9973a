import datetime

import pytest

from tracedash.dashboard_server.column_definitions import TableTag
from tracedash.dashboard_server.errors import UnsupportedJoinError
from tracedash.dashboard_server.filters import (
    DateTimeFilter,
    FilterList,
    Operator,
    StringFilter,
    StringOptionsFilter,
)
from tracedash.dashboard_server.join_planner import (
    JoinClause,
    JoinKind,
    has_join,
    joins_as_sql,
    lenient_trace_time_predicate,
    plan_joins,
)
from tracedash.dashboard_server.orm import ParamBuilder

USER_FILTER = StringFilter(
    table=TableTag.TRACES, field="user_id", operator=Operator.EQ, value="u1"
)
MODEL_FILTER = StringOptionsFilter(
    table=TableTag.OBSERVATIONS,
    field="provided_model_name",
    operator=Operator.IN,
    value=("gpt-4",),
)
SCORE_NAME_FILTER = StringOptionsFilter(
    table=TableTag.SCORES, field="name", operator=Operator.IN, value=("quality",)
)


def test_no_join_without_foreign_filters():
    assert plan_joins(FilterList(), TableTag.OBSERVATIONS) == []
    assert plan_joins(FilterList([MODEL_FILTER]), TableTag.OBSERVATIONS) == []


def test_trace_filter_adds_left_join():
    joins = plan_joins(FilterList([MODEL_FILTER, USER_FILTER]), TableTag.OBSERVATIONS)
    assert len(joins) == 1
    assert joins[0].table == TableTag.TRACES
    assert joins[0].kind == JoinKind.LEFT
    assert joins_as_sql(joins) == (
        "LEFT JOIN traces t FINAL ON o.trace_id = t.id AND o.project_id = t.project_id"
    )


def test_one_join_per_table():
    other_user = StringFilter(
        table=TableTag.TRACES, field="session_id", operator=Operator.EQ, value="s"
    )
    joins = plan_joins(FilterList([USER_FILTER, other_user]), TableTag.SCORES)
    assert [j.table for j in joins] == [TableTag.TRACES]


def test_scores_join_observations_and_traces():
    joins = plan_joins(
        FilterList([MODEL_FILTER, SCORE_NAME_FILTER, USER_FILTER]), TableTag.SCORES
    )
    assert [j.table for j in joins] == [TableTag.OBSERVATIONS, TableTag.TRACES]
    assert joins_as_sql(joins) == (
        "LEFT JOIN observations o FINAL ON s.observation_id = o.id AND s.project_id = o.project_id\n"
        "LEFT JOIN traces t FINAL ON s.trace_id = t.id AND s.project_id = t.project_id"
    )
    assert has_join(joins, TableTag.TRACES)
    assert not has_join(joins, TableTag.SCORES)


def test_required_join_is_inner_and_first():
    joins = plan_joins(
        FilterList([USER_FILTER]), TableTag.OBSERVATIONS, required=[TableTag.TRACES]
    )
    assert len(joins) == 1
    assert joins[0].kind == JoinKind.INNER
    assert joins[0].as_sql() == (
        "JOIN traces t FINAL ON o.trace_id = t.id AND o.project_id = t.project_id"
    )


def test_unsupported_join():
    with pytest.raises(UnsupportedJoinError):
        plan_joins(FilterList([MODEL_FILTER]), TableTag.TRACES)
    with pytest.raises(UnsupportedJoinError):
        JoinClause(TableTag.OBSERVATIONS, TableTag.SCORES, JoinKind.LEFT)


def test_lenient_trace_time_predicate():
    bound = DateTimeFilter(
        table=TableTag.SCORES,
        field="timestamp",
        operator=Operator.GTE,
        value=datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc),
    )
    pb = ParamBuilder("pb")
    sql = lenient_trace_time_predicate(bound, pb)
    assert sql == "t.timestamp >= {pb_0:DateTime64(3)} - INTERVAL {pb_1:UInt32} SECOND"
    assert pb.get_params() == {"pb_0": bound.value, "pb_1": 3600}

    pb = ParamBuilder("pb")
    lenient_trace_time_predicate(bound, pb, datetime.timedelta(minutes=5))
    assert pb.get_params()["pb_1"] == 300
