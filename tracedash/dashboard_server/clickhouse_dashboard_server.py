# Clickhouse Dashboard Server

# Every metric follows the same path:
#   FilterState -> FilterList (validated against the catalog, raises before any
#   store call) -> SQL template sharing one ParamBuilder -> ClickHouse -> typed rows.
#
# No state is shared between calls apart from the read-only catalog and a
# per-thread ClickHouse client, so metrics can be requested concurrently.
# Store errors are logged and re-raised unchanged; a metric either returns all
# of its rows or fails.

import datetime
import logging
import threading
from typing import Any, Optional

import clickhouse_connect
import ddtrace
from clickhouse_connect.driver.client import Client as CHClient

from tracedash.dashboard_server import environment as td_env
from tracedash.dashboard_server.column_definitions import (
    ColumnCatalog,
    default_dashboard_catalog,
)
from tracedash.dashboard_server.dashboard_interface import (
    DistinctModelRow,
    ModelCostRow,
    ObservationUsageBucketRow,
    Row,
    ScoreAggregateRow,
    TraceCountRow,
    TraceTimeBucketRow,
    UserUsageRow,
)
from tracedash.dashboard_server.dashboard_query_builder import (
    make_distinct_models_query,
    make_model_usage_by_user_query,
    make_observation_usage_by_time_query,
    make_observations_cost_by_model_query,
    make_score_aggregate_query,
    make_total_traces_query,
    make_traces_by_time_query,
)
from tracedash.dashboard_server.filter_compiler import FilterCompiler
from tracedash.dashboard_server.filter_interface import FilterState
from tracedash.dashboard_server.filters import FilterList
from tracedash.dashboard_server.orm import ParamBuilder
from tracedash.dashboard_server.time_bucketing import DateTrunc

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

DEFAULT_MAX_MEMORY_USAGE = 16 * 1024 * 1024 * 1024  # 16 GiB


def _default_query_settings() -> dict[str, Any]:
    settings: dict[str, Any] = {
        "max_memory_usage": td_env.td_clickhouse_max_memory_usage()
        or DEFAULT_MAX_MEMORY_USAGE
    }
    max_execution_time = td_env.td_clickhouse_max_execution_time()
    if max_execution_time is not None:
        settings["max_execution_time"] = max_execution_time
    return settings


class ClickHouseDashboardServer:
    def __init__(
        self,
        *,
        host: str,
        port: int = 8123,
        user: str = "default",
        password: str = "",
        database: str = "default",
        catalog: Optional[ColumnCatalog] = None,
        join_time_tolerance: Optional[datetime.timedelta] = None,
    ):
        self._thread_local = threading.local()
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._database = database
        self._compiler = FilterCompiler(catalog or default_dashboard_catalog())
        if join_time_tolerance is None:
            join_time_tolerance = datetime.timedelta(
                seconds=td_env.td_dashboard_join_time_tolerance_seconds()
            )
        self._join_time_tolerance = join_time_tolerance
        self._query_settings = _default_query_settings()

    @classmethod
    def from_env(cls) -> "ClickHouseDashboardServer":
        return ClickHouseDashboardServer(
            host=td_env.td_clickhouse_host(),
            port=td_env.td_clickhouse_port(),
            user=td_env.td_clickhouse_user(),
            password=td_env.td_clickhouse_pass(),
            database=td_env.td_clickhouse_database(),
        )

    @property
    def ch_client(self) -> CHClient:
        """Returns and creates (if necessary) the clickhouse client"""
        if not hasattr(self._thread_local, "ch_client"):
            self._thread_local.ch_client = self._mint_client()
        return self._thread_local.ch_client

    @ch_client.setter
    def ch_client(self, client: CHClient) -> None:
        self._thread_local.ch_client = client

    def _mint_client(self) -> CHClient:
        client = clickhouse_connect.get_client(
            host=self._host,
            port=self._port,
            user=self._user,
            password=self._password,
            secure=self._port == 8443,
        )
        client.database = self._database
        return client

    @property
    def compiler(self) -> FilterCompiler:
        return self._compiler

    def _filter_list(self, filter_state: FilterState) -> FilterList:
        return self._compiler.build_filter_list(filter_state)

    # Metrics

    @ddtrace.tracer.wrap(name="clickhouse_dashboard_server.get_total_traces")
    def get_total_traces(
        self, project_id: str, filter_state: FilterState
    ) -> Optional[list[TraceCountRow]]:
        """Number of traces matching the filters.

        Returns None when no trace matches (the query yields no row), which
        callers must treat as "no data" rather than a count of zero.
        """
        pb = ParamBuilder()
        query = make_total_traces_query(project_id, self._filter_list(filter_state), pb)
        rows = self._query(query, pb.get_params())
        if not rows:
            return None
        return [TraceCountRow.from_row(rows[0])]

    @ddtrace.tracer.wrap(
        name="clickhouse_dashboard_server.get_observations_cost_grouped_by_name"
    )
    def get_observations_cost_grouped_by_name(
        self, project_id: str, filter_state: FilterState
    ) -> list[ModelCostRow]:
        pb = ParamBuilder()
        query = make_observations_cost_by_model_query(
            project_id, self._filter_list(filter_state), pb
        )
        return [ModelCostRow.from_row(r) for r in self._query(query, pb.get_params())]

    @ddtrace.tracer.wrap(name="clickhouse_dashboard_server.get_score_aggregate")
    def get_score_aggregate(
        self, project_id: str, filter_state: FilterState
    ) -> list[ScoreAggregateRow]:
        pb = ParamBuilder()
        query = make_score_aggregate_query(
            project_id,
            self._filter_list(filter_state),
            pb,
            join_time_tolerance=self._join_time_tolerance,
        )
        return [
            ScoreAggregateRow.from_row(r) for r in self._query(query, pb.get_params())
        ]

    @ddtrace.tracer.wrap(name="clickhouse_dashboard_server.group_traces_by_time")
    def group_traces_by_time(
        self, project_id: str, filter_state: FilterState, granularity: DateTrunc
    ) -> list[TraceTimeBucketRow]:
        pb = ParamBuilder()
        query = make_traces_by_time_query(
            project_id, self._filter_list(filter_state), pb, DateTrunc(granularity)
        )
        return [
            TraceTimeBucketRow.from_row(r) for r in self._query(query, pb.get_params())
        ]

    @ddtrace.tracer.wrap(
        name="clickhouse_dashboard_server.get_observation_usage_by_time"
    )
    def get_observation_usage_by_time(
        self, project_id: str, filter_state: FilterState, granularity: DateTrunc
    ) -> list[ObservationUsageBucketRow]:
        pb = ParamBuilder()
        query = make_observation_usage_by_time_query(
            project_id, self._filter_list(filter_state), pb, DateTrunc(granularity)
        )
        return [
            ObservationUsageBucketRow.from_row(r)
            for r in self._query(query, pb.get_params())
        ]

    @ddtrace.tracer.wrap(name="clickhouse_dashboard_server.get_distinct_models")
    def get_distinct_models(
        self, project_id: str, filter_state: FilterState
    ) -> list[DistinctModelRow]:
        pb = ParamBuilder()
        query = make_distinct_models_query(
            project_id, self._filter_list(filter_state), pb
        )
        return [
            DistinctModelRow.from_row(r) for r in self._query(query, pb.get_params())
        ]

    @ddtrace.tracer.wrap(name="clickhouse_dashboard_server.get_model_usage_by_user")
    def get_model_usage_by_user(
        self, project_id: str, filter_state: FilterState
    ) -> list[UserUsageRow]:
        pb = ParamBuilder()
        query = make_model_usage_by_user_query(
            project_id,
            self._filter_list(filter_state),
            pb,
            join_time_tolerance=self._join_time_tolerance,
        )
        return [UserUsageRow.from_row(r) for r in self._query(query, pb.get_params())]

    # Execution

    @ddtrace.tracer.wrap(name="clickhouse_dashboard_server._query")
    def _query(self, query: str, parameters: dict[str, Any]) -> list[Row]:
        """Directly queries the database and returns the rows keyed by column name."""
        parameters = _process_parameters(parameters)
        try:
            res = self.ch_client.query(
                query,
                parameters=parameters,
                use_none=True,
                settings={**self._query_settings},
            )
        except Exception as e:
            logger.exception(
                "dashboard_query_error",
                extra={"error_str": str(e), "query": query, "parameters": parameters},
            )
            raise

        logger.info(
            "dashboard_query",
            extra={
                "query": query,
                "parameters": parameters,
                "summary": res.summary,
            },
        )
        return [dict(zip(res.column_names, row)) for row in res.result_rows]


def _process_parameters(
    parameters: dict[str, Any],
) -> dict[str, Any]:
    # The clickhouse connect client truncates datetimes to the second, so they
    # are sent as epoch floats and parsed back by the DateTime64(3) slot.
    parameters = parameters.copy()
    for key, value in parameters.items():
        if isinstance(value, datetime.datetime):
            parameters[key] = value.timestamp()
    return parameters
