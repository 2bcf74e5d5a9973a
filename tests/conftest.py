import logging
import os

# Must be set before ddtrace is imported by the server module
os.environ.setdefault("DD_TRACE_ENABLED", "false")

import pytest

from tests.dashboard_server.mock_clickhouse import MockClickHouseClient
from tracedash.dashboard_server.clickhouse_dashboard_server import (
    ClickHouseDashboardServer,
)
from tracedash.dashboard_server.column_definitions import default_dashboard_catalog
from tracedash.dashboard_server.filter_compiler import FilterCompiler

DD_LOGGERS = ["ddtrace", "ddtrace.writer", "ddtrace.api", "ddtrace.internal"]


@pytest.fixture(autouse=True)
def disable_datadog(monkeypatch):
    """Keeps ddtrace from trying to reach an agent and logging the failures."""
    monkeypatch.setenv("DD_ENV", "none")
    monkeypatch.setenv("DD_TRACE_ENABLED", "false")
    for name in DD_LOGGERS:
        logging.getLogger(name).setLevel(logging.CRITICAL)


@pytest.fixture
def catalog():
    return default_dashboard_catalog()


@pytest.fixture
def compiler(catalog):
    return FilterCompiler(catalog)


@pytest.fixture
def ch_client():
    return MockClickHouseClient()


@pytest.fixture
def dashboard_server(ch_client):
    """A server whose ClickHouse client (for the test's thread) is the mock."""
    server = ClickHouseDashboardServer(host="localhost")
    server.ch_client = ch_client
    return server
