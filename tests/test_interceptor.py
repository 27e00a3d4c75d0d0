"""Tests for my_ready.monitor.interceptor — transparent instrumentation."""

from __future__ import annotations

import asyncio
import inspect
import logging
from types import SimpleNamespace

import pytest

from my_ready.models import MonitorConfig
from my_ready.monitor.aggregator import DiagnosticsAggregator
from my_ready.monitor.interceptor import (
    connection_warning_fetcher,
    instrument,
    instrument_cursor,
    query_text,
)

DEPRECATION = ("Warning", 1287, "'utf8mb3' is deprecated and will be removed")


@pytest.fixture
def aggregator() -> DiagnosticsAggregator:
    return DiagnosticsAggregator(MonitorConfig(log_warnings=False, slow_query_threshold=0))


class TestQueryText:
    def test_positional_string(self):
        assert query_text(("SELECT 1", (1,)), {}) == "SELECT 1"

    def test_keyword(self):
        assert query_text((), {"operation": "SELECT 2"}) == "SELECT 2"
        assert query_text((), {"sql": "SELECT 3"}) == "SELECT 3"

    def test_statement_object(self):
        assert query_text((SimpleNamespace(sql="SELECT 4"),), {}) == "SELECT 4"

    def test_bytes(self):
        assert query_text((b"SELECT 5",), {}) == "SELECT 5"

    def test_missing(self):
        assert query_text((), {}) == ""


class TestInstrumentSync:
    def test_result_passthrough_and_ordering(self, aggregator):
        calls = []

        def execute(sql, params=None):
            calls.append(("execute", sql))
            return [("row",)]

        def fetch():
            calls.append(("fetch", None))
            return [DEPRECATION]

        wrapped = instrument(execute, aggregator, fetch)
        assert wrapped("SELECT 1") == [("row",)]
        assert calls == [("execute", "SELECT 1"), ("fetch", None)]
        # Effects are visible as soon as the call returns.
        assert aggregator.stats().deprecation_warnings == 1
        assert aggregator.warnings()[0].query == "SELECT 1"

    def test_signature_preserved(self, aggregator):
        def execute(operation, params=None, multi=False):
            """Run a statement."""

        wrapped = instrument(execute, aggregator, list)
        assert wrapped.__name__ == "execute"
        assert wrapped.__doc__ == "Run a statement."
        assert inspect.signature(wrapped) == inspect.signature(execute)

    def test_error_reraised_after_collection(self, aggregator):
        class Boom(Exception):
            pass

        def execute(sql):
            raise Boom("syntax error")

        wrapped = instrument(execute, aggregator, lambda: [DEPRECATION])
        with pytest.raises(Boom, match="syntax error"):
            wrapped("SELEC 1")
        assert aggregator.stats().total_warnings == 1
        assert aggregator.stats().slow_queries == 1

    def test_fetch_failure_swallowed(self, aggregator, caplog):
        def fetch():
            raise ConnectionError("lost connection")

        wrapped = instrument(lambda sql: 42, aggregator, fetch)
        with caplog.at_level(logging.WARNING, logger="my_ready.monitor.interceptor"):
            assert wrapped("SELECT 1") == 42
        assert "Could not collect MySQL diagnostics" in caplog.text
        assert aggregator.stats().total_warnings == 0

    def test_fetch_failure_does_not_mask_query_error(self, aggregator):
        def execute(sql):
            raise ValueError("original")

        def fetch():
            raise RuntimeError("diagnostics")

        wrapped = instrument(execute, aggregator, fetch)
        with pytest.raises(ValueError, match="original"):
            wrapped("SELECT 1")

    def test_duration_recorded(self):
        agg = DiagnosticsAggregator(MonitorConfig(log_warnings=False, slow_query_threshold=0))
        wrapped = instrument(lambda sql: None, agg, list)
        wrapped("SELECT 1")
        slow = agg.slow_queries()
        assert len(slow) == 1
        assert slow[0].execution_time > 0


class TestInstrumentAsync:
    def test_async_wrapper(self, aggregator):
        async def execute(sql):
            await asyncio.sleep(0)
            return "done"

        async def fetch():
            return [DEPRECATION]

        wrapped = instrument(execute, aggregator, fetch)
        assert inspect.iscoroutinefunction(wrapped)
        assert asyncio.run(wrapped("SELECT 1")) == "done"
        assert aggregator.stats().deprecation_warnings == 1

    def test_async_with_sync_fetch_and_error(self, aggregator):
        async def execute(sql):
            raise KeyError("missing")

        wrapped = instrument(execute, aggregator, lambda: [DEPRECATION])
        with pytest.raises(KeyError):
            asyncio.run(wrapped("SELECT 1"))
        assert aggregator.stats().total_warnings == 1

    def test_async_fetch_failure_swallowed(self, aggregator):
        async def execute(sql):
            return 7

        async def fetch():
            raise OSError("socket closed")

        wrapped = instrument(execute, aggregator, fetch)
        assert asyncio.run(wrapped("SELECT 1")) == 7


class TestConnectionFetcher:
    def test_show_warnings_on_same_connection(self, fake_db):
        fake_db.warnings = [DEPRECATION]
        fetch = connection_warning_fetcher(fake_db)
        assert fetch() == [DEPRECATION]
        assert fake_db.executed[-1][0] == "SHOW WARNINGS"

    def test_instrument_cursor(self, fake_db, aggregator):
        fake_db.warnings = [DEPRECATION]
        cursor = fake_db.cursor()
        cursor._connection = fake_db
        execute = instrument_cursor(cursor, aggregator)
        execute("SELECT VERSION()")
        assert cursor.fetchall() == [("9.0.1",)]
        assert [sql for sql, _ in fake_db.executed] == ["SELECT VERSION()", "SHOW WARNINGS"]
        assert aggregator.stats().deprecation_warnings == 1

    def test_instrument_cursor_without_connection(self, aggregator):
        with pytest.raises(ValueError):
            instrument_cursor(SimpleNamespace(execute=lambda sql: None), aggregator)
