"""Transparent instrumentation of a query-execution callable.

The host installs this once at startup::

    aggregator = DiagnosticsAggregator(MonitorConfig(slow_query_threshold=500))
    cursor.execute = instrument(cursor.execute, aggregator,
                                connection_warning_fetcher(conn))

or, for a mysql.connector cursor, ``instrument_cursor(cursor, aggregator)``
which returns the wrapped ``execute`` without touching the cursor.
"""

from __future__ import annotations

import functools
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

from my_ready.monitor.aggregator import DiagnosticsAggregator

logger = logging.getLogger(__name__)

SHOW_WARNINGS = "SHOW WARNINGS"

_QUERY_KWARGS = ("operation", "query", "sql", "statement")


def query_text(args: tuple, kwargs: dict) -> str:
    """Best-effort extraction of the SQL text from an execute() call."""
    stmt = args[0] if args else None
    if stmt is None:
        for key in _QUERY_KWARGS:
            if key in kwargs:
                stmt = kwargs[key]
                break
    if stmt is None:
        return ""
    if isinstance(stmt, str):
        return stmt
    if isinstance(stmt, (bytes, bytearray)):
        return stmt.decode("utf-8", errors="replace")
    sql = getattr(stmt, "sql", None)
    if isinstance(sql, str):
        return sql
    return str(stmt)


def connection_warning_fetcher(conn) -> Callable[[], list]:
    """Return a callable that runs SHOW WARNINGS on `conn`.

    The fetch uses a fresh cursor on the same connection, so it must run
    after the observed statement has finished.
    """

    def fetch() -> list:
        with conn.cursor() as cur:
            cur.execute(SHOW_WARNINGS)
            return cur.fetchall()

    return fetch


def _collect(
    aggregator: DiagnosticsAggregator, query: str, duration_ms: float, warnings
) -> None:
    aggregator.record_warnings(query, duration_ms, warnings)
    aggregator.record_duration(query, duration_ms)


def _collection_failed(query: str, exc: BaseException) -> None:
    logger.warning(
        "Could not collect MySQL diagnostics for query %r: %s: %s",
        query[:200],
        type(exc).__name__,
        exc,
        exc_info=exc,
    )


def instrument(
    execute: Callable[..., Any],
    aggregator: DiagnosticsAggregator,
    fetch_warnings: Callable[[], Any],
) -> Callable[..., Any]:
    """Wrap `execute` so each call feeds timing and warnings to `aggregator`.

    The wrapper has the same signature as `execute` and returns its result
    (or raises its exception) unchanged. Failures while fetching or
    recording warnings are logged and swallowed. When `execute` is a
    coroutine function the wrapper is one too, and an awaitable returned by
    `fetch_warnings` is awaited.
    """
    if inspect.iscoroutinefunction(execute):

        @functools.wraps(execute)
        async def monitored_async(*args, **kwargs):
            query = query_text(args, kwargs)
            start = time.perf_counter()
            try:
                return await execute(*args, **kwargs)
            finally:
                duration_ms = (time.perf_counter() - start) * 1000.0
                try:
                    warnings = fetch_warnings()
                    if inspect.isawaitable(warnings):
                        warnings = await warnings
                    _collect(aggregator, query, duration_ms, warnings)
                except Exception as exc:
                    _collection_failed(query, exc)

        return monitored_async

    @functools.wraps(execute)
    def monitored(*args, **kwargs):
        query = query_text(args, kwargs)
        start = time.perf_counter()
        try:
            return execute(*args, **kwargs)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            try:
                _collect(aggregator, query, duration_ms, fetch_warnings())
            except Exception as exc:
                _collection_failed(query, exc)

    return monitored


def instrument_cursor(cursor, aggregator: DiagnosticsAggregator) -> Callable[..., Any]:
    """Instrument a mysql.connector cursor's execute() using its own connection."""
    conn = getattr(cursor, "_connection", None)
    if conn is None:
        conn = getattr(cursor, "connection", None)
    if conn is None:
        raise ValueError(f"Cannot find the connection behind {cursor!r}")
    return instrument(cursor.execute, aggregator, connection_warning_fetcher(conn))
