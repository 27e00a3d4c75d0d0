"""Trim remediation for columns reported by the scanner.

Nothing here runs automatically; the CLI only executes statements with
``my-ready trim --execute``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from my_ready.config import DEFAULT_STRING_TYPES
from my_ready.models import ColumnScanResult, ScanReport
from my_ready.scanner import (
    list_string_columns,
    list_tables,
    padded_predicate,
    quote_identifier,
    require_identifier,
    resolve_schema,
    table_ref,
)

logger = logging.getLogger(__name__)


def trim_statement(schema: str, table: str, column: str) -> str:
    col = quote_identifier(column)
    return (
        f"UPDATE {table_ref(schema, table)} SET {col} = TRIM({col}) "
        f"WHERE {padded_predicate(col)};"
    )


def trim_statements(report: ScanReport) -> list[str]:
    """One UPDATE per affected column, in report order."""
    return [trim_statement(report.schema, r.table, r.column) for r in report.results]


def apply_trim(
    conn,
    schema: str,
    results: Iterable[ColumnScanResult],
    string_types: Iterable[str] = DEFAULT_STRING_TYPES,
) -> dict[str, int]:
    """Trim every column in `results`, one transaction per column.

    Each (table, column) is checked against information_schema again before
    the UPDATE is built. A failing column is rolled back and re-raised;
    columns already trimmed stay committed.

    Returns:
        Mapping of "table.column" to the number of rows updated.
    """
    types = tuple(string_types)
    schema = resolve_schema(conn, schema)
    tables = set(list_tables(conn, schema))
    updated: dict[str, int] = {}

    for result in results:
        table = require_identifier(result.table, tables, "table")
        known = {name for name, _ in list_string_columns(conn, schema, table, types)}
        column = require_identifier(result.column, known, "string column")

        stmt = trim_statement(schema, table, column)
        try:
            with conn.cursor() as cur:
                cur.execute(stmt)
                count = cur.rowcount
            conn.commit()
        except Exception:
            conn.rollback()
            logger.error("Trim failed for %s.%s; rolled back", table, column)
            raise

        updated[result.object_name] = count
        logger.info("Trimmed %d rows in %s.%s", count, table, column)

    return updated
