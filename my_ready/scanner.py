"""Schema-wide scan for string values that change meaning under NO PAD collations.

Under a PAD SPACE collation 'abc ' and 'abc' compare equal; under the NO PAD
collations that MySQL 8.0+ uses by default they do not. The scanner walks
every base table and string column in a schema and counts values whose
TRIM() differs from the stored value.

Every identifier placed into SQL text comes from information_schema rows
read earlier in the same run, never from the caller.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterable

from my_ready.config import DEFAULT_SAMPLE_LIMIT, DEFAULT_STRING_TYPES, ScanConfig
from my_ready.connection import get_server_version, is_connection_lost
from my_ready.models import (
    ColumnScanFailure,
    ColumnScanResult,
    SampleRow,
    ScanReport,
    utcnow,
)

logger = logging.getLogger(__name__)


class IdentifierError(ValueError):
    """An identifier was not found in the metadata catalog."""


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def require_identifier(name: str, allowed: Iterable[str], kind: str) -> str:
    if name not in allowed:
        raise IdentifierError(f"{kind} {name!r} is not in the metadata catalog")
    return name


def resolve_schema(conn, schema: str) -> str:
    """Return the catalog's spelling of `schema`, or raise IdentifierError."""
    with conn.cursor() as cur:
        cur.execute(
            "SELECT SCHEMA_NAME FROM information_schema.SCHEMATA WHERE SCHEMA_NAME = %s",
            (schema,),
        )
        row = cur.fetchone()
    if row is None:
        raise IdentifierError(f"schema {schema!r} does not exist")
    return row[0]


def list_tables(conn, schema: str) -> list[str]:
    """Return the base tables of `schema`."""
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT TABLE_NAME
            FROM information_schema.TABLES
            WHERE TABLE_SCHEMA = %s
              AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
            """,
            (schema,),
        )
        return [r[0] for r in cur.fetchall()]


def list_string_columns(
    conn, schema: str, table: str, string_types: Iterable[str] = DEFAULT_STRING_TYPES
) -> list[tuple[str, str | None]]:
    """Return (column name, collation) for the character-typed columns of `table`."""
    types = tuple(string_types)
    placeholders = ", ".join(["%s"] * len(types))
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT COLUMN_NAME, COLLATION_NAME
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = %s
              AND TABLE_NAME = %s
              AND DATA_TYPE IN ({placeholders})
            ORDER BY ORDINAL_POSITION
            """,
            (schema, table, *types),
        )
        return [(r[0], r[1]) for r in cur.fetchall()]


def primary_key_columns(conn, schema: str, table: str) -> list[str]:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT COLUMN_NAME
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = %s
              AND TABLE_NAME = %s
              AND COLUMN_KEY = 'PRI'
            ORDER BY ORDINAL_POSITION
            """,
            (schema, table),
        )
        return [r[0] for r in cur.fetchall()]


def table_ref(schema: str, table: str) -> str:
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"


def padded_predicate(col: str) -> str:
    # Compare lengths so a PAD SPACE collation on the column cannot hide the difference.
    return f"CHAR_LENGTH({col}) <> CHAR_LENGTH(TRIM({col}))"


def count_trailing_spaces(conn, schema: str, table: str, column: str) -> tuple[int, int]:
    """Return (non-null rows, rows whose TRIM() differs) for one column."""
    col = quote_identifier(column)
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT
              COUNT(*) AS total_rows,
              COALESCE(SUM(CASE WHEN {padded_predicate(col)} THEN 1 ELSE 0 END), 0)
                AS trailing_space_count
            FROM {table_ref(schema, table)}
            WHERE {col} IS NOT NULL
            """
        )
        total, hits = cur.fetchone()
    return int(total or 0), int(hits or 0)


def _row_id_expr(key_columns: list[str]) -> str:
    if not key_columns:
        return "NULL"
    if len(key_columns) == 1:
        return quote_identifier(key_columns[0])
    return "CONCAT_WS(',', " + ", ".join(quote_identifier(k) for k in key_columns) + ")"


def sample_rows(
    conn,
    schema: str,
    table: str,
    column: str,
    key_columns: list[str],
    limit: int = DEFAULT_SAMPLE_LIMIT,
) -> list[SampleRow]:
    """Fetch up to `limit` offending rows with character and byte lengths.

    byte_length > char_length points at multi-byte characters rather than
    plain padding.
    """
    col = quote_identifier(column)
    with conn.cursor() as cur:
        cur.execute(
            f"""
            SELECT
              {_row_id_expr(key_columns)} AS row_id,
              {col} AS value,
              CHAR_LENGTH({col}) AS char_length,
              LENGTH({col}) AS byte_length
            FROM {table_ref(schema, table)}
            WHERE {col} IS NOT NULL
              AND {padded_predicate(col)}
            LIMIT %s
            """,
            (limit,),
        )
        rows = cur.fetchall()

    samples = []
    for row_id, value, char_length, byte_length in rows:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode("utf-8", errors="replace")
        samples.append(
            SampleRow(
                row_id=row_id,
                value=value,
                char_length=int(char_length),
                byte_length=int(byte_length),
            )
        )
    return samples


def _error_text(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def _scan_table(
    conn,
    report: ScanReport,
    schema: str,
    table: str,
    columns: list[tuple[str, str | None]],
    sample_limit: int,
    cancel: threading.Event | None,
    verbose: bool,
) -> None:
    """Scan the given (already catalog-checked) columns of one table into `report`."""
    key_columns: list[str] = []
    if sample_limit > 0:
        try:
            key_columns = primary_key_columns(conn, schema, table)
        except Exception as exc:
            if is_connection_lost(exc):
                raise
            logger.warning("Could not read primary key of %s.%s: %s", schema, table, exc)

    for column, collation in columns:
        if cancel is not None and cancel.is_set():
            report.cancelled = True
            return

        try:
            total, hits = count_trailing_spaces(conn, schema, table, column)
            samples = []
            if hits and sample_limit > 0:
                samples = sample_rows(conn, schema, table, column, key_columns, sample_limit)
        except Exception as exc:
            # A dead connection would fail every remaining column the same way.
            if is_connection_lost(exc):
                raise
            error = _error_text(exc)
            logger.warning("Error scanning column %s in table %s: %s", column, table, error)
            report.failures.append(ColumnScanFailure(table=table, column=column, error=error))
            if verbose:
                print(f"    ERROR {table}.{column}: {error}", file=sys.stderr)
            continue

        report.columns_scanned += 1
        if not hits:
            continue

        report.results.append(
            ColumnScanResult(
                table=table,
                column=column,
                total_rows=total,
                trailing_space_count=hits,
                samples=samples,
                collation=collation,
            )
        )
        logger.info("Trailing spaces detected in %s.%s: %d rows", table, column, hits)
        if verbose:
            print(
                f"    {table}.{column}: {hits} / {total} rows have trailing spaces",
                file=sys.stderr,
            )


def run_scan(
    conn,
    schema: str,
    host: str = "",
    port: int = 0,
    config: ScanConfig | None = None,
    cancel: threading.Event | None = None,
    verbose: bool = False,
) -> ScanReport:
    """Scan every string column of every base table in `schema`.

    Args:
        conn: mysql.connector connection.
        schema: Target schema; must exist in information_schema.SCHEMATA.
        host: Display hostname for the report.
        port: Display port for the report.
        config: Sample size, string types and table filters.
        cancel: Checked between columns; when set the partial report is returned.
        verbose: Print progress to stderr.

    Returns:
        ScanReport with one ColumnScanResult per column that has hits and one
        ColumnScanFailure per column (or table) that could not be scanned.
        Catalog errors before the per-table loop propagate, as does losing
        the connection at any point.
    """
    config = config or ScanConfig()
    schema = resolve_schema(conn, schema)

    report = ScanReport(
        schema=schema,
        host=host,
        port=port,
        timestamp=utcnow(),
        server_version=get_server_version(conn),
    )

    tables = list_tables(conn, schema)
    if config.include_tables is not None:
        tables = [t for t in tables if t in config.include_tables]
    tables = [t for t in tables if t not in config.exclude_tables]
    total = len(tables)

    if verbose:
        print(f"Trailing space scan: {total} tables in {schema}...", file=sys.stderr)

    for i, table in enumerate(tables, 1):
        if cancel is not None and cancel.is_set():
            report.cancelled = True
            break
        if verbose:
            print(f"  [{i}/{total}] {table}", file=sys.stderr)

        try:
            columns = list_string_columns(conn, schema, table, config.string_types)
        except Exception as exc:
            if is_connection_lost(exc):
                raise
            error = _error_text(exc)
            logger.warning("Could not list columns of table %s: %s", table, error)
            report.failures.append(ColumnScanFailure(table=table, column=None, error=error))
            continue

        report.tables_scanned += 1
        _scan_table(conn, report, schema, table, columns, config.sample_limit, cancel, verbose)
        if report.cancelled:
            break

    if verbose:
        state = "Cancelled" if report.cancelled else "Done"
        print(
            f"{state}. {report.total_affected_rows} rows with trailing spaces in "
            f"{report.affected_columns} columns, {len(report.failures)} failures.",
            file=sys.stderr,
        )

    return report


def scan_table(
    conn,
    schema: str,
    table: str,
    columns: Iterable[str] | None = None,
    config: ScanConfig | None = None,
) -> ScanReport:
    """Scan one table, optionally restricted to some of its string columns.

    Requested names are checked against information_schema before use; an
    unknown table or column raises IdentifierError.
    """
    config = config or ScanConfig()
    schema = resolve_schema(conn, schema)
    table = require_identifier(table, list_tables(conn, schema), "table")

    catalog = list_string_columns(conn, schema, table, config.string_types)
    if columns is not None:
        known = {name for name, _ in catalog}
        wanted = [require_identifier(c, known, "string column") for c in columns]
        catalog = [(name, coll) for name, coll in catalog if name in wanted]

    report = ScanReport(schema=schema, host="", port=0, timestamp=utcnow(), tables_scanned=1)
    _scan_table(conn, report, schema, table, catalog, config.sample_limit, None, False)
    return report
