"""Shared fixtures for my-ready tests."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

import mysql.connector
import pytest

from my_ready.models import ColumnScanFailure, ColumnScanResult, SampleRow, ScanReport

_IDENT = r"`((?:[^`]|``)+)`"
_FROM = re.compile(rf"FROM {_IDENT}\.{_IDENT}")
_NOT_NULL = re.compile(rf"WHERE {_IDENT} IS NOT NULL")
_UPDATE = re.compile(rf"UPDATE {_IDENT}\.{_IDENT} SET {_IDENT}")


def _unquote(name: str) -> str:
    return name.replace("``", "`")


def _trim(value: str) -> str:
    return value.strip(" ")


@dataclass
class FakeTable:
    columns: dict[str, str]  # name -> DATA_TYPE
    rows: list[dict] = field(default_factory=list)
    primary_key: list[str] = field(default_factory=lambda: ["id"])
    collation: str = "utf8mb4_0900_ai_ci"


class FakeCursor:
    def __init__(self, conn: FakeMySQL):
        self.conn = conn
        self._rows: list[tuple] = []
        self.rowcount = -1

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def execute(self, operation, params=None):
        self.conn.executed.append((operation, params))
        self._rows = self.conn.answer(operation, tuple(params or ()), self)

    def fetchall(self):
        return list(self._rows)

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def close(self):
        pass


class FakeMySQL:
    """In-memory stand-in for a mysql.connector connection.

    Understands exactly the statements my-ready issues: catalog lookups,
    the per-column count and sample queries, TRIM updates, VERSION() and
    SHOW WARNINGS.
    """

    def __init__(self, schema: str = "appdb", tables: dict[str, FakeTable] | None = None):
        self.schema = schema
        self.tables = tables or {}
        self.version = "9.0.1"
        self.warnings: list = []
        self.failing_columns: set[tuple[str, str]] = set()
        self.failing_tables: set[str] = set()
        # Number of COUNT queries answered before every statement fails with 2013.
        self.lose_connection_after: int | None = None
        self.executed: list[tuple] = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self, *args, **kwargs):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True

    def _table(self, sql: str) -> tuple[str, FakeTable]:
        schema, table = (_unquote(n) for n in _FROM.search(sql).groups())
        assert schema == self.schema
        return table, self.tables[table]

    def _deny(self, table: str, column: str):
        if (table, column) in self.failing_columns:
            raise mysql.connector.errors.ProgrammingError(
                msg=f"SELECT command denied for column '{column}' in table '{table}'",
                errno=1143,
            )

    def answer(self, sql: str, params: tuple, cursor: FakeCursor) -> list[tuple]:
        if self.lose_connection_after is not None and self.lose_connection_after <= 0:
            raise mysql.connector.errors.OperationalError(
                msg="Lost connection to MySQL server during query", errno=2013
            )
        if sql == "SHOW WARNINGS":
            return list(self.warnings)
        if sql == "SELECT VERSION()":
            return [(self.version,)]
        if "information_schema.SCHEMATA" in sql:
            return [(self.schema,)] if params[0] == self.schema else []
        if "information_schema.TABLES" in sql:
            if params[0] != self.schema:
                return []
            return [(t,) for t in sorted(self.tables)]
        if "COLUMN_KEY = 'PRI'" in sql:
            return [(k,) for k in self.tables[params[1]].primary_key]
        if "information_schema.COLUMNS" in sql:
            table = params[1]
            if table in self.failing_tables:
                raise mysql.connector.errors.ProgrammingError(
                    msg=f"SELECT command denied on '{table}'", errno=1142
                )
            types = set(params[2:])
            t = self.tables[table]
            return [(c, t.collation) for c, dt in t.columns.items() if dt in types]
        if sql.startswith("UPDATE"):
            schema, table, column = (_unquote(n) for n in _UPDATE.search(sql).groups())
            self._deny(table, column)
            count = 0
            for row in self.tables[table].rows:
                value = row.get(column)
                if value is not None and _trim(value) != value:
                    row[column] = _trim(value)
                    count += 1
            cursor.rowcount = count
            return []
        if "COUNT(*)" in sql:
            table, t = self._table(sql)
            column = _unquote(_NOT_NULL.search(sql).group(1))
            self._deny(table, column)
            values = [r[column] for r in t.rows if r.get(column) is not None]
            hits = sum(1 for v in values if len(_trim(v)) != len(v))
            if self.lose_connection_after is not None:
                self.lose_connection_after -= 1
            return [(len(values), hits)]
        if "LIMIT" in sql:
            table, t = self._table(sql)
            column = _unquote(_NOT_NULL.search(sql).group(1))
            self._deny(table, column)
            out = []
            for r in t.rows:
                v = r.get(column)
                if v is None or len(_trim(v)) == len(v):
                    continue
                if not t.primary_key:
                    row_id = None
                elif len(t.primary_key) == 1:
                    row_id = r[t.primary_key[0]]
                else:
                    row_id = ",".join(str(r[k]) for k in t.primary_key)
                out.append((row_id, v, len(v), len(v.encode("utf-8"))))
            return out[: params[0]]
        raise AssertionError(f"unexpected SQL: {sql}")


def make_users_table() -> FakeTable:
    """10 non-null names, 3 with trailing spaces; plus one clean email column."""
    names = ["abc ", "alice", "xy ", "bob", "carol", "z  ", "dave", "erin", "frank", "grace"]
    rows = [{"id": i, "name": n, "email": f"{n.strip()}@example.com", "age": 30} for i, n in enumerate(names, 1)]
    rows.append({"id": 11, "name": None, "email": "nobody@example.com", "age": 40})
    return FakeTable(
        columns={"id": "int", "name": "varchar", "email": "varchar", "age": "int"},
        rows=rows,
    )


@pytest.fixture
def fake_db() -> FakeMySQL:
    """Schema with one affected table, one clean table and a multi-byte value."""
    return FakeMySQL(
        tables={
            "users": make_users_table(),
            "products": FakeTable(
                columns={"sku": "char", "title": "text"},
                rows=[
                    {"sku": "A1", "title": "naïve "},
                    {"sku": "B2", "title": "plain"},
                ],
                primary_key=["sku"],
            ),
            "settings": FakeTable(
                columns={"key": "varchar", "value": "longtext"},
                rows=[{"key": "theme", "value": "dark"}],
                primary_key=["key"],
            ),
        }
    )


def make_result(
    table: str = "users",
    column: str = "name",
    total_rows: int = 10,
    trailing_space_count: int = 3,
    **kwargs,
) -> ColumnScanResult:
    """Factory for creating ColumnScanResult instances with sensible defaults."""
    return ColumnScanResult(
        table=table,
        column=column,
        total_rows=total_rows,
        trailing_space_count=trailing_space_count,
        **kwargs,
    )


@pytest.fixture
def empty_report() -> ScanReport:
    """ScanReport with no results."""
    return ScanReport(
        schema="appdb",
        host="localhost",
        port=3306,
        timestamp=datetime(2026, 1, 27, 12, 0, 0, tzinfo=timezone.utc),
        server_version="9.0.1",
        tables_scanned=2,
        columns_scanned=4,
    )


@pytest.fixture
def sample_report() -> ScanReport:
    """ScanReport with two affected columns and one failure."""
    report = ScanReport(
        schema="appdb",
        host="localhost",
        port=3306,
        timestamp=datetime(2026, 1, 27, 12, 0, 0, tzinfo=timezone.utc),
        server_version="9.0.1",
        tables_scanned=3,
        columns_scanned=5,
    )
    report.results.append(
        make_result(
            samples=[
                SampleRow(row_id=1, value="abc ", char_length=4, byte_length=4),
                SampleRow(row_id=3, value="xy ", char_length=3, byte_length=3),
            ],
            collation="utf8mb4_0900_ai_ci",
        )
    )
    report.results.append(
        make_result(
            table="products",
            column="title",
            total_rows=2,
            trailing_space_count=1,
            samples=[SampleRow(row_id="A1", value="naïve ", char_length=6, byte_length=7)],
        )
    )
    report.failures.append(
        ColumnScanFailure(table="audit", column="note", error="ProgrammingError: denied")
    )
    return report
