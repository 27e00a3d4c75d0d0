"""Data models for monitor records and scan results."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

DEFAULT_SLOW_QUERY_THRESHOLD = 1000.0

DEFAULT_DEPRECATION_KEYWORDS = (
    "deprecated",
    "will be removed",
    "is obsolete",
    "no longer supported",
    "authentication_string",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WarningKind(enum.Enum):
    GENERIC = "generic"
    DEPRECATION = "deprecation"


@dataclass(frozen=True)
class MonitorConfig:
    """Settings for a DiagnosticsAggregator. Immutable once built."""

    log_warnings: bool = True
    track_slow_queries: bool = True
    slow_query_threshold: float = DEFAULT_SLOW_QUERY_THRESHOLD  # milliseconds
    deprecation_keywords: tuple[str, ...] = DEFAULT_DEPRECATION_KEYWORDS


@dataclass(frozen=True)
class WarningRecord:
    timestamp: datetime
    level: str
    code: int
    message: str
    query: str
    execution_time: float

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "query": self.query,
            "executionTime": self.execution_time,
        }


@dataclass(frozen=True)
class SlowQueryRecord:
    timestamp: datetime
    query: str
    execution_time: float

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "query": self.query,
            "executionTime": self.execution_time,
        }


@dataclass(frozen=True)
class MonitorStats:
    total_warnings: int = 0
    deprecation_warnings: int = 0
    slow_queries: int = 0
    avg_slow_query_time: float = 0.0

    def to_dict(self) -> dict:
        return {
            "totalWarnings": self.total_warnings,
            "deprecationWarnings": self.deprecation_warnings,
            "slowQueries": self.slow_queries,
            "avgSlowQueryTime": self.avg_slow_query_time,
        }


@dataclass
class SampleRow:
    row_id: object
    value: str
    char_length: int
    byte_length: int

    @property
    def multibyte(self) -> bool:
        return self.byte_length > self.char_length


@dataclass
class ColumnScanResult:
    table: str
    column: str
    total_rows: int
    trailing_space_count: int
    samples: list[SampleRow] = field(default_factory=list)
    collation: str | None = None

    @property
    def object_name(self) -> str:
        return f"{self.table}.{self.column}"


@dataclass
class ColumnScanFailure:
    """A column (or whole table, when column is None) that could not be scanned."""

    table: str
    column: str | None
    error: str

    @property
    def object_name(self) -> str:
        return f"{self.table}.{self.column}" if self.column else self.table


@dataclass
class ScanReport:
    schema: str
    host: str
    port: int
    timestamp: datetime
    results: list[ColumnScanResult] = field(default_factory=list)
    failures: list[ColumnScanFailure] = field(default_factory=list)
    server_version: str = ""
    tables_scanned: int = 0
    columns_scanned: int = 0
    cancelled: bool = False

    @property
    def total_affected_rows(self) -> int:
        return sum(r.trailing_space_count for r in self.results)

    @property
    def affected_columns(self) -> int:
        return len(self.results)

    @property
    def has_symptoms(self) -> bool:
        return bool(self.results)

    @property
    def clean(self) -> bool:
        return not self.results and not self.failures and not self.cancelled
