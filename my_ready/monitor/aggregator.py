"""Thread-safe accumulation of query warnings and slow queries."""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterable, Mapping
from typing import Any

from my_ready.models import (
    MonitorConfig,
    MonitorStats,
    SlowQueryRecord,
    WarningRecord,
    utcnow,
)
from my_ready.monitor.classifier import WarningClassifier
from my_ready.monitor.slow_query import maybe_record

logger = logging.getLogger(__name__)


def parse_raw_warning(raw: Any) -> tuple[str, int, str]:
    """Normalize one SHOW WARNINGS row into (level, code, message).

    Accepts a mapping with Level/Code/Message keys (dictionary cursors) or a
    (level, code, message) sequence (tuple cursors, fetchwarnings()).
    """
    if isinstance(raw, Mapping):
        level, code, message = raw["Level"], raw["Code"], raw["Message"]
    else:
        level, code, message = raw
    if isinstance(level, (bytes, bytearray)):
        level = level.decode("utf-8", errors="replace")
    if isinstance(message, (bytes, bytearray)):
        message = message.decode("utf-8", errors="replace")
    return str(level), int(code), str(message)


class DiagnosticsAggregator:
    """Owns the warning, deprecation and slow query logs for one process.

    Build one at startup and hand it to every interceptor. All operations
    take the same lock, so a reset() never interleaves with a record call
    and readers never see a half-cleared state.
    """

    def __init__(self, config: MonitorConfig | None = None):
        self.config = config or MonitorConfig()
        self.classifier = WarningClassifier(self.config.deprecation_keywords)
        self._lock = threading.Lock()
        self._warnings: list[WarningRecord] = []
        self._deprecations: list[WarningRecord] = []
        self._slow_queries: list[SlowQueryRecord] = []

    def record_warnings(
        self, query: str, duration_ms: float, warnings: Iterable[Any] | None
    ) -> None:
        if not warnings:
            return

        classified: list[tuple[WarningRecord, bool]] = []
        for raw in warnings:
            try:
                level, code, message = parse_raw_warning(raw)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed warning row %r: %s", raw, exc)
                continue
            record = WarningRecord(
                timestamp=utcnow(),
                level=level,
                code=code,
                message=message,
                query=query,
                execution_time=duration_ms,
            )
            classified.append((record, self.classifier.is_deprecation(message)))

        # One query's warnings land together.
        with self._lock:
            for record, deprecation in classified:
                self._warnings.append(record)
                if deprecation:
                    self._deprecations.append(record)

        if not self.config.log_warnings:
            return
        for record, deprecation in classified:
            log = logger.warning if deprecation else logger.info
            log(
                "MySQL %swarning: [%s %s] %s",
                "deprecation " if deprecation else "",
                record.level,
                record.code,
                record.message,
                extra={"mysql_warning": record.to_dict()},
            )

    def record_duration(self, query: str, duration_ms: float) -> None:
        if not self.config.track_slow_queries:
            return
        threshold = self.config.slow_query_threshold
        record = maybe_record(query, duration_ms, threshold)
        if record is None:
            return
        with self._lock:
            self._slow_queries.append(record)

        if self.config.log_warnings:
            logger.warning(
                "Slow query detected: %.1f ms (threshold %.1f ms): %s",
                duration_ms,
                threshold,
                query[:200],
                extra={"slow_query": record.to_dict(), "threshold": threshold},
            )

    def warnings(self) -> list[WarningRecord]:
        with self._lock:
            return list(self._warnings)

    def deprecation_warnings(self) -> list[WarningRecord]:
        with self._lock:
            return list(self._deprecations)

    def slow_queries(self) -> list[SlowQueryRecord]:
        with self._lock:
            return list(self._slow_queries)

    def stats(self) -> MonitorStats:
        with self._lock:
            return self._stats_locked()

    def _stats_locked(self) -> MonitorStats:
        slow = self._slow_queries
        avg = sum(q.execution_time for q in slow) / len(slow) if slow else 0.0
        return MonitorStats(
            total_warnings=len(self._warnings),
            deprecation_warnings=len(self._deprecations),
            slow_queries=len(slow),
            avg_slow_query_time=avg,
        )

    def export(self) -> str:
        """Serialize a consistent snapshot of all collected diagnostics as JSON."""
        with self._lock:
            data = {
                "timestamp": utcnow().isoformat(),
                "stats": self._stats_locked().to_dict(),
                "warnings": [w.to_dict() for w in self._warnings],
                "deprecationWarnings": [w.to_dict() for w in self._deprecations],
                "slowQueries": [q.to_dict() for q in self._slow_queries],
            }
        return json.dumps(data, indent=2, default=str)

    def reset(self) -> None:
        with self._lock:
            self._warnings = []
            self._deprecations = []
            self._slow_queries = []

    def __repr__(self):
        s = self.stats()
        return (
            f"<DiagnosticsAggregator warnings={s.total_warnings} "
            f"deprecations={s.deprecation_warnings} slow={s.slow_queries}>"
        )
