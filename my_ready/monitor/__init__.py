"""Query monitoring: warning classification, slow queries and interception."""

from my_ready.monitor.aggregator import DiagnosticsAggregator
from my_ready.monitor.classifier import KEYWORD_SETS, WarningClassifier, classify
from my_ready.monitor.interceptor import (
    connection_warning_fetcher,
    instrument,
    instrument_cursor,
)
from my_ready.monitor.slow_query import maybe_record

__all__ = [
    "KEYWORD_SETS",
    "DiagnosticsAggregator",
    "WarningClassifier",
    "classify",
    "connection_warning_fetcher",
    "instrument",
    "instrument_cursor",
    "maybe_record",
]
