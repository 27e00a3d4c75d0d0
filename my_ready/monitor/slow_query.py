"""Slow query threshold decision."""

from __future__ import annotations

from my_ready.models import DEFAULT_SLOW_QUERY_THRESHOLD, SlowQueryRecord, utcnow


def is_slow(duration: float, threshold: float | None = None) -> bool:
    if threshold is None:
        threshold = DEFAULT_SLOW_QUERY_THRESHOLD
    return duration > threshold


def maybe_record(
    query: str, duration: float, threshold: float | None = None
) -> SlowQueryRecord | None:
    """Return a SlowQueryRecord when `duration` is strictly above `threshold`.

    A duration equal to the threshold is not slow. A threshold of None uses
    the default of 1000 ms.
    """
    if not is_slow(duration, threshold):
        return None
    return SlowQueryRecord(timestamp=utcnow(), query=query, execution_time=duration)
