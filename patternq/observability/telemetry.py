"""
Minimal telemetry helpers for the pattern pipeline.

These wrappers do not send metrics externally; they provide structured
logging and in-memory counters so tests can assert instrumentation
(e.g. that the extractor was never reached after a privacy rejection).
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger("patternq.telemetry")

_COUNTERS: dict[str, int] = {}
_LATENCIES: dict[str, list[float]] = {}
_LOCK = threading.Lock()


def _normalize_latency_name(metric_name: str) -> str:
    if metric_name.endswith("_ms"):
        return metric_name
    if metric_name.endswith(".latency"):
        return f"{metric_name}_ms"
    return metric_name


def log_event(event_name: str, **fields: Any) -> None:
    """
    Structured log event. Caller must ensure image content and names are redacted.

    Side Effects:
        - Writes to logger (info level)
    """
    logger.info("event=%s %s", event_name, fields)


def counter(name: str, increment: int = 1) -> int:
    """
    Increment an in-memory counter and emit a debug log.

    Side Effects:
        - Modifies _COUNTERS dict (in-memory state)
        - Writes to logger (debug level)
    """
    with _LOCK:
        value = _COUNTERS.get(name, 0) + increment
        _COUNTERS[name] = value
    logger.debug("counter=%s value=%s", name, value)
    return value


def get_counter(name: str) -> int:
    """Current value of a counter (0 if never incremented)."""
    return _COUNTERS.get(name, 0)


def reset_counters() -> None:
    """
    Clear all counters (useful for tests).

    Side Effects:
        - Clears _COUNTERS dict (in-memory state)
    """
    with _LOCK:
        _COUNTERS.clear()


@contextlib.contextmanager
def time_block(metric_name: str) -> Iterator[None]:
    """
    Context manager for timing code blocks.
    Records latency for P95 calculation.

    Side Effects:
        - Appends to _LATENCIES dict (in-memory state)
        - Writes to logger (debug level) with timing
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        normalized = _normalize_latency_name(metric_name)
        logger.debug("timing=%s seconds=%.6f", normalized, elapsed)

        with _LOCK:
            _LATENCIES.setdefault(normalized, []).append(elapsed)


def get_p95(metric_name: str) -> float:
    """
    Calculate P95 latency for a given metric.
    Returns 0.0 if no samples recorded.
    """
    normalized = _normalize_latency_name(metric_name)
    samples = _LATENCIES.get(normalized, [])
    if not samples:
        return 0.0

    sorted_samples = sorted(samples)
    idx = int(len(sorted_samples) * 0.95)
    return sorted_samples[idx] if idx < len(sorted_samples) else sorted_samples[-1]


def reset_latencies() -> None:
    """
    Clear all recorded latencies (useful for tests).

    Side Effects:
        - Clears _LATENCIES dict (in-memory state)
    """
    with _LOCK:
        _LATENCIES.clear()
