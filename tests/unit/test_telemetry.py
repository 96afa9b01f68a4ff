"""Tests for in-memory counters and latency sampling."""

from patternq.observability.telemetry import counter, get_counter, get_p95, time_block


def test_counter_accumulates():
    counter("patterns.upload.started")
    counter("patterns.sanitizer.fields_sanitized", 3)

    assert get_counter("patterns.upload.started") == 1
    assert get_counter("patterns.sanitizer.fields_sanitized") == 3
    assert get_counter("never.incremented") == 0


def test_time_block_records_latency():
    assert get_p95("patterns.privacy.latency") == 0.0

    for _ in range(3):
        with time_block("patterns.privacy.latency"):
            pass

    assert get_p95("patterns.privacy.latency") >= 0.0
    assert get_p95("patterns.privacy.latency_ms") == get_p95("patterns.privacy.latency")


def test_time_block_records_on_error():
    try:
        with time_block("patterns.extraction.latency"):
            raise RuntimeError("model down")
    except RuntimeError:
        pass

    assert get_p95("patterns.extraction.latency") > 0.0
