"""
Pytest configuration for PatternQ tests

Provides a temporary SQLite database per test, a deterministic stand-in for
the vision model, and builders for canned model answers and patterns.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from patternq.infrastructure.database import init_database, reset_pool
from patternq.observability.telemetry import reset_counters, reset_latencies
from patternq.patterns.models import (
    ColorPsychology,
    HookPattern,
    LayoutPattern,
    Pattern,
    VisualElements,
)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class StubVisionModel:
    """
    Deterministic VisionModel for tests.

    Each call consumes the next scripted answer. An answer that is an
    exception instance is raised instead of returned; a callable is invoked
    with the call kwargs. The last answer repeats once the script runs out.
    """

    def __init__(self, *answers: Any):
        self.answers = list(answers)
        self.calls: list[dict[str, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def generate(self, instruction, data, mime_type, *, temperature, operation):
        call = {
            "instruction": instruction,
            "data": data,
            "mime_type": mime_type,
            "temperature": temperature,
            "operation": operation,
        }
        self.calls.append(call)
        index = min(len(self.calls), len(self.answers)) - 1
        answer = self.answers[index]
        if isinstance(answer, BaseException):
            raise answer
        if callable(answer):
            return answer(**call)
        return answer


def _scan_answer(**overrides: Any) -> str:
    """Privacy scan JSON for a clean image, with overrides."""
    payload = {
        "text_density": 5,
        "detected_text": [],
        "has_logos": False,
        "logo_descriptions": [],
        "has_faces": False,
        "face_count": 0,
        "has_contact_info": False,
    }
    payload.update(overrides)
    return json.dumps(payload)


def _extraction_payload(**section_overrides: Any) -> dict[str, Any]:
    """Well-formed extraction answer as a dict. Overrides replace/extend sections."""
    payload: dict[str, Any] = {
        "layout": {
            "structure": "hero-top",
            "visual_hierarchy": ["headline", "image", "cta"],
            "whitespace_usage": "generous",
            "focal_point_position": "upper-third",
        },
        "color_psychology": {
            "dominant_mood": "trust",
            "color_scheme": "complementary",
            "contrast_level": "high",
            "emotional_tone": "warm",
        },
        "hook_pattern": {
            "hook_type": "question",
            "headline_formula": "problem-solution",
            "cta_style": "direct",
            "persuasion_technique": "social-proof",
        },
        "visual_elements": {
            "image_style": "photography",
            "human_presence": False,
            "product_visibility": "prominent",
            "iconography": True,
            "background_type": "gradient",
        },
        "confidence_score": 0.85,
    }
    for key, value in section_overrides.items():
        if isinstance(value, dict) and isinstance(payload.get(key), dict):
            payload[key] = {**payload[key], **value}
        else:
            payload[key] = value
    return payload


def _extraction_answer(**section_overrides: Any) -> str:
    return json.dumps(_extraction_payload(**section_overrides))


@pytest.fixture(autouse=True)
def clean_telemetry():
    """Counters are process-wide; start every test from zero."""
    reset_counters()
    reset_latencies()
    yield
    reset_counters()
    reset_latencies()


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point PatternQ at a fresh SQLite database for the duration of a test."""
    db_path = tmp_path / "patternq-test.db"
    monkeypatch.setenv("PATTERNQ_DB_PATH", str(db_path))
    reset_pool()
    init_database()
    yield db_path
    reset_pool()


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def make_pattern() -> Callable[..., Pattern]:
    """Factory for in-memory Patterns (no database)."""
    counter = {"n": 0}

    def _make(**overrides: Any) -> Pattern:
        counter["n"] += 1
        fields: dict[str, Any] = {
            "id": f"pattern-{counter['n']}",
            "owner_id": "owner-1",
            "name": f"Pattern {counter['n']}",
            "category": "promotional",
            "platform": "facebook",
            "industry": None,
            "engagement_tier": None,
            "layout": LayoutPattern(structure="hero-top", visual_hierarchy=["headline", "image", "cta"]),
            "color_psychology": ColorPsychology(dominant_mood="trust"),
            "hook_pattern": HookPattern(hook_type="question"),
            "visual_elements": VisualElements(),
            "confidence_score": 0.8,
            "source_hash": f"{counter['n']:064x}",
        }
        fields.update(overrides)
        return Pattern(**fields)

    return _make


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def stub_model() -> type[StubVisionModel]:
    """StubVisionModel class; call it with the scripted answers."""
    return StubVisionModel


@pytest.fixture
def scan_answer() -> Callable[..., str]:
    return _scan_answer


@pytest.fixture
def extraction_answer() -> Callable[..., str]:
    return _extraction_answer


@pytest.fixture
def extraction_payload() -> Callable[..., dict[str, Any]]:
    return _extraction_payload
