"""Unit tests for the shared vision LLM call (SDK stubbed, no network)."""

import time

import pytest
from tenacity import wait_none

from patternq.config import LLM_MAX_RETRIES
from patternq.llm import retry as llm_retry
from patternq.llm.vision import GeminiVisionModel, VisionModel
from patternq.observability.telemetry import get_counter


@pytest.fixture
def fake_sdk(monkeypatch):
    """Replace model lookup and image packing; disable backoff sleeps."""
    monkeypatch.setattr(llm_retry, "get_gemini_model", lambda name: f"model:{name}")
    monkeypatch.setattr(llm_retry, "build_image_part", lambda data, mime_type: {"mime_type": mime_type})
    monkeypatch.setattr(llm_retry.call_vision_llm.retry, "wait", wait_none())


def _scripted_generate(*outcomes):
    calls = []

    def _generate(model, contents, generation_config):
        calls.append({"model": model, "contents": contents, "config": generation_config})
        outcome = outcomes[min(len(calls), len(outcomes)) - 1]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return _generate, calls


def test_returns_text(fake_sdk, monkeypatch):
    generate, calls = _scripted_generate('{"ok": true}')
    monkeypatch.setattr(llm_retry, "_generate", generate)

    text = llm_retry.call_vision_llm("instr", b"img", "image/png", model_name="m", temperature=0.2)

    assert text == '{"ok": true}'
    assert len(calls) == 1
    assert calls[0]["model"] == "model:m"
    assert calls[0]["contents"][0] == "instr"
    assert calls[0]["config"]["temperature"] == 0.2
    assert calls[0]["config"]["response_mime_type"] == "application/json"


def test_retries_transient_errors_then_succeeds(fake_sdk, monkeypatch):
    generate, calls = _scripted_generate(ConnectionError("503"), TimeoutError("slow"), "answer")
    monkeypatch.setattr(llm_retry, "_generate", generate)

    assert llm_retry.call_vision_llm("i", b"x", "image/png", model_name="m", temperature=0.1) == "answer"
    assert len(calls) == 3


def test_gives_up_after_max_attempts(fake_sdk, monkeypatch):
    generate, calls = _scripted_generate(OSError("429"))
    monkeypatch.setattr(llm_retry, "_generate", generate)

    with pytest.raises(OSError):
        llm_retry.call_vision_llm("i", b"x", "image/png", model_name="m", temperature=0.1)
    assert len(calls) == LLM_MAX_RETRIES


def test_does_not_retry_other_errors(fake_sdk, monkeypatch):
    generate, calls = _scripted_generate(ValueError("bad request"))
    monkeypatch.setattr(llm_retry, "_generate", generate)

    with pytest.raises(ValueError):
        llm_retry.call_vision_llm("i", b"x", "image/png", model_name="m", temperature=0.1)
    assert len(calls) == 1


def test_local_timeout(fake_sdk, monkeypatch):
    monkeypatch.setattr(llm_retry, "LLM_TIMEOUT_SECONDS", 0.05)

    def _slow(model, contents, generation_config):
        time.sleep(0.3)
        return "late"

    monkeypatch.setattr(llm_retry, "_generate", _slow)

    with pytest.raises(TimeoutError):
        llm_retry.call_vision_llm("i", b"x", "image/png", model_name="m", temperature=0.1, counter_prefix="scan")
    assert get_counter("patterns.scan.timeout") == LLM_MAX_RETRIES


def test_gemini_vision_model_delegates(monkeypatch):
    seen = {}

    def _call(instruction, data, mime_type, model_name, temperature, counter_prefix):
        seen.update(model_name=model_name, temperature=temperature, counter_prefix=counter_prefix)
        return "ok"

    monkeypatch.setattr("patternq.llm.vision.call_vision_llm", _call)
    model = GeminiVisionModel("gemini-test")

    assert isinstance(model, VisionModel)
    assert model.generate("i", b"x", "image/png", temperature=0.3, operation="extraction") == "ok"
    assert seen == {"model_name": "gemini-test", "temperature": 0.3, "counter_prefix": "extraction"}
