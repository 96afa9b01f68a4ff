"""Unit tests for the privacy gate (model stubbed)."""

import pytest

from patternq.config import PRIVACY_SCAN_TEMPERATURE
from patternq.observability.telemetry import get_counter
from patternq.patterns.privacy_gate import (
    SCAN_FAILED_REASON,
    SCAN_UNREADABLE_REASON,
    PrivacyGate,
    PrivacyObservation,
)


@pytest.fixture
def gate_for(stub_model):
    def _gate(*answers, **kwargs):
        model = stub_model(*answers)
        return PrivacyGate(model=model, **kwargs), model

    return _gate


class TestSafeImages:
    def test_clean_scan_is_safe(self, gate_for, scan_answer, png_bytes):
        gate, model = gate_for(scan_answer())
        result = gate.scan(png_bytes, "image/png")

        assert result.is_safe_to_process
        assert result.rejection_reason is None
        assert result.detected_brands == []
        assert model.call_count == 1
        assert model.calls[0]["operation"] == "privacy_scan"
        assert model.calls[0]["temperature"] == PRIVACY_SCAN_TEMPERATURE
        assert model.calls[0]["data"] == png_bytes
        assert get_counter("patterns.privacy.safe") == 1

    def test_density_at_threshold_is_allowed(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(text_density=15))
        assert gate.scan(png_bytes, "image/png").is_safe_to_process

    def test_some_text_adds_warning(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(detected_text=["summer"]))
        result = gate.scan(png_bytes, "image/png")
        assert result.is_safe_to_process
        assert len(result.warnings) == 1

    def test_code_fenced_answer(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(f"```json\n{scan_answer()}\n```")
        assert gate.scan(png_bytes, "image/png").is_safe_to_process


class TestRejections:
    def test_faces(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(has_faces=True, face_count=2))
        result = gate.scan(png_bytes, "image/png")
        assert not result.is_safe_to_process
        assert result.has_faces
        assert result.rejection_reason == "Image contains human faces - cannot process for privacy reasons"

    def test_text_density(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(text_density=40))
        result = gate.scan(png_bytes, "image/png")
        assert not result.is_safe_to_process
        assert result.rejection_reason == (
            "Image contains too much text (40% coverage) - patterns may leak copyrighted copy"
        )

    def test_brands_in_detected_text(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(detected_text=["Just do it", "NIKE"]))
        result = gate.scan(png_bytes, "image/png")
        assert not result.is_safe_to_process
        assert result.detected_brands == ["nike"]
        assert result.rejection_reason == (
            "Detected brand names: nike - cannot extract patterns from competitor ads"
        )

    def test_brands_in_logo_descriptions(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(logo_descriptions=["red Coca-Cola script"]))
        result = gate.scan(png_bytes, "image/png")
        assert result.detected_brands == ["coca-cola"]
        assert not result.is_safe_to_process

    def test_logos(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(has_logos=True, logo_descriptions=["abstract swirl mark"]))
        result = gate.scan(png_bytes, "image/png")
        assert not result.is_safe_to_process
        assert "logos" in result.rejection_reason

    def test_logos_allowed_when_disabled(self, gate_for, scan_answer, png_bytes, monkeypatch):
        monkeypatch.setattr("patternq.patterns.privacy_gate.PRIVACY_REJECT_LOGOS", False)
        gate, _ = gate_for(scan_answer(has_logos=True))
        assert gate.scan(png_bytes, "image/png").is_safe_to_process

    def test_contact_info_reported_by_model(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(has_contact_info=True))
        result = gate.scan(png_bytes, "image/png")
        assert not result.is_safe_to_process
        assert result.has_contact_info

    def test_contact_info_found_in_text(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(detected_text=["www.example.com"]))
        result = gate.scan(png_bytes, "image/png")
        assert not result.is_safe_to_process
        assert "contact information" in result.rejection_reason

    def test_first_rule_wins(self, gate_for, scan_answer, png_bytes):
        """Faces are checked before brands and density."""
        gate, _ = gate_for(scan_answer(has_faces=True, text_density=80, detected_text=["nike"]))
        result = gate.scan(png_bytes, "image/png")
        assert result.rejection_reason.startswith("Image contains human faces")
        assert result.detected_brands == ["nike"]

    def test_rejection_is_counted(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(has_faces=True))
        gate.scan(png_bytes, "image/png")
        assert get_counter("patterns.privacy.rejected") == 1


class TestFailClosed:
    def test_transport_error(self, gate_for, png_bytes):
        gate, _ = gate_for(ConnectionError("service unavailable"))
        result = gate.scan(png_bytes, "image/png")
        assert not result.is_safe_to_process
        assert result.rejection_reason == SCAN_FAILED_REASON
        assert get_counter("patterns.privacy.scan_error") == 1

    def test_unexpected_model_error(self, gate_for, png_bytes):
        gate, _ = gate_for(RuntimeError("sdk blew up"))
        assert gate.scan(png_bytes, "image/png").rejection_reason == SCAN_FAILED_REASON

    def test_no_json(self, gate_for, png_bytes):
        gate, _ = gate_for("I can't help with that image.")
        result = gate.scan(png_bytes, "image/png")
        assert not result.is_safe_to_process
        assert result.rejection_reason == SCAN_UNREADABLE_REASON

    def test_wrong_types(self, gate_for, png_bytes):
        gate, _ = gate_for('{"text_density": "lots", "has_faces": false}')
        assert gate.scan(png_bytes, "image/png").rejection_reason == SCAN_UNREADABLE_REASON


class TestExtensibility:
    def test_camel_case_answer(self, gate_for, png_bytes):
        gate, _ = gate_for('{"textDensity": 3, "hasFaces": true, "faceCount": 1}')
        result = gate.scan(png_bytes, "image/png")
        assert result.has_faces
        assert not result.is_safe_to_process

    def test_extra_rule_runs_after_builtins(self, gate_for, scan_answer, png_bytes):
        def reject_any_text(obs: PrivacyObservation):
            return "No text allowed" if obs.detected_text else None

        gate, _ = gate_for(scan_answer(detected_text=["hello"]), extra_rules=[reject_any_text])
        result = gate.scan(png_bytes, "image/png")
        assert result.rejection_reason == "No text allowed"

    def test_brand_override(self, gate_for, scan_answer, png_bytes):
        gate, _ = gate_for(scan_answer(detected_text=["ACME mega sale"]), brands=["Acme"])
        result = gate.scan(png_bytes, "image/png")
        assert result.detected_brands == ["acme"]
        assert not result.is_safe_to_process

    def test_evaluate_without_model(self, stub_model):
        gate = PrivacyGate(model=stub_model("{}"))
        result = gate.evaluate(PrivacyObservation(text_density=99))
        assert not result.is_safe_to_process
        assert result.text_density == 99
