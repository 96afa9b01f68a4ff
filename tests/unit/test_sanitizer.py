"""Unit tests for the model-free pattern sanitizer."""

import pytest

from patternq.config import SANITIZER_MAX_FIELD_CHARS, SANITIZER_REDACTED_TEXT
from patternq.patterns.models import (
    ColorPsychology,
    HookPattern,
    LayoutPattern,
    RawPattern,
    VisualElements,
)
from patternq.patterns.sanitizer import PatternSanitizer


def _raw(**overrides) -> RawPattern:
    fields = {
        "layout": LayoutPattern(
            structure="split-50-50",
            visual_hierarchy=["headline", "image", "CTA"],
            whitespace_usage="generous",
            focal_point_position="golden-ratio",
        ),
        "color_psychology": ColorPsychology(dominant_mood="trust", emotional_tone="warm"),
        "hook_pattern": HookPattern(hook_type="question", headline_formula="how-to"),
        "visual_elements": VisualElements(image_style="3d-render"),
        "confidence_score": 0.8,
        "flags": ["off_vocabulary:color_scheme"],
    }
    fields.update(overrides)
    return RawPattern(**fields)


@pytest.fixture
def sanitizer():
    return PatternSanitizer()


class TestCleanPatterns:
    def test_clean_pattern_unchanged(self, sanitizer):
        raw = _raw()
        result = sanitizer.sanitize(raw)
        assert result == raw
        assert result is not raw

    def test_keeps_existing_flags_and_confidence(self, sanitizer):
        raw = _raw(hook_pattern=HookPattern(hook_type="Visit www.acme.com"))
        result = sanitizer.sanitize(raw)
        assert result.flags[0] == "off_vocabulary:color_scheme"
        assert result.confidence_score == 0.8

    def test_design_vocabulary_words_are_not_brands(self, sanitizer):
        raw = _raw(layout=LayoutPattern(structure="square grid", visual_hierarchy=["target audience cue"]))
        result = sanitizer.sanitize(raw)
        assert result.layout.structure == "square grid"
        assert result.layout.visual_hierarchy == ["target audience cue"]


class TestEnumeratedFields:
    def test_url_falls_back_to_default(self, sanitizer):
        result = sanitizer.sanitize(_raw(hook_pattern=HookPattern(hook_type="Visit www.acme.com")))
        assert result.hook_pattern.hook_type == "benefit"
        assert "sanitized:hook_type" in result.flags

    def test_short_link_on_any_tld(self, sanitizer):
        result = sanitizer.sanitize(_raw(hook_pattern=HookPattern(hook_type="visit bit.ly/deal")))
        assert result.hook_pattern.hook_type == "benefit"
        assert "sanitized:hook_type" in result.flags

    def test_coerced_to_vocabulary_term_in_text(self, sanitizer):
        raw = _raw(color_psychology=ColorPsychology(emotional_tone="bold like NIKE"))
        result = sanitizer.sanitize(raw)
        assert result.color_psychology.emotional_tone == "bold"
        assert "sanitized:emotional_tone" in result.flags

    def test_first_vocabulary_term_wins(self, sanitizer):
        raw = _raw(hook_pattern=HookPattern(hook_type="fear then question: 'Still paying 40%?'"))
        assert sanitizer.sanitize(raw).hook_pattern.hook_type == "fear"

    def test_closed_field_with_price(self, sanitizer):
        raw = _raw(visual_elements=VisualElements(product_visibility="prominent at $19.99"))
        assert sanitizer.sanitize(raw).visual_elements.product_visibility == "prominent"


class TestFreeText:
    def test_placeholders_in_hierarchy(self, sanitizer):
        raw = _raw(
            layout=LayoutPattern(visual_hierarchy=["headline", "Call 555-123-4567", "nike swoosh"])
        )
        result = sanitizer.sanitize(raw)
        assert result.layout.visual_hierarchy == ["headline", "Call [phone]", "[brand] swoosh"]
        assert "sanitized:visual_hierarchy" in result.flags

    @pytest.mark.parametrize(
        "item, cleaned",
        [
            ("$49 offer", "[number] offer"),
            ("50% off badge", "[number] off badge"),
            ("headline 'Buy now'", "headline [text]"),
            ("act fast!", "act fast"),
            ("BIG SUMMER SALE banner", "[text] banner"),
            ("hello@acme.io footer", "[email] footer"),
            ("bit.ly/spring-deal", "[link]"),
            ("shopnow.xyz badge", "[link] badge"),
            ("acme.fr style", "[link] style"),
            ("@acmeshoes handle", "[handle] handle"),
            ("3x faster claim", "[number] faster claim"),
            ("5 stars rating", "[number] rating"),
        ],
    )
    def test_literal_content(self, sanitizer, item, cleaned):
        assert sanitizer.clean_text(item) == cleaned

    def test_design_acronyms_kept(self, sanitizer):
        assert not sanitizer.is_offending("CTA")
        assert sanitizer.clean_text("CTA") == "CTA"

    def test_long_copy_is_redacted(self, sanitizer):
        copy = "Get the NEW summer collection today and save big on every order you place!"
        assert sanitizer.clean_text(copy) == SANITIZER_REDACTED_TEXT

    def test_length_cap(self, sanitizer):
        assert len(sanitizer.clean_text("layered " * 30)) <= SANITIZER_MAX_FIELD_CHARS


class TestBrandOverride:
    def test_custom_blocklist(self):
        sanitizer = PatternSanitizer(brands=["acme"])
        raw = _raw(layout=LayoutPattern(visual_hierarchy=["Acme rocket", "nike shoe"]))
        assert sanitizer.sanitize(raw).layout.visual_hierarchy == ["[brand] rocket", "nike shoe"]
