"""
Pattern Sanitizer - second, model-free enforcement of the no-literal-content rule.

The extraction instruction already forbids copy, brands, contact details and
numbers; this pass assumes the model ignored it. Every string field of a
RawPattern is inspected for:

- URLs and bare domains, email addresses, phone-like digit runs
- Prices, percentages and other multi-digit numbers
- Blocklisted brand names (word boundary, case-insensitive)
- Quoted strings, exclamation marks and ALL-CAPS phrases (signs of copied copy)

Enumerated fields with offending content are coerced to a vocabulary term
found in the text, else to the field default. Free-text values get
placeholders and a length cap. Each touched field is flagged "sanitized:<field>".
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from pydantic import BaseModel

from patternq.config import SANITIZER_GENERIC_MAX_CHARS, SANITIZER_MAX_FIELD_CHARS, SANITIZER_REDACTED_TEXT
from patternq.observability.logging import get_logger
from patternq.observability.telemetry import counter
from patternq.patterns.models import (
    BACKGROUND_TYPES,
    COLOR_SCHEMES,
    CONTRAST_LEVELS,
    CTA_STYLES,
    EMOTIONAL_TONES,
    FOCAL_POINT_POSITIONS,
    HEADLINE_FORMULAS,
    HOOK_TYPES,
    IMAGE_STYLES,
    LAYOUT_STRUCTURES,
    MOODS,
    PERSUASION_TECHNIQUES,
    PRODUCT_VISIBILITY,
    WHITESPACE_USAGE,
    RawPattern,
)
from patternq.utils.redaction import brand_blocklist, brand_regex, load_privacy_policy, scrub_literals

logger = get_logger(__name__)

FIELD_VOCABULARIES: dict[str, dict[str, tuple[str, ...]]] = {
    "layout": {
        "structure": LAYOUT_STRUCTURES,
        "whitespace_usage": WHITESPACE_USAGE,
        "focal_point_position": FOCAL_POINT_POSITIONS,
    },
    "color_psychology": {
        "dominant_mood": MOODS,
        "color_scheme": COLOR_SCHEMES,
        "contrast_level": CONTRAST_LEVELS,
        "emotional_tone": EMOTIONAL_TONES,
    },
    "hook_pattern": {
        "hook_type": HOOK_TYPES,
        "headline_formula": HEADLINE_FORMULAS,
        "cta_style": CTA_STYLES,
        "persuasion_technique": PERSUASION_TECHNIQUES,
    },
    "visual_elements": {
        "image_style": IMAGE_STYLES,
        "product_visibility": PRODUCT_VISIBILITY,
        "background_type": BACKGROUND_TYPES,
    },
}

BRAND_PLACEHOLDER = "[brand]"
TEXT_PLACEHOLDER = "[text]"

QUOTED_RE = re.compile(r"\"[^\"]*\"|“[^”]*”|‘[^’]*’|(?<!\w)'[^']+'(?!\w)")
# Two or more capitalized words, or one shouty word of 5+ letters
ALL_CAPS_RE = re.compile(r"\b[A-Z][A-Z'&-]+(?:\s+[A-Z][A-Z'&-]+)+\b|\b[A-Z]{5,}\b")
DESIGN_ACRONYMS = frozenset({"CTA", "UI", "UX", "3D", "CTA BUTTON"})


class PatternSanitizer:
    """
    Strip literal content from an extracted pattern.

    Args:
        brands: Override for the brand blocklist (defaults to the policy file,
            minus the words it allows as design vocabulary)
    """

    def __init__(self, brands: Sequence[str] | None = None):
        if brands is None:
            allowed = {a.lower() for a in load_privacy_policy()["sanitizer_allow"]}
            brands = [b for b in brand_blocklist() if b not in allowed]
        self._brand_re = brand_regex(tuple(b.lower() for b in brands))

    def sanitize(self, raw: RawPattern) -> RawPattern:
        """Return a new RawPattern with offending content removed and flagged."""
        flags = list(raw.flags)
        sections: dict[str, BaseModel] = {}

        for section_name, vocabularies in FIELD_VOCABULARIES.items():
            section: BaseModel = getattr(raw, section_name)
            updates = {}
            for field, vocabulary in vocabularies.items():
                value = getattr(section, field)
                cleaned = self._clean_enumerated(value, vocabulary, type(section).model_fields[field].default)
                if cleaned != value:
                    updates[field] = cleaned
                    flags.append(f"sanitized:{field}")
            sections[section_name] = section.model_copy(update=updates) if updates else section

        hierarchy = [self.clean_text(item) for item in raw.layout.visual_hierarchy]
        hierarchy = [item for item in hierarchy if item]
        if hierarchy != raw.layout.visual_hierarchy:
            flags.append("sanitized:visual_hierarchy")
            sections["layout"] = sections["layout"].model_copy(update={"visual_hierarchy": hierarchy})

        touched = len(flags) - len(raw.flags)
        if touched:
            counter("patterns.sanitizer.fields_sanitized", touched)
            logger.info("Sanitized %d pattern field(s)", touched)

        return RawPattern(
            layout=sections["layout"],
            color_psychology=sections["color_psychology"],
            hook_pattern=sections["hook_pattern"],
            visual_elements=sections["visual_elements"],
            confidence_score=raw.confidence_score,
            flags=flags,
        )

    def is_offending(self, text: str) -> bool:
        """True if text carries anything that looks like literal ad content."""
        if scrub_literals(text) != text:
            return True
        if self._brand_re is not None and self._brand_re.search(text):
            return True
        if "!" in text or QUOTED_RE.search(text):
            return True
        return any(m.group(0) not in DESIGN_ACRONYMS for m in ALL_CAPS_RE.finditer(text))

    def clean_text(self, text: str) -> str:
        """Replace offending substrings with placeholders and cap the length."""
        if not self.is_offending(text):
            return text[:SANITIZER_MAX_FIELD_CHARS].strip()

        cleaned = QUOTED_RE.sub(TEXT_PLACEHOLDER, text)
        cleaned = scrub_literals(cleaned)
        if self._brand_re is not None:
            cleaned = self._brand_re.sub(BRAND_PLACEHOLDER, cleaned)
        cleaned = ALL_CAPS_RE.sub(
            lambda m: m.group(0) if m.group(0) in DESIGN_ACRONYMS else TEXT_PLACEHOLDER, cleaned
        )
        cleaned = " ".join(cleaned.replace("!", "").split())

        # Long offending text is almost certainly copied copy
        if len(text) > SANITIZER_GENERIC_MAX_CHARS:
            return SANITIZER_REDACTED_TEXT
        return cleaned[:SANITIZER_MAX_FIELD_CHARS].strip()

    def _clean_enumerated(self, value: str, vocabulary: tuple[str, ...], default: str) -> str:
        if value.lower() in vocabulary:
            return value
        if not self.is_offending(value):
            return value[:SANITIZER_MAX_FIELD_CHARS].strip() or default

        lowered = value.lower()
        positions = [
            (m.start(), term)
            for term in vocabulary
            if (m := re.search(rf"(?<![a-z0-9-]){re.escape(term)}(?![a-z0-9-])", lowered))
        ]
        if positions:
            return min(positions)[1]
        return default
