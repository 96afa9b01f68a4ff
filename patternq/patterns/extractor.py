"""
Pattern Extractor - turns a privacy-cleared ad image into an abstract pattern.

One vision model call with a fixed instruction that forbids literal copy,
brand or product names, specific numbers and descriptions of people. The
answer is validated against a strict schema:

- No JSON object, or a missing section/field -> ExtractionMalformedError
- Transport failure after retries           -> ExtractionTransportError
- confidence_score outside [0, 1]           -> clamped, flagged "confidence_clamped"
- Off-vocabulary enumerated value           -> kept, flagged "off_vocabulary:<field>",
                                               confidence lowered by EXTRACTION_OFF_VOCAB_PENALTY

The result is NOT yet safe to store; PatternSanitizer runs next.
"""

from __future__ import annotations

import math
import re
from typing import Any

from pydantic import BaseModel, ValidationError

from patternq.config import (
    EXTRACTION_LOG_EXCERPT_CHARS,
    EXTRACTION_OFF_VOCAB_PENALTY,
    EXTRACTION_TEMPERATURE,
    GEMINI_EXTRACTION_MODEL,
)
from patternq.llm.json_response import excerpt, first_json_object
from patternq.llm.retry import TRANSIENT_ERRORS
from patternq.llm.vision import GeminiVisionModel, VisionModel
from patternq.observability.logging import get_logger
from patternq.observability.telemetry import counter, log_event, time_block
from patternq.patterns.errors import ExtractionMalformedError, ExtractionTransportError
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
    ColorPsychology,
    HookPattern,
    LayoutPattern,
    RawPattern,
    VisualElements,
)

logger = get_logger(__name__)

# (section, field) -> closed vocabulary
CLOSED_VOCABULARIES: dict[tuple[str, str], tuple[str, ...]] = {
    ("layout", "whitespace_usage"): WHITESPACE_USAGE,
    ("color_psychology", "color_scheme"): COLOR_SCHEMES,
    ("color_psychology", "contrast_level"): CONTRAST_LEVELS,
    ("hook_pattern", "cta_style"): CTA_STYLES,
    ("visual_elements", "image_style"): IMAGE_STYLES,
    ("visual_elements", "product_visibility"): PRODUCT_VISIBILITY,
    ("visual_elements", "background_type"): BACKGROUND_TYPES,
}


def _options(values: tuple[str, ...]) -> str:
    return "|".join(values)


EXTRACTION_INSTRUCTION = f"""Analyze this advertisement image and extract ABSTRACT PATTERNS only.

CRITICAL INSTRUCTIONS - You must follow these rules:
1. DO NOT extract or describe any actual text, headlines, or copy
2. DO NOT mention any brand names, company names, or product names
3. DO NOT describe specific products, logos, or trademarks
4. DO NOT include contact information, URLs, or specific numbers/statistics
5. DO NOT describe faces or identifiable people

Instead, extract ONLY abstract design and psychological patterns.

Return ONLY a JSON object with this exact structure:
{{
  "layout": {{
    "structure": "{_options(LAYOUT_STRUCTURES)}",
    "visual_hierarchy": ["up to 3 abstract element types in reading order, e.g. headline, image, cta"],
    "whitespace_usage": "{_options(WHITESPACE_USAGE)}",
    "focal_point_position": "{_options(FOCAL_POINT_POSITIONS)}"
  }},
  "color_psychology": {{
    "dominant_mood": "{_options(MOODS)}",
    "color_scheme": "{_options(COLOR_SCHEMES)}",
    "contrast_level": "{_options(CONTRAST_LEVELS)}",
    "emotional_tone": "{_options(EMOTIONAL_TONES)}"
  }},
  "hook_pattern": {{
    "hook_type": "{_options(HOOK_TYPES)}",
    "headline_formula": "{_options(HEADLINE_FORMULAS)}",
    "cta_style": "{_options(CTA_STYLES)}",
    "persuasion_technique": "{_options(PERSUASION_TECHNIQUES)}"
  }},
  "visual_elements": {{
    "image_style": "{_options(IMAGE_STYLES)}",
    "human_presence": true or false,
    "product_visibility": "{_options(PRODUCT_VISIBILITY)}",
    "iconography": true or false,
    "background_type": "{_options(BACKGROUND_TYPES)}"
  }},
  "confidence_score": number from 0.0 to 1.0
}}

Remember: Extract PATTERNS, not CONTENT. Focus on the "how" and "why", not the "what"."""


# ---------------------------------------------------------------------------
# Response schema (every field required)
# ---------------------------------------------------------------------------


class _LayoutSchema(BaseModel):
    structure: str
    visual_hierarchy: list[str]
    whitespace_usage: str
    focal_point_position: str


class _ColorSchema(BaseModel):
    dominant_mood: str
    color_scheme: str
    contrast_level: str
    emotional_tone: str


class _HookSchema(BaseModel):
    hook_type: str
    headline_formula: str
    cta_style: str
    persuasion_technique: str


class _VisualSchema(BaseModel):
    image_style: str
    human_presence: bool
    product_visibility: str
    iconography: bool
    background_type: str


class ExtractionSchema(BaseModel):
    """Schema for vision model response validation."""

    layout: _LayoutSchema
    color_psychology: _ColorSchema
    hook_pattern: _HookSchema
    visual_elements: _VisualSchema
    confidence_score: float


_SECTION_ALIASES = {
    "layout_pattern": "layout",
    "hook_patterns": "hook_pattern",
    "color": "color_psychology",
    "visuals": "visual_elements",
}

_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_RE.sub(r"_\1", key).lower()


def _normalize_keys(data: Any) -> Any:
    if isinstance(data, dict):
        return {_snake(str(k)): _normalize_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_normalize_keys(item) for item in data]
    return data


class PatternExtractor:
    """
    Vision-model pattern extractor.

    Args:
        model: VisionModel used for extraction (defaults to Gemini Pro)
    """

    def __init__(self, model: VisionModel | None = None):
        self.model = model if model is not None else GeminiVisionModel(GEMINI_EXTRACTION_MODEL)

    def extract(self, data: bytes, mime_type: str) -> RawPattern:
        """
        Extract an abstract pattern from image bytes.

        Raises:
            ExtractionTransportError: Model unreachable after retries
            ExtractionMalformedError: Answer unusable (no JSON, missing fields)

        Side Effects:
            - One VisionModel call (retried on transport errors)
            - Increments patterns.extraction.* counters
        """
        counter("patterns.extraction.call")

        try:
            with time_block("patterns.extraction.latency"):
                response_text = self.model.generate(
                    EXTRACTION_INSTRUCTION,
                    data,
                    mime_type,
                    temperature=EXTRACTION_TEMPERATURE,
                    operation="extraction",
                )
        except TRANSIENT_ERRORS as e:
            counter("patterns.extraction.transport_error")
            logger.error("Pattern extraction call failed after retries: %s", e)
            raise ExtractionTransportError(f"Pattern extraction unavailable: {e}") from e

        raw = self.parse_response(response_text)

        counter("patterns.extraction.success")
        log_event(
            "patterns.extraction.result",
            confidence=raw.confidence_score,
            flag_count=len(raw.flags),
        )
        return raw

    def parse_response(self, response_text: str) -> RawPattern:
        """Validate a model answer and convert it to a RawPattern."""
        try:
            data = _normalize_keys(first_json_object(response_text))
        except ValueError as e:
            self._log_malformed(str(e), response_text)
            raise ExtractionMalformedError("Model response contained no JSON object") from e

        for alias, section in _SECTION_ALIASES.items():
            if alias in data and section not in data:
                data[section] = data.pop(alias)

        confidence = data.get("confidence_score")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)) or math.isnan(confidence):
            self._log_malformed("missing or non-numeric confidence_score", response_text)
            raise ExtractionMalformedError("Model response has no numeric confidence_score")

        try:
            validated = ExtractionSchema.model_validate(data)
        except ValidationError as e:
            missing = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            self._log_malformed(f"schema errors: {missing}", response_text)
            raise ExtractionMalformedError(f"Model response missing or invalid fields: {', '.join(missing)}") from e

        flags: list[str] = []

        score = float(validated.confidence_score)
        if score < 0.0 or score > 1.0:
            flags.append("confidence_clamped")
            counter("patterns.extraction.confidence_clamped")
            score = max(0.0, min(1.0, score))

        sections = {
            "layout": validated.layout.model_dump(),
            "color_psychology": validated.color_psychology.model_dump(),
            "hook_pattern": validated.hook_pattern.model_dump(),
            "visual_elements": validated.visual_elements.model_dump(),
        }
        for section in sections.values():
            for field, value in section.items():
                if isinstance(value, str):
                    section[field] = value.strip()

        for (section_name, field), vocabulary in CLOSED_VOCABULARIES.items():
            normalized = sections[section_name][field].lower()
            if normalized in vocabulary:
                sections[section_name][field] = normalized
            else:
                flags.append(f"off_vocabulary:{field}")
                counter("patterns.extraction.off_vocabulary")
                score = max(0.0, score - EXTRACTION_OFF_VOCAB_PENALTY)

        return RawPattern(
            layout=LayoutPattern(**sections["layout"]),
            color_psychology=ColorPsychology(**sections["color_psychology"]),
            hook_pattern=HookPattern(**sections["hook_pattern"]),
            visual_elements=VisualElements(**sections["visual_elements"]),
            confidence_score=round(score, 4),
            flags=flags,
        )

    def _log_malformed(self, problem: str, response_text: str) -> None:
        counter("patterns.extraction.malformed")
        logger.warning(
            "Malformed extraction response (%s): %s",
            problem,
            excerpt(response_text, EXTRACTION_LOG_EXCERPT_CHARS),
        )
