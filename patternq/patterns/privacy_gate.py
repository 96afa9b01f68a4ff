"""
Privacy Gate - decides whether an uploaded ad image may be analyzed at all.

Runs one model-backed scan of the image, then applies an ordered list of
rejection rules to what the model observed. The first rule that objects
decides the rejection reason.

Built-in rules, in order:
1. Human faces
2. Text density above PRIVACY_MAX_TEXT_DENSITY (% of image area)
3. Blocklisted brand names in legible text
4. Brand marks / logos
5. Legible contact information (email, phone, website)

The gate fails closed: if the scan cannot be obtained or parsed, the image is
reported unsafe. Nothing here persists anything.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

from patternq.config import (
    GEMINI_PRIVACY_MODEL,
    PRIVACY_MAX_TEXT_DENSITY,
    PRIVACY_REJECT_LOGOS,
    PRIVACY_SCAN_TEMPERATURE,
)
from patternq.llm.json_response import first_json_object
from patternq.llm.vision import GeminiVisionModel, VisionModel
from patternq.observability.logging import get_logger
from patternq.observability.telemetry import counter, log_event, time_block
from patternq.patterns.models import PrivacyScanResult
from patternq.utils.redaction import brand_blocklist, find_brands, find_contact_info

logger = get_logger(__name__)

SCAN_FAILED_REASON = "Privacy scan failed - cannot verify image safety"
SCAN_UNREADABLE_REASON = "Could not analyze image for privacy concerns"


PRIVACY_SCAN_INSTRUCTION = """Analyze this image for privacy and intellectual-property concerns.

Report what you can see. Do not interpret or summarize the ad.

Return ONLY a JSON object with exactly these keys:
{
  "text_density": number from 0 to 100, the percentage of the image area covered by text,
  "detected_text": list of short strings, every legible word or phrase (brand names included),
  "has_logos": true if any brand mark, logo or trademark is visible,
  "logo_descriptions": list of short strings naming or describing each visible logo,
  "has_faces": true if any human face is visible, even partially,
  "face_count": integer number of visible faces,
  "has_contact_info": true if any email address, phone number, website or social handle is legible
}"""


class PrivacyObservation(BaseModel):
    """What the scan model reported, plus brands matched against the blocklist."""

    text_density: float = 0.0
    detected_text: list[str] = Field(default_factory=list)
    has_logos: bool = False
    logo_descriptions: list[str] = Field(default_factory=list)
    has_faces: bool = False
    face_count: int = 0
    has_contact_info: bool = False
    detected_brands: list[str] = Field(default_factory=list)

    @field_validator("text_density", mode="before")
    @classmethod
    def clamp_density(cls, v: object) -> float:
        if v is None:
            return 0.0
        return max(0.0, min(100.0, float(v)))  # type: ignore[arg-type]

    @field_validator("detected_text", "logo_descriptions", mode="before")
    @classmethod
    def coerce_text_list(cls, v: object) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return [str(item) for item in v if item]  # type: ignore[union-attr]

    @field_validator("face_count", mode="before")
    @classmethod
    def coerce_face_count(cls, v: object) -> int:
        return int(v or 0)  # type: ignore[call-overload]

    def legible_text(self) -> str:
        return " | ".join(self.detected_text)


# A rule returns a rejection reason, or None to let the image through.
PrivacyRule = Callable[[PrivacyObservation], str | None]


def reject_faces(obs: PrivacyObservation) -> str | None:
    if obs.has_faces or obs.face_count > 0:
        return "Image contains human faces - cannot process for privacy reasons"
    return None


def reject_text_density(obs: PrivacyObservation) -> str | None:
    if obs.text_density > PRIVACY_MAX_TEXT_DENSITY:
        return (
            f"Image contains too much text ({obs.text_density:.0f}% coverage) - "
            "patterns may leak copyrighted copy"
        )
    return None


def reject_brands(obs: PrivacyObservation) -> str | None:
    if obs.detected_brands:
        return (
            f"Detected brand names: {', '.join(obs.detected_brands)} - "
            "cannot extract patterns from competitor ads"
        )
    return None


def reject_logos(obs: PrivacyObservation) -> str | None:
    if PRIVACY_REJECT_LOGOS and obs.has_logos:
        return "Image contains brand logos or trademarks - cannot extract patterns from branded marks"
    return None


def reject_contact_info(obs: PrivacyObservation) -> str | None:
    if obs.has_contact_info or find_contact_info(obs.legible_text()):
        return "Image contains legible contact information - cannot process for privacy reasons"
    return None


DEFAULT_RULES: tuple[PrivacyRule, ...] = (
    reject_faces,
    reject_text_density,
    reject_brands,
    reject_logos,
    reject_contact_info,
)


class PrivacyGate:
    """
    Model-backed privacy scan with an extensible rejection rule list.

    Args:
        model: VisionModel used for the scan (defaults to Gemini Flash)
        extra_rules: Additional PrivacyRule callables, evaluated after the built-ins
        brands: Override for the brand blocklist (defaults to the policy file)
    """

    def __init__(
        self,
        model: VisionModel | None = None,
        extra_rules: Iterable[PrivacyRule] | None = None,
        brands: Sequence[str] | None = None,
    ):
        self.model = model if model is not None else GeminiVisionModel(GEMINI_PRIVACY_MODEL)
        self.rules: tuple[PrivacyRule, ...] = DEFAULT_RULES + tuple(extra_rules or ())
        self._brands = tuple(b.lower() for b in brands) if brands is not None else None

    @property
    def brands(self) -> tuple[str, ...]:
        return self._brands if self._brands is not None else brand_blocklist()

    def scan(self, data: bytes, mime_type: str) -> PrivacyScanResult:
        """
        Scan an image and decide whether it is safe to extract patterns from.

        Returns:
            PrivacyScanResult; is_safe_to_process is False with a reason on
            any rejection or scan failure

        Side Effects:
            - One VisionModel call (retried on transport errors)
            - Increments patterns.privacy.* counters
            - Logs privacy.rejected events (no image content)
        """
        counter("patterns.privacy.scan")

        try:
            with time_block("patterns.privacy.latency"):
                response_text = self.model.generate(
                    PRIVACY_SCAN_INSTRUCTION,
                    data,
                    mime_type,
                    temperature=PRIVACY_SCAN_TEMPERATURE,
                    operation="privacy_scan",
                )
        except Exception as e:
            counter("patterns.privacy.scan_error")
            logger.error("Privacy scan call failed: %s", e)
            return self._reject(PrivacyScanResult.rejected(SCAN_FAILED_REASON), rule="scan_error")

        try:
            observation = self._parse_response(response_text)
        except (ValueError, ValidationError) as e:
            counter("patterns.privacy.parse_error")
            logger.warning("Privacy scan response unusable: %s", e)
            return self._reject(PrivacyScanResult.rejected(SCAN_UNREADABLE_REASON), rule="parse_error")

        return self.evaluate(observation)

    def evaluate(self, observation: PrivacyObservation) -> PrivacyScanResult:
        """Apply the rule list to an observation. First objection wins."""
        if not observation.detected_brands:
            observation.detected_brands = find_brands(
                " | ".join([*observation.detected_text, *observation.logo_descriptions]),
                self.brands,
            )

        details = {
            "has_faces": observation.has_faces or observation.face_count > 0,
            "detected_brands": list(observation.detected_brands),
            "text_density": observation.text_density,
            "has_logos": observation.has_logos,
            "has_contact_info": observation.has_contact_info
            or bool(find_contact_info(observation.legible_text())),
        }

        for rule in self.rules:
            reason = rule(observation)
            if reason:
                return self._reject(
                    PrivacyScanResult.rejected(reason, **details),
                    rule=getattr(rule, "__name__", type(rule).__name__),
                )

        warnings = []
        if observation.detected_text:
            warnings.append("Image contains some text; extracted patterns will be sanitized")

        counter("patterns.privacy.safe")
        return PrivacyScanResult(is_safe_to_process=True, warnings=warnings, **details)

    def _parse_response(self, response_text: str) -> PrivacyObservation:
        data = first_json_object(response_text)
        # Older prompts answered in camelCase
        aliases = {
            "textDensity": "text_density",
            "detectedText": "detected_text",
            "hasLogos": "has_logos",
            "logoDescriptions": "logo_descriptions",
            "hasFaces": "has_faces",
            "faceCount": "face_count",
            "hasContactInfo": "has_contact_info",
        }
        normalized = {aliases.get(k, k): v for k, v in data.items()}
        normalized.pop("detected_brands", None)
        return PrivacyObservation.model_validate(normalized)

    def _reject(self, result: PrivacyScanResult, rule: str) -> PrivacyScanResult:
        counter("patterns.privacy.rejected")
        logger.info("Privacy gate rejected image (rule=%s)", rule)
        log_event(
            "privacy.rejected",
            rule=rule,
            text_density=result.text_density,
            has_faces=result.has_faces,
            brand_count=len(result.detected_brands),
            has_logos=result.has_logos,
            has_contact_info=result.has_contact_info,
        )
        return result
