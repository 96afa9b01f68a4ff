"""
Learned pattern domain models for PatternQ.

These models represent abstract success patterns extracted from
high-performing ad images and the upload attempts that produce them.
Privacy scan verdicts gate extraction; application records track where a
pattern was used and how its owner rated the result.

Enumerated pattern fields are plain strings: the model may answer outside the
vocabulary and such values are kept (and flagged) rather than dropped.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from patternq.config import (
    EXTRACTION_MAX_HIERARCHY,
    FEEDBACK_MAX_CHARS,
    RATING_MAX,
    RATING_MIN,
    UPLOAD_MAX_NAME_CHARS,
)


def utc_now() -> datetime:
    """Return current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


# Closed vocabularies for enumerated pattern fields
WHITESPACE_USAGE = ("minimal", "balanced", "generous")
COLOR_SCHEMES = ("monochromatic", "complementary", "analogous", "triadic")
CONTRAST_LEVELS = ("low", "medium", "high")
CTA_STYLES = ("soft", "direct", "urgency")
IMAGE_STYLES = ("photography", "illustration", "mixed", "3d-render", "abstract")
PRODUCT_VISIBILITY = ("prominent", "subtle", "none")
BACKGROUND_TYPES = ("solid", "gradient", "image", "pattern")

# Suggested (open) vocabularies, used in the extraction instruction
LAYOUT_STRUCTURES = (
    "hero-top",
    "hero-left",
    "hero-right",
    "split-50-50",
    "text-overlay",
    "grid",
    "full-bleed",
    "minimal-centered",
)
FOCAL_POINT_POSITIONS = (
    "center",
    "upper-third",
    "lower-third",
    "left-third",
    "right-third",
    "golden-ratio",
)
MOODS = ("trust", "excitement", "calm", "urgency", "luxury", "friendly", "professional")
EMOTIONAL_TONES = ("energetic", "serene", "bold", "subtle", "warm", "cool")
HOOK_TYPES = (
    "question",
    "statistic",
    "pain-point",
    "benefit",
    "curiosity",
    "fear",
    "aspiration",
    "social-proof",
)
HEADLINE_FORMULAS = (
    "how-to",
    "number-list",
    "problem-solution",
    "before-after",
    "testimonial-style",
    "command",
    "comparison",
)
PERSUASION_TECHNIQUES = (
    "scarcity",
    "authority",
    "social-proof",
    "reciprocity",
    "commitment",
    "liking",
)

GENERAL_PLATFORM = "general"


class PatternCategory(str, Enum):
    """Kind of ad the pattern was learned from (supplied by the uploader)."""

    PRODUCT_SHOWCASE = "product_showcase"
    TESTIMONIAL = "testimonial"
    COMPARISON = "comparison"
    EDUCATIONAL = "educational"
    PROMOTIONAL = "promotional"
    BRAND_AWARENESS = "brand_awareness"


class Platform(str, Enum):
    """Social platform the source ad ran on."""

    LINKEDIN = "linkedin"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    TWITTER = "twitter"
    TIKTOK = "tiktok"
    YOUTUBE = "youtube"
    PINTEREST = "pinterest"
    GENERAL = "general"


class EngagementTier(str, Enum):
    """How well the source ad performed (top-1 is best)."""

    TOP_1 = "top-1"
    TOP_5 = "top-5"
    TOP_10 = "top-10"
    TOP_25 = "top-25"
    UNVERIFIED = "unverified"


class UploadStatus(str, Enum):
    """Status of an upload attempt in the ingestion lifecycle."""

    PENDING = "pending"  # Created by caller, not yet picked up
    PROCESSING = "processing"  # Hash / scan / extraction in progress
    COMPLETED = "completed"  # Linked to a (new or existing) pattern
    FAILED = "failed"  # Terminal failure, see error_message


TERMINAL_UPLOAD_STATUSES = frozenset({UploadStatus.COMPLETED, UploadStatus.FAILED})

ALLOWED_UPLOAD_TRANSITIONS: dict[UploadStatus, frozenset[UploadStatus]] = {
    UploadStatus.PENDING: frozenset({UploadStatus.PROCESSING}),
    UploadStatus.PROCESSING: frozenset({UploadStatus.COMPLETED, UploadStatus.FAILED}),
    UploadStatus.COMPLETED: frozenset(),
    UploadStatus.FAILED: frozenset(),
}


# ---------------------------------------------------------------------------
# Pattern sections
# ---------------------------------------------------------------------------


class LayoutPattern(BaseModel):
    structure: str = "flexible"
    visual_hierarchy: list[str] = Field(default_factory=list)
    whitespace_usage: str = "balanced"
    focal_point_position: str = "center"

    @field_validator("visual_hierarchy")
    @classmethod
    def cap_hierarchy(cls, v: list[str]) -> list[str]:
        return [item for item in v if item][:EXTRACTION_MAX_HIERARCHY]


class ColorPsychology(BaseModel):
    dominant_mood: str = "neutral"
    color_scheme: str = "complementary"
    contrast_level: str = "medium"
    emotional_tone: str = "balanced"


class HookPattern(BaseModel):
    hook_type: str = "benefit"
    headline_formula: str = "direct"
    cta_style: str = "direct"
    persuasion_technique: str = "social-proof"


class VisualElements(BaseModel):
    image_style: str = "photography"
    human_presence: bool = False
    product_visibility: str = "prominent"
    iconography: bool = False
    background_type: str = "solid"


class RawPattern(BaseModel):
    """
    Pattern sections as produced by the extractor (and then the sanitizer).

    flags records everything the pipeline noticed along the way, e.g.
    "confidence_clamped", "off_vocabulary:color_scheme", "sanitized:hook_type".
    """

    layout: LayoutPattern
    color_psychology: ColorPsychology
    hook_pattern: HookPattern
    visual_elements: VisualElements
    confidence_score: float = Field(ge=0.0, le=1.0)
    flags: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Caller metadata
# ---------------------------------------------------------------------------


class PatternMetadata(BaseModel):
    """Labels supplied by the uploader; never inferred from image content."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(..., min_length=1, max_length=UPLOAD_MAX_NAME_CHARS)
    category: PatternCategory
    platform: Platform
    industry: str | None = Field(default=None, max_length=100)
    engagement_tier: EngagementTier | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip()


# ---------------------------------------------------------------------------
# Pattern
# ---------------------------------------------------------------------------


class Pattern(BaseModel):
    """
    A stored, abstract description of an ad's structural and psychological design.

    Never the ad's literal content: no copy, brand or product names, face
    descriptions, URLs or numeric claims.
    """

    model_config = ConfigDict(frozen=False, use_enum_values=True)

    # Identity
    id: str = Field(..., description="Unique identifier (UUID)")
    owner_id: str = Field(..., description="User who owns this pattern")

    # Caller-supplied labels
    name: str
    category: str
    platform: str
    industry: str | None = None
    engagement_tier: EngagementTier | None = None

    # Extracted sections
    layout: LayoutPattern
    color_psychology: ColorPsychology
    hook_pattern: HookPattern
    visual_elements: VisualElements
    confidence_score: float = Field(ge=0.0, le=1.0)
    extraction_flags: list[str] = Field(default_factory=list)

    # Dedup
    source_hash: str

    # Usage
    usage_count: int = Field(default=0, ge=0)
    last_used_at: datetime | None = None
    is_active: bool = True

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "category": self.category,
            "platform": self.platform,
            "industry": self.industry,
            "layout": self.layout.model_dump_json(),
            "color_psychology": self.color_psychology.model_dump_json(),
            "hook_pattern": self.hook_pattern.model_dump_json(),
            "visual_elements": self.visual_elements.model_dump_json(),
            "engagement_tier": self.engagement_tier
            if isinstance(self.engagement_tier, str) or self.engagement_tier is None
            else self.engagement_tier.value,
            "confidence_score": self.confidence_score,
            "source_hash": self.source_hash,
            "extraction_flags": json.dumps(self.extraction_flags),
            "usage_count": self.usage_count,
            "last_used_at": self.last_used_at.isoformat() if self.last_used_at else None,
            "is_active": 1 if self.is_active else 0,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> Pattern:
        """Create Pattern from database row."""

        def parse_dt(val: str | None) -> datetime | None:
            if val is None:
                return None
            return datetime.fromisoformat(val)

        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            name=row["name"],
            category=row["category"],
            platform=row["platform"],
            industry=row.get("industry"),
            engagement_tier=row.get("engagement_tier"),
            layout=LayoutPattern.model_validate_json(row["layout"]),
            color_psychology=ColorPsychology.model_validate_json(row["color_psychology"]),
            hook_pattern=HookPattern.model_validate_json(row["hook_pattern"]),
            visual_elements=VisualElements.model_validate_json(row["visual_elements"]),
            confidence_score=row["confidence_score"],
            source_hash=row["source_hash"],
            extraction_flags=json.loads(row["extraction_flags"]) if row.get("extraction_flags") else [],
            usage_count=row.get("usage_count") or 0,
            last_used_at=parse_dt(row.get("last_used_at")),
            is_active=bool(row.get("is_active", 1)),
            created_at=parse_dt(row.get("created_at")) or utc_now(),
            updated_at=parse_dt(row.get("updated_at")) or utc_now(),
        )


class PatternCreate(BaseModel):
    """Input model for creating a new Pattern (without id/timestamps/usage)."""

    model_config = ConfigDict(use_enum_values=True)

    owner_id: str
    name: str
    category: str
    platform: str
    industry: str | None = None
    engagement_tier: EngagementTier | None = None
    layout: LayoutPattern
    color_psychology: ColorPsychology
    hook_pattern: HookPattern
    visual_elements: VisualElements
    confidence_score: float = Field(ge=0.0, le=1.0)
    extraction_flags: list[str] = Field(default_factory=list)
    source_hash: str

    @classmethod
    def from_raw(
        cls,
        owner_id: str,
        metadata: PatternMetadata,
        raw: RawPattern,
        source_hash: str,
    ) -> PatternCreate:
        return cls(
            owner_id=owner_id,
            name=metadata.name,
            category=metadata.category,
            platform=metadata.platform,
            industry=metadata.industry,
            engagement_tier=metadata.engagement_tier,
            layout=raw.layout,
            color_psychology=raw.color_psychology,
            hook_pattern=raw.hook_pattern,
            visual_elements=raw.visual_elements,
            confidence_score=raw.confidence_score,
            extraction_flags=list(raw.flags),
            source_hash=source_hash,
        )


class PatternUpdate(BaseModel):
    """Input model for updating a Pattern's labels (all fields optional)."""

    model_config = ConfigDict(use_enum_values=True)

    name: str | None = Field(default=None, min_length=1, max_length=UPLOAD_MAX_NAME_CHARS)
    category: PatternCategory | None = None
    platform: Platform | None = None
    industry: str | None = None
    engagement_tier: EngagementTier | None = None
    is_active: bool | None = None


class PatternQuery(BaseModel):
    """Retrieval context for relevance ranking. Unset fields never match."""

    category: str | None = None
    platform: str | None = None
    industry: str | None = None


# ---------------------------------------------------------------------------
# Privacy scan
# ---------------------------------------------------------------------------


class PrivacyScanResult(BaseModel):
    """Verdict of one privacy scan. Not persisted."""

    is_safe_to_process: bool
    has_faces: bool = False
    detected_brands: list[str] = Field(default_factory=list)
    rejection_reason: str | None = None
    text_density: float = 0.0
    has_logos: bool = False
    has_contact_info: bool = False
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def rejected(cls, reason: str, **fields: Any) -> PrivacyScanResult:
        """Factory for an unsafe verdict."""
        return cls(is_safe_to_process=False, rejection_reason=reason, **fields)


# ---------------------------------------------------------------------------
# Upload attempt
# ---------------------------------------------------------------------------


class UploadAttempt(BaseModel):
    """One ingestion call. Created pending by the caller, finished by the tracker."""

    model_config = ConfigDict(frozen=False, use_enum_values=True)

    id: str
    owner_id: str
    status: UploadStatus = UploadStatus.PENDING
    linked_pattern_id: str | None = None
    processing_duration_ms: int | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    processing_started_at: datetime | None = None
    processing_completed_at: datetime | None = None

    def is_terminal(self) -> bool:
        """Check if no further transitions are allowed."""
        return UploadStatus(self.status) in TERMINAL_UPLOAD_STATUSES

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "status": self.status if isinstance(self.status, str) else self.status.value,
            "linked_pattern_id": self.linked_pattern_id,
            "processing_duration_ms": self.processing_duration_ms,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
            "processing_started_at": self.processing_started_at.isoformat()
            if self.processing_started_at
            else None,
            "processing_completed_at": self.processing_completed_at.isoformat()
            if self.processing_completed_at
            else None,
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> UploadAttempt:
        """Create UploadAttempt from database row."""

        def parse_dt(val: str | None) -> datetime | None:
            if val is None:
                return None
            return datetime.fromisoformat(val)

        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            status=UploadStatus(row["status"]),
            linked_pattern_id=row.get("linked_pattern_id"),
            processing_duration_ms=row.get("processing_duration_ms"),
            error_message=row.get("error_message"),
            created_at=parse_dt(row.get("created_at")) or utc_now(),
            processing_started_at=parse_dt(row.get("processing_started_at")),
            processing_completed_at=parse_dt(row.get("processing_completed_at")),
        )


# ---------------------------------------------------------------------------
# Application history
# ---------------------------------------------------------------------------


class PatternRating(BaseModel):
    """Owner feedback on how well an applied pattern worked."""

    rating: int = Field(ge=RATING_MIN, le=RATING_MAX)
    was_used: bool
    feedback: str | None = Field(default=None, max_length=FEEDBACK_MAX_CHARS)


class PatternApplication(BaseModel):
    """One use of a pattern in a generation, with optional feedback."""

    id: str
    owner_id: str
    pattern_id: str
    target_platform: str | None = None
    product_id: str | None = None
    prompt_used: str | None = None
    user_rating: int | None = None
    was_used: bool | None = None
    feedback: str | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def to_db_dict(self) -> dict[str, Any]:
        """Convert to dict for database storage."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "pattern_id": self.pattern_id,
            "target_platform": self.target_platform,
            "product_id": self.product_id,
            "prompt_used": self.prompt_used,
            "user_rating": self.user_rating,
            "was_used": None if self.was_used is None else int(self.was_used),
            "feedback": self.feedback,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_db_row(cls, row: dict[str, Any]) -> PatternApplication:
        was_used = row.get("was_used")
        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            pattern_id=row["pattern_id"],
            target_platform=row.get("target_platform"),
            product_id=row.get("product_id"),
            prompt_used=row.get("prompt_used"),
            user_rating=row.get("user_rating"),
            was_used=None if was_used is None else bool(was_used),
            feedback=row.get("feedback"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
