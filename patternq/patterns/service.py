"""Pattern service layer - facade over ingestion, retrieval and management.

Wires the default components (SQLite repository, Gemini-backed privacy gate
and extractor) unless callers inject their own. Management methods enforce
ownership the same way retrieval does: a pattern owned by someone else is
reported as not found.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from patternq.config import RANKING_DEFAULT_LIMIT
from patternq.observability.logging import get_logger
from patternq.observability.telemetry import counter
from patternq.patterns.errors import OwnershipError
from patternq.patterns.extractor import PatternExtractor
from patternq.patterns.formatter import format_patterns
from patternq.patterns.models import (
    Pattern,
    PatternApplication,
    PatternMetadata,
    PatternQuery,
    PatternRating,
    PatternUpdate,
    UploadAttempt,
)
from patternq.patterns.privacy_gate import PrivacyGate
from patternq.patterns.ranker import rank
from patternq.patterns.repository import PatternRepository, UploadRepository
from patternq.patterns.sanitizer import PatternSanitizer
from patternq.patterns.upload_tracker import UploadLifecycleTracker, UploadResult

logger = get_logger(__name__)


class PatternService:
    """Entry point for callers that ingest ad images and retrieve patterns for prompts."""

    def __init__(
        self,
        repository: PatternRepository | None = None,
        privacy_gate: PrivacyGate | None = None,
        extractor: PatternExtractor | None = None,
        sanitizer: PatternSanitizer | None = None,
        upload_repository: UploadRepository | None = None,
    ):
        self.repository = repository or PatternRepository()
        self.upload_repository = upload_repository
        self.tracker = UploadLifecycleTracker(
            store=self.repository,
            privacy_gate=privacy_gate or PrivacyGate(),
            extractor=extractor or PatternExtractor(),
            sanitizer=sanitizer,
            upload_repository=upload_repository,
        )

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(
        self,
        owner_id: str,
        data: bytes,
        mime_type: str,
        metadata: PatternMetadata | Mapping[str, Any],
        cancel_event: threading.Event | None = None,
    ) -> UploadResult:
        """Create a pending upload attempt and process it.

        Raises:
            pydantic.ValidationError: metadata fails validation (no attempt is created)
        """
        if not isinstance(metadata, PatternMetadata):
            metadata = PatternMetadata.model_validate(metadata)

        if self.upload_repository is not None:
            attempt = self.upload_repository.create_pending(owner_id)
        else:
            attempt = UploadAttempt(id=str(uuid.uuid4()), owner_id=owner_id)

        return self.tracker.process(attempt, data, mime_type, metadata, cancel_event)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def get_relevant_patterns(
        self,
        owner_id: str,
        category: str | None = None,
        platform: str | None = None,
        industry: str | None = None,
        limit: int = RANKING_DEFAULT_LIMIT,
        now: datetime | None = None,
    ) -> list[Pattern]:
        """Rank an owner's active patterns against a generation context."""
        if limit <= 0:
            return []
        patterns = self.repository.list_active(owner_id)
        query = PatternQuery(category=category, platform=platform, industry=industry)
        ranked = rank(patterns, query, limit=limit, now=now)
        counter("patterns.retrieval.served", len(ranked))
        return ranked

    @staticmethod
    def format_patterns_for_prompt(patterns: list[Pattern]) -> str:
        return format_patterns(patterns)

    def record_pattern_usage(
        self,
        owner_id: str,
        pattern_ids: Iterable[str],
        target_platform: str | None = None,
        product_id: str | None = None,
    ) -> int:
        """Record that patterns were used in a generation.

        Each used pattern also gets an application history entry carrying
        the prompt block it contributed, so the owner can rate it later.

        Returns:
            Number of patterns updated (unknown ids are skipped)

        Raises:
            OwnershipError: An id belongs to a different owner
        """
        touched = 0
        for pattern_id in dict.fromkeys(pattern_ids):
            if not self.repository.touch_usage(owner_id, pattern_id):
                logger.warning("Usage recorded for unknown pattern %s", pattern_id)
                continue
            touched += 1
            pattern = self.repository.get_by_id(owner_id, pattern_id)
            if pattern is not None:
                self.repository.create_application(
                    owner_id,
                    pattern_id,
                    target_platform=target_platform,
                    product_id=product_id,
                    prompt_used=format_patterns([pattern]),
                )
        return touched

    def rate_pattern(
        self,
        owner_id: str,
        pattern_id: str,
        rating: int,
        was_used: bool,
        feedback: str | None = None,
    ) -> PatternApplication | None:
        """Attach a rating to the owner's most recent application of a pattern.

        Returns:
            The rated application, or None if the pattern is missing, not
            owned by owner_id, or has never been applied

        Raises:
            pydantic.ValidationError: rating outside 1-5 or feedback too long
        """
        verdict = PatternRating(rating=rating, was_used=was_used, feedback=feedback)
        try:
            if self.repository.get_by_id(owner_id, pattern_id) is None:
                return None
        except OwnershipError:
            logger.warning("Owner %s tried to rate pattern %s it does not own", owner_id, pattern_id)
            return None

        applications = self.repository.list_applications(owner_id, pattern_id)
        if not applications:
            logger.info("Pattern %s rated before it was ever applied", pattern_id)
            return None

        counter("patterns.rating.recorded")
        return self.repository.update_application_feedback(
            owner_id,
            applications[0].id,
            verdict.rating,
            verdict.was_used,
            verdict.feedback,
        )

    def list_pattern_applications(self, owner_id: str, pattern_id: str) -> list[PatternApplication]:
        return self.repository.list_applications(owner_id, pattern_id)

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def get_pattern(self, owner_id: str, pattern_id: str) -> Pattern | None:
        """Get a pattern if owned by owner_id. Returns None if not found or not owned."""
        try:
            return self.repository.get_by_id(owner_id, pattern_id)
        except OwnershipError:
            logger.warning("Owner %s requested pattern %s it does not own", owner_id, pattern_id)
            return None

    def list_patterns(
        self,
        owner_id: str,
        category: str | None = None,
        platform: str | None = None,
        include_inactive: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Pattern]:
        return self.repository.list_by_owner(
            owner_id,
            category=category,
            platform=platform,
            include_inactive=include_inactive,
            limit=limit,
            offset=offset,
        )

    def update_pattern(self, owner_id: str, pattern_id: str, updates: PatternUpdate) -> Pattern | None:
        try:
            return self.repository.update(owner_id, pattern_id, updates)
        except OwnershipError:
            logger.warning("Owner %s tried to update pattern %s it does not own", owner_id, pattern_id)
            return None

    def deactivate_pattern(self, owner_id: str, pattern_id: str) -> bool:
        try:
            return self.repository.deactivate(owner_id, pattern_id)
        except OwnershipError:
            logger.warning("Owner %s tried to deactivate pattern %s it does not own", owner_id, pattern_id)
            return False

    def delete_pattern(self, owner_id: str, pattern_id: str) -> bool:
        try:
            return self.repository.delete(owner_id, pattern_id)
        except OwnershipError:
            logger.warning("Owner %s tried to delete pattern %s it does not own", owner_id, pattern_id)
            return False
