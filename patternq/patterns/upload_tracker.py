"""
Upload Lifecycle Tracker - drives one UploadAttempt from pending to a terminal state.

    pending -> processing -> completed | failed

Pipeline (inside processing):
1. Hash the bytes and look for an existing pattern (dedup hit completes at once)
2. PrivacyGate scan; unsafe images fail with the rejection reason
3. PatternExtractor; extraction errors fail with their detail
4. PatternSanitizer, then create; a duplicate insert resolves to the stored pattern

Every path ends in exactly one terminal state with processing_duration_ms set.
Cancellation is checked after each external call: the call in flight
finishes, but no new pattern is stored for a cancelled attempt.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass

from patternq.observability.logging import get_logger
from patternq.observability.telemetry import counter, log_event
from patternq.patterns.errors import (
    DuplicatePatternError,
    ErrorKind,
    ExtractionError,
    InvalidTransitionError,
    PatternError,
    RepositoryUnavailableError,
)
from patternq.patterns.extractor import PatternExtractor
from patternq.patterns.hasher import content_hash
from patternq.patterns.models import (
    ALLOWED_UPLOAD_TRANSITIONS,
    Pattern,
    PatternCreate,
    PatternMetadata,
    PrivacyScanResult,
    UploadAttempt,
    UploadStatus,
    utc_now,
)
from patternq.patterns.privacy_gate import PrivacyGate
from patternq.patterns.repository import PatternStore, UploadRepository
from patternq.patterns.sanitizer import PatternSanitizer
from patternq.utils.redaction import redact, scrub_contact_info

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Upload cancelled"
INTERNAL_ERROR_MESSAGE = "Upload failed due to an internal error"


@dataclass
class UploadResult:
    """Outcome of processing one upload attempt."""

    success: bool
    upload: UploadAttempt
    pattern: Pattern | None = None
    is_duplicate: bool = False
    privacy_scan_result: PrivacyScanResult | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None


class UploadLifecycleTracker:
    """
    Orchestrates hashing, privacy scan, extraction, sanitization and storage.

    Args:
        store: PatternStore for dedup lookup and creation
        privacy_gate: PrivacyGate (its model is the only place image bytes go first)
        extractor: PatternExtractor, reached only after a safe scan
        sanitizer: PatternSanitizer applied before storage
        upload_repository: Optional; when given, every transition is persisted
    """

    def __init__(
        self,
        store: PatternStore,
        privacy_gate: PrivacyGate,
        extractor: PatternExtractor,
        sanitizer: PatternSanitizer | None = None,
        upload_repository: UploadRepository | None = None,
    ):
        self.store = store
        self.privacy_gate = privacy_gate
        self.extractor = extractor
        self.sanitizer = sanitizer or PatternSanitizer()
        self.upload_repository = upload_repository

    def process(
        self,
        attempt: UploadAttempt,
        data: bytes,
        mime_type: str,
        metadata: PatternMetadata,
        cancel_event: threading.Event | None = None,
    ) -> UploadResult:
        """
        Process a pending upload attempt to completion.

        Raises:
            InvalidTransitionError: Attempt is not pending (nothing is done)

        Side Effects:
            - Mutates `attempt` (status, timestamps, duration, link or error)
            - Persists transitions through the upload repository, if any
            - May create one learned pattern
        """
        started = time.monotonic()
        self._transition(attempt, UploadStatus.PROCESSING)
        attempt.processing_started_at = utc_now()
        counter("patterns.upload.started")

        try:
            self._persist(attempt)
            result = self._run(attempt, data, mime_type, metadata, cancel_event)
        except RepositoryUnavailableError as e:
            result = self._fail(attempt, str(e), ErrorKind.REPOSITORY_UNAVAILABLE)
        except PatternError as e:
            logger.error("Upload %s failed: %s", attempt.id, e)
            result = self._fail(attempt, str(e), e.kind)
        except Exception:
            logger.exception("Unexpected error processing upload %s", attempt.id)
            result = self._fail(attempt, INTERNAL_ERROR_MESSAGE, ErrorKind.INTERNAL)

        attempt.processing_duration_ms = int((time.monotonic() - started) * 1000)
        attempt.processing_completed_at = utc_now()
        self._persist(attempt)

        log_event(
            "patterns.upload.finished",
            upload_id=attempt.id,
            status=attempt.status,
            duplicate=result.is_duplicate,
            error_kind=result.error_kind.value if result.error_kind else None,
            duration_ms=attempt.processing_duration_ms,
        )
        return result

    def _run(
        self,
        attempt: UploadAttempt,
        data: bytes,
        mime_type: str,
        metadata: PatternMetadata,
        cancel_event: threading.Event | None,
    ) -> UploadResult:
        owner_id = attempt.owner_id
        if _is_cancelled(cancel_event):
            return self._fail(attempt, CANCELLED_MESSAGE, ErrorKind.CANCELLED)

        source_hash = content_hash(data)
        existing = self.store.find_by_hash(owner_id, source_hash)
        if existing is not None:
            counter("patterns.upload.dedup_hit")
            logger.info("Upload %s matches existing pattern %s", attempt.id, existing.id)
            return self._complete(attempt, existing, is_duplicate=True)

        if _is_cancelled(cancel_event):
            return self._fail(attempt, CANCELLED_MESSAGE, ErrorKind.CANCELLED)

        scan = self.privacy_gate.scan(data, mime_type)
        if _is_cancelled(cancel_event):
            return self._fail(attempt, CANCELLED_MESSAGE, ErrorKind.CANCELLED, scan)
        if not scan.is_safe_to_process:
            return self._fail(
                attempt,
                scan.rejection_reason or "Image failed privacy scan",
                ErrorKind.PRIVACY_REJECTED,
                scan,
            )

        try:
            raw = self.extractor.extract(data, mime_type)
        except ExtractionError as e:
            return self._fail(attempt, str(e), e.kind, scan)

        if _is_cancelled(cancel_event):
            return self._fail(attempt, CANCELLED_MESSAGE, ErrorKind.CANCELLED, scan)

        sanitized = self.sanitizer.sanitize(raw)
        label = metadata.model_copy(update={"name": scrub_contact_info(metadata.name)})
        create = PatternCreate.from_raw(owner_id, label, sanitized, source_hash)

        try:
            pattern = self.store.create(create)
        except DuplicatePatternError:
            counter("patterns.upload.dedup_race")
            existing = self.store.find_by_hash(owner_id, source_hash)
            if existing is None:
                raise RepositoryUnavailableError(
                    f"Duplicate pattern for hash {redact(source_hash)} could not be re-read"
                ) from None
            return self._complete(attempt, existing, is_duplicate=True, scan=scan)

        counter("patterns.upload.created")
        return self._complete(attempt, pattern, is_duplicate=False, scan=scan)

    def _transition(self, attempt: UploadAttempt, new_status: UploadStatus) -> None:
        current = UploadStatus(attempt.status)
        if new_status not in ALLOWED_UPLOAD_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Upload {attempt.id} cannot move from {current.value} to {new_status.value}"
            )
        attempt.status = new_status

    def _complete(
        self,
        attempt: UploadAttempt,
        pattern: Pattern,
        is_duplicate: bool,
        scan: PrivacyScanResult | None = None,
    ) -> UploadResult:
        self._transition(attempt, UploadStatus.COMPLETED)
        attempt.linked_pattern_id = pattern.id
        attempt.error_message = None
        counter("patterns.upload.completed")
        return UploadResult(
            success=True,
            upload=attempt,
            pattern=pattern,
            is_duplicate=is_duplicate,
            privacy_scan_result=scan,
        )

    def _fail(
        self,
        attempt: UploadAttempt,
        message: str,
        kind: ErrorKind,
        scan: PrivacyScanResult | None = None,
    ) -> UploadResult:
        self._transition(attempt, UploadStatus.FAILED)
        attempt.linked_pattern_id = None
        attempt.error_message = message
        counter("patterns.upload.failed")
        counter(f"patterns.upload.failed.{kind.value}")
        logger.info("Upload %s failed (%s): %s", attempt.id, kind.value, message)
        return UploadResult(
            success=False,
            upload=attempt,
            privacy_scan_result=scan,
            error=message,
            error_kind=kind,
        )

    def _persist(self, attempt: UploadAttempt) -> None:
        if self.upload_repository is None:
            return
        try:
            self.upload_repository.save(attempt)
        except Exception as e:
            # The returned UploadResult stays authoritative for the caller
            counter("patterns.upload.persist_error")
            logger.error("Could not persist upload %s (%s): %s", attempt.id, attempt.status, e)


def _is_cancelled(cancel_event: threading.Event | None) -> bool:
    return cancel_event is not None and cancel_event.is_set()
