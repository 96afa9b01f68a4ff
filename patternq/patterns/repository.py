"""
Learned Pattern Repository - owner-scoped CRUD for learned_patterns, pattern_uploads
and pattern_application_history.

Follows the database patterns in patternq/infrastructure/database.py. Every
pattern operation takes the owner id; touching a pattern that belongs to
someone else raises OwnershipError. SQLite faults surface as
RepositoryUnavailableError, except the (owner_id, source_hash) uniqueness
violation, which surfaces as DuplicatePatternError.
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Callable
from functools import wraps
from typing import Any, Protocol, TypeVar, runtime_checkable

from patternq.infrastructure.database import (
    DatabaseUnavailableError,
    db_transaction,
    get_db_connection,
    retry_on_db_lock,
)
from patternq.observability.logging import get_logger
from patternq.patterns.errors import DuplicatePatternError, OwnershipError, RepositoryUnavailableError
from patternq.patterns.models import (
    Pattern,
    PatternApplication,
    PatternCreate,
    PatternUpdate,
    UploadAttempt,
    UploadStatus,
    utc_now,
)
from patternq.utils.redaction import redact

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@runtime_checkable
class PatternStore(Protocol):
    """Persistence operations the ingestion and retrieval pipeline needs."""

    def find_by_hash(self, owner_id: str, source_hash: str) -> Pattern | None: ...

    def create(self, pattern: PatternCreate) -> Pattern: ...

    def list_active(self, owner_id: str) -> list[Pattern]: ...

    def touch_usage(self, owner_id: str, pattern_id: str) -> bool: ...


def storage_errors(func: F) -> F:
    """Translate SQLite, pool and missing-database failures into RepositoryUnavailableError."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (sqlite3.Error, DatabaseUnavailableError, FileNotFoundError) as e:
            logger.error("Pattern storage failure in %s: %s", func.__name__, e)
            raise RepositoryUnavailableError(f"Pattern storage unavailable: {e}") from e

    return wrapper  # type: ignore[return-value]


class PatternRepository:
    """
    SQLite implementation of PatternStore.

    All methods use connection pooling and proper transaction handling.
    """

    @storage_errors
    def find_by_hash(self, owner_id: str, source_hash: str) -> Pattern | None:
        """
        Find an owner's pattern by content hash (active or not).

        Inactive patterns still count for dedup: the unique constraint covers them.
        """
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM learned_patterns WHERE owner_id = ? AND source_hash = ?",
                (owner_id, source_hash),
            ).fetchone()

        return Pattern.from_db_row(dict(row)) if row else None

    @storage_errors
    @retry_on_db_lock()
    def create(self, pattern: PatternCreate) -> Pattern:
        """
        Create a new learned pattern.

        Returns:
            Created Pattern with generated id and timestamps

        Raises:
            DuplicatePatternError: (owner_id, source_hash) already stored

        Side Effects:
            - Inserts one row into learned_patterns in a single transaction
        """
        now = utc_now()
        created = Pattern(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            **pattern.model_dump(),
        )

        try:
            with db_transaction() as conn:
                conn.execute(
                    """
                    INSERT INTO learned_patterns (
                        id, owner_id, name, category, platform, industry,
                        layout, color_psychology, hook_pattern, visual_elements,
                        engagement_tier, confidence_score, source_hash, extraction_flags,
                        usage_count, last_used_at, is_active, created_at, updated_at
                    ) VALUES (
                        :id, :owner_id, :name, :category, :platform, :industry,
                        :layout, :color_psychology, :hook_pattern, :visual_elements,
                        :engagement_tier, :confidence_score, :source_hash, :extraction_flags,
                        :usage_count, :last_used_at, :is_active, :created_at, :updated_at
                    )
                    """,
                    created.to_db_dict(),
                )
        except sqlite3.IntegrityError as e:
            logger.info(
                "Duplicate pattern for owner %s (hash %s)", pattern.owner_id, redact(pattern.source_hash)
            )
            raise DuplicatePatternError(pattern.owner_id, pattern.source_hash) from e

        logger.info("Created learned pattern %s for owner %s", created.id, pattern.owner_id)
        return created

    @storage_errors
    def list_active(self, owner_id: str) -> list[Pattern]:
        """All active patterns of an owner, newest first."""
        with get_db_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM learned_patterns
                WHERE owner_id = ? AND is_active = 1
                ORDER BY created_at DESC, rowid DESC
                """,
                (owner_id,),
            ).fetchall()

        return [Pattern.from_db_row(dict(row)) for row in rows]

    @storage_errors
    @retry_on_db_lock()
    def touch_usage(self, owner_id: str, pattern_id: str) -> bool:
        """
        Record one use of a pattern.

        Returns:
            True if the pattern was updated, False if it does not exist

        Raises:
            OwnershipError: Pattern belongs to another owner

        Side Effects:
            - Increments usage_count and sets last_used_at in one UPDATE
        """
        now = utc_now().isoformat()
        with db_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE learned_patterns
                SET usage_count = usage_count + 1, last_used_at = ?, updated_at = ?
                WHERE id = ? AND owner_id = ?
                """,
                (now, now, pattern_id, owner_id),
            )
            touched = cursor.rowcount > 0

        if not touched:
            self._check_owner(owner_id, pattern_id)
        return touched

    # ------------------------------------------------------------------
    # Management operations
    # ------------------------------------------------------------------

    @storage_errors
    def get_by_id(self, owner_id: str, pattern_id: str) -> Pattern | None:
        """
        Get one of an owner's patterns by ID.

        Raises:
            OwnershipError: Pattern belongs to another owner
        """
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM learned_patterns WHERE id = ?",
                (pattern_id,),
            ).fetchone()

        if not row:
            return None
        if row["owner_id"] != owner_id:
            raise OwnershipError(f"Pattern {pattern_id} is not owned by {owner_id}")
        return Pattern.from_db_row(dict(row))

    @storage_errors
    def list_by_owner(
        self,
        owner_id: str,
        category: str | None = None,
        platform: str | None = None,
        industry: str | None = None,
        include_inactive: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Pattern]:
        """
        List an owner's patterns, newest first, with optional label filters.
        """
        query = "SELECT * FROM learned_patterns WHERE owner_id = ?"
        params: list[Any] = [owner_id]

        if not include_inactive:
            query += " AND is_active = 1"
        if category:
            query += " AND category = ?"
            params.append(category)
        if platform:
            query += " AND platform = ?"
            params.append(platform)
        if industry:
            query += " AND industry = ?"
            params.append(industry)

        query += " ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with get_db_connection() as conn:
            rows = conn.execute(query, params).fetchall()

        return [Pattern.from_db_row(dict(row)) for row in rows]

    @storage_errors
    @retry_on_db_lock()
    def update(self, owner_id: str, pattern_id: str, updates: PatternUpdate) -> Pattern | None:
        """
        Update a pattern's labels. Extracted sections are immutable.

        Returns:
            Updated Pattern, or None if it does not exist
        """
        fields = updates.model_dump(exclude_unset=True)
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0

        if not fields:
            return self.get_by_id(owner_id, pattern_id)

        fields["updated_at"] = utc_now().isoformat()
        assignments = ", ".join(f"{column} = :{column}" for column in fields)

        with db_transaction() as conn:
            cursor = conn.execute(
                f"UPDATE learned_patterns SET {assignments} WHERE id = :pattern_id AND owner_id = :owner_id",
                {**fields, "pattern_id": pattern_id, "owner_id": owner_id},
            )
            updated = cursor.rowcount > 0

        if not updated:
            self._check_owner(owner_id, pattern_id)
            return None

        logger.info("Updated learned pattern %s: %s", pattern_id, sorted(fields))
        return self.get_by_id(owner_id, pattern_id)

    def deactivate(self, owner_id: str, pattern_id: str) -> bool:
        """Soft-delete a pattern so it no longer appears in retrieval."""
        return self.update(owner_id, pattern_id, PatternUpdate(is_active=False)) is not None

    @storage_errors
    @retry_on_db_lock()
    def delete(self, owner_id: str, pattern_id: str) -> bool:
        """
        Permanently delete a pattern.

        Returns:
            True if deleted, False if not found
        """
        with db_transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM learned_patterns WHERE id = ? AND owner_id = ?",
                (pattern_id, owner_id),
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("Deleted learned pattern %s", pattern_id)
        else:
            self._check_owner(owner_id, pattern_id)
        return deleted

    # ------------------------------------------------------------------
    # Application history
    # ------------------------------------------------------------------

    @storage_errors
    @retry_on_db_lock()
    def create_application(
        self,
        owner_id: str,
        pattern_id: str,
        target_platform: str | None = None,
        product_id: str | None = None,
        prompt_used: str | None = None,
    ) -> PatternApplication | None:
        """
        Record that a pattern was applied to a generation.

        Returns:
            The stored application, or None if the pattern does not exist

        Raises:
            OwnershipError: Pattern belongs to another owner
        """
        if self.get_by_id(owner_id, pattern_id) is None:
            return None

        application = PatternApplication(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            pattern_id=pattern_id,
            target_platform=target_platform,
            product_id=product_id,
            prompt_used=prompt_used,
        )

        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO pattern_application_history (
                    id, owner_id, pattern_id, target_platform, product_id,
                    prompt_used, user_rating, was_used, feedback, created_at
                ) VALUES (
                    :id, :owner_id, :pattern_id, :target_platform, :product_id,
                    :prompt_used, :user_rating, :was_used, :feedback, :created_at
                )
                """,
                application.to_db_dict(),
            )

        return application

    @storage_errors
    def list_applications(self, owner_id: str, pattern_id: str) -> list[PatternApplication]:
        """An owner's applications of one pattern, newest first."""
        with get_db_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM pattern_application_history
                WHERE owner_id = ? AND pattern_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (owner_id, pattern_id),
            ).fetchall()

        return [PatternApplication.from_db_row(dict(row)) for row in rows]

    @storage_errors
    @retry_on_db_lock()
    def update_application_feedback(
        self,
        owner_id: str,
        application_id: str,
        rating: int,
        was_used: bool,
        feedback: str | None = None,
    ) -> PatternApplication | None:
        """
        Attach the owner's rating to one application.

        Returns:
            Updated application, or None if the owner has no such application
        """
        with db_transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE pattern_application_history
                SET user_rating = ?, was_used = ?, feedback = ?
                WHERE id = ? AND owner_id = ?
                """,
                (rating, int(was_used), feedback, application_id, owner_id),
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute(
                "SELECT * FROM pattern_application_history WHERE id = ?",
                (application_id,),
            ).fetchone()

        logger.info("Recorded rating %d for pattern application %s", rating, application_id)
        return PatternApplication.from_db_row(dict(row))

    def _check_owner(self, owner_id: str, pattern_id: str) -> None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT owner_id FROM learned_patterns WHERE id = ?",
                (pattern_id,),
            ).fetchone()

        if row and row["owner_id"] != owner_id:
            raise OwnershipError(f"Pattern {pattern_id} is not owned by {owner_id}")


class UploadRepository:
    """Persistence for UploadAttempt records (pattern_uploads table)."""

    @storage_errors
    @retry_on_db_lock()
    def create_pending(self, owner_id: str) -> UploadAttempt:
        """Create a new pending upload attempt."""
        attempt = UploadAttempt(id=str(uuid.uuid4()), owner_id=owner_id, status=UploadStatus.PENDING)

        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO pattern_uploads (
                    id, owner_id, status, linked_pattern_id, processing_duration_ms,
                    error_message, created_at, processing_started_at, processing_completed_at
                ) VALUES (
                    :id, :owner_id, :status, :linked_pattern_id, :processing_duration_ms,
                    :error_message, :created_at, :processing_started_at, :processing_completed_at
                )
                """,
                attempt.to_db_dict(),
            )

        logger.info("Created upload attempt %s for owner %s", attempt.id, owner_id)
        return attempt

    @storage_errors
    def get_by_id(self, upload_id: str) -> UploadAttempt | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM pattern_uploads WHERE id = ?",
                (upload_id,),
            ).fetchone()

        return UploadAttempt.from_db_row(dict(row)) if row else None

    @storage_errors
    @retry_on_db_lock()
    def save(self, attempt: UploadAttempt) -> None:
        """Insert or overwrite an attempt's current state."""
        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO pattern_uploads (
                    id, owner_id, status, linked_pattern_id, processing_duration_ms,
                    error_message, created_at, processing_started_at, processing_completed_at
                ) VALUES (
                    :id, :owner_id, :status, :linked_pattern_id, :processing_duration_ms,
                    :error_message, :created_at, :processing_started_at, :processing_completed_at
                )
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    linked_pattern_id = excluded.linked_pattern_id,
                    processing_duration_ms = excluded.processing_duration_ms,
                    error_message = excluded.error_message,
                    processing_started_at = excluded.processing_started_at,
                    processing_completed_at = excluded.processing_completed_at
                """,
                attempt.to_db_dict(),
            )
