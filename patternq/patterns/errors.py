"""
Pattern pipeline exceptions.

Terminal failures (privacy rejection, malformed extraction, unavailable store)
end an upload attempt as failed. DuplicatePatternError is the one exception
callers resolve themselves, by re-reading the existing pattern.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure taxonomy reported on an UploadResult."""

    PRIVACY_REJECTED = "privacy_rejected"
    EXTRACTION_MALFORMED = "extraction_malformed"
    EXTRACTION_TRANSPORT = "extraction_transport"
    REPOSITORY_UNAVAILABLE = "repository_unavailable"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


class PatternError(Exception):
    """Base exception for pattern pipeline errors."""

    kind: ErrorKind = ErrorKind.INTERNAL


class ExtractionError(PatternError):
    """Extraction did not produce a usable pattern."""

    kind = ErrorKind.EXTRACTION_MALFORMED


class ExtractionMalformedError(ExtractionError):
    """Model answered, but not with a JSON object matching the pattern schema."""

    kind = ErrorKind.EXTRACTION_MALFORMED


class ExtractionTransportError(ExtractionError):
    """Model could not be reached (timeout, 5xx, 429) after all retries."""

    kind = ErrorKind.EXTRACTION_TRANSPORT


class DuplicatePatternError(PatternError):
    """A pattern with the same (owner_id, source_hash) already exists."""

    def __init__(self, owner_id: str, source_hash: str):
        super().__init__(f"Pattern already exists for owner {owner_id} (hash {source_hash[:12]})")
        self.owner_id = owner_id
        self.source_hash = source_hash


class RepositoryUnavailableError(PatternError):
    """Backing store failed. Terminal for the current attempt."""

    kind = ErrorKind.REPOSITORY_UNAVAILABLE


class OwnershipError(PatternError):
    """A pattern id was used under an owner that does not own it."""


class InvalidTransitionError(PatternError):
    """Upload attempt cannot move from its current state to the requested one."""
