"""Centralized configuration for PatternQ.

Re-exports everything from patternq.infrastructure.settings so callers have a
single import point, then adds typed constants for database, LLM, privacy,
extraction and ranking settings.  Environment variable overrides use safe
defaults so the library works without extra env configuration.
"""

from __future__ import annotations

import os

from patternq.infrastructure.settings import *  # noqa: F401, F403 (re-export)

# --- Database ---
DB_POOL_SIZE: int = int(os.getenv("PATTERNQ_DB_POOL_SIZE", "5"))
DB_POOL_TIMEOUT: float = float(os.getenv("PATTERNQ_DB_POOL_TIMEOUT", "5.0"))
DB_CONNECT_TIMEOUT: float = float(os.getenv("PATTERNQ_DB_CONNECT_TIMEOUT", "30.0"))
DB_RETRY_MAX: int = int(os.getenv("PATTERNQ_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = float(os.getenv("PATTERNQ_DB_RETRY_BASE_DELAY", "0.1"))
DB_RETRY_MAX_DELAY: float = float(os.getenv("PATTERNQ_DB_RETRY_MAX_DELAY", "2.0"))
DB_RETRY_JITTER: float = float(os.getenv("PATTERNQ_DB_RETRY_JITTER", "0.1"))

# --- LLM ---
LLM_TIMEOUT_SECONDS: int = int(os.getenv("PATTERNQ_LLM_TIMEOUT", "60"))
LLM_MAX_RETRIES: int = int(os.getenv("PATTERNQ_LLM_MAX_RETRIES", "3"))
LLM_MAX_WORKERS: int = int(os.getenv("PATTERNQ_LLM_MAX_WORKERS", "4"))
LLM_RETRY_MIN_WAIT: float = 1.0
LLM_RETRY_MAX_WAIT: float = 10.0
PRIVACY_SCAN_TEMPERATURE: float = 0.1
EXTRACTION_TEMPERATURE: float = 0.2

# --- Privacy Gate ---
PRIVACY_MAX_TEXT_DENSITY: float = float(os.getenv("PATTERNQ_PRIVACY_MAX_TEXT_DENSITY", "15"))
PRIVACY_REJECT_LOGOS: bool = os.getenv("PATTERNQ_PRIVACY_REJECT_LOGOS", "true").lower() == "true"

# --- Extraction ---
EXTRACTION_LOG_EXCERPT_CHARS: int = 500
EXTRACTION_OFF_VOCAB_PENALTY: float = 0.1
EXTRACTION_MAX_HIERARCHY: int = 3

# --- Sanitizer ---
SANITIZER_MAX_FIELD_CHARS: int = 80
SANITIZER_GENERIC_MAX_CHARS: int = 50
SANITIZER_REDACTED_TEXT: str = "[content redacted - pattern only]"

# --- Upload ---
UPLOAD_MAX_NAME_CHARS: int = 100

# --- Ranking ---
RANKING_DEFAULT_LIMIT: int = 5
RANKING_RECENT_DAYS: int = 7
RANKING_STALE_DAYS: int = 30

# --- Application history ---
RATING_MIN: int = 1
RATING_MAX: int = 5
FEEDBACK_MAX_CHARS: int = 500
