"""
Logging for PatternQ

All module loggers hang off the "patternq" logger, which owns the single
stream handler; the root logger is left to the embedding application.
Records pass through ContactScrubFilter so an email address, explicit link or
handle read off an ad never reaches a log line verbatim. Bare domains and
digit runs are left alone: dotted event names, file paths and ids look like
them.

PATTERNQ_LOG_LEVEL sets the level (default INFO).
"""

from __future__ import annotations

import logging
import os
import re
from typing import Final

from patternq.utils.redaction import (
    EMAIL_PATTERN,
    EMAIL_PLACEHOLDER,
    HANDLE_PATTERN,
    HANDLE_PLACEHOLDER,
    URL_PLACEHOLDER,
)

ROOT_LOGGER_NAME: Final[str] = "patternq"
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Vertex AI and its HTTP stack log every request at INFO
NOISY_LOGGERS: Final[tuple[str, ...]] = ("google", "google.auth", "urllib3", "grpc")

EXPLICIT_LINK_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?:https?://|www\.)[^\s]+", re.IGNORECASE)

_CONFIGURED: bool = False


class ContactScrubFilter(logging.Filter):
    """Replace emails, links and handles in the rendered message with placeholders."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = EMAIL_PATTERN.sub(EMAIL_PLACEHOLDER, message)
        scrubbed = EXPLICIT_LINK_PATTERN.sub(URL_PLACEHOLDER, scrubbed)
        scrubbed = HANDLE_PATTERN.sub(HANDLE_PLACEHOLDER, scrubbed)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


def _resolve_level() -> int:
    level_name = os.getenv("PATTERNQ_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def configure_logging(level: int | None = None) -> logging.Logger:
    """
    Attach the PatternQ handler once and (re)apply the level.

    Side Effects:
        - Adds one StreamHandler with ContactScrubFilter to the "patternq" logger
        - Raises noisy third-party loggers to WARNING
    """
    global _CONFIGURED

    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(level if level is not None else _resolve_level())

    if not _CONFIGURED:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        handler.addFilter(ContactScrubFilter())
        package_logger.addHandler(handler)
        package_logger.propagate = False
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
        _CONFIGURED = True

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the "patternq" hierarchy."""
    configure_logging()
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
