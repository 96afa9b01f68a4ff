"""
Shared utilities for detecting and redacting literal content.

Provides:
- redact(): Hash sensitive strings for correlation without exposure
- find_contact_info(): email, phone, URL and handle detection
- scrub_literals(): Replace URLs, emails, handles, phones and numeric claims with placeholders
- scrub_contact_info(): Replace URLs, emails, handles and phones only
- load_privacy_policy(): Brand blocklist from policy/privacy_policy.yaml
"""

from __future__ import annotations

import re
from functools import lru_cache
from hashlib import sha256
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from patternq.infrastructure.settings import PRIVACY_POLICY_PATH

URL_PATTERN = re.compile(
    r"(?:https?://|www\.)[^\s]+|\b[a-z0-9][a-z0-9-]*(?:\.[a-z0-9-]+)*\.[a-z]{2,}\b(?:/[^\s]*)?",
    re.IGNORECASE,
)
# @brand style social handles (an email has already been replaced by then)
HANDLE_PATTERN = re.compile(r"(?<![\w.@])@[a-z0-9_][a-z0-9_.]*[a-z0-9_]", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# 7+ digits with optional separators, optionally prefixed by a country code
PHONE_PATTERN = re.compile(r"\+?\(?\d{1,4}\)?(?:[-.\s]?\(?\d{2,4}\)?){2,4}\d")
PRICE_PATTERN = re.compile(r"[$€£¥]\s?\d[\d,.]*|\d[\d,.]*\s?(?:%|percent\b|usd\b|eur\b)", re.IGNORECASE)
DIGIT_RUN_PATTERN = re.compile(r"\d{2,}")
# Single-digit claims: "3x faster", "5 stars", "7 days"
NUMERIC_CLAIM_PATTERN = re.compile(
    r"\b\d+(?:\.\d+)?\s?(?:x|stars?|steps?|days?|hours?|minutes?|weeks?|months?|years?)\b", re.IGNORECASE
)

URL_PLACEHOLDER = "[link]"
EMAIL_PLACEHOLDER = "[email]"
PHONE_PLACEHOLDER = "[phone]"
HANDLE_PLACEHOLDER = "[handle]"
NUMBER_PLACEHOLDER = "[number]"


def redact(value: str | None) -> str:
    """
    Return a stable hash representation of a sensitive string.
    """
    if not value:
        return "hash:missing"
    digest = sha256(value.encode("utf-8")).hexdigest()[:12]
    return f"hash:{digest}"


def find_contact_info(text: str | None) -> list[str]:
    """Kinds of contact information present in text ("email", "phone", "url", "handle")."""
    if not text:
        return []
    found = []
    if EMAIL_PATTERN.search(text):
        found.append("email")
    if PHONE_PATTERN.search(text):
        found.append("phone")
    without_emails = EMAIL_PATTERN.sub(" ", text)
    if URL_PATTERN.search(without_emails):
        found.append("url")
    if HANDLE_PATTERN.search(without_emails):
        found.append("handle")
    return found


def scrub_literals(text: str | None) -> str:
    """
    Replace literal identifiers with neutral placeholders.

    Order matters: emails before URLs and handles (an email contains both
    shapes), phones before prices, remaining digit runs last.
    """
    if not text:
        return ""

    text = EMAIL_PATTERN.sub(EMAIL_PLACEHOLDER, text)
    text = URL_PATTERN.sub(URL_PLACEHOLDER, text)
    text = HANDLE_PATTERN.sub(HANDLE_PLACEHOLDER, text)
    text = PHONE_PATTERN.sub(PHONE_PLACEHOLDER, text)
    text = PRICE_PATTERN.sub(NUMBER_PLACEHOLDER, text)
    text = NUMERIC_CLAIM_PATTERN.sub(NUMBER_PLACEHOLDER, text)
    text = DIGIT_RUN_PATTERN.sub(NUMBER_PLACEHOLDER, text)
    return text


def scrub_contact_info(text: str | None) -> str:
    """Replace emails, URLs, handles and phone numbers only (labels keep their digits)."""
    if not text:
        return ""
    text = EMAIL_PATTERN.sub(EMAIL_PLACEHOLDER, text)
    text = URL_PATTERN.sub(URL_PLACEHOLDER, text)
    text = HANDLE_PATTERN.sub(HANDLE_PLACEHOLDER, text)
    return PHONE_PATTERN.sub(PHONE_PLACEHOLDER, text)


@lru_cache(maxsize=4)
def load_privacy_policy(path: Path = PRIVACY_POLICY_PATH) -> dict[str, Any]:
    """
    Load the privacy policy YAML (cached).

    Side Effects:
        - Reads policy file from filesystem on first call
    """
    with open(path, encoding="utf-8") as f:
        policy = yaml.safe_load(f) or {}
    policy.setdefault("brand_blocklist", [])
    policy.setdefault("sanitizer_allow", [])
    return policy


def brand_blocklist() -> tuple[str, ...]:
    return tuple(b.lower() for b in load_privacy_policy()["brand_blocklist"])


def brand_regex(brands: tuple[str, ...]) -> re.Pattern[str] | None:
    """Word-boundary, case-insensitive alternation over brand names."""
    if not brands:
        return None
    # Longest first so "burger king" wins over "king"-like prefixes
    alternation = "|".join(re.escape(b) for b in sorted(brands, key=len, reverse=True))
    return re.compile(rf"(?<![a-z0-9])(?:{alternation})(?![a-z0-9])", re.IGNORECASE)


def find_brands(text: str | None, brands: tuple[str, ...] | None = None) -> list[str]:
    """Blocklisted brand names present in text, lowercase, in first-seen order."""
    if not text:
        return []
    pattern = brand_regex(brands if brands is not None else brand_blocklist())
    if pattern is None:
        return []
    seen: list[str] = []
    for match in pattern.finditer(text):
        brand = match.group(0).lower()
        if brand not in seen:
            seen.append(brand)
    return seen


# Patterns that could be used for prompt injection via caller-supplied names
INJECTION_PATTERNS = [
    r"ignore\s+(previous|above|all)\s+instructions?",
    r"disregard\s+(previous|above|all)\s+instructions?",
    r"forget\s+(previous|above|all)\s+instructions?",
    r"new\s+instructions?:",
    r"system\s*:",
    r"assistant\s*:",
    r"user\s*:",
    r"\[INST\]",
    r"\[/INST\]",
    r"<\|im_start\|>",
    r"<\|im_end\|>",
]
INJECTION_REGEX = re.compile("|".join(INJECTION_PATTERNS), re.IGNORECASE)


def sanitize_for_prompt(text: str | None, max_length: int = 100) -> str:
    """
    Sanitize caller-provided text (pattern names) before including it in a prompt.

    Removes known injection patterns, truncates, and drops characters that
    could break the surrounding prompt format (quotes included, since names
    are rendered inside double quotes).
    """
    if not text:
        return ""

    text = text[:max_length]
    text = INJECTION_REGEX.sub("[REDACTED]", text)
    text = re.sub(r"[<>{}|\\\"\n\r]", "", text)

    return text.strip()
