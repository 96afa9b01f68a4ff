"""
Application-wide settings and environment configuration
"""

from __future__ import annotations

import os
from pathlib import Path

# Project paths
PATTERNQ_ROOT = Path(__file__).parent.parent

# Google Cloud / Gemini
GOOGLE_CLOUD_PROJECT = os.getenv("GOOGLE_CLOUD_PROJECT", "")
GEMINI_LOCATION = os.getenv("GEMINI_LOCATION", "us-central1")
# Pro model for extraction quality, flash for the cheaper privacy scan
GEMINI_EXTRACTION_MODEL = os.getenv("GEMINI_EXTRACTION_MODEL", "gemini-2.5-pro")
GEMINI_PRIVACY_MODEL = os.getenv("GEMINI_PRIVACY_MODEL", "gemini-2.5-flash")
GEMINI_MAX_TOKENS = int(os.getenv("GEMINI_MAX_TOKENS", "2048"))

# Privacy policy (brand blocklist, contact patterns)
PRIVACY_POLICY_PATH = PATTERNQ_ROOT / "policy" / "privacy_policy.yaml"
