"""
Centralized environment variable loader for PatternQ.

Callers that rely on a local .env file (e.g. GOOGLE_API_KEY during development)
call ensure_env_loaded() once before the Gemini model is first initialized.

Side Effects:
    - Loads .env file from the nearest parent directory that has one

Usage:
    from patternq.infrastructure.env import ensure_env_loaded, get_optional_env

    ensure_env_loaded()
    api_key = get_optional_env("GOOGLE_API_KEY")
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

_ENV_LOADED = False


def ensure_env_loaded(env_path: Path | None = None) -> None:
    """
    Ensure .env file is loaded exactly once.

    Args:
        env_path: Optional path to .env file. If None, searches parent directories.

    Side Effects:
        - Loads environment variables from .env file (existing vars win)
        - Sets module-level flag to prevent double-loading
    """
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    if env_path is None:
        current = Path(__file__).parent
        while current != current.parent:
            env_candidate = current / ".env"
            if env_candidate.exists():
                env_path = env_candidate
                break
            current = current.parent

    if env_path and env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()
    _ENV_LOADED = True


def get_optional_env(key: str, default: str = "") -> str:
    """
    Get optional environment variable with default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default
    """
    ensure_env_loaded()
    return os.getenv(key, default)
