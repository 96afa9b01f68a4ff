"""
Gemini Model Manager - cached model instances per model name.

The privacy scan and the pattern extractor use different models (flash for
the cheap scan, pro for extraction quality); each name gets one shared
instance.

Supports two backends:
  1. Vertex AI SDK (production): uses GOOGLE_CLOUD_PROJECT + service account
  2. google-generativeai (local dev): uses GOOGLE_API_KEY
"""

from __future__ import annotations

import os
from functools import lru_cache

from patternq.infrastructure.env import ensure_env_loaded, get_optional_env
from patternq.infrastructure.settings import GEMINI_LOCATION, GOOGLE_CLOUD_PROJECT
from patternq.observability.logging import get_logger

logger = get_logger(__name__)

# Track which backend is available so callers can build the right image part
_backend: str | None = None  # "vertexai" or "genai"


class GeminiInitializationError(RuntimeError):
    """Raised when Gemini model cannot be initialized."""


def get_backend() -> str | None:
    """Backend chosen by the last successful initialization."""
    return _backend


@lru_cache(maxsize=4)
def get_gemini_model(model_name: str):
    """
    Get or create the shared Gemini model instance for model_name.

    Tries Vertex AI SDK first (production). Falls back to google-generativeai
    with GOOGLE_API_KEY for local development.

    Raises:
        GeminiInitializationError: If model cannot be initialized
    """
    global _backend
    ensure_env_loaded()
    # Read env vars fresh (settings may have been imported before dotenv ran)
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    location = os.getenv("GEMINI_LOCATION", "") or GEMINI_LOCATION or "us-central1"

    try:
        import vertexai
        from vertexai.generative_models import GenerativeModel

        if project:
            vertexai.init(project=project, location=location)
            model = GenerativeModel(model_name)
            _backend = "vertexai"

            logger.info(
                "Initialized Gemini model (Vertex AI): project=%s, location=%s, model=%s",
                project,
                location,
                model_name,
            )
            return model

        logger.info("GOOGLE_CLOUD_PROJECT not set, trying google-generativeai fallback")

    except ImportError:
        logger.info("Vertex AI SDK not installed, trying google-generativeai fallback")

    try:
        import google.generativeai as genai

        api_key = get_optional_env("GOOGLE_API_KEY")
        if not api_key:
            raise GeminiInitializationError(
                "Neither GOOGLE_CLOUD_PROJECT nor GOOGLE_API_KEY available. "
                "Configure Vertex AI or set GOOGLE_API_KEY."
            )

        genai.configure(api_key=api_key)
        model = genai.GenerativeModel(model_name)
        _backend = "genai"

        logger.info("Initialized Gemini model (google-generativeai): model=%s", model_name)
        return model

    except ImportError as e:
        raise GeminiInitializationError(
            "No Gemini SDK available. Install google-cloud-aiplatform or google-generativeai."
        ) from e


def build_image_part(data: bytes, mime_type: str) -> object:
    """Inline image payload in the shape the active backend expects."""
    if _backend == "vertexai":
        from vertexai.generative_models import Part

        return Part.from_data(data=data, mime_type=mime_type)
    return {"mime_type": mime_type, "data": data}


def clear_model_cache() -> None:
    """
    Clear the cached model instances.

    Useful for testing or when reconfiguration is needed.
    """
    get_gemini_model.cache_clear()
    logger.info("Cleared Gemini model cache")
