"""Shared vision LLM call with timeout and retry logic.

Both the PrivacyGate and the PatternExtractor reach the model through
call_vision_llm(). Each wraps it in its own try/except to implement its
final-failure policy (fail closed vs ExtractionTransportError).

Retries up to LLM_MAX_RETRIES times with exponential backoff, and only on
transport errors (TimeoutError, ConnectionError, OSError). A model answer,
however unusable, is never retried here.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from functools import lru_cache

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from patternq.config import (
    GEMINI_MAX_TOKENS,
    LLM_MAX_RETRIES,
    LLM_MAX_WORKERS,
    LLM_RETRY_MAX_WAIT,
    LLM_RETRY_MIN_WAIT,
    LLM_TIMEOUT_SECONDS,
)
from patternq.llm.gemini import build_image_part, get_gemini_model
from patternq.observability.logging import get_logger
from patternq.observability.telemetry import counter

logger = get_logger(__name__)

TRANSIENT_ERRORS = (TimeoutError, ConnectionError, OSError)


@lru_cache(maxsize=1)
def _get_executor() -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=LLM_MAX_WORKERS, thread_name_prefix="patternq-llm")


def _generate(model, contents: list, generation_config: dict) -> str:
    from google.api_core.exceptions import (
        DeadlineExceeded,
        InternalServerError,
        ResourceExhausted,
        ServiceUnavailable,
    )

    try:
        response = model.generate_content(contents, generation_config=generation_config)
        return response.text or ""
    except DeadlineExceeded as e:
        raise TimeoutError(f"LLM call timed out: {e}") from e
    except ServiceUnavailable as e:
        raise ConnectionError(f"LLM service unavailable: {e}") from e
    except ResourceExhausted as e:
        raise OSError(f"LLM rate limited: {e}") from e
    except InternalServerError as e:
        raise ConnectionError(f"LLM internal error: {e}") from e


@retry(
    stop=stop_after_attempt(LLM_MAX_RETRIES),
    wait=wait_exponential(multiplier=1, min=LLM_RETRY_MIN_WAIT, max=LLM_RETRY_MAX_WAIT),
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    reraise=True,
)
def call_vision_llm(
    instruction: str,
    data: bytes,
    mime_type: str,
    model_name: str,
    temperature: float,
    counter_prefix: str = "llm",
) -> str:
    """Send an instruction plus one inline image to Gemini and return the text.

    The call runs on a worker thread and is abandoned (not killed) after
    LLM_TIMEOUT_SECONDS; the in-flight request is left to finish on its own.

    Raises:
        TimeoutError: On deadline exceeded or local timeout (retryable).
        ConnectionError: On service unavailable or internal error (retryable).
        OSError: On resource exhausted / rate limited (retryable).
        Exception: On other errors (not retried, caller handles).
    """
    model = get_gemini_model(model_name)
    contents = [instruction, build_image_part(data, mime_type)]
    generation_config = {
        "temperature": temperature,
        "max_output_tokens": GEMINI_MAX_TOKENS,
        "response_mime_type": "application/json",
    }

    future = _get_executor().submit(_generate, model, contents, generation_config)
    try:
        return future.result(timeout=LLM_TIMEOUT_SECONDS)
    except FutureTimeoutError as e:
        counter(f"patterns.{counter_prefix}.timeout")
        logger.warning("Vision LLM call timed out after %ds (model=%s)", LLM_TIMEOUT_SECONDS, model_name)
        raise TimeoutError(f"LLM call timed out after {LLM_TIMEOUT_SECONDS}s") from e
    except TRANSIENT_ERRORS as e:
        counter(f"patterns.{counter_prefix}.transient_error")
        logger.warning("Vision LLM transient error, will retry: %s", e)
        raise
    except Exception as e:
        logger.error("Vision LLM call failed: %s", e)
        raise
