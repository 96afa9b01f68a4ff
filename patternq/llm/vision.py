"""
VisionModel capability.

The privacy gate and the extractor depend on this protocol, never on a
global client, so tests can inject a deterministic stub. Implementations are
untrusted and non-deterministic: the same image may get different answers.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from patternq.llm.retry import call_vision_llm


@runtime_checkable
class VisionModel(Protocol):
    def generate(
        self,
        instruction: str,
        data: bytes,
        mime_type: str,
        *,
        temperature: float,
        operation: str,
    ) -> str:
        """Return the model's text answer.

        Raises TimeoutError / ConnectionError / OSError for transport failures
        that survived retries.
        """
        ...


class GeminiVisionModel:
    """VisionModel backed by Gemini (Vertex AI or google-generativeai)."""

    def __init__(self, model_name: str):
        self.model_name = model_name

    def generate(
        self,
        instruction: str,
        data: bytes,
        mime_type: str,
        *,
        temperature: float,
        operation: str,
    ) -> str:
        return call_vision_llm(
            instruction,
            data,
            mime_type,
            model_name=self.model_name,
            temperature=temperature,
            counter_prefix=operation,
        )

    def __repr__(self) -> str:
        return f"GeminiVisionModel(model_name={self.model_name!r})"
