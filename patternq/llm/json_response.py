"""Helpers for pulling JSON out of free-form model answers."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def first_json_object(response_text: str | None) -> dict[str, Any]:
    """
    Return the first JSON object embedded in a model answer.

    Tolerates markdown code fences and prose around the object.

    Raises:
        ValueError: If no JSON object can be decoded from the text
    """
    if not response_text:
        raise ValueError("empty model response")

    text = _FENCE_RE.sub("", response_text)
    decoder = json.JSONDecoder()

    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)

    raise ValueError("no JSON object in model response")


def excerpt(response_text: str | None, max_chars: int) -> str:
    """Truncated single-line excerpt of a model answer for logs."""
    if not response_text:
        return ""
    flat = " ".join(response_text.split())
    return flat if len(flat) <= max_chars else flat[:max_chars] + "..."
