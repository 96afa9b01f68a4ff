"""PatternQ - learn abstract success patterns from high-performing ads"""

from __future__ import annotations

__version__ = "0.1.0"


# Lazy imports so importing patternq.config does not pull in the Gemini SDKs
def __getattr__(name: str):
    """
    Lazy imports to avoid loading heavy dependencies when only importing lightweight modules.
    """
    if name in ("Pattern", "PatternMetadata", "PatternQuery"):
        from patternq.patterns import models

        return getattr(models, name)

    if name == "PatternService":
        from patternq.patterns.service import PatternService

        return PatternService

    if name in ("rank", "score_pattern"):
        from patternq.patterns import ranker

        return getattr(ranker, name)

    if name == "format_patterns":
        from patternq.patterns.formatter import format_patterns

        return format_patterns

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "Pattern",
    "PatternMetadata",
    "PatternQuery",
    "PatternService",
    "format_patterns",
    "rank",
    "score_pattern",
]
