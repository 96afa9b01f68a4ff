"""
Prompt Formatter - renders ranked patterns as a text block for a generation prompt.

Deterministic; uses only abstract pattern fields and the caller's display
name (sanitized). Never renders ids, hashes or extraction flags.
"""

from __future__ import annotations

from collections.abc import Sequence

from patternq.patterns.models import EngagementTier, Pattern
from patternq.utils.redaction import sanitize_for_prompt

HEADER = (
    "LEARNED SUCCESS PATTERNS FROM HIGH-PERFORMING ADS:\n"
    "Use these proven patterns as inspiration for the ad design."
)
FOOTER = "Apply these patterns to create an effective ad while keeping the content original."

TIER_PERCENTILES = {
    EngagementTier.TOP_1.value: "1",
    EngagementTier.TOP_5.value: "5",
    EngagementTier.TOP_10.value: "10",
    EngagementTier.TOP_25.value: "25",
}


def _format_pattern(position: int, pattern: Pattern) -> str:
    layout = pattern.layout
    color = pattern.color_psychology
    hook = pattern.hook_pattern
    visuals = pattern.visual_elements

    hierarchy = " -> ".join(layout.visual_hierarchy) or "single-element"
    people = "with people" if visuals.human_presence else "no people"

    lines = [
        f'Pattern {position}: "{sanitize_for_prompt(pattern.name)}"',
        f"  Layout: {layout.structure} structure, {hierarchy} flow, {layout.whitespace_usage} whitespace",
        f"  Color Mood: {color.dominant_mood}, {color.color_scheme} scheme, {color.contrast_level} contrast",
        f"  Hook: {hook.hook_type} opening, {hook.headline_formula} headline, {hook.cta_style} CTA",
        f"  Visuals: {visuals.image_style} style, {visuals.product_visibility} product focus, {people}",
    ]

    tier = pattern.engagement_tier
    tier_value = tier.value if isinstance(tier, EngagementTier) else tier
    if tier_value in TIER_PERCENTILES:
        lines.append(f"  Performance: top {TIER_PERCENTILES[tier_value]} percentile")

    return "\n".join(lines)


def format_patterns(patterns: Sequence[Pattern]) -> str:
    """Render patterns for prompt injection. Empty input renders as ""."""
    if not patterns:
        return ""

    blocks = [_format_pattern(i, pattern) for i, pattern in enumerate(patterns, start=1)]
    return "\n\n".join([HEADER, *blocks, FOOTER])
