"""
Relevance Ranker - orders an owner's patterns for a generation context.

Pure and deterministic given `now`. Score is additive:

    category match                +25
    industry match                +20
    platform match                +15   (else pattern platform "general" +5)
    engagement tier               top-1 +15, top-5 +12, top-10 +8, top-25 +4
    last used < 7 days ago        +10   (< 30 days +5, never used 0)
    usage_count > 10              +5    (> 5 +3, > 0 +1)

Query fields left as None never match. Ties keep input order.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from patternq.config import RANKING_DEFAULT_LIMIT, RANKING_RECENT_DAYS, RANKING_STALE_DAYS
from patternq.patterns.models import GENERAL_PLATFORM, EngagementTier, Pattern, PatternQuery, utc_now

CATEGORY_WEIGHT = 25
INDUSTRY_WEIGHT = 20
PLATFORM_WEIGHT = 15
GENERAL_PLATFORM_WEIGHT = 5

TIER_WEIGHTS = {
    EngagementTier.TOP_1.value: 15,
    EngagementTier.TOP_5.value: 12,
    EngagementTier.TOP_10.value: 8,
    EngagementTier.TOP_25.value: 4,
}


def _recency_points(last_used_at: datetime | None, now: datetime) -> int:
    if last_used_at is None:
        return 0
    age = now - last_used_at
    if age < timedelta(days=RANKING_RECENT_DAYS):
        return 10
    if age < timedelta(days=RANKING_STALE_DAYS):
        return 5
    return 0


def _usage_points(usage_count: int) -> int:
    if usage_count > 10:
        return 5
    if usage_count > 5:
        return 3
    if usage_count > 0:
        return 1
    return 0


def score_pattern(pattern: Pattern, query: PatternQuery, now: datetime | None = None) -> int:
    """Relevance score of one pattern for a query."""
    now = now or utc_now()
    score = 0

    if query.category is not None and pattern.category == query.category:
        score += CATEGORY_WEIGHT

    if query.industry is not None and pattern.industry == query.industry:
        score += INDUSTRY_WEIGHT

    if query.platform is not None and pattern.platform == query.platform:
        score += PLATFORM_WEIGHT
    elif pattern.platform == GENERAL_PLATFORM:
        score += GENERAL_PLATFORM_WEIGHT

    tier = pattern.engagement_tier
    if tier is not None:
        score += TIER_WEIGHTS.get(tier if isinstance(tier, str) else tier.value, 0)

    score += _recency_points(pattern.last_used_at, now)
    score += _usage_points(pattern.usage_count)
    return score


def rank(
    patterns: Sequence[Pattern],
    query: PatternQuery,
    limit: int = RANKING_DEFAULT_LIMIT,
    now: datetime | None = None,
) -> list[Pattern]:
    """
    Return the `limit` most relevant patterns, best first.

    Fewer candidates than `limit` returns them all; `limit <= 0` returns [].
    """
    if limit <= 0 or not patterns:
        return []

    now = now or utc_now()
    # sorted() is stable: equal scores keep input order
    ranked = sorted(patterns, key=lambda p: -score_pattern(p, query, now))
    return ranked[:limit]
