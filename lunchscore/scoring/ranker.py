from __future__ import annotations

import logging

from ..context.models import UserRecommendationContext
from ..models import Restaurant
from .compatibility import calculate_restaurant_compatibility

logger = logging.getLogger(__name__)

DEFAULT_PREFILTER_CAP = 20


def score_candidates(
    context: UserRecommendationContext, restaurants: list[Restaurant],
) -> list[tuple[Restaurant, float]]:
    """Score every candidate and order them best first.

    ``sorted`` is stable with ``reverse=True`` too, so equal scores keep
    their input order.
    """
    scored = [(r, calculate_restaurant_compatibility(context, r)) for r in restaurants]
    return sorted(scored, key=lambda pair: pair[1], reverse=True)


def rank_top_n(
    context: UserRecommendationContext,
    restaurants: list[Restaurant],
    n: int = DEFAULT_PREFILTER_CAP,
) -> list[Restaurant]:
    """Cap *restaurants* at the *n* most compatible before an LLM call.

    Lists already within the cap come back untouched, in their original
    order.
    """
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    if len(restaurants) <= n:
        return restaurants

    ranked = score_candidates(context, restaurants)
    logger.debug("Pre-filtered %d candidates down to %d", len(restaurants), n)
    return [r for r, _ in ranked[:n]]
