from __future__ import annotations

from ..context.models import (
    BudgetConstraints,
    LocationContext,
    TemporalContext,
    UserRecommendationContext,
)
from ..models import Restaurant

BUDGET_WEIGHT = 0.25
DIETARY_WEIGHT = 0.25
LOCATION_WEIGHT = 0.20
QUALITY_WEIGHT = 0.15
TEMPORAL_WEIGHT = 0.10
PRICE_LEVEL_WEIGHT = 0.05

DEFAULT_MEAL_COST = 20.0
BELOW_BUDGET_SCORE = 0.7
OVER_BUDGET_CAP = 0.5

DEFAULT_RATING = 3.0
MAX_RATING = 5.0

NEUTRAL_SCORE = 0.5
DEFAULT_PREFERRED_DISTANCE_KM = 2.0
DEFAULT_MAX_DISTANCE_KM = 10.0

PRICE_LEVEL_COST_ANCHORS: dict[int, float] = {1: 10.0, 2: 20.0, 3: 40.0, 4: 70.0}


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _closeness(value: float, preferred: float) -> float:
    if preferred <= 0:
        return 1.0 if value == preferred else 0.0
    return _clamp(1.0 - abs(value - preferred) / preferred, 0.0, 1.0)


def budget_compatibility(budget: BudgetConstraints, restaurant: Restaurant) -> float:
    """Score how well the restaurant's typical meal cost fits the budget window."""
    preferred = budget.preferred
    cost = restaurant.average_meal_cost
    if cost is None:
        cost = preferred
    min_budget = budget.min
    max_budget = budget.max

    if min_budget <= cost <= max_budget:
        return _closeness(cost, preferred)
    if cost < min_budget:
        # Too cheap can signal lower quality
        return BELOW_BUDGET_SCORE
    if max_budget <= 0:
        return 0.0
    return _clamp(1.0 - (cost - max_budget) / max_budget, 0.0, OVER_BUDGET_CAP)


def dietary_compatibility(restrictions: list[str], restaurant: Restaurant) -> float:
    if not restrictions:
        return 1.0

    total = 0.0
    for restriction in restrictions:
        if restriction in restaurant.supported_dietary_restrictions:
            total += 1.0
        else:
            total += restaurant.dietary_compatibility_scores.get(restriction, 0.0)
    return total / len(restrictions)


def location_compatibility(location: LocationContext, restaurant: Restaurant) -> float:
    if not location.has_location or restaurant.distance_from_user is None:
        return NEUTRAL_SCORE

    distance = restaurant.distance_from_user
    preferred = location.preferred_distance_threshold or DEFAULT_PREFERRED_DISTANCE_KM
    maximum = location.max_distance_threshold or DEFAULT_MAX_DISTANCE_KM

    if distance <= preferred:
        return 1.0
    if distance <= maximum:
        return 1.0 - (distance - preferred) / (maximum - preferred)
    return 0.0


def quality_compatibility(restaurant: Restaurant) -> float:
    rating = restaurant.rating if restaurant.rating is not None else DEFAULT_RATING
    return rating / MAX_RATING


def temporal_compatibility(temporal: TemporalContext, restaurant: Restaurant) -> float:
    # Open/closed only; meal-time appropriateness is not scored here.
    return 1.0 if restaurant.is_open_now else 0.0


def price_level_compatibility(budget: BudgetConstraints, price_level: int | None) -> float:
    if price_level is None:
        return NEUTRAL_SCORE

    # Level 0 (free) has no anchor and falls back to the default meal cost
    expected = PRICE_LEVEL_COST_ANCHORS.get(price_level, DEFAULT_MEAL_COST)
    return _closeness(expected, budget.preferred)


def score_breakdown(
    context: UserRecommendationContext, restaurant: Restaurant,
) -> dict[str, float]:
    """Return each weighted factor's raw sub-score plus the clamped total."""
    parts = {
        "budget": budget_compatibility(context.budget_constraints, restaurant),
        "dietary": dietary_compatibility(
            context.dietary_preferences.restrictions, restaurant,
        ),
        "location": location_compatibility(context.location_context, restaurant),
        "quality": quality_compatibility(restaurant),
        "temporal": temporal_compatibility(context.temporal_context, restaurant),
        "price_level": price_level_compatibility(
            context.budget_constraints, restaurant.price_level,
        ),
    }
    total = (
        BUDGET_WEIGHT * parts["budget"]
        + DIETARY_WEIGHT * parts["dietary"]
        + LOCATION_WEIGHT * parts["location"]
        + QUALITY_WEIGHT * parts["quality"]
        + TEMPORAL_WEIGHT * parts["temporal"]
        + PRICE_LEVEL_WEIGHT * parts["price_level"]
    )
    parts["total"] = _clamp(total, 0.0, 1.0)
    return parts


def calculate_restaurant_compatibility(
    context: UserRecommendationContext, restaurant: Restaurant,
) -> float:
    """Weighted [0, 1] compatibility of a restaurant with a user context."""
    return score_breakdown(context, restaurant)["total"]


score = calculate_restaurant_compatibility
