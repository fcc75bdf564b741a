from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol

from ..models import MealRecord, Position, UserPreferences
from .cache import ContextCache
from .models import (
    BudgetConstraints,
    DietaryPreferences,
    LocationContext,
    MealTypeFrequency,
    PreferenceScores,
    TemporalContext,
    UserRecommendationContext,
)

logger = logging.getLogger(__name__)

HISTORY_WINDOW = timedelta(days=7)
PATTERN_WINDOW = timedelta(days=30)
BEHAVIOUR_WINDOW = timedelta(days=90)

DEFAULT_AVG_MEAL_COST = 20.0
DEFAULT_MAX_MEAL_COST = 50.0
MIN_BUDGET_RATIO = 0.5
MAX_BUDGET_RATIO = 0.4
MIN_BUDGET_FLOOR = 5.0
BUDGET_CEILING = 100.0

DEFAULT_SEARCH_RADIUS_KM = 5.0
PREFERRED_DISTANCE_KM = 2.0
MAX_DISTANCE_KM = 10.0
DEFAULT_TRANSPORT_MODE = "walking"

KNOWN_MEAL_TYPES = 8
FIXED_FAMILIARITY = 0.6
FIXED_HEALTH_CONSCIOUSNESS = 0.6

# (start hour inclusive, end hour exclusive, meal time, appropriate meal types)
MEAL_TIME_BUCKETS: list[tuple[int, int, str, list[str]]] = [
    (6, 10, "breakfast", ["breakfast", "snack"]),
    (10, 15, "lunch", ["lunch", "dining_out"]),
    (15, 18, "afternoon", ["snack", "takeout"]),
    (18, 22, "dinner", ["dinner", "dining_out"]),
]
LATE_NIGHT = ("late_night", ["takeout", "delivery"])


class ContextAggregationError(RuntimeError):
    """Raised when the persisted data a context is built from cannot be read."""


class MealDataSource(Protocol):
    async def get_user_preferences(self, user_id: int) -> str | None: ...

    async def get_meals_in_range(
        self, user_id: int, start: datetime, end: datetime,
    ) -> list[MealRecord]: ...


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def is_rush_hour(hour: int) -> bool:
    return 7 <= hour < 10 or 17 <= hour < 20


def week_start(now: datetime) -> datetime:
    """Midnight of the most recent Monday."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=now.weekday())


def format_relative_time(then: datetime, now: datetime) -> str:
    delta = now - then
    if delta.days > 0:
        return f"{delta.days}d ago"
    hours = delta.seconds // 3600
    if hours > 0:
        return f"{hours}h ago"
    return f"{max(delta.seconds // 60, 0)}m ago"


def build_dietary_preferences(
    prefs: UserPreferences, recent_meals: list[MealRecord],
) -> DietaryPreferences:
    meal_types = Counter(m.meal_type for m in recent_meals)
    return DietaryPreferences(
        restrictions=list(prefs.dietary_restrictions),
        preferences=list(prefs.dietary_preferences),
        allergies=list(prefs.allergens),
        # Meal records carry no cuisine, so there is nothing to mine yet.
        preferred_cuisines=[],
        preferred_meal_types=[
            MealTypeFrequency(type=t, frequency=n) for t, n in meal_types.items()
        ],
    )


def build_budget_constraints(
    prefs: UserPreferences,
    week_meals: list[MealRecord],
    recent_meals: list[MealRecord],
) -> BudgetConstraints:
    weekly_budget = prefs.weekly_budget
    spent = sum(m.cost for m in week_meals)

    costs = [m.cost for m in recent_meals]
    avg_cost = sum(costs) / len(costs) if costs else DEFAULT_AVG_MEAL_COST
    max_cost = max(costs) if costs else DEFAULT_MAX_MEAL_COST

    return BudgetConstraints(
        weekly_budget=weekly_budget,
        current_week_spent=spent,
        remaining_weekly_budget=weekly_budget - spent,
        avg_meal_cost=avg_cost,
        max_meal_cost=max_cost,
        min=_clamp(avg_cost * MIN_BUDGET_RATIO, MIN_BUDGET_FLOOR, BUDGET_CEILING),
        max=_clamp(weekly_budget * MAX_BUDGET_RATIO, avg_cost, BUDGET_CEILING),
        preferred=avg_cost,
    )


def build_location_context(position: Position | None) -> LocationContext:
    if position is None:
        return LocationContext(
            has_location=False,
            search_radius=DEFAULT_SEARCH_RADIUS_KM,
            transport_mode=DEFAULT_TRANSPORT_MODE,
        )
    return LocationContext(
        has_location=True,
        latitude=position.latitude,
        longitude=position.longitude,
        accuracy=position.accuracy,
        timestamp=position.timestamp,
        search_radius=DEFAULT_SEARCH_RADIUS_KM,
        preferred_distance_threshold=PREFERRED_DISTANCE_KM,
        max_distance_threshold=MAX_DISTANCE_KM,
        transport_mode=DEFAULT_TRANSPORT_MODE,
    )


def build_temporal_context(now: datetime) -> TemporalContext:
    hour = now.hour
    day_of_week = now.isoweekday()

    meal_time, appropriate = LATE_NIGHT
    for start, end, name, types in MEAL_TIME_BUCKETS:
        if start <= hour < end:
            meal_time, appropriate = name, types
            break

    return TemporalContext(
        current_time=now,
        hour=hour,
        day_of_week=day_of_week,
        meal_time=meal_time,
        appropriate_meal_types=list(appropriate),
        is_weekend=day_of_week >= 6,
        is_business_hours=9 <= hour < 18,
        is_rush_hour=is_rush_hour(hour),
    )


def build_preference_scores(history: list[MealRecord]) -> PreferenceScores:
    if not history:
        return PreferenceScores()

    costs = [m.cost for m in history]
    avg_cost = sum(costs) / len(costs)
    max_cost = max(costs)
    price_sensitivity = (max_cost - avg_cost) / max_cost if max_cost > 0 else 0.0

    distinct_types = {m.meal_type for m in history}
    rush = sum(1 for m in history if is_rush_hour(m.date.hour)) / len(history)

    return PreferenceScores(
        price_sensitivity=price_sensitivity,
        quality_over_price=1.0 - price_sensitivity,
        variety_seeking=min(1.0, len(distinct_types) / KNOWN_MEAL_TYPES),
        time_sensitivity=rush,
        convenience_over_distance=rush,
        familiarity_over_novelty=FIXED_FAMILIARITY,
        health_consciousness=FIXED_HEALTH_CONSCIOUSNESS,
    )


def format_meal_history(meals: list[MealRecord], now: datetime) -> list[str]:
    return [
        f"{m.display_meal_type}: ${m.cost:.2f} ({format_relative_time(m.date, now)})"
        for m in meals
    ]


class ContextAggregator:
    """Builds ``UserRecommendationContext`` snapshots from stored user data."""

    def __init__(
        self,
        source: MealDataSource,
        cache: ContextCache | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._source = source
        self._cache = cache
        self._clock = clock

    async def generate_context(
        self,
        user_id: int,
        position: Position | None = None,
        filters: dict[str, Any] | None = None,
    ) -> UserRecommendationContext:
        now = self._clock()
        try:
            raw_prefs, week_meals, history, recent, behaviour = await asyncio.gather(
                self._source.get_user_preferences(user_id),
                self._source.get_meals_in_range(
                    user_id, week_start(now), week_start(now) + timedelta(days=7),
                ),
                self._source.get_meals_in_range(user_id, now - HISTORY_WINDOW, now),
                self._source.get_meals_in_range(user_id, now - PATTERN_WINDOW, now),
                self._source.get_meals_in_range(user_id, now - BEHAVIOUR_WINDOW, now),
            )
        except Exception as exc:
            logger.exception("Failed to read user data for context (user %s)", user_id)
            raise ContextAggregationError(
                f"Failed to generate user context for user {user_id}: {exc}"
            ) from exc

        prefs = UserPreferences.from_json(raw_prefs)

        context = UserRecommendationContext(
            user_id=user_id,
            dietary_preferences=build_dietary_preferences(prefs, recent),
            budget_constraints=build_budget_constraints(prefs, week_meals, recent),
            location_context=build_location_context(position),
            recent_meal_history=format_meal_history(history, now),
            temporal_context=build_temporal_context(now),
            preference_scores=build_preference_scores(behaviour),
            applied_filters=dict(filters or {}),
            context_generated_at=now,
        )
        logger.debug(
            "Generated context for user %s (%d meals in 90 days)", user_id, len(behaviour),
        )
        return context

    async def get_or_generate(
        self,
        user_id: int,
        position: Position | None = None,
        filters: dict[str, Any] | None = None,
    ) -> UserRecommendationContext:
        """Reuse a fresh cached context when one exists, else build a new one."""
        if self._cache is None:
            return await self.generate_context(user_id, position, filters)

        key = {"user_id": user_id, "position": position, "filters": filters}
        cached = self._cache.get(key)
        if cached is not None and cached.is_fresh(self._clock()):
            return cached

        context = await self.generate_context(user_id, position, filters)
        self._cache.set(key, context)
        return context
