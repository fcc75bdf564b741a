from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta

import pandas as pd
import pytest

from lunchscore.context.aggregator import (
    ContextAggregationError,
    ContextAggregator,
    build_temporal_context,
    format_relative_time,
    week_start,
)
from lunchscore.context.cache import ContextCache
from lunchscore.context.models import PreferenceScores
from lunchscore.models import Position
from lunchscore.storage.data_store import MealStore

# Wednesday lunchtime
NOW = datetime(2026, 3, 4, 12, 30)

PREFS = json.dumps({
    "weeklyBudget": 200.0,
    "dietaryRestrictions": ["vegetarian"],
    "dietaryPreferences": ["spicy"],
    "allergies": ["peanuts"],
})

MEALS = pd.DataFrame([
    {"user_id": 1, "meal_type": "lunch", "cost": 15.0, "date": datetime(2026, 3, 3, 12, 0)},
    {"user_id": 1, "meal_type": "dinner", "cost": 25.0, "date": datetime(2026, 3, 2, 18, 30)},
    {"user_id": 1, "meal_type": "breakfast", "cost": 8.0, "date": datetime(2026, 2, 20, 8, 0)},
    {"user_id": 1, "meal_type": "lunch", "cost": 40.0, "date": datetime(2025, 12, 20, 12, 0)},
    {"user_id": 2, "meal_type": "dinner", "cost": 99.0, "date": datetime(2026, 3, 3, 19, 0)},
])


def _run(coro):
    return asyncio.run(coro)


def _aggregator(store: MealStore | None = None, **kwargs) -> ContextAggregator:
    store = store or MealStore(meals=MEALS, preferences={1: PREFS})
    return ContextAggregator(store, clock=lambda: NOW, **kwargs)


class _BrokenStore:
    async def get_user_preferences(self, user_id):
        return None

    async def get_meals_in_range(self, user_id, start, end):
        raise OSError("database is locked")


# ── New users ────────────────────────────────────────────────────────────


def test_new_user_gets_default_preference_scores():
    context = _run(_aggregator(MealStore()).generate_context(7))
    scores = context.preference_scores
    assert scores == PreferenceScores()
    assert scores.quality_over_price == 0.7
    assert scores.convenience_over_distance == 0.6
    assert scores.familiarity_over_novelty == 0.5
    assert scores.health_consciousness == 0.6
    assert scores.price_sensitivity == 0.7
    assert scores.variety_seeking == 0.5
    assert scores.time_sensitivity == 0.6


def test_new_user_budget_defaults():
    budget = _run(_aggregator(MealStore()).generate_context(7)).budget_constraints
    assert budget.weekly_budget == 200.0
    assert budget.current_week_spent == 0.0
    assert budget.remaining_weekly_budget == 200.0
    assert budget.avg_meal_cost == 20.0
    assert budget.max_meal_cost == 50.0
    assert budget.min == 10.0
    assert budget.max == 80.0
    assert budget.preferred == 20.0


def test_new_user_has_empty_dietary_preferences():
    dietary = _run(_aggregator(MealStore()).generate_context(7)).dietary_preferences
    assert dietary.restrictions == []
    assert dietary.allergies == []
    assert dietary.preferred_meal_types == []
    assert dietary.preferred_cuisines == []


def test_malformed_preferences_fall_back_to_defaults():
    store = MealStore(preferences={3: "{not json"})
    context = _run(_aggregator(store).generate_context(3))
    assert context.dietary_preferences.restrictions == []
    assert context.budget_constraints.weekly_budget == 200.0


# ── Users with history ───────────────────────────────────────────────────


def test_dietary_preferences_from_stored_prefs_and_meals():
    dietary = _run(_aggregator().generate_context(1)).dietary_preferences
    assert dietary.restrictions == ["vegetarian"]
    assert dietary.preferences == ["spicy"]
    assert dietary.allergies == ["peanuts"]
    assert dietary.preferred_cuisines == []
    freq = {m.type: m.frequency for m in dietary.preferred_meal_types}
    assert freq == {"lunch": 1, "dinner": 1, "breakfast": 1}


def test_budget_constraints_from_history():
    budget = _run(_aggregator().generate_context(1)).budget_constraints
    assert budget.current_week_spent == pytest.approx(40.0)
    assert budget.remaining_weekly_budget == pytest.approx(160.0)
    assert budget.avg_meal_cost == pytest.approx(16.0)
    assert budget.max_meal_cost == pytest.approx(25.0)
    assert budget.min == pytest.approx(8.0)
    assert budget.max == pytest.approx(80.0)
    assert budget.preferred == pytest.approx(16.0)


def test_budget_max_is_capped():
    store = MealStore(preferences={1: json.dumps({"weeklyBudget": 1000.0})})
    budget = _run(_aggregator(store).generate_context(1)).budget_constraints
    assert budget.max == 100.0


def test_preference_scores_from_history():
    scores = _run(_aggregator().generate_context(1)).preference_scores
    # 90-day costs 15, 25, 8, 40: avg 22, max 40
    assert scores.price_sensitivity == pytest.approx(0.45)
    assert scores.quality_over_price == pytest.approx(0.55)
    assert scores.variety_seeking == pytest.approx(3 / 8)
    # 18:30 and 08:00 fall in rush hour
    assert scores.time_sensitivity == pytest.approx(0.5)
    assert scores.convenience_over_distance == pytest.approx(0.5)
    assert scores.familiarity_over_novelty == 0.6
    assert scores.health_consciousness == 0.6


def test_recent_meal_history_strings():
    history = _run(_aggregator().generate_context(1)).recent_meal_history
    assert history == ["Lunch: $15.00 (1d ago)", "Dinner: $25.00 (1d ago)"]


def test_other_users_meals_are_ignored():
    budget = _run(_aggregator().generate_context(1)).budget_constraints
    assert budget.max_meal_cost != 99.0


# ── Location, temporal, misc ─────────────────────────────────────────────


def test_no_position_gives_default_radius():
    location = _run(_aggregator().generate_context(1)).location_context
    assert location.has_location is False
    assert location.search_radius == 5.0
    assert location.transport_mode == "walking"
    assert location.latitude is None


def test_position_embeds_fixed_thresholds():
    position = Position(latitude=37.77, longitude=-122.42, accuracy=12.0)
    location = _run(_aggregator().generate_context(1, position)).location_context
    assert location.has_location is True
    assert location.latitude == 37.77
    assert location.accuracy == 12.0
    assert location.preferred_distance_threshold == 2.0
    assert location.max_distance_threshold == 10.0


@pytest.mark.parametrize(
    "hour, meal_time",
    [
        (6, "breakfast"),
        (9, "breakfast"),
        (10, "lunch"),
        (14, "lunch"),
        (15, "afternoon"),
        (18, "dinner"),
        (21, "dinner"),
        (22, "late_night"),
        (3, "late_night"),
    ],
)
def test_meal_time_buckets(hour, meal_time):
    assert build_temporal_context(NOW.replace(hour=hour)).meal_time == meal_time


def test_temporal_flags():
    saturday_rush = build_temporal_context(datetime(2026, 3, 7, 8, 15))
    assert saturday_rush.day_of_week == 6
    assert saturday_rush.is_weekend is True
    assert saturday_rush.is_rush_hour is True
    assert saturday_rush.is_business_hours is False
    assert saturday_rush.appropriate_meal_types == ["breakfast", "snack"]

    wednesday = build_temporal_context(NOW)
    assert wednesday.is_weekend is False
    assert wednesday.is_rush_hour is False
    assert wednesday.is_business_hours is True


def test_week_starts_on_monday_midnight():
    assert week_start(NOW) == datetime(2026, 3, 2)
    assert week_start(datetime(2026, 3, 2, 0, 0)) == datetime(2026, 3, 2)


def test_format_relative_time():
    assert format_relative_time(NOW - timedelta(days=2, hours=3), NOW) == "2d ago"
    assert format_relative_time(NOW - timedelta(hours=5), NOW) == "5h ago"
    assert format_relative_time(NOW - timedelta(minutes=12), NOW) == "12m ago"


def test_filters_carried_on_context():
    context = _run(_aggregator().generate_context(1, filters={"cuisine": "thai"}))
    assert context.applied_filters == {"cuisine": "thai"}


def test_context_freshness():
    context = _run(_aggregator().generate_context(1))
    assert context.context_generated_at == NOW
    assert context.is_fresh(NOW + timedelta(minutes=29))
    assert not context.is_fresh(NOW + timedelta(minutes=30))


def test_context_is_immutable():
    context = _run(_aggregator().generate_context(1))
    with pytest.raises(Exception):
        context.user_id = 2


def test_budget_range_and_meal_type():
    context = _run(_aggregator().generate_context(1))
    assert context.budget_range == "$8 - $80"
    assert context.current_meal_type == "lunch"


# ── Failures ─────────────────────────────────────────────────────────────


def test_persistence_failure_is_fatal():
    aggregator = ContextAggregator(_BrokenStore(), clock=lambda: NOW)
    with pytest.raises(ContextAggregationError) as excinfo:
        _run(aggregator.generate_context(1))
    assert isinstance(excinfo.value.__cause__, OSError)


# ── Cache ────────────────────────────────────────────────────────────────


def test_get_or_generate_reuses_fresh_context():
    cache = ContextCache()
    aggregator = _aggregator(cache=cache)
    first = _run(aggregator.get_or_generate(1))
    second = _run(aggregator.get_or_generate(1))
    assert second is first
    assert cache.stats()["hits"] == 1


def test_get_or_generate_regenerates_stale_context():
    clock = [NOW]
    aggregator = ContextAggregator(
        MealStore(meals=MEALS, preferences={1: PREFS}),
        cache=ContextCache(ttl=3600),
        clock=lambda: clock[0],
    )
    first = _run(aggregator.get_or_generate(1))
    clock[0] = NOW + timedelta(minutes=45)
    second = _run(aggregator.get_or_generate(1))
    assert second is not first
    assert second.context_generated_at == NOW + timedelta(minutes=45)


def test_cache_keys_include_position():
    cache = ContextCache()
    aggregator = _aggregator(cache=cache)
    _run(aggregator.get_or_generate(1))
    located = _run(aggregator.get_or_generate(1, Position(latitude=1.0, longitude=2.0)))
    assert located.location_context.has_location is True
    assert cache.stats()["misses"] == 2


def test_zone_aware_meal_history_still_aggregates():
    store = MealStore(
        meals=pd.DataFrame([
            {"user_id": 1, "meal_type": "lunch", "cost": 14.0, "date": "2026-03-03T12:00:00Z"},
        ]),
        preferences={1: PREFS},
    )
    context = _run(_aggregator(store).generate_context(1))
    assert context.budget_constraints.current_week_spent == 14.0
    assert context.recent_meal_history == ["Lunch: $14.00 (1d ago)"]
