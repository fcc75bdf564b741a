from __future__ import annotations

from datetime import datetime

import pytest

from lunchscore.context.aggregator import build_temporal_context
from lunchscore.context.models import (
    BudgetConstraints,
    DietaryPreferences,
    LocationContext,
    PreferenceScores,
    UserRecommendationContext,
)
from lunchscore.models import Restaurant
from lunchscore.scoring.ranker import rank_top_n, score_candidates

NOW = datetime(2026, 3, 4, 12, 30)

CONTEXT = UserRecommendationContext(
    user_id=1,
    dietary_preferences=DietaryPreferences(),
    budget_constraints=BudgetConstraints(min=10.0, max=40.0, preferred=20.0),
    location_context=LocationContext(),
    temporal_context=build_temporal_context(NOW),
    preference_scores=PreferenceScores(),
    context_generated_at=NOW,
)


def _plain(place_id: str) -> Restaurant:
    return Restaurant(place_id=place_id, name=f"Place {place_id}", rating=3.0)


def _great(place_id: str) -> Restaurant:
    return Restaurant(
        place_id=place_id,
        name=f"Great {place_id}",
        rating=5.0,
        average_meal_cost=20.0,
        price_level=2,
        is_open_now=True,
    )


def test_short_list_returned_unchanged():
    restaurants = [_plain("a"), _great("b"), _plain("c")]
    result = rank_top_n(CONTEXT, restaurants, n=3)
    assert result is restaurants
    assert [r.place_id for r in result] == ["a", "b", "c"]


def test_never_returns_more_than_n():
    restaurants = [_plain(str(i)) for i in range(30)]
    assert len(rank_top_n(CONTEXT, restaurants)) == 20
    assert len(rank_top_n(CONTEXT, restaurants, n=5)) == 5


def test_best_candidates_move_to_front():
    restaurants = [_plain("a"), _plain("b"), _great("c"), _plain("d")]
    result = rank_top_n(CONTEXT, restaurants, n=2)
    assert [r.place_id for r in result] == ["c", "a"]


def test_ties_keep_original_order():
    first, second = _plain("first"), _plain("second")
    restaurants = [first, second, _plain("third")]
    result = rank_top_n(CONTEXT, restaurants, n=2)
    assert [r.place_id for r in result] == ["first", "second"]


def test_empty_list():
    assert rank_top_n(CONTEXT, [], n=0) == []
    assert rank_top_n(CONTEXT, []) == []


def test_negative_n_rejected():
    with pytest.raises(ValueError):
        rank_top_n(CONTEXT, [_plain("a")], n=-1)


def test_score_candidates_sorted_descending():
    scored = score_candidates(CONTEXT, [_plain("a"), _great("b")])
    assert [r.place_id for r, _ in scored] == ["b", "a"]
    assert scored[0][1] > scored[1][1]
