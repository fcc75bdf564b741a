from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CONTEXT_FRESHNESS = timedelta(minutes=30)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class MealTypeFrequency(_Frozen):
    type: str
    frequency: int


class DietaryPreferences(_Frozen):
    restrictions: list[str] = Field(default_factory=list)
    preferences: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    preferred_cuisines: list[str] = Field(default_factory=list)
    preferred_meal_types: list[MealTypeFrequency] = Field(default_factory=list)


class BudgetConstraints(_Frozen):
    weekly_budget: float = 200.0
    current_week_spent: float = 0.0
    remaining_weekly_budget: float = 200.0
    avg_meal_cost: float = 20.0
    max_meal_cost: float = 50.0
    min: float = 10.0
    max: float = 80.0
    preferred: float = 20.0


class LocationContext(_Frozen):
    has_location: bool = False
    search_radius: float = 5.0
    transport_mode: str = "walking"
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = None
    timestamp: datetime | None = None
    preferred_distance_threshold: float | None = None
    max_distance_threshold: float | None = None


class TemporalContext(_Frozen):
    current_time: datetime
    hour: int
    day_of_week: int
    meal_time: str
    appropriate_meal_types: list[str]
    is_weekend: bool
    is_business_hours: bool
    is_rush_hour: bool


class PreferenceScores(_Frozen):
    quality_over_price: float = Field(default=0.7, ge=0.0, le=1.0)
    convenience_over_distance: float = Field(default=0.6, ge=0.0, le=1.0)
    familiarity_over_novelty: float = Field(default=0.5, ge=0.0, le=1.0)
    health_consciousness: float = Field(default=0.6, ge=0.0, le=1.0)
    price_sensitivity: float = Field(default=0.7, ge=0.0, le=1.0)
    variety_seeking: float = Field(default=0.5, ge=0.0, le=1.0)
    time_sensitivity: float = Field(default=0.6, ge=0.0, le=1.0)


class UserRecommendationContext(_Frozen):
    """Snapshot of everything the scorer knows about a user at one moment."""

    user_id: int
    dietary_preferences: DietaryPreferences
    budget_constraints: BudgetConstraints
    location_context: LocationContext
    recent_meal_history: list[str] = Field(default_factory=list)
    temporal_context: TemporalContext
    preference_scores: PreferenceScores
    applied_filters: dict[str, Any] = Field(default_factory=dict)
    context_generated_at: datetime

    def is_fresh(self, now: datetime | None = None) -> bool:
        now = now or datetime.now()
        return now - self.context_generated_at < CONTEXT_FRESHNESS

    @property
    def budget_range(self) -> str:
        b = self.budget_constraints
        return f"${b.min:.0f} - ${b.max:.0f}"

    @property
    def current_meal_type(self) -> str:
        return self.temporal_context.meal_time
