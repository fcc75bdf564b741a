from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

PREFERENCES_VERSION = 1


class AllergenSeverity(str, Enum):
    mild = "mild"
    moderate = "moderate"
    severe = "severe"


class Position(BaseModel):
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    accuracy: float = 0.0
    timestamp: datetime | None = None


class MealRecord(BaseModel):
    user_id: int
    meal_type: str
    cost: float = Field(..., ge=0.0)
    date: datetime

    @property
    def display_meal_type(self) -> str:
        return self.meal_type.replace("_", " ").title()


class Restaurant(BaseModel):
    """A candidate restaurant as cached from a places search.

    ``distance_from_user`` is per-query state; scoring code never writes it
    in place, see ``scoring.geo.annotate_distances``.
    """

    place_id: str = Field(..., min_length=1)
    name: str
    location: str = ""
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    review_count: int | None = None
    price_level: int | None = Field(default=None, ge=0, le=4)
    average_meal_cost: float | None = Field(default=None, ge=0.0)
    value_score: float | None = Field(default=None, ge=0.0, le=1.0)
    cuisine_types: list[str] = Field(default_factory=list)
    supported_dietary_restrictions: list[str] = Field(default_factory=list)
    allergen_info: list[str] = Field(default_factory=list)
    dietary_compatibility_scores: dict[str, float] = Field(default_factory=dict)
    has_verified_dietary_info: bool = False
    is_open_now: bool = False
    features: list[str] = Field(default_factory=list)
    distance_from_user: float | None = Field(default=None, ge=0.0)


class UserPreferences(BaseModel):
    """Stored per-user preferences, decoded from the camelCase JSON blob."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: int = PREFERENCES_VERSION
    dietary_restrictions: list[str] = Field(default_factory=list, alias="dietaryRestrictions")
    dietary_preferences: list[str] = Field(default_factory=list, alias="dietaryPreferences")
    cuisine_preferences: list[str] = Field(default_factory=list, alias="cuisinePreferences")
    allergens: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("allergens", "allergies"),
    )
    allergen_severity: dict[str, AllergenSeverity] = Field(
        default_factory=dict, alias="allergenSeverity",
    )
    budget_level: int = Field(default=2, ge=1, le=4, alias="budgetLevel")
    max_travel_distance: float = Field(default=5.0, ge=0.0, alias="maxTravelDistance")
    minimum_rating: float = Field(default=0.0, ge=0.0, le=5.0, alias="minimumRating")
    include_chains: bool = Field(default=True, alias="includeChains")
    require_dietary_verification: bool = Field(
        default=False, alias="requireDietaryVerification",
    )
    meal_frequency_per_day: int = Field(default=3, ge=1, alias="mealFrequencyPerDay")
    weekly_budget: float = Field(default=200.0, ge=0.0, alias="weeklyBudget")

    def severity_of(self, allergen: str) -> AllergenSeverity:
        return self.allergen_severity.get(allergen, AllergenSeverity.moderate)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str | None) -> UserPreferences:
        """Decode a stored preferences blob.

        ``None`` and malformed blobs both give the defaults; corrupt local
        state must not block a recommendation request.
        """
        if not raw:
            return cls()
        try:
            return cls.model_validate_json(raw)
        except ValidationError:
            logger.warning("Malformed preferences JSON, using defaults", exc_info=True)
            return cls()
