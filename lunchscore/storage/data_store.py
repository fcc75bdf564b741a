from __future__ import annotations

import json
from datetime import datetime

import pandas as pd

from ..config import DEFAULT_PIPELINE_CONFIG, PipelineConfig
from ..models import MealRecord, Restaurant

MEAL_COLUMNS = ["user_id", "meal_type", "cost", "date"]


class MealStore:
    """In-memory persistence for preferences, meals and cached restaurants.

    Meals live in a DataFrame so date-range reads are a single mask. The
    read API is async to match callers that fan several reads out at once.
    """

    def __init__(
        self,
        meals: pd.DataFrame | None = None,
        preferences: dict[int, str] | None = None,
        restaurants: list[Restaurant] | None = None,
    ) -> None:
        if meals is None:
            meals = pd.DataFrame(columns=MEAL_COLUMNS)
        self._meals = _normalise_meals(meals)
        self._preferences: dict[int, str] = dict(preferences or {})
        self._restaurants: dict[str, Restaurant] = {
            r.place_id: r for r in (restaurants or [])
        }

    @classmethod
    def from_files(cls, config: PipelineConfig = DEFAULT_PIPELINE_CONFIG) -> MealStore:
        """Load whatever of meals.csv / preferences.csv / restaurants.json exists."""
        meals = None
        if config.meals_path.exists():
            meals = pd.read_csv(config.meals_path)

        preferences: dict[int, str] = {}
        if config.preferences_path.exists():
            prefs_df = pd.read_csv(config.preferences_path)
            for _, row in prefs_df.iterrows():
                preferences[int(row["user_id"])] = str(row["preferences"])

        restaurants: list[Restaurant] = []
        if config.restaurants_path.exists():
            raw = json.loads(config.restaurants_path.read_text())
            restaurants = [Restaurant.model_validate(item) for item in raw]

        return cls(meals=meals, preferences=preferences, restaurants=restaurants)

    # -- reads -------------------------------------------------------------

    async def get_user_preferences(self, user_id: int) -> str | None:
        return self._preferences.get(user_id)

    async def get_meals_in_range(
        self, user_id: int, start: datetime, end: datetime,
    ) -> list[MealRecord]:
        df = self._meals
        mask = (df["user_id"] == user_id) & (df["date"] >= start) & (df["date"] <= end)
        rows = df.loc[mask].sort_values("date", ascending=False, kind="stable")
        return [
            MealRecord(
                user_id=int(row["user_id"]),
                meal_type=str(row["meal_type"]),
                cost=float(row["cost"]),
                date=row["date"].to_pydatetime(),
            )
            for _, row in rows.iterrows()
        ]

    async def get_restaurant_by_place_id(self, place_id: str) -> Restaurant | None:
        return self._restaurants.get(place_id)

    async def get_all_restaurants(self) -> list[Restaurant]:
        return list(self._restaurants.values())

    # -- writes ------------------------------------------------------------

    def set_user_preferences(self, user_id: int, raw: str) -> None:
        self._preferences[user_id] = raw

    def add_meal(self, meal: MealRecord) -> None:
        row = pd.DataFrame([meal.model_dump()], columns=MEAL_COLUMNS)
        if self._meals.empty:
            self._meals = _normalise_meals(row)
        else:
            self._meals = pd.concat([self._meals, _normalise_meals(row)], ignore_index=True)

    def upsert_restaurant(self, restaurant: Restaurant) -> None:
        self._restaurants[restaurant.place_id] = restaurant


def _normalise_meals(df: pd.DataFrame) -> pd.DataFrame:
    df = df.reindex(columns=MEAL_COLUMNS).copy()
    df["user_id"] = pd.to_numeric(df["user_id"], errors="coerce").astype("Int64")
    df["cost"] = pd.to_numeric(df["cost"], errors="coerce").fillna(0.0).astype(float)
    df["meal_type"] = df["meal_type"].fillna("other").astype(str)
    # Zone-aware stamps become naive UTC; naive ones are kept as written
    df["date"] = pd.to_datetime(df["date"], utc=True).dt.tz_convert(None)
    return df.dropna(subset=["user_id", "date"]).reset_index(drop=True)


_store: MealStore | None = None


def get_store() -> MealStore:
    """Return the process-wide store, loading it on first call."""
    global _store
    if _store is None:
        _store = MealStore.from_files()
    return _store
