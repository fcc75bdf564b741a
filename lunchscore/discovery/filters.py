from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from ..models import AllergenSeverity, Restaurant, UserPreferences
from ..scoring.compatibility import dietary_compatibility

# Name fragments of well-known chains. A placeholder until there is a real
# chain registry; expect both false positives and misses.
CHAIN_INDICATORS: tuple[str, ...] = ("McDonald", "Subway", "Starbucks", "KFC", "Pizza Hut")

UNVERIFIED_DIETARY_THRESHOLD = 0.8

_SEVERITY_ORDER = [AllergenSeverity.mild, AllergenSeverity.moderate, AllergenSeverity.severe]


class SafetyLevel(str, Enum):
    safe = "safe"
    verified = "verified"
    caution = "caution"
    warning = "warning"


class DiscoveryResult(BaseModel):
    restaurant: Restaurant
    safety_level: SafetyLevel
    matched_allergens: list[str]
    max_severity: AllergenSeverity | None = None


def matched_allergens(restaurant: Restaurant, allergens: list[str]) -> list[str]:
    listed = {a.lower() for a in restaurant.allergen_info}
    return [a for a in allergens if a.lower() in listed]


def classify_safety(restaurant: Restaurant, allergens: list[str]) -> SafetyLevel:
    if not allergens:
        return SafetyLevel.safe
    if matched_allergens(restaurant, allergens):
        return SafetyLevel.warning
    if restaurant.has_verified_dietary_info:
        return SafetyLevel.verified
    return SafetyLevel.caution


def restaurant_dietary_score(
    restaurant: Restaurant, restrictions: list[str], allergens: list[str],
) -> float:
    """Average fit over declared restrictions and allergens.

    Restrictions use the scorer's dietary formula; an allergen counts 1.0
    when the restaurant does not list it and 0.0 when it does.
    """
    if not restrictions and not allergens:
        return 1.0

    total = dietary_compatibility(restrictions, restaurant) * len(restrictions)
    hits = set(matched_allergens(restaurant, allergens))
    total += sum(0.0 if a in hits else 1.0 for a in allergens)
    return total / (len(restrictions) + len(allergens))


def is_chain(name: str) -> bool:
    lower = name.lower()
    return any(indicator.lower() in lower for indicator in CHAIN_INDICATORS)


def _passes(restaurant: Restaurant, prefs: UserPreferences) -> bool:
    if (
        restaurant.distance_from_user is not None
        and restaurant.distance_from_user > prefs.max_travel_distance
    ):
        return False

    if restaurant.rating is not None and restaurant.rating < prefs.minimum_rating:
        return False

    if (
        restaurant.price_level is not None
        and prefs.budget_level > 0
        and restaurant.price_level > prefs.budget_level
    ):
        return False

    if prefs.require_dietary_verification and not restaurant.has_verified_dietary_info:
        score = restaurant_dietary_score(
            restaurant, prefs.dietary_restrictions, prefs.allergens,
        )
        if score < UNVERIFIED_DIETARY_THRESHOLD:
            return False

    # Allergen warnings are surfaced by ``discover``, never filtered here.

    if not prefs.include_chains and is_chain(restaurant.name):
        return False

    return True


def apply_discovery_filters(
    restaurants: list[Restaurant], preferences: UserPreferences | None,
) -> list[Restaurant]:
    """Drop restaurants that break a hard preference constraint."""
    if preferences is None:
        return restaurants
    return [r for r in restaurants if _passes(r, preferences)]


def discover(
    restaurants: list[Restaurant], preferences: UserPreferences,
) -> list[DiscoveryResult]:
    """Filter *restaurants* and attach an allergen safety level to each survivor."""
    results: list[DiscoveryResult] = []
    for restaurant in apply_discovery_filters(restaurants, preferences):
        matched = matched_allergens(restaurant, preferences.allergens)
        severity = None
        if matched:
            severity = max(
                (preferences.severity_of(a) for a in matched),
                key=_SEVERITY_ORDER.index,
            )
        results.append(DiscoveryResult(
            restaurant=restaurant,
            safety_level=classify_safety(restaurant, preferences.allergens),
            matched_allergens=matched,
            max_severity=severity,
        ))
    return results
