from __future__ import annotations

import numpy as np
from sklearn.metrics.pairwise import haversine_distances

from ..models import Position, Restaurant

EARTH_RADIUS_KM = 6371.0


def distances_km(position: Position, coords: np.ndarray) -> np.ndarray:
    """Great-circle distance from *position* to each (lat, lng) row of *coords*."""
    if len(coords) == 0:
        return np.zeros(0)
    origin = np.radians([[position.latitude, position.longitude]])
    return haversine_distances(origin, np.radians(coords)).flatten() * EARTH_RADIUS_KM


def annotate_distances(
    restaurants: list[Restaurant], position: Position | None,
) -> list[Restaurant]:
    """Return copies of *restaurants* with ``distance_from_user`` filled in.

    Restaurants without coordinates keep whatever distance they already had.
    Without a position the input list is returned as-is.
    """
    if position is None or not restaurants:
        return restaurants

    located = [
        i for i, r in enumerate(restaurants)
        if r.latitude is not None and r.longitude is not None
    ]
    coords = np.array(
        [[restaurants[i].latitude, restaurants[i].longitude] for i in located],
        dtype=float,
    ).reshape(-1, 2)
    dists = distances_km(position, coords)

    annotated = list(restaurants)
    for i, dist in zip(located, dists):
        annotated[i] = restaurants[i].model_copy(
            update={"distance_from_user": round(float(dist), 3)},
        )
    return annotated
