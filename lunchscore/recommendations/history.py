from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable

from .models import (
    RecommendationFeedback,
    RecommendationResponse,
    StoredRecommendation,
)

logger = logging.getLogger(__name__)

RECOMMENDATION_TTL = timedelta(hours=1)
REUSE_WINDOW = timedelta(minutes=30)
REUSE_LOOKBACK = 5
DEFAULT_RECENT_LIMIT = 10


class RecommendationNotFoundError(LookupError):
    pass


class RecommendationHistory:
    """In-memory log of generated recommendations and the feedback on them.

    Records expire an hour after generation. A record younger than
    ``REUSE_WINDOW`` whose request key matches can be served again instead
    of re-running the pipeline.
    """

    def __init__(
        self,
        ttl: timedelta = RECOMMENDATION_TTL,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._records: dict[str, StoredRecommendation] = {}
        self._feedback: list[RecommendationFeedback] = []

    def record(
        self, user_id: int, request_key: str, response: RecommendationResponse,
    ) -> StoredRecommendation:
        now = self._clock()
        self.cleanup_expired()

        recommendation_id = uuid.uuid4().hex
        stored = StoredRecommendation(
            recommendation_id=recommendation_id,
            user_id=user_id,
            request_key=request_key,
            meal_type=response.meal_time,
            restaurant_ids=[item.restaurant.place_id for item in response.recommendations],
            response=response.model_copy(update={"recommendation_id": recommendation_id}),
            generated_at=now,
            expires_at=now + self._ttl,
        )
        self._records[recommendation_id] = stored
        return stored

    def recent(self, user_id: int, limit: int = DEFAULT_RECENT_LIMIT) -> list[StoredRecommendation]:
        """Unexpired recommendations for the user, newest first."""
        now = self._clock()
        records = [
            r for r in self._records.values()
            if r.user_id == user_id and r.expires_at > now
        ]
        records.sort(key=lambda r: r.generated_at, reverse=True)
        return records[:limit]

    def find_reusable(self, user_id: int, request_key: str) -> StoredRecommendation | None:
        now = self._clock()
        for stored in self.recent(user_id, REUSE_LOOKBACK):
            if stored.request_key == request_key and now - stored.generated_at < REUSE_WINDOW:
                return stored
        return None

    def get(self, recommendation_id: str) -> StoredRecommendation:
        stored = self._records.get(recommendation_id)
        if stored is None:
            raise RecommendationNotFoundError(f"Recommendation {recommendation_id} not found")
        return stored

    def submit_feedback(
        self,
        recommendation_id: str,
        rating: int,
        feedback: str | None = None,
        was_selected: bool = False,
    ) -> StoredRecommendation:
        stored = self.get(recommendation_id).model_copy(
            update={"rating": rating, "feedback": feedback, "was_selected": was_selected},
        )
        self._records[recommendation_id] = stored

        # Feedback is attributed to the top-ranked restaurant
        if stored.restaurant_ids:
            self._feedback.append(RecommendationFeedback(
                recommendation_id=recommendation_id,
                user_id=stored.user_id,
                place_id=stored.restaurant_ids[0],
                rating=rating,
                feedback_text=feedback,
                was_selected=was_selected,
                submitted_at=self._clock(),
            ))
        logger.info(
            "Feedback on recommendation %s from user %s: rating=%d selected=%s",
            recommendation_id, stored.user_id, rating, was_selected,
        )
        return stored

    def feedback(self) -> list[RecommendationFeedback]:
        return list(self._feedback)

    def feedback_stats(self) -> dict[str, Any]:
        fb = self._feedback
        selected = sum(1 for f in fb if f.was_selected)
        return {
            "total": len(fb),
            "selected": selected,
            "average_rating": round(sum(f.rating for f in fb) / len(fb), 2) if fb else 0.0,
            "selection_rate": round(selected / len(fb) * 100, 1) if fb else 0.0,
        }

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [k for k, r in self._records.items() if r.expires_at <= now]
        for k in expired:
            del self._records[k]
        if expired:
            logger.debug("Dropped %d expired recommendations", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._records.clear()
        self._feedback.clear()
