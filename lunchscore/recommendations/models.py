from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ..discovery.filters import DiscoveryResult
from ..models import Position, Restaurant, UserPreferences


class ContextRequest(BaseModel):
    position: Position | None = None
    filters: dict[str, Any] = Field(default_factory=dict)


class ScoreRequest(BaseModel):
    user_id: int
    restaurant: Restaurant
    position: Position | None = None


class ScoreResponse(BaseModel):
    place_id: str
    score: float
    breakdown: dict[str, float]


class RecommendationRequest(BaseModel):
    user_id: int
    restaurants: list[Restaurant] = Field(default_factory=list)
    position: Position | None = None
    cravings: str | None = Field(
        default=None, description="Free-text hints for LLM re-ranking"
    )
    filters: dict[str, Any] = Field(default_factory=dict)
    limit: int = Field(default=5, ge=1, le=20)


class RecommendationItem(BaseModel):
    restaurant: Restaurant
    score: float
    reason: str | None = None


class RecommendationResponse(BaseModel):
    recommendation_id: str | None = None
    recommendations: list[RecommendationItem]
    total_candidates: int
    meal_time: str
    budget_range: str
    context_generated_at: datetime


class DiscoveryRequest(BaseModel):
    restaurants: list[Restaurant] = Field(default_factory=list)
    user_id: int | None = None
    preferences: UserPreferences | None = Field(
        default=None, description="Overrides the stored preferences of user_id"
    )
    position: Position | None = None


class DiscoveryResponse(BaseModel):
    results: list[DiscoveryResult]
    total_candidates: int
    warnings: int


class StoredRecommendation(BaseModel):
    """A generated recommendation kept for history, reuse and feedback."""

    recommendation_id: str
    user_id: int
    request_key: str
    meal_type: str
    restaurant_ids: list[str]
    response: RecommendationResponse
    generated_at: datetime
    expires_at: datetime
    was_selected: bool = False
    rating: int | None = None
    feedback: str | None = None


class RecommendationFeedback(BaseModel):
    recommendation_id: str
    user_id: int
    place_id: str
    rating: int
    feedback_text: str | None = None
    was_selected: bool = False
    submitted_at: datetime


class FeedbackRequest(BaseModel):
    recommendation_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    feedback: str | None = None
    was_selected: bool = False


class FeedbackResponse(BaseModel):
    status: str
    total_feedback: int
