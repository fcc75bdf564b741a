from __future__ import annotations

from fastapi import Depends, FastAPI, HTTPException, Query

from .config import DEFAULT_PIPELINE_CONFIG
from .context.aggregator import ContextAggregationError, ContextAggregator
from .context.cache import ContextCache
from .context.models import UserRecommendationContext
from .discovery.filters import SafetyLevel, discover
from .models import Restaurant, UserPreferences
from .recommendations.history import RecommendationHistory, RecommendationNotFoundError
from .recommendations.models import (
    ContextRequest,
    DiscoveryRequest,
    DiscoveryResponse,
    FeedbackRequest,
    FeedbackResponse,
    RecommendationRequest,
    RecommendationResponse,
    ScoreRequest,
    ScoreResponse,
    StoredRecommendation,
)
from .recommendations.service import RecommendationService
from .scoring.compatibility import score_breakdown
from .scoring.geo import annotate_distances
from .storage.data_store import MealStore, get_store

app = FastAPI(title="Lunch Recommendation API", version="1.0.0")

_context_cache = ContextCache(ttl=DEFAULT_PIPELINE_CONFIG.context_ttl_seconds)
_history = RecommendationHistory()


# ── Dependencies ─────────────────────────────────────────────────────────


def get_context_cache() -> ContextCache:
    return _context_cache


def get_recommendation_history() -> RecommendationHistory:
    return _history


def get_aggregator(
    store: MealStore = Depends(get_store),
    cache: ContextCache = Depends(get_context_cache),
) -> ContextAggregator:
    return ContextAggregator(store, cache=cache)


def get_recommendation_service(
    aggregator: ContextAggregator = Depends(get_aggregator),
    history: RecommendationHistory = Depends(get_recommendation_history),
) -> RecommendationService:
    return RecommendationService(aggregator, history=history)


async def _candidates(store: MealStore, restaurants: list[Restaurant]) -> list[Restaurant]:
    """Use the posted candidates, or every cached restaurant when none were sent."""
    return restaurants or await store.get_all_restaurants()


def _unavailable(exc: ContextAggregationError) -> HTTPException:
    return HTTPException(status_code=503, detail=str(exc))


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/restaurants", response_model=list[Restaurant])
async def restaurants(store: MealStore = Depends(get_store)) -> list[Restaurant]:
    return await store.get_all_restaurants()


@app.post("/users/{user_id}/context", response_model=UserRecommendationContext)
async def user_context(
    user_id: int,
    body: ContextRequest | None = None,
    aggregator: ContextAggregator = Depends(get_aggregator),
) -> UserRecommendationContext:
    body = body or ContextRequest()
    try:
        return await aggregator.get_or_generate(user_id, body.position, body.filters)
    except ContextAggregationError as exc:
        raise _unavailable(exc)


@app.post("/score", response_model=ScoreResponse)
async def score(
    body: ScoreRequest,
    aggregator: ContextAggregator = Depends(get_aggregator),
) -> ScoreResponse:
    try:
        context = await aggregator.get_or_generate(body.user_id, body.position)
    except ContextAggregationError as exc:
        raise _unavailable(exc)

    (restaurant,) = annotate_distances([body.restaurant], body.position)
    breakdown = score_breakdown(context, restaurant)
    return ScoreResponse(
        place_id=restaurant.place_id,
        score=round(breakdown["total"], 4),
        breakdown={k: round(v, 4) for k, v in breakdown.items() if k != "total"},
    )


@app.post("/recommendations", response_model=RecommendationResponse)
async def recommendations(
    body: RecommendationRequest,
    store: MealStore = Depends(get_store),
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationResponse:
    candidates = await _candidates(store, body.restaurants)
    try:
        return await service.recommend(
            body.user_id,
            candidates,
            position=body.position,
            cravings=body.cravings,
            filters=body.filters,
            limit=body.limit,
        )
    except ContextAggregationError as exc:
        raise _unavailable(exc)


@app.get("/users/{user_id}/recommendations", response_model=list[StoredRecommendation])
def recent_recommendations(
    user_id: int,
    limit: int = Query(10, ge=1, le=50),
    history: RecommendationHistory = Depends(get_recommendation_history),
) -> list[StoredRecommendation]:
    return history.recent(user_id, limit)


@app.post("/feedback", response_model=FeedbackResponse)
def feedback(
    body: FeedbackRequest,
    history: RecommendationHistory = Depends(get_recommendation_history),
) -> FeedbackResponse:
    try:
        history.submit_feedback(
            body.recommendation_id,
            body.rating,
            body.feedback,
            was_selected=body.was_selected,
        )
    except RecommendationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return FeedbackResponse(status="recorded", total_feedback=len(history.feedback()))


@app.post("/discovery", response_model=DiscoveryResponse)
async def discovery(
    body: DiscoveryRequest,
    store: MealStore = Depends(get_store),
) -> DiscoveryResponse:
    preferences = body.preferences
    if preferences is None and body.user_id is not None:
        preferences = UserPreferences.from_json(
            await store.get_user_preferences(body.user_id)
        )
    preferences = preferences or UserPreferences()

    candidates = annotate_distances(
        await _candidates(store, body.restaurants), body.position,
    )
    results = discover(candidates, preferences)
    return DiscoveryResponse(
        results=results,
        total_candidates=len(candidates),
        warnings=sum(1 for r in results if r.safety_level == SafetyLevel.warning),
    )


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.get("/feedback/stats")
def feedback_stats(
    history: RecommendationHistory = Depends(get_recommendation_history),
) -> dict:
    return history.feedback_stats()


@app.post("/recommendations/cleanup")
def cleanup_recommendations(
    history: RecommendationHistory = Depends(get_recommendation_history),
) -> dict[str, int]:
    return {"removed": history.cleanup_expired()}


@app.get("/cache/stats")
def cache_stats(cache: ContextCache = Depends(get_context_cache)) -> dict:
    return cache.stats()
