from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from ..config import DEFAULT_PIPELINE_CONFIG, PipelineConfig
from ..context.cache import make_cache_key
from ..context.aggregator import ContextAggregator
from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..llm.groq_client import rank_and_explain
from ..models import Position, Restaurant
from ..scoring.compatibility import calculate_restaurant_compatibility
from ..scoring.geo import annotate_distances
from ..scoring.ranker import rank_top_n
from .history import RecommendationHistory
from .models import RecommendationItem, RecommendationResponse

logger = logging.getLogger(__name__)


def unique_by_place_id(restaurants: list[Restaurant]) -> list[Restaurant]:
    """Drop repeated candidates, keeping the first occurrence of each place_id."""
    seen: set[str] = set()
    unique = []
    for r in restaurants:
        if r.place_id not in seen:
            seen.add(r.place_id)
            unique.append(r)
    return unique


class RecommendationService:
    def __init__(
        self,
        aggregator: ContextAggregator,
        config: PipelineConfig = DEFAULT_PIPELINE_CONFIG,
        llm_config: LLMConfig = DEFAULT_LLM_CONFIG,
        history: RecommendationHistory | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._config = config
        self._llm_config = llm_config
        self._history = history

    async def recommend(
        self,
        user_id: int,
        restaurants: list[Restaurant],
        position: Position | None = None,
        cravings: str | None = None,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> RecommendationResponse:
        start_time = time.time()
        limit = limit or self._config.max_recommendations

        # Context failures are fatal for the request
        context = await self._aggregator.get_or_generate(user_id, position, filters)

        unique = unique_by_place_id(restaurants)
        if len(unique) < len(restaurants):
            logger.debug(
                "Dropped %d duplicate candidates for user %s",
                len(restaurants) - len(unique), user_id,
            )

        request_key = make_cache_key({
            "user_id": user_id,
            "meal_type": context.current_meal_type,
            "candidates": sorted(r.place_id for r in unique),
            "cravings": cravings,
            "filters": filters or {},
            "limit": limit,
        })
        if self._history is not None:
            reused = self._history.find_reusable(user_id, request_key)
            if reused is not None:
                logger.info(
                    "Reusing recommendation %s for user %s",
                    reused.recommendation_id, user_id,
                )
                return reused.response

        candidates = annotate_distances(unique, position)
        shortlist = rank_top_n(context, candidates, self._config.prefilter_cap)
        scores = {
            r.place_id: calculate_restaurant_compatibility(context, r) for r in shortlist
        }

        # Heuristic order; keeps input order on ties
        heuristic = sorted(shortlist, key=lambda r: scores[r.place_id], reverse=True)
        by_id = {r.place_id: r for r in heuristic}

        # The Groq client blocks
        llm_results = await asyncio.to_thread(
            rank_and_explain, context, heuristic, cravings, self._llm_config,
        )

        # If LLM returned results, use its ordering; otherwise keep heuristic order
        if llm_results:
            ordered_ids = [pid for pid in llm_results if pid in by_id]
            for pid in by_id:
                if pid not in llm_results:
                    ordered_ids.append(pid)
        else:
            ordered_ids = list(by_id)

        items = [
            RecommendationItem(
                restaurant=by_id[pid],
                score=round(scores[pid], 4),
                reason=llm_results.get(pid),
            )
            for pid in ordered_ids[:limit]
        ]

        elapsed_ms = round((time.time() - start_time) * 1000, 1)
        logger.info(
            "Recommended %d of %d candidates for user %s in %.1f ms (llm=%s)",
            len(items), len(unique), user_id, elapsed_ms, bool(llm_results),
        )

        response = RecommendationResponse(
            recommendations=items,
            total_candidates=len(unique),
            meal_time=context.current_meal_type,
            budget_range=context.budget_range,
            context_generated_at=context.context_generated_at,
        )
        if self._history is not None:
            response = self._history.record(user_id, request_key, response).response
        return response
