from __future__ import annotations

import json
import logging

from groq import Groq

from ..context.models import UserRecommendationContext
from ..models import Restaurant
from .config import DEFAULT_LLM_CONFIG, LLMConfig

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a lunch recommendation engine that helps users make "
    "value-minded dining decisions. Given a user's context and a list of "
    "candidate restaurants, re-rank them from best to worst match and "
    "provide a short, friendly one-sentence explanation for each.\n\n"
    "Weigh budget fit and dietary fit most, then distance, then rating, "
    "then whether the place is open now.\n\n"
    "Return ONLY valid JSON in this exact format:\n"
    '{"recommendations": [{"place_id": "<place_id>", "reason": "<one sentence>"}]}\n'
    "Include only restaurants from the provided list. "
    "Order from best match to worst."
)

_MAX_RECENT_MEALS = 5


def _fmt(value: float | None, pattern: str = "{:.1f}") -> str:
    return pattern.format(value) if value is not None else "N/A"


def _build_user_message(
    context: UserRecommendationContext,
    candidates: list[Restaurant],
    cravings: str | None = None,
) -> str:
    dietary = context.dietary_preferences
    scores = context.preference_scores

    lines = ["## User Context"]
    lines.append(f"- Current meal type: {context.current_meal_type}")
    lines.append(f"- Budget range: {context.budget_range}")
    lines.append(
        f"- Weekly budget remaining: ${context.budget_constraints.remaining_weekly_budget:.2f}"
    )
    if dietary.restrictions:
        lines.append(f"- Dietary restrictions: {', '.join(dietary.restrictions)}")
    if dietary.allergies:
        lines.append(f"- Allergies: {', '.join(dietary.allergies)}")
    if context.recent_meal_history:
        recent = context.recent_meal_history[:_MAX_RECENT_MEALS]
        lines.append(f"- Recent meals: {'; '.join(recent)}")
    lines.append(f"- Preference scores: {json.dumps(scores.model_dump())}")
    if cravings:
        lines.append(f"- Specific cravings: {cravings}")

    lines.append("\n## Candidate Restaurants")
    lines.append("| Place ID | Name | Price | Avg Cost | Rating | Distance km | Open | Cuisines | Dietary |")
    lines.append("|---|---|---|---|---|---|---|---|---|")
    for r in candidates:
        price = "$" * r.price_level if r.price_level else "?"
        lines.append(
            f"| {r.place_id} | {r.name} | {price} | {_fmt(r.average_meal_cost, '${:.2f}')} "
            f"| {_fmt(r.rating)} | {_fmt(r.distance_from_user)} "
            f"| {'yes' if r.is_open_now else 'no'} | {', '.join(r.cuisine_types)} "
            f"| {', '.join(r.supported_dietary_restrictions)} |"
        )

    return "\n".join(lines)


def rank_and_explain(
    context: UserRecommendationContext,
    candidates: list[Restaurant],
    cravings: str | None = None,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> dict[str, str]:
    """
    Call Groq LLM to re-rank candidates and generate explanations.

    Returns a dict mapping place id -> reason string, in the LLM's order.
    Returns empty dict on any failure (timeout, bad JSON, API error).
    """
    if not config.enabled or not config.api_key:
        return {}

    if not candidates:
        return {}

    try:
        client = Groq(api_key=config.api_key, timeout=config.timeout)
        response = client.chat.completions.create(
            model=config.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": _build_user_message(context, candidates, cravings),
                },
            ],
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            response_format={"type": "json_object"},
        )

        content = response.choices[0].message.content or ""
        parsed = json.loads(content)

        known = {r.place_id for r in candidates}
        results: dict[str, str] = {}
        for item in parsed.get("recommendations", []):
            pid = str(item.get("place_id", ""))
            reason = item.get("reason", "")
            if pid in known and reason:
                results[pid] = reason

        return results

    except Exception:
        logger.warning("Groq LLM call failed, falling back to heuristic ranking", exc_info=True)
        return {}
