"""Pure provider scoring and ranking for the video offer."""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Sequence

from core import BudgetBand, QualityTier, RecommendationResult, ScoredProvider, VideoProviderMeta

from .registry import estimate_cost, estimate_test_render_cost, get_active_providers


BUDGET_CAPS: Dict[str, float] = {
    "$0-$5": 5.0,
    "$5-$25": 25.0,
    "$25-$100": 100.0,
    "unlimited": math.inf,
}

TIER_WEIGHTS: Dict[str, Dict[str, float]] = {
    "fast": {"quality": 0.20, "latency": 0.55, "fit": 0.25},
    "balanced": {"quality": 0.40, "latency": 0.35, "fit": 0.25},
    "premium": {"quality": 0.55, "latency": 0.20, "fit": 0.25},
}


def _js_round(value: float) -> int:
    """Half-up rounding so 0.5 boundaries match the score table."""
    return int(math.floor(value + 0.5))


def fit_score(provider: VideoProviderMeta, channels: Sequence[str], goal: str) -> float:
    matches = sum(1 for channel in channels if channel in provider.best_for_channels)
    channel_fit = (matches / len(channels)) * 100 if channels else 50.0
    goal_fit = 100.0 if goal in provider.best_for_goals else 30.0
    return channel_fit * 0.6 + goal_fit * 0.4


def build_reason(
    provider: VideoProviderMeta,
    *,
    tier: str,
    channels: Sequence[str],
    goal: str,
    cost: float,
    within_budget: bool,
    budget_band: str,
) -> str:
    parts: List[str] = []
    if tier == "premium" and provider.quality_score >= 85:
        parts.append(f"Premium {provider.category} quality ({provider.quality_score}/100)")
    elif tier == "fast" and provider.latency_score >= 55:
        parts.append(f"Fastest generation speed ({provider.latency_score}/100)")
    else:
        parts.append(f"{provider.quality_score}/100 quality, {provider.latency_score}/100 speed")

    matching = [channel for channel in channels if channel in provider.best_for_channels]
    if matching:
        parts.append(f"optimized for {' + '.join(matching)}")
    if goal in provider.best_for_goals:
        parts.append(f"strong for {goal} content")

    if budget_band == "unlimited":
        parts.append(f"${cost:.2f} estimated")
    elif within_budget:
        parts.append(f"within your {budget_band} budget at ${cost:.2f}")
    return " · ".join(parts)


def score_provider(
    provider: VideoProviderMeta,
    *,
    goal: str,
    channels: Sequence[str],
    budget_band: BudgetBand,
    quality_tier: QualityTier,
    duration_seconds: int,
) -> ScoredProvider:
    weights = TIER_WEIGHTS[quality_tier]
    cap = BUDGET_CAPS[budget_band]

    quality = provider.quality_score * weights["quality"]
    latency = provider.latency_score * weights["latency"]
    fit = fit_score(provider, channels, goal) * weights["fit"]

    cost = estimate_cost(provider.id, duration_seconds)
    within_budget = cost <= cap
    disqualified = not within_budget and budget_band != "unlimited"

    return ScoredProvider(
        provider=provider,
        total_score=_js_round(quality + latency + fit),
        quality_contribution=_js_round(quality),
        latency_contribution=_js_round(latency),
        fit_contribution=_js_round(fit),
        estimated_cost=cost,
        test_render_cost=estimate_test_render_cost(provider.id),
        within_budget=within_budget,
        reason=build_reason(
            provider,
            tier=quality_tier,
            channels=channels,
            goal=goal,
            cost=cost,
            within_budget=within_budget,
            budget_band=budget_band,
        ),
        disqualified=disqualified,
        disqualify_reason=(
            f"Estimated cost ${cost:.2f} exceeds your {budget_band} budget" if disqualified else None
        ),
    )


def score_providers(
    *,
    goal: str = "awareness",
    channels: Sequence[str] = (),
    budget_band: BudgetBand = "$5-$25",
    quality_tier: QualityTier = "balanced",
    duration_seconds: int = 10,
    providers: Optional[Iterable[VideoProviderMeta]] = None,
) -> RecommendationResult:
    """Rank providers: qualified first, each group by score descending."""
    pool = list(providers) if providers is not None else get_active_providers()
    channel_list = [str(item) for item in channels]
    scored = [
        score_provider(
            provider,
            goal=goal,
            channels=channel_list,
            budget_band=budget_band,
            quality_tier=quality_tier,
            duration_seconds=duration_seconds,
        )
        for provider in pool
    ]
    # sorted() is stable, so equal scores keep registry order
    scored = sorted(scored, key=lambda item: (item.disqualified, -item.total_score))

    recommended = next((item for item in scored if not item.disqualified), None)
    fallback_used = recommended is None and bool(scored)
    return RecommendationResult(
        recommended=recommended or (scored[0] if scored else None),
        ranking=scored,
        fallback_used=fallback_used,
    )
