"""Video provider registry, scoring, cost gating and render coordination."""

from .registry import (
    PROVIDER_REGISTRY,
    configured_providers,
    estimate_cost,
    estimate_test_render_cost,
    get_active_providers,
    get_provider,
    get_providers_by_category,
    snap_duration,
)
from .scoring import BUDGET_CAPS, TIER_WEIGHTS, score_provider, score_providers
from .cost_gate import decision_for_key, describe, open_gate, requires_confirmation
from .polling import PollOutcome, RenderJobPoller
from .estimator import CostEstimator
from .coordinator import VideoCoordinator

__all__ = [
    "PROVIDER_REGISTRY",
    "configured_providers",
    "estimate_cost",
    "estimate_test_render_cost",
    "get_active_providers",
    "get_provider",
    "get_providers_by_category",
    "snap_duration",
    "BUDGET_CAPS",
    "TIER_WEIGHTS",
    "score_provider",
    "score_providers",
    "decision_for_key",
    "describe",
    "open_gate",
    "requires_confirmation",
    "PollOutcome",
    "RenderJobPoller",
    "CostEstimator",
    "VideoCoordinator",
]
