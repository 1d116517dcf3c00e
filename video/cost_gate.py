"""Cost confirmation gate for chargeable render actions."""

from __future__ import annotations

from typing import Literal, Optional

from core import CostEstimate, CostGateRequest, VideoProviderMeta


GateAction = Literal["test-render", "full-render"]
GateDecision = Literal["confirm", "cancel"]

ACTION_LABELS = {
    "test-render": "Test Render",
    "full-render": "Full Video Render",
}


def requires_confirmation(estimated_cost: float) -> bool:
    """Only actions with a non-zero charge are interposed by the gate."""
    return float(estimated_cost or 0.0) > 0.0


def open_gate(
    action: GateAction,
    provider: VideoProviderMeta,
    *,
    estimated_cost: float,
    duration_seconds: int,
    prompt: str = "",
    budget: Optional[CostEstimate] = None,
) -> CostGateRequest:
    return CostGateRequest(
        action=action,
        provider_id=provider.id,
        provider_name=provider.name,
        estimated_cost=round(float(estimated_cost), 2),
        duration_seconds=int(duration_seconds),
        prompt=prompt,
        budget=budget,
    )


def decision_for_key(key: str) -> Optional[GateDecision]:
    """Escape cancels, Enter confirms; anything else leaves the gate open."""
    if key == "Escape":
        return "cancel"
    if key == "Enter":
        return "confirm"
    return None


def describe(request: CostGateRequest) -> str:
    label = ACTION_LABELS.get(request.action, request.action)
    text = (
        f"Confirm {label}: {request.provider_name or request.provider_id}, "
        f"{request.duration_seconds}s, estimated ${request.estimated_cost:.2f}"
    )
    if request.budget is not None and request.budget.warning:
        text = f"{text} ({request.budget.warning})"
    return text
