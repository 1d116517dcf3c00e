"""Video provider registry: one place for provider metadata and cost math."""

from __future__ import annotations

import os
from typing import Dict, List, Mapping, Optional

from core import VideoProviderMeta


TEST_RENDER_SECONDS = 10

PROVIDER_REGISTRY: List[VideoProviderMeta] = [
    VideoProviderMeta(
        id="runway-gen4",
        name="Runway Gen-4.5",
        category="cinematic",
        cost_per_second=0.34,
        min_duration_seconds=4,
        max_duration_seconds=16,
        quality_score=92,
        latency_score=45,
        resolutions=["720p", "1080p"],
        best_for_channels=["YOUTUBE", "LINKEDIN", "INSTAGRAM"],
        best_for_goals=["authority", "awareness"],
        allowed_durations=[4, 6, 8, 10],
        supports_test_render=True,
        test_render_cost_multiplier=1.0,
        api_key_env_var="RUNWAY_API_KEY",
        tagline="Cinematic AI video, Hollywood quality",
    ),
    VideoProviderMeta(
        id="sora-2",
        name="Sora 2",
        category="cinematic",
        cost_per_second=0.10,
        min_duration_seconds=4,
        max_duration_seconds=20,
        quality_score=85,
        latency_score=60,
        resolutions=["720p", "1080p", "4K"],
        best_for_channels=["YOUTUBE", "TIKTOK", "INSTAGRAM"],
        best_for_goals=["awareness", "conversion", "education"],
        allowed_durations=[4, 8, 12],
        supports_test_render=True,
        test_render_cost_multiplier=1.0,
        api_key_env_var="OPENAI_API_KEY",
        tagline="OpenAI video generation, fast and versatile",
    ),
    VideoProviderMeta(
        id="template",
        name="Template Motion",
        category="motion",
        cost_per_second=0.0,
        min_duration_seconds=5,
        max_duration_seconds=60,
        quality_score=60,
        latency_score=95,
        resolutions=["720p", "1080p"],
        best_for_channels=["LINKEDIN", "X", "INSTAGRAM"],
        best_for_goals=["education", "conversion"],
        supports_test_render=True,
        test_render_cost_multiplier=1.0,
        api_key_env_var=None,
        tagline="Branded motion templates, free and instant",
    ),
]

_BY_ID: Dict[str, VideoProviderMeta] = {item.id: item for item in PROVIDER_REGISTRY}


def get_provider(provider_id: str) -> Optional[VideoProviderMeta]:
    return _BY_ID.get(str(provider_id or "").strip())


def get_active_providers() -> List[VideoProviderMeta]:
    return [item for item in PROVIDER_REGISTRY if item.status == "active"]


def get_providers_by_category(category: str) -> List[VideoProviderMeta]:
    return [item for item in get_active_providers() if item.category == category]


def configured_providers(env: Optional[Mapping[str, str]] = None) -> List[VideoProviderMeta]:
    """Active providers whose API key is present (key-less providers always qualify)."""
    source = os.environ if env is None else env
    out: List[VideoProviderMeta] = []
    for provider in get_active_providers():
        if not provider.api_key_env_var or str(source.get(provider.api_key_env_var, "") or "").strip():
            out.append(provider)
    return out


def _round_cents(value: float) -> float:
    return round(float(value) * 100) / 100


def estimate_cost(provider_id: str, duration_seconds: int) -> float:
    """Full render cost; duration is clamped into the provider's supported range."""
    provider = get_provider(provider_id)
    if provider is None:
        return 0.0
    clamped = max(provider.min_duration_seconds, min(provider.max_duration_seconds, int(duration_seconds)))
    return _round_cents(provider.cost_per_second * clamped)


def estimate_test_render_cost(provider_id: str) -> float:
    provider = get_provider(provider_id)
    if provider is None or not provider.supports_test_render:
        return 0.0
    seconds = min(TEST_RENDER_SECONDS, provider.max_duration_seconds)
    return _round_cents(provider.cost_per_second * seconds * provider.test_render_cost_multiplier)


def snap_duration(provider_id: str, duration_seconds: int) -> int:
    """Nearest duration the provider accepts; ties go to the shorter one."""
    provider = get_provider(provider_id)
    value = int(duration_seconds)
    if provider is None:
        return value
    if not provider.allowed_durations:
        return max(provider.min_duration_seconds, min(provider.max_duration_seconds, value))
    return min(sorted(provider.allowed_durations), key=lambda item: abs(item - value))
