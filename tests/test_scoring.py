from __future__ import annotations

from video import (
    configured_providers,
    estimate_cost,
    estimate_test_render_cost,
    get_provider,
    get_providers_by_category,
    score_provider,
    score_providers,
    snap_duration,
)


def _ids(result) -> list:
    return [item.provider.id for item in result.ranking]


def test_registry_lookup_and_categories() -> None:
    assert get_provider("template").cost_per_second == 0.0
    assert get_provider("missing") is None
    assert {item.id for item in get_providers_by_category("cinematic")} == {"runway-gen4", "sora-2"}


def test_configured_providers_requires_api_keys() -> None:
    assert [item.id for item in configured_providers(env={})] == ["template"]
    ids = [item.id for item in configured_providers(env={"RUNWAY_API_KEY": "rk"})]
    assert ids == ["runway-gen4", "template"]


def test_cost_estimates_clamp_duration_and_round_to_cents() -> None:
    assert estimate_cost("runway-gen4", 10) == 3.4
    assert estimate_cost("runway-gen4", 30) == 5.44
    assert estimate_cost("sora-2", 1) == 0.4
    assert estimate_cost("template", 60) == 0.0
    assert estimate_test_render_cost("runway-gen4") == 3.4
    assert estimate_test_render_cost("template") == 0.0


def test_snap_duration_prefers_nearest_then_shorter() -> None:
    assert snap_duration("runway-gen4", 7) == 6
    assert snap_duration("runway-gen4", 30) == 10
    assert snap_duration("sora-2", 10) == 8
    assert snap_duration("template", 90) == 60
    assert snap_duration("template", 2) == 5


def test_balanced_linkedin_awareness_prefers_runway() -> None:
    result = score_providers(goal="awareness", channels=["LINKEDIN"], budget_band="$5-$25", quality_tier="balanced")
    assert result.recommended.provider.id == "runway-gen4"
    assert result.recommended.total_score == 78
    assert _ids(result) == ["runway-gen4", "template", "sora-2"]
    assert result.fallback_used is False
    assert "optimized for LINKEDIN" in result.recommended.reason
    assert "within your $5-$25 budget at $3.40" in result.recommended.reason


def test_fast_tier_favors_low_latency_provider() -> None:
    result = score_providers(goal="education", channels=[], quality_tier="fast")
    assert result.recommended.provider.id == "template"


def test_over_budget_providers_rank_last_and_explain_why() -> None:
    result = score_providers(goal="awareness", channels=["YOUTUBE"], budget_band="$0-$5", duration_seconds=16)
    runway = next(item for item in result.ranking if item.provider.id == "runway-gen4")
    assert runway.disqualified is True
    assert runway.within_budget is False
    assert runway.disqualify_reason == "Estimated cost $5.44 exceeds your $0-$5 budget"
    assert _ids(result)[-1] == "runway-gen4"
    assert result.recommended.disqualified is False


def test_unlimited_budget_never_disqualifies() -> None:
    result = score_providers(budget_band="unlimited", duration_seconds=16)
    assert not any(item.disqualified for item in result.ranking)
    runway = next(item for item in result.ranking if item.provider.id == "runway-gen4")
    assert "$5.44 estimated" in runway.reason


def test_fallback_when_nothing_fits_budget() -> None:
    result = score_providers(budget_band="$0-$5", duration_seconds=16, providers=[get_provider("runway-gen4")])
    assert result.fallback_used is True
    assert result.recommended.provider.id == "runway-gen4"
    assert result.recommended.disqualified is True


def test_empty_provider_pool_is_a_distinct_state() -> None:
    result = score_providers(providers=[])
    assert result.is_empty is True
    assert result.recommended is None
    assert result.fallback_used is False


def test_score_contributions_follow_tier_weights() -> None:
    scored = score_provider(
        get_provider("runway-gen4"),
        goal="awareness",
        channels=["LINKEDIN"],
        budget_band="$5-$25",
        quality_tier="premium",
        duration_seconds=10,
    )
    assert scored.quality_contribution == 51
    assert scored.latency_contribution == 9
    assert scored.fit_contribution == 25
    assert scored.test_render_cost == 3.4
    assert scored.reason.startswith("Premium cinematic quality (92/100)")
