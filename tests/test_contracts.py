from __future__ import annotations

import pytest

from core import (
    AngleCard,
    AnglesPhase,
    BuildingPhase,
    FixSuggestion,
    MomentumScore,
    PolishingPhase,
    RenderJobSnapshot,
    RenderJobState,
    RenderStartResult,
    SectionDraft,
    SectionType,
    SessionPhase,
    SessionState,
)
from fakes import make_angles
from session import sections as sec


def test_custom_angle_uses_trimmed_text_and_no_sources() -> None:
    card = AngleCard.custom("  Our Q1 launch is different because...  ")
    assert card.id == "custom"
    assert card.title == "Our Q1 launch is different because..."
    assert card.description == card.title
    assert card.rationale == "Your own angle"
    assert card.sources == []
    assert card.is_custom is True


def test_custom_angle_rejects_blank_text() -> None:
    with pytest.raises(ValueError):
        AngleCard.custom("   ")


def test_momentum_score_is_clamped_to_0_100() -> None:
    score = MomentumScore(hook=120, clarity=-5, cta="64.6", seo=None, platform_fit=70, overall=68)
    assert score.hook == 100
    assert score.clarity == 0
    assert score.cta == 65
    assert score.seo == 0


def test_fix_category_falls_back_to_clarity() -> None:
    fix = FixSuggestion(id="f1", category="Grammar", description="Fix typo")
    assert fix.category == "clarity"
    assert FixSuggestion(id="f2", category="CTA", description="Stronger ask").category == "cta"


def test_render_snapshot_normalizes_backend_statuses() -> None:
    assert RenderJobSnapshot(job_id="j", status="processing").status == RenderJobState.PROCESSING
    assert RenderJobSnapshot(job_id="j", status="PENDING").status == RenderJobState.QUEUED
    done = RenderJobSnapshot.model_validate({"jobId": "j", "status": "complete", "progress": None})
    assert done.status == RenderJobState.COMPLETED
    assert done.progress == 0.0
    assert done.is_terminal is True
    assert RenderJobSnapshot(job_id="j", status="AWAITING_PROVIDER").is_terminal is True


def test_render_start_result_budget_status() -> None:
    assert RenderStartResult(status="budget_exceeded", error="Monthly limit reached").budget_exceeded is True
    assert RenderStartResult(job_id="job-1").budget_exceeded is False


def test_contracts_accept_camel_case_keys() -> None:
    draft = SectionDraft.model_validate({"type": "hook", "content": "Hi", "rejectedVersions": ["old"], "isGenerating": True})
    assert draft.rejected_versions == ["old"]
    assert draft.busy is True


def test_session_state_views_follow_active_phase() -> None:
    state = SessionState(session_id="s1")
    assert state.phase == SessionPhase.GREETING
    assert state.angles == []
    assert state.sections == []
    assert state.current_section_index is None

    with_angles = state.model_copy(update={"phase_state": AnglesPhase(angles=make_angles())})
    assert with_angles.phase.value == "angles"
    assert len(with_angles.angles) == 3

    drafts = sec.initial_sections()
    building = state.model_copy(
        update={"phase_state": BuildingPhase(angle=make_angles()[1], sections=drafts, current_section_index=1)}
    )
    assert building.selected_angle.id == "angle-2"
    assert [item.type for item in building.sections] == [SectionType.HOOK, SectionType.BODY, SectionType.CTA]
    assert building.current_section_index == 1
    assert building.video_state is None

    polishing = state.model_copy(update={"phase_state": PolishingPhase(angle=make_angles()[0], sections=drafts)})
    assert polishing.current_section_index == 3


def test_session_snapshot_round_trips_phase_union() -> None:
    state = SessionState(
        session_id="s1",
        topic="AI in B2B sales",
        phase_state=BuildingPhase(angle=make_angles()[0], sections=sec.initial_sections()),
    )
    payload = state.snapshot()
    assert payload["phase"] == "building"
    assert payload["phase_state"]["kind"] == "building"

    restored = SessionState.model_validate(payload)
    assert isinstance(restored.phase_state, BuildingPhase)
    assert restored.sections[0].type == SectionType.HOOK
