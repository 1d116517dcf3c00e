from __future__ import annotations

import pytest

from core import (
    AnglesPhase,
    BuildingPhase,
    CostEstimate,
    DonePhase,
    FixSuggestion,
    GreetingPhase,
    MomentumScore,
    PolishingPhase,
    SectionType,
    VideoOfferPhase,
    VideoStatePatch,
)
from fakes import SECTION_TEXT, make_angles
from session import actions as act
from session import new_session, reduce
from session.reducer import SessionRules
from utils.exceptions import CostGateError, InvalidTransitionError
from video import PROVIDER_REGISTRY, score_providers


TOPIC = "AI in B2B sales"


def _effect_types(transition) -> list:
    return [type(effect) for effect in transition.effects]


def _fresh(content_type: str = "post", greeting: str = "Hi"):
    return new_session("s1", channels=["LINKEDIN"], content_type=content_type, goal="awareness", greeting=greeting)


def _at_angles(content_type: str = "post"):
    state = reduce(_fresh(content_type), act.SubmitTopic(topic=TOPIC)).state
    return reduce(state, act.AnglesLoaded(angles=make_angles())).state


def _at_building(content_type: str = "post"):
    return reduce(_at_angles(content_type), act.SelectAngle(angle_id="angle-2")).state


def _generate_and_accept(state, index: int):
    state = reduce(state, act.SectionGenerated(index=index, content=SECTION_TEXT[state.sections[index].type.value])).state
    return reduce(state, act.AcceptSection(index=index))


def _at_polishing(content_type: str = "post"):
    state = _at_building(content_type)
    for idx in range(3):
        state = _generate_and_accept(state, idx).state
    return state


def _recommendation(state):
    video = state.video_state
    return score_providers(
        goal=state.goal,
        channels=state.channels,
        budget_band=video.budget_band,
        quality_tier=video.quality_tier,
        duration_seconds=video.duration_seconds,
    )


def _at_video_offer():
    state = reduce(_at_polishing("video"), act.CompleteSession()).state
    result = _recommendation(state)
    return reduce(state, act.RecommendationLoaded(request_id=1, result=result)).state


def _with_provider(provider_id: str):
    return reduce(_at_video_offer(), act.SelectProvider(provider_id=provider_id)).state


# ─── greeting & angles ─────────────────────────────────────────────────────────


def test_start_session_fetches_greeting_only_when_missing() -> None:
    assert _effect_types(reduce(_fresh(greeting=None), act.StartSession())) == [act.FetchGreeting]
    effect = reduce(_fresh("video", greeting=None), act.StartSession()).effects[0]
    assert effect.request.channels == ["LINKEDIN"]
    assert effect.request.content_type == "video"
    assert reduce(_fresh(), act.StartSession()).effects == []


def test_greeting_failure_uses_fallback_and_surfaces_error() -> None:
    state = reduce(_fresh(greeting=None), act.GreetingFailed(error="offline")).state
    assert state.greeting == SessionRules().fallback_greeting
    assert state.error == "offline"
    assert isinstance(state.phase_state, GreetingPhase)


def test_submit_topic_requests_research_and_waits_in_greeting() -> None:
    transition = reduce(_fresh(), act.SubmitTopic(topic=f"  {TOPIC}  "))
    assert transition.state.phase.value == "greeting"
    assert transition.state.is_loading is True
    assert transition.state.topic == TOPIC
    assert _effect_types(transition) == [act.ResearchAngles]
    request = transition.effects[0].request
    assert request.topic == TOPIC
    assert request.channels == ["LINKEDIN"]
    assert request.action == "generate"

    again = reduce(transition.state, act.SubmitTopic(topic="other"))
    assert again.state is transition.state
    assert again.effects == []


def test_scenario_topic_to_angles_to_building() -> None:
    state = _at_angles()
    assert isinstance(state.phase_state, AnglesPhase)
    assert len(state.angles) == 3
    assert state.is_loading is False

    transition = reduce(state, act.SelectAngle(angle_id="angle-2"))
    state = transition.state
    assert isinstance(state.phase_state, BuildingPhase)
    assert state.selected_angle.id == "angle-2"
    assert state.current_section_index == 0
    assert [(d.type, d.content, d.version, d.accepted) for d in state.sections] == [
        (SectionType.HOOK, "", 0, False),
        (SectionType.BODY, "", 0, False),
        (SectionType.CTA, "", 0, False),
    ]
    assert _effect_types(transition) == [act.GenerateSectionContent]
    assert transition.effects[0].index == 0
    assert transition.effects[0].request.angle.id == "angle-2"


def test_angles_failure_keeps_greeting_with_error() -> None:
    state = reduce(_fresh(), act.SubmitTopic(topic=TOPIC)).state
    state = reduce(state, act.AnglesFailed(error="research down")).state
    assert state.phase.value == "greeting"
    assert state.error == "research down"
    assert state.is_loading is False


def test_refresh_sends_seed_and_refine_sends_feedback() -> None:
    refresh = reduce(_at_angles(), act.RefreshAngles())
    assert refresh.state.phase_state.refresh_count == 1
    assert refresh.effects[0].request.seed == 1

    refine = reduce(_at_angles(), act.RefineAngles(feedback="more data driven"))
    request = refine.effects[0].request
    assert request.action == "refine"
    assert request.user_feedback == "more data driven"
    assert [angle.id for angle in request.current_angles] == ["angle-1", "angle-2", "angle-3"]

    reloaded = reduce(refresh.state, act.AnglesLoaded(angles=make_angles()[:2])).state
    assert reloaded.phase.value == "angles"
    assert len(reloaded.angles) == 2


def test_custom_angle_enters_building_like_a_sourced_angle() -> None:
    transition = reduce(_at_angles(), act.SelectCustomAngle(text="Our Q1 launch is different because..."))
    angle = transition.state.selected_angle
    assert angle.id == "custom"
    assert angle.title == "Our Q1 launch is different because..."
    assert angle.sources == []
    assert transition.state.phase.value == "building"
    assert _effect_types(transition) == [act.GenerateSectionContent]


def test_unknown_angle_and_wrong_phase_are_rejected() -> None:
    with pytest.raises(InvalidTransitionError):
        reduce(_at_angles(), act.SelectAngle(angle_id="nope"))
    with pytest.raises(InvalidTransitionError) as excinfo:
        reduce(_fresh(), act.SelectAngle(angle_id="angle-1"))
    assert excinfo.value.phase == "greeting"
    assert excinfo.value.action == "select_angle"


# ─── sections ──────────────────────────────────────────────────────────────────


def test_generation_only_for_active_section() -> None:
    state = _at_building()
    with pytest.raises(InvalidTransitionError):
        reduce(state, act.GenerateSection(index=1))
    with pytest.raises(InvalidTransitionError):
        reduce(state, act.AcceptSection(index=1))
    with pytest.raises(InvalidTransitionError):
        reduce(state, act.GenerateSection(index=5))


def test_sections_are_accepted_strictly_in_order() -> None:
    state = _at_building()
    for idx in range(3):
        assert state.current_section_index == idx
        assert all(draft.accepted for draft in state.sections[:idx])
        assert not any(draft.accepted for draft in state.sections[idx:])
        transition = _generate_and_accept(state, idx)
        requested = [effect.index for effect in transition.effects if isinstance(effect, act.GenerateSectionContent)]
        assert all(index == idx + 1 for index in requested)
        state = transition.state
    assert all(draft.accepted for draft in state.sections)


def test_accepting_middle_section_scores_and_generates_next() -> None:
    transition = _generate_and_accept(_at_building(), 0)
    assert _effect_types(transition) == [act.ScoreMomentum, act.GenerateSectionContent]
    generate = transition.effects[1]
    assert generate.index == 1
    assert [item.type for item in generate.request.previous_sections] == [SectionType.HOOK]
    assert transition.state.sections[1].is_generating is True


def test_generation_precondition_noops_are_ignored() -> None:
    state = _at_building()
    in_flight = reduce(state, act.GenerateSection(index=0))
    assert in_flight.state is state
    assert in_flight.effects == []

    filled = reduce(state, act.SectionGenerated(index=0, content="Hook")).state
    again = reduce(filled, act.GenerateSection(index=0))
    assert again.state is filled
    assert again.effects == []

    empty_accept = reduce(reduce(state, act.SectionFailed(index=0, error="x")).state, act.AcceptSection(index=0))
    assert empty_accept.effects == []


def test_section_failure_sets_error_then_manual_generate_retries() -> None:
    state = reduce(_at_building(), act.SectionFailed(index=0, error="model overloaded")).state
    assert state.error == "model overloaded"
    assert state.sections[0].is_generating is False
    assert state.phase.value == "building"

    transition = reduce(state, act.GenerateSection(index=0))
    assert transition.state.error is None
    assert transition.state.sections[0].is_generating is True
    assert _effect_types(transition) == [act.GenerateSectionContent]


def test_stale_section_result_is_dropped() -> None:
    state = _at_building()
    transition = reduce(state, act.SectionGenerated(index=2, content="late"))
    assert transition.state is state


def test_retry_records_rejected_version_and_regenerates() -> None:
    state = reduce(_at_building(), act.SectionGenerated(index=0, content="First hook")).state
    transition = reduce(state, act.RetrySection(index=0))
    draft = transition.state.sections[0]
    assert draft.content == ""
    assert draft.version == 1
    assert draft.rejected_versions == ["First hook"]
    assert transition.effects[0].request.rejected_versions == ["First hook"]


def test_edit_allows_earlier_sections_only() -> None:
    state = _generate_and_accept(_at_building(), 0).state
    edited = reduce(state, act.EditSection(index=0, content="New hook"))
    assert edited.state.sections[0].content == "New hook"
    assert edited.state.sections[0].version == 1
    assert _effect_types(edited) == [act.ScoreMomentum]
    with pytest.raises(InvalidTransitionError):
        reduce(state, act.EditSection(index=2, content="Too early"))


def test_revise_round_trip_bumps_version() -> None:
    state = reduce(_at_building(), act.SectionGenerated(index=0, content="Hook")).state
    transition = reduce(state, act.ReviseSection(index=0, direction="punchier"))
    assert transition.state.sections[0].is_revising is True
    assert transition.effects[0].request.direction == "punchier"

    busy = reduce(transition.state, act.AcceptSection(index=0))
    assert busy.effects == []

    revised = reduce(transition.state, act.SectionRevised(index=0, content="Punchy hook"))
    assert revised.state.sections[0].content == "Punchy hook"
    assert revised.state.sections[0].version == 1
    assert revised.state.sections[0].is_revising is False


def test_assist_writes_section_from_notes() -> None:
    state = _at_building()
    state = reduce(state, act.SectionFailed(index=0, error="x")).state
    transition = reduce(state, act.AssistSection(index=0, notes="pipeline, data, trust"))
    assert transition.state.sections[0].is_assisting is True
    assert transition.effects[0].request.notes == "pipeline, data, trust"

    done = reduce(transition.state, act.SectionAssisted(index=0, content="Drafted"))
    assert done.state.sections[0].content == "Drafted"
    assert done.state.sections[0].version == 0


def test_momentum_updates_in_building() -> None:
    score = MomentumScore(hook=70, clarity=70, cta=70, seo=70, platform_fit=70, overall=70)
    state = reduce(_at_building(), act.MomentumScored(momentum=score)).state
    assert state.momentum.overall == 70


# ─── polishing ─────────────────────────────────────────────────────────────────


def test_accepting_last_section_enters_polishing_and_fetches_fixes_once() -> None:
    state = _at_building()
    state = _generate_and_accept(state, 0).state
    state = _generate_and_accept(state, 1).state
    transition = _generate_and_accept(state, 2)

    assert isinstance(transition.state.phase_state, PolishingPhase)
    assert transition.state.current_section_index == 3
    assert _effect_types(transition).count(act.FetchFixes) == 1
    assert _effect_types(transition) == [act.ScoreMomentum, act.FetchFixes]

    repeat = reduce(transition.state, act.RequestFixes())
    assert repeat.effects == []


def test_fixes_loaded_and_applied_locally() -> None:
    fix = FixSuggestion(
        id="fix-1",
        category="tone",
        description="Soften",
        current_text="lying to you",
        suggested_text="hiding the truth",
    )
    state = reduce(_at_polishing(), act.FixesLoaded(fixes=[fix])).state
    assert state.phase_state.fixes_loading is False
    assert len(state.fixes) == 1

    transition = reduce(state, act.ApplyFix(fix_id="fix-1"))
    assert transition.state.fixes[0].applied is True
    assert transition.state.sections[0].content == "Your pipeline is hiding the truth."
    assert _effect_types(transition) == [act.ScoreMomentum]

    again = reduce(transition.state, act.ApplyFix(fix_id="fix-1"))
    assert again.effects == []
    with pytest.raises(InvalidTransitionError):
        reduce(state, act.ApplyFix(fix_id="missing"))


def test_fixes_failure_allows_manual_refetch() -> None:
    state = reduce(_at_polishing(), act.FixesFailed(error="polish failed")).state
    assert state.error == "polish failed"
    transition = reduce(state, act.RequestFixes())
    assert _effect_types(transition) == [act.FetchFixes]


def test_complete_non_video_content_finishes() -> None:
    state = _at_polishing("post")
    with pytest.raises(InvalidTransitionError):
        reduce(_at_building(), act.CompleteSession())
    transition = reduce(state, act.CompleteSession())
    assert isinstance(transition.state.phase_state, DonePhase)
    assert _effect_types(transition) == [act.NotifyComplete]
    result = transition.effects[0].result
    assert result.title == "Your pipeline is lying to you."
    assert result.hashtags == ["#B2B", "#AI"]
    assert result.video_provider is None


# ─── video offer ───────────────────────────────────────────────────────────────


def test_video_content_enters_offer_and_fetches_recommendation() -> None:
    transition = reduce(_at_polishing("video"), act.CompleteSession())
    assert isinstance(transition.state.phase_state, VideoOfferPhase)
    video = transition.state.video_state
    assert video.recommendation_request_id == 1
    assert video.is_loading_recommendation is True
    assert _effect_types(transition) == [act.FetchRecommendation]
    assert transition.effects[0].request.channels == ["LINKEDIN"]


def test_auto_mode_selects_recommended_provider() -> None:
    state = _at_video_offer()
    video = state.video_state
    assert video.is_loading_recommendation is False
    assert video.selected_provider_id == video.recommendation.recommended.provider.id


def test_stale_recommendation_is_discarded() -> None:
    state = reduce(_at_polishing("video"), act.CompleteSession()).state
    first = _recommendation(state)
    changed = reduce(state, act.UpdateVideoState(patch=VideoStatePatch(budget_band="$0-$5")))
    assert changed.state.video_state.recommendation_request_id == 2
    assert _effect_types(changed) == [act.FetchRecommendation]
    assert changed.effects[0].request.budget_band == "$0-$5"

    stale = reduce(changed.state, act.RecommendationLoaded(request_id=1, result=first))
    assert stale.state is changed.state
    assert stale.state.video_state.recommendation is None


def test_patch_without_fingerprint_change_does_not_refetch() -> None:
    state = _at_video_offer()
    transition = reduce(state, act.UpdateVideoState(patch=VideoStatePatch(aspect_ratio="9:16")))
    assert transition.effects == []
    assert transition.state.video_state.aspect_ratio == "9:16"
    assert transition.state.video_state.recommendation_request_id == 1


def test_paid_test_render_opens_cost_gate() -> None:
    state = _with_provider("runway-gen4")
    transition = reduce(state, act.RequestTestRender())
    gate = transition.state.cost_gate
    assert gate is not None
    assert gate.action == "test-render"
    assert gate.estimated_cost == 3.4
    assert gate.duration_seconds == 10
    assert _effect_types(transition) == [act.EstimateCost]

    with pytest.raises(CostGateError):
        reduce(transition.state, act.RequestTestRender())
    with pytest.raises(CostGateError):
        reduce(transition.state, act.ConfirmFullRender())


def test_cost_gate_key_contract() -> None:
    state = reduce(_with_provider("runway-gen4"), act.RequestTestRender()).state
    assert reduce(state, act.CostGateKey(key="a")).state.cost_gate is not None
    assert reduce(state, act.CostGateKey(key="Escape")).state.cost_gate is None

    confirmed = reduce(state, act.CostGateKey(key="Enter"))
    assert confirmed.state.cost_gate is None
    assert confirmed.state.video_state.test_render_cost_confirmed is True
    assert confirmed.state.video_state.test_render_status == "rendering"
    assert _effect_types(confirmed) == [act.StartTestRender]
    assert confirmed.effects[0].request.estimated_cost == 3.4


def test_cost_estimate_attaches_to_open_gate() -> None:
    state = reduce(_with_provider("runway-gen4"), act.RequestTestRender()).state
    estimate = CostEstimate(provider="runway-gen4", duration_seconds=10, estimated_usd=3.4, warning="80% of monthly budget")
    loaded = reduce(state, act.CostEstimateLoaded(provider_id="runway-gen4", estimate=estimate)).state
    assert loaded.cost_gate.budget.warning == "80% of monthly budget"
    other = reduce(state, act.CostEstimateLoaded(provider_id="sora-2", estimate=estimate))
    assert other.state is state


def test_every_paid_provider_is_gated() -> None:
    paid = [provider for provider in PROVIDER_REGISTRY if provider.cost_per_second > 0]
    assert paid
    for provider in paid:
        state = _with_provider(provider.id)
        for action in (act.RequestTestRender(), act.ConfirmFullRender()):
            transition = reduce(state, action)
            assert transition.state.cost_gate is not None
            assert not any(isinstance(effect, (act.StartTestRender, act.StartFullRender)) for effect in transition.effects)


def test_zero_cost_provider_skips_gate() -> None:
    state = _with_provider("template")
    test = reduce(state, act.RequestTestRender())
    assert test.state.cost_gate is None
    assert _effect_types(test) == [act.StartTestRender]
    assert test.state.video_state.test_render_status == "rendering"

    full = reduce(state, act.ConfirmFullRender())
    assert full.state.cost_gate is None
    assert _effect_types(full) == [act.StartFullRender]
    assert full.effects[0].request.render_type == "full"


def test_full_render_duration_snaps_to_provider_options() -> None:
    state = reduce(_with_provider("sora-2"), act.UpdateVideoState(patch=VideoStatePatch(duration_seconds=10))).state
    gate = reduce(state, act.ConfirmFullRender()).state.cost_gate
    assert gate.action == "full-render"
    assert gate.duration_seconds == 8
    assert gate.estimated_cost == 0.8


def test_test_render_lifecycle_polls_then_completes() -> None:
    state = reduce(_with_provider("template"), act.RequestTestRender()).state
    started = reduce(state, act.TestRenderStarted(job_id="job-1"))
    assert started.state.video_state.test_render_status == "polling"
    assert _effect_types(started) == [act.PollRenderJobs]
    assert started.effects[0].job_ids == ("job-1",)

    progressed = reduce(started.state, act.TestRenderProgress(job_id="job-1", progress=0.4)).state
    assert progressed.video_state.test_render_progress == 0.4
    ignored = reduce(progressed, act.TestRenderProgress(job_id="other", progress=0.9))
    assert ignored.state is progressed

    finished = reduce(progressed, act.TestRenderFinished(job_id="job-1", video_url="https://cdn/job-1.mp4")).state
    assert finished.video_state.test_render_status == "complete"
    assert finished.video_state.test_render_video_url == "https://cdn/job-1.mp4"

    with pytest.raises(InvalidTransitionError):
        reduce(finished, act.RequestTestRender())
    reset = reduce(finished, act.ResetTestRender())
    assert reset.state.video_state.test_render_status == "idle"
    assert _effect_types(reset) == [act.StopRenderPolling]


def test_test_render_with_immediate_url_completes_without_polling() -> None:
    state = reduce(_with_provider("template"), act.RequestTestRender()).state
    transition = reduce(state, act.TestRenderStarted(video_url="https://cdn/instant.mp4"))
    assert transition.state.video_state.test_render_status == "complete"
    assert transition.effects == []


def test_test_render_failure_and_reset() -> None:
    state = reduce(_with_provider("template"), act.RequestTestRender()).state
    state = reduce(state, act.TestRenderStarted(job_id="job-1")).state
    failed = reduce(state, act.TestRenderFailed(job_id="job-1", error="provider error")).state
    assert failed.video_state.test_render_status == "error"
    assert failed.video_state.test_render_error == "provider error"
    assert failed.phase.value == "video-offer"
    assert reduce(failed, act.ResetTestRender()).state.video_state.test_render_status == "idle"

    with pytest.raises(InvalidTransitionError):
        reduce(state, act.ResetTestRender())


def test_budget_exceeded_is_a_notice_not_a_session_error() -> None:
    state = reduce(_with_provider("template"), act.RequestTestRender()).state
    state = reduce(state, act.TestRenderBudgetExceeded(message="Monthly limit reached")).state
    assert state.video_state.test_render_status == "error"
    assert state.video_state.budget_notice == "Monthly limit reached"
    assert state.error is None


def test_full_render_started_completes_with_video() -> None:
    state = reduce(_with_provider("template"), act.ConfirmFullRender()).state
    assert state.is_loading is True
    transition = reduce(state, act.FullRenderStarted(provider_id="template", job_id="job-7"))
    assert isinstance(transition.state.phase_state, DonePhase)
    assert _effect_types(transition) == [act.StopRenderPolling, act.NotifyComplete]
    assert transition.state.result.video_provider == "template"
    assert transition.state.result.video_job_id == "job-7"


def test_full_render_failure_stays_in_offer() -> None:
    state = reduce(_with_provider("template"), act.ConfirmFullRender()).state
    failed = reduce(state, act.FullRenderFailed(error="render api down")).state
    assert failed.phase.value == "video-offer"
    assert failed.error == "render api down"
    assert failed.is_loading is False


def test_skip_video_finishes_without_provider() -> None:
    transition = reduce(_at_video_offer(), act.SkipVideo())
    assert transition.state.phase.value == "done"
    assert transition.state.result.video_provider is None
    assert _effect_types(transition) == [act.StopRenderPolling, act.NotifyComplete]


def test_reset_keeps_identity_and_greeting() -> None:
    transition = reduce(_at_video_offer(), act.Reset())
    state = transition.state
    assert state.session_id == "s1"
    assert state.channels == ["LINKEDIN"]
    assert state.greeting == "Hi"
    assert state.phase.value == "greeting"
    assert state.topic == ""
    assert _effect_types(transition) == [act.StopRenderPolling]


def test_thinking_log_is_bounded() -> None:
    rules = SessionRules(thinking_log_limit=3)
    state = reduce(_fresh(), act.SubmitTopic(topic=TOPIC), rules).state
    state = reduce(state, act.AnglesLoaded(angles=make_angles()), rules).state
    state = reduce(state, act.SelectAngle(angle_id="angle-1"), rules).state
    state = reduce(state, act.SectionGenerated(index=0, content="Hook"), rules).state
    state = reduce(state, act.AcceptSection(index=0), rules).state
    assert len(state.thinking) == 3
    assert state.thinking_seq == 5
    assert [entry.id for entry in state.thinking] == ["think-3", "think-4", "think-5"]
