"""Pure session reducer: ``reduce(state, action) -> Transition(state, effects)``.

The reducer never performs I/O. Every transition into a phase emits that
phase's entry effects exactly once; the controller runs them and feeds the
outcome back as result actions. Results that no longer match the state they
were requested for (wrong phase, section no longer in flight, superseded
recommendation) are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Type
from uuid import uuid4

from config import Settings
from core import (
    SECTION_LABELS,
    AngleCard,
    AnglesPhase,
    BuildingPhase,
    ContextRequest,
    DonePhase,
    GenerateSectionRequest,
    GreetingPhase,
    PolishingPhase,
    PolishRequest,
    RecommendationRequest,
    RenderRequest,
    ResearchRequest,
    ReviseSectionRequest,
    AssistSectionRequest,
    ScoreRequest,
    SessionState,
    ThinkingEntry,
    VideoOfferPhase,
    VideoProviderMeta,
    VideoRecommendationState,
)
from utils.exceptions import CostGateError, InvalidTransitionError
from video.cost_gate import decision_for_key, open_gate, requires_confirmation
from video.registry import estimate_cost, estimate_test_render_cost, get_provider, snap_duration

from . import actions as act
from . import sections as sec


logger = logging.getLogger(__name__)

DEFAULT_FALLBACK_GREETING = "Hey! I'm Mia, your creative partner. Let's make something great together."


@dataclass(frozen=True)
class SessionRules:
    """Tunables the reducer reads; built from Settings by the controller."""

    thinking_log_limit: int = 200
    fallback_greeting: str = DEFAULT_FALLBACK_GREETING
    video_content_types: Tuple[str, ...] = ("video", "reel", "short")
    test_render_seconds: int = 10
    default_budget_band: str = "$5-$25"
    default_quality_tier: str = "balanced"
    default_duration_seconds: int = 10
    default_aspect_ratio: str = "16:9"

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionRules":
        return cls(
            thinking_log_limit=int(settings.session.thinking_log_limit),
            fallback_greeting=settings.session.fallback_greeting,
            video_content_types=tuple(str(item).lower() for item in settings.video.video_content_types),
            test_render_seconds=int(settings.video.test_render_seconds),
            default_budget_band=settings.video.default_budget_band,
            default_quality_tier=settings.video.default_quality_tier,
            default_duration_seconds=int(settings.video.default_duration_seconds),
            default_aspect_ratio=settings.video.default_aspect_ratio,
        )


DEFAULT_RULES = SessionRules()


@dataclass
class Transition:
    state: SessionState
    effects: List[act.Effect] = field(default_factory=list)


def new_session(
    session_id: Optional[str] = None,
    *,
    channels: Optional[List[str]] = None,
    content_type: str = "post",
    goal: Optional[str] = None,
    greeting: Optional[str] = None,
    brand_name: str = "",
) -> SessionState:
    return SessionState(
        session_id=session_id or f"mia_{uuid4().hex[:12]}",
        channels=list(channels or []),
        content_type=str(content_type or "post"),
        goal=goal,
        greeting=greeting,
        brand_name=brand_name,
    )


# ─── helpers ───────────────────────────────────────────────────────────────────


def _invalid(state: SessionState, action, reason: str, exc_type: Type[InvalidTransitionError] = InvalidTransitionError):
    raise exc_type(reason, phase=state.phase.value, action=action.type)


def _ignore(state: SessionState, action, reason: str) -> Transition:
    logger.info("dispatch_ignored session_id=%s phase=%s action=%s reason=%s", state.session_id, state.phase.value, action.type, reason)
    return Transition(state)


def _require(state: SessionState, action, *phase_types):
    if not isinstance(state.phase_state, phase_types):
        _invalid(state, action, f"{action.type} is not valid during {state.phase.value}")
    return state.phase_state


def _set(state: SessionState, phase_state=None, **updates) -> SessionState:
    if phase_state is not None:
        updates["phase_state"] = phase_state
    return state.model_copy(update=updates)


def _think(state: SessionState, rules: SessionRules, label: str, detail: str = "") -> SessionState:
    seq = state.thinking_seq + 1
    entry = ThinkingEntry(id=f"think-{seq}", phase=state.phase, label=label, detail=detail or "")
    log = list(state.thinking) + [entry]
    limit = max(1, int(rules.thinking_log_limit))
    if len(log) > limit:
        log = log[-limit:]
    return state.model_copy(update={"thinking": log, "thinking_seq": seq})


def _label(phase, index: int) -> str:
    return SECTION_LABELS[phase.sections[index].type]


def _check_index(state: SessionState, action, phase, index: int, *, allow_earlier: bool = False) -> None:
    current = phase.current_section_index
    if index >= len(phase.sections):
        _invalid(state, action, f"section {index} does not exist")
    if index == current:
        return
    if allow_earlier and index < current:
        return
    _invalid(state, action, f"section {index} is not the active section ({current})")


def _generate_request(state: SessionState, phase: BuildingPhase, index: int) -> GenerateSectionRequest:
    draft = phase.sections[index]
    return GenerateSectionRequest(
        topic=state.topic,
        angle=phase.angle,
        section_type=draft.type,
        channels=list(state.channels),
        content_type=state.content_type,
        previous_sections=sec.accepted_before(phase.sections, index),
        rejected_versions=list(draft.rejected_versions),
        goal=state.goal,
    )


def _score_effect(state: SessionState, sections) -> act.ScoreMomentum:
    return act.ScoreMomentum(
        ScoreRequest(
            topic=state.topic,
            sections=sec.filled(sections),
            channels=list(state.channels),
            content_type=state.content_type,
        )
    )


def _greeting(state: SessionState) -> act.FetchGreeting:
    return act.FetchGreeting(ContextRequest(channels=list(state.channels), content_type=state.content_type))


def _research(state: SessionState, **overrides) -> act.ResearchAngles:
    return act.ResearchAngles(
        ResearchRequest(
            topic=state.topic,
            channels=list(state.channels),
            content_type=state.content_type,
            goal=state.goal,
            brand_name=state.brand_name,
            **overrides,
        )
    )


def _recommendation(state: SessionState, video: VideoRecommendationState) -> act.FetchRecommendation:
    return act.FetchRecommendation(
        request_id=video.recommendation_request_id,
        request=RecommendationRequest(
            goal=state.goal or "awareness",
            channels=list(state.channels),
            budget_band=video.budget_band,
            quality_tier=video.quality_tier,
            duration_seconds=video.duration_seconds,
        ),
    )


def _fingerprint(video: VideoRecommendationState) -> Tuple[str, str, int]:
    return (video.budget_band, video.quality_tier, video.duration_seconds)


def _finish(state: SessionState, phase, rules: SessionRules, *, provider_id=None, job_id=None, stop_polling=False) -> Transition:
    result = sec.assemble_result(state.topic, phase.sections, video_provider=provider_id, video_job_id=job_id)
    nxt = _set(state, DonePhase(result=result), is_loading=False, error=None)
    nxt = _think(nxt, rules, "Content complete", result.title)
    effects: List[act.Effect] = [act.StopRenderPolling()] if stop_polling else []
    effects.append(act.NotifyComplete(result))
    return Transition(nxt, effects)


# ─── greeting & angles ─────────────────────────────────────────────────────────


def _start_session(state, action, rules):
    _require(state, action, GreetingPhase)
    effects = [] if state.greeting else [_greeting(state)]
    return Transition(state, effects)


def _greeting_loaded(state, action, rules):
    return Transition(_set(state, greeting=action.greeting, brand_name=action.brand_name or state.brand_name))


def _greeting_failed(state, action, rules):
    return Transition(_set(state, greeting=state.greeting or rules.fallback_greeting, error=action.error))


def _submit_topic(state, action, rules):
    _require(state, action, GreetingPhase)
    if state.is_loading:
        return _ignore(state, action, "research in flight")
    nxt = _set(state, topic=action.topic, is_loading=True, error=None)
    nxt = _think(nxt, rules, "Researching angles", action.topic)
    return Transition(nxt, [_research(nxt)])


def _refresh_angles(state, action, rules):
    phase = _require(state, action, AnglesPhase)
    if state.is_loading:
        return _ignore(state, action, "research in flight")
    count = phase.refresh_count + 1
    nxt = _set(state, phase.model_copy(update={"refresh_count": count}), is_loading=True, error=None)
    nxt = _think(nxt, rules, "Looking for fresh angles")
    return Transition(nxt, [_research(nxt, seed=count)])


def _refine_angles(state, action, rules):
    phase = _require(state, action, AnglesPhase)
    if state.is_loading:
        return _ignore(state, action, "research in flight")
    nxt = _set(state, is_loading=True, error=None)
    nxt = _think(nxt, rules, "Refining angles", action.feedback)
    current = [angle for angle in phase.angles if not angle.is_custom]
    return Transition(nxt, [_research(nxt, action="refine", current_angles=current, user_feedback=action.feedback)])


def _angles_loaded(state, action, rules):
    if not state.is_loading:
        return _ignore(state, action, "no research in flight")
    phase = state.phase_state
    if isinstance(phase, GreetingPhase):
        new_phase = AnglesPhase(angles=list(action.angles))
    elif isinstance(phase, AnglesPhase):
        new_phase = phase.model_copy(update={"angles": list(action.angles)})
    else:
        return _ignore(state, action, "stale research result")
    nxt = _set(state, new_phase, is_loading=False, error=None)
    detail = ", ".join(angle.title for angle in action.angles) if action.angles else "No angles found"
    return Transition(_think(nxt, rules, f"Found {len(action.angles)} angles", detail))


def _angles_failed(state, action, rules):
    if not state.is_loading or not isinstance(state.phase_state, (GreetingPhase, AnglesPhase)):
        return _ignore(state, action, "stale research failure")
    return Transition(_set(state, is_loading=False, error=action.error))


def _enter_building(state: SessionState, angle: AngleCard, rules: SessionRules) -> Transition:
    drafts = sec.initial_sections()
    drafts = sec.replace(drafts, 0, is_generating=True)
    phase = BuildingPhase(angle=angle, sections=drafts, current_section_index=0)
    nxt = _set(state, phase, is_loading=False, error=None)
    nxt = _think(nxt, rules, "Angle selected", angle.title)
    return Transition(nxt, [act.GenerateSectionContent(0, _generate_request(nxt, phase, 0))])


def _select_angle(state, action, rules):
    phase = _require(state, action, AnglesPhase)
    angle = next((item for item in phase.angles if item.id == action.angle_id), None)
    if angle is None:
        _invalid(state, action, f"unknown angle {action.angle_id}")
    return _enter_building(state, angle, rules)


def _select_custom_angle(state, action, rules):
    _require(state, action, AnglesPhase)
    return _enter_building(state, AngleCard.custom(action.text), rules)


# ─── sections ──────────────────────────────────────────────────────────────────


def _generate_section(state, action, rules):
    phase = _require(state, action, BuildingPhase)
    _check_index(state, action, phase, action.index)
    draft = phase.sections[action.index]
    if draft.busy:
        return _ignore(state, action, "section request in flight")
    if draft.content:
        return _ignore(state, action, "section already has content")
    drafts = sec.replace(phase.sections, action.index, is_generating=True)
    new_phase = phase.model_copy(update={"sections": drafts})
    nxt = _set(state, new_phase, error=None)
    return Transition(nxt, [act.GenerateSectionContent(action.index, _generate_request(nxt, new_phase, action.index))])


def _in_flight(state, index: int, flag: str) -> Optional[BuildingPhase]:
    phase = state.phase_state
    if not isinstance(phase, BuildingPhase) or index >= len(phase.sections):
        return None
    if not getattr(phase.sections[index], flag):
        return None
    return phase


def _section_generated(state, action, rules):
    phase = _in_flight(state, action.index, "is_generating")
    if phase is None:
        return _ignore(state, action, "stale section result")
    drafts = sec.replace(phase.sections, action.index, content=action.content, is_generating=False)
    nxt = _set(state, phase.model_copy(update={"sections": drafts}), error=None)
    return Transition(_think(nxt, rules, f"Drafted the {_label(phase, action.index)}", action.thinking))


def _section_failed(state, action, rules):
    phase = _in_flight(state, action.index, "is_generating")
    if phase is None:
        return _ignore(state, action, "stale section failure")
    drafts = sec.replace(phase.sections, action.index, is_generating=False)
    return Transition(_set(state, phase.model_copy(update={"sections": drafts}), error=action.error))


def _accept_section(state, action, rules):
    phase = _require(state, action, BuildingPhase)
    _check_index(state, action, phase, action.index)
    draft = phase.sections[action.index]
    if draft.busy:
        return _ignore(state, action, "section request in flight")
    if not draft.content.strip():
        return _ignore(state, action, "section is empty")

    drafts = sec.replace(phase.sections, action.index, accepted=True)
    nxt_index = sec.first_unaccepted(drafts)
    label = _label(phase, action.index)

    if nxt_index >= len(drafts):
        polishing = PolishingPhase(angle=phase.angle, sections=drafts, momentum=phase.momentum, fixes_loading=True)
        nxt = _set(state, polishing, error=None)
        nxt = _think(nxt, rules, f"Locked in the {label}", "All sections accepted, polishing")
        fixes = act.FetchFixes(
            PolishRequest(
                topic=state.topic,
                angle=phase.angle,
                sections=sec.filled(drafts),
                channels=list(state.channels),
                content_type=state.content_type,
            )
        )
        return Transition(nxt, [_score_effect(nxt, drafts), fixes])

    drafts = sec.replace(drafts, nxt_index, is_generating=True)
    building = phase.model_copy(update={"sections": drafts, "current_section_index": nxt_index})
    nxt = _set(state, building, error=None)
    nxt = _think(nxt, rules, f"Locked in the {label}")
    return Transition(
        nxt,
        [_score_effect(nxt, drafts), act.GenerateSectionContent(nxt_index, _generate_request(nxt, building, nxt_index))],
    )


def _retry_section(state, action, rules):
    phase = _require(state, action, BuildingPhase)
    _check_index(state, action, phase, action.index)
    draft = phase.sections[action.index]
    if draft.busy:
        return _ignore(state, action, "section request in flight")
    rejected = list(draft.rejected_versions) + ([draft.content] if draft.content else [])
    drafts = sec.replace(
        phase.sections,
        action.index,
        content="",
        version=draft.version + 1,
        rejected_versions=rejected,
        is_generating=True,
    )
    new_phase = phase.model_copy(update={"sections": drafts})
    nxt = _set(state, new_phase, error=None)
    nxt = _think(nxt, rules, f"Trying another {_label(phase, action.index)}")
    return Transition(nxt, [act.GenerateSectionContent(action.index, _generate_request(nxt, new_phase, action.index))])


def _edit_section(state, action, rules):
    phase = _require(state, action, BuildingPhase)
    _check_index(state, action, phase, action.index, allow_earlier=True)
    draft = phase.sections[action.index]
    if draft.busy:
        return _ignore(state, action, "section request in flight")
    drafts = sec.replace(phase.sections, action.index, content=action.content, version=draft.version + 1)
    nxt = _set(state, phase.model_copy(update={"sections": drafts}), error=None)
    effects = [_score_effect(nxt, drafts)] if action.content.strip() else []
    return Transition(nxt, effects)


def _revise_section(state, action, rules):
    phase = _require(state, action, BuildingPhase)
    _check_index(state, action, phase, action.index, allow_earlier=True)
    draft = phase.sections[action.index]
    if draft.busy:
        return _ignore(state, action, "section request in flight")
    if not draft.content.strip():
        return _ignore(state, action, "nothing to revise")
    drafts = sec.replace(phase.sections, action.index, is_revising=True)
    nxt = _set(state, phase.model_copy(update={"sections": drafts}), error=None)
    nxt = _think(nxt, rules, f"Revising the {_label(phase, action.index)}", action.direction)
    request = ReviseSectionRequest(
        topic=state.topic,
        angle=phase.angle,
        section_type=draft.type,
        content=draft.content,
        direction=action.direction,
        channels=list(state.channels),
        content_type=state.content_type,
    )
    return Transition(nxt, [act.ReviseSectionContent(action.index, request)])


def _section_revised(state, action, rules):
    phase = _in_flight(state, action.index, "is_revising")
    if phase is None:
        return _ignore(state, action, "stale revision")
    draft = phase.sections[action.index]
    drafts = sec.replace(phase.sections, action.index, content=action.content, version=draft.version + 1, is_revising=False)
    nxt = _set(state, phase.model_copy(update={"sections": drafts}), error=None)
    nxt = _think(nxt, rules, f"Revised the {_label(phase, action.index)}", action.thinking)
    return Transition(nxt, [_score_effect(nxt, drafts)])


def _section_revise_failed(state, action, rules):
    phase = _in_flight(state, action.index, "is_revising")
    if phase is None:
        return _ignore(state, action, "stale revision failure")
    drafts = sec.replace(phase.sections, action.index, is_revising=False)
    return Transition(_set(state, phase.model_copy(update={"sections": drafts}), error=action.error))


def _assist_section(state, action, rules):
    phase = _require(state, action, BuildingPhase)
    _check_index(state, action, phase, action.index)
    draft = phase.sections[action.index]
    if draft.busy:
        return _ignore(state, action, "section request in flight")
    drafts = sec.replace(phase.sections, action.index, is_assisting=True)
    nxt = _set(state, phase.model_copy(update={"sections": drafts}), error=None)
    request = AssistSectionRequest(
        topic=state.topic,
        angle=phase.angle,
        section_type=draft.type,
        notes=action.notes,
        previous_sections=sec.accepted_before(phase.sections, action.index),
        channels=list(state.channels),
        content_type=state.content_type,
    )
    return Transition(nxt, [act.AssistSectionContent(action.index, request)])


def _section_assisted(state, action, rules):
    phase = _in_flight(state, action.index, "is_assisting")
    if phase is None:
        return _ignore(state, action, "stale assist result")
    draft = phase.sections[action.index]
    version = draft.version + (1 if draft.content else 0)
    drafts = sec.replace(phase.sections, action.index, content=action.content, version=version, is_assisting=False)
    nxt = _set(state, phase.model_copy(update={"sections": drafts}), error=None)
    return Transition(_think(nxt, rules, f"Wrote the {_label(phase, action.index)} from your notes", action.thinking))


def _section_assist_failed(state, action, rules):
    phase = _in_flight(state, action.index, "is_assisting")
    if phase is None:
        return _ignore(state, action, "stale assist failure")
    drafts = sec.replace(phase.sections, action.index, is_assisting=False)
    return Transition(_set(state, phase.model_copy(update={"sections": drafts}), error=action.error))


def _momentum_scored(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, (BuildingPhase, PolishingPhase, VideoOfferPhase)):
        return _ignore(state, action, "no draft to score")
    return Transition(_set(state, phase.model_copy(update={"momentum": action.momentum})))


# ─── polishing ─────────────────────────────────────────────────────────────────


def _request_fixes(state, action, rules):
    phase = _require(state, action, PolishingPhase)
    if phase.fixes_loading or phase.fixes:
        return _ignore(state, action, "fixes already requested")
    nxt = _set(state, phase.model_copy(update={"fixes_loading": True}), error=None)
    request = PolishRequest(
        topic=state.topic,
        angle=phase.angle,
        sections=sec.filled(phase.sections),
        channels=list(state.channels),
        content_type=state.content_type,
    )
    return Transition(nxt, [act.FetchFixes(request)])


def _fixes_loaded(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, PolishingPhase) or not phase.fixes_loading:
        return _ignore(state, action, "stale fixes")
    nxt = _set(state, phase.model_copy(update={"fixes": list(action.fixes), "fixes_loading": False}), error=None)
    label = f"{len(action.fixes)} polish suggestions" if action.fixes else "Looks great, nothing to fix"
    return Transition(_think(nxt, rules, label))


def _fixes_failed(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, PolishingPhase) or not phase.fixes_loading:
        return _ignore(state, action, "stale fixes failure")
    return Transition(_set(state, phase.model_copy(update={"fixes_loading": False}), error=action.error))


def _apply_fix(state, action, rules):
    phase = _require(state, action, PolishingPhase)
    fix = next((item for item in phase.fixes if item.id == action.fix_id), None)
    if fix is None:
        _invalid(state, action, f"unknown fix {action.fix_id}")
    if fix.applied:
        return _ignore(state, action, "fix already applied")
    fixes = [item.model_copy(update={"applied": True}) if item.id == fix.id else item for item in phase.fixes]
    drafts = sec.apply_fix_text(phase.sections, fix)
    nxt = _set(state, phase.model_copy(update={"fixes": fixes, "sections": drafts}), error=None)
    nxt = _think(nxt, rules, f"Applied {fix.category} fix", fix.description)
    return Transition(nxt, [_score_effect(nxt, drafts)])


def _complete_session(state, action, rules):
    phase = _require(state, action, PolishingPhase)
    if str(state.content_type or "").lower() not in rules.video_content_types:
        return _finish(state, phase, rules)

    video = VideoRecommendationState(
        budget_band=rules.default_budget_band,
        quality_tier=rules.default_quality_tier,
        duration_seconds=rules.default_duration_seconds,
        aspect_ratio=rules.default_aspect_ratio,
        recommendation_request_id=1,
        is_loading_recommendation=True,
    )
    offer = VideoOfferPhase(
        angle=phase.angle,
        sections=phase.sections,
        momentum=phase.momentum,
        fixes=phase.fixes,
        video_state=video,
    )
    nxt = _set(state, offer, is_loading=False, error=None)
    nxt = _think(nxt, rules, "Picking a video provider")
    return Transition(nxt, [_recommendation(nxt, video)])


# ─── video offer ───────────────────────────────────────────────────────────────


def _with_video(state: SessionState, phase: VideoOfferPhase, video: VideoRecommendationState, **phase_updates) -> SessionState:
    return _set(state, phase.model_copy(update={"video_state": video, **phase_updates}))


def _update_video_state(state, action, rules):
    phase = _require(state, action, VideoOfferPhase)
    changes = action.patch.model_dump(exclude_none=True)
    if "selected_provider_id" in changes and get_provider(changes["selected_provider_id"]) is None:
        _invalid(state, action, f"unknown provider {changes['selected_provider_id']}")
    before = phase.video_state
    video = before.model_copy(update=changes)
    if _fingerprint(video) == _fingerprint(before):
        return Transition(_with_video(state, phase, video))
    video = video.model_copy(
        update={
            "recommendation_request_id": before.recommendation_request_id + 1,
            "is_loading_recommendation": True,
        }
    )
    return Transition(_with_video(state, phase, video), [_recommendation(state, video)])


def _recommendation_loaded(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, VideoOfferPhase):
        return _ignore(state, action, "not offering video")
    video = phase.video_state
    if action.request_id != video.recommendation_request_id:
        logger.debug(
            "recommendation_stale session_id=%s got=%s latest=%s",
            state.session_id,
            action.request_id,
            video.recommendation_request_id,
        )
        return Transition(state)
    selected = video.selected_provider_id
    recommended = action.result.recommended
    if video.mode == "auto" or selected is None:
        selected = recommended.provider.id if recommended else None
    video = video.model_copy(
        update={"recommendation": action.result, "is_loading_recommendation": False, "selected_provider_id": selected}
    )
    nxt = _set(_with_video(state, phase, video), error=None)
    if recommended is None:
        return Transition(_think(nxt, rules, "No video providers available"))
    detail = recommended.reason
    if action.result.fallback_used:
        detail = f"{detail} (nothing fits the budget, closest option)"
    return Transition(_think(nxt, rules, f"Recommended {recommended.provider.name}", detail))


def _recommendation_failed(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, VideoOfferPhase) or action.request_id != phase.video_state.recommendation_request_id:
        return _ignore(state, action, "stale recommendation failure")
    video = phase.video_state.model_copy(update={"is_loading_recommendation": False})
    return Transition(_set(_with_video(state, phase, video), error=action.error))


def _select_provider(state, action, rules):
    phase = _require(state, action, VideoOfferPhase)
    if get_provider(action.provider_id) is None:
        _invalid(state, action, f"unknown provider {action.provider_id}")
    video = phase.video_state.model_copy(update={"selected_provider_id": action.provider_id, "mode": "manual"})
    return Transition(_with_video(state, phase, video))


def _active_provider(state, action, phase: VideoOfferPhase) -> VideoProviderMeta:
    video = phase.video_state
    provider_id = video.selected_provider_id
    if not provider_id and video.recommendation and video.recommendation.recommended:
        provider_id = video.recommendation.recommended.provider.id
    provider = get_provider(provider_id) if provider_id else None
    if provider is None:
        _invalid(state, action, "no video provider selected")
    return provider


def _gate_open(state, action, phase: VideoOfferPhase) -> None:
    if phase.cost_gate is not None:
        _invalid(state, action, "a cost confirmation is already pending", CostGateError)


def _start_test(state, phase: VideoOfferPhase, rules, provider: VideoProviderMeta, cost: float, duration: int, prompt: str) -> Transition:
    video = phase.video_state.model_copy(
        update={
            "selected_provider_id": provider.id,
            "test_render_status": "rendering",
            "test_render_error": None,
            "test_render_progress": 0.0,
            "test_render_job_id": None,
            "test_render_video_url": None,
            "budget_notice": None,
        }
    )
    nxt = _with_video(state, phase, video, cost_gate=None)
    nxt = _think(nxt, rules, f"Test render on {provider.name}", f"{duration}s, ${cost:.2f}")
    request = RenderRequest(
        provider_id=provider.id,
        prompt=prompt,
        duration_seconds=duration,
        aspect_ratio=video.aspect_ratio,
        render_type="test",
        estimated_cost=cost,
    )
    return Transition(nxt, [act.StartTestRender(request)])


def _start_full(state, phase: VideoOfferPhase, rules, provider: VideoProviderMeta, cost: float, duration: int, prompt: str) -> Transition:
    video = phase.video_state.model_copy(update={"selected_provider_id": provider.id, "budget_notice": None})
    nxt = _set(_with_video(state, phase, video, cost_gate=None), is_loading=True, error=None)
    nxt = _think(nxt, rules, f"Full render on {provider.name}", f"{duration}s, ${cost:.2f}")
    request = RenderRequest(
        provider_id=provider.id,
        prompt=prompt,
        duration_seconds=duration,
        aspect_ratio=video.aspect_ratio,
        render_type="full",
        estimated_cost=cost,
    )
    return Transition(nxt, [act.StartFullRender(request)])


def _request_test_render(state, action, rules):
    phase = _require(state, action, VideoOfferPhase)
    _gate_open(state, action, phase)
    video = phase.video_state
    if video.test_render_status != "idle":
        _invalid(state, action, f"test render is {video.test_render_status}; reset it first")
    provider = _active_provider(state, action, phase)
    if not provider.supports_test_render:
        _invalid(state, action, f"{provider.name} does not support test renders")

    duration = min(rules.test_render_seconds, provider.max_duration_seconds)
    cost = estimate_test_render_cost(provider.id)
    prompt = action.prompt or sec.render_prompt(phase.sections)
    if not requires_confirmation(cost):
        return _start_test(state, phase, rules, provider, cost, duration, prompt)

    gate = open_gate("test-render", provider, estimated_cost=cost, duration_seconds=duration, prompt=prompt)
    video = video.model_copy(update={"selected_provider_id": provider.id})
    nxt = _with_video(state, phase, video, cost_gate=gate)
    return Transition(nxt, [act.EstimateCost(provider.id, duration, video.aspect_ratio)])


def _confirm_full_render(state, action, rules):
    phase = _require(state, action, VideoOfferPhase)
    _gate_open(state, action, phase)
    if state.is_loading:
        return _ignore(state, action, "full render already starting")
    provider = _active_provider(state, action, phase)
    video = phase.video_state
    duration = snap_duration(provider.id, video.duration_seconds)
    cost = estimate_cost(provider.id, duration)
    prompt = action.prompt or sec.render_prompt(phase.sections)
    if not requires_confirmation(cost):
        return _start_full(state, phase, rules, provider, cost, duration, prompt)

    gate = open_gate("full-render", provider, estimated_cost=cost, duration_seconds=duration, prompt=prompt)
    video = video.model_copy(update={"selected_provider_id": provider.id})
    nxt = _with_video(state, phase, video, cost_gate=gate)
    return Transition(nxt, [act.EstimateCost(provider.id, duration, video.aspect_ratio)])


def _confirm_cost_gate(state, action, rules):
    phase = _require(state, action, VideoOfferPhase)
    gate = phase.cost_gate
    if gate is None:
        _invalid(state, action, "no cost confirmation pending")
    provider = get_provider(gate.provider_id)
    if provider is None:
        _invalid(state, action, f"unknown provider {gate.provider_id}")
    if gate.action == "test-render":
        video = phase.video_state.model_copy(update={"test_render_cost_confirmed": True})
        confirmed = phase.model_copy(update={"video_state": video})
        return _start_test(state, confirmed, rules, provider, gate.estimated_cost, gate.duration_seconds, gate.prompt)
    video = phase.video_state.model_copy(update={"full_render_cost_confirmed": True})
    confirmed = phase.model_copy(update={"video_state": video})
    return _start_full(state, confirmed, rules, provider, gate.estimated_cost, gate.duration_seconds, gate.prompt)


def _cancel_cost_gate(state, action, rules):
    phase = _require(state, action, VideoOfferPhase)
    if phase.cost_gate is None:
        return _ignore(state, action, "no cost confirmation pending")
    return Transition(_set(state, phase.model_copy(update={"cost_gate": None})))


def _cost_gate_key(state, action, rules):
    phase = _require(state, action, VideoOfferPhase)
    if phase.cost_gate is None:
        return _ignore(state, action, "no cost confirmation pending")
    decision = decision_for_key(action.key)
    if decision == "confirm":
        return _confirm_cost_gate(state, act.ConfirmCostGate(), rules)
    if decision == "cancel":
        return _cancel_cost_gate(state, act.CancelCostGate(), rules)
    return Transition(state)


def _cost_estimate_loaded(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, VideoOfferPhase) or phase.cost_gate is None:
        return _ignore(state, action, "no cost confirmation pending")
    if phase.cost_gate.provider_id != action.provider_id:
        return _ignore(state, action, "estimate for another provider")
    gate = phase.cost_gate.model_copy(update={"budget": action.estimate})
    return Transition(_set(state, phase.model_copy(update={"cost_gate": gate})))


def _test_render_started(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, VideoOfferPhase) or phase.video_state.test_render_status != "rendering":
        return _ignore(state, action, "no test render starting")
    video = phase.video_state
    paid = round(video.test_render_cost_paid + float(action.estimated_cost or 0.0), 2)
    if action.video_url:
        video = video.model_copy(
            update={
                "test_render_status": "complete",
                "test_render_job_id": action.job_id,
                "test_render_video_url": action.video_url,
                "test_render_progress": 1.0,
                "test_render_cost_paid": paid,
            }
        )
        return Transition(_set(_with_video(state, phase, video), error=None))
    if not action.job_id:
        video = video.model_copy(update={"test_render_status": "error", "test_render_error": "Render did not return a job"})
        return Transition(_with_video(state, phase, video))
    video = video.model_copy(
        update={"test_render_status": "polling", "test_render_job_id": action.job_id, "test_render_cost_paid": paid}
    )
    return Transition(_set(_with_video(state, phase, video), error=None), [act.PollRenderJobs((action.job_id,))])


def _tracking(state, job_id: Optional[str]) -> Optional[VideoOfferPhase]:
    phase = state.phase_state
    if not isinstance(phase, VideoOfferPhase):
        return None
    video = phase.video_state
    if video.test_render_status not in ("rendering", "polling"):
        return None
    if job_id and video.test_render_job_id and job_id != video.test_render_job_id:
        return None
    return phase


def _test_render_progress(state, action, rules):
    phase = _tracking(state, action.job_id)
    if phase is None:
        return _ignore(state, action, "untracked render job")
    video = phase.video_state.model_copy(update={"test_render_progress": float(action.progress)})
    return Transition(_with_video(state, phase, video))


def _test_render_finished(state, action, rules):
    phase = _tracking(state, action.job_id)
    if phase is None:
        return _ignore(state, action, "untracked render job")
    if not action.video_url:
        video = phase.video_state.model_copy(
            update={"test_render_status": "error", "test_render_error": "Render completed but no output was stored"}
        )
        return Transition(_with_video(state, phase, video))
    video = phase.video_state.model_copy(
        update={"test_render_status": "complete", "test_render_video_url": action.video_url, "test_render_progress": 1.0}
    )
    return Transition(_think(_with_video(state, phase, video), rules, "Test render ready"))


def _test_render_failed(state, action, rules):
    phase = _tracking(state, action.job_id)
    if phase is None:
        return _ignore(state, action, "untracked render job")
    video = phase.video_state.model_copy(update={"test_render_status": "error", "test_render_error": action.error})
    return Transition(_with_video(state, phase, video))


def _test_render_budget_exceeded(state, action, rules):
    phase = _tracking(state, None)
    if phase is None:
        return _ignore(state, action, "no test render starting")
    video = phase.video_state.model_copy(
        update={"test_render_status": "error", "test_render_error": action.message, "budget_notice": action.message}
    )
    return Transition(_think(_with_video(state, phase, video), rules, "Render budget reached", action.message))


def _reset_test_render(state, action, rules):
    phase = _require(state, action, VideoOfferPhase)
    video = phase.video_state
    if video.test_render_status not in ("complete", "error"):
        _invalid(state, action, f"test render is {video.test_render_status}")
    video = video.model_copy(
        update={
            "test_render_status": "idle",
            "test_render_job_id": None,
            "test_render_video_url": None,
            "test_render_progress": 0.0,
            "test_render_error": None,
            "test_render_cost_confirmed": False,
        }
    )
    return Transition(_with_video(state, phase, video), [act.StopRenderPolling()])


def _skip_video(state, action, rules):
    phase = _require(state, action, VideoOfferPhase)
    return _finish(state, phase, rules, stop_polling=True)


def _full_render_started(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, VideoOfferPhase) or not state.is_loading:
        return _ignore(state, action, "no full render starting")
    return _finish(state, phase, rules, provider_id=action.provider_id, job_id=action.job_id, stop_polling=True)


def _full_render_failed(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, VideoOfferPhase) or not state.is_loading:
        return _ignore(state, action, "no full render starting")
    video = phase.video_state.model_copy(update={"full_render_cost_confirmed": False})
    return Transition(_set(_with_video(state, phase, video), is_loading=False, error=action.error))


def _full_render_budget_exceeded(state, action, rules):
    phase = state.phase_state
    if not isinstance(phase, VideoOfferPhase) or not state.is_loading:
        return _ignore(state, action, "no full render starting")
    video = phase.video_state.model_copy(update={"full_render_cost_confirmed": False, "budget_notice": action.message})
    nxt = _set(_with_video(state, phase, video), is_loading=False)
    return Transition(_think(nxt, rules, "Render budget reached", action.message))


def _reset(state, action, rules):
    fresh = new_session(
        state.session_id,
        channels=state.channels,
        content_type=state.content_type,
        goal=state.goal,
        greeting=state.greeting,
        brand_name=state.brand_name,
    )
    effects: List[act.Effect] = [act.StopRenderPolling()]
    if not fresh.greeting:
        effects.append(_greeting(fresh))
    return Transition(fresh, effects)


_HANDLERS: Dict[type, Callable[..., Transition]] = {
    act.StartSession: _start_session,
    act.SubmitTopic: _submit_topic,
    act.RefreshAngles: _refresh_angles,
    act.RefineAngles: _refine_angles,
    act.SelectAngle: _select_angle,
    act.SelectCustomAngle: _select_custom_angle,
    act.GenerateSection: _generate_section,
    act.AcceptSection: _accept_section,
    act.RetrySection: _retry_section,
    act.EditSection: _edit_section,
    act.ReviseSection: _revise_section,
    act.AssistSection: _assist_section,
    act.RequestFixes: _request_fixes,
    act.ApplyFix: _apply_fix,
    act.CompleteSession: _complete_session,
    act.UpdateVideoState: _update_video_state,
    act.SelectProvider: _select_provider,
    act.RequestTestRender: _request_test_render,
    act.ConfirmFullRender: _confirm_full_render,
    act.ConfirmCostGate: _confirm_cost_gate,
    act.CancelCostGate: _cancel_cost_gate,
    act.CostGateKey: _cost_gate_key,
    act.ResetTestRender: _reset_test_render,
    act.SkipVideo: _skip_video,
    act.Reset: _reset,
    act.GreetingLoaded: _greeting_loaded,
    act.GreetingFailed: _greeting_failed,
    act.AnglesLoaded: _angles_loaded,
    act.AnglesFailed: _angles_failed,
    act.SectionGenerated: _section_generated,
    act.SectionFailed: _section_failed,
    act.SectionRevised: _section_revised,
    act.SectionReviseFailed: _section_revise_failed,
    act.SectionAssisted: _section_assisted,
    act.SectionAssistFailed: _section_assist_failed,
    act.MomentumScored: _momentum_scored,
    act.FixesLoaded: _fixes_loaded,
    act.FixesFailed: _fixes_failed,
    act.RecommendationLoaded: _recommendation_loaded,
    act.RecommendationFailed: _recommendation_failed,
    act.CostEstimateLoaded: _cost_estimate_loaded,
    act.TestRenderStarted: _test_render_started,
    act.TestRenderProgress: _test_render_progress,
    act.TestRenderFinished: _test_render_finished,
    act.TestRenderFailed: _test_render_failed,
    act.TestRenderBudgetExceeded: _test_render_budget_exceeded,
    act.FullRenderStarted: _full_render_started,
    act.FullRenderFailed: _full_render_failed,
    act.FullRenderBudgetExceeded: _full_render_budget_exceeded,
}


def reduce(state: SessionState, action, rules: Optional[SessionRules] = None) -> Transition:
    """Fold one action into the state; raises InvalidTransitionError for phase violations."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise InvalidTransitionError(
            f"unsupported action {type(action).__name__}",
            phase=state.phase.value,
            action=getattr(action, "type", type(action).__name__),
        )
    return handler(state, action, rules or DEFAULT_RULES)
