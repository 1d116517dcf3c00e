"""Closed set of session actions (inputs) and effect commands (outputs of the reducer)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import Field, field_validator

from core import (
    AngleCard,
    AssistSectionRequest,
    ContextRequest,
    CostEstimate,
    CreativeResult,
    FixSuggestion,
    GenerateSectionRequest,
    MomentumScore,
    PolishRequest,
    RecommendationRequest,
    RecommendationResult,
    RenderRequest,
    ResearchRequest,
    ReviseSectionRequest,
    ScoreRequest,
    VideoStatePatch,
)
from core.contracts import Contract


def _required_text(value: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValueError("must not be empty")
    return text


# ─── User actions ──────────────────────────────────────────────────────────────


class StartSession(Contract):
    type: Literal["start_session"] = "start_session"


class SubmitTopic(Contract):
    type: Literal["submit_topic"] = "submit_topic"
    topic: str

    @field_validator("topic", mode="before")
    @classmethod
    def _topic(cls, value: str) -> str:
        return _required_text(value)


class RefreshAngles(Contract):
    type: Literal["refresh_angles"] = "refresh_angles"


class RefineAngles(Contract):
    type: Literal["refine_angles"] = "refine_angles"
    feedback: str

    @field_validator("feedback", mode="before")
    @classmethod
    def _feedback(cls, value: str) -> str:
        return _required_text(value)


class SelectAngle(Contract):
    type: Literal["select_angle"] = "select_angle"
    angle_id: str


class SelectCustomAngle(Contract):
    type: Literal["select_custom_angle"] = "select_custom_angle"
    text: str

    @field_validator("text", mode="before")
    @classmethod
    def _text(cls, value: str) -> str:
        return _required_text(value)


class GenerateSection(Contract):
    type: Literal["generate_section"] = "generate_section"
    index: int = Field(ge=0)


class AcceptSection(Contract):
    type: Literal["accept_section"] = "accept_section"
    index: int = Field(ge=0)


class RetrySection(Contract):
    type: Literal["retry_section"] = "retry_section"
    index: int = Field(ge=0)


class EditSection(Contract):
    type: Literal["edit_section"] = "edit_section"
    index: int = Field(ge=0)
    content: str


class ReviseSection(Contract):
    type: Literal["revise_section"] = "revise_section"
    index: int = Field(ge=0)
    direction: str

    @field_validator("direction", mode="before")
    @classmethod
    def _direction(cls, value: str) -> str:
        return _required_text(value)


class AssistSection(Contract):
    type: Literal["assist_section"] = "assist_section"
    index: int = Field(ge=0)
    notes: str

    @field_validator("notes", mode="before")
    @classmethod
    def _notes(cls, value: str) -> str:
        return _required_text(value)


class RequestFixes(Contract):
    type: Literal["request_fixes"] = "request_fixes"


class ApplyFix(Contract):
    type: Literal["apply_fix"] = "apply_fix"
    fix_id: str


class CompleteSession(Contract):
    type: Literal["complete_session"] = "complete_session"


class UpdateVideoState(Contract):
    type: Literal["update_video_state"] = "update_video_state"
    patch: VideoStatePatch


class SelectProvider(Contract):
    type: Literal["select_provider"] = "select_provider"
    provider_id: str


class RequestTestRender(Contract):
    type: Literal["request_test_render"] = "request_test_render"
    prompt: Optional[str] = None


class ConfirmFullRender(Contract):
    type: Literal["confirm_full_render"] = "confirm_full_render"
    prompt: Optional[str] = None


class ConfirmCostGate(Contract):
    type: Literal["confirm_cost_gate"] = "confirm_cost_gate"


class CancelCostGate(Contract):
    type: Literal["cancel_cost_gate"] = "cancel_cost_gate"


class CostGateKey(Contract):
    type: Literal["cost_gate_key"] = "cost_gate_key"
    key: str


class ResetTestRender(Contract):
    type: Literal["reset_test_render"] = "reset_test_render"


class SkipVideo(Contract):
    type: Literal["skip_video"] = "skip_video"


class Reset(Contract):
    type: Literal["reset"] = "reset"


UserAction = Annotated[
    Union[
        StartSession,
        SubmitTopic,
        RefreshAngles,
        RefineAngles,
        SelectAngle,
        SelectCustomAngle,
        GenerateSection,
        AcceptSection,
        RetrySection,
        EditSection,
        ReviseSection,
        AssistSection,
        RequestFixes,
        ApplyFix,
        CompleteSession,
        UpdateVideoState,
        SelectProvider,
        RequestTestRender,
        ConfirmFullRender,
        ConfirmCostGate,
        CancelCostGate,
        CostGateKey,
        ResetTestRender,
        SkipVideo,
        Reset,
    ],
    Field(discriminator="type"),
]


# ─── Results fed back by the controller ────────────────────────────────────────


class GreetingLoaded(Contract):
    type: Literal["greeting_loaded"] = "greeting_loaded"
    greeting: str
    brand_name: str = ""


class GreetingFailed(Contract):
    type: Literal["greeting_failed"] = "greeting_failed"
    error: str


class AnglesLoaded(Contract):
    type: Literal["angles_loaded"] = "angles_loaded"
    angles: List[AngleCard] = Field(default_factory=list)


class AnglesFailed(Contract):
    type: Literal["angles_failed"] = "angles_failed"
    error: str


class SectionGenerated(Contract):
    type: Literal["section_generated"] = "section_generated"
    index: int
    content: str
    thinking: str = ""


class SectionFailed(Contract):
    type: Literal["section_failed"] = "section_failed"
    index: int
    error: str


class SectionRevised(Contract):
    type: Literal["section_revised"] = "section_revised"
    index: int
    content: str
    thinking: str = ""


class SectionReviseFailed(Contract):
    type: Literal["section_revise_failed"] = "section_revise_failed"
    index: int
    error: str


class SectionAssisted(Contract):
    type: Literal["section_assisted"] = "section_assisted"
    index: int
    content: str
    thinking: str = ""


class SectionAssistFailed(Contract):
    type: Literal["section_assist_failed"] = "section_assist_failed"
    index: int
    error: str


class MomentumScored(Contract):
    type: Literal["momentum_scored"] = "momentum_scored"
    momentum: MomentumScore


class FixesLoaded(Contract):
    type: Literal["fixes_loaded"] = "fixes_loaded"
    fixes: List[FixSuggestion] = Field(default_factory=list)


class FixesFailed(Contract):
    type: Literal["fixes_failed"] = "fixes_failed"
    error: str


class RecommendationLoaded(Contract):
    type: Literal["recommendation_loaded"] = "recommendation_loaded"
    request_id: int
    result: RecommendationResult


class RecommendationFailed(Contract):
    type: Literal["recommendation_failed"] = "recommendation_failed"
    request_id: int
    error: str


class CostEstimateLoaded(Contract):
    type: Literal["cost_estimate_loaded"] = "cost_estimate_loaded"
    provider_id: str
    estimate: CostEstimate


class TestRenderStarted(Contract):
    type: Literal["test_render_started"] = "test_render_started"
    job_id: Optional[str] = None
    video_url: Optional[str] = None
    estimated_cost: float = 0.0


class TestRenderProgress(Contract):
    type: Literal["test_render_progress"] = "test_render_progress"
    job_id: str
    progress: float = 0.0


class TestRenderFinished(Contract):
    type: Literal["test_render_finished"] = "test_render_finished"
    job_id: str
    video_url: Optional[str] = None


class TestRenderFailed(Contract):
    type: Literal["test_render_failed"] = "test_render_failed"
    job_id: Optional[str] = None
    error: str


class TestRenderBudgetExceeded(Contract):
    type: Literal["test_render_budget_exceeded"] = "test_render_budget_exceeded"
    message: str


class FullRenderStarted(Contract):
    type: Literal["full_render_started"] = "full_render_started"
    provider_id: str
    job_id: Optional[str] = None


class FullRenderFailed(Contract):
    type: Literal["full_render_failed"] = "full_render_failed"
    error: str


class FullRenderBudgetExceeded(Contract):
    type: Literal["full_render_budget_exceeded"] = "full_render_budget_exceeded"
    message: str


ResultAction = Union[
    GreetingLoaded,
    GreetingFailed,
    AnglesLoaded,
    AnglesFailed,
    SectionGenerated,
    SectionFailed,
    SectionRevised,
    SectionReviseFailed,
    SectionAssisted,
    SectionAssistFailed,
    MomentumScored,
    FixesLoaded,
    FixesFailed,
    RecommendationLoaded,
    RecommendationFailed,
    CostEstimateLoaded,
    TestRenderStarted,
    TestRenderProgress,
    TestRenderFinished,
    TestRenderFailed,
    TestRenderBudgetExceeded,
    FullRenderStarted,
    FullRenderFailed,
    FullRenderBudgetExceeded,
]

Action = Union[UserAction, ResultAction]


# ─── Effects ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class FetchGreeting:
    request: ContextRequest


@dataclass(frozen=True)
class ResearchAngles:
    request: ResearchRequest


@dataclass(frozen=True)
class GenerateSectionContent:
    index: int
    request: GenerateSectionRequest


@dataclass(frozen=True)
class ReviseSectionContent:
    index: int
    request: ReviseSectionRequest


@dataclass(frozen=True)
class AssistSectionContent:
    index: int
    request: AssistSectionRequest


@dataclass(frozen=True)
class ScoreMomentum:
    request: ScoreRequest


@dataclass(frozen=True)
class FetchFixes:
    request: PolishRequest


@dataclass(frozen=True)
class FetchRecommendation:
    request_id: int
    request: RecommendationRequest


@dataclass(frozen=True)
class EstimateCost:
    provider_id: str
    duration_seconds: int
    aspect_ratio: str = "16:9"


@dataclass(frozen=True)
class StartTestRender:
    request: RenderRequest


@dataclass(frozen=True)
class StartFullRender:
    request: RenderRequest


@dataclass(frozen=True)
class PollRenderJobs:
    job_ids: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class StopRenderPolling:
    pass


@dataclass(frozen=True)
class NotifyComplete:
    result: CreativeResult


Effect = Union[
    FetchGreeting,
    ResearchAngles,
    GenerateSectionContent,
    ReviseSectionContent,
    AssistSectionContent,
    ScoreMomentum,
    FetchFixes,
    FetchRecommendation,
    EstimateCost,
    StartTestRender,
    StartFullRender,
    PollRenderJobs,
    StopRenderPolling,
    NotifyComplete,
]
