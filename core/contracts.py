"""Canonical data contracts for the Mia creative session and video render flow."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Contract(BaseModel):
    """Base for wire-facing models: snake_case in Python, camelCase accepted from JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SessionPhase(str, Enum):
    """Where the user is in the creative session."""

    GREETING = "greeting"
    ANGLES = "angles"
    BUILDING = "building"
    POLISHING = "polishing"
    VIDEO_OFFER = "video-offer"
    DONE = "done"


class SectionType(str, Enum):
    """Structural blocks of the authored content."""

    HOOK = "hook"
    BODY = "body"
    CTA = "cta"


SECTION_ORDER = (SectionType.HOOK, SectionType.BODY, SectionType.CTA)

SECTION_LABELS = {
    SectionType.HOOK: "opening hook",
    SectionType.BODY: "main body",
    SectionType.CTA: "call to action",
}

CUSTOM_ANGLE_ID = "custom"

BudgetBand = Literal["$0-$5", "$5-$25", "$25-$100", "unlimited"]
QualityTier = Literal["fast", "balanced", "premium"]
TestRenderStatus = Literal["idle", "rendering", "polling", "complete", "error"]
FixCategory = Literal["tone", "clarity", "engagement", "length", "cta", "flow"]
FIX_CATEGORIES = ("tone", "clarity", "engagement", "length", "cta", "flow")


# ─── Angles ────────────────────────────────────────────────────────────────────


class AngleSource(Contract):
    title: str = ""
    url: str = ""
    snippet: str = ""


class AngleCard(Contract):
    """Candidate content strategy offered as a starting point."""

    id: str
    title: str
    description: str = ""
    rationale: str = ""
    sources: List[AngleSource] = Field(default_factory=list)

    @classmethod
    def custom(cls, text: str) -> "AngleCard":
        """User-authored angle; never sent back to the research backend."""
        value = str(text or "").strip()
        if not value:
            raise ValueError("custom angle text is required")
        return cls(id=CUSTOM_ANGLE_ID, title=value, description=value, rationale="Your own angle", sources=[])

    @property
    def is_custom(self) -> bool:
        return self.id == CUSTOM_ANGLE_ID


# ─── Sections ──────────────────────────────────────────────────────────────────


class SectionDraft(Contract):
    type: SectionType
    content: str = ""
    version: int = 0
    accepted: bool = False
    rejected_versions: List[str] = Field(default_factory=list)
    is_generating: bool = False
    is_revising: bool = False
    is_assisting: bool = False

    @property
    def busy(self) -> bool:
        return self.is_generating or self.is_revising or self.is_assisting


class SectionContent(Contract):
    type: SectionType
    content: str


# ─── Polish & momentum ─────────────────────────────────────────────────────────


class FixSuggestion(Contract):
    id: str
    category: FixCategory
    description: str
    current_text: Optional[str] = None
    suggested_text: Optional[str] = None
    applied: bool = False

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: Any) -> str:
        token = str(value or "").strip().lower()
        return token if token in FIX_CATEGORIES else "clarity"


class MomentumScore(Contract):
    """Multi-dimensional 0-100 quality estimate."""

    hook: int = Field(ge=0, le=100)
    clarity: int = Field(ge=0, le=100)
    cta: int = Field(ge=0, le=100)
    seo: int = Field(ge=0, le=100)
    platform_fit: int = Field(ge=0, le=100)
    overall: int = Field(ge=0, le=100)

    @field_validator("hook", "clarity", "cta", "seo", "platform_fit", "overall", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0
        return max(0, min(100, int(round(number))))


class ThinkingEntry(Contract):
    id: str
    phase: SessionPhase
    label: str
    detail: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)


# ─── Video providers & scoring ─────────────────────────────────────────────────


class VideoProviderMeta(Contract):
    id: str
    name: str
    category: Literal["cinematic", "avatar", "stock", "motion", "realtime"]
    cost_per_second: float
    min_duration_seconds: int
    max_duration_seconds: int
    quality_score: int
    latency_score: int
    resolutions: List[str] = Field(default_factory=list)
    best_for_channels: List[str] = Field(default_factory=list)
    best_for_goals: List[str] = Field(default_factory=list)
    allowed_durations: List[int] = Field(default_factory=list)
    supports_test_render: bool = False
    test_render_cost_multiplier: float = 1.0
    api_key_env_var: Optional[str] = None
    status: Literal["active", "coming_soon", "deprecated"] = "active"
    tagline: str = ""


class ScoredProvider(Contract):
    provider: VideoProviderMeta
    total_score: int
    quality_contribution: int = 0
    latency_contribution: int = 0
    fit_contribution: int = 0
    estimated_cost: float = 0.0
    test_render_cost: float = 0.0
    within_budget: bool = True
    reason: str = ""
    disqualified: bool = False
    disqualify_reason: Optional[str] = None


class RecommendationResult(Contract):
    recommended: Optional[ScoredProvider] = None
    ranking: List[ScoredProvider] = Field(default_factory=list)
    fallback_used: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.ranking


class CostGateRequest(Contract):
    """Pending chargeable action awaiting explicit confirmation."""

    action: Literal["test-render", "full-render"]
    provider_id: str
    provider_name: str = ""
    estimated_cost: float
    duration_seconds: int
    prompt: str = ""
    budget: Optional["CostEstimate"] = None


class VideoRecommendationState(Contract):
    mode: Literal["auto", "manual"] = "auto"
    budget_band: BudgetBand = "$5-$25"
    quality_tier: QualityTier = "balanced"
    duration_seconds: int = Field(default=10, ge=1)
    aspect_ratio: str = "16:9"
    recommendation: Optional[RecommendationResult] = None
    recommendation_request_id: int = 0
    selected_provider_id: Optional[str] = None
    is_loading_recommendation: bool = False
    test_render_status: TestRenderStatus = "idle"
    test_render_job_id: Optional[str] = None
    test_render_video_url: Optional[str] = None
    test_render_progress: float = 0.0
    test_render_error: Optional[str] = None
    test_render_cost_confirmed: bool = False
    full_render_cost_confirmed: bool = False
    test_render_cost_paid: float = 0.0
    budget_notice: Optional[str] = None


class VideoStatePatch(Contract):
    """User-editable subset of VideoRecommendationState, applied as a merge patch."""

    mode: Optional[Literal["auto", "manual"]] = None
    budget_band: Optional[BudgetBand] = None
    quality_tier: Optional[QualityTier] = None
    duration_seconds: Optional[int] = Field(default=None, ge=1)
    aspect_ratio: Optional[str] = None
    selected_provider_id: Optional[str] = None


# ─── Render jobs ───────────────────────────────────────────────────────────────


class RenderJobState(str, Enum):
    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_JOB_STATES = frozenset({RenderJobState.COMPLETED, RenderJobState.FAILED})

_JOB_STATE_ALIASES = {
    "PENDING": "QUEUED",
    "RUNNING": "PROCESSING",
    "COMPLETE": "COMPLETED",
    "AWAITING_PROVIDER": "FAILED",
}


class RenderJobSnapshot(Contract):
    job_id: str
    status: RenderJobState
    progress: float = 0.0
    progress_message: Optional[str] = None
    error_message: Optional[str] = None
    output_url: Optional[str] = None
    thumbnail_url: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def _upper(cls, value: Any) -> str:
        if isinstance(value, RenderJobState):
            return value.value
        token = str(value or "").strip().upper()
        return _JOB_STATE_ALIASES.get(token, token)

    @field_validator("progress", mode="before")
    @classmethod
    def _progress(cls, value: Any) -> float:
        return float(value or 0.0)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATES


class RenderRequest(Contract):
    provider_id: str
    prompt: str
    duration_seconds: int
    aspect_ratio: str = "16:9"
    render_type: Literal["test", "full"] = "test"
    estimated_cost: float = 0.0


class RenderStartResult(Contract):
    job_id: Optional[str] = None
    status: str = "processing"
    video_url: Optional[str] = None
    estimated_cost: float = 0.0
    error: Optional[str] = None

    @property
    def budget_exceeded(self) -> bool:
        return self.status == "budget_exceeded"


class CostEstimateRequest(Contract):
    provider: str
    model: Optional[str] = None
    duration_seconds: int
    aspect_ratio: str = "16:9"


class CostEstimate(Contract):
    provider: str
    duration_seconds: int
    aspect_ratio: str = "16:9"
    estimated_usd: float
    monthly_spent: float = 0.0
    monthly_limit: float = 0.0
    within_budget: bool = True
    warning: Optional[str] = None


CostGateRequest.model_rebuild()


# ─── Backend requests / responses ──────────────────────────────────────────────


class ContextRequest(Contract):
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"


class ContextResult(Contract):
    greeting: str
    brand_name: str = ""
    recent_topics: List[str] = Field(default_factory=list)


class ResearchRequest(Contract):
    topic: str
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"
    goal: Optional[str] = None
    seed: Optional[int] = None
    action: Literal["generate", "refine"] = "generate"
    brand_name: str = ""
    current_angles: List[AngleCard] = Field(default_factory=list)
    user_feedback: Optional[str] = None


class GenerateSectionRequest(Contract):
    topic: str
    angle: AngleCard
    section_type: SectionType
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"
    previous_sections: List[SectionContent] = Field(default_factory=list)
    rejected_versions: List[str] = Field(default_factory=list)
    goal: Optional[str] = None


class GeneratedSection(Contract):
    content: str
    thinking: str = ""


class ReviseSectionRequest(Contract):
    topic: str
    angle: AngleCard
    section_type: SectionType
    content: str
    direction: str
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"


class AssistSectionRequest(Contract):
    topic: str
    angle: AngleCard
    section_type: SectionType
    notes: str
    previous_sections: List[SectionContent] = Field(default_factory=list)
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"


class ReviewSectionRequest(Contract):
    topic: str
    section_type: SectionType
    content: str
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"


class PolishRequest(Contract):
    topic: str
    angle: AngleCard
    sections: List[SectionContent] = Field(default_factory=list)
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"


class ScoreRequest(Contract):
    topic: str
    sections: List[SectionContent] = Field(default_factory=list)
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"


class RecommendationRequest(Contract):
    goal: str = "awareness"
    channels: List[str] = Field(default_factory=list)
    budget_band: BudgetBand = "$5-$25"
    quality_tier: QualityTier = "balanced"
    duration_seconds: int = Field(default=10, ge=1)


class CreativeResult(Contract):
    """Completion payload handed to the caller."""

    title: str
    body: str
    hashtags: List[str] = Field(default_factory=list)
    call_to_action: str = ""
    video_provider: Optional[str] = None
    video_job_id: Optional[str] = None


# ─── Phase-tagged session state ────────────────────────────────────────────────


class GreetingPhase(Contract):
    kind: Literal["greeting"] = "greeting"


class AnglesPhase(Contract):
    kind: Literal["angles"] = "angles"
    angles: List[AngleCard] = Field(default_factory=list)
    refresh_count: int = 0


class BuildingPhase(Contract):
    kind: Literal["building"] = "building"
    angle: AngleCard
    sections: List[SectionDraft]
    current_section_index: int = 0
    momentum: Optional[MomentumScore] = None


class PolishingPhase(Contract):
    kind: Literal["polishing"] = "polishing"
    angle: AngleCard
    sections: List[SectionDraft]
    momentum: Optional[MomentumScore] = None
    fixes: List[FixSuggestion] = Field(default_factory=list)
    fixes_loading: bool = False


class VideoOfferPhase(Contract):
    kind: Literal["video-offer"] = "video-offer"
    angle: AngleCard
    sections: List[SectionDraft]
    momentum: Optional[MomentumScore] = None
    fixes: List[FixSuggestion] = Field(default_factory=list)
    video_state: VideoRecommendationState = Field(default_factory=VideoRecommendationState)
    cost_gate: Optional[CostGateRequest] = None


class DonePhase(Contract):
    kind: Literal["done"] = "done"
    result: CreativeResult


PhaseState = Annotated[
    Union[GreetingPhase, AnglesPhase, BuildingPhase, PolishingPhase, VideoOfferPhase, DonePhase],
    Field(discriminator="kind"),
]


class SessionState(Contract):
    """Whole-session record; only the reducer produces new instances."""

    session_id: str
    channels: List[str] = Field(default_factory=list)
    content_type: str = "post"
    goal: Optional[str] = None
    greeting: Optional[str] = None
    brand_name: str = ""
    topic: str = ""
    phase_state: PhaseState = Field(default_factory=GreetingPhase)
    thinking: List[ThinkingEntry] = Field(default_factory=list)
    thinking_seq: int = 0
    error: Optional[str] = None
    is_loading: bool = False

    @computed_field
    @property
    def phase(self) -> SessionPhase:
        return SessionPhase(self.phase_state.kind)

    @property
    def angles(self) -> List[AngleCard]:
        return list(getattr(self.phase_state, "angles", []) or [])

    @property
    def selected_angle(self) -> Optional[AngleCard]:
        return getattr(self.phase_state, "angle", None)

    @property
    def sections(self) -> List[SectionDraft]:
        return list(getattr(self.phase_state, "sections", []) or [])

    @property
    def current_section_index(self) -> Optional[int]:
        if isinstance(self.phase_state, BuildingPhase):
            return self.phase_state.current_section_index
        if isinstance(self.phase_state, (PolishingPhase, VideoOfferPhase)):
            return len(self.phase_state.sections)
        return None

    @property
    def fixes(self) -> List[FixSuggestion]:
        return list(getattr(self.phase_state, "fixes", []) or [])

    @property
    def momentum(self) -> Optional[MomentumScore]:
        return getattr(self.phase_state, "momentum", None)

    @property
    def video_state(self) -> Optional[VideoRecommendationState]:
        return getattr(self.phase_state, "video_state", None)

    @property
    def cost_gate(self) -> Optional[CostGateRequest]:
        return getattr(self.phase_state, "cost_gate", None)

    @property
    def result(self) -> Optional[CreativeResult]:
        return getattr(self.phase_state, "result", None)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready view for the HTTP surface."""
        return self.model_dump(mode="json")
