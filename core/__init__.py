"""Core contracts and shared types for the creative session."""

from .contracts import (
    CUSTOM_ANGLE_ID,
    SECTION_LABELS,
    SECTION_ORDER,
    AngleCard,
    AngleSource,
    AnglesPhase,
    AssistSectionRequest,
    BudgetBand,
    BuildingPhase,
    ContextRequest,
    ContextResult,
    CostEstimate,
    CostEstimateRequest,
    CostGateRequest,
    CreativeResult,
    DonePhase,
    FixSuggestion,
    GeneratedSection,
    GenerateSectionRequest,
    GreetingPhase,
    MomentumScore,
    PhaseState,
    PolishingPhase,
    PolishRequest,
    QualityTier,
    RecommendationRequest,
    RecommendationResult,
    RenderJobSnapshot,
    RenderJobState,
    RenderRequest,
    RenderStartResult,
    ResearchRequest,
    ReviewSectionRequest,
    ReviseSectionRequest,
    ScoredProvider,
    ScoreRequest,
    SectionContent,
    SectionDraft,
    SectionType,
    SessionPhase,
    SessionState,
    ThinkingEntry,
    VideoOfferPhase,
    VideoProviderMeta,
    VideoRecommendationState,
    VideoStatePatch,
)

__all__ = [
    "CUSTOM_ANGLE_ID",
    "SECTION_LABELS",
    "SECTION_ORDER",
    "AngleCard",
    "AngleSource",
    "AnglesPhase",
    "AssistSectionRequest",
    "BudgetBand",
    "BuildingPhase",
    "ContextRequest",
    "ContextResult",
    "CostEstimate",
    "CostEstimateRequest",
    "CostGateRequest",
    "CreativeResult",
    "DonePhase",
    "FixSuggestion",
    "GeneratedSection",
    "GenerateSectionRequest",
    "GreetingPhase",
    "MomentumScore",
    "PhaseState",
    "PolishingPhase",
    "PolishRequest",
    "QualityTier",
    "RecommendationRequest",
    "RecommendationResult",
    "RenderJobSnapshot",
    "RenderJobState",
    "RenderRequest",
    "RenderStartResult",
    "ResearchRequest",
    "ReviewSectionRequest",
    "ReviseSectionRequest",
    "ScoredProvider",
    "ScoreRequest",
    "SectionContent",
    "SectionDraft",
    "SectionType",
    "SessionPhase",
    "SessionState",
    "ThinkingEntry",
    "VideoOfferPhase",
    "VideoProviderMeta",
    "VideoRecommendationState",
    "VideoStatePatch",
]
