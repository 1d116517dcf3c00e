"""Studio backend abstraction: every external capability the session depends on."""

from __future__ import annotations

from typing import List, Optional

from core import (
    AngleCard,
    AssistSectionRequest,
    ContextRequest,
    ContextResult,
    CostEstimate,
    CostEstimateRequest,
    FixSuggestion,
    GeneratedSection,
    GenerateSectionRequest,
    MomentumScore,
    PolishRequest,
    RecommendationRequest,
    RecommendationResult,
    RenderJobSnapshot,
    RenderRequest,
    RenderStartResult,
    ResearchRequest,
    ReviewSectionRequest,
    ReviseSectionRequest,
    ScoreRequest,
)


class BaseStudioBackend:
    """Base backend that can be replaced by the HTTP client or test fakes.

    Implementations raise ``utils.exceptions.BackendError`` on failure.
    """

    name = "base"

    async def fetch_context(self, request: ContextRequest) -> ContextResult:
        raise NotImplementedError

    async def research_angles(self, request: ResearchRequest) -> List[AngleCard]:
        raise NotImplementedError

    async def generate_section(self, request: GenerateSectionRequest) -> GeneratedSection:
        raise NotImplementedError

    async def revise_section(self, request: ReviseSectionRequest) -> GeneratedSection:
        raise NotImplementedError

    async def assist_section(self, request: AssistSectionRequest) -> GeneratedSection:
        raise NotImplementedError

    async def review_section(self, request: ReviewSectionRequest) -> Optional[str]:
        """Qualitative feedback text, or None when no review is available."""
        raise NotImplementedError

    async def polish(self, request: PolishRequest) -> List[FixSuggestion]:
        raise NotImplementedError

    async def score_momentum(self, request: ScoreRequest) -> MomentumScore:
        raise NotImplementedError

    async def recommend(self, request: RecommendationRequest) -> RecommendationResult:
        raise NotImplementedError

    async def start_render(self, request: RenderRequest) -> RenderStartResult:
        raise NotImplementedError

    async def get_render_status(self, job_id: str) -> RenderJobSnapshot:
        raise NotImplementedError

    async def get_render_job(self, job_id: str) -> RenderJobSnapshot:
        """Full job record, including output asset URLs."""
        raise NotImplementedError

    async def estimate_cost(self, request: CostEstimateRequest) -> CostEstimate:
        raise NotImplementedError
