"""Session controller: owns SessionState, runs reducer effects against the backend."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from config import Settings, get_settings
from core import CreativeResult, RenderJobSnapshot, ReviewSectionRequest, SessionState
from utils.exceptions import BackendError, MalformedResponseError
from video.coordinator import VideoCoordinator
from video.polling import Sleeper

from . import actions as act
from .reducer import SessionRules, new_session, reduce


logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Something went wrong. Please try again."
BUDGET_REACHED = "Render budget reached for this month."

CompletionCallback = Callable[[CreativeResult], Any]


class SessionController:
    """Single entry point for one creative session.

    ``dispatch(action)`` folds the action through the pure reducer, then runs the
    resulting effects in order. Each effect's outcome is dispatched back as a
    result action, so every state change goes through the reducer.
    """

    def __init__(
        self,
        backend,
        *,
        state: Optional[SessionState] = None,
        session_id: Optional[str] = None,
        channels: Optional[List[str]] = None,
        content_type: str = "post",
        goal: Optional[str] = None,
        settings: Optional[Settings] = None,
        rules: Optional[SessionRules] = None,
        on_complete: Optional[CompletionCallback] = None,
        coordinator: Optional[VideoCoordinator] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        cfg = settings or get_settings()
        self._backend = backend
        self._rules = rules or SessionRules.from_settings(cfg)
        self._state = state or new_session(session_id, channels=channels, content_type=content_type, goal=goal)
        self._coordinator = coordinator or VideoCoordinator(backend, polling=cfg.polling, sleep=sleep)
        self._on_complete = on_complete
        self._runners = {
            act.FetchGreeting: self._fetch_greeting,
            act.ResearchAngles: self._research_angles,
            act.GenerateSectionContent: self._generate_section,
            act.ReviseSectionContent: self._revise_section,
            act.AssistSectionContent: self._assist_section,
            act.ScoreMomentum: self._score_momentum,
            act.FetchFixes: self._fetch_fixes,
            act.FetchRecommendation: self._fetch_recommendation,
            act.EstimateCost: self._estimate_cost,
            act.StartTestRender: self._start_test_render,
            act.StartFullRender: self._start_full_render,
            act.PollRenderJobs: self._poll_render_jobs,
            act.StopRenderPolling: self._stop_render_polling,
            act.NotifyComplete: self._notify_complete,
        }

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def coordinator(self) -> VideoCoordinator:
        return self._coordinator

    async def start(self) -> SessionState:
        return await self.dispatch(act.StartSession())

    async def dispatch(self, action) -> SessionState:
        """Apply an action and run its effects; InvalidTransitionError propagates."""
        logger.info(
            "dispatch session_id=%s phase=%s action=%s",
            self._state.session_id,
            self._state.phase.value,
            getattr(action, "type", type(action).__name__),
        )
        transition = reduce(self._state, action, self._rules)
        self._state = transition.state
        for effect in transition.effects:
            await self._runners[type(effect)](effect)
        return self._state

    async def review_section(self, index: int, content: str) -> Optional[str]:
        """Edit a section, then ask for qualitative feedback; the feedback is not stored."""
        state = await self.dispatch(act.EditSection(index=index, content=content))
        draft = state.sections[index]
        request = ReviewSectionRequest(
            topic=state.topic,
            section_type=draft.type,
            content=content,
            channels=list(state.channels),
            content_type=state.content_type,
        )
        feedback, _ = await self._call("review_section", self._backend.review_section(request))
        return feedback

    async def close(self) -> None:
        await self._coordinator.close()

    # ─── effect runners ────────────────────────────────────────────────────

    async def _call(self, label: str, call: Awaitable[Any]) -> Tuple[Any, Optional[str]]:
        """Await a backend call; returns (value, None) or (None, user-facing error)."""
        try:
            return await call, None
        except MalformedResponseError as exc:
            logger.error(
                "backend_malformed session_id=%s call=%s endpoint=%s error=%s",
                self._state.session_id,
                label,
                exc.endpoint,
                exc.message,
            )
            return None, GENERIC_FAILURE
        except BackendError as exc:
            logger.warning(
                "backend_failed session_id=%s call=%s endpoint=%s status=%s error=%s",
                self._state.session_id,
                label,
                exc.endpoint,
                exc.status_code,
                exc.message,
            )
            return None, exc.message or GENERIC_FAILURE

    async def _fetch_greeting(self, effect: act.FetchGreeting) -> None:
        context, error = await self._call("fetch_context", self._backend.fetch_context(effect.request))
        if error:
            await self.dispatch(act.GreetingFailed(error=error))
            return
        await self.dispatch(act.GreetingLoaded(greeting=context.greeting, brand_name=context.brand_name))

    async def _research_angles(self, effect: act.ResearchAngles) -> None:
        angles, error = await self._call("research_angles", self._backend.research_angles(effect.request))
        if error:
            await self.dispatch(act.AnglesFailed(error=error))
            return
        await self.dispatch(act.AnglesLoaded(angles=angles))

    async def _generate_section(self, effect: act.GenerateSectionContent) -> None:
        section, error = await self._call("generate_section", self._backend.generate_section(effect.request))
        if error:
            await self.dispatch(act.SectionFailed(index=effect.index, error=error))
            return
        await self.dispatch(act.SectionGenerated(index=effect.index, content=section.content, thinking=section.thinking))

    async def _revise_section(self, effect: act.ReviseSectionContent) -> None:
        section, error = await self._call("revise_section", self._backend.revise_section(effect.request))
        if error:
            await self.dispatch(act.SectionReviseFailed(index=effect.index, error=error))
            return
        await self.dispatch(act.SectionRevised(index=effect.index, content=section.content, thinking=section.thinking))

    async def _assist_section(self, effect: act.AssistSectionContent) -> None:
        section, error = await self._call("assist_section", self._backend.assist_section(effect.request))
        if error:
            await self.dispatch(act.SectionAssistFailed(index=effect.index, error=error))
            return
        await self.dispatch(act.SectionAssisted(index=effect.index, content=section.content, thinking=section.thinking))

    async def _score_momentum(self, effect: act.ScoreMomentum) -> None:
        momentum, error = await self._call("score_momentum", self._backend.score_momentum(effect.request))
        if error:
            # previous score stays; scoring never surfaces as a session error
            return
        await self.dispatch(act.MomentumScored(momentum=momentum))

    async def _fetch_fixes(self, effect: act.FetchFixes) -> None:
        fixes, error = await self._call("polish", self._backend.polish(effect.request))
        if error:
            await self.dispatch(act.FixesFailed(error=error))
            return
        await self.dispatch(act.FixesLoaded(fixes=fixes))

    async def _fetch_recommendation(self, effect: act.FetchRecommendation) -> None:
        result, error = await self._call(
            "recommend",
            self._coordinator.fetch_recommendation(effect.request),
        )
        if error:
            await self.dispatch(act.RecommendationFailed(request_id=effect.request_id, error=error))
            return
        if result is None:
            return
        await self.dispatch(act.RecommendationLoaded(request_id=effect.request_id, result=result))

    async def _estimate_cost(self, effect: act.EstimateCost) -> None:
        estimate = await self._coordinator.estimate(effect.provider_id, effect.duration_seconds, effect.aspect_ratio)
        if estimate is None:
            return
        await self.dispatch(act.CostEstimateLoaded(provider_id=effect.provider_id, estimate=estimate))

    async def _start_test_render(self, effect: act.StartTestRender) -> None:
        result, error = await self._call("start_test_render", self._coordinator.start_render(effect.request))
        if error:
            await self.dispatch(act.TestRenderFailed(error=error))
            return
        if result.budget_exceeded:
            await self.dispatch(act.TestRenderBudgetExceeded(message=result.error or BUDGET_REACHED))
            return
        await self.dispatch(
            act.TestRenderStarted(
                job_id=result.job_id,
                video_url=result.video_url,
                estimated_cost=result.estimated_cost or effect.request.estimated_cost,
            )
        )

    async def _start_full_render(self, effect: act.StartFullRender) -> None:
        result, error = await self._call("start_full_render", self._coordinator.start_render(effect.request))
        if error:
            await self.dispatch(act.FullRenderFailed(error=error))
            return
        if result.budget_exceeded:
            await self.dispatch(act.FullRenderBudgetExceeded(message=result.error or BUDGET_REACHED))
            return
        await self.dispatch(act.FullRenderStarted(provider_id=effect.request.provider_id, job_id=result.job_id))

    async def _poll_render_jobs(self, effect: act.PollRenderJobs) -> None:
        async def progress(snapshot: RenderJobSnapshot) -> None:
            await self.dispatch(act.TestRenderProgress(job_id=snapshot.job_id, progress=snapshot.progress))

        async def finished(snapshot: RenderJobSnapshot) -> None:
            await self.dispatch(act.TestRenderFinished(job_id=snapshot.job_id, video_url=snapshot.output_url))

        async def failed(snapshot: RenderJobSnapshot) -> None:
            await self.dispatch(
                act.TestRenderFailed(job_id=snapshot.job_id, error=snapshot.error_message or "Render failed")
            )

        async def timed_out(job_ids: List[str]) -> None:
            for job_id in job_ids:
                await self.dispatch(act.TestRenderFailed(job_id=job_id, error="Render timed out"))

        self._coordinator.watch(
            effect.job_ids,
            on_progress=progress,
            on_finished=finished,
            on_failed=failed,
            on_timeout=timed_out,
        )

    async def _stop_render_polling(self, effect: act.StopRenderPolling) -> None:
        self._coordinator.stop()

    async def _notify_complete(self, effect: act.NotifyComplete) -> None:
        logger.info("session_complete session_id=%s title=%s", self._state.session_id, effect.result.title)
        if self._on_complete is None:
            return
        outcome = self._on_complete(effect.result)
        if inspect.isawaitable(outcome):
            await outcome
