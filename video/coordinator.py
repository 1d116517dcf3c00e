"""Video recommendation and render coordination against the studio backend."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Iterable, List, Optional

from config import PollingSettings
from core import (
    CostEstimate,
    RecommendationRequest,
    RecommendationResult,
    RenderJobSnapshot,
    RenderJobState,
    RenderRequest,
    RenderStartResult,
)
from utils.exceptions import StudioError

from .estimator import CostEstimator
from .polling import RenderJobPoller, Sleeper


logger = logging.getLogger(__name__)

JobCallback = Callable[[RenderJobSnapshot], Any]
TimeoutCallback = Callable[[List[str]], Any]


async def _call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class VideoCoordinator:
    """Owns the in-flight recommendation, the cost estimator and the render poller.

    Only one recommendation request is live at a time: a newer fetch cancels the
    older one, whose caller gets ``None``. Render progress and terminal results are
    reported through the callbacks given to :meth:`watch`.
    """

    def __init__(
        self,
        backend,
        *,
        polling: Optional[PollingSettings] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._polling = polling or PollingSettings()
        self._sleep = sleep
        self._estimator = CostEstimator(backend)
        self._recommendation_task: Optional[asyncio.Task] = None
        self._poller: Optional[RenderJobPoller] = None

    @property
    def poller(self) -> Optional[RenderJobPoller]:
        return self._poller

    async def fetch_recommendation(self, request: RecommendationRequest) -> Optional[RecommendationResult]:
        """Ranked providers for the request, or None when a newer request superseded it."""
        previous = self._recommendation_task
        if previous is not None and not previous.done():
            previous.cancel()
        task = asyncio.ensure_future(self._backend.recommend(request))
        self._recommendation_task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        if task.cancelled():
            logger.debug(
                "recommendation_superseded budget=%s tier=%s duration=%s",
                request.budget_band,
                request.quality_tier,
                request.duration_seconds,
            )
            return None
        return task.result()

    async def estimate(self, provider_id: str, duration_seconds: int, aspect_ratio: str = "16:9") -> Optional[CostEstimate]:
        return await self._estimator.estimate(
            provider_id,
            duration_seconds=duration_seconds,
            aspect_ratio=aspect_ratio,
        )

    async def start_render(self, request: RenderRequest) -> RenderStartResult:
        result = await self._backend.start_render(request)
        if result.budget_exceeded:
            logger.info("render_budget_exceeded provider=%s type=%s", request.provider_id, request.render_type)
        return result

    def watch(
        self,
        job_ids: Iterable[str],
        *,
        on_progress: Optional[JobCallback] = None,
        on_finished: Optional[JobCallback] = None,
        on_failed: Optional[JobCallback] = None,
        on_timeout: Optional[TimeoutCallback] = None,
    ) -> Optional[asyncio.Task]:
        """Poll render jobs in the background; an empty job set starts nothing."""
        jobs = [str(item) for item in job_ids if str(item or "").strip()]
        if not jobs:
            return None
        self.stop()

        async def refetch(terminal: List[RenderJobSnapshot]) -> None:
            for snapshot in terminal:
                try:
                    full = await self._backend.get_render_job(snapshot.job_id)
                except StudioError as exc:
                    logger.warning("render_refetch_failed job_id=%s error=%s", snapshot.job_id, exc)
                    full = snapshot
                if full.status == RenderJobState.COMPLETED:
                    await _call(on_finished, full)
                else:
                    await _call(on_failed, full)

        self._poller = RenderJobPoller(
            fetch_status=self._backend.get_render_status,
            refetch=refetch,
            on_update=on_progress,
            on_timeout=on_timeout,
            settings=self._polling,
            sleep=self._sleep,
        )

        return self._poller.start(jobs)

    def stop(self) -> bool:
        if self._poller is None:
            return False
        return self._poller.cancel()

    async def close(self) -> None:
        self.stop()
        poller = self._poller
        if poller is not None and poller.task is not asyncio.current_task():
            await poller.wait()
        await self._estimator.close()
        task = self._recommendation_task
        if task is not None and not task.done():
            task.cancel()
