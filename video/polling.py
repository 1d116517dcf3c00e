"""Scheduled render-job poller with backoff and a single terminal refetch."""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from config import PollingSettings
from core import RenderJobSnapshot


logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Awaitable[RenderJobSnapshot]]
Refetcher = Callable[[List[RenderJobSnapshot]], Awaitable[Any]]
UpdateCallback = Callable[[RenderJobSnapshot], Any]
TimeoutCallback = Callable[[List[str]], Any]
Sleeper = Callable[[float], Awaitable[Any]]


@dataclass
class PollOutcome:
    """What one poller run observed."""

    snapshots: Dict[str, RenderJobSnapshot] = field(default_factory=dict)
    ticks: int = 0
    refetches: int = 0
    timed_out: bool = False

    @property
    def pending(self) -> List[str]:
        return [job_id for job_id, snap in self.snapshots.items() if not snap.is_terminal]


class RenderJobPoller:
    """Polls outstanding render jobs on a fixed schedule until each reaches a terminal status.

    All outstanding jobs are fetched concurrently per tick; ticks run strictly one
    after another. The interval is ``initial_interval`` until more than
    ``backoff_after_ticks`` ticks have run, then ``backoff_interval``. When a tick
    observes a terminal status, interval polling for that job stops and one full
    refetch runs after ``refetch_delay``.
    """

    def __init__(
        self,
        *,
        fetch_status: StatusFetcher,
        refetch: Refetcher,
        on_update: Optional[UpdateCallback] = None,
        on_timeout: Optional[TimeoutCallback] = None,
        settings: Optional[PollingSettings] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._fetch_status = fetch_status
        self._refetch = refetch
        self._on_update = on_update
        self._on_timeout = on_timeout
        self._settings = settings or PollingSettings()
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.tick_count = 0
        self.refetch_count = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def next_interval(self) -> float:
        if self.tick_count > self._settings.backoff_after_ticks:
            return float(self._settings.backoff_interval)
        return float(self._settings.initial_interval)

    def start(self, job_ids: Iterable[str]) -> Optional[asyncio.Task]:
        """Schedule polling; an empty job set schedules nothing."""
        jobs = [str(item).strip() for item in job_ids if str(item or "").strip()]
        if not jobs:
            logger.debug("poll_skip reason=no_jobs")
            return None
        self.cancel()
        self._task = asyncio.get_running_loop().create_task(self.run(jobs))
        return self._task

    def cancel(self) -> bool:
        if self._task is None or self._task.done():
            return False
        self._task.cancel()
        logger.info("poll_cancel ticks=%s", self.tick_count)
        return True

    async def wait(self) -> Optional[PollOutcome]:
        if self._task is None:
            return None
        try:
            return await self._task
        except asyncio.CancelledError:
            return None

    async def run(self, job_ids: Iterable[str]) -> PollOutcome:
        outcome = PollOutcome()
        pending = [str(item) for item in job_ids]
        self.tick_count = 0
        self.refetch_count = 0

        while pending:
            if self.tick_count >= self._settings.max_ticks:
                outcome.timed_out = True
                logger.warning("poll_timeout jobs=%s ticks=%s", ",".join(pending), self.tick_count)
                await self._invoke(self._on_timeout, list(pending))
                break

            await self._sleep(self.next_interval())
            results = await asyncio.gather(
                *(self._fetch_status(job_id) for job_id in pending),
                return_exceptions=True,
            )
            self.tick_count += 1
            outcome.ticks = self.tick_count

            terminal: List[RenderJobSnapshot] = []
            done_ids: List[str] = []
            for job_id, result in zip(pending, results):
                if isinstance(result, BaseException):
                    logger.warning("poll_tick_failed job_id=%s error=%s", job_id, result)
                    continue
                outcome.snapshots[job_id] = result
                await self._invoke(self._on_update, result)
                if result.is_terminal:
                    terminal.append(result)
                    done_ids.append(job_id)

            logger.debug(
                "poll_tick tick=%s pending=%s terminal=%s",
                self.tick_count,
                len(pending),
                len(terminal),
            )
            if not terminal:
                continue

            pending = [job_id for job_id in pending if job_id not in done_ids]
            await self._sleep(float(self._settings.refetch_delay))
            try:
                await self._refetch(terminal)
            except Exception as exc:
                logger.warning("poll_refetch_failed jobs=%s error=%s", ",".join(done_ids), exc)
            self.refetch_count += 1
            outcome.refetches = self.refetch_count

        return outcome

    @staticmethod
    async def _invoke(callback: Optional[Callable[..., Any]], arg: Any) -> None:
        if callback is None:
            return
        result = callback(arg)
        if inspect.isawaitable(result):
            await result
