"""Abortable cost-estimate lookup."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core import CostEstimate, CostEstimateRequest
from utils.exceptions import StudioError


logger = logging.getLogger(__name__)


class CostEstimator:
    """Fetches render cost estimates; a newer call cancels the one still in flight."""

    def __init__(self, backend) -> None:
        self._backend = backend
        self._inflight: Optional[asyncio.Task] = None

    def cancel(self) -> bool:
        task = self._inflight
        self._inflight = None
        if task is None or task.done():
            return False
        task.cancel()
        return True

    async def close(self) -> None:
        self.cancel()

    async def estimate(
        self,
        provider: str,
        *,
        model: Optional[str] = None,
        duration_seconds: int,
        aspect_ratio: str = "16:9",
    ) -> Optional[CostEstimate]:
        """Return the estimate, or None when superseded, cancelled or failed."""
        self.cancel()
        request = CostEstimateRequest(
            provider=provider,
            model=model,
            duration_seconds=duration_seconds,
            aspect_ratio=aspect_ratio,
        )
        task = asyncio.ensure_future(self._backend.estimate_cost(request))
        self._inflight = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._inflight is task:
                self._inflight = None

        if task.cancelled():
            logger.debug("estimate_superseded provider=%s duration=%s", provider, duration_seconds)
            return None
        exc = task.exception()
        if exc is None:
            return task.result()
        if isinstance(exc, StudioError):
            logger.warning("estimate_failed provider=%s error=%s", provider, exc)
            return None
        raise exc
