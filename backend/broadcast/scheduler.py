"""
Background re-scrape loop for broadcast candidates.
Runs one refresh immediately on start, then one per interval until stopped.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from shared.utils.logging import get_logger

from broadcast.service import BroadcastService

logger = get_logger(__name__)


class BroadcastRefreshScheduler:
    def __init__(
        self,
        service: BroadcastService,
        interval_s: float,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._service = service
        self._interval = interval_s
        self._sleep = sleep
        self._task: Optional[asyncio.Task[None]] = None
        self.runs = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("broadcast_scheduler_already_running")
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="broadcast-refresh")
        logger.info("broadcast_scheduler_started", interval_s=self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("broadcast_scheduler_stopped", runs=self.runs, failures=self.failures)

    async def run_once(self) -> bool:
        """One refresh; errors are logged and counted, never raised."""
        try:
            count = await self._service.refresh()
        except Exception as exc:
            self.failures += 1
            logger.error("broadcast_refresh_failed", error=str(exc), exc_info=True)
            return False
        self.runs += 1
        logger.info("broadcast_refresh_complete", candidates=count, runs=self.runs)
        return True

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await self._sleep(self._interval)
