"""Periodic batch trigger for the pending queue."""

import asyncio
import logging

from privacyguard.pipeline.coordinator import ProcessingCoordinator

logger = logging.getLogger(__name__)


class AssessmentScheduler:
    """Run loop: process_all -> sleep interval. Runs once immediately on start."""

    def __init__(
        self,
        coordinator: ProcessingCoordinator,
        *,
        interval_seconds: float,
        concurrency: int | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._coordinator = coordinator
        self._interval = interval_seconds
        self._concurrency = concurrency
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        logger.info("Scheduling batch processing every %.0f seconds", self._interval)
        self._task = asyncio.create_task(self._run(), name="assessment-scheduler")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scheduler stopped")

    async def run_once(self) -> None:
        """One batch; errors are logged, never raised."""
        try:
            await self._coordinator.process_all(self._concurrency)
        except Exception:
            logger.exception("Scheduled batch processing failed")

    async def _run(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self._interval)
