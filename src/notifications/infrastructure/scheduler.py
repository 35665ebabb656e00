"""
Sweep Scheduler
===============

Wrapper for APScheduler running the overdue / SLA-breach sweep in the
background.
"""

from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SWEEP_JOB_ID = "overdue_sla_sweep"


class SweepScheduler:
    """
    Manages the lifecycle of the scheduler and the sweep job.

    The job runs with ``max_instances=1`` so ticks never overlap: a tick
    still running when the next one is due makes the scheduler skip it.
    """

    def __init__(self, interval_seconds: int = 300):
        self.interval_seconds = interval_seconds
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False

    async def start(self, job_func: Callable[[], Awaitable[object]]) -> None:
        """Start the scheduler with the given job function."""
        if self._running:
            logger.warning("Sweep scheduler already running")
            return

        if self.interval_seconds <= 0:
            logger.info("Sweep scheduler disabled")
            return

        self._scheduler = AsyncIOScheduler()

        self._scheduler.add_job(
            job_func,
            "interval",
            seconds=self.interval_seconds,
            id=SWEEP_JOB_ID,
            name="Overdue and SLA Sweep",
            misfire_grace_time=60,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        self._scheduler.start()
        self._running = True

        logger.info(
            "Sweep scheduler started",
            extra={"interval_seconds": self.interval_seconds}
        )

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)

        self._running = False
        logger.info("Sweep scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    @property
    def job(self):
        """The scheduled sweep job, if started."""
        if self._scheduler is None:
            return None
        return self._scheduler.get_job(SWEEP_JOB_ID)
