"""Sweep Scheduler - Periodic bulk auto-assignment

The change-stream path assigns issues as they arrive. The sweep catches
whatever slipped through: issues created while the pipeline was down, or
assignments abandoned after a transient store failure.
"""
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..utils.idgen import generate_correlation_id
from ..utils.logger import get_logger, set_correlation_id

logger = get_logger(__name__)

SweepJob = Callable[[], Awaitable[int]]


class SweepScheduler:
    """APScheduler wrapper running the bulk auto-assign job on an interval"""

    def __init__(self, sweep: SweepJob, interval_seconds: Optional[int] = None):
        self.sweep = sweep
        self.interval_seconds = (
            settings.bulk_sweep_interval_seconds if interval_seconds is None else interval_seconds
        )
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False

    def start(self) -> None:
        """Start the scheduler (must be called from the running event loop)"""
        if self._is_running:
            logger.warning("Sweep scheduler already running")
            return

        if self.interval_seconds <= 0:
            logger.info("Periodic bulk sweep disabled")
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._run_sweep,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id="bulk_auto_assign",
            name="Bulk auto-assign unassigned issues",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(f"Sweep scheduler started (every {self.interval_seconds}s)")

    def stop(self) -> None:
        """Stop the scheduler"""
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
            self._is_running = False
            logger.info("Sweep scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running"""
        return self._is_running

    async def _run_sweep(self) -> None:
        set_correlation_id(generate_correlation_id())
        try:
            assigned = await self.sweep()
            if assigned:
                logger.info(f"Periodic sweep assigned {assigned} issue(s)")
        except Exception as e:
            logger.error(
                f"Error in bulk sweep job: {e}",
                extra={"error_type": type(e).__name__}
            )
