"""Scheduled expiry sweeps."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class ExpirySweepScheduler:
    """Runs the inventory expiry sweep on a cron schedule.

    Uses APScheduler for cron-based scheduling.
    """

    def __init__(self, config, service) -> None:
        """Initialize scheduler.

        Args:
            config: StockscanConfig instance.
            service: InventoryService whose sweep is run.

        Raises:
            ImportError: If apscheduler is not installed.
        """
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler
            from apscheduler.triggers.cron import CronTrigger
        except ImportError:
            raise ImportError(
                "apscheduler is required: pip install 'stockscan[scheduler]'"
            )

        self._config = config
        self._service = service
        self._scheduler = AsyncIOScheduler()
        self._CronTrigger = CronTrigger
        self._running = False

    def setup_jobs(self) -> None:
        """Register scheduled jobs based on config."""
        schedule = self._config.lifecycle.sweep_schedule
        trigger = self._parse_cron(schedule)
        self._scheduler.add_job(
            self._job_expire_items,
            trigger=trigger,
            id="expire_items",
            name="Expiry sweep",
            replace_existing=True,
        )
        logger.info("Expiry sweep job registered: %s", schedule)

    def start(self) -> None:
        """Start the scheduler. Must be called from a running event loop."""
        self.setup_jobs()
        self._scheduler.start()
        self._running = True
        logger.info("Scheduler started")

    def stop(self) -> None:
        if self._running:
            self._scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    @property
    def running(self) -> bool:
        return self._running

    def get_jobs(self) -> list[dict]:
        """Return info about scheduled jobs."""
        jobs = []
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "id": job.id,
                "name": job.name,
                "next_run": str(next_run) if next_run else None,
            })
        return jobs

    def _parse_cron(self, expr: str):
        """Parse a cron expression into a CronTrigger."""
        parts = expr.split()
        if len(parts) == 5:
            return self._CronTrigger(
                minute=parts[0],
                hour=parts[1],
                day=parts[2],
                month=parts[3],
                day_of_week=parts[4],
            )
        raise ValueError(f"Invalid cron expression: {expr}")

    async def _job_expire_items(self) -> None:
        """Mark expired items in the inventory."""
        logger.info("Running expiry sweep...")

        try:
            task = await self._service.sweep()
            if task is not None:
                count = await task
                logger.info("Expiry sweep marked %d product(s) expired", count)
        except Exception:
            logger.exception("Expiry sweep failed")
