"""Daily sync scheduling with APScheduler."""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from archiver.config import get_settings
from archiver.services.sync import SyncAlreadyRunningError, SyncCoordinator

logger = logging.getLogger(__name__)

JOB_ID = "incremental_sync"


class SyncScheduler:
    """Runs the coordinator's incremental sync on a cron schedule."""

    def __init__(self, coordinator: SyncCoordinator, cron: Optional[str] = None):
        self.coordinator = coordinator
        self.cron = cron or get_settings().sync_cron
        self._scheduler = AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        """Schedule the daily incremental sync. Must be called with a running event loop."""
        if self._scheduler.running:
            return

        self._scheduler.add_job(
            self.run_incremental,
            CronTrigger.from_crontab(self.cron),
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(f"Daily sync scheduler started with cron: {self.cron}")

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("All scheduled jobs stopped")

    async def run_incremental(self) -> None:
        """Scheduled job body. Failures are already in the run ledger, so only log them."""
        logger.info("Starting scheduled incremental sync...")
        try:
            await self.coordinator.incremental_sync()
        except SyncAlreadyRunningError:
            logger.warning("Skipping scheduled sync: another sync is running")
            return
        except Exception as e:
            logger.error(f"Scheduled sync failed: {e}")
            return
        logger.info("Scheduled sync completed successfully")
