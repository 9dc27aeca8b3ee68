"""CronScheduler — APScheduler tick that triggers ``run_due_crons`` every minute."""

from __future__ import annotations

from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

if TYPE_CHECKING:
    from clawcron.core.config.schema import Config
    from clawcron.core.cron.runner import CronRunner

_TICK_JOB_ID = "clawcron-tick"


class CronScheduler:
    """Periodic trigger for the runner.

    The runner owns no timer; this is one of its external callers. Jobs
    themselves stay in SQLite and are evaluated on every tick, so nothing
    has to be re-registered when a job is added, edited or removed.
    """

    def __init__(self, runner: CronRunner, config: Config | None = None):
        self.runner = runner
        self.config = config or runner.config
        tz = self.config.tz
        self._scheduler = AsyncIOScheduler(
            job_defaults={"coalesce": True, "max_instances": 1},
            **({"timezone": tz} if tz else {}),
        )

    async def start(self) -> None:
        """Register the tick job and start APScheduler."""
        if not self.config.cron.enabled:
            logger.debug("CronScheduler disabled")
            return
        tz = self.config.tz
        trigger = CronTrigger.from_crontab(self.config.cron.tick, **({"timezone": tz} if tz else {}))
        self._scheduler.add_job(
            self.tick,
            trigger=trigger,
            id=_TICK_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(f"CronScheduler started (tick={self.config.cron.tick!r})")

    async def stop(self) -> None:
        """Shutdown the scheduler gracefully."""
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("CronScheduler stopped")

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def tick(self) -> None:
        """One pass over the job set. Errors are logged, never raised into APScheduler."""
        try:
            results = await self.runner.run_due_crons()
        except Exception as e:
            logger.error(f"Cron tick failed: {e}")
            return
        if results:
            failed = sum(1 for r in results if r.status == "failed")
            logger.info(f"Cron tick ran {len(results)} job(s), {failed} failed")
