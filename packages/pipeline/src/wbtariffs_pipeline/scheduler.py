"""
scheduler.py — Cron triggers for the tariff sync and retention cleanup.

Two jobs run on the asyncio loop of the serving process:
  tariff-sync  — pipeline.full_sync(today) on settings.sync_cron_schedule (hourly)
  cleanup      — pipeline.cleanup(retention_days) daily at 03:00

Each job allows a single running instance and coalesces missed runs. Job
bodies log and swallow failures so one bad tick never stops the scheduler.
Triggers fire in the scheduler time zone, and each sync run stores the
tariff day of that zone rather than of the host clock.

Usage:
    scheduler = TariffScheduler(pipeline, sync_cron="0 * * * *")
    scheduler.start()      # requires a running event loop
    ...
    scheduler.stop()
"""

from __future__ import annotations

from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from wbtariffs_shared.constants import DEFAULT_RETENTION_DAYS
from wbtariffs_shared.time_utils import today_in
from wbtariffs_pipeline.pipelines.tariff_sync import TariffSyncPipeline
from wbtariffs_pipeline.utils.logging import get_logger

log = get_logger(__name__, component="scheduler")

SYNC_JOB_ID = "tariff-sync"
CLEANUP_JOB_ID = "cleanup"


def build_trigger(expression: str, timezone: str) -> CronTrigger:
    """
    Parse a five-field crontab expression.

    Raises:
        ValueError: malformed expression.
    """
    return CronTrigger.from_crontab(expression, timezone=timezone)


class TariffScheduler:
    """Owns the APScheduler instance and the two recurring jobs."""

    def __init__(
        self,
        pipeline: TariffSyncPipeline,
        sync_cron: str = "0 * * * *",
        cleanup_cron: str = "0 3 * * *",
        *,
        timezone: str = "Europe/Moscow",
        retention_days: int = DEFAULT_RETENTION_DAYS,
    ) -> None:
        self.pipeline = pipeline
        self.sync_cron = sync_cron
        self.cleanup_cron = cleanup_cron
        self.timezone = timezone
        self.retention_days = retention_days
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    # ------------------------------------------------------------------
    # Job bodies
    # ------------------------------------------------------------------

    async def run_sync_job(self) -> None:
        log.info("job_started", job=SYNC_JOB_ID)
        try:
            await self.pipeline.full_sync(today_in(self.timezone))
        except Exception as exc:
            log.error("job_failed", job=SYNC_JOB_ID, error=str(exc), exc_info=True)

    async def run_cleanup_job(self) -> None:
        log.info("job_started", job=CLEANUP_JOB_ID)
        try:
            result = await self.pipeline.cleanup(self.retention_days)
            if not result.success:
                log.warning("cleanup_job_unsuccessful", error=result.error)
        except Exception as exc:
            log.error("job_failed", job=CLEANUP_JOB_ID, error=str(exc), exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Register both jobs and start the scheduler on the running loop."""
        if self.running:
            log.warning("scheduler_already_running")
            return

        sync_trigger = build_trigger(self.sync_cron, self.timezone)
        cleanup_trigger = build_trigger(self.cleanup_cron, self.timezone)

        scheduler = AsyncIOScheduler(timezone=self.timezone)
        scheduler.add_job(
            self.run_sync_job,
            sync_trigger,
            id=SYNC_JOB_ID,
            name=SYNC_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        scheduler.add_job(
            self.run_cleanup_job,
            cleanup_trigger,
            id=CLEANUP_JOB_ID,
            name=CLEANUP_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        log.info("job_scheduled", job=SYNC_JOB_ID, cron=self.sync_cron, timezone=self.timezone)
        log.info("job_scheduled", job=CLEANUP_JOB_ID, cron=self.cleanup_cron, timezone=self.timezone)

    def stop(self) -> None:
        """Remove all jobs and shut down without waiting for running ones."""
        if self._scheduler is None:
            return
        log.info("scheduler_stopping")
        for job in self._scheduler.get_jobs():
            job.remove()
            log.info("job_stopped", job=job.id)
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None

    def get_status(self) -> list[dict[str, Any]]:
        """Name, state and next fire time of each registered job."""
        if self._scheduler is None:
            return []
        return [
            {
                "name": job.id,
                "status": "scheduled" if job.next_run_time else "paused",
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
            }
            for job in self._scheduler.get_jobs()
        ]
