"""Internal task scheduler using APScheduler.

Runs the recurring GitHub poll cycle within the FastAPI process and backs
the task queue the sync jobs use to enqueue each other. Overlapping cycles
across instances are prevented by the sync lock taken inside the cycle.
"""

import logging
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from commitsync.config import settings
from commitsync.services.task_queue import task_queue

logger = logging.getLogger(__name__)

POLL_JOB_ID = "github_poll"


async def run_github_poll() -> dict[str, Any] | None:
    """Execute one poll cycle. Returns the report dict, or None if skipped or failed."""
    from dataclasses import asdict

    from commitsync.tasks.github_sync import run_poll_cycle

    try:
        report = await run_poll_cycle()
    except Exception as e:
        logger.exception(f"[scheduler] GitHub poll: failed with error: {e}")
        return None

    return asdict(report) if report else None


class Scheduler:
    """Manages the APScheduler instance, job registration and the task queue binding."""

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """
        Start the scheduler and register the poll job.

        With SCHEDULER_ENABLED=false the scheduler still runs so enqueued
        one-shot jobs (manual syncs, enrichment) execute, but the recurring
        poll is not registered.
        """
        self._scheduler = AsyncIOScheduler(timezone="UTC")

        if settings.scheduler_enabled:
            self._scheduler.add_job(
                run_github_poll,
                trigger=IntervalTrigger(seconds=settings.github_poll_interval_seconds),
                id=POLL_JOB_ID,
                name="GitHub Poll Cycle",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        else:
            logger.info("[scheduler] Recurring poll disabled via SCHEDULER_ENABLED=false")

        self._scheduler.start()
        task_queue.bind(self._scheduler)

        if settings.scheduler_enabled:
            logger.info(
                f"[scheduler] Started with GitHub poll every "
                f"{settings.github_poll_interval_seconds}s"
            )

    def stop(self) -> None:
        """Gracefully shut down the scheduler. Pending one-shot jobs are dropped."""
        task_queue.unbind()
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("[scheduler] Stopped")


scheduler = Scheduler()
