"""Delayed one-shot jobs on the process's APScheduler instance.

The sync jobs enqueue each other (poll -> refresh, fast refresh ->
enrichment, enrichment -> next batch). Jobs live in the scheduler's
in-memory job store, so a restart drops pending work; the next poll cycle
re-derives it from the database.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger

logger = logging.getLogger(__name__)


class TaskQueue:
    """Thin enqueue API over a running scheduler."""

    def __init__(self) -> None:
        self._scheduler: BaseScheduler | None = None

    @property
    def is_bound(self) -> bool:
        return self._scheduler is not None

    def bind(self, scheduler: BaseScheduler) -> None:
        self._scheduler = scheduler

    def unbind(self) -> None:
        self._scheduler = None

    def enqueue(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        delay_seconds: float = 0,
        **kwargs: Any,
    ) -> str:
        """
        Run `func(*args, **kwargs)` once, `delay_seconds` from now.

        Late jobs still run (no misfire grace limit) and are never merged.

        Returns:
            The scheduler job id.

        Raises:
            RuntimeError: If no scheduler is bound.
        """
        if self._scheduler is None:
            raise RuntimeError("Task queue is not bound to a running scheduler")

        run_date = datetime.now(UTC) + timedelta(seconds=max(delay_seconds, 0))
        job = self._scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_date),
            args=list(args),
            kwargs=kwargs,
            name=getattr(func, "__name__", repr(func)),
            misfire_grace_time=None,
            coalesce=False,
        )
        logger.debug(f"[task-queue] Enqueued {job.name} ({job.id}) in {delay_seconds:.0f}s")
        return str(job.id)


task_queue = TaskQueue()
