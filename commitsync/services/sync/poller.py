"""Periodic GitHub poll: decides which (project, branch) pairs to refresh.

Main entry point for the recurring poll job. Selects eligible projects,
advances each project's watermark before any work is enqueued, and
enqueues a commit refresh for the oldest few branches. Work runs
elsewhere; this only schedules it.
"""

import logging
import time
import uuid as uuid_pkg
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.config import settings
from commitsync.core.encryption import token_encryption
from commitsync.domain import branch_ops, project_ops

logger = logging.getLogger(__name__)

RefreshScheduler = Callable[[uuid_pkg.UUID, str, str], None]  # (project_id, token, branch_name)
BranchFetchScheduler = Callable[[uuid_pkg.UUID, str], None]  # (project_id, token)


@dataclass
class PollReport:
    """Summary of a poll cycle (for logging/monitoring)."""

    projects_found: int = 0
    projects_polled: int = 0
    refreshes_enqueued: int = 0
    discoveries_enqueued: int = 0
    projects_failed: int = 0
    errors: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class GithubPoller:
    """Enqueues ingestion work for projects that are due."""

    def __init__(
        self,
        schedule_refresh: RefreshScheduler,
        schedule_branch_fetch: BranchFetchScheduler | None = None,
        branch_limit: int | None = None,
    ):
        self.schedule_refresh = schedule_refresh
        self.schedule_branch_fetch = schedule_branch_fetch
        self.branch_limit = branch_limit or settings.github_poll_branch_limit

    async def run(self, db: AsyncSession, now: datetime | None = None) -> PollReport:
        """
        One poll cycle.

        A failure on one project is logged and the cycle moves on.
        """
        start = time.monotonic()
        report = PollReport()
        now = now or datetime.now(UTC)

        cutoff = now - timedelta(seconds=settings.github_poll_min_interval_seconds)
        candidates = await project_ops.get_eligible_for_polling(db, cutoff)
        report.projects_found = len(candidates)

        if not candidates:
            logger.info("[github-poll] No eligible projects found")
            report.duration_seconds = round(time.monotonic() - start, 2)
            return report

        logger.info(f"[github-poll] Found {len(candidates)} eligible projects")

        # Plain values only: a rollback below expires the ORM instances
        due = [(project.id, stored_token) for project, stored_token in candidates]

        for project_id, stored_token in due:
            try:
                await self._poll_project(db, project_id, stored_token, now, report)
                report.projects_polled += 1
            except Exception as e:
                await db.rollback()
                error_msg = f"Project {project_id}: {e}"
                logger.error(f"[github-poll] Error polling {error_msg}")
                report.errors.append(error_msg)
                report.projects_failed += 1

        report.duration_seconds = round(time.monotonic() - start, 2)
        logger.info(
            f"[github-poll] Completed: {report.projects_polled} projects, "
            f"{report.refreshes_enqueued} refreshes, "
            f"{report.discoveries_enqueued} branch checks, "
            f"{report.projects_failed} failed "
            f"({report.duration_seconds}s)"
        )
        return report

    async def _poll_project(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        stored_token: str,
        now: datetime,
        report: PollReport,
    ) -> None:
        # Watermark first and committed on its own, whatever happens next
        await project_ops.touch_polled_at(db, project_id, now)
        await db.commit()

        token = token_encryption.decrypt(stored_token)

        if self.schedule_branch_fetch is not None:
            last_discovery = await branch_ops.get_last_discovered_at(db, project_id)
            interval = timedelta(seconds=settings.github_branch_discovery_interval_seconds)
            if last_discovery is None or last_discovery < now - interval:
                self.schedule_branch_fetch(project_id, token)
                report.discoveries_enqueued += 1

        branches = await branch_ops.get_oldest(db, project_id, self.branch_limit)
        enqueued = 0
        for branch in branches:
            if not branch.branch_name or not branch.branch_name.strip():
                continue
            self.schedule_refresh(project_id, token, branch.branch_name)
            enqueued += 1

        report.refreshes_enqueued += enqueued
        logger.info(
            f"[github-poll] Enqueued refresh for project {project_id} ({enqueued} branches)"
        )
