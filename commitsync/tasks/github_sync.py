"""Background task entry points for the GitHub sync pipeline.

Each task opens its own session, builds its collaborators, and enqueues
follow-up work through the task queue:

    run_poll_cycle ──> refresh_branch_commits ──> enrich_commit_stats ─┐
          │                    ▲                          ▲            │
          └──> fetch_branches ─┘                          └────────────┘

Unexpected exceptions are logged and re-raised so the scheduler records
the job as failed.
"""

import hashlib
import logging
import uuid as uuid_pkg

from commitsync.config import settings
from commitsync.core.database import async_session_maker
from commitsync.core.locks import sync_lock
from commitsync.domain import branch_ops, project_ops
from commitsync.models.sync_lock import LOCK_KEY_MAX_LENGTH
from commitsync.services.github import GitHubRepositoryClient, RepositoryUnavailable
from commitsync.services.sync import (
    BranchDiscovery,
    CommitIngestor,
    EnrichmentRun,
    GithubPoller,
    IngestionResult,
    PollReport,
    StatsEnrichmentJob,
    github_broadcaster,
)
from commitsync.services.task_queue import task_queue

logger = logging.getLogger(__name__)

POLL_LOCK_KEY = "github_poll"


def refresh_lock_key(project_id: uuid_pkg.UUID, branch_name: str) -> str:
    """Per-branch lease key; branch names too long for the key column are hashed."""
    key = f"github_commit_refresh:{project_id}:{branch_name}"
    if len(key) <= LOCK_KEY_MAX_LENGTH:
        return key
    digest = hashlib.sha256(branch_name.encode()).hexdigest()
    return f"github_commit_refresh:{project_id}:sha256:{digest}"


def _enqueue_refresh(
    project_id: uuid_pkg.UUID,
    access_token: str,
    branch_name: str,
    fetch_stats: bool = True,
) -> None:
    task_queue.enqueue(
        refresh_branch_commits,
        project_id,
        access_token,
        branch_name,
        fetch_stats=fetch_stats,
    )


def _enqueue_branch_fetch(project_id: uuid_pkg.UUID, access_token: str) -> None:
    task_queue.enqueue(fetch_branches, project_id, access_token)


async def run_poll_cycle() -> PollReport | None:
    """
    Poll every due project. Skipped (returns None) while another process
    holds the poll lock.
    """
    async with sync_lock(POLL_LOCK_KEY, settings.github_poll_lock_ttl_seconds) as acquired:
        if not acquired:
            logger.info("[github-poll] Skipped (another instance is running)")
            return None

        poller = GithubPoller(
            schedule_refresh=lambda project_id, token, branch_name: _enqueue_refresh(
                project_id, token, branch_name, fetch_stats=settings.github_ingest_fetch_stats
            ),
            schedule_branch_fetch=_enqueue_branch_fetch,
        )

        try:
            async with async_session_maker() as db:
                report = await poller.run(db)
                await db.commit()
        except Exception as e:
            logger.exception(f"[github-poll] Cycle failed: {e}")
            raise

        return report


async def refresh_branch_commits(
    project_id: uuid_pkg.UUID,
    access_token: str,
    branch_name: str,
    fetch_stats: bool = True,
) -> IngestionResult | None:
    """Ingest one branch. Skipped while another job refreshes the same branch."""
    if not branch_name or not branch_name.strip():
        logger.error(f"[ingest] Branch cannot be blank for project {project_id}")
        return None

    lock_key = refresh_lock_key(project_id, branch_name)
    async with sync_lock(lock_key, settings.github_refresh_lock_ttl_seconds) as acquired:
        if not acquired:
            logger.warning(
                f"[ingest] Skipping project {project_id}, branch '{branch_name}': "
                f"another job is already processing it"
            )
            return None

        try:
            async with async_session_maker() as db:
                project = await project_ops.get(db, project_id)
                if project is None:
                    logger.error(f"[ingest] Project not found: {project_id}")
                    return None

                branch = await branch_ops.get_by_name(db, project_id, branch_name)
                if branch is None:
                    logger.error(
                        f"[ingest] Branch record not found for '{branch_name}' "
                        f"in project {project_id}"
                    )
                    return None

                ingestor = CommitIngestor(
                    GitHubRepositoryClient(access_token),
                    broadcaster=github_broadcaster,
                )
                result = await ingestor.ingest(db, project, branch, fetch_stats=fetch_stats)
                await db.commit()
        except Exception as e:
            logger.exception(
                f"[ingest] Refresh failed for project {project_id}, branch '{branch_name}': {e}"
            )
            raise

    if result.needs_enrichment:
        task_queue.enqueue(
            enrich_commit_stats,
            project_id,
            access_token,
            delay_seconds=settings.github_enrichment_continue_delay_seconds,
        )
    return result


async def enrich_commit_stats(
    project_id: uuid_pkg.UUID,
    access_token: str,
    reschedule_count: int = 0,
) -> EnrichmentRun:
    """One enrichment step; re-enqueues itself while backlog and retry budget remain."""

    def reschedule(delay_seconds: int, next_count: int) -> None:
        task_queue.enqueue(
            enrich_commit_stats,
            project_id,
            access_token,
            reschedule_count=next_count,
            delay_seconds=delay_seconds,
        )

    job = StatsEnrichmentJob(
        GitHubRepositoryClient(access_token),
        reschedule=reschedule,
        broadcaster=github_broadcaster,
    )

    try:
        async with async_session_maker() as db:
            run = await job.run(db, project_id, reschedule_count=reschedule_count)
            await db.commit()
    except Exception as e:
        logger.exception(f"[stats-enrichment] Failed for project {project_id}: {e}")
        raise

    return run


async def fetch_branches(project_id: uuid_pkg.UUID, access_token: str) -> list[str]:
    """Discover branches; new ones get a fast-mode refresh (stats are backfilled)."""
    try:
        async with async_session_maker() as db:
            project = await project_ops.get(db, project_id)
            if project is None:
                logger.error(f"[branches] Project not found: {project_id}")
                return []

            try:
                new_branches = await BranchDiscovery(GitHubRepositoryClient(access_token)).discover(
                    db, project
                )
            except RepositoryUnavailable as e:
                logger.error(f"[branches] Failed to fetch branches for {project_id}: {e.message}")
                return []
    except Exception as e:
        logger.exception(f"[branches] Branch discovery failed for project {project_id}: {e}")
        raise

    for branch_name in new_branches:
        _enqueue_refresh(project_id, access_token, branch_name, fetch_stats=False)

    if new_branches:
        logger.info(
            f"[branches] Project {project_id}: enqueued fast refresh for "
            f"{len(new_branches)} new branches"
        )
    return new_branches
