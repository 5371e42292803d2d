"""Backfills diff stats for commits synced in fast mode.

One run of StatsEnrichmentJob:

    checking-quota -> enriching-batch -> done
                                      -> more-remaining    -> rescheduled
                                      -> rate-limited      -> rescheduled
                   -> rate-limited                         -> rescheduled
                   -> retry-cap-reached                    -> abandoned

The whole state lives in the task arguments (project, credential,
reschedule count). The counter is flat: every reschedule adds one, and at
the cap the job stops and reports through the escalation hook instead of
raising.
"""

import logging
import uuid as uuid_pkg
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.config import settings
from commitsync.domain import github_commit_ops, project_ops
from commitsync.services.github import GitHubRepositoryClient, RepositoryUnavailable
from commitsync.services.github.helpers import extract_repo_path
from commitsync.services.sync.broadcast import GithubBroadcaster

logger = logging.getLogger(__name__)


class EnrichmentOutcome(str, Enum):
    DONE = "done"
    MORE_REMAINING = "more-remaining"
    RATE_LIMITED = "rate-limited"
    RETRY_CAP_REACHED = "retry-cap-reached"
    PROJECT_MISSING = "project-missing"


RESCHEDULED_OUTCOMES = (EnrichmentOutcome.MORE_REMAINING, EnrichmentOutcome.RATE_LIMITED)


@dataclass
class RetryBudgetExhausted:
    """Escalation event: enrichment gave up with commits still missing stats."""

    project_id: uuid_pkg.UUID
    reschedule_count: int
    remaining: int | None
    reason: str


EscalationHook = Callable[[RetryBudgetExhausted], None]
RescheduleHook = Callable[[int, int], None]  # (delay_seconds, next_reschedule_count)


def log_retry_budget_exhausted(event: RetryBudgetExhausted) -> None:
    """Default escalation hook."""
    level = logging.ERROR if settings.github_enrichment_escalate_errors else logging.WARNING
    remaining = "unknown" if event.remaining is None else str(event.remaining)
    logger.log(
        level,
        f"[stats-enrichment] Max reschedules ({event.reschedule_count}) reached for project "
        f"{event.project_id} ({event.reason}), {remaining} commits still need enrichment",
    )


@dataclass
class BatchResult:
    enriched: int = 0
    unavailable: int = 0  # commits GitHub no longer serves, stored with empty stats
    remaining: int = 0
    stopped_for_rate_limit: bool = False
    aborted: bool = False
    errors: list[str] = field(default_factory=list)


@dataclass
class EnrichmentRun:
    """What one job run did and decided."""

    outcome: EnrichmentOutcome
    reschedule_count: int
    batch: BatchResult | None = None
    delay_seconds: int | None = None

    @property
    def rescheduled(self) -> bool:
        return self.outcome in RESCHEDULED_OUTCOMES


class CommitStatsEnricher:
    """Enriches one bounded batch of a project's backlog, newest commits first."""

    def __init__(self, client: GitHubRepositoryClient, batch_size: int | None = None):
        self.client = client
        self.batch_size = batch_size or settings.github_enrichment_batch_size

    async def enrich_batch(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        repo_path: str,
    ) -> BatchResult:
        """
        Fetch and store stats for up to `batch_size` backlog commits.

        Quota is checked before every call. A commit GitHub no longer serves
        (404/422) gets empty stats and the batch moves on. Any other
        RepositoryUnavailable ends the batch; commits enriched before it stay
        enriched.
        """
        result = BatchResult()
        backlog = await github_commit_ops.get_backlog(db, project_id, self.batch_size)

        if not backlog:
            logger.debug(f"[stats-enrichment] Project {project_id}: backlog empty")
            return result

        logger.info(f"[stats-enrichment] Project {project_id}: enriching {len(backlog)} commits")

        targets = [(c.id, c.commit_sha) for c in backlog]
        for commit_id, sha in targets:
            if not self.client.tracker.can_make_request():
                logger.warning(
                    f"[stats-enrichment] Rate limit threshold reached "
                    f"({self.client.tracker.consumption_percent()}%), stopping batch"
                )
                result.stopped_for_rate_limit = True
                break

            try:
                full = await self.client.get_commit(repo_path, sha)
            except RepositoryUnavailable as e:
                if e.is_gone:
                    # Zero stats take the commit out of the backlog for good
                    logger.warning(
                        f"[stats-enrichment] {sha[:7]} not served by GitHub ({e.status_code}), "
                        f"recording empty stats"
                    )
                    result.errors.append(f"{sha}: {e.message}")
                    if await github_commit_ops.apply_stats(
                        db, commit_id, lines_added=0, lines_removed=0, changed_files=[]
                    ):
                        result.unavailable += 1
                    continue

                logger.warning(f"[stats-enrichment] Batch aborted at {sha[:7]}: {e.message}")
                result.errors.append(f"{sha}: {e.message}")
                result.aborted = True
                result.stopped_for_rate_limit = e.is_rate_limited
                break

            written = await github_commit_ops.apply_stats(
                db,
                commit_id,
                lines_added=full.additions,
                lines_removed=full.deletions,
                changed_files=[f.to_dict() for f in full.files],
            )
            if written:
                result.enriched += 1
                logger.debug(
                    f"[stats-enrichment] {sha[:7]}: +{full.additions}/-{full.deletions}"
                )

        await db.commit()
        result.remaining = await github_commit_ops.count_backlog(db, project_id)
        return result


class StatsEnrichmentJob:
    """Runs one quota check + batch and decides whether to come back later."""

    def __init__(
        self,
        client: GitHubRepositoryClient,
        reschedule: RescheduleHook,
        escalate: EscalationHook | None = None,
        broadcaster: GithubBroadcaster | None = None,
        batch_size: int | None = None,
        max_reschedules: int | None = None,
    ):
        self.client = client
        self.enricher = CommitStatsEnricher(client, batch_size=batch_size)
        self.reschedule = reschedule
        self.escalate = escalate or log_retry_budget_exhausted
        self.broadcaster = broadcaster
        self.max_reschedules = (
            max_reschedules
            if max_reschedules is not None
            else settings.github_enrichment_max_reschedules
        )

    def _schedule(self, delay_seconds: int, reschedule_count: int) -> None:
        logger.info(
            f"[stats-enrichment] Scheduling next batch in {delay_seconds}s "
            f"(reschedule {reschedule_count + 1}/{self.max_reschedules})"
        )
        self.reschedule(delay_seconds, reschedule_count + 1)

    async def run(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        reschedule_count: int = 0,
    ) -> EnrichmentRun:
        project = await project_ops.get(db, project_id)
        if project is None:
            logger.error(f"[stats-enrichment] Project not found: {project_id}")
            return EnrichmentRun(EnrichmentOutcome.PROJECT_MISSING, reschedule_count)

        repo_path = extract_repo_path(project.repository_url or "")
        if not repo_path:
            logger.error(f"[stats-enrichment] Project {project_id}: invalid repository reference")
            return EnrichmentRun(EnrichmentOutcome.DONE, reschedule_count)

        tracker = self.client.tracker
        batch_size = self.enricher.batch_size

        # checking-quota
        if tracker.current_status().remaining is None:
            await tracker.refresh_from_api(self.client)
        if not tracker.can_make_request(batch_size):
            if reschedule_count >= self.max_reschedules:
                self.escalate(
                    RetryBudgetExhausted(
                        project_id=project_id,
                        reschedule_count=reschedule_count,
                        remaining=None,
                        reason="rate limited",
                    )
                )
                return EnrichmentRun(EnrichmentOutcome.RETRY_CAP_REACHED, reschedule_count)

            delay = max(
                tracker.wait_time_seconds(batch_size),
                settings.github_enrichment_reschedule_delay_seconds,
            )
            logger.info(
                f"[stats-enrichment] Rate limit at {tracker.consumption_percent()}% "
                f"for project {project_id}"
            )
            self._schedule(delay, reschedule_count)
            return EnrichmentRun(
                EnrichmentOutcome.RATE_LIMITED, reschedule_count, delay_seconds=delay
            )

        # enriching-batch
        batch = await self.enricher.enrich_batch(db, project_id, repo_path)
        logger.info(
            f"[stats-enrichment] Project {project_id}: enriched {batch.enriched} commits, "
            f"{batch.unavailable} unavailable, {batch.remaining} remaining"
        )

        if batch.enriched and self.broadcaster is not None:
            await self.broadcaster.broadcast(db, project_id)

        if batch.remaining == 0:
            return EnrichmentRun(EnrichmentOutcome.DONE, reschedule_count, batch=batch)

        if reschedule_count >= self.max_reschedules:
            self.escalate(
                RetryBudgetExhausted(
                    project_id=project_id,
                    reschedule_count=reschedule_count,
                    remaining=batch.remaining,
                    reason="backlog not drained",
                )
            )
            return EnrichmentRun(EnrichmentOutcome.RETRY_CAP_REACHED, reschedule_count, batch=batch)

        if batch.stopped_for_rate_limit:
            delay = settings.github_enrichment_reschedule_delay_seconds
            outcome = EnrichmentOutcome.RATE_LIMITED
        else:
            delay = settings.github_enrichment_continue_delay_seconds
            outcome = EnrichmentOutcome.MORE_REMAINING

        self._schedule(delay, reschedule_count)
        return EnrichmentRun(outcome, reschedule_count, batch=batch, delay_seconds=delay)
