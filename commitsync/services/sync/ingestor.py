"""Reconciles one branch of a project's repository into local storage.

1. Preload the project's candidate authors (UserResolver)
2. List the branch's commits (one call per 100 commits)
3. For commits not stored yet: resolve the author, then, in full mode,
   fetch diff stats one commit at a time while quota allows
4. Upsert commit rows on (project_id, commit_sha)
5. Link every stored commit of the branch on (branch_id, commit_id)
6. Broadcast the refreshed aggregates

Commits already stored are only linked, never refetched. In fast mode
stats stay NULL and the stats enricher backfills them later.
"""

import logging
import uuid as uuid_pkg
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.config import settings
from commitsync.core.exceptions import PersistenceFailure
from commitsync.domain import github_branch_commit_ops, github_commit_ops
from commitsync.models.github_branch import GithubBranch
from commitsync.models.project import Project
from commitsync.services.github import GitHubRepositoryClient, RepositoryUnavailable
from commitsync.services.github.helpers import extract_repo_path
from commitsync.services.github.types import ShallowCommit
from commitsync.services.sync.broadcast import GithubBroadcaster
from commitsync.services.sync.user_resolver import UserResolver, unregistered_name

logger = logging.getLogger(__name__)

SAMPLE_ROWS = 3


@dataclass
class IngestionResult:
    """Outcome of one branch refresh."""

    processed: int = 0  # branch commits reconciled (stored or already present)
    stored: int = 0  # commit rows inserted or updated
    linked: int = 0  # new branch-commit links
    skipped: int = 0  # malformed or unresolved authors
    needs_enrichment: bool = False


def _sample(row: dict[str, Any]) -> dict[str, Any]:
    """Row without the bulky fields, for log lines."""
    return {k: v for k, v in row.items() if k not in ("changed_files", "commit_message")}


class CommitIngestor:
    """Runs one (project, branch) reconciliation with a single credential."""

    def __init__(
        self,
        client: GitHubRepositoryClient,
        broadcaster: GithubBroadcaster | None = None,
        store_unregistered: bool | None = None,
    ):
        self.client = client
        self.broadcaster = broadcaster
        self.store_unregistered = (
            store_unregistered
            if store_unregistered is not None
            else settings.github_store_unregistered_authors
        )

    async def ingest(
        self,
        db: AsyncSession,
        project: Project,
        branch: GithubBranch,
        fetch_stats: bool = True,
    ) -> IngestionResult:
        project_id = project.id
        branch_id = branch.id
        branch_name = branch.branch_name
        label = f"project {project_id}, branch '{branch_name}'"

        repo_path = extract_repo_path(project.repository_url or "")
        if not repo_path:
            logger.error(f"[ingest] {label}: invalid repository reference")
            return IngestionResult()

        resolver = await UserResolver.for_project(db, project)

        try:
            listed = await self.client.list_commits(repo_path, branch_name)
        except RepositoryUnavailable as e:
            logger.warning(f"[ingest] {label}: listing commits failed: {e.message}")
            return IngestionResult()

        # A commit can only appear once per branch listing, but pages may overlap
        commits: dict[str, ShallowCommit] = {}
        for commit in listed:
            commits.setdefault(commit.sha, commit)

        if not commits:
            logger.info(f"[ingest] {label}: no commits found")
            return IngestionResult()

        shas = list(commits)
        existing = await github_commit_ops.get_existing_shas(db, project_id, shas)
        new_commits = [c for sha, c in commits.items() if sha not in existing]
        logger.info(
            f"[ingest] {label}: {len(shas)} commits listed, "
            f"{len(existing)} already stored, {len(new_commits)} new"
        )

        rows, skipped = await self._build_rows(
            project_id, repo_path, new_commits, resolver, fetch_stats
        )

        try:
            stored, linked = await self._persist(db, project_id, branch_id, shas, rows)
        except PersistenceFailure as e:
            logger.error(
                f"[ingest] {label}: {e.message} "
                f"({e.row_count} rows, samples: {e.samples})"
            )
            return IngestionResult(skipped=skipped)

        result = IngestionResult(
            processed=len(shas) - skipped,
            stored=stored,
            linked=linked,
            skipped=skipped,
            needs_enrichment=any(row["lines_added"] is None for row in rows),
        )

        if self.broadcaster is not None:
            await self.broadcaster.broadcast(db, project_id)

        logger.info(
            f"[ingest] {label}: {result.stored} stored, {result.linked} linked, "
            f"{result.skipped} skipped"
        )
        return result

    async def _build_rows(
        self,
        project_id: uuid_pkg.UUID,
        repo_path: str,
        commits: list[ShallowCommit],
        resolver: UserResolver,
        fetch_stats: bool,
    ) -> tuple[list[dict[str, Any]], int]:
        """Commit rows for new commits plus the count of commits dropped."""
        rows: list[dict[str, Any]] = []
        skipped = 0
        quota_stop_logged = False

        for commit in commits:
            if commit.authored_at is None:
                skipped += 1
                continue

            # Resolve from the shallow commit first so unresolved authors cost no detail call
            user_id = resolver.resolve(commit)
            fallback_name = None
            if user_id is None:
                fallback_name = unregistered_name(commit) if self.store_unregistered else None
                if fallback_name is None:
                    skipped += 1
                    continue

            row: dict[str, Any] = {
                "project_id": project_id,
                "user_id": user_id,
                "unregistered_user_name": fallback_name,
                "agreement_id": resolver.agreement_for(user_id),
                "commit_sha": commit.sha,
                "commit_url": commit.html_url,
                "commit_message": commit.message,
                "commit_date": commit.authored_at,
                "lines_added": None,
                "lines_removed": None,
                "changed_files": None,
            }

            if fetch_stats:
                if self.client.tracker.can_make_request():
                    await self._attach_stats(row, repo_path, commit.sha)
                elif not quota_stop_logged:
                    logger.warning(
                        f"[ingest] Rate limit threshold reached in {repo_path}, "
                        f"remaining commits are stored without stats"
                    )
                    quota_stop_logged = True

            rows.append(row)

        return rows, skipped

    async def _attach_stats(self, row: dict[str, Any], repo_path: str, sha: str) -> None:
        try:
            full = await self.client.get_commit(repo_path, sha)
        except RepositoryUnavailable as e:
            logger.warning(f"[ingest] Stats for {repo_path}@{sha[:7]} unavailable: {e.message}")
            return

        row["lines_added"] = full.additions
        row["lines_removed"] = full.deletions
        row["changed_files"] = [f.to_dict() for f in full.files]

    async def _persist(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        branch_id: uuid_pkg.UUID,
        shas: list[str],
        rows: list[dict[str, Any]],
    ) -> tuple[int, int]:
        """
        Upsert commits, link the branch's stored commits, commit.

        Raises:
            PersistenceFailure: On any database error (session rolled back)
        """
        try:
            stored = await github_commit_ops.upsert_many(db, rows)
            commit_ids = await github_commit_ops.get_ids_by_shas(db, project_id, shas)
            linked = await github_branch_commit_ops.link_many(
                db, branch_id, list(commit_ids.values())
            )
            await db.commit()
        except Exception as e:
            await db.rollback()
            raise PersistenceFailure(
                f"Storing commits failed: {e}",
                row_count=len(rows),
                samples=[_sample(r) for r in rows[:SAMPLE_ROWS]],
            ) from e

        return stored, linked
