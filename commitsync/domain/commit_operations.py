"""Domain operations for synced GitHub commits."""

import uuid as uuid_pkg
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from commitsync.domain.base_operations import upsert_many
from commitsync.models.github_branch_commit import GithubBranchCommit
from commitsync.models.github_commit import GithubCommit
from commitsync.models.user import User

# Columns left alone when an existing (project_id, commit_sha) row is re-ingested
_IMMUTABLE_COLUMNS = ("id", "project_id", "commit_sha", "created_at")

# Stats already stored win over NULL from a fast-mode re-ingest
_STATS_COLUMNS = ("lines_added", "lines_removed", "changed_files")


@dataclass
class CommitTotals:
    commit_count: int
    lines_added: int
    lines_removed: int
    last_commit_at: datetime | None


@dataclass
class RegisteredRollupRow:
    user_id: uuid_pkg.UUID
    display_name: str | None
    github_username: str | None
    avatar_url: str | None
    commit_count: int
    lines_added: int
    lines_removed: int
    first_commit_at: datetime | None
    last_commit_at: datetime | None


@dataclass
class UnregisteredRollupRow:
    name: str
    commit_count: int
    lines_added: int
    lines_removed: int
    first_commit_at: datetime | None
    last_commit_at: datetime | None


def _missing_stats():  # type: ignore[no-untyped-def]
    return and_(
        GithubCommit.lines_added.is_(None),  # type: ignore[union-attr]
        GithubCommit.lines_removed.is_(None),  # type: ignore[union-attr]
    )


class GithubCommitOperations:
    """
    Operations for github_commits.

    Not user-scoped: every query is keyed by project, and the only writers
    are the sync jobs.
    """

    def __init__(self) -> None:
        self.model = GithubCommit

    async def get_existing_shas(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        shas: list[str],
    ) -> set[str]:
        """Subset of `shas` already stored for the project."""
        if not shas:
            return set()

        statement = select(GithubCommit.commit_sha).where(
            GithubCommit.project_id == project_id,
            GithubCommit.commit_sha.in_(shas),  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return set(result.scalars().all())

    async def upsert_many(self, db: AsyncSession, rows: list[dict[str, Any]]) -> int:
        """
        Insert or update commits keyed on (project_id, commit_sha).

        Every column except id, project_id, commit_sha and created_at is
        overwritten on conflict. Stats columns keep their stored value when
        the incoming one is NULL.

        Args:
            db: Database session
            rows: Row dicts with every GithubCommit column except the
                timestamps, which are filled in here

        Returns:
            Affected row count.
        """
        if not rows:
            return 0

        now = datetime.now(UTC)
        prepared = [
            {"id": uuid_pkg.uuid4(), **row, "created_at": now, "updated_at": now}
            for row in rows
        ]
        update_columns = [c for c in prepared[0] if c not in _IMMUTABLE_COLUMNS]

        return await upsert_many(
            db,
            GithubCommit,
            prepared,
            conflict_key=["project_id", "commit_sha"],
            update_columns=update_columns,
            coalesce_columns=_STATS_COLUMNS,
        )

    async def get_ids_by_shas(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        shas: list[str],
    ) -> dict[str, uuid_pkg.UUID]:
        if not shas:
            return {}

        statement = select(GithubCommit.commit_sha, GithubCommit.id).where(
            GithubCommit.project_id == project_id,
            GithubCommit.commit_sha.in_(shas),  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return {sha: commit_id for sha, commit_id in result.all()}

    async def get_backlog(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        limit: int,
    ) -> list[GithubCommit]:
        """Commits still missing diff stats, newest first."""
        statement = (
            select(GithubCommit)
            .where(GithubCommit.project_id == project_id, _missing_stats())
            .order_by(GithubCommit.commit_date.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def count_backlog(self, db: AsyncSession, project_id: uuid_pkg.UUID) -> int:
        statement = select(func.count(GithubCommit.id)).where(
            GithubCommit.project_id == project_id, _missing_stats()
        )
        result = await db.execute(statement)
        return result.scalar() or 0

    async def apply_stats(
        self,
        db: AsyncSession,
        commit_id: uuid_pkg.UUID,
        lines_added: int,
        lines_removed: int,
        changed_files: list[dict[str, Any]],
    ) -> bool:
        """
        Write diff stats onto a commit that has none yet.

        Returns:
            False if the commit already had stats (nothing written).
        """
        statement = (
            update(GithubCommit)
            .where(GithubCommit.id == commit_id, _missing_stats())
            .values(
                lines_added=lines_added,
                lines_removed=lines_removed,
                changed_files=changed_files,
                updated_at=func.now(),
            )
        )
        result = await db.execute(statement)
        await db.flush()
        return bool(result.rowcount)

    async def get_totals(self, db: AsyncSession, project_id: uuid_pkg.UUID) -> CommitTotals:
        statement = select(
            func.count(GithubCommit.id),
            func.coalesce(func.sum(GithubCommit.lines_added), 0),
            func.coalesce(func.sum(GithubCommit.lines_removed), 0),
            func.max(GithubCommit.commit_date),
        ).where(GithubCommit.project_id == project_id)
        result = await db.execute(statement)
        count, added, removed, last_commit_at = result.one()
        return CommitTotals(
            commit_count=int(count or 0),
            lines_added=int(added or 0),
            lines_removed=int(removed or 0),
            last_commit_at=last_commit_at,
        )

    async def get_recent(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        limit: int,
    ) -> list[GithubCommit]:
        """Most recent commits with their author and branch links loaded."""
        statement = (
            select(GithubCommit)
            .where(GithubCommit.project_id == project_id)
            .options(
                selectinload(GithubCommit.user),  # type: ignore[arg-type]
                selectinload(GithubCommit.branch_links).selectinload(  # type: ignore[arg-type]
                    GithubBranchCommit.branch  # type: ignore[arg-type]
                ),
            )
            .order_by(GithubCommit.commit_date.desc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def get_registered_rollup(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
    ) -> list[RegisteredRollupRow]:
        """Per registered author: commit count, line totals, first and latest commit dates."""
        statement = (
            select(
                User.id,
                User.display_name,
                User.github_username,
                User.avatar_url,
                func.count(GithubCommit.id),
                func.coalesce(func.sum(GithubCommit.lines_added), 0),
                func.coalesce(func.sum(GithubCommit.lines_removed), 0),
                func.min(GithubCommit.commit_date),
                func.max(GithubCommit.commit_date),
            )
            .join(User, GithubCommit.user_id == User.id)
            .where(GithubCommit.project_id == project_id)
            .group_by(User.id, User.display_name, User.github_username, User.avatar_url)
            .order_by(func.count(GithubCommit.id).desc())
        )
        result = await db.execute(statement)
        return [
            RegisteredRollupRow(
                user_id=user_id,
                display_name=display_name,
                github_username=github_username,
                avatar_url=avatar_url,
                commit_count=int(count),
                lines_added=int(added),
                lines_removed=int(removed),
                first_commit_at=first_commit_at,
                last_commit_at=last_commit_at,
            )
            for (
                user_id,
                display_name,
                github_username,
                avatar_url,
                count,
                added,
                removed,
                first_commit_at,
                last_commit_at,
            ) in result.all()
        ]

    async def get_unregistered_rollup(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
    ) -> list[UnregisteredRollupRow]:
        """Per unregistered author name, same aggregates as the registered rollup."""
        name = GithubCommit.unregistered_user_name
        statement = (
            select(
                name,
                func.count(GithubCommit.id),
                func.coalesce(func.sum(GithubCommit.lines_added), 0),
                func.coalesce(func.sum(GithubCommit.lines_removed), 0),
                func.min(GithubCommit.commit_date),
                func.max(GithubCommit.commit_date),
            )
            .where(
                GithubCommit.project_id == project_id,
                name.is_not(None),  # type: ignore[union-attr]
            )
            .group_by(name)
            .order_by(func.count(GithubCommit.id).desc())
        )
        result = await db.execute(statement)
        return [
            UnregisteredRollupRow(
                name=row_name,
                commit_count=int(count),
                lines_added=int(added),
                lines_removed=int(removed),
                first_commit_at=first_commit_at,
                last_commit_at=last_commit_at,
            )
            for row_name, count, added, removed, first_commit_at, last_commit_at in result.all()
        ]


github_commit_ops = GithubCommitOperations()
