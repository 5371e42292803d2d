"""GitHub branch rows: lookup, polling order and discovery upserts."""

import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.domain.base_operations import upsert_many
from commitsync.models.github_branch import GithubBranch


class BranchOperations:
    def __init__(self) -> None:
        self.model = GithubBranch

    async def get_by_name(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        branch_name: str,
    ) -> GithubBranch | None:
        statement = select(GithubBranch).where(
            GithubBranch.project_id == project_id,
            GithubBranch.branch_name == branch_name,
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_oldest(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        limit: int,
    ) -> list[GithubBranch]:
        """First `limit` branches by creation time (long-lived branches first)."""
        statement = (
            select(GithubBranch)
            .where(GithubBranch.project_id == project_id)
            .order_by(GithubBranch.created_at.asc(), GithubBranch.branch_name.asc())  # type: ignore[attr-defined]
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def get_last_discovered_at(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
    ) -> datetime | None:
        """Most recent updated_at across the project's branches."""
        statement = select(func.max(GithubBranch.updated_at)).where(
            GithubBranch.project_id == project_id
        )
        result = await db.execute(statement)
        return result.scalar()

    async def get_names(self, db: AsyncSession, project_id: uuid_pkg.UUID) -> set[str]:
        statement = select(GithubBranch.branch_name).where(GithubBranch.project_id == project_id)
        result = await db.execute(statement)
        return set(result.scalars().all())

    async def upsert_names(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        branch_names: list[str],
    ) -> list[str]:
        """
        Create missing branches and touch updated_at on known ones.

        created_at is never changed for an existing branch, so polling
        order stays stable across discovery runs.

        Returns:
            Names of branches that did not exist before this call.
        """
        names = list(dict.fromkeys(n for n in branch_names if n and n.strip()))
        if not names:
            return []

        existing = await self.get_names(db, project_id)
        now = datetime.now(UTC)

        await upsert_many(
            db,
            GithubBranch,
            [
                {
                    "id": uuid_pkg.uuid4(),
                    "project_id": project_id,
                    "branch_name": name,
                    "created_at": now,
                    "updated_at": now,
                }
                for name in names
            ],
            conflict_key=["project_id", "branch_name"],
            update_columns=["updated_at"],
        )

        return [name for name in names if name not in existing]


branch_ops = BranchOperations()
