"""Project lookups and the poll watermark."""

import uuid as uuid_pkg
from datetime import datetime

from sqlalchemy import exists, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.models.github_branch import GithubBranch
from commitsync.models.project import Project
from commitsync.models.user import User


class ProjectOperations:
    """Read access to projects plus the one field this service writes (the watermark)."""

    def __init__(self) -> None:
        self.model = Project

    async def get(self, db: AsyncSession, id: uuid_pkg.UUID) -> Project | None:
        statement = select(Project).where(Project.id == id)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    async def get_eligible_for_polling(
        self,
        db: AsyncSession,
        polled_before: datetime,
    ) -> list[tuple[Project, str]]:
        """
        Projects due for a poll, with their owner's stored (encrypted) token.

        Eligible when the project has a non-blank repository reference, at
        least one known branch, an owner with a non-blank token, and a
        watermark that is NULL or older than `polled_before`.

        Ordered by watermark ascending with NULLs first, so never-polled and
        longest-idle projects are served first.
        """
        has_branch = exists(
            select(GithubBranch.id).where(GithubBranch.project_id == Project.id)
        )
        statement = (
            select(Project, User.github_token)
            .join(User, Project.user_id == User.id)
            .where(
                Project.repository_url.is_not(None),  # type: ignore[union-attr]
                func.trim(Project.repository_url) != "",
                User.github_token.is_not(None),  # type: ignore[union-attr]
                func.trim(User.github_token) != "",
                has_branch,
                or_(
                    Project.github_last_polled_at.is_(None),  # type: ignore[union-attr]
                    Project.github_last_polled_at < polled_before,  # type: ignore[operator]
                ),
            )
            .order_by(Project.github_last_polled_at.asc().nulls_first())  # type: ignore[union-attr]
        )
        result = await db.execute(statement)
        return [(project, token) for project, token in result.all()]

    async def touch_polled_at(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
        polled_at: datetime,
    ) -> None:
        """Advance the poll watermark. Never moves it backwards."""
        statement = (
            update(Project)
            .where(
                Project.id == project_id,
                or_(
                    Project.github_last_polled_at.is_(None),  # type: ignore[union-attr]
                    Project.github_last_polled_at < polled_at,  # type: ignore[operator]
                ),
            )
            .values(github_last_polled_at=polled_at)
        )
        await db.execute(statement)
        await db.flush()

    async def get_owner_token(self, db: AsyncSession, project_id: uuid_pkg.UUID) -> str | None:
        """The owner's stored (encrypted) GitHub token, or None if blank."""
        statement = (
            select(User.github_token)
            .join(Project, Project.user_id == User.id)
            .where(Project.id == project_id)
        )
        result = await db.execute(statement)
        token = result.scalar_one_or_none()
        return token if token and token.strip() else None


project_ops = ProjectOperations()
