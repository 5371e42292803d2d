"""Discovers repository branches and records them as Branch rows."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.domain import branch_ops
from commitsync.models.project import Project
from commitsync.services.github import GitHubRepositoryClient
from commitsync.services.github.exceptions import RepositoryUnavailable
from commitsync.services.github.helpers import extract_repo_path

logger = logging.getLogger(__name__)


class BranchDiscovery:
    def __init__(self, client: GitHubRepositoryClient):
        self.client = client

    async def discover(self, db: AsyncSession, project: Project) -> list[str]:
        """
        List the repository's branches and upsert them.

        Known branches get their updated_at touched (the discovery clock the
        poller reads); created_at is never changed.

        Returns:
            Names of branches seen for the first time.

        Raises:
            RepositoryUnavailable: If the repository reference is invalid or
                the branch listing fails
        """
        repo_path = extract_repo_path(project.repository_url or "")
        if not repo_path:
            raise RepositoryUnavailable(f"Invalid repository reference for project {project.id}")

        names = await self.client.list_branches(repo_path)
        new_names = await branch_ops.upsert_names(db, project.id, names)
        await db.commit()

        logger.info(
            f"[branches] Project {project.id}: {len(names)} branches, {len(new_names)} new"
        )
        return new_names
