"""Branch <-> commit association rows."""

import uuid as uuid_pkg

from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.domain.base_operations import upsert_many
from commitsync.models.github_branch_commit import GithubBranchCommit


class GithubBranchCommitOperations:
    def __init__(self) -> None:
        self.model = GithubBranchCommit

    async def link_many(
        self,
        db: AsyncSession,
        branch_id: uuid_pkg.UUID,
        commit_ids: list[uuid_pkg.UUID],
    ) -> int:
        """
        Link commits to a branch, ignoring links that already exist.

        Returns:
            Count of newly inserted links.
        """
        unique_ids = list(dict.fromkeys(commit_ids))
        if not unique_ids:
            return 0

        return await upsert_many(
            db,
            GithubBranchCommit,
            [
                {"id": uuid_pkg.uuid4(), "branch_id": branch_id, "commit_id": commit_id}
                for commit_id in unique_ids
            ],
            conflict_key=["branch_id", "commit_id"],
        )


github_branch_commit_ops = GithubBranchCommitOperations()
