import uuid as uuid_pkg
from typing import TYPE_CHECKING

from sqlalchemy import Index, UniqueConstraint
from sqlmodel import Field, Relationship

from commitsync.models.base import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from commitsync.models.github_branch_commit import GithubBranchCommit


class GithubBranch(UUIDMixin, TimestampMixin, table=True):
    """A branch of a project's repository.

    Created once when first discovered. `created_at` decides polling
    priority (oldest first, so long-lived branches like main come before
    feature branches); `updated_at` is touched by every discovery run.
    """

    __tablename__ = "github_branches"
    __table_args__ = (
        UniqueConstraint("project_id", "branch_name", name="uq_github_branches_project_branch"),
        Index("ix_github_branches_project_created_at", "project_id", "created_at"),
    )

    project_id: uuid_pkg.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    branch_name: str = Field(max_length=255, nullable=False)

    commit_links: list["GithubBranchCommit"] = Relationship(
        back_populates="branch",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )
