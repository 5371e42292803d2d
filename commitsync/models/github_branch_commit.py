import uuid as uuid_pkg
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Column, DateTime, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from commitsync.models.github_branch import GithubBranch
    from commitsync.models.github_commit import GithubCommit


class GithubBranchCommit(SQLModel, table=True):
    """Membership of a commit in a branch (many-to-many join row)."""

    __tablename__ = "github_branch_commits"
    __table_args__ = (
        Index(
            "ix_github_branch_commits_branch_commit",
            "branch_id",
            "commit_id",
            unique=True,
        ),
    )

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        nullable=False,
        sa_column_kwargs={"server_default": text("gen_random_uuid()")},
    )
    branch_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("github_branches.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    commit_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("github_commits.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )

    branch: "GithubBranch" = Relationship(back_populates="commit_links")
    commit: "GithubCommit" = Relationship(back_populates="branch_links")
