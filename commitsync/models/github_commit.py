"""Commits synced from GitHub."""

import uuid as uuid_pkg
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import CheckConstraint, Column, DateTime, Index, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, Relationship

from commitsync.models.base import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from commitsync.models.github_branch_commit import GithubBranchCommit
    from commitsync.models.user import User


class GithubCommit(UUIDMixin, TimestampMixin, table=True):
    """
    One commit of a project's repository, stored once per project.

    A commit reachable from several branches has a single row here and one
    GithubBranchCommit link per branch.

    Authorship is either a registered user (user_id) or, when unknown-author
    storage is enabled, a display name (unregistered_user_name). Never both,
    never neither.

    lines_added / lines_removed / changed_files are NULL for commits synced
    in fast mode; the stats enricher fills them in later.
    """

    __tablename__ = "github_commits"
    __table_args__ = (
        Index(
            "ix_github_commits_project_sha",
            "project_id",
            "commit_sha",
            unique=True,
        ),
        Index("ix_github_commits_project_commit_date", "project_id", "commit_date"),
        CheckConstraint(
            "(user_id IS NULL) <> (unregistered_user_name IS NULL)",
            name="ck_github_commits_single_author",
        ),
    )

    project_id: uuid_pkg.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    user_id: uuid_pkg.UUID | None = Field(default=None, foreign_key="users.id", index=True)
    unregistered_user_name: str | None = Field(default=None, max_length=255)
    agreement_id: uuid_pkg.UUID | None = Field(
        default=None, foreign_key="agreements.id", index=True
    )

    commit_sha: str = Field(
        max_length=40,
        nullable=False,
        description="Full 40-character git SHA",
    )
    commit_url: str | None = Field(default=None, max_length=500)
    commit_message: str | None = Field(default=None, sa_type=Text)
    commit_date: datetime = Field(  # type: ignore[call-overload]
        nullable=False,
        sa_type=DateTime(timezone=True),
    )

    lines_added: int | None = Field(default=None)
    lines_removed: int | None = Field(default=None)
    changed_files: list[dict[str, Any]] | None = Field(
        default=None,
        sa_column=Column(
            JSONB(none_as_null=True),
            nullable=True,
            comment="[{filename, status, additions, deletions, patch}]",
        ),
    )

    user: Optional["User"] = Relationship()
    branch_links: list["GithubBranchCommit"] = Relationship(
        back_populates="commit",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "passive_deletes": True},
    )
