import uuid as uuid_pkg
from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field

from commitsync.models.base import TimestampMixin, UUIDMixin


class Project(UUIDMixin, TimestampMixin, table=True):
    """Project linked to a GitHub repository.

    `github_last_polled_at` is the poll watermark. The poller writes it
    before any network call, so it means "a poll attempt started", not
    "a poll succeeded".
    """

    __tablename__ = "projects"
    __table_args__ = (Index("ix_projects_github_last_polled_at", "github_last_polled_at"),)

    name: str = Field(max_length=255, nullable=False)
    user_id: uuid_pkg.UUID = Field(
        foreign_key="users.id",
        nullable=False,
        index=True,
        description="Project owner; their GitHub token is used for syncing",
    )
    repository_url: str | None = Field(
        default=None,
        max_length=500,
        description="https://github.com/owner/repo or owner/repo",
    )
    github_last_polled_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
    )
