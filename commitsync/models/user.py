import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import DateTime, text
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """
    User model - owned by the account service, read-only here.

    The sync pipeline only needs the identity fields used for commit author
    resolution (email, github_username), the display fields that go into
    broadcasts, and the owner's stored GitHub token.
    """

    __tablename__ = "users"

    id: uuid_pkg.UUID = Field(
        default_factory=uuid_pkg.uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )
    email: str | None = Field(default=None, max_length=255)
    display_name: str | None = Field(default=None, max_length=100)
    github_username: str | None = Field(default=None, max_length=255, index=True)
    avatar_url: str | None = Field(default=None, max_length=500)

    # Fernet-encrypted personal/OAuth token; see core.encryption
    github_token: str | None = Field(default=None, max_length=2000)

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
