"""Lease rows backing the TTL-bounded sync mutex."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

LOCK_KEY_MAX_LENGTH = 255


class SyncLock(SQLModel, table=True):
    """
    A named lease held until `expires_at`.

    A row whose `expires_at` is in the past is free to be taken over, so a
    crashed holder blocks others for at most one TTL.
    """

    __tablename__ = "sync_locks"

    key: str = Field(primary_key=True, max_length=LOCK_KEY_MAX_LENGTH, nullable=False)
    holder: str = Field(max_length=64, nullable=False)
    expires_at: datetime = Field(  # type: ignore[call-overload]
        nullable=False,
        sa_type=DateTime(timezone=True),
    )
