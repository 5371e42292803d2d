"""Collaboration agreements between a project owner and contributors.

Managed by the agreement workflow; the sync pipeline only reads them to
attach an agreement to commits made by its participants.
"""

import uuid as uuid_pkg
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

from commitsync.models.base import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from commitsync.models.user import User


class AgreementStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ACTIVE_AGREEMENT_STATUSES = (AgreementStatus.ACCEPTED.value,)


class Agreement(UUIDMixin, TimestampMixin, table=True):
    __tablename__ = "agreements"

    project_id: uuid_pkg.UUID = Field(foreign_key="projects.id", nullable=False, index=True)
    status: str = Field(default=AgreementStatus.PENDING.value, max_length=20, nullable=False)

    participants: list["AgreementParticipant"] = Relationship(back_populates="agreement")


class AgreementParticipant(UUIDMixin, table=True):
    __tablename__ = "agreement_participants"
    __table_args__ = (
        UniqueConstraint("agreement_id", "user_id", name="uq_agreement_participant"),
    )

    agreement_id: uuid_pkg.UUID = Field(foreign_key="agreements.id", nullable=False, index=True)
    user_id: uuid_pkg.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    agreement: Agreement = Relationship(back_populates="participants")
    user: "User" = Relationship()
