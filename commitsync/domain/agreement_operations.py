"""Read-only access to agreements and their participants."""

import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from commitsync.models.agreement import (
    ACTIVE_AGREEMENT_STATUSES,
    Agreement,
    AgreementParticipant,
)


class AgreementOperations:
    def __init__(self) -> None:
        self.model = Agreement

    async def get_active_for_project(
        self,
        db: AsyncSession,
        project_id: uuid_pkg.UUID,
    ) -> list[Agreement]:
        """Active agreements of a project with participants loaded, oldest first."""
        statement = (
            select(Agreement)
            .where(
                Agreement.project_id == project_id,
                Agreement.status.in_(ACTIVE_AGREEMENT_STATUSES),  # type: ignore[attr-defined]
            )
            .options(
                selectinload(Agreement.participants).selectinload(  # type: ignore[arg-type]
                    AgreementParticipant.user  # type: ignore[arg-type]
                )
            )
            .order_by(Agreement.created_at.asc())  # type: ignore[attr-defined]
        )
        result = await db.execute(statement)
        return list(result.scalars().all())


agreement_ops = AgreementOperations()
