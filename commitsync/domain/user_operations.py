import uuid as uuid_pkg

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.models.user import User


class UserOperations:
    """Read-only user lookups; accounts are managed elsewhere."""

    def __init__(self) -> None:
        self.model = User

    async def get_by_id(self, db: AsyncSession, user_id: uuid_pkg.UUID) -> User | None:
        statement = select(User).where(User.id == user_id)
        result = await db.execute(statement)
        return result.scalar_one_or_none()


user_ops = UserOperations()
