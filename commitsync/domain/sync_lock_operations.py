"""Lease rows for the TTL-bounded sync mutex."""

from datetime import UTC, datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from commitsync.models.sync_lock import SyncLock


class SyncLockOperations:
    def __init__(self) -> None:
        self.model = SyncLock

    async def acquire(
        self,
        db: AsyncSession,
        key: str,
        holder: str,
        ttl_seconds: int,
    ) -> bool:
        """
        Take the lease for `key` unless someone else holds an unexpired one.

        One statement: insert the row, or take over the existing row only
        when it has expired. Re-acquiring as the same holder extends the lease.

        Returns:
            True if `holder` now owns the lease.
        """
        now = datetime.now(UTC)
        table = SyncLock.__table__  # type: ignore[attr-defined]

        stmt = insert(table).values(
            key=key,
            holder=holder,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"holder": stmt.excluded.holder, "expires_at": stmt.excluded.expires_at},
            where=(table.c.expires_at <= now) | (table.c.holder == holder),
        ).returning(table.c.holder)

        result = await db.execute(stmt)
        row_holder = result.scalar_one_or_none()
        await db.flush()
        return row_holder == holder

    async def release(self, db: AsyncSession, key: str, holder: str) -> bool:
        """Drop the lease if `holder` still owns it."""
        statement = delete(SyncLock).where(
            SyncLock.key == key,  # type: ignore[arg-type]
            SyncLock.holder == holder,  # type: ignore[arg-type]
        )
        result = await db.execute(statement)
        await db.flush()
        return bool(result.rowcount)


sync_lock_ops = SyncLockOperations()
