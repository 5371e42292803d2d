from collections.abc import Sequence
from typing import Any

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

# Rows per INSERT statement; keeps bind parameters well under PostgreSQL's 32767 cap
UPSERT_CHUNK_SIZE = 500


async def upsert_many(
    db: AsyncSession,
    model: type[SQLModel],
    rows: Sequence[dict[str, Any]],
    conflict_key: Sequence[str],
    update_columns: Sequence[str] | None = None,
    coalesce_columns: Sequence[str] = (),
) -> int:
    """
    Insert rows, resolving conflicts on `conflict_key` in a single statement per chunk.

    Args:
        db: Database session
        model: Table model to write
        rows: Row dicts; every row must carry the same keys
        conflict_key: Columns of the unique index that identifies a row
        update_columns: Columns overwritten on conflict. Empty or None means
            conflicting rows are left untouched (ON CONFLICT DO NOTHING).
        coalesce_columns: Subset of update_columns that keep their stored value
            when the incoming value is NULL.

    Returns:
        Affected row count (inserted + updated).
    """
    if not rows:
        return 0

    table = model.__table__  # type: ignore[attr-defined]
    affected = 0

    for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
        chunk = list(rows[start : start + UPSERT_CHUNK_SIZE])
        stmt = insert(table).values(chunk)

        if update_columns:
            set_ = {
                col: (
                    func.coalesce(stmt.excluded[col], table.c[col])
                    if col in coalesce_columns
                    else stmt.excluded[col]
                )
                for col in update_columns
            }
            stmt = stmt.on_conflict_do_update(index_elements=list(conflict_key), set_=set_)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_key))

        result = await db.execute(stmt)
        affected += max(result.rowcount or 0, 0)

    await db.flush()
    return affected
