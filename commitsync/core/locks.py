"""TTL-bounded mutex shared by every process running the sync jobs.

Backed by the sync_locks table rather than a session-level advisory lock:
the lease outlives the connection that took it, and a crashed holder
blocks others for at most one TTL.
"""

import logging
import uuid as uuid_pkg
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from commitsync.core.database import async_session_maker
from commitsync.domain.sync_lock_operations import sync_lock_ops

logger = logging.getLogger(__name__)


@asynccontextmanager
async def sync_lock(key: str, ttl_seconds: int) -> AsyncIterator[bool]:
    """
    Hold the lease `key` for the duration of the context.

    Non-blocking: yields False straight away if another holder has it.
    The lease is taken and released in short transactions of their own so
    the protected work can commit independently.
    """
    holder = uuid_pkg.uuid4().hex

    async with async_session_maker() as session:
        acquired = await sync_lock_ops.acquire(session, key, holder, ttl_seconds)
        await session.commit()

    if not acquired:
        yield False
        return

    try:
        yield True
    finally:
        try:
            async with async_session_maker() as session:
                await sync_lock_ops.release(session, key, holder)
                await session.commit()
        except Exception as e:
            # Lease expires on its own after ttl_seconds
            logger.warning(f"[sync-lock] Failed to release {key}: {e}")
