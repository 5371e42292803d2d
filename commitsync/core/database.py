from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from commitsync.config import settings

# Pooled engine shared by every sync job and the internal endpoints.
# The transaction pooler rejects prepared statements, so asyncpg's caches are off.
engine = create_async_engine(
    settings.database_url,
    echo=False,
    future=True,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_pre_ping=True,
    pool_recycle=300,
    pool_timeout=30,
    connect_args={
        "statement_cache_size": 0,
        "prepared_statement_cache_size": 0,
        "command_timeout": 60,
    },
)

# Direct engine, only for DDL in init_db
ddl_engine = create_async_engine(
    settings.database_url_direct,
    echo=False,
    future=True,
    pool_size=1,
    max_overflow=0,
)

# Jobs open one session each and commit explicitly
async_session_maker = sessionmaker(  # type: ignore[call-overload]
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; committed on success, rolled back on error."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the sync tables directly (debug only; Alembic owns the schema otherwise)."""
    import commitsync.models  # noqa: F401

    async with ddl_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
