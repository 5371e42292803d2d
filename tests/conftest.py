"""Root conftest: test infrastructure for all commitsync tests.

Provides:
- Safety guard: integration tests only run with COMMITSYNC_TESTS_ENABLED=1
- Transaction-rollback db_session fixture
- Test user, project and branch fixtures
- Autouse reset of the shared rate limit cache and task queue binding
"""

from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from commitsync.config.settings import settings

# ─────────────────────────────────────────────────────────────────────────────
# Safety Guard
# ─────────────────────────────────────────────────────────────────────────────


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: DB integration tests (transaction rollback)")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip database tests unless explicitly enabled.

    Unit tests (pure mocks) always run. Tests under tests/integration need
    a PostgreSQL with the migrations applied and COMMITSYNC_TESTS_ENABLED=1.
    """
    if os.getenv("COMMITSYNC_TESTS_ENABLED") == "1":
        return

    skip_db = pytest.mark.skip(reason="set COMMITSYNC_TESTS_ENABLED=1 to run DB tests")
    for item in items:
        if "integration" in item.nodeid.split("/"):
            item.add_marker(pytest.mark.integration)
            item.add_marker(skip_db)


# ─────────────────────────────────────────────────────────────────────────────
# Transaction-Rollback Engine (uses DIRECT connection, not pooler)
# ─────────────────────────────────────────────────────────────────────────────

# PgBouncer transaction pooling breaks SAVEPOINTs. Use the direct URL.
# Engine creation is lazy (no connection until first use).
TEST_ENGINE = create_async_engine(
    settings.database_url_direct,
    echo=False,
    pool_pre_ping=True,
    pool_size=3,
    max_overflow=2,
    connect_args={
        "command_timeout": 30,
    },
)


@pytest.fixture
async def db_session():
    """Database session wrapped in a transaction that is ALWAYS rolled back.

    Uses SAVEPOINT so code under test can call commit() and rollback()
    without ending the outer transaction.
    """
    async with TEST_ENGINE.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)
        await conn.begin_nested()

        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(session_sync, transaction):
            """Restart SAVEPOINT after each nested transaction ends."""
            if transaction.nested and not transaction._parent.nested:
                session_sync.begin_nested()

        try:
            yield session
        finally:
            await session.close()
            await trans.rollback()


@pytest.fixture
async def test_user(db_session: AsyncSession):
    """Project owner with a (plaintext) GitHub token."""
    from commitsync.models.user import User

    user = User(
        id=uuid.uuid4(),
        email=f"__test_{uuid.uuid4().hex[:8]}@example.com",
        display_name="Test User",
        github_username=f"test-dev-{uuid.uuid4().hex[:6]}",
        github_token="ghp_test_token",
        created_at=datetime.now(UTC),
    )
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def test_project(db_session: AsyncSession, test_user):
    from commitsync.models.project import Project

    project = Project(
        name=f"__test_project_{uuid.uuid4().hex[:8]}",
        user_id=test_user.id,
        repository_url="https://github.com/test-org/test-repo",
    )
    db_session.add(project)
    await db_session.flush()
    await db_session.refresh(project)
    return project


@pytest.fixture
async def test_branch(db_session: AsyncSession, test_project):
    from commitsync.models.github_branch import GithubBranch

    branch = GithubBranch(project_id=test_project.id, branch_name="main")
    db_session.add(branch)
    await db_session.flush()
    await db_session.refresh(branch)
    return branch


# ─────────────────────────────────────────────────────────────────────────────
# Shared State Reset
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Rate limit snapshots and the queue binding are process-wide singletons."""
    from commitsync.services.github.rate_limit import clear_rate_limit_cache
    from commitsync.services.task_queue import task_queue

    clear_rate_limit_cache()
    yield
    clear_rate_limit_cache()
    task_queue.unbind()
