"""Integration test conftest: real PostgreSQL, nothing persists.

Tests in this directory run real SQL against settings.database_url and
need an explicit opt-in (TOKEI_TESTS_ENABLED=1); without it they are
skipped so the unit suite runs anywhere.

Two kinds of fixtures:
- db_session: one connection wrapped in a transaction that is always
  rolled back. Application code may call commit() freely.
- committed_sessions: a session factory on the engine itself, for tests
  that need several connections at once (racing writers). Those tests
  clean up after themselves.
"""

from __future__ import annotations

import os

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from tokei_badges import models  # noqa: F401
from tokei_badges.config import settings


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.getenv("TOKEI_TESTS_ENABLED"):
        return
    skip = pytest.mark.skip(reason="Set TOKEI_TESTS_ENABLED=1 to run against PostgreSQL")
    for item in items:
        if "integration" in item.nodeid.split("/"):
            item.add_marker(skip)


@pytest.fixture(autouse=True)
def _mark_integration(request):
    """Auto-mark all tests in this directory as integration."""
    request.node.add_marker(pytest.mark.integration)


@pytest.fixture
async def test_engine():
    """Engine with the repo / stats tables present; disposed after the test."""
    engine = create_async_engine(
        settings.database_url,
        echo=False,
        pool_size=3,
        max_overflow=2,
        connect_args={"command_timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    """Database session wrapped in a transaction that is ALWAYS rolled back.

    Uses a SAVEPOINT so code under test can call commit() without actually
    committing; the outer transaction absorbs it.
    """
    async with test_engine.connect() as conn:
        trans = await conn.begin()
        session = AsyncSession(bind=conn, expire_on_commit=False)
        await conn.begin_nested()

        @event.listens_for(session.sync_session, "after_transaction_end")
        def restart_savepoint(session_sync, transaction):
            """Open a new SAVEPOINT each time the nested one ends."""
            if transaction.nested and not transaction._parent.nested:
                session_sync.begin_nested()

        try:
            yield session
        finally:
            await session.close()
            await trans.rollback()


@pytest.fixture
def committed_sessions(test_engine):
    """Session factory whose sessions each hold their own connection."""
    return sessionmaker(  # type: ignore[call-overload]
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
