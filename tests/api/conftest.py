"""API test fixtures: app client with the coordinator and database faked.

The ASGI transport does not run the application lifespan, so no engine
connection, subprocess or HTTP client is ever created.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from tokei_badges.services.types import StatsResult, StatsSource


@pytest.fixture
def coordinator(sample_entry):
    """Coordinator double returning ``sample_entry`` at revision abc123."""
    fake = MagicMock()
    fake.get_stats = AsyncMock(
        return_value=StatsResult("abc123", sample_entry, StatsSource.CACHE)
    )
    fake.snapshot.return_value = {
        "cache": {"hits": 3, "misses": 1, "read_errors": 0, "stale_served": 0},
        "compute": {
            "total": 1,
            "joined": 0,
            "failures": 0,
            "timeouts": 0,
            "overloaded": 0,
            "abandoned": 0,
        },
        "in_flight": {"limit": 32, "current": 0, "revisions": []},
    }
    return fake


@pytest.fixture
def db_session():
    session = AsyncMock()
    return session


@pytest.fixture
async def api_client(coordinator, db_session):
    """HTTP client with get_coordinator and get_db overridden."""
    from tokei_badges.api.deps import get_coordinator
    from tokei_badges.core.database import get_db
    from tokei_badges.main import app

    app.dependency_overrides[get_coordinator] = lambda: coordinator

    async def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def bare_client():
    """HTTP client without overrides, as before the lifespan has run."""
    from tokei_badges.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
