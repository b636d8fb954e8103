"""Root conftest: shared fixtures for all tests.

Provides:
- Sample repository identity and statistics
- Autouse guard against real hosting provider calls
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from tokei_badges.services.types import RepositoryIdentity

from tests.helpers.mock_factories import make_entry


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "integration: statistics store tests against PostgreSQL")


@pytest.fixture
def hello_world() -> RepositoryIdentity:
    return RepositoryIdentity("github", "octocat", "hello-world")


@pytest.fixture
def sample_entry():
    """100 lines of Rust: 80 code, 10 comments, 10 blanks, in one file."""
    return make_entry({"Rust": (80, 10, 10)}, files=1)


# ─────────────────────────────────────────────────────────────────────────────
# External Service Guard
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def block_hosting_providers():
    """SAFETY: No test reaches api.github.com or gitlab.com.

    Tests that exercise the resolver patch get_http_client themselves; the
    inner patch takes precedence for the duration of the test.
    """
    client = MagicMock()
    client.get = AsyncMock(side_effect=httpx.ConnectError("network disabled in tests"))
    with patch("tokei_badges.services.resolver.service.get_http_client", return_value=client):
        yield client
