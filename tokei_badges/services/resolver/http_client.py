"""
Shared HTTP client for hosting provider API calls.

Provides a singleton AsyncClient with connection pooling so badge requests
reuse TLS connections to api.github.com / gitlab.com.
"""

import logging

import httpx

logger = logging.getLogger(__name__)

# Module-level singleton client
_client: httpx.AsyncClient | None = None


def get_http_client() -> httpx.AsyncClient:
    """
    Get or create the shared HTTP client for hosting provider calls.

    Auth headers and timeouts are passed per-request, not stored on the client.
    """
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, connect=5.0),
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            http2=True,
        )
        logger.debug("Created new resolver HTTP client with connection pooling")
    return _client


async def close_http_client() -> None:
    """
    Close the shared HTTP client.

    Call on app shutdown for graceful termination.
    """
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
        _client = None
        logger.debug("Closed resolver HTTP client")
