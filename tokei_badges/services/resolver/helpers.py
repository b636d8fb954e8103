"""
Hosting provider response helpers.

Maps HTTP status codes and rate limit headers onto resolver failures.
"""

import logging

import httpx

from tokei_badges.core.exceptions import RepositoryNotFound, ResolutionError

logger = logging.getLogger(__name__)


class RateLimitInfo:
    """Rate limit information from a GitHub / GitLab API response."""

    def __init__(self, response: httpx.Response) -> None:
        self.remaining = response.headers.get("X-RateLimit-Remaining") or response.headers.get(
            "RateLimit-Remaining"
        )
        self.reset = response.headers.get("X-RateLimit-Reset") or response.headers.get(
            "RateLimit-Reset"
        )

    @property
    def reset_timestamp(self) -> int | None:
        """Get reset timestamp as integer, or None if not available."""
        return int(self.reset) if self.reset else None

    @property
    def is_exhausted(self) -> bool:
        """Check if rate limit is exhausted."""
        return self.remaining is not None and int(self.remaining) == 0


def handle_error_response(response: httpx.Response, slug: str) -> None:
    """
    Raise the resolver failure matching a non-200 API response.

    Args:
        response: The HTTP response from the hosting provider
        slug: Repository slug for error context (format: "namespace/name")

    Raises:
        RepositoryNotFound: 404, or 422 (GitHub: empty repository / bad ref)
        ResolutionError: rate limits, auth failures and any other non-200
    """
    if response.status_code == 200:
        return

    rate_info = RateLimitInfo(response)

    if response.status_code in (404, 409, 422):
        # 409: GitHub reports an empty repository as a conflict
        raise RepositoryNotFound(slug)
    elif response.status_code in (403, 429):
        if rate_info.is_exhausted or response.status_code == 429:
            logger.warning(f"Rate limited resolving {slug} (reset at {rate_info.reset_timestamp})")
            raise ResolutionError(f"Rate limit exceeded while resolving {slug}")
        raise ResolutionError(f"Access to {slug} forbidden")
    elif response.status_code == 401:
        raise ResolutionError("Invalid or expired hosting provider token")
    raise ResolutionError(f"Hosting provider error {response.status_code} for {slug}")
