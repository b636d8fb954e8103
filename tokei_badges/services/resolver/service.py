"""
Revision resolver: maps a repository identity to its current commit SHA.

GitHub and GitLab are asked through their REST APIs; every other known
host is asked with ``git ls-remote``. Resolved revisions are cached for a
short TTL so a README full of badges costs one lookup, and the last
revision seen per identity is remembered for serving stale statistics
when the host times out.
"""

import asyncio
import logging
import re
from urllib.parse import quote

import httpx
from cachetools import LRUCache, TTLCache  # type: ignore[import-untyped]

from tokei_badges.core.exceptions import RepositoryNotFound, ResolutionError, ResolutionTimeout
from tokei_badges.services.process import CommandFailed, run_command
from tokei_badges.services.resolver.helpers import handle_error_response
from tokei_badges.services.resolver.hosts import (
    GITHUB_API_URL,
    GITHUB_API_VERSION,
    GITLAB_API_URL,
    HostConfig,
    host_for,
)
from tokei_badges.services.resolver.http_client import get_http_client
from tokei_badges.services.types import RepositoryIdentity

logger = logging.getLogger(__name__)

REVISION_PATTERN = re.compile(r"^[0-9a-f]{7,64}$")


class RevisionResolver:
    """Resolve repository identities to revisions."""

    def __init__(
        self,
        timeout: float = 10.0,
        github_token: str = "",
        gitlab_token: str = "",
        git_binary: str = "git",
        cache_ttl: int = 60,
        cache_size: int = 1024,
    ) -> None:
        self.timeout = timeout
        self.github_token = github_token
        self.gitlab_token = gitlab_token
        self.git_binary = git_binary
        self._recent: TTLCache[tuple[str, str], str] = TTLCache(maxsize=cache_size, ttl=cache_ttl)
        self._last_known: LRUCache[tuple[str, str], str] = LRUCache(maxsize=cache_size * 4)

    def last_known_revision(self, identity: RepositoryIdentity) -> str | None:
        """The most recent revision resolved for this identity, if any."""
        config = host_for(identity)
        return self._last_known.get((config.name, identity.slug.lower()))

    async def resolve(self, identity: RepositoryIdentity) -> str:
        """
        Resolve an identity to the revision its default branch points at.

        Raises:
            ResolutionError: malformed identity, unknown host, provider error
            RepositoryNotFound: provider does not know the repository
            ResolutionTimeout: provider did not answer within the timeout
        """
        config = host_for(identity)
        key = (config.name, identity.slug.lower())

        cached = self._recent.get(key)
        if cached is not None:
            logger.debug(f"Revision cache HIT: {identity}")
            return cached

        try:
            revision = await asyncio.wait_for(self._resolve(config, identity), timeout=self.timeout)
        except TimeoutError as e:
            raise ResolutionTimeout(identity.slug, self.timeout) from e

        self._recent[key] = revision
        self._last_known[key] = revision
        logger.debug(f"Resolved {identity} -> {revision}")
        return revision

    async def _resolve(self, config: HostConfig, identity: RepositoryIdentity) -> str:
        if config.api == "github":
            return await self._resolve_github(identity)
        if config.api == "gitlab":
            return await self._resolve_gitlab(identity)
        return await self._resolve_ls_remote(config, identity)

    async def _get(self, url: str, slug: str, headers: dict[str, str], **kwargs) -> httpx.Response:
        client = get_http_client()
        try:
            response = await client.get(url, headers=headers, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise ResolutionTimeout(slug, self.timeout) from e
        except httpx.HTTPError as e:
            raise ResolutionError(f"Hosting provider unreachable for {slug}: {e}") from e
        handle_error_response(response, slug)
        return response

    async def _resolve_github(self, identity: RepositoryIdentity) -> str:
        headers = {
            "Accept": "application/vnd.github.sha",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"

        response = await self._get(
            f"{GITHUB_API_URL}/repos/{identity.namespace}/{identity.name}/commits/HEAD",
            identity.slug,
            headers,
        )
        revision = response.text.strip()
        if not revision:
            raise RepositoryNotFound(identity.slug)
        return _checked_revision(revision, "github", identity.slug)

    async def _resolve_gitlab(self, identity: RepositoryIdentity) -> str:
        headers = {"Accept": "application/json"}
        if self.gitlab_token:
            headers["PRIVATE-TOKEN"] = self.gitlab_token

        project = quote(identity.slug, safe="")
        response = await self._get(
            f"{GITLAB_API_URL}/projects/{project}/repository/commits",
            identity.slug,
            headers,
            params={"per_page": 1},
        )
        try:
            commits = response.json()
            if isinstance(commits, list) and not commits:
                raise RepositoryNotFound(identity.slug)
            revision = commits[0]["id"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ResolutionError(f"Unexpected response from gitlab for {identity.slug}") from e
        return _checked_revision(revision, "gitlab", identity.slug)

    async def _resolve_ls_remote(self, config: HostConfig, identity: RepositoryIdentity) -> str:
        url = config.clone_url(identity.namespace, identity.name)
        try:
            output = await run_command(
                self.git_binary,
                "ls-remote",
                url,
                "HEAD",
                timeout=self.timeout,
            )
        except CommandFailed as e:
            # git exits 128 both for missing and for private repositories
            if e.returncode == 128:
                raise RepositoryNotFound(identity.slug) from e
            raise ResolutionError(f"git ls-remote failed for {identity.slug}: {e.stderr}") from e

        # "<sha>\tHEAD"
        line = output.decode(errors="replace").strip()
        revision = line.split("\t", 1)[0].strip()
        if not revision:
            raise RepositoryNotFound(identity.slug)
        return _checked_revision(revision, config.name, identity.slug)


def _checked_revision(revision: object, provider: str, slug: str) -> str:
    """Reject anything that is not a commit SHA before it becomes a cache key."""
    if not isinstance(revision, str) or not REVISION_PATTERN.match(revision.lower()):
        raise ResolutionError(f"Unexpected response from {provider} for {slug}")
    return revision.lower()
