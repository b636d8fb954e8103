"""
Source fetcher: materializes the tree of one revision on disk.

Fetches exactly the requested commit with a depth-1 fetch so the counted
tree always matches the revision it is cached under. Hosts that refuse
fetching an unadvertised SHA fall back to their HEAD, which is accepted
only if it still points at the requested revision.
"""

import asyncio
import logging
import shutil
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from tokei_badges.core.exceptions import ComputeTimeout, FetchFailed
from tokei_badges.services.process import CommandFailed, run_command
from tokei_badges.services.resolver.hosts import host_for
from tokei_badges.services.types import RepositoryIdentity

logger = logging.getLogger(__name__)


class SourceFetcher:
    """Fetch a revision into a temporary directory with git."""

    def __init__(
        self,
        git_binary: str = "git",
        timeout: float = 120.0,
        work_dir: str | None = None,
    ) -> None:
        self.git_binary = git_binary
        self.timeout = timeout
        self.work_dir = work_dir or None

    @asynccontextmanager
    async def checkout(self, identity: RepositoryIdentity, revision: str) -> AsyncIterator[str]:
        """
        Yield a directory containing the tree of ``revision``.

        The directory is removed on exit, including on cancellation.

        Raises:
            FetchFailed: git could not produce the revision
            ComputeTimeout: the fetch exceeded its timeout
        """
        path = await asyncio.to_thread(tempfile.mkdtemp, prefix="tokei-", dir=self.work_dir)
        try:
            try:
                await asyncio.wait_for(self._fetch(identity, revision, path), timeout=self.timeout)
            except TimeoutError as e:
                raise ComputeTimeout(revision, "fetch", self.timeout) from e
            yield path
        finally:
            await asyncio.to_thread(shutil.rmtree, path, True)

    async def _git(self, *args: str) -> str:
        output = await run_command(self.git_binary, *args, timeout=self.timeout)
        return output.decode(errors="replace").strip()

    async def _fetch(self, identity: RepositoryIdentity, revision: str, path: str) -> None:
        url = host_for(identity).clone_url(identity.namespace, identity.name)
        logger.info(f"Fetching {identity} at {revision}")

        try:
            await self._git("init", "--quiet", path)
            try:
                await self._git("-C", path, "fetch", "--quiet", "--depth", "1", url, revision)
            except CommandFailed:
                logger.debug(f"{url} refused fetching {revision} by SHA, trying HEAD")
                await self._git("-C", path, "fetch", "--quiet", "--depth", "1", url, "HEAD")
                fetched = await self._git("-C", path, "rev-parse", "FETCH_HEAD")
                if fetched != revision:
                    raise FetchFailed(
                        f"{identity} moved from {revision} to {fetched} during fetch"
                    ) from None
            await self._git("-C", path, "checkout", "--quiet", "FETCH_HEAD")
        except CommandFailed as e:
            raise FetchFailed(f"Fetching {identity} at {revision} failed: {e.stderr}") from e
