"""
Compute coordinator: cache-or-compute for repository statistics.

Given a repository identity it resolves the current revision, serves the
stored statistics for that revision when present, and otherwise runs a
single fetch + count computation per revision no matter how many requests
ask for it concurrently.

Single-flight design:
- The first request for a missing revision registers an InFlightComputation
  whose work runs in a detached asyncio.Task.
- Every request for that revision, the first included, is a waiter on the
  task through asyncio.shield, so one client disconnecting never cancels
  work other clients are waiting for.
- The task completes exactly once; all waiters observe the same value or
  the same exception.
- When the last waiter goes away the task is cancelled (killing its
  subprocesses) and its slot removed at once. Until it has finished
  unwinding it still counts against the in-flight limit.
- The registry slot is released by a done-callback on every exit path.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Any

from tokei_badges.core.exceptions import (
    ComputeTimeout,
    Overloaded,
    ResolutionTimeout,
    StoreUnavailable,
)
from tokei_badges.services.counter import CountingInvoker
from tokei_badges.services.fetcher import SourceFetcher
from tokei_badges.services.resolver import RevisionResolver
from tokei_badges.services.stats_store import StatisticsStore
from tokei_badges.services.types import CacheEntry, RepositoryIdentity, StatsResult, StatsSource

logger = logging.getLogger(__name__)


@dataclass
class InFlightComputation:
    """A fetch + count running for one revision and the requests awaiting it."""

    revision: str
    task: "asyncio.Task[CacheEntry]"
    started_at: float  # time.monotonic() when registered
    waiters: int = 0


@dataclass
class CoordinatorStats:
    """Counters exposed on the internal status endpoint."""

    cache_hits: int = 0
    cache_misses: int = 0
    store_read_errors: int = 0
    joined: int = 0  # Requests that waited on another request's computation
    computations: int = 0
    failures: int = 0
    timeouts: int = 0
    overloaded: int = 0
    abandoned: int = 0  # Computations cancelled because every waiter left
    stale_served: int = 0


class ComputeCoordinator:
    """
    Owns the in-flight registry and orchestrates resolve, lookup, fetch,
    count and persist.

    Usage:
        coordinator = ComputeCoordinator(resolver, store, fetcher, counter)
        result = await coordinator.get_stats(RepositoryIdentity("github", "o", "r"))
    """

    def __init__(
        self,
        resolver: RevisionResolver,
        store: StatisticsStore,
        fetcher: SourceFetcher,
        counter: CountingInvoker,
        *,
        max_in_flight: int = 32,
        compute_timeout: float = 180.0,
        serve_stale_on_resolve_timeout: bool = True,
    ) -> None:
        self._resolver = resolver
        self._store = store
        self._fetcher = fetcher
        self._counter = counter
        self._max_in_flight = max_in_flight
        self._compute_timeout = compute_timeout
        self._serve_stale = serve_stale_on_resolve_timeout

        self._in_flight: dict[str, InFlightComputation] = {}
        # Cancelled after every waiter left, still killing subprocesses / removing checkouts
        self._unwinding: set["asyncio.Task[CacheEntry]"] = set()
        self._lock = asyncio.Lock()
        self._stats = CoordinatorStats()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_stats(self, identity: RepositoryIdentity) -> StatsResult:
        """
        Statistics for the current revision of ``identity``.

        Raises:
            ResolutionError / RepositoryNotFound / ResolutionTimeout: from the resolver
            CountingFailed / FetchFailed: the computation failed
            ComputeTimeout: the computation exceeded its budget
            Overloaded: too many distinct revisions are being computed
        """
        try:
            revision = await self._resolver.resolve(identity)
        except ResolutionTimeout:
            stale = await self._stale_result(identity)
            if stale is None:
                raise
            return stale

        entry = await self._lookup(revision)
        if entry is not None:
            self._stats.cache_hits += 1
            return StatsResult(revision, entry, StatsSource.CACHE)

        self._stats.cache_misses += 1
        return await self._get_or_compute(identity, revision)

    def in_flight_revisions(self) -> list[str]:
        return list(self._in_flight)

    def snapshot(self) -> dict[str, Any]:
        """Counters and in-flight computations for monitoring."""
        now = time.monotonic()
        stats = self._stats
        return {
            "cache": {
                "hits": stats.cache_hits,
                "misses": stats.cache_misses,
                "read_errors": stats.store_read_errors,
                "stale_served": stats.stale_served,
            },
            "compute": {
                "total": stats.computations,
                "joined": stats.joined,
                "failures": stats.failures,
                "timeouts": stats.timeouts,
                "overloaded": stats.overloaded,
                "abandoned": stats.abandoned,
            },
            "in_flight": {
                "limit": self._max_in_flight,
                "current": len(self._in_flight),
                "unwinding": len(self._unwinding),
                "revisions": [
                    {
                        "revision": c.revision,
                        "age_seconds": round(now - c.started_at, 1),
                        "waiters": c.waiters,
                    }
                    for c in self._in_flight.values()
                ],
            },
        }

    async def close(self) -> None:
        """Cancel every in-flight computation and wait for all of them to unwind (application shutdown)."""
        async with self._lock:
            computations = list(self._in_flight.values())
            self._in_flight.clear()
        for computation in computations:
            computation.task.cancel()
        # Abandoned tasks are already cancelled; a second cancel would interrupt their cleanup
        tasks = [c.task for c in computations] + list(self._unwinding)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(
                f"Cancelled {len(computations)} in-flight computations on shutdown, "
                f"{len(tasks) - len(computations)} abandoned ones finished unwinding"
            )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def _lookup(self, revision: str) -> CacheEntry | None:
        """Store read; an unavailable store counts as a miss."""
        try:
            return await self._store.get(revision)
        except StoreUnavailable as e:
            self._stats.store_read_errors += 1
            logger.warning(f"Store read failed, treating {revision} as a miss: {e}")
            return None

    async def _stale_result(self, identity: RepositoryIdentity) -> StatsResult | None:
        if not self._serve_stale:
            return None
        revision = self._resolver.last_known_revision(identity)
        if revision is None:
            return None
        entry = await self._lookup(revision)
        if entry is None:
            return None
        self._stats.stale_served += 1
        logger.warning(f"Resolving {identity} timed out, serving last known revision {revision}")
        return StatsResult(revision, entry, StatsSource.STALE)

    # ------------------------------------------------------------------
    # Single-flight
    # ------------------------------------------------------------------

    async def _get_or_compute(self, identity: RepositoryIdentity, revision: str) -> StatsResult:
        async with self._lock:
            computation = self._in_flight.get(revision)
            if computation is None:
                if len(self._in_flight) + len(self._unwinding) >= self._max_in_flight:
                    self._stats.overloaded += 1
                    raise Overloaded(self._max_in_flight)
                task = asyncio.create_task(
                    self._compute(identity, revision),
                    name=f"compute-{revision}",
                )
                computation = InFlightComputation(revision, task, time.monotonic())
                self._in_flight[revision] = computation
                task.add_done_callback(partial(self._release, computation))
                source = StatsSource.COMPUTED
            else:
                self._stats.joined += 1
                source = StatsSource.JOINED
                logger.info(f"Joining in-flight computation for {revision}")
            computation.waiters += 1

        entry = await self._wait(computation)
        return StatsResult(revision, entry, source)

    async def _wait(self, computation: InFlightComputation) -> CacheEntry:
        """Await the shared task without letting our cancellation reach it."""
        try:
            return await asyncio.shield(computation.task)
        finally:
            computation.waiters -= 1
            if computation.waiters == 0 and not computation.task.done():
                # Every requester is gone; nobody needs the result any more
                self._stats.abandoned += 1
                logger.info(f"All waiters left, cancelling computation for {computation.revision}")
                computation.task.cancel()
                self._release(computation)
                self._unwinding.add(computation.task)
                computation.task.add_done_callback(self._unwinding.discard)

    def _release(self, computation: InFlightComputation, _task: object = None) -> None:
        """Remove a computation's registry slot if it still owns it.

        Runs on the event loop without awaiting, so the check and the pop
        cannot interleave with a registration.
        """
        if self._in_flight.get(computation.revision) is computation:
            del self._in_flight[computation.revision]

    # ------------------------------------------------------------------
    # Computation (runs inside the shared task)
    # ------------------------------------------------------------------

    async def _compute(self, identity: RepositoryIdentity, revision: str) -> CacheEntry:
        self._stats.computations += 1
        started = time.monotonic()
        logger.info(f"Computing stats for {identity} at {revision}")

        try:
            entry = await asyncio.wait_for(
                self._fetch_and_count(identity, revision),
                timeout=self._compute_timeout,
            )
        except TimeoutError as e:
            self._stats.timeouts += 1
            logger.error(f"Computation for {revision} exceeded {self._compute_timeout}s")
            raise ComputeTimeout(revision, "fetch+count", self._compute_timeout) from e
        except ComputeTimeout as e:
            self._stats.timeouts += 1
            logger.error(f"Computation for {revision} timed out: {e}")
            raise
        except asyncio.CancelledError:
            logger.warning(f"Computation for {revision} cancelled")
            raise
        except Exception as e:
            self._stats.failures += 1
            logger.error(f"Computation for {revision} failed: {e}")
            raise

        await self._persist(revision, entry)
        logger.info(
            f"Computed stats for {identity} at {revision} "
            f"({entry.aggregate.lines} lines, {len(entry.languages)} languages) "
            f"in {time.monotonic() - started:.1f}s"
        )
        return entry

    async def _fetch_and_count(self, identity: RepositoryIdentity, revision: str) -> CacheEntry:
        async with self._fetcher.checkout(identity, revision) as path:
            return await self._counter.count(path, revision)

    async def _persist(self, revision: str, entry: CacheEntry) -> None:
        """Write before any waiter is woken; a failed write still returns the result."""
        try:
            await self._store.put(revision, entry)
        except StoreUnavailable as e:
            logger.error(f"Could not persist stats for {revision}, serving unsaved result: {e}")
