"""Unit tests for ComputeCoordinator: resolver, store, fetcher and counter faked.

Covers:
- Cache hits and misses
- One computation per revision under concurrent requests
- Failure and timeout fan-out to every waiter
- Waiter cancellation (one waiter vs. the last waiter)
- Backpressure and store degradation
- Serving the last known revision on resolver timeouts
"""

from __future__ import annotations

import asyncio

import pytest

from tokei_badges.core.exceptions import (
    ComputeTimeout,
    CountingFailed,
    Overloaded,
    RepositoryNotFound,
    ResolutionTimeout,
    StoreUnavailable,
)
from tokei_badges.services.coordinator import ComputeCoordinator
from tokei_badges.services.types import RepositoryIdentity, StatsSource

from tests.helpers.fakes import FakeCounter, FakeFetcher, FakeResolver, FakeStore
from tests.helpers.mock_factories import make_entry

HELLO_WORLD = RepositoryIdentity("github", "octocat", "hello-world")
OTHER = RepositoryIdentity("github", "octocat", "spoon-knife")


async def _wait_until(predicate, attempts: int = 500) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


def _waiters(coordinator: ComputeCoordinator, revision: str) -> int:
    computation = coordinator._in_flight.get(revision)
    return computation.waiters if computation else 0


class _CoordinatorTest:
    def setup_method(self):
        self.entry = make_entry({"Rust": (80, 10, 10)}, files=1)
        self.resolver = FakeResolver(
            revisions={"octocat/hello-world": "abc123", "octocat/spoon-knife": "def456"}
        )
        self.store = FakeStore()
        self.fetcher = FakeFetcher()
        self.counter = FakeCounter(default=self.entry)
        self.coordinator = self.make_coordinator()

    def make_coordinator(self, **kwargs) -> ComputeCoordinator:
        kwargs.setdefault("compute_timeout", 5.0)
        return ComputeCoordinator(self.resolver, self.store, self.fetcher, self.counter, **kwargs)


class TestCacheLookup(_CoordinatorTest):
    """Store hits never start a computation."""

    @pytest.mark.asyncio
    async def test_cache_hit_skips_computation(self):
        self.store.entries["abc123"] = self.entry

        result = await self.coordinator.get_stats(HELLO_WORLD)

        assert result.revision == "abc123"
        assert result.entry == self.entry
        assert result.source is StatsSource.CACHE
        assert self.counter.calls == []
        assert self.fetcher.fetched == []

    @pytest.mark.asyncio
    async def test_miss_computes_persists_then_hits(self):
        first = await self.coordinator.get_stats(HELLO_WORLD)
        second = await self.coordinator.get_stats(HELLO_WORLD)

        assert first.source is StatsSource.COMPUTED
        assert first.entry.aggregate.lines == 100
        assert first.entry.aggregate.code == 80
        assert first.entry.aggregate.comments == 10
        assert first.entry.aggregate.blanks == 10
        assert second.source is StatsSource.CACHE
        assert second.entry == first.entry
        assert self.counter.calls == ["abc123"]

    @pytest.mark.asyncio
    async def test_entry_is_stored_before_result_returned(self):
        await self.coordinator.get_stats(HELLO_WORLD)

        assert self.store.entries["abc123"] == self.entry

    @pytest.mark.asyncio
    async def test_store_read_failure_treated_as_miss(self):
        self.store.read_error = StoreUnavailable("connection refused")

        result = await self.coordinator.get_stats(HELLO_WORLD)

        assert result.source is StatsSource.COMPUTED
        assert result.entry == self.entry
        assert self.coordinator.snapshot()["cache"]["read_errors"] == 1

    @pytest.mark.asyncio
    async def test_store_write_failure_still_returns_result(self):
        self.store.write_error = StoreUnavailable("disk full")

        result = await self.coordinator.get_stats(HELLO_WORLD)

        assert result.source is StatsSource.COMPUTED
        assert result.entry == self.entry
        assert "abc123" not in self.store.entries
        assert self.coordinator.in_flight_revisions() == []


class TestSingleFlight(_CoordinatorTest):
    """Concurrent requests for one revision share one computation."""

    @pytest.mark.asyncio
    async def test_concurrent_requests_trigger_one_count(self):
        self.counter.gate = asyncio.Event()

        tasks = [asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD)) for _ in range(10)]
        await _wait_until(lambda: _waiters(self.coordinator, "abc123") == 10)
        self.counter.gate.set()
        results = await asyncio.gather(*tasks)

        assert self.counter.calls == ["abc123"]
        assert self.fetcher.fetched == ["abc123"]
        assert all(r.entry == self.entry for r in results)
        sources = [r.source for r in results]
        assert sources.count(StatsSource.COMPUTED) == 1
        assert sources.count(StatsSource.JOINED) == 9
        assert self.coordinator.in_flight_revisions() == []

    @pytest.mark.asyncio
    async def test_distinct_revisions_compute_independently(self):
        self.counter.gate = asyncio.Event()

        first = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        second = asyncio.create_task(self.coordinator.get_stats(OTHER))
        await _wait_until(lambda: len(self.coordinator.in_flight_revisions()) == 2)
        self.counter.gate.set()
        results = await asyncio.gather(first, second)

        assert sorted(self.counter.calls) == ["abc123", "def456"]
        assert [r.revision for r in results] == ["abc123", "def456"]

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter(self):
        self.counter.gate = asyncio.Event()
        self.counter.error = CountingFailed("tokei exploded")

        tasks = [asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD)) for _ in range(5)]
        await _wait_until(lambda: _waiters(self.coordinator, "abc123") == 5)
        self.counter.gate.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, CountingFailed) for r in results)
        assert all(r is results[0] for r in results)
        assert self.counter.calls == ["abc123"]
        assert self.coordinator.in_flight_revisions() == []
        assert self.store.entries == {}

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        self.counter.error = CountingFailed("tokei exploded")
        with pytest.raises(CountingFailed):
            await self.coordinator.get_stats(HELLO_WORLD)

        self.counter.error = None
        result = await self.coordinator.get_stats(HELLO_WORLD)

        assert result.source is StatsSource.COMPUTED
        assert self.counter.calls == ["abc123", "abc123"]

    @pytest.mark.asyncio
    async def test_resolution_failure_leaves_no_state(self):
        self.resolver.error = RepositoryNotFound("octocat/hello-world")

        with pytest.raises(RepositoryNotFound):
            await self.coordinator.get_stats(HELLO_WORLD)

        assert self.coordinator.in_flight_revisions() == []
        assert self.counter.calls == []
        assert self.fetcher.fetched == []


class TestComputeTimeout(_CoordinatorTest):
    """The overall budget fails every waiter and frees the slot."""

    @pytest.mark.asyncio
    async def test_timeout_fans_out_and_slot_is_freed(self):
        self.coordinator = self.make_coordinator(compute_timeout=0.05)
        self.counter.delay = 5.0

        tasks = [asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD)) for _ in range(3)]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, ComputeTimeout) for r in results)
        assert results[0].revision == "abc123"
        assert self.counter.cancelled == ["abc123"]
        assert self.fetcher.open_checkouts == 0
        assert self.coordinator.in_flight_revisions() == []
        assert self.coordinator.snapshot()["compute"]["timeouts"] == 1

    @pytest.mark.asyncio
    async def test_retry_after_timeout_starts_fresh(self):
        self.coordinator = self.make_coordinator(compute_timeout=0.05)
        self.counter.delay = 5.0
        with pytest.raises(ComputeTimeout):
            await self.coordinator.get_stats(HELLO_WORLD)

        self.counter.delay = 0.0
        result = await self.coordinator.get_stats(HELLO_WORLD)

        assert result.source is StatsSource.COMPUTED
        assert result.entry == self.entry


class TestCancellation(_CoordinatorTest):
    """Client disconnects only cancel work nobody else wants."""

    @pytest.mark.asyncio
    async def test_one_waiter_leaving_does_not_cancel_others(self):
        self.counter.gate = asyncio.Event()

        leaving = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        staying = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        await _wait_until(lambda: _waiters(self.coordinator, "abc123") == 2)

        leaving.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leaving
        assert self.coordinator.in_flight_revisions() == ["abc123"]

        self.counter.gate.set()
        result = await staying

        assert result.entry == self.entry
        assert self.counter.cancelled == []
        assert self.store.entries["abc123"] == self.entry

    @pytest.mark.asyncio
    async def test_last_waiter_leaving_cancels_computation(self):
        self.counter.gate = asyncio.Event()

        request = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        await _wait_until(lambda: _waiters(self.coordinator, "abc123") == 1)
        await self.counter.started.wait()
        computation = self.coordinator._in_flight["abc123"].task

        request.cancel()
        with pytest.raises(asyncio.CancelledError):
            await request

        # Slot is released at once, before the task has finished unwinding
        assert self.coordinator.in_flight_revisions() == []
        with pytest.raises(asyncio.CancelledError):
            await computation
        assert self.counter.cancelled == ["abc123"]
        assert self.fetcher.open_checkouts == 0
        assert self.store.entries == {}
        assert self.coordinator.snapshot()["compute"]["abandoned"] == 1

    @pytest.mark.asyncio
    async def test_new_request_after_abandonment_recomputes(self):
        self.counter.gate = asyncio.Event()
        request = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        await self.counter.started.wait()
        request.cancel()
        with pytest.raises(asyncio.CancelledError):
            await request

        self.counter.gate.set()
        result = await self.coordinator.get_stats(HELLO_WORLD)

        assert result.source is StatsSource.COMPUTED
        assert self.counter.calls == ["abc123", "abc123"]

    @pytest.mark.asyncio
    async def test_unwinding_computation_counts_against_limit(self):
        self.coordinator = self.make_coordinator(max_in_flight=1)
        self.counter.gate = asyncio.Event()
        self.counter.unwind = asyncio.Event()
        request = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        await self.counter.started.wait()
        computation = self.coordinator._in_flight["abc123"].task

        request.cancel()
        with pytest.raises(asyncio.CancelledError):
            await request

        assert self.coordinator.in_flight_revisions() == []
        assert self.coordinator.snapshot()["in_flight"]["unwinding"] == 1
        with pytest.raises(Overloaded):
            await self.coordinator.get_stats(OTHER)

        self.counter.unwind.set()
        with pytest.raises(asyncio.CancelledError):
            await computation
        await asyncio.sleep(0)
        assert self.coordinator.snapshot()["in_flight"]["unwinding"] == 0

        self.counter.gate.set()
        result = await self.coordinator.get_stats(OTHER)
        assert result.revision == "def456"

    @pytest.mark.asyncio
    async def test_close_waits_for_abandoned_work(self):
        self.counter.gate = asyncio.Event()
        self.counter.unwind = asyncio.Event()
        request = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        await self.counter.started.wait()
        request.cancel()
        with pytest.raises(asyncio.CancelledError):
            await request

        closing = asyncio.create_task(self.coordinator.close())
        for _ in range(20):
            await asyncio.sleep(0)
        assert not closing.done()

        self.counter.unwind.set()
        await closing

        assert self.counter.cancelled == ["abc123"]
        assert self.fetcher.open_checkouts == 0
        assert self.coordinator.snapshot()["in_flight"]["unwinding"] == 0

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight_work(self):
        self.counter.gate = asyncio.Event()
        request = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        await self.counter.started.wait()

        await self.coordinator.close()
        results = await asyncio.gather(request, return_exceptions=True)

        assert isinstance(results[0], asyncio.CancelledError)
        assert self.coordinator.in_flight_revisions() == []
        assert self.counter.cancelled == ["abc123"]


class TestBackpressure(_CoordinatorTest):
    """New revisions are refused once the in-flight limit is reached."""

    @pytest.mark.asyncio
    async def test_new_revision_refused_when_full(self):
        self.coordinator = self.make_coordinator(max_in_flight=1)
        self.counter.gate = asyncio.Event()

        running = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        await _wait_until(lambda: _waiters(self.coordinator, "abc123") == 1)

        with pytest.raises(Overloaded) as exc_info:
            await self.coordinator.get_stats(OTHER)
        assert exc_info.value.limit == 1

        self.counter.gate.set()
        await running
        assert self.counter.calls == ["abc123"]

    @pytest.mark.asyncio
    async def test_joining_existing_revision_allowed_when_full(self):
        self.coordinator = self.make_coordinator(max_in_flight=1)
        self.counter.gate = asyncio.Event()

        first = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        second = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        await _wait_until(lambda: _waiters(self.coordinator, "abc123") == 2)
        self.counter.gate.set()
        results = await asyncio.gather(first, second)

        assert {r.source for r in results} == {StatsSource.COMPUTED, StatsSource.JOINED}
        assert self.coordinator.snapshot()["compute"]["overloaded"] == 0


class TestStaleServing(_CoordinatorTest):
    """Resolver timeouts fall back to the last known revision."""

    @pytest.mark.asyncio
    async def test_serves_last_known_revision(self):
        self.resolver.last_known["octocat/hello-world"] = "old999"
        self.store.entries["old999"] = self.entry
        self.resolver.error = ResolutionTimeout("octocat/hello-world", 10.0)

        result = await self.coordinator.get_stats(HELLO_WORLD)

        assert result.source is StatsSource.STALE
        assert result.revision == "old999"
        assert result.entry == self.entry
        assert self.counter.calls == []

    @pytest.mark.asyncio
    async def test_timeout_raised_without_stored_fallback(self):
        self.resolver.last_known["octocat/hello-world"] = "old999"
        self.resolver.error = ResolutionTimeout("octocat/hello-world", 10.0)

        with pytest.raises(ResolutionTimeout):
            await self.coordinator.get_stats(HELLO_WORLD)

    @pytest.mark.asyncio
    async def test_disabled_stale_serving_raises(self):
        self.coordinator = self.make_coordinator(serve_stale_on_resolve_timeout=False)
        self.resolver.last_known["octocat/hello-world"] = "old999"
        self.store.entries["old999"] = self.entry
        self.resolver.error = ResolutionTimeout("octocat/hello-world", 10.0)

        with pytest.raises(ResolutionTimeout):
            await self.coordinator.get_stats(HELLO_WORLD)


class TestSnapshot(_CoordinatorTest):
    """Monitoring view of the coordinator."""

    @pytest.mark.asyncio
    async def test_reports_in_flight_revisions(self):
        self.counter.gate = asyncio.Event()
        request = asyncio.create_task(self.coordinator.get_stats(HELLO_WORLD))
        await _wait_until(lambda: _waiters(self.coordinator, "abc123") == 1)

        snapshot = self.coordinator.snapshot()

        assert snapshot["in_flight"]["current"] == 1
        assert snapshot["in_flight"]["limit"] == 32
        assert snapshot["in_flight"]["revisions"][0]["revision"] == "abc123"
        assert snapshot["in_flight"]["revisions"][0]["waiters"] == 1
        assert snapshot["cache"]["misses"] == 1

        self.counter.gate.set()
        await request
        assert self.coordinator.snapshot()["compute"]["total"] == 1
