"""Tests for single-flight request coordination and the TTL cache."""

from __future__ import annotations

import asyncio

import pytest

from resilient_api_client.coordinator import RequestCoordinator
from tests.fakes import FakeClock


class CountingOp:
    """Awaitable factory that counts invocations and can be held open."""

    def __init__(self, result: object = None, error: Exception | None = None) -> None:
        self.calls = 0
        self.result = {"id": 1} if result is None else result
        self.error = error
        self.gate = asyncio.Event()
        self.gate.set()

    def hold(self) -> None:
        self.gate.clear()

    def release(self) -> None:
        self.gate.set()

    async def __call__(self) -> object:
        self.calls += 1
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


class TestRequestKey:
    """Tests for dedup and cache key construction."""

    def test_key_without_params_or_data(self) -> None:
        coordinator = RequestCoordinator()
        assert coordinator.request_key("get", "/api/users") == "GET:/api/users::"

    def test_key_serializes_params_and_data(self) -> None:
        coordinator = RequestCoordinator()
        key = coordinator.request_key("post", "/api/users", {"page": 1}, {"name": "Ada"})
        assert key == 'POST:/api/users:{"page":1}:{"name":"Ada"}'

    def test_key_is_insertion_order_sensitive_by_default(self) -> None:
        coordinator = RequestCoordinator()
        first = coordinator.request_key("GET", "/api/users", {"a": 1, "b": 2})
        second = coordinator.request_key("GET", "/api/users", {"b": 2, "a": 1})
        assert first != second

    def test_canonical_keys_ignore_mapping_order(self) -> None:
        coordinator = RequestCoordinator(canonical_keys=True)
        first = coordinator.request_key("GET", "/api/users", {"a": 1, "b": 2})
        second = coordinator.request_key("GET", "/api/users", {"b": 2, "a": 1})
        assert first == second

    def test_canonical_keys_accept_mixed_key_types(self) -> None:
        """Verify that int and str keys in one mapping still produce a stable key."""
        coordinator = RequestCoordinator(canonical_keys=True)
        first = coordinator.request_key("GET", "/api/users", {1: "a", "b": 2})
        second = coordinator.request_key("GET", "/api/users", {"b": 2, 1: "a"})
        assert first == second == 'GET:/api/users:{"1":"a","b":2}:'

    def test_canonical_keys_sort_nested_mappings(self) -> None:
        coordinator = RequestCoordinator(canonical_keys=True)
        first = coordinator.request_key("POST", "/api/jobs", data={"filters": [{"z": 1, 2: 0}]})
        second = coordinator.request_key("POST", "/api/jobs", data={"filters": [{2: 0, "z": 1}]})
        assert first == second


class TestSingleFlight:
    """Tests for collapsing concurrent identical requests."""

    @pytest.mark.asyncio
    async def test_concurrent_identical_calls_share_one_operation(self) -> None:
        coordinator = RequestCoordinator()
        op = CountingOp()
        op.hold()

        tasks = [
            asyncio.create_task(coordinator.execute(op, "GET", "/api/users", params={"p": 1}))
            for _ in range(5)
        ]
        await asyncio.sleep(0)
        assert coordinator.pending_count == 1

        op.release()
        results = await asyncio.gather(*tasks)

        assert op.calls == 1
        assert all(result is results[0] for result in results)
        assert coordinator.pending_count == 0

    @pytest.mark.asyncio
    async def test_two_back_to_back_calls_invoke_once(self) -> None:
        coordinator = RequestCoordinator()
        op = CountingOp()
        op.hold()

        first = asyncio.create_task(coordinator.execute(op, "GET", "/api/users"))
        second = asyncio.create_task(coordinator.execute(op, "GET", "/api/users"))
        await asyncio.sleep(0)
        op.release()

        assert await first is await second
        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_dedup_applies_to_non_get_methods(self) -> None:
        coordinator = RequestCoordinator()
        op = CountingOp()
        op.hold()

        tasks = [
            asyncio.create_task(
                coordinator.execute(op, "POST", "/api/users", data={"name": "Ada"})
            )
            for _ in range(3)
        ]
        await asyncio.sleep(0)
        op.release()
        await asyncio.gather(*tasks)

        assert op.calls == 1
        assert coordinator.cache_size == 0

    @pytest.mark.asyncio
    async def test_different_params_are_not_deduplicated(self) -> None:
        coordinator = RequestCoordinator()
        op = CountingOp()

        await asyncio.gather(
            coordinator.execute(op, "GET", "/api/users", params={"page": 1}),
            coordinator.execute(op, "GET", "/api/users", params={"page": 2}),
        )

        assert op.calls == 2

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter_and_is_not_cached(self) -> None:
        coordinator = RequestCoordinator()
        boom = ValueError("boom")
        op = CountingOp(error=boom)
        op.hold()

        tasks = [
            asyncio.create_task(coordinator.execute(op, "GET", "/api/users")) for _ in range(3)
        ]
        await asyncio.sleep(0)
        op.release()
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(outcome is boom for outcome in outcomes)
        assert op.calls == 1
        assert coordinator.pending_count == 0
        assert coordinator.cache_size == 0

    @pytest.mark.asyncio
    async def test_call_after_failure_dispatches_again(self) -> None:
        coordinator = RequestCoordinator()
        op = CountingOp(error=ValueError("boom"))

        with pytest.raises(ValueError):
            await coordinator.execute(op, "GET", "/api/users")
        op.error = None
        result = await coordinator.execute(op, "GET", "/api/users")

        assert result == {"id": 1}
        assert op.calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_operation(self) -> None:
        """Verify that the other waiters still receive the result."""
        coordinator = RequestCoordinator()
        op = CountingOp()
        op.hold()

        abandoned = asyncio.create_task(coordinator.execute(op, "GET", "/api/users"))
        interested = asyncio.create_task(coordinator.execute(op, "GET", "/api/users"))
        await asyncio.sleep(0)
        abandoned.cancel()
        await asyncio.sleep(0)
        op.release()

        assert await interested == {"id": 1}
        assert abandoned.cancelled()
        assert op.calls == 1
        assert coordinator.pending_count == 0


class TestResponseCache:
    """Tests for the TTL cache of GET responses."""

    @pytest.mark.asyncio
    async def test_fresh_entry_is_served_without_invoking_operation(self) -> None:
        clock = FakeClock()
        coordinator = RequestCoordinator(ttl_seconds=300, clock=clock)
        op = CountingOp()

        first = await coordinator.execute(op, "GET", "/api/users")
        clock.advance(299.9)
        second = await coordinator.execute(op, "GET", "/api/users")

        assert op.calls == 1
        assert second is first

    @pytest.mark.asyncio
    async def test_entry_at_ttl_is_evicted_and_refetched(self) -> None:
        """Verify that an entry exactly ttl_seconds old counts as stale."""
        clock = FakeClock()
        coordinator = RequestCoordinator(ttl_seconds=300, clock=clock)
        op = CountingOp()

        await coordinator.execute(op, "GET", "/api/users")
        clock.advance(300)
        assert coordinator.cached("GET:/api/users::") is None
        assert coordinator.cache_size == 0

        await coordinator.execute(op, "GET", "/api/users")
        assert op.calls == 2
        assert coordinator.cache_size == 1

    @pytest.mark.asyncio
    async def test_skip_cache_neither_reads_nor_writes(self) -> None:
        coordinator = RequestCoordinator()
        op = CountingOp()

        await coordinator.execute(op, "GET", "/api/users", skip_cache=True)
        await coordinator.execute(op, "GET", "/api/users", skip_cache=True)

        assert op.calls == 2
        assert coordinator.cache_size == 0

    @pytest.mark.asyncio
    async def test_lowercase_get_is_cached(self) -> None:
        coordinator = RequestCoordinator()
        op = CountingOp()

        await coordinator.execute(op, "get", "/api/users")
        await coordinator.execute(op, "GET", "/api/users")

        assert op.calls == 1

    @pytest.mark.asyncio
    async def test_invalidate_removes_only_matching_keys(self) -> None:
        coordinator = RequestCoordinator()
        op = CountingOp()
        await coordinator.execute(op, "GET", "/api/users")
        await coordinator.execute(op, "GET", "/api/users/1")
        await coordinator.execute(op, "GET", "/api/posts")

        removed = coordinator.invalidate("/api/users")

        assert removed == 2
        assert coordinator.cache_size == 1
        assert coordinator.cached("GET:/api/posts::") is not None

    @pytest.mark.asyncio
    async def test_clear_empties_cache_and_pending(self) -> None:
        coordinator = RequestCoordinator()
        op = CountingOp()
        await coordinator.execute(op, "GET", "/api/users")

        op.hold()
        in_flight = asyncio.create_task(coordinator.execute(op, "GET", "/api/posts"))
        await asyncio.sleep(0)
        assert coordinator.pending_count == 1

        coordinator.clear()
        assert coordinator.pending_count == 0
        assert coordinator.cache_size == 0

        op.release()
        await in_flight
        # Results that settle after a clear are not cached.
        assert coordinator.cache_size == 0
