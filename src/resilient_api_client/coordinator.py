"""Single-flight request coordination with a TTL response cache.

Usage example:
    from resilient_api_client.coordinator import RequestCoordinator

    coordinator = RequestCoordinator(ttl_seconds=300)
    response = await coordinator.execute(lambda: transport.send(spec), "GET", "/user/dashboard")
    coordinator.invalidate("/user/")

All bookkeeping happens on the event loop thread. There is no suspension point
between looking up the pending map and registering a new entry, so concurrent
identical calls always collapse onto the first one without locks.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

from .observability import get_logger

logger = get_logger("resilient_api_client.coordinator")

DEFAULT_CACHE_TTL_SECONDS = 300.0


@dataclass(frozen=True)
class CacheEntry:
    """A cached successful GET response."""

    key: str
    payload: object
    stored_at: float


def _stringify_keys(value: object) -> object:
    if isinstance(value, Mapping):
        return {str(key): _stringify_keys(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_stringify_keys(item) for item in value]
    return value


def _serialize(value: object, *, canonical: bool) -> str:
    if value is None:
        return ""
    if canonical:
        # sort_keys cannot order mixed key types such as 1 and "b".
        value = _stringify_keys(value)
    return json.dumps(value, separators=(",", ":"), sort_keys=canonical, default=str)


def _consume_outcome(task: asyncio.Task[Any]) -> None:
    # Every waiter may have been cancelled; retrieve the exception so it is
    # not reported as never retrieved.
    if not task.cancelled():
        task.exception()


class RequestCoordinator:
    """Deduplicates in-flight requests and caches fresh GET responses.

    Args:
        ttl_seconds: Maximum age of a cache entry before it is treated as absent.
        clock: Monotonic clock used for cache ages.
        canonical_keys: Sort mapping keys when building request keys, so that
            logically identical params in a different order share an entry.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        canonical_keys: bool = False,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self.canonical_keys = canonical_keys
        self._pending: dict[str, asyncio.Task[Any]] = {}
        self._cache: dict[str, CacheEntry] = {}
        self._generation = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def request_key(
        self,
        method: str,
        url: str,
        params: object = None,
        data: object = None,
    ) -> str:
        """Build the dedup/cache key `METHOD:url:params:data`."""
        params_str = _serialize(params, canonical=self.canonical_keys)
        data_str = _serialize(data, canonical=self.canonical_keys)
        return f"{method.upper()}:{url}:{params_str}:{data_str}"

    def cached(self, key: str) -> CacheEntry | None:
        """Return a fresh cache entry, evicting it if stale."""
        entry = self._cache.get(key)
        if entry is None:
            return None
        if self.clock() - entry.stored_at < self.ttl_seconds:
            return entry
        del self._cache[key]
        logger.debug("Evicted stale cache entry %s", key)
        return None

    async def execute[ResultT](
        self,
        op: Callable[[], Awaitable[ResultT]],
        method: str,
        url: str,
        *,
        params: object = None,
        data: object = None,
        skip_cache: bool = False,
    ) -> ResultT:
        """Run `op` at most once per key among concurrent identical calls.

        Fresh cached GET responses are returned without invoking `op`. Errors
        propagate unchanged to every waiter and are never cached.
        """
        key = self.request_key(method, url, params, data)
        cacheable = method.upper() == "GET" and not skip_cache

        if cacheable:
            entry = self.cached(key)
            if entry is not None:
                logger.debug("Cache hit %s", key)
                return cast(ResultT, entry.payload)

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._dispatch(key, op, cacheable, self._generation))
            task.add_done_callback(_consume_outcome)
            self._pending[key] = task
        else:
            logger.debug("Joined in-flight request %s", key)

        # Shielded so that a cancelled caller does not cancel the shared work.
        return cast(ResultT, await asyncio.shield(task))

    async def _dispatch[ResultT](
        self,
        key: str,
        op: Callable[[], Awaitable[ResultT]],
        cacheable: bool,
        generation: int,
    ) -> ResultT:
        try:
            result = await op()
        finally:
            if self._pending.get(key) is asyncio.current_task():
                del self._pending[key]
        # A clear() since dispatch means the session changed; drop the result.
        if cacheable and generation == self._generation:
            self._cache[key] = CacheEntry(key=key, payload=result, stored_at=self.clock())
        return result

    def invalidate(self, pattern: str) -> int:
        """Delete every cached entry whose key contains `pattern`."""
        doomed = [key for key in self._cache if pattern in key]
        for key in doomed:
            del self._cache[key]
        if doomed:
            logger.debug("Invalidated %d cache entries matching %r", len(doomed), pattern)
        return len(doomed)

    def clear(self) -> None:
        """Drop every cache entry and forget every in-flight request."""
        self._cache.clear()
        self._pending.clear()
        self._generation += 1
