"""Two-tier (local + durable) read-through cache for upstream weather calls."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from skycast.cache.durable_store import DurableStore


logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 60_000

FetchFn = Callable[[], Awaitable[Any]]
Clock = Callable[[], int]


def wall_clock_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class CacheEntry:
    """A value in the local tier and when it was stored (epoch ms)."""
    value: Any
    stored_at: int


class CacheTierManager:
    """
    Read-through cache with a process-local tier in front of a durable tier.

    Reads check the local tier, then the durable tier, then call the
    supplied fetch function. A durable entry is only accepted if it has
    not expired in the store AND its ``cached_at`` age is still under the
    TTL; the durable tier may keep entries longer than the freshness
    window while the local check enforces freshness.

    Durable-tier failures are logged and never fail a ``get``. Fetch
    failures propagate unchanged and leave both tiers untouched.

    Concurrent misses for the same key each call their fetch function
    unless ``coalesce_in_flight`` is enabled, in which case they share
    one pending call.
    """

    def __init__(
        self,
        durable_store: Optional[DurableStore] = None,
        ttl_ms: int = DEFAULT_TTL_MS,
        clock: Optional[Clock] = None,
        coalesce_in_flight: bool = False
    ):
        """
        Initialize cache tier manager.

        Args:
            durable_store: Shared durable tier (None for local-only caching)
            ttl_ms: Default freshness window in milliseconds
            clock: Zero-argument callable returning epoch milliseconds
            coalesce_in_flight: Share one fetch between concurrent misses of a key
        """
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got: {ttl_ms}")

        self.durable_store = durable_store
        self.ttl_ms = ttl_ms
        self.clock = clock or wall_clock_ms
        self.coalesce_in_flight = coalesce_in_flight

        self._local: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}

    async def get(self, key: str, fetch_fn: FetchFn, ttl_ms: Optional[int] = None) -> Any:
        """
        Return a fresh value for ``key``, fetching it on a full miss.

        Args:
            key: Cache key (non-empty string)
            fetch_fn: Zero-argument coroutine function producing the value
            ttl_ms: Freshness window override in milliseconds

        Returns:
            The cached or freshly fetched value

        Raises:
            ValueError: If ``key`` is empty
            Exception: Whatever ``fetch_fn`` raises, unchanged
        """
        if not isinstance(key, str) or not key:
            raise ValueError(f"Cache key must be a non-empty string, got: {key!r}")
        ttl_ms = self.ttl_ms if ttl_ms is None else ttl_ms

        now = self.clock()
        entry = self._local.get(key)
        if entry is not None and now - entry.stored_at < ttl_ms:
            logger.debug(f"Local cache hit for {key!r} (age: {now - entry.stored_at}ms)")
            return entry.value

        record = await self._read_durable(key, now)
        if record is not None:
            age = now - record.cached_at
            if age < ttl_ms:
                logger.debug(f"Durable cache hit for {key!r} (age: {age}ms)")
                self._local[key] = CacheEntry(value=record.value, stored_at=record.cached_at)
                return record.value
            logger.debug(f"Durable entry for {key!r} too old for local TTL (age: {age}ms >= {ttl_ms}ms)")

        if not self.coalesce_in_flight:
            return await self._fetch_and_store(key, fetch_fn, ttl_ms)

        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug(f"Joining in-flight fetch for {key!r}")
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._fetch_and_store(key, fetch_fn, ttl_ms))
        self._in_flight[key] = task
        task.add_done_callback(lambda t: self._settle_in_flight(key, t))
        return await asyncio.shield(task)

    def _settle_in_flight(self, key: str, task: asyncio.Future) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Mark the outcome retrieved; every waiter may have been cancelled
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"In-flight fetch for {key!r} failed: {type(task.exception()).__name__}")

    async def _fetch_and_store(self, key: str, fetch_fn: FetchFn, ttl_ms: int) -> Any:
        logger.info(f"Cache miss for {key!r}, fetching from upstream")
        value = await fetch_fn()

        now = self.clock()
        self._local[key] = CacheEntry(value=value, stored_at=now)
        await self._write_durable(key, value, now, now + ttl_ms)
        return value

    async def _read_durable(self, key: str, now: int):
        if self.durable_store is None:
            return None
        try:
            return await self.durable_store.read(key, now)
        except Exception as e:
            logger.warning(f"Durable cache read failed for {key!r}, treating as miss: {type(e).__name__}: {e}")
            return None

    async def _write_durable(self, key: str, value: Any, cached_at: int, expires_at: int) -> None:
        if self.durable_store is None:
            return
        try:
            await self.durable_store.upsert(key, value, cached_at, expires_at)
        except Exception as e:
            logger.warning(f"Durable cache write failed for {key!r}: {type(e).__name__}: {e}")

    def invalidate(self, key: str) -> None:
        """Drop the local entry for ``key``. Durable entries expire on their own."""
        self._local.pop(key, None)

    def clear_local(self) -> None:
        """Empty the local tier."""
        self._local.clear()
        logger.info("Cleared local weather cache")

    def __len__(self) -> int:
        return len(self._local)
