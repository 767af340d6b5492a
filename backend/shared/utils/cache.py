"""
In-memory TTL caches with de-duplicated refresh.

Entries are immutable (value, inserted_at) pairs replaced wholesale on every
successful refresh. An entry is valid while ``now - inserted_at <= ttl``.
Misses never raise; only the loader passed to ``get_or_refresh`` can.
With ``max_entries`` set, a full cache drops expired entries on insert and
then the oldest ones, so stale fallbacks (``peek``) are best-effort.

Single-writer, multi-reader: every read and write is synchronous on one
event loop, so no locking is done here. Do not share an instance across threads.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Hashable, Optional, TypeVar

from shared.utils.inflight import InFlightRegistry
from shared.utils.logging import get_logger
from shared.utils.metrics import CACHE_EVICTIONS, CACHE_LOOKUPS, CACHE_REFRESHES

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[V]):
    value: V
    inserted_at: float


class TTLCache(Generic[K, V]):
    """
    Keyed cache with an independent expiry per key.

    Usage:
        cache = TTLCache[str, list[FixtureRecord]](ttl_s=60, name="fixtures")
        fixtures = await cache.get_or_refresh("2024-05-01", lambda: client.fixtures_by_date(day))
    """

    def __init__(
        self,
        ttl_s: float,
        *,
        name: str = "cache",
        clock: Clock = time.monotonic,
        max_entries: Optional[int] = None,
    ) -> None:
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._ttl = ttl_s
        self._name = name
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict[K, CacheEntry[V]] = {}
        self._inflight: InFlightRegistry[K, V] = InFlightRegistry(name=f"cache:{name}")

    @property
    def ttl_s(self) -> float:
        return self._ttl

    @property
    def name(self) -> str:
        return self._name

    def __len__(self) -> int:
        return len(self._entries)

    def _fresh(self, entry: CacheEntry[V]) -> bool:
        return self._clock() - entry.inserted_at <= self._ttl

    def get(self, key: K) -> Optional[V]:
        """Return the value if present and not expired, else None."""
        entry = self._entries.get(key)
        if entry is None or not self._fresh(entry):
            CACHE_LOOKUPS.labels(cache=self._name, result="miss").inc()
            return None
        CACHE_LOOKUPS.labels(cache=self._name, result="hit").inc()
        return entry.value

    def peek(self, key: K) -> Optional[V]:
        """Return the last stored value regardless of expiry."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def set(self, key: K, value: V) -> None:
        # Re-insert so dict order stays oldest-first.
        self._entries.pop(key, None)
        if self._max_entries is not None and len(self._entries) >= self._max_entries:
            self._make_room()
        self._entries[key] = CacheEntry(value=value, inserted_at=self._clock())

    def purge_expired(self) -> int:
        """Drop every expired entry; returns how many went."""
        expired = [key for key, entry in self._entries.items() if not self._fresh(entry)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def _make_room(self) -> None:
        evicted = self.purge_expired()
        while len(self._entries) >= self._max_entries:
            del self._entries[next(iter(self._entries))]
            evicted += 1
        CACHE_EVICTIONS.labels(cache=self._name).inc(evicted)

    def is_valid(self, key: K) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._fresh(entry)

    def is_refreshing(self, key: K) -> bool:
        return key in self._inflight

    def delete(self, key: K) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        valid = sum(1 for entry in self._entries.values() if self._fresh(entry))
        return {
            "name": self._name,
            "ttl_s": self._ttl,
            "max_entries": self._max_entries,
            "entries": len(self._entries),
            "valid": valid,
            "refreshing": len(self._inflight),
        }

    async def get_or_refresh(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        """
        Return the cached value, or run ``loader`` once for all concurrent misses.

        A failed refresh leaves the previous entry untouched and propagates
        the loader's exception to every waiter.
        """
        entry = self._entries.get(key)
        if entry is not None and self._fresh(entry):
            CACHE_LOOKUPS.labels(cache=self._name, result="hit").inc()
            return entry.value
        CACHE_LOOKUPS.labels(cache=self._name, result="miss").inc()
        return await self._inflight.run(key, lambda: self._refresh(key, loader))

    async def refresh(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        """Reload ``key`` even if still valid, joining a refresh already in flight."""
        return await self._inflight.run(key, lambda: self._refresh(key, loader))

    async def _refresh(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        try:
            value = await loader()
        except Exception as exc:
            CACHE_REFRESHES.labels(cache=self._name, outcome="error").inc()
            logger.warning("cache_refresh_failed", cache=self._name, key=str(key), error=str(exc))
            raise
        self.set(key, value)
        CACHE_REFRESHES.labels(cache=self._name, outcome="ok").inc()
        return value


class SingleSlotCache(Generic[V]):
    """One value with one expiry, e.g. "every candidate scraped from this page"."""

    _SLOT = "__slot__"

    def __init__(self, ttl_s: float, *, name: str = "slot", clock: Clock = time.monotonic) -> None:
        self._cache: TTLCache[str, V] = TTLCache(ttl_s, name=name, clock=clock)

    @property
    def ttl_s(self) -> float:
        return self._cache.ttl_s

    def get(self) -> Optional[V]:
        return self._cache.get(self._SLOT)

    def peek(self) -> Optional[V]:
        return self._cache.peek(self._SLOT)

    def set(self, value: V) -> None:
        self._cache.set(self._SLOT, value)

    def is_valid(self) -> bool:
        return self._cache.is_valid(self._SLOT)

    def is_refreshing(self) -> bool:
        return self._cache.is_refreshing(self._SLOT)

    def invalidate(self) -> None:
        self._cache.delete(self._SLOT)

    async def get_or_refresh(self, loader: Callable[[], Awaitable[V]]) -> V:
        return await self._cache.get_or_refresh(self._SLOT, loader)

    async def refresh(self, loader: Callable[[], Awaitable[V]]) -> V:
        return await self._cache.refresh(self._SLOT, loader)
