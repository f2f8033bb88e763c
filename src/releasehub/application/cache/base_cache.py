"""Base cache interface and in-memory implementation."""

import asyncio
import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, TypeVar

from releasehub.domain.ports import IClock

K = TypeVar("K")  # Key type
V = TypeVar("V")  # Value type


@dataclass
class CacheEntry[V]:
    """Cache entry with value and write timestamp (monotonic seconds)."""

    value: V
    created_at: float
    ttl_seconds: float

    # Hey future me, "valid iff now - written < ttl" - so an entry is expired the very instant
    # its age REACHES the ttl, not one tick later. Monotonic clock, so NTP jumps don't matter.
    def is_expired(self, now: float) -> bool:
        """Check if cache entry is expired."""
        return now - self.created_at >= self.ttl_seconds


class BaseCache[K, V](ABC):
    """Base cache interface for all cache implementations."""

    @abstractmethod
    async def get(self, key: K) -> V | None:
        """Get value from cache.

        Returns:
            Cached value if found and not expired, None otherwise
        """
        pass

    @abstractmethod
    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        """Set value in cache (ttl_seconds overrides the cache's default TTL)."""
        pass

    @abstractmethod
    async def delete(self, key: K) -> bool:
        """Delete value from cache.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all entries from cache."""
        pass

    @abstractmethod
    async def exists(self, key: K) -> bool:
        """Check if key exists in cache and is not expired."""
        pass


class InMemoryCache(BaseCache[K, V]):
    """In-memory cache with one default TTL per instance (one instance per cache kind).

    Values are deep-copied on the way IN and on the way OUT. A caller sorting or mutating
    a returned list can never corrupt what the next caller reads.
    """

    # Listen up future me, the _lock makes each write a single atomic replace of one key's
    # entry - a reader never sees a half-written CacheEntry.
    def __init__(self, clock: IClock, default_ttl_seconds: float = 3600, name: str = "cache") -> None:
        self._clock = clock
        self._cache: dict[K, CacheEntry[V]] = {}
        self._lock = asyncio.Lock()
        self.default_ttl_seconds = default_ttl_seconds
        self.name = name
        self.hits = 0
        self.misses = 0

    # Yo, get() evicts expired entries on read - it has side effects despite the name.
    # None means "not found" OR "expired", the caller can't (and needn't) tell the difference.
    async def get(self, key: K) -> V | None:
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self.misses += 1
                return None

            if entry.is_expired(self._clock.monotonic()):
                del self._cache[key]
                self.misses += 1
                return None

            self.hits += 1
            return copy.deepcopy(entry.value)

    async def get_many(self, keys: list[K]) -> dict[K, V]:
        """Get all non-expired values for the given keys (missing keys are absent)."""
        found: dict[K, V] = {}
        for key in keys:
            value = await self.get(key)
            if value is not None:
                found[key] = value
        return found

    async def set(self, key: K, value: V, ttl_seconds: float | None = None) -> None:
        entry = CacheEntry(
            value=copy.deepcopy(value),
            created_at=self._clock.monotonic(),
            ttl_seconds=self.default_ttl_seconds if ttl_seconds is None else ttl_seconds,
        )
        async with self._lock:
            self._cache[key] = entry

    async def delete(self, key: K) -> bool:
        async with self._lock:
            if key in self._cache:
                del self._cache[key]
                return True
            return False

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()

    async def exists(self, key: K) -> bool:
        value = await self.get(key)
        return value is not None

    async def cleanup_expired(self) -> int:
        """Remove expired entries from cache.

        Returns:
            Number of entries removed
        """
        async with self._lock:
            now = self._clock.monotonic()
            expired_keys = [key for key, entry in self._cache.items() if entry.is_expired(now)]
            for key in expired_keys:
                del self._cache[key]
            return len(expired_keys)

    # Not locked - stats are for debugging, a slightly stale count is fine
    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        now = self._clock.monotonic()
        total_entries = len(self._cache)
        expired_entries = sum(1 for entry in self._cache.values() if entry.is_expired(now))

        return {
            "name": self.name,
            "total_entries": total_entries,
            "active_entries": total_entries - expired_entries,
            "expired_entries": expired_entries,
            "hits": self.hits,
            "misses": self.misses,
        }


__all__ = ["BaseCache", "CacheEntry", "InMemoryCache"]
