"""Tests for the in-memory TTL cache."""

from releasehub.application.cache.base_cache import CacheEntry, InMemoryCache
from tests.conftest import FakeClock


class TestCacheEntry:
    """Test entry expiry."""

    def test_expired_exactly_at_ttl(self) -> None:
        """An entry is valid while its age is below the ttl, not at it."""
        entry = CacheEntry(value="x", created_at=100.0, ttl_seconds=10)

        assert not entry.is_expired(109.999)
        assert entry.is_expired(110.0)


class TestInMemoryCache:
    """Test InMemoryCache behaviour."""

    async def test_get_set(self, clock: FakeClock) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache(clock, default_ttl_seconds=60)

        await cache.set("a", 1)

        assert await cache.get("a") == 1
        assert await cache.get("b") is None

    async def test_expiry_boundary(self, clock: FakeClock) -> None:
        """Entries vanish once their age reaches the ttl."""
        cache: InMemoryCache[str, int] = InMemoryCache(clock, default_ttl_seconds=60)
        await cache.set("a", 1)

        clock.advance(59)
        assert await cache.get("a") == 1

        clock.advance(1)
        assert await cache.get("a") is None
        assert cache.get_stats()["total_entries"] == 0

    async def test_per_entry_ttl_override(self, clock: FakeClock) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache(clock, default_ttl_seconds=60)
        await cache.set("short", 1, ttl_seconds=5)

        clock.advance(5)

        assert await cache.get("short") is None

    async def test_returned_values_are_copies(self, clock: FakeClock) -> None:
        """Mutating what get() returned must not change the cache."""
        cache: InMemoryCache[str, list[int]] = InMemoryCache(clock)
        original = [3, 1, 2]
        await cache.set("k", original)

        original.append(99)
        first = await cache.get("k")
        first.sort()

        assert await cache.get("k") == [3, 1, 2]

    async def test_get_many_skips_misses(self, clock: FakeClock) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache(clock)
        await cache.set("a", 1)
        await cache.set("c", 3)

        assert await cache.get_many(["a", "b", "c"]) == {"a": 1, "c": 3}

    async def test_delete_clear_exists(self, clock: FakeClock) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache(clock)
        await cache.set("a", 1)
        await cache.set("b", 2)

        assert await cache.delete("a") is True
        assert await cache.delete("a") is False
        assert await cache.exists("b") is True

        await cache.clear()
        assert await cache.exists("b") is False

    async def test_cleanup_expired(self, clock: FakeClock) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache(clock, default_ttl_seconds=10)
        await cache.set("old", 1)
        clock.advance(10)
        await cache.set("new", 2)

        assert await cache.cleanup_expired() == 1
        assert cache.get_stats()["active_entries"] == 1

    async def test_stats_count_hits_and_misses(self, clock: FakeClock) -> None:
        cache: InMemoryCache[str, int] = InMemoryCache(clock, name="artists")
        await cache.set("a", 1)
        await cache.get("a")
        await cache.get("zz")

        stats = cache.get_stats()

        assert stats["name"] == "artists"
        assert stats["hits"] == 1
        assert stats["misses"] == 1
