"""Caching layer."""

from releasehub.application.cache.base_cache import BaseCache, CacheEntry, InMemoryCache
from releasehub.application.cache.spotify_cache import SpotifyCache

__all__ = ["BaseCache", "CacheEntry", "InMemoryCache", "SpotifyCache"]
