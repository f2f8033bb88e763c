"""Configuration module for ReleaseHub."""

from .settings import (
    BatchSettings,
    CacheSettings,
    RateLimitSettings,
    Settings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "BatchSettings",
    "CacheSettings",
    "RateLimitSettings",
    "Settings",
    "SpotifySettings",
    "get_settings",
]
