"""Application settings loaded from environment variables.

Hey future me - every knob the API layer turns lives here! Defaults are tuned for
Spotify's Web API: ~15 requests per second soft cap, Retry-After hints that we only
honour up to 30 seconds, and the per-endpoint ID ceilings Spotify enforces.

Each group reads its own env prefix, so `RATE_LIMIT_MAX_ATTEMPTS=3` or
`CACHE_PLAYLIST_ANALYSIS_TTL=60` work without touching code.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SpotifySettings(BaseSettings):
    """Spotify API endpoints and client credentials."""

    model_config = SettingsConfigDict(env_prefix="SPOTIFY_", extra="ignore")

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://127.0.0.1:8888/callback"
    api_base_url: str = "https://api.spotify.com/v1"
    accounts_base_url: str = "https://accounts.spotify.com"
    market: str = "US"
    request_timeout_seconds: float = 60.0


class RateLimitSettings(BaseSettings):
    """Admission window, adaptive delay and retry budget.

    Hey future me - max_retry_after_seconds is the "give up" line! If Spotify asks us
    to wait longer than this, we fail the whole operation with RateLimitExceededError
    instead of freezing the app for minutes.
    """

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_", extra="ignore")

    max_requests_per_interval: int = Field(default=15, ge=1)
    request_interval_seconds: float = Field(default=1.0, gt=0)
    safety_margin_seconds: float = Field(default=0.025, ge=0)
    base_delay_seconds: float = Field(default=0.2, ge=0)
    max_delay_seconds: float = Field(default=2.0, ge=0)
    jitter_ratio: float = Field(default=0.3, ge=0)
    max_attempts: int = Field(default=5, ge=1)
    default_retry_after_seconds: int = Field(default=5, ge=0)
    max_retry_after_seconds: int = Field(default=30, ge=0)


class CacheSettings(BaseSettings):
    """Time-to-live per cache kind, in seconds."""

    model_config = SettingsConfigDict(env_prefix="CACHE_", extra="ignore")

    followed_artists_ttl: int = 4 * 60 * 60
    artist_details_ttl: int = 6 * 60 * 60
    follow_status_ttl: int = 2 * 60 * 60
    playlist_analysis_ttl: int = 10 * 60
    related_artists_ttl: int = 3 * 60 * 60
    album_tracks_ttl: int = 6 * 60 * 60


class BatchSettings(BaseSettings):
    """Chunk sizes and page sizes per Spotify endpoint."""

    model_config = SettingsConfigDict(env_prefix="BATCH_", extra="ignore")

    follow_chunk_size: int = Field(default=20, ge=1, le=50)
    follow_chunk_delay_seconds: float = Field(default=2.0, ge=0)
    playlist_add_chunk_size: int = Field(default=100, ge=1, le=100)
    several_artists_chunk_size: int = Field(default=50, ge=1, le=50)
    follow_status_chunk_size: int = Field(default=50, ge=1, le=50)
    several_albums_chunk_size: int = Field(default=20, ge=1, le=20)
    track_details_chunk_size: int = Field(default=50, ge=1, le=50)
    scan_batch_size: int = Field(default=5, ge=1)
    release_pages_per_type: int = Field(default=2, ge=1)
    release_page_size: int = Field(default=20, ge=1, le=50)
    playlist_tracks_page_size: int = Field(default=100, ge=1, le=100)
    album_tracks_page_size: int = Field(default=50, ge=1, le=50)
    followed_artists_page_size: int = Field(default=50, ge=1, le=50)


class Settings(BaseSettings):
    """Top-level settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    app_name: str = "Spotify Release Hub"
    log_level: str = "INFO"
    log_json: bool = False
    credentials_file: Path = Path.home() / ".releasehub" / "credentials.json"

    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    batch: BatchSettings = Field(default_factory=BatchSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
