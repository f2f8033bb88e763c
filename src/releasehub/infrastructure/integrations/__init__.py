"""External integration client implementations."""

from releasehub.infrastructure.integrations.retry import RetryExecutor, RetryStats
from releasehub.infrastructure.integrations.spotify_auth_client import SpotifyAuthClient
from releasehub.infrastructure.integrations.spotify_client import SpotifyClient
from releasehub.infrastructure.integrations.token_manager import TokenManager

__all__ = [
    "RetryExecutor",
    "RetryStats",
    "SpotifyAuthClient",
    "SpotifyClient",
    "TokenManager",
]
