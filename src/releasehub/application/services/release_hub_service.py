"""Release Hub Façade - the one entry point the desktop shell talks to.

Hey future me - the shell (UI/IPC) ONLY uses this class. Each public method:
1. gets its own correlation id (all log lines of one "analyze" share it)
2. refuses to run without a credential (AuthenticationError, no network call)
3. runs inside log_operation() for started/completed/failed + duration
4. delegates to exactly one application service

Errors come out as DomainException subclasses with a message fit for the user. Partial
failures are NOT errors - they are failed_* lists in the result.

Wiring lives in create(): one clock, one rate limiter, one executor, one token manager,
one cache set. Everything injectable, NO module globals - two ReleaseHubService instances
(e.g. in tests) share nothing.
"""

import logging
import random
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx

from releasehub.application.cache import SpotifyCache
from releasehub.application.services.followed_artists_service import FollowedArtistsService
from releasehub.application.services.new_releases_service import NewReleasesService
from releasehub.application.services.playlist_analysis_service import PlaylistAnalysisService
from releasehub.application.services.playlist_service import PlaylistService
from releasehub.application.services.related_artists_service import RelatedArtistsService
from releasehub.config import Settings, get_settings
from releasehub.domain.dtos import (
    AlbumTracksResult,
    ArtistDTO,
    CreatedPlaylistDTO,
    Credential,
    FollowResult,
    PlaylistAnalysisDTO,
    ReleaseDTO,
    ScanResult,
)
from releasehub.domain.exceptions import AuthenticationError
from releasehub.domain.ports import IClock, ICredentialStore, ITokenIssuer, ProgressCallback
from releasehub.infrastructure.clock import SystemClock
from releasehub.infrastructure.integrations.retry import RetryExecutor
from releasehub.infrastructure.integrations.spotify_auth_client import SpotifyAuthClient
from releasehub.infrastructure.integrations.spotify_client import SpotifyClient
from releasehub.infrastructure.integrations.token_manager import TokenManager
from releasehub.infrastructure.observability.logger_template import log_operation
from releasehub.infrastructure.observability.logging import set_correlation_id
from releasehub.infrastructure.persistence.credential_store import FileCredentialStore
from releasehub.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class ReleaseHubService:
    """High-level Spotify operations: analyze, follow, scan, build playlists."""

    def __init__(
        self,
        settings: Settings,
        token_manager: TokenManager,
        client: SpotifyClient,
        cache: SpotifyCache,
        followed_artists: FollowedArtistsService,
        playlist_analysis: PlaylistAnalysisService,
        new_releases: NewReleasesService,
        playlists: PlaylistService,
        related_artists: RelatedArtistsService,
        closers: list[Callable[[], Awaitable[None]]] | None = None,
    ) -> None:
        self.settings = settings
        self.token_manager = token_manager
        self.client = client
        self.cache = cache
        self._followed = followed_artists
        self._analysis = playlist_analysis
        self._releases = new_releases
        self._playlists = playlists
        self._related = related_artists
        self._closers = closers or [client.close]

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        clock: IClock | None = None,
        credential_store: ICredentialStore | None = None,
        token_issuer: ITokenIssuer | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: random.Random | None = None,
    ) -> "ReleaseHubService":
        """Wire up the whole stack.

        Args:
            settings: App settings (defaults to get_settings())
            clock: Time source (defaults to SystemClock)
            credential_store: Where credentials live (defaults to the credentials file)
            token_issuer: Refresh-token exchanger (defaults to SpotifyAuthClient)
            transport: httpx transport for API and accounts calls (tests use MockTransport)
            rng: Random source for the retry jitter
        """
        settings = settings or get_settings()
        clock = clock or SystemClock()
        store = credential_store or FileCredentialStore(settings.credentials_file)

        closers: list[Callable[[], Awaitable[None]]] = []
        if token_issuer is None:
            auth_client = SpotifyAuthClient(settings.spotify, clock, transport=transport)
            closers.append(auth_client.close)
            token_issuer = auth_client

        token_manager = TokenManager(token_issuer, store, clock)
        rate_limiter = RateLimiter.for_spotify(clock, settings.rate_limit)
        executor = RetryExecutor(rate_limiter, clock, settings.rate_limit, rng=rng)
        client = SpotifyClient(settings.spotify, token_manager, executor, transport=transport)
        closers.insert(0, client.close)

        cache = SpotifyCache(clock, settings.cache)
        followed = FollowedArtistsService(client, cache, clock, settings.batch)

        return cls(
            settings=settings,
            token_manager=token_manager,
            client=client,
            cache=cache,
            followed_artists=followed,
            playlist_analysis=PlaylistAnalysisService(client, cache, followed, settings.batch),
            new_releases=NewReleasesService(
                client, followed, clock, settings.spotify, settings.batch
            ),
            playlists=PlaylistService(client, cache, settings.app_name, settings.batch),
            related_artists=RelatedArtistsService(client, cache, followed),
            closers=closers,
        )

    # =========================================================================
    # SESSION
    # =========================================================================

    @property
    def is_authenticated(self) -> bool:
        return self.token_manager.is_authenticated

    def login(self, credential: Credential) -> None:
        """Install the credential the OAuth login flow produced."""
        self.token_manager.set_credential(credential)
        logger.info("Spotify credential installed")

    async def close(self) -> None:
        """Close HTTP clients."""
        for close in self._closers:
            await close()

    async def __aenter__(self) -> "ReleaseHubService":
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        await self.close()

    @asynccontextmanager
    async def _operation(self, name: str, **context: Any) -> AsyncIterator[None]:
        set_correlation_id()
        async with log_operation(logger, name, **context):
            if not self.token_manager.is_authenticated:
                raise AuthenticationError("Not authenticated with Spotify. Please log in first.")
            yield

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def analyze_playlist(
        self, playlist_url: str, progress: ProgressCallback | None = None
    ) -> PlaylistAnalysisDTO:
        """Find the artists of a playlist the user doesn't follow yet.

        Raises:
            ValidationError: Unrecognizable playlist link/ID
            AuthenticationError: Not logged in / session could not be renewed
        """
        async with self._operation("analyze_playlist"):
            return await self._analysis.analyze(playlist_url, progress)

    async def follow_artists_bulk(
        self, artist_ids: list[str], progress: ProgressCallback | None = None
    ) -> FollowResult:
        """Follow artists in chunks; failures are reported in the result."""
        async with self._operation("follow_artists_bulk", artist_count=len(artist_ids)):
            return await self._followed.follow_artists(artist_ids, progress)

    async def scan_recent_releases(
        self,
        days_back: int,
        max_artists: int | None = None,
        progress: ProgressCallback | None = None,
    ) -> ScanResult:
        """Releases of followed artists from the last days_back days, newest first."""
        async with self._operation(
            "scan_recent_releases", days_back=days_back, max_artists=max_artists
        ):
            return await self._releases.scan_recent_releases(days_back, max_artists, progress)

    async def create_playlist_from_releases(
        self,
        name: str,
        releases: list[ReleaseDTO],
        is_public: bool = False,
        progress: ProgressCallback | None = None,
    ) -> CreatedPlaylistDTO:
        """Create a playlist containing every track of the given releases."""
        async with self._operation(
            "create_playlist_from_releases", release_count=len(releases)
        ):
            return await self._playlists.create_playlist_from_releases(
                name, releases, is_public, progress
            )

    async def create_playlist_from_tracks(
        self,
        name: str,
        track_uris: list[str],
        is_public: bool = False,
        progress: ProgressCallback | None = None,
    ) -> CreatedPlaylistDTO:
        """Create a playlist from selected tracks."""
        async with self._operation("create_playlist_from_tracks", track_count=len(track_uris)):
            return await self._playlists.create_playlist_from_tracks(
                name, track_uris, is_public, progress
            )

    async def get_tracks_from_albums(
        self, album_ids: list[str], progress: ProgressCallback | None = None
    ) -> AlbumTracksResult:
        """Full tracks (with preview URLs) of the given albums; failing albums are listed."""
        async with self._operation("get_tracks_from_albums", album_count=len(album_ids)):
            return await self._playlists.get_tracks_from_albums(album_ids, progress)

    async def get_related_artists(self, artist_ids: list[str]) -> list[ArtistDTO]:
        """Unfollowed artists related to the given seeds, most popular first."""
        async with self._operation("get_related_artists", seed_count=len(artist_ids)):
            return await self._related.get_related_artists(artist_ids)


__all__ = ["ReleaseHubService"]
