"""Spotify Web API HTTP client."""

import logging
from typing import Any, cast

import httpx

from releasehub.config import SpotifySettings
from releasehub.domain.exceptions import (
    AuthenticationError,
    ExternalServiceError,
    RateLimitExceededError,
)
from releasehub.infrastructure.integrations.retry import RetryExecutor
from releasehub.infrastructure.integrations.token_manager import TokenManager

logger = logging.getLogger(__name__)


class SpotifyClient:
    """HTTP client for Spotify Web API endpoints used by the release hub.

    Every endpoint method is a thin wrapper: build the path and params, hand it to
    _api_request(), return the parsed JSON. Chunking and paging live one layer up.
    """

    # Hey future me, this init is deceptively simple - we DON'T create the HTTP client here
    # because we need to be async-friendly. The actual client gets lazy-loaded in _get_client().
    def __init__(
        self,
        settings: SpotifySettings,
        token_manager: TokenManager,
        executor: RetryExecutor,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize Spotify client.

        Args:
            settings: Spotify configuration settings
            token_manager: Owner of the access/refresh token pair
            executor: Retry/backoff executor every request runs through
            transport: Optional httpx transport (tests plug in a MockTransport)
        """
        self.settings = settings
        self._tokens = token_manager
        self._executor = executor
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def api_base_url(self) -> str:
        return self.settings.api_base_url.rstrip("/")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout_seconds, transport=self._transport
            )
        return self._client

    # Hey, this close() is IMPORTANT - if you don't call it, you'll leak connections.
    # Use the client as an async context manager or call close() in finally blocks.
    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SpotifyClient":
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        await self.close()

    def _resolve_url(self, path_or_url: str) -> str:
        # "next" links from Spotify are already absolute
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self.api_base_url}/{path_or_url.lstrip('/')}"

    # Hey future me - this is ONE attempt as seen by the RetryExecutor. The 401 dance lives
    # in here so that a refresh+replay doesn't burn a retry attempt:
    # 1. proactive refresh if the token is about to expire
    # 2. send with the current token
    # 3. on 401: join/start the single-flight refresh, replay ONCE with the new token. The
    #    replay is a real request too, so it waits for its own rate gate slot
    # 4. still 401 or refresh failed -> AuthenticationError. That's a DomainException, so
    #    the executor does NOT retry it (retrying an unauthorized call 5 times is pointless)
    async def _send(
        self,
        method: str,
        path_or_url: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        await self._tokens.ensure_fresh()
        client = await self._get_client()
        url = self._resolve_url(path_or_url)

        credential = self._tokens.credential
        if credential is None:
            raise AuthenticationError("Not authenticated with Spotify. Please log in first.")
        sent_token = credential.access_token

        response = await client.request(
            method, url, params=params, json=json, headers=self._tokens.authorization_header()
        )

        if response.status_code == 401:
            refreshed = await self._tokens.refresh(sent_token)
            if refreshed is None:
                raise AuthenticationError(
                    "Spotify rejected the access token and it could not be refreshed. "
                    "Please log in again."
                )
            logger.debug(f"Replaying {method} {url} with refreshed token")
            await self._executor.admit()
            response = await client.request(
                method,
                url,
                params=params,
                json=json,
                headers={"Authorization": f"Bearer {refreshed.access_token}"},
            )
            if response.status_code == 401:
                raise AuthenticationError(
                    "Spotify rejected the refreshed access token. Please log in again."
                )

        response.raise_for_status()
        return response

    # Hey future me - CENTRALIZED API REQUEST! All endpoint methods go through here.
    # The executor handles rate gate + adaptive delay + retries, we only translate whatever
    # httpx error survived that into the domain taxonomy so callers never see httpx types.
    async def _api_request(
        self,
        method: str,
        path_or_url: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Make a rate-limited, retried API request and return the decoded body.

        Args:
            method: HTTP method (GET, POST, PUT...)
            path_or_url: Path relative to the API base, or an absolute "next" URL
            params: Query parameters
            json: JSON body

        Returns:
            Decoded JSON body, or None for empty bodies (e.g. follow returns 204)

        Raises:
            AuthenticationError: Token invalid and refresh impossible
            RateLimitExceededError: Rate limit could not be waited out
            NetworkError: Network failures on every attempt
            ExternalServiceError: Any other non-2xx answer
        """
        try:
            response = await self._executor.execute(
                lambda: self._send(method, path_or_url, params=params, json=json)
            )
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 401:
                raise AuthenticationError("Spotify authentication failed.") from e
            if status == 429:
                raise RateLimitExceededError("Spotify rate limit exceeded.") from e
            raise ExternalServiceError(
                f"Spotify API error {status} for {method} {e.request.url.path}",
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(
                f"Spotify request failed: {type(e).__name__}"
            ) from e

        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------ playlists

    async def get_playlist(self, playlist_id: str) -> dict[str, Any]:
        """Get playlist metadata (name, owner) without the track list."""
        return cast(
            dict[str, Any],
            await self._api_request(
                "GET", f"playlists/{playlist_id}", params={"fields": "id,name,owner(display_name,id)"}
            ),
        )

    # Hey future me - the "fields" filter keeps the payload tiny: we only need the artists
    # of each track, not the 2KB of album/market junk per item.
    async def get_playlist_tracks(
        self, playlist_id: str, limit: int = 100, offset: int = 0
    ) -> dict[str, Any]:
        """Get one page of a playlist's tracks (artists only)."""
        return cast(
            dict[str, Any],
            await self._api_request(
                "GET",
                f"playlists/{playlist_id}/tracks",
                params={
                    "limit": limit,
                    "offset": offset,
                    "fields": "items(track(artists(id,name,external_urls))),next",
                },
            ),
        )

    async def create_playlist(
        self, user_id: str, name: str, description: str, public: bool = False
    ) -> dict[str, Any]:
        """Create an empty playlist for the given user."""
        return cast(
            dict[str, Any],
            await self._api_request(
                "POST",
                f"users/{user_id}/playlists",
                json={"name": name, "description": description, "public": public},
            ),
        )

    async def add_tracks_to_playlist(self, playlist_id: str, uris: list[str]) -> None:
        """Add tracks to a playlist (max 100 URIs per call)."""
        if not uris:
            return
        await self._api_request(
            "POST", f"playlists/{playlist_id}/tracks", json={"uris": uris[:100]}
        )

    # ------------------------------------------------------------------ user / follows

    async def get_current_user(self) -> dict[str, Any]:
        """Get the profile of the logged-in user."""
        return cast(dict[str, Any], await self._api_request("GET", "me"))

    async def get_followed_artists(
        self, limit: int = 50, after: str | None = None
    ) -> dict[str, Any]:
        """Get one cursor page of followed artists.

        Returns:
            The "artists" object: {"items": [...], "next": ..., "cursors": {"after": ...}}
        """
        params: dict[str, Any] = {"type": "artist", "limit": min(limit, 50)}
        if after:
            params["after"] = after
        data = await self._api_request("GET", "me/following", params=params)
        return cast(dict[str, Any], (data or {}).get("artists", {}))

    async def check_if_following_artists(self, artist_ids: list[str]) -> list[bool]:
        """Check follow status (max 50 IDs), booleans in input order."""
        if not artist_ids:
            return []
        data = await self._api_request(
            "GET",
            "me/following/contains",
            params={"type": "artist", "ids": ",".join(artist_ids[:50])},
        )
        return [bool(flag) for flag in (data or [])]

    async def follow_artists(self, artist_ids: list[str]) -> None:
        """Follow artists (the follow endpoint takes up to 50, callers send 20)."""
        if not artist_ids:
            return
        await self._api_request(
            "PUT",
            "me/following",
            params={"type": "artist", "ids": ",".join(artist_ids[:50])},
        )

    # ------------------------------------------------------------------ artists

    async def get_several_artists(self, artist_ids: list[str]) -> list[dict[str, Any]]:
        """Get details for up to 50 artists. Unknown IDs come back as null and are dropped."""
        if not artist_ids:
            return []
        data = await self._api_request(
            "GET", "artists", params={"ids": ",".join(artist_ids[:50])}
        )
        return [a for a in (data or {}).get("artists", []) if a]

    async def get_related_artists(self, artist_id: str) -> list[dict[str, Any]]:
        """Get artists Spotify considers related to the given one."""
        data = await self._api_request("GET", f"artists/{artist_id}/related-artists")
        return cast(list[dict[str, Any]], (data or {}).get("artists", []))

    async def get_artist_albums_page(
        self,
        artist_id: str,
        include_groups: str,
        limit: int = 20,
        offset: int = 0,
        market: str | None = None,
    ) -> dict[str, Any]:
        """Get one offset page of an artist's albums of the given group(s)."""
        params: dict[str, Any] = {
            "include_groups": include_groups,
            "limit": min(limit, 50),
            "offset": offset,
        }
        if market:
            params["market"] = market
        return cast(
            dict[str, Any],
            await self._api_request("GET", f"artists/{artist_id}/albums", params=params),
        )

    # ------------------------------------------------------------------ albums / tracks

    async def get_several_albums(self, album_ids: list[str]) -> list[dict[str, Any]]:
        """Get up to 20 full albums, each with the first page of its tracks embedded."""
        if not album_ids:
            return []
        data = await self._api_request(
            "GET", "albums", params={"ids": ",".join(album_ids[:20])}
        )
        return [a for a in (data or {}).get("albums", []) if a]

    async def get_album_tracks(
        self, album_id: str, limit: int = 50, offset: int = 0
    ) -> dict[str, Any]:
        """Get one offset page of an album's tracks."""
        return cast(
            dict[str, Any],
            await self._api_request(
                "GET",
                f"albums/{album_id}/tracks",
                params={"limit": min(limit, 50), "offset": offset},
            ),
        )

    async def get_several_tracks(self, track_ids: list[str]) -> list[dict[str, Any]]:
        """Get up to 50 tracks. Unknown IDs come back as null and are dropped."""
        if not track_ids:
            return []
        data = await self._api_request(
            "GET", "tracks", params={"ids": ",".join(track_ids[:50])}
        )
        return [t for t in (data or {}).get("tracks", []) if t]

    async def get_next_page(self, next_url: str) -> dict[str, Any]:
        """Follow an absolute "next" link from a previous page."""
        return cast(dict[str, Any], await self._api_request("GET", next_url))


__all__ = ["SpotifyClient"]
