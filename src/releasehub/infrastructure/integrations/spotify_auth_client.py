"""Spotify accounts-service client (token issuer)."""

import base64
import logging
from typing import Any, cast

import httpx

from releasehub.config import SpotifySettings
from releasehub.domain.dtos import Credential
from releasehub.domain.exceptions import ConfigurationError, TokenRefreshException
from releasehub.domain.ports import IClock, ITokenIssuer

logger = logging.getLogger(__name__)


class SpotifyAuthClient(ITokenIssuer):
    """Refreshes access tokens against accounts.spotify.com.

    Hey future me - the browser/redirect part of OAuth is NOT here, the desktop shell
    does that and hands us the first credential. We only keep it alive.
    """

    def __init__(
        self,
        settings: SpotifySettings,
        clock: IClock,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._clock = clock
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def token_url(self) -> str:
        return f"{self.settings.accounts_base_url.rstrip('/')}/api/token"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.request_timeout_seconds, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _basic_auth_header(self) -> str:
        if not self.settings.client_id or not self.settings.client_secret:
            raise ConfigurationError(
                "SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET must be configured "
                "to refresh access tokens."
            )
        raw = f"{self.settings.client_id}:{self.settings.client_secret}".encode()
        return f"Basic {base64.b64encode(raw).decode('ascii')}"

    # Hey future me, access tokens expire after 1 hour. Spotify MAY rotate the refresh token
    # on refresh - if the response has one we take it, otherwise we keep the old one!
    # Spotify returns 400 with {"error": "invalid_grant"} when the refresh token is revoked,
    # check that BEFORE raise_for_status so the caller gets a TokenRefreshException.
    async def refresh_access_token(self, refresh_token: str) -> Credential:
        """Refresh access token using refresh token.

        Args:
            refresh_token: Refresh token from previous authentication

        Returns:
            New credential with absolute expiry

        Raises:
            TokenRefreshException: If refresh token is invalid/revoked (requires re-auth) or
                the response carries no access token
            ConfigurationError: If client credentials are missing
            httpx.HTTPStatusError: For other HTTP errors
        """
        client = await self._get_client()

        response = await client.post(
            self.token_url,
            data={"grant_type": "refresh_token", "refresh_token": refresh_token},
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": self._basic_auth_header(),
            },
        )

        if response.status_code == 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            if isinstance(error_data, dict) and error_data.get("error") == "invalid_grant":
                description = error_data.get(
                    "error_description", "Refresh token is invalid or has been revoked"
                )
                raise TokenRefreshException(
                    message=f"Refresh token invalid: {description}. Please re-authenticate with Spotify.",
                    error_code="invalid_grant",
                    http_status=400,
                )

        if response.status_code in (401, 403):
            raise TokenRefreshException(
                message="Spotify access denied. Please re-authenticate with Spotify.",
                error_code="access_denied",
                http_status=response.status_code,
            )

        response.raise_for_status()

        # a 200 without a usable access_token is as good as a failed refresh
        try:
            token_data = cast(dict[str, Any], response.json())
            access_token = token_data["access_token"]
            expires_in = int(token_data.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise TokenRefreshException(
                message="Spotify returned an unreadable token response. Please try again.",
                error_code="invalid_response",
                http_status=response.status_code,
            ) from e
        if not access_token or not isinstance(access_token, str):
            raise TokenRefreshException(
                message="Spotify returned no access token. Please try again.",
                error_code="invalid_response",
                http_status=response.status_code,
            )

        return Credential(
            access_token=access_token,
            refresh_token=token_data.get("refresh_token") or refresh_token,
            expires_at=self._clock.time() + expires_in,
        )


__all__ = ["SpotifyAuthClient"]
