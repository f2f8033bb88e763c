"""Tests for the accounts-service token issuer."""

import base64
from urllib.parse import parse_qs

import httpx
import pytest

from releasehub.config import SpotifySettings
from releasehub.domain.exceptions import ConfigurationError, TokenRefreshException
from releasehub.infrastructure.integrations.spotify_auth_client import SpotifyAuthClient
from tests.conftest import FakeClock


@pytest.fixture
def spotify_settings() -> SpotifySettings:
    return SpotifySettings(client_id="client", client_secret="secret")


def make_client(settings: SpotifySettings, clock: FakeClock, handler) -> SpotifyAuthClient:
    return SpotifyAuthClient(settings, clock, transport=httpx.MockTransport(handler))


class TestSpotifyAuthClientRefresh:
    """Test refresh token exchange."""

    async def test_refresh_posts_basic_auth_form(
        self, spotify_settings: SpotifySettings, clock: FakeClock
    ) -> None:
        """Refresh uses client Basic auth and the refresh_token grant."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "new", "expires_in": 3600})

        client = make_client(spotify_settings, clock, handler)
        credential = await client.refresh_access_token("old-refresh")
        await client.close()

        request = seen[0]
        assert str(request.url) == "https://accounts.spotify.com/api/token"
        expected = base64.b64encode(b"client:secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        form = parse_qs(request.content.decode())
        assert form == {"grant_type": ["refresh_token"], "refresh_token": ["old-refresh"]}
        assert credential.access_token == "new"
        assert credential.refresh_token == "old-refresh"
        assert credential.expires_at == clock.time() + 3600

    async def test_rotated_refresh_token_used(
        self, spotify_settings: SpotifySettings, clock: FakeClock
    ) -> None:
        """A refresh token in the response replaces the old one."""
        client = make_client(
            spotify_settings,
            clock,
            lambda r: httpx.Response(
                200, json={"access_token": "new", "refresh_token": "rotated", "expires_in": 60}
            ),
        )

        credential = await client.refresh_access_token("old-refresh")

        assert credential.refresh_token == "rotated"

    async def test_invalid_grant_requires_reauth(
        self, spotify_settings: SpotifySettings, clock: FakeClock
    ) -> None:
        client = make_client(
            spotify_settings,
            clock,
            lambda r: httpx.Response(400, json={"error": "invalid_grant", "error_description": "Refresh token revoked"}),
        )

        with pytest.raises(TokenRefreshException) as exc_info:
            await client.refresh_access_token("revoked")

        assert exc_info.value.error_code == "invalid_grant"
        assert exc_info.value.requires_reauth
        assert "Refresh token revoked" in exc_info.value.message

    async def test_unauthorized_client(
        self, spotify_settings: SpotifySettings, clock: FakeClock
    ) -> None:
        client = make_client(spotify_settings, clock, lambda r: httpx.Response(401))

        with pytest.raises(TokenRefreshException) as exc_info:
            await client.refresh_access_token("x")

        assert exc_info.value.http_status == 401

    async def test_missing_client_credentials(self, clock: FakeClock) -> None:
        """Without client id/secret we can't refresh at all."""
        client = make_client(SpotifySettings(client_id="", client_secret=""), clock, lambda r: httpx.Response(200))

        with pytest.raises(ConfigurationError):
            await client.refresh_access_token("x")

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, json={"token_type": "Bearer", "expires_in": 3600}),
            httpx.Response(200, json={"access_token": "", "expires_in": 3600}),
            httpx.Response(200, text="<html>maintenance</html>"),
        ],
        ids=["no-access-token", "blank-access-token", "not-json"],
    )
    async def test_unusable_success_body(
        self, spotify_settings: SpotifySettings, clock: FakeClock, response: httpx.Response
    ) -> None:
        """A 200 we can't read a token from is a failed refresh, not a KeyError."""
        client = make_client(spotify_settings, clock, lambda r: response)

        with pytest.raises(TokenRefreshException) as exc_info:
            await client.refresh_access_token("x")

        assert exc_info.value.error_code == "invalid_response"
