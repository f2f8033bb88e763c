"""Shared fixtures: fake clock, fake Spotify API, wired-up release hub."""

import asyncio
import json
import random
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from releasehub.application.services.release_hub_service import ReleaseHubService
from releasehub.config import Settings
from releasehub.domain.dtos import Credential
from releasehub.domain.exceptions import TokenRefreshException
from releasehub.domain.ports import IClock, ITokenIssuer
from releasehub.infrastructure.persistence.credential_store import InMemoryCredentialStore

START_TIME = 1_700_000_000.0  # 2023-11-14T22:13:20Z


class FakeClock(IClock):
    """Clock whose sleeps return immediately but advance time and get recorded."""

    def __init__(self, start_time: float = START_TIME) -> None:
        self._wall = start_time
        self._mono = 0.0
        self.sleeps: list[float] = []

    def time(self) -> float:
        return self._wall

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        self._wall += seconds
        self._mono += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self.advance(seconds)
        # still yield so concurrent tasks interleave like they would for real
        await asyncio.sleep(0)


class ZeroJitter(random.Random):
    """Random source that always returns 0.0 so adaptive delays are exact."""

    def random(self) -> float:
        return 0.0


class FakeTokenIssuer(ITokenIssuer):
    """Token issuer that hands out access-token-1, access-token-2, ..."""

    def __init__(self, clock: IClock, fail: bool = False) -> None:
        self._clock = clock
        self.fail = fail
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def refresh_access_token(self, refresh_token: str) -> Credential:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail:
            raise TokenRefreshException(error_code="invalid_grant", http_status=400)
        return Credential(
            access_token=f"access-token-{self.calls}",
            refresh_token=refresh_token,
            expires_at=self._clock.time() + 3600,
        )


Handler = Callable[[httpx.Request], httpx.Response]


class FakeSpotifyApi:
    """Routes requests by (method, path) for httpx.MockTransport and records them.

    Paths are given without the /v1 prefix, e.g. api.add("GET", "/me", {"id": "u1"}).
    A route is either a JSON payload or a handler taking the request.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], Handler] = {}

    def add(self, method: str, path: str, payload: Any = None, status: int = 200) -> None:
        if callable(payload):
            self._routes[(method, path)] = payload
            return

        def respond(request: httpx.Request) -> httpx.Response:
            if payload is None:
                return httpx.Response(status)
            return httpx.Response(status, json=payload)

        self._routes[(method, path)] = respond

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1")
        handler = self._routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"error": {"status": 404, "message": "no route"}})
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and r.url.path.removeprefix("/v1") == path
        ]

    @staticmethod
    def json_body(request: httpx.Request) -> Any:
        return json.loads(request.content)


def artist_json(artist_id: str, name: str | None = None, popularity: int | None = None) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": artist_id,
        "name": name or artist_id.upper(),
        "external_urls": {"spotify": f"https://open.spotify.com/artist/{artist_id}"},
    }
    if popularity is not None:
        data["popularity"] = popularity
        data["images"] = [{"url": f"https://i.scdn.co/image/{artist_id}", "height": 640, "width": 640}]
        data["genres"] = []
    return data


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credential(clock: FakeClock) -> Credential:
    return Credential(
        access_token="access-token-0",
        refresh_token="refresh-token",
        expires_at=clock.time() + 3600,
    )


@pytest.fixture
def credential_store(credential: Credential) -> InMemoryCredentialStore:
    return InMemoryCredentialStore(credential)


@pytest.fixture
def token_issuer(clock: FakeClock) -> FakeTokenIssuer:
    return FakeTokenIssuer(clock)


@pytest.fixture
def fake_api() -> FakeSpotifyApi:
    return FakeSpotifyApi()


@pytest.fixture
def settings() -> Settings:
    return Settings(app_name="Release Hub Test")


@pytest.fixture
async def hub(
    settings: Settings,
    clock: FakeClock,
    credential_store: InMemoryCredentialStore,
    token_issuer: FakeTokenIssuer,
    fake_api: FakeSpotifyApi,
):
    service = ReleaseHubService.create(
        settings=settings,
        clock=clock,
        credential_store=credential_store,
        token_issuer=token_issuer,
        transport=fake_api.transport,
        rng=ZeroJitter(),
    )
    yield service
    await service.close()
