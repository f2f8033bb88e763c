"""End-to-end tests of the release hub against a fake Spotify Web API.

Everything below the Façade is real (rate gate, retry executor, token manager, caches,
services); only the HTTP transport and the clock are fakes.
"""

from typing import Any

import httpx
import pytest

from releasehub.application.services.release_hub_service import ReleaseHubService
from releasehub.domain.dtos import ProgressUpdate, ReleaseDTO
from releasehub.domain.exceptions import AuthenticationError, ValidationError
from releasehub.infrastructure.persistence.credential_store import InMemoryCredentialStore
from tests.conftest import FakeClock, FakeSpotifyApi, FakeTokenIssuer, ZeroJitter, artist_json

pytestmark = pytest.mark.integration

PLAYLIST_URL = "https://open.spotify.com/playlist/pl1?si=share"


def ids_param(request: httpx.Request) -> list[str]:
    return request.url.params["ids"].split(",")


def follow_contains(followed: set[str]):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[i in followed for i in ids_param(request)])

    return handler


def several_artists(catalog: dict[str, dict[str, Any]]):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"artists": [catalog.get(i) for i in ids_param(request)]})

    return handler


def track_item(*artist_ids: str) -> dict[str, Any]:
    return {"track": {"artists": [{"id": a, "name": a.upper()} for a in artist_ids]}}


def album_json(album_id: str, date: str, precision: str = "day", *artists: str) -> dict[str, Any]:
    return {
        "id": album_id,
        "name": f"Album {album_id}",
        "album_type": "album",
        "release_date": date,
        "release_date_precision": precision,
        "total_tracks": 1,
        "artists": [{"id": a, "name": a.upper()} for a in artists],
    }


def release(release_id: str) -> ReleaseDTO:
    return ReleaseDTO(
        id=release_id,
        name=release_id,
        album_type="album",
        release_date="2023-11-13",
        release_date_precision="day",
        artist_name="A",
    )


class TestAnalyzePlaylist:
    """Test playlist analysis."""

    @pytest.fixture
    def playlist_api(self, fake_api: FakeSpotifyApi) -> FakeSpotifyApi:
        fake_api.add(
            "GET",
            "/playlists/pl1",
            {"id": "pl1", "name": "Road Trip", "owner": {"id": "u9", "display_name": "Sam"}},
        )

        def tracks(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("offset") == "100":
                return httpx.Response(200, json={"items": [track_item("a3", "a1"), track_item("a4")], "next": None})
            return httpx.Response(
                200,
                json={
                    "items": [track_item("a1", "a2"), track_item("a1"), {"track": None}],
                    "next": "https://api.spotify.com/v1/playlists/pl1/tracks?offset=100&limit=100",
                },
            )

        fake_api.add("GET", "/playlists/pl1/tracks", tracks)
        fake_api.add(
            "GET",
            "/artists",
            several_artists(
                {
                    "a1": artist_json("a1", "Zed", popularity=10),
                    "a2": artist_json("a2", "Followed", popularity=90),
                    "a3": artist_json("a3", "Beta", popularity=30),
                    "a4": artist_json("a4", "alpha", popularity=20),
                }
            ),
        )
        fake_api.add("GET", "/me/following/contains", follow_contains({"a2"}))
        return fake_api

    async def test_unfollowed_ranked_by_frequency_then_name(
        self, hub: ReleaseHubService, playlist_api: FakeSpotifyApi
    ) -> None:
        """Most frequent first, ties by case-insensitive name, followed artists excluded."""
        analysis = await hub.analyze_playlist(PLAYLIST_URL)

        assert analysis.playlist_name == "Road Trip"
        assert analysis.playlist_owner == "Sam"
        assert [(u.artist.id, u.frequency) for u in analysis.unfollowed_artists] == [
            ("a1", 3),
            ("a4", 1),
            ("a3", 1),
        ]
        # hydrated from /artists, not the thin playlist record
        assert analysis.unfollowed_artists[0].artist.popularity == 10
        assert len(playlist_api.calls("GET", "/playlists/pl1/tracks")) == 2

    async def test_second_analysis_served_from_cache(
        self, hub: ReleaseHubService, playlist_api: FakeSpotifyApi
    ) -> None:
        """Analyzing twice within 10 minutes costs no extra request."""
        first = await hub.analyze_playlist(PLAYLIST_URL)
        request_count = len(playlist_api.requests)

        second = await hub.analyze_playlist("spotify:playlist:pl1")

        assert second == first
        assert len(playlist_api.requests) == request_count

    async def test_analysis_expires_after_ttl(
        self, hub: ReleaseHubService, playlist_api: FakeSpotifyApi, clock: FakeClock
    ) -> None:
        """After the analysis TTL the playlist is read again, artist details stay cached."""
        await hub.analyze_playlist(PLAYLIST_URL)
        clock.advance(10 * 60)

        await hub.analyze_playlist(PLAYLIST_URL)

        assert len(playlist_api.calls("GET", "/playlists/pl1")) == 2
        assert len(playlist_api.calls("GET", "/artists")) == 1

    async def test_progress_reported(
        self, hub: ReleaseHubService, playlist_api: FakeSpotifyApi
    ) -> None:
        updates: list[ProgressUpdate] = []

        await hub.analyze_playlist(PLAYLIST_URL, updates.append)

        assert updates[0].current == 0
        assert updates[-1].current == updates[-1].total
        assert "3 artists" in updates[-1].message

    async def test_invalid_link_rejected_without_requests(
        self, hub: ReleaseHubService, fake_api: FakeSpotifyApi
    ) -> None:
        with pytest.raises(ValidationError):
            await hub.analyze_playlist("https://example.com/not-a-playlist")

        assert fake_api.requests == []


class TestFollowArtistsBulk:
    """Test bulk follow."""

    async def test_chunks_of_twenty_with_pause(
        self, hub: ReleaseHubService, fake_api: FakeSpotifyApi, clock: FakeClock
    ) -> None:
        """45 artists = 3 PUTs of 20/20/5, 2 seconds apart."""
        fake_api.add("PUT", "/me/following", None, status=204)
        ids = [f"artist{i}" for i in range(45)]

        result = await hub.follow_artists_bulk(ids)

        puts = fake_api.calls("PUT", "/me/following")
        assert [len(ids_param(r)) for r in puts] == [20, 20, 5]
        assert result.followed_count == 45
        assert result.failed_count == 0
        assert clock.sleeps.count(2.0) == 2

    async def test_failed_chunk_reported(
        self, hub: ReleaseHubService, fake_api: FakeSpotifyApi
    ) -> None:
        """A chunk that keeps failing lands in failed_artist_ids; the others succeed."""

        def follow(request: httpx.Request) -> httpx.Response:
            if "artist25" in ids_param(request):
                return httpx.Response(500)
            return httpx.Response(204)

        fake_api.add("PUT", "/me/following", follow)
        ids = [f"artist{i}" for i in range(45)]

        result = await hub.follow_artists_bulk(ids)

        assert result.followed_count + result.failed_count == 45
        assert result.failed_artist_ids == ids[20:40]
        assert result.followed_count == 25

    async def test_followed_artists_not_rechecked(
        self, hub: ReleaseHubService, fake_api: FakeSpotifyApi
    ) -> None:
        """After a follow, the related-artists filter knows without asking Spotify."""
        fake_api.add("PUT", "/me/following", None, status=204)
        fake_api.add(
            "GET",
            "/artists/seed/related-artists",
            {"artists": [artist_json("x1", popularity=10), artist_json("x2", popularity=20)]},
        )
        await hub.follow_artists_bulk(["x1", "x2"])

        assert await hub.get_related_artists(["seed"]) == []
        assert fake_api.calls("GET", "/me/following/contains") == []

    async def test_empty_selection(self, hub: ReleaseHubService) -> None:
        with pytest.raises(ValidationError):
            await hub.follow_artists_bulk([])


class TestScanRecentReleases:
    """Test the release scan."""

    @pytest.fixture
    def scan_api(self, fake_api: FakeSpotifyApi) -> FakeSpotifyApi:
        fake_api.add(
            "GET",
            "/me/following",
            {
                "artists": {
                    "items": [artist_json("a1", "Artist One"), artist_json("a2", "Artist Two")],
                    "next": None,
                    "cursors": {"after": None},
                }
            },
        )

        def albums_for(by_group: dict[str, list[dict[str, Any]]]):
            def handler(request: httpx.Request) -> httpx.Response:
                items = by_group.get(request.url.params["include_groups"], [])
                return httpx.Response(200, json={"items": items, "next": None})

            return handler

        # START_TIME is 2023-11-14, so a 7 day window starts 2023-11-07 22:13 UTC
        fake_api.add(
            "GET",
            "/artists/a1/albums",
            albums_for(
                {
                    "album": [
                        album_json("fresh", "2023-11-13", "day", "a1"),
                        album_json("month", "2023-11", "month", "a1"),
                        album_json("old", "2023-11-07", "day", "a1"),
                    ],
                    "single": [album_json("collab", "2023-11-10", "day", "a1", "a2")],
                }
            ),
        )
        fake_api.add(
            "GET",
            "/artists/a2/albums",
            albums_for({"single": [album_json("collab", "2023-11-10", "day", "a1", "a2")]}),
        )
        return fake_api

    async def test_recent_day_precision_releases_only(
        self, hub: ReleaseHubService, scan_api: FakeSpotifyApi
    ) -> None:
        """Month precision and pre-cutoff days are dropped; collabs appear once."""
        result = await hub.scan_recent_releases(days_back=7)

        assert [r.id for r in result.releases] == ["fresh", "collab"]
        assert result.releases[0].artist_name == "Artist One"
        assert result.total_artists_checked == 2
        assert result.failed_artist_ids == []

    async def test_album_requests_use_market_and_page_size(
        self, hub: ReleaseHubService, scan_api: FakeSpotifyApi
    ) -> None:
        await hub.scan_recent_releases(days_back=7)

        request = scan_api.calls("GET", "/artists/a1/albums")[0]
        assert request.url.params["market"] == "US"
        assert request.url.params["limit"] == "20"

    async def test_failing_artist_reported(
        self, hub: ReleaseHubService, scan_api: FakeSpotifyApi
    ) -> None:
        """One artist failing doesn't cost the others their releases."""
        scan_api.add("GET", "/artists/a2/albums", lambda request: httpx.Response(502))

        result = await hub.scan_recent_releases(days_back=7)

        assert result.failed_artist_ids == ["a2"]
        assert [r.id for r in result.releases] == ["fresh", "collab"]

    async def test_max_artists_limits_scan(
        self, hub: ReleaseHubService, scan_api: FakeSpotifyApi
    ) -> None:
        result = await hub.scan_recent_releases(days_back=7, max_artists=1)

        assert result.total_artists_checked == 1
        assert scan_api.calls("GET", "/artists/a2/albums") == []

    async def test_no_followed_artists(
        self, hub: ReleaseHubService, fake_api: FakeSpotifyApi
    ) -> None:
        fake_api.add("GET", "/me/following", {"artists": {"items": [], "next": None}})

        result = await hub.scan_recent_releases(days_back=30)

        assert result.releases == []
        assert result.total_artists_checked == 0

    @pytest.mark.parametrize(("days_back", "max_artists"), [(0, None), (7, -1)])
    async def test_invalid_arguments(
        self, hub: ReleaseHubService, days_back: int, max_artists: int | None
    ) -> None:
        with pytest.raises(ValidationError):
            await hub.scan_recent_releases(days_back, max_artists)


class TestPlaylistCreation:
    """Test playlist creation from tracks and releases."""

    @pytest.fixture
    def create_api(self, fake_api: FakeSpotifyApi) -> FakeSpotifyApi:
        fake_api.add("GET", "/me", {"id": "user-1"})
        fake_api.add(
            "POST",
            "/users/user-1/playlists",
            {"id": "new-pl", "external_urls": {"spotify": "https://open.spotify.com/playlist/new-pl"}},
            status=201,
        )
        fake_api.add("POST", "/playlists/new-pl/tracks", {"snapshot_id": "snap"}, status=201)
        return fake_api

    async def test_tracks_added_in_chunks_of_hundred(
        self, hub: ReleaseHubService, create_api: FakeSpotifyApi
    ) -> None:
        uris = [f"spotify:track:t{i:03d}" for i in range(150)]

        created = await hub.create_playlist_from_tracks("Picks", uris)

        adds = create_api.calls("POST", "/playlists/new-pl/tracks")
        assert [len(create_api.json_body(r)["uris"]) for r in adds] == [100, 50]
        body = create_api.json_body(create_api.calls("POST", "/users/user-1/playlists")[0])
        assert body == {
            "name": "Picks",
            "description": "Selected tracks - Created by Release Hub Test",
            "public": False,
        }
        assert created.playlist_id == "new-pl"
        assert created.playlist_url == "https://open.spotify.com/playlist/new-pl"
        assert created.tracks_added == 150

    async def test_empty_name_rejected(self, hub: ReleaseHubService, create_api: FakeSpotifyApi) -> None:
        with pytest.raises(ValidationError):
            await hub.create_playlist_from_tracks("   ", ["spotify:track:t1"])

        assert create_api.requests == []

    async def test_from_releases_uses_every_track(
        self, hub: ReleaseHubService, create_api: FakeSpotifyApi
    ) -> None:
        """Embedded album tracks plus their next pages, in release order."""
        create_api.add(
            "GET",
            "/albums",
            {
                "albums": [
                    {"id": "r1", "name": "One", "tracks": {"items": [{"id": "t1"}, {"id": "t2"}], "next": None}},
                    {
                        "id": "r2",
                        "name": "Two",
                        "tracks": {
                            "items": [{"id": "t3"}],
                            "next": "https://api.spotify.com/v1/albums/r2/tracks?offset=1&limit=50",
                        },
                    },
                ]
            },
        )
        create_api.add("GET", "/albums/r2/tracks", {"items": [{"id": "t4"}], "next": None})

        created = await hub.create_playlist_from_releases("Fresh", [release("r1"), release("r2")])

        add = create_api.calls("POST", "/playlists/new-pl/tracks")[0]
        assert create_api.json_body(add)["uris"] == [
            "spotify:track:t1",
            "spotify:track:t2",
            "spotify:track:t3",
            "spotify:track:t4",
        ]
        body = create_api.json_body(create_api.calls("POST", "/users/user-1/playlists")[0])
        assert body["description"] == (
            "Tracks from recent releases (last 2 releases) - Created by Release Hub Test"
        )
        assert created.tracks_added == 4

        # album listings are cached, a second playlist needs no album request
        await hub.create_playlist_from_releases("Again", [release("r1")])
        assert len(create_api.calls("GET", "/albums")) == 1


class TestGetTracksFromAlbums:
    """Test full track loading with partial failure."""

    async def test_failing_album_listed(
        self, hub: ReleaseHubService, fake_api: FakeSpotifyApi
    ) -> None:
        fake_api.add(
            "GET",
            "/albums/good/tracks",
            {"items": [{"id": "t1", "name": "One"}, {"id": "t2", "name": "Two"}], "next": None},
        )
        fake_api.add(
            "GET",
            "/tracks",
            {
                "tracks": [
                    {"id": "t1", "name": "One", "preview_url": "https://p.scdn.co/t1", "album": {"id": "good", "name": "Good"}},
                    None,
                ]
            },
        )

        result = await hub.get_tracks_from_albums(["good", "bad"])

        assert [t.id for t in result.tracks] == ["t1", "t2"]
        assert result.tracks[0].preview_url == "https://p.scdn.co/t1"
        assert result.tracks[1].album_id == "good"
        assert result.failed_album_ids == ["bad"]


class TestRelatedArtists:
    """Test related-artist discovery."""

    async def test_merged_filtered_sorted(
        self, hub: ReleaseHubService, fake_api: FakeSpotifyApi
    ) -> None:
        """Seeds and followed artists excluded; popularity desc, then name."""
        fake_api.add(
            "GET",
            "/artists/a1/related-artists",
            {
                "artists": [
                    artist_json("x1", "Xeno", popularity=50),
                    artist_json("a2", "Seed Two", popularity=99),
                    artist_json("x2", "Known", popularity=80),
                ]
            },
        )
        fake_api.add(
            "GET",
            "/artists/a2/related-artists",
            {"artists": [artist_json("x1", "Xeno", popularity=50), artist_json("x3", "anna", popularity=50)]},
        )
        fake_api.add("GET", "/me/following/contains", follow_contains({"x2"}))

        related = await hub.get_related_artists(["a1", "a2", "a1"])

        assert [a.id for a in related] == ["x3", "x1"]
        assert len(fake_api.calls("GET", "/artists/a1/related-artists")) == 1

    async def test_no_seeds(self, hub: ReleaseHubService, fake_api: FakeSpotifyApi) -> None:
        assert await hub.get_related_artists([]) == []
        assert fake_api.requests == []


class TestAuthentication:
    """Test the logged-out state and session renewal."""

    async def test_operations_require_login(
        self, settings, clock: FakeClock, token_issuer: FakeTokenIssuer, fake_api: FakeSpotifyApi
    ) -> None:
        """Without a credential nothing touches the network."""
        async with ReleaseHubService.create(
            settings=settings,
            clock=clock,
            credential_store=InMemoryCredentialStore(),
            token_issuer=token_issuer,
            transport=fake_api.transport,
            rng=ZeroJitter(),
        ) as hub:
            assert not hub.is_authenticated
            with pytest.raises(AuthenticationError):
                await hub.analyze_playlist(PLAYLIST_URL)

        assert fake_api.requests == []

    async def test_login_installs_and_persists_credential(
        self,
        settings,
        clock: FakeClock,
        token_issuer: FakeTokenIssuer,
        fake_api: FakeSpotifyApi,
        credential,
    ) -> None:
        store = InMemoryCredentialStore()
        fake_api.add("GET", "/me/following", {"artists": {"items": [], "next": None}})
        async with ReleaseHubService.create(
            settings=settings,
            clock=clock,
            credential_store=store,
            token_issuer=token_issuer,
            transport=fake_api.transport,
            rng=ZeroJitter(),
        ) as hub:
            hub.login(credential)
            await hub.scan_recent_releases(days_back=7)

        assert store.load() == credential
        assert fake_api.requests[0].headers["Authorization"] == "Bearer access-token-0"

    async def test_expired_session_renewed_transparently(
        self, hub: ReleaseHubService, fake_api: FakeSpotifyApi, token_issuer: FakeTokenIssuer
    ) -> None:
        """A 401 mid-operation refreshes once and the operation succeeds."""

        def related(request: httpx.Request) -> httpx.Response:
            if request.headers["Authorization"] != "Bearer access-token-1":
                return httpx.Response(401)
            return httpx.Response(200, json={"artists": [artist_json("x1", popularity=1)]})

        fake_api.add("GET", "/artists/a1/related-artists", related)
        fake_api.add("GET", "/me/following/contains", follow_contains(set()))

        related_artists = await hub.get_related_artists(["a1"])

        assert [a.id for a in related_artists] == ["x1"]
        assert token_issuer.calls == 1
