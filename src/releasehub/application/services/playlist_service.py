"""Playlist building and album track lookup."""

import logging

from releasehub.application.cache import SpotifyCache
from releasehub.application.services.progress import emit_progress
from releasehub.config import BatchSettings
from releasehub.domain.dtos import AlbumTracksResult, CreatedPlaylistDTO, ReleaseDTO, TrackDTO
from releasehub.domain.exceptions import (
    AuthenticationError,
    DomainException,
    ExternalServiceError,
    ValidationError,
)
from releasehub.domain.ports import ProgressCallback
from releasehub.infrastructure.integrations.batch import chunked, resolve_in_batches
from releasehub.infrastructure.integrations.pagination import (
    Cursor,
    Page,
    drain,
    next_link_page,
    offset_page,
)
from releasehub.infrastructure.integrations.spotify_client import SpotifyClient
from releasehub.infrastructure.integrations.spotify_converters import convert_track

logger = logging.getLogger(__name__)

TRACK_URI_PREFIX = "spotify:track:"


def to_track_uri(track_ref: str) -> str:
    """Normalize a track ID, spotify: URI or open.spotify.com link to a track URI."""
    ref = track_ref.strip()
    if ref.startswith(TRACK_URI_PREFIX):
        return ref
    if "/track/" in ref:
        ref = ref.split("/track/", 1)[1].split("?", 1)[0]
    if not ref or not ref.isalnum():
        raise ValidationError(f"Invalid track reference: {track_ref!r}")
    return f"{TRACK_URI_PREFIX}{ref}"


def unique(items: list[str]) -> list[str]:
    """Drop duplicates, first occurrence wins."""
    return list(dict.fromkeys(items))


class PlaylistService:
    """Creates playlists from releases or tracks and resolves album track listings."""

    def __init__(
        self,
        client: SpotifyClient,
        cache: SpotifyCache,
        app_name: str,
        batch_settings: BatchSettings | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._app_name = app_name
        self._batch = batch_settings or BatchSettings()

    # =========================================================================
    # PLAYLIST CREATION
    # =========================================================================

    async def create_playlist_from_releases(
        self,
        name: str,
        releases: list[ReleaseDTO],
        is_public: bool = False,
        progress: ProgressCallback | None = None,
    ) -> CreatedPlaylistDTO:
        """Create a playlist with every track of the given releases.

        Raises:
            ValidationError: Empty name/releases, or the releases have no tracks at all
            ExternalServiceError: No album could be loaded
        """
        name = self._require_name(name)
        album_ids = unique([r.id for r in releases if r.id])
        if not album_ids:
            raise ValidationError("No releases selected for the playlist")

        emit_progress(progress, 0, 3, f"Loading tracks of {len(album_ids)} releases")
        tracks_by_album, failed = await self.resolve_album_tracks(album_ids)
        uris = unique(
            [t.uri for album_id in album_ids for t in tracks_by_album.get(album_id, [])]
        )
        if not uris:
            if failed:
                raise ExternalServiceError("Could not load tracks for the selected releases")
            raise ValidationError("The selected releases contain no tracks")

        description = (
            f"Tracks from recent releases (last {len(releases)} releases) - "
            f"Created by {self._app_name}"
        )
        return await self._create_and_fill(name, description, uris, is_public, progress)

    async def create_playlist_from_tracks(
        self,
        name: str,
        track_uris: list[str],
        is_public: bool = False,
        progress: ProgressCallback | None = None,
    ) -> CreatedPlaylistDTO:
        """Create a playlist with the given tracks (IDs, URIs or links).

        Raises:
            ValidationError: Empty name/track list or a malformed track reference
        """
        name = self._require_name(name)
        refs = [t for t in track_uris if t and t.strip()]
        if not refs:
            raise ValidationError("No tracks selected for the playlist")
        uris = unique([to_track_uri(t) for t in refs])

        description = f"Selected tracks - Created by {self._app_name}"
        return await self._create_and_fill(name, description, uris, is_public, progress)

    @staticmethod
    def _require_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Playlist name cannot be empty")
        return name

    # Hey future me - adding is NOT partial-failure tolerant: a half-filled playlist is a
    # broken result, so a failing chunk propagates (after the executor's retries).
    async def _create_and_fill(
        self,
        name: str,
        description: str,
        uris: list[str],
        is_public: bool,
        progress: ProgressCallback | None,
    ) -> CreatedPlaylistDTO:
        emit_progress(progress, 1, 3, "Creating playlist")
        user = await self._client.get_current_user()
        playlist = await self._client.create_playlist(
            user["id"], name, description, public=is_public
        )
        playlist_id = playlist["id"]

        added = 0
        for chunk in chunked(uris, self._batch.playlist_add_chunk_size):
            await self._client.add_tracks_to_playlist(playlist_id, chunk)
            added += len(chunk)
            emit_progress(progress, 2, 3, f"Added {added}/{len(uris)} tracks")

        emit_progress(progress, 3, 3, f"Created playlist '{name}' with {added} tracks")
        logger.info(f"Created playlist {playlist_id} with {added} tracks")
        return CreatedPlaylistDTO(
            playlist_id=playlist_id,
            playlist_url=(playlist.get("external_urls") or {}).get("spotify"),
            tracks_added=added,
        )

    # =========================================================================
    # ALBUM TRACKS
    # =========================================================================

    # Hey future me - this is the CHEAP path used for playlist creation: /albums?ids= gives
    # 20 albums per call WITH the first 50 tracks of each embedded. Only albums with more
    # tracks need their "next" links followed. Cached per album id, so building a second
    # playlist from the same releases costs zero album requests.
    async def resolve_album_tracks(
        self, album_ids: list[str]
    ) -> tuple[dict[str, list[TrackDTO]], list[str]]:
        """Track listings per album (simplified tracks).

        Returns:
            ({album_id: tracks}, ids of albums whose chunk failed or that Spotify didn't return)
        """
        tracks_by_album: dict[str, list[TrackDTO]] = {}
        missing: list[str] = []
        for album_id in unique(album_ids):
            cached = await self._cache.get_album_tracks(album_id)
            if cached is not None:
                tracks_by_album[album_id] = cached
            else:
                missing.append(album_id)

        failed: list[str] = []

        async def fetch_chunk(chunk: list[str]) -> dict[str, list[TrackDTO]]:
            try:
                albums = await self._client.get_several_albums(chunk)
            except AuthenticationError:
                raise
            except DomainException as e:
                logger.warning(f"Loading {len(chunk)} albums failed: {e.message}")
                failed.extend(chunk)
                return {}
            resolved: dict[str, list[TrackDTO]] = {}
            for album in albums:
                resolved[album["id"]] = await self._drain_embedded_tracks(album)
            return resolved

        if missing:
            fetched = await resolve_in_batches(
                missing, self._batch.several_albums_chunk_size, fetch_chunk
            )
            for album_id, tracks in fetched.items():
                await self._cache.cache_album_tracks(album_id, tracks)
            tracks_by_album.update(fetched)
            failed.extend(i for i in missing if i not in fetched and i not in failed)

        return tracks_by_album, failed

    async def _drain_embedded_tracks(self, album: dict) -> list[TrackDTO]:
        album_ref = {"id": album.get("id"), "name": album.get("name")}
        first_page = album.get("tracks") or {}

        async def fetch_page(next_url: Cursor) -> Page[dict]:
            if next_url is None:
                return next_link_page(first_page)
            return next_link_page(await self._client.get_next_page(str(next_url)))

        raw_tracks = await drain(fetch_page)
        return [convert_track(t, album_ref) for t in raw_tracks if t.get("id")]

    async def get_tracks_from_albums(
        self, album_ids: list[str], progress: ProgressCallback | None = None
    ) -> AlbumTracksResult:
        """Full track details (incl. preview URLs) for every album.

        One album failing is logged and reported in failed_album_ids - the others still
        come back.

        Raises:
            ValidationError: If album_ids is empty
        """
        ids = unique([i for i in album_ids if i])
        if not ids:
            raise ValidationError("No albums selected")

        tracks: list[TrackDTO] = []
        failed: list[str] = []
        for index, album_id in enumerate(ids, start=1):
            try:
                tracks.extend(await self._full_tracks_for_album(album_id))
            except AuthenticationError:
                raise
            except DomainException as e:
                logger.warning(f"Skipping album {album_id}: {type(e).__name__}: {e.message}")
                failed.append(album_id)
            emit_progress(progress, index, len(ids), f"Loaded tracks for {index}/{len(ids)} albums")

        return AlbumTracksResult(tracks=tracks, failed_album_ids=failed)

    async def _full_tracks_for_album(self, album_id: str) -> list[TrackDTO]:
        listing = await self._cache.get_album_tracks(album_id)
        if listing is None:
            page_size = self._batch.album_tracks_page_size

            async def fetch_page(offset: Cursor) -> Page[dict]:
                start = int(offset or 0)
                data = await self._client.get_album_tracks(album_id, limit=page_size, offset=start)
                return offset_page(data, start, page_size)

            raw_tracks = await drain(fetch_page, 0)
            listing = [convert_track(t, {"id": album_id}) for t in raw_tracks if t.get("id")]
            await self._cache.cache_album_tracks(album_id, listing)

        track_ids = [t.id for t in listing]

        async def fetch_details(chunk: list[str]) -> dict[str, TrackDTO]:
            raw = await self._client.get_several_tracks(chunk)
            return {t["id"]: convert_track(t) for t in raw if t.get("id")}

        details = await resolve_in_batches(
            track_ids, self._batch.track_details_chunk_size, fetch_details
        )
        # Tracks Spotify didn't return in full keep their simplified listing data
        return [details.get(t.id, t) for t in listing]


__all__ = ["PlaylistService", "to_track_uri", "unique"]
