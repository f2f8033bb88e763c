"""Spotify metadata caches.

Hey future me - every cache KIND is its own InMemoryCache with its own TTL, so "clear the
followed listing" can never accidentally nuke artist details. TTLs come from CACHE_* settings:

    artist details       6h   (names/images barely change)
    follow status        2h   (bool per artist id)
    followed listing     4h   ("all" variant + "first N" variants)
    related artists      3h
    playlist analysis   10min (playlists and follow state are volatile)
    album tracks         6h   (released albums don't change)

The ONE rule that matters for correctness: after a successful follow, mark_followed() sets
the status to True and BOTH listing variants get dropped. Otherwise a re-analysis shows the
artist as unfollowed and the next "follow" looks like a success that did nothing.
"""

from releasehub.application.cache.base_cache import InMemoryCache
from releasehub.config import CacheSettings
from releasehub.domain.dtos import ArtistDTO, PlaylistAnalysisDTO, TrackDTO
from releasehub.domain.ports import IClock

ALL_FOLLOWED_KEY = "all"


class SpotifyCache:
    """All cache kinds used by the release hub services."""

    def __init__(self, clock: IClock, settings: CacheSettings | None = None) -> None:
        settings = settings or CacheSettings()
        self.artist_details: InMemoryCache[str, ArtistDTO] = InMemoryCache(
            clock, settings.artist_details_ttl, name="artist_details"
        )
        self.follow_status: InMemoryCache[str, bool] = InMemoryCache(
            clock, settings.follow_status_ttl, name="follow_status"
        )
        self._followed_all: InMemoryCache[str, list[ArtistDTO]] = InMemoryCache(
            clock, settings.followed_artists_ttl, name="followed_all"
        )
        self._followed_by_limit: InMemoryCache[int, list[ArtistDTO]] = InMemoryCache(
            clock, settings.followed_artists_ttl, name="followed_by_limit"
        )
        self.related_artists: InMemoryCache[str, list[ArtistDTO]] = InMemoryCache(
            clock, settings.related_artists_ttl, name="related_artists"
        )
        self.playlist_analysis: InMemoryCache[str, PlaylistAnalysisDTO] = InMemoryCache(
            clock, settings.playlist_analysis_ttl, name="playlist_analysis"
        )
        self.album_tracks: InMemoryCache[str, list[TrackDTO]] = InMemoryCache(
            clock, settings.album_tracks_ttl, name="album_tracks"
        )

    # =========================================================================
    # ARTIST DETAILS
    # =========================================================================

    async def get_artists(self, artist_ids: list[str]) -> dict[str, ArtistDTO]:
        """Cached artists for the given IDs (misses are absent)."""
        return await self.artist_details.get_many(artist_ids)

    async def cache_artists(self, artists: list[ArtistDTO]) -> None:
        """Cache (or replace, on hydration) artist records."""
        for artist in artists:
            await self.artist_details.set(artist.id, artist)

    # =========================================================================
    # FOLLOW STATUS
    # =========================================================================

    async def get_follow_status(self, artist_ids: list[str]) -> dict[str, bool]:
        """Cached follow flags for the given IDs (misses are absent)."""
        return await self.follow_status.get_many(artist_ids)

    async def cache_follow_status(self, statuses: dict[str, bool]) -> None:
        for artist_id, is_following in statuses.items():
            await self.follow_status.set(artist_id, is_following)

    async def mark_followed(self, artist_ids: list[str]) -> None:
        """Record successful follows and drop the listing caches (membership changed)."""
        for artist_id in artist_ids:
            await self.follow_status.set(artist_id, True)
        await self.invalidate_followed_listing()

    # =========================================================================
    # FOLLOWED ARTISTS LISTING
    # =========================================================================

    # Hey future me - a request for the first N can be served from the "all" listing if
    # that one is still valid and has at least N entries. The reverse is NOT true.
    async def get_followed_artists(self, limit: int | None = None) -> list[ArtistDTO] | None:
        """Cached followed-artist listing, all of it (limit None/0) or the first `limit`."""
        all_artists = await self._followed_all.get(ALL_FOLLOWED_KEY)
        if not limit:
            return all_artists
        if all_artists is not None and len(all_artists) >= limit:
            return all_artists[:limit]
        return await self._followed_by_limit.get(limit)

    async def cache_followed_artists(
        self, artists: list[ArtistDTO], limit: int | None = None
    ) -> None:
        if limit:
            await self._followed_by_limit.set(limit, artists)
        else:
            await self._followed_all.set(ALL_FOLLOWED_KEY, artists)

    async def invalidate_followed_listing(self) -> None:
        """Drop both listing variants."""
        await self._followed_all.clear()
        await self._followed_by_limit.clear()

    # =========================================================================
    # RELATED ARTISTS / PLAYLIST ANALYSIS / ALBUM TRACKS
    # =========================================================================

    async def get_related(self, artist_id: str) -> list[ArtistDTO] | None:
        return await self.related_artists.get(artist_id)

    async def cache_related(self, artist_id: str, artists: list[ArtistDTO]) -> None:
        await self.related_artists.set(artist_id, artists)

    async def get_playlist_analysis(self, playlist_id: str) -> PlaylistAnalysisDTO | None:
        return await self.playlist_analysis.get(playlist_id)

    async def cache_playlist_analysis(self, analysis: PlaylistAnalysisDTO) -> None:
        await self.playlist_analysis.set(analysis.playlist_id, analysis)

    async def get_album_tracks(self, album_id: str) -> list[TrackDTO] | None:
        return await self.album_tracks.get(album_id)

    async def cache_album_tracks(self, album_id: str, tracks: list[TrackDTO]) -> None:
        await self.album_tracks.set(album_id, tracks)

    async def clear_all(self) -> None:
        """Drop every cache kind (e.g. after logout)."""
        for cache in (
            self.artist_details,
            self.follow_status,
            self._followed_all,
            self._followed_by_limit,
            self.related_artists,
            self.playlist_analysis,
            self.album_tracks,
        ):
            await cache.clear()


__all__ = ["SpotifyCache"]
