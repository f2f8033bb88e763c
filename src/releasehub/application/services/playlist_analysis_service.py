"""Playlist analysis: which artists in a playlist doesn't the user follow yet?"""

import logging
import re
from collections import Counter

from releasehub.application.cache import SpotifyCache
from releasehub.application.services.followed_artists_service import FollowedArtistsService
from releasehub.application.services.progress import emit_progress
from releasehub.config import BatchSettings
from releasehub.domain.dtos import ArtistDTO, PlaylistAnalysisDTO, UnfollowedArtistDTO
from releasehub.domain.exceptions import ValidationError
from releasehub.domain.ports import ProgressCallback
from releasehub.infrastructure.integrations.batch import resolve_in_batches
from releasehub.infrastructure.integrations.pagination import Cursor, Page, fold, next_link_page
from releasehub.infrastructure.integrations.spotify_client import SpotifyClient
from releasehub.infrastructure.integrations.spotify_converters import convert_artist

logger = logging.getLogger(__name__)

# open.spotify.com/playlist/<id>?si=... and spotify:playlist:<id>
PLAYLIST_REF_PATTERN = re.compile(r"playlist[/:]([a-zA-Z0-9]+)")
BARE_ID_PATTERN = re.compile(r"[a-zA-Z0-9]+")

ANALYSIS_STEPS = 4


def parse_playlist_id(playlist_ref: str) -> str:
    """Extract the playlist ID from a share link, a spotify: URI or a bare ID.

    Raises:
        ValidationError: If the reference is none of those
    """
    ref = (playlist_ref or "").strip()
    match = PLAYLIST_REF_PATTERN.search(ref)
    if match:
        return match.group(1)
    if BARE_ID_PATTERN.fullmatch(ref):
        return ref
    raise ValidationError("Invalid playlist URL or ID")


class _ArtistTally:
    """Accumulator for the single pass over playlist tracks."""

    def __init__(self) -> None:
        self.artists: dict[str, ArtistDTO] = {}
        self.frequency: Counter[str] = Counter()

    def add_item(self, item: dict) -> "_ArtistTally":
        track = item.get("track") or {}
        for raw_artist in track.get("artists") or []:
            if not raw_artist or not raw_artist.get("id"):
                continue
            artist_id = raw_artist["id"]
            self.frequency[artist_id] += 1
            if artist_id not in self.artists:
                self.artists[artist_id] = convert_artist(raw_artist)
        return self


class PlaylistAnalysisService:
    """Finds the unfollowed artists of a playlist, ranked by how often they appear."""

    def __init__(
        self,
        client: SpotifyClient,
        cache: SpotifyCache,
        followed_artists: FollowedArtistsService,
        batch_settings: BatchSettings | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._followed = followed_artists
        self._batch = batch_settings or BatchSettings()

    # Hey future me - the order of steps here is tuned for request count:
    # 1. ONE pass over the playlist pages builds the artist registry AND the frequency map
    # 2. thin artists (id/name/link only) get hydrated from cache or /artists?ids= (50 per call)
    # 3. follow status is cache-first, /me/following/contains for the rest (50 per call)
    # The whole result is cached for 10 minutes - clicking "analyze" twice costs nothing.
    async def analyze(
        self, playlist_ref: str, progress: ProgressCallback | None = None
    ) -> PlaylistAnalysisDTO:
        """Analyze a playlist.

        Args:
            playlist_ref: Playlist share link, spotify: URI or bare ID
            progress: Optional progress sink

        Returns:
            Playlist name/owner plus unfollowed artists, most frequent first

        Raises:
            ValidationError: If the playlist reference can't be parsed
        """
        playlist_id = parse_playlist_id(playlist_ref)

        cached = await self._cache.get_playlist_analysis(playlist_id)
        if cached is not None:
            logger.debug(f"Playlist analysis for {playlist_id} served from cache")
            emit_progress(progress, ANALYSIS_STEPS, ANALYSIS_STEPS, "Loaded analysis from cache")
            return cached

        emit_progress(progress, 0, ANALYSIS_STEPS, "Loading playlist")
        playlist = await self._client.get_playlist(playlist_id)
        owner = playlist.get("owner") or {}

        emit_progress(progress, 1, ANALYSIS_STEPS, "Collecting artists from tracks")
        tally = await self._collect_artists(playlist_id)

        emit_progress(progress, 2, ANALYSIS_STEPS, f"Loading details for {len(tally.artists)} artists")
        artists = await self._hydrate(tally.artists)

        emit_progress(progress, 3, ANALYSIS_STEPS, "Checking which artists you follow")
        statuses = await self._followed.check_following(list(artists))

        unfollowed = [
            UnfollowedArtistDTO(artist=artist, frequency=tally.frequency[artist_id])
            for artist_id, artist in artists.items()
            if not statuses.get(artist_id, False)
        ]
        unfollowed.sort(
            key=lambda u: (-u.frequency, u.artist.name.casefold(), u.artist.name)
        )

        analysis = PlaylistAnalysisDTO(
            playlist_id=playlist_id,
            playlist_name=playlist.get("name") or "",
            playlist_owner=owner.get("display_name") or owner.get("id") or "",
            unfollowed_artists=unfollowed,
        )
        await self._cache.cache_playlist_analysis(analysis)

        emit_progress(
            progress,
            ANALYSIS_STEPS,
            ANALYSIS_STEPS,
            f"Found {len(unfollowed)} artists you don't follow",
        )
        logger.info(
            f"Analyzed playlist {playlist_id}: {len(artists)} artists, "
            f"{len(unfollowed)} unfollowed"
        )
        return analysis

    async def _collect_artists(self, playlist_id: str) -> _ArtistTally:
        page_size = self._batch.playlist_tracks_page_size

        async def fetch_page(next_url: Cursor) -> Page[dict]:
            if next_url is None:
                data = await self._client.get_playlist_tracks(playlist_id, limit=page_size)
            else:
                data = await self._client.get_next_page(str(next_url))
            return next_link_page(data)

        return await fold(fetch_page, _ArtistTally(), _ArtistTally.add_item)

    async def _hydrate(self, artists: dict[str, ArtistDTO]) -> dict[str, ArtistDTO]:
        """Replace thin artist records with full ones (cache first, then /artists?ids=)."""
        ids = list(artists)
        cached = await self._cache.get_artists(ids)
        hydrated = {**artists, **cached}
        missing = [i for i in ids if i not in cached]

        async def fetch_chunk(chunk: list[str]) -> dict[str, ArtistDTO]:
            raw = await self._client.get_several_artists(chunk)
            return {a["id"]: convert_artist(a) for a in raw if a.get("id")}

        if missing:
            fetched = await resolve_in_batches(
                missing, self._batch.several_artists_chunk_size, fetch_chunk
            )
            # Spotify sometimes returns ids we didn't ask for (relinking) - ignore those
            fetched = {k: v for k, v in fetched.items() if k in artists}
            await self._cache.cache_artists(list(fetched.values()))
            hydrated.update(fetched)

        return hydrated


__all__ = ["PlaylistAnalysisService", "parse_playlist_id"]
