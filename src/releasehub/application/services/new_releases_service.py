"""New Releases Service - recent albums and singles of followed artists.

Hey future me - so läuft ein Scan:

    followed artists (cache-first, optionally capped)
            ↓
    ParallelScanOrchestrator: 5 artists at a time, concurrently
            ↓  per artist: albums page 1..2, singles page 1..2 (20 each, market US)
    keep only DAY-precision releases on/after the cutoff
            ↓
    dedup by release id, newest first

Month/year precision ("2024-05", "2024") can't be placed on a day timeline, they NEVER pass
the recency filter, no matter how recent the month is.
"""

import dataclasses
import logging
from datetime import UTC, datetime, timedelta
from itertools import pairwise

from releasehub.application.services.followed_artists_service import FollowedArtistsService
from releasehub.application.services.progress import emit_progress
from releasehub.application.services.scan_orchestrator import ParallelScanOrchestrator
from releasehub.config import BatchSettings, SpotifySettings
from releasehub.domain.dtos import ArtistDTO, ReleaseDTO, ScanResult
from releasehub.domain.exceptions import ValidationError
from releasehub.domain.ports import IClock, ProgressCallback
from releasehub.infrastructure.integrations.pagination import Cursor, Page, iter_pages, offset_page
from releasehub.infrastructure.integrations.spotify_client import SpotifyClient
from releasehub.infrastructure.integrations.spotify_converters import convert_release

logger = logging.getLogger(__name__)

RELEASE_GROUPS = ("album", "single")


def release_day(release: ReleaseDTO) -> datetime | None:
    """Release date as UTC midnight, only for day-precision releases."""
    if release.release_date_precision != "day":
        return None
    try:
        return datetime.strptime(release.release_date, "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError:
        return None


def can_stop_early(days: list[datetime], cutoff: datetime) -> bool:
    """True if this page proves the following pages are older than the cutoff.

    Hey future me - Spotify USUALLY returns albums newest first, but nobody promises that.
    We only skip the next page when this page's dates really are non-increasing AND its
    oldest (last) one is before the cutoff. Unordered page = keep paging, better one extra
    request than a silently missing release.
    """
    if not days or days[-1] >= cutoff:
        return False
    return all(newer >= older for newer, older in pairwise(days))


class NewReleasesService:
    """Scans followed artists for recent releases."""

    def __init__(
        self,
        client: SpotifyClient,
        followed_artists: FollowedArtistsService,
        clock: IClock,
        spotify_settings: SpotifySettings | None = None,
        batch_settings: BatchSettings | None = None,
    ) -> None:
        self._client = client
        self._followed = followed_artists
        self._clock = clock
        self._spotify = spotify_settings or SpotifySettings()
        self._batch = batch_settings or BatchSettings()
        self._orchestrator = ParallelScanOrchestrator(clock, self._batch.scan_batch_size)

    def cutoff_for(self, days_back: int) -> datetime:
        """Now minus days_back days (UTC)."""
        return datetime.fromtimestamp(self._clock.time(), tz=UTC) - timedelta(days=days_back)

    async def scan_recent_releases(
        self,
        days_back: int,
        max_artists: int | None = None,
        progress: ProgressCallback | None = None,
    ) -> ScanResult:
        """Find releases of followed artists from the last days_back days.

        Args:
            days_back: Look back period in days (>= 1)
            max_artists: Only scan the first N followed artists (None/0 = all)
            progress: Optional progress sink

        Raises:
            ValidationError: If days_back < 1 or max_artists is negative
        """
        if days_back < 1:
            raise ValidationError("days_back must be at least 1")
        if max_artists is not None and max_artists < 0:
            raise ValidationError("max_artists cannot be negative")

        cutoff = self.cutoff_for(days_back)

        emit_progress(progress, 0, 0, "Loading followed artists")
        artists = await self._followed.get_followed_artists(max_artists or None)
        if not artists:
            emit_progress(progress, 0, 0, "You don't follow any artists yet")
            return ScanResult(releases=[], total_artists_checked=0)

        emit_progress(progress, 0, len(artists), f"Scanning {len(artists)} artists")
        releases, failed = await self._orchestrator.run(
            artists,
            lambda artist: self.fetch_recent_releases(artist, cutoff),
            progress,
        )

        logger.info(
            f"Scan finished: {len(releases)} releases from {len(artists)} artists "
            f"({len(failed)} failed) since {cutoff.date().isoformat()}"
        )
        return ScanResult(
            releases=releases,
            total_artists_checked=len(artists),
            failed_artist_ids=failed,
        )

    async def fetch_recent_releases(
        self, artist: ArtistDTO, cutoff: datetime
    ) -> list[ReleaseDTO]:
        """Day-precision releases of one artist on/after the cutoff (bounded paging)."""
        recent: list[ReleaseDTO] = []
        page_size = self._batch.release_page_size

        for group in RELEASE_GROUPS:

            async def fetch_page(offset: Cursor, group: str = group) -> Page[dict]:
                start = int(offset or 0)
                data = await self._client.get_artist_albums_page(
                    artist.id,
                    include_groups=group,
                    limit=page_size,
                    offset=start,
                    market=self._spotify.market,
                )
                return offset_page(data, start, page_size)

            async for page in iter_pages(
                fetch_page, 0, max_pages=self._batch.release_pages_per_type
            ):
                days: list[datetime] = []
                for item in page.items:
                    release = convert_release(item)
                    day = release_day(release)
                    if day is None:
                        continue
                    days.append(day)
                    if day >= cutoff:
                        recent.append(dataclasses.replace(release, artist_name=artist.name))

                if can_stop_early(days, cutoff):
                    break

        return recent


__all__ = ["NewReleasesService", "can_stop_early", "release_day"]
