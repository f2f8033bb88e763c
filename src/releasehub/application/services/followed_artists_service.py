"""Followed artists: listing, follow-status lookup and bulk follow.

Hey future me - everything that touches the user's follow graph lives here, because the
three operations share cache state: following artists changes what "is followed" returns
AND what the followed listing contains. Keep the invalidation in ONE place (mark_followed).
"""

import logging

from releasehub.application.cache import SpotifyCache
from releasehub.application.services.progress import emit_progress
from releasehub.config import BatchSettings
from releasehub.domain.dtos import ArtistDTO, FollowResult
from releasehub.domain.exceptions import ValidationError
from releasehub.domain.ports import IClock, ProgressCallback
from releasehub.infrastructure.integrations.batch import for_each_batch, resolve_in_batches
from releasehub.infrastructure.integrations.pagination import Cursor, Page, cursor_page, drain
from releasehub.infrastructure.integrations.spotify_client import SpotifyClient
from releasehub.infrastructure.integrations.spotify_converters import convert_artist

logger = logging.getLogger(__name__)


class FollowedArtistsService:
    """Reads and changes which artists the user follows."""

    def __init__(
        self,
        client: SpotifyClient,
        cache: SpotifyCache,
        clock: IClock,
        batch_settings: BatchSettings | None = None,
    ) -> None:
        self._client = client
        self._cache = cache
        self._clock = clock
        self._batch = batch_settings or BatchSettings()

    # Hey future me - limit None/0 means ALL followed artists. With a limit we stop paging as
    # soon as we have enough, so "scan my first 50 artists" costs one request, not twenty.
    async def get_followed_artists(self, limit: int | None = None) -> list[ArtistDTO]:
        """Get followed artists (cache-first), all of them or the first `limit`."""
        cached = await self._cache.get_followed_artists(limit)
        if cached is not None:
            logger.debug(f"Followed artists served from cache ({len(cached)})")
            return cached

        page_size = self._batch.followed_artists_page_size

        async def fetch_page(after: Cursor) -> Page[dict]:
            data = await self._client.get_followed_artists(
                limit=page_size, after=str(after) if after else None
            )
            return cursor_page(data)

        max_pages = -(-limit // page_size) if limit else None
        raw_artists = await drain(fetch_page, max_pages=max_pages)

        artists = [convert_artist(a) for a in raw_artists if a.get("id")]
        if limit:
            artists = artists[:limit]

        await self._cache.cache_followed_artists(artists, limit)
        logger.info(f"Fetched {len(artists)} followed artists")
        return artists

    async def check_following(self, artist_ids: list[str]) -> dict[str, bool]:
        """Follow status per artist ID (cache-first, misses resolved in chunks of 50)."""
        unique_ids = list(dict.fromkeys(i for i in artist_ids if i))
        if not unique_ids:
            return {}

        statuses = await self._cache.get_follow_status(unique_ids)
        missing = [i for i in unique_ids if i not in statuses]

        async def fetch_chunk(chunk: list[str]) -> dict[str, bool]:
            flags = await self._client.check_if_following_artists(chunk)
            return dict(zip(chunk, flags, strict=False))

        if missing:
            fetched = await resolve_in_batches(
                missing, self._batch.follow_status_chunk_size, fetch_chunk
            )
            await self._cache.cache_follow_status(fetched)
            statuses.update(fetched)

        return statuses

    async def follow_artists(
        self, artist_ids: list[str], progress: ProgressCallback | None = None
    ) -> FollowResult:
        """Follow artists in chunks of 20 with a pause between chunks.

        A failing chunk is reported (all its IDs in failed_artist_ids), never retried here.

        Raises:
            ValidationError: If artist_ids is empty or contains blank IDs
        """
        ids = list(artist_ids)
        if not ids:
            raise ValidationError("No artists selected to follow")
        # every input ID must end up in followed or failed, a blank one can be neither
        if any(not i or not i.strip() for i in ids):
            raise ValidationError("Artist IDs must not be blank")

        total = len(ids)

        async def follow_chunk(chunk: list[str]) -> None:
            await self._client.follow_artists(chunk)
            await self._cache.mark_followed(chunk)

        followed, failed = await for_each_batch(
            ids,
            self._batch.follow_chunk_size,
            follow_chunk,
            clock=self._clock,
            delay_seconds=self._batch.follow_chunk_delay_seconds,
            on_progress=lambda done: emit_progress(
                progress, done, total, f"Followed {done}/{total} artists"
            ),
        )

        if failed:
            logger.warning(f"Failed to follow {len(failed)} of {total} artists")
        return FollowResult(
            followed_count=len(followed),
            failed_count=len(failed),
            failed_artist_ids=failed,
        )


__all__ = ["FollowedArtistsService"]
