"""Related artists discovery."""

import logging

from releasehub.application.cache import SpotifyCache
from releasehub.application.services.followed_artists_service import FollowedArtistsService
from releasehub.domain.dtos import ArtistDTO
from releasehub.infrastructure.integrations.spotify_client import SpotifyClient
from releasehub.infrastructure.integrations.spotify_converters import convert_artist

logger = logging.getLogger(__name__)


class RelatedArtistsService:
    """Suggests artists related to a set of seeds that the user doesn't follow yet."""

    def __init__(
        self,
        client: SpotifyClient,
        cache: SpotifyCache,
        followed_artists: FollowedArtistsService,
    ) -> None:
        self._client = client
        self._cache = cache
        self._followed = followed_artists

    async def get_related_artists(self, artist_ids: list[str]) -> list[ArtistDTO]:
        """Merge related artists of all seeds, minus seeds and already-followed artists.

        Sorted by popularity (highest first), then name. Empty seed list = empty result.
        """
        seeds = list(dict.fromkeys(i.strip() for i in artist_ids if i and i.strip()))
        if not seeds:
            return []

        seed_set = set(seeds)
        candidates: dict[str, ArtistDTO] = {}
        for seed_id in seeds:
            for artist in await self._related_for(seed_id):
                if artist.id in seed_set or artist.id in candidates:
                    continue
                candidates[artist.id] = artist

        if not candidates:
            return []

        statuses = await self._followed.check_following(list(candidates))
        result = [a for a in candidates.values() if not statuses.get(a.id, False)]
        result.sort(key=lambda a: (-(a.popularity or 0), a.name.casefold(), a.name))

        logger.info(
            f"Found {len(result)} unfollowed related artists for {len(seeds)} seeds"
        )
        return result

    # Yo, related artists come back as FULL artist objects (images, popularity), so every
    # one of them also lands in the artist-details cache - a later playlist analysis that
    # meets them doesn't need to hydrate again.
    async def _related_for(self, seed_id: str) -> list[ArtistDTO]:
        cached = await self._cache.get_related(seed_id)
        if cached is not None:
            return cached

        raw = await self._client.get_related_artists(seed_id)
        related = [convert_artist(a) for a in raw if a and a.get("id")]
        await self._cache.cache_related(seed_id, related)
        await self._cache.cache_artists(related)
        return related


__all__ = ["RelatedArtistsService"]
