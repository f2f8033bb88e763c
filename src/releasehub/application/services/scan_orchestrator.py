"""Parallel scan orchestrator.

Hey future me - this runs the per-artist release fetch for a list of artists:

    [a1 a2 a3 a4 a5] → gather → dedup → progress
    [a6 a7 a8 a9 a10] → gather → dedup → progress
    ...

Batches are STRICTLY sequential, inside a batch everything runs concurrently. gather() with
return_exceptions=True means one broken artist never cancels its siblings: it gets logged,
lands in failed_artist_ids and the scan goes on. The rate gate still caps total throughput,
so a bigger batch size only means more tasks waiting at the gate, not more requests/second.

Order inside a batch is whatever completes first - the final sort by release date is what
callers see, not completion order.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from releasehub.application.services.progress import emit_progress
from releasehub.domain.dtos import ArtistDTO, ReleaseDTO
from releasehub.domain.ports import IClock, ProgressCallback

logger = logging.getLogger(__name__)

ArtistFetch = Callable[[ArtistDTO], Awaitable[list[ReleaseDTO]]]


def format_eta(seconds: float) -> str:
    """Human-friendly remaining time ("45s", "3m 20s")."""
    seconds = max(0, int(round(seconds)))
    if seconds < 60:
        return f"{seconds}s"
    minutes, rest = divmod(seconds, 60)
    return f"{minutes}m {rest}s" if rest else f"{minutes}m"


class ParallelScanOrchestrator:
    """Fetch releases for many artists in fixed-size concurrent batches."""

    def __init__(self, clock: IClock, batch_size: int = 5) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self._clock = clock
        self.batch_size = batch_size

    async def run(
        self,
        artists: list[ArtistDTO],
        fetch: ArtistFetch,
        progress: ProgressCallback | None = None,
    ) -> tuple[list[ReleaseDTO], list[str]]:
        """Scan all artists.

        Args:
            artists: Artists to scan, in order
            fetch: Per-artist release fetch
            progress: Optional progress sink (one update per finished batch)

        Returns:
            (deduplicated releases sorted newest first, ids of artists whose fetch failed)
        """
        total = len(artists)
        seen_ids: set[str] = set()
        releases: list[ReleaseDTO] = []
        failed_ids: list[str] = []
        started = self._clock.monotonic()

        for start in range(0, total, self.batch_size):
            batch = artists[start : start + self.batch_size]
            outcomes = await asyncio.gather(
                *(fetch(artist) for artist in batch), return_exceptions=True
            )

            for artist, outcome in zip(batch, outcomes, strict=True):
                if isinstance(outcome, BaseException):
                    # CancelledError etc. are not "this artist failed" - let them through
                    if not isinstance(outcome, Exception):
                        raise outcome
                    logger.warning(
                        f"Release fetch failed for artist {artist.id} ({artist.name}): "
                        f"{type(outcome).__name__}: {outcome}"
                    )
                    failed_ids.append(artist.id)
                    continue

                for release in outcome:
                    if release.id in seen_ids:
                        continue
                    seen_ids.add(release.id)
                    releases.append(release)

            processed = start + len(batch)
            elapsed = self._clock.monotonic() - started
            remaining = (elapsed / processed) * (total - processed) if processed else 0.0
            names = ", ".join(artist.name for artist in batch)
            emit_progress(
                progress,
                processed,
                total,
                f"Checked {processed}/{total} artists ({names}) - "
                f"about {format_eta(remaining)} remaining",
            )

        # Day-precision dates are ISO strings, so string order == date order
        releases.sort(key=lambda r: r.release_date, reverse=True)
        return releases, failed_ids


__all__ = ["ArtistFetch", "ParallelScanOrchestrator", "format_eta"]
