"""Batch resolver: split ID lists into endpoint-sized chunks and merge the results."""

import logging
from collections.abc import Awaitable, Callable, Iterator, Sequence

from releasehub.domain.exceptions import DomainException
from releasehub.domain.ports import IClock

logger = logging.getLogger(__name__)


def chunked[T](items: Sequence[T], size: int) -> Iterator[list[T]]:
    """Yield consecutive chunks of at most `size` items, order preserved."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


# Hey future me - chunks run SEQUENTIALLY: every chunk call already passes the
# rate gate, and the follow endpoint additionally wants a pause between chunks (delay_seconds)
# so we don't walk straight back into a 429. Each chunk call goes through the RetryExecutor
# on its own, so one bad chunk doesn't retry the others.
async def resolve_in_batches[K, V](
    ids: Sequence[K],
    chunk_size: int,
    fetch_chunk: Callable[[list[K]], Awaitable[dict[K, V]]],
    clock: IClock | None = None,
    delay_seconds: float = 0.0,
) -> dict[K, V]:
    """Resolve IDs chunk by chunk and merge the keyed per-chunk results.

    Args:
        ids: IDs to resolve (caller deduplicates if needed)
        chunk_size: Maximum IDs per remote call
        fetch_chunk: Resolves one chunk into {id: value}
        clock: Needed when delay_seconds > 0
        delay_seconds: Pause between consecutive chunks (not before the first)

    Returns:
        Merged mapping. IDs the remote side didn't return are simply absent.
    """
    merged: dict[K, V] = {}
    for index, chunk in enumerate(chunked(ids, chunk_size)):
        if index > 0 and delay_seconds > 0 and clock is not None:
            await clock.sleep(delay_seconds)
        merged.update(await fetch_chunk(chunk))
    return merged


async def for_each_batch[K](
    ids: Sequence[K],
    chunk_size: int,
    action: Callable[[list[K]], Awaitable[None]],
    clock: IClock | None = None,
    delay_seconds: float = 0.0,
    on_progress: Callable[[int], None] | None = None,
) -> tuple[list[K], list[K]]:
    """Run a side-effecting action per chunk, collecting per-chunk success/failure.

    A failing chunk is NOT retried here (the executor already did that) - all its IDs
    land in the failed list and we carry on with the next chunk.

    Args:
        on_progress: Called after every chunk with the number of IDs processed so far

    Returns:
        (succeeded_ids, failed_ids)
    """
    succeeded: list[K] = []
    failed: list[K] = []
    for index, chunk in enumerate(chunked(ids, chunk_size)):
        if index > 0 and delay_seconds > 0 and clock is not None:
            await clock.sleep(delay_seconds)
        try:
            await action(chunk)
        except DomainException as e:
            logger.warning(
                f"Batch of {len(chunk)} failed: {type(e).__name__}: {e.message}"
            )
            failed.extend(chunk)
        else:
            succeeded.extend(chunk)
        if on_progress is not None:
            on_progress(len(succeeded) + len(failed))
    return succeeded, failed


__all__ = ["chunked", "for_each_batch", "resolve_in_batches"]
