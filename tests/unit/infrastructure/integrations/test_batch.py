"""Tests for the batch resolver."""

import math

import pytest

from releasehub.domain.exceptions import ExternalServiceError
from releasehub.infrastructure.integrations.batch import chunked, for_each_batch, resolve_in_batches
from tests.conftest import FakeClock


class TestChunked:
    """Test chunk partitioning."""

    def test_consecutive_chunks(self) -> None:
        assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]

    def test_empty_input(self) -> None:
        assert list(chunked([], 50)) == []

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            list(chunked([1], 0))


class TestResolveInBatches:
    """Test keyed batch resolution."""

    @pytest.mark.parametrize("count", [1, 49, 50, 51, 120])
    async def test_one_call_per_chunk(self, count: int) -> None:
        """ceil(n/50) calls, one merged entry per returned ID."""
        ids = [f"id{i}" for i in range(count)]
        calls: list[list[str]] = []

        async def fetch(chunk: list[str]) -> dict[str, str]:
            calls.append(chunk)
            return {i: i.upper() for i in chunk}

        result = await resolve_in_batches(ids, 50, fetch)

        assert len(calls) == math.ceil(count / 50)
        assert all(len(c) <= 50 for c in calls)
        assert result == {i: i.upper() for i in ids}

    async def test_missing_ids_absent(self) -> None:
        """IDs the remote side doesn't return are not invented."""

        async def fetch(chunk: list[str]) -> dict[str, int]:
            return {i: 1 for i in chunk if i != "gone"}

        assert await resolve_in_batches(["a", "gone", "b"], 2, fetch) == {"a": 1, "b": 1}

    async def test_delay_between_chunks(self, clock: FakeClock) -> None:
        """The pause happens between chunks, not before the first."""

        async def fetch(chunk: list[str]) -> dict[str, int]:
            return {}

        await resolve_in_batches(["a", "b", "c"], 1, fetch, clock=clock, delay_seconds=2.0)

        assert clock.sleeps == [2.0, 2.0]


class TestForEachBatch:
    """Test side-effecting batches with partial failure."""

    async def test_failed_chunk_reported_not_raised(self, clock: FakeClock) -> None:
        """A failing chunk lands in the failed list; the rest carries on."""
        progress: list[int] = []

        async def action(chunk: list[str]) -> None:
            if "bad" in chunk:
                raise ExternalServiceError("nope", status_code=500)

        ok, failed = await for_each_batch(
            ["a", "b", "bad", "c", "d"], 2, action, on_progress=progress.append
        )

        assert ok == ["a", "b", "d"]
        assert failed == ["bad", "c"]
        assert progress == [2, 4, 5]

    async def test_unexpected_errors_propagate(self) -> None:
        """Only domain errors count as chunk failures."""

        async def action(chunk: list[str]) -> None:
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            await for_each_batch(["a"], 1, action)
