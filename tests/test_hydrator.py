"""Tests for bounded hydration."""

import asyncio

import pytest

from met_explorer.core.data_models import ResultCard
from met_explorer.core.generation import GenerationTracker
from met_explorer.core.hydrator import BoundedHydrator
from met_explorer.core.outcomes import FailureKind, MetApiError, CallFailure


def card(object_id: int) -> ResultCard:
    return ResultCard(object_id, f"Object {object_id}", "Artist", "Department")


class TestBoundedHydrator:
    """Tests for BoundedHydrator class."""

    def test_rejects_zero_concurrency(self):
        """Test that a worker pool of zero is refused."""
        with pytest.raises(ValueError):
            BoundedHydrator(lambda _: None, GenerationTracker(), concurrency=0)

    @pytest.mark.asyncio
    async def test_hydrate_rejects_zero_concurrency(self):
        """Test that a per-call limit of zero is refused."""

        async def fetch(object_id):
            return card(object_id)

        hydrator = BoundedHydrator(fetch, GenerationTracker())
        with pytest.raises(ValueError):
            await hydrator.hydrate([1], concurrency=0)

    @pytest.mark.asyncio
    async def test_empty_input(self):
        """Test that no identifiers give an empty, complete result."""

        async def fetch(object_id):
            raise AssertionError("should not fetch")

        result = await BoundedHydrator(fetch, GenerationTracker()).hydrate([])

        assert result.cards == []
        assert result.failed_count == 0

    @pytest.mark.asyncio
    async def test_input_order_survives_completion_order(self):
        """Test that cards follow input order, skipping failed items."""
        delays = {5: 0.03, 3: 0.01, 9: 0.0}
        completed = []

        async def fetch(object_id):
            await asyncio.sleep(delays[object_id])
            completed.append(object_id)
            if object_id == 3:
                raise MetApiError(CallFailure(FailureKind.TIMEOUT, "slow", True))
            return card(object_id)

        tracker = GenerationTracker()
        tracker.next()
        result = await BoundedHydrator(fetch, tracker, concurrency=3).hydrate([5, 3, 9])

        assert completed == [9, 3, 5]
        assert [c.object_id for c in result.cards] == [5, 9]
        assert result.failed_count == 1

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_the_rest(self):
        """Test that one unexpected error does not abort the batch."""

        async def fetch(object_id):
            if object_id == 2:
                raise RuntimeError("boom")
            return card(object_id)

        tracker = GenerationTracker()
        tracker.next()
        result = await BoundedHydrator(fetch, tracker).hydrate([1, 2, 3])

        assert [c.object_id for c in result.cards] == [1, 3]
        assert result.failed_count == 1
        assert result.is_partial

    @pytest.mark.asyncio
    async def test_none_counts_as_failure(self):
        """Test that a fetch returning None is a failed item."""

        async def fetch(object_id):
            return None

        tracker = GenerationTracker()
        tracker.next()
        result = await BoundedHydrator(fetch, tracker).hydrate([1, 2])

        assert result.cards == []
        assert result.failed_count == 2
        assert result.is_failed

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        """Test that no more than the limit of fetches run at once."""
        in_flight = 0
        peak = 0

        async def fetch(object_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.005)
            in_flight -= 1
            return card(object_id)

        tracker = GenerationTracker()
        tracker.next()
        result = await BoundedHydrator(fetch, tracker, concurrency=4).hydrate(list(range(20)))

        assert peak == 4
        assert len(result.cards) == 20

    @pytest.mark.asyncio
    async def test_small_batches_start_fewer_workers(self):
        """Test that a batch smaller than the limit uses one worker per item."""
        in_flight = 0
        peak = 0

        async def fetch(object_id):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.005)
            in_flight -= 1
            return card(object_id)

        tracker = GenerationTracker()
        tracker.next()
        await BoundedHydrator(fetch, tracker, concurrency=8).hydrate([1, 2])

        assert peak == 2

    @pytest.mark.asyncio
    async def test_superseded_token_stops_claiming_work(self):
        """Test that stale batches drop results and stop fetching."""
        tracker = GenerationTracker()
        token = tracker.next()
        fetched = []

        async def fetch(object_id):
            fetched.append(object_id)
            if object_id == 1:
                tracker.next()
            await asyncio.sleep(0)
            return card(object_id)

        result = await BoundedHydrator(fetch, tracker, concurrency=1).hydrate(
            [1, 2, 3], token=token
        )

        assert fetched == [1]
        assert result.cards == []
        assert result.failed_count == 0

    @pytest.mark.asyncio
    async def test_defaults_to_latest_token(self):
        """Test that omitting the token binds the batch to the latest one."""
        tracker = GenerationTracker()
        tracker.next()

        async def fetch(object_id):
            return card(object_id)

        result = await BoundedHydrator(fetch, tracker).hydrate([7])

        assert [c.object_id for c in result.cards] == [7]
