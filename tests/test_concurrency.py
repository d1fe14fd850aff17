"""Tests for batched dispatch of work units."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from src.shared.concurrency import BatchDispatcher, chunked


class TestChunked:
    """Test chunked() batch splitting."""

    def test_even_and_remainder(self):
        """The last batch holds the remainder."""
        assert chunked([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_empty(self):
        """No items gives no batches."""
        assert chunked([], 3) == []

    def test_invalid_size(self):
        """Batch size must be positive."""
        with pytest.raises(ValueError):
            chunked([1], 0)


class TestBatchDispatcher:
    """Test BatchDispatcher.run()."""

    @pytest.mark.asyncio
    async def test_results_in_item_order(self):
        """Results keep item order even when workers finish out of order."""
        async def worker(item):
            await asyncio.sleep(0.01 * (3 - item % 3))
            return item * 10

        dispatcher = BatchDispatcher(concurrency=3, batch_delay=0)
        assert await dispatcher.run([1, 2, 3, 4, 5], worker) == [10, 20, 30, 40, 50]

    @pytest.mark.asyncio
    async def test_concurrency_limit(self):
        """No more than `concurrency` workers run at once."""
        running = 0
        peak = 0

        async def worker(item):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return item

        await BatchDispatcher(concurrency=2, batch_delay=0).run(list(range(7)), worker)
        assert peak == 2

    @pytest.mark.asyncio
    async def test_on_batch_called_per_batch(self):
        """on_batch receives the batch number, total and results."""
        on_batch = AsyncMock()

        async def worker(item):
            return item

        await BatchDispatcher(concurrency=2, batch_delay=0).run([1, 2, 3], worker, on_batch=on_batch)

        assert [c.args for c in on_batch.await_args_list] == [(1, 2, [1, 2]), (2, 2, [3])]

    @pytest.mark.asyncio
    async def test_pause_between_batches_only(self):
        """The inter-batch delay is applied between batches, not after the last."""
        async def worker(item):
            return item

        with patch('src.shared.concurrency.async_pause', new_callable=AsyncMock) as pause:
            await BatchDispatcher(concurrency=1, batch_delay=1.5).run([1, 2, 3], worker)

        assert pause.await_count == 2
        assert pause.await_args_list[0].args[0] == 1.5
