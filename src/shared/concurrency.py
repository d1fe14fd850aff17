"""Batch dispatch of work units within one shard.

Units are processed in fixed-size batches sized to the concurrency limit.
A batch is joined in full (``asyncio.gather``) before the next one starts,
with a short pause in between to rate-limit outbound searches.

Usage:
    from src.shared.concurrency import BatchDispatcher

    dispatcher = BatchDispatcher(concurrency=5, batch_delay=1.0)
    results = await dispatcher.run(units, resolve_unit, on_batch=save_progress)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

from src.shared.constants import BATCH
from src.shared.delays import async_pause

__all__ = [
    'BatchDispatcher',
    'chunked',
]


T = TypeVar('T')
R = TypeVar('R')


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive lists of at most ``size`` elements."""
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


@dataclass
class BatchDispatcher:
    """Run an async worker over items in joined batches.

    Attributes:
        concurrency: Items processed concurrently per batch
        batch_delay: Seconds to pause between batches
    """

    concurrency: int = BATCH.CONCURRENCY
    batch_delay: float = BATCH.BATCH_DELAY_SECONDS

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        on_batch: Optional[Callable[[int, int, List[R]], Awaitable[None]]] = None
    ) -> List[R]:
        """Process all items batch by batch.

        The worker must not raise; a raising worker aborts the run.

        Args:
            items: Items in processing order
            worker: Coroutine function resolving one item
            on_batch: Optional coroutine called after each batch with
                (batch_number, total_batches, batch_results)

        Returns:
            Results in item order
        """
        batches = chunked(items, self.concurrency)
        results: List[R] = []

        for number, batch in enumerate(batches, 1):
            logging.debug(f"Batch {number}/{len(batches)}: {len(batch)} items")
            batch_results = await asyncio.gather(*(worker(item) for item in batch))
            results.extend(batch_results)

            if on_batch is not None:
                await on_batch(number, len(batches), list(batch_results))

            if number < len(batches):
                await async_pause(self.batch_delay, reason='inter-batch delay')

        return results
