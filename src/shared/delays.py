"""Delay and backoff utilities for rate limiting.

This module provides the backoff schedule used between outer retry attempts
and an async pause used between batches so the map site is not flooded.
"""

import asyncio
import logging

from src.shared.constants import BATCH, RETRY

__all__ = [
    'DEFAULT_BACKOFF_BASE',
    'DEFAULT_BATCH_DELAY',
    'async_pause',
    'backoff_delay',
]


DEFAULT_BACKOFF_BASE = RETRY.BACKOFF_BASE_SECONDS
DEFAULT_BATCH_DELAY = BATCH.BATCH_DELAY_SECONDS


def backoff_delay(attempt: int, base: float = None) -> float:
    """Exponential backoff delay after a failed attempt.

    Args:
        attempt: Failed attempt number (1-indexed)
        base: Base delay in seconds (uses default if None)

    Returns:
        Delay in seconds: ``base * 2^(attempt-1)``

    Examples:
        >>> backoff_delay(1, 2.0)
        2.0
        >>> backoff_delay(3, 2.0)
        8.0
    """
    base = base if base is not None else DEFAULT_BACKOFF_BASE
    return base * (2 ** max(attempt - 1, 0))


async def async_pause(seconds: float, reason: str = '') -> None:
    """Sleep without blocking the event loop.

    Args:
        seconds: Pause length; values <= 0 return immediately
        reason: Optional label for the debug log line
    """
    if seconds <= 0:
        return
    logging.debug(f"Pausing {seconds:.2f}s{' (' + reason + ')' if reason else ''}")
    await asyncio.sleep(seconds)
