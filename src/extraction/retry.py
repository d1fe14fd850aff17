"""Retry policies for resolving a work unit.

Two layers, composed rather than interleaved:

- ``SearchPolicy``: which (search term, result entry) pairs to try, in
  order, within one attempt. Rejections advance to the next pair.
- ``OuterRetryPolicy``: how many times a whole attempt is re-run when it
  ended in Error, and how long to back off in between. Valid and Not Found
  outcomes are never retried.
"""

import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Iterator, Tuple

from src.shared.constants import RETRY
from src.shared.delays import async_pause, backoff_delay
from src.shared.record_schema import ExtractionOutcome, Status, WorkUnit

__all__ = [
    'OuterRetryPolicy',
    'SearchAttempt',
    'SearchPolicy',
]


@dataclass(frozen=True)
class SearchAttempt:
    """A single (term, entry) combination."""

    search_term: str
    result_index: int


@dataclass(frozen=True)
class SearchPolicy:
    """Ordered search terms, each examined up to ``max_entries`` result entries."""

    terms: Tuple[str, ...]
    max_entries: int = RETRY.MAX_RESULT_ENTRIES

    def __post_init__(self):
        if not self.terms:
            raise ValueError('SearchPolicy needs at least one search term')
        if self.max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {self.max_entries}")

    def attempts(self) -> Iterator[SearchAttempt]:
        for term in self.terms:
            for index in range(self.max_entries):
                yield SearchAttempt(term, index)


@dataclass(frozen=True)
class OuterRetryPolicy:
    """Re-run a unit on Error with exponential backoff.

    Attributes:
        attempts: Total attempts (the first run included)
        backoff_base: Seconds; delay after attempt n is ``base * 2^(n-1)``
    """

    attempts: int = RETRY.OUTER_ATTEMPTS
    backoff_base: float = RETRY.BACKOFF_BASE_SECONDS

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {self.attempts}")

    def delay_after(self, attempt: int) -> float:
        return backoff_delay(attempt, self.backoff_base)

    async def run(
        self,
        unit: WorkUnit,
        resolve: Callable[[WorkUnit, int], Awaitable[ExtractionOutcome]],
        on_retry: Callable[[WorkUnit, int, ExtractionOutcome], None] = None
    ) -> ExtractionOutcome:
        """Resolve a unit, retrying only while it resolves to Error.

        Args:
            unit: Work unit to resolve
            resolve: Coroutine running one attempt (receives the attempt number)
            on_retry: Optional callback invoked before each retry

        Returns:
            The first non-Error outcome, or the last Error after all attempts
        """
        outcome = None
        for attempt in range(1, self.attempts + 1):
            outcome = await resolve(unit, attempt)
            outcome = replace(outcome, attempts=attempt)
            if outcome.status is not Status.ERROR:
                return outcome

            if attempt < self.attempts:
                delay = self.delay_after(attempt)
                logging.warning(
                    f"[{unit}] Attempt {attempt}/{self.attempts} failed: {outcome.error_detail}. "
                    f"Retrying in {delay:.1f}s"
                )
                if on_retry:
                    on_retry(unit, attempt, outcome)
                await async_pause(delay, reason='outer retry backoff')

        logging.error(f"[{unit}] All {self.attempts} attempts failed: {outcome.error_detail}")
        return outcome

