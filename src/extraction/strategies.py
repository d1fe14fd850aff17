"""Address locator strategies and the first-match combinator.

Each ``LocatorStrategy`` describes one way of reading address-bearing text
off a place panel: a selector, whether to read element text or an attribute,
and the length window a value must fall in. ``first_match`` walks an ordered
list of strategies and returns the first value accepted by a predicate.

The default strategy list is built from ``ADDRESS_LOCATORS`` in
config/maps_config.py so selectors can be updated without touching code.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from config import maps_config
from src.extraction.page import PageHandle
from src.shared.constants import VALIDATION
from src.shared.errors import AutomationError

__all__ = [
    'DEFAULT_STRATEGIES',
    'LocatorStrategy',
    'StrategyMatch',
    'build_strategies',
    'first_match',
    'read_strategy',
]


@dataclass(frozen=True)
class LocatorStrategy:
    """One ordered way of locating address text.

    Attributes:
        name: Identifier used in logs and outcomes
        selector: CSS selector (or ``xpath=`` selector)
        attribute: Attribute to read instead of element text (None = text)
        strip_prefix: Label removed from the start of the value (e.g. "Address:")
        min_length: Values must be longer than this
        max_length: Values must be shorter than this (None = unbounded)
    """

    name: str
    selector: str
    attribute: Optional[str] = None
    strip_prefix: Optional[str] = None
    min_length: int = VALIDATION.ADDRESS_MIN_LENGTH
    max_length: Optional[int] = None

    def fits(self, value: str) -> bool:
        if len(value) <= self.min_length:
            return False
        return self.max_length is None or len(value) < self.max_length

    def clean(self, value: Optional[str]) -> str:
        value = (value or '').strip()
        if self.strip_prefix and value.lower().startswith(self.strip_prefix.lower()):
            value = value[len(self.strip_prefix):].strip()
        return value


@dataclass(frozen=True)
class StrategyMatch:
    strategy: LocatorStrategy
    text: str


def build_strategies(table: Iterable[dict]) -> Tuple[LocatorStrategy, ...]:
    """Build strategy descriptors from a config table of dicts."""
    return tuple(LocatorStrategy(**entry) for entry in table)


DEFAULT_STRATEGIES = build_strategies(maps_config.ADDRESS_LOCATORS)


async def read_strategy(page: PageHandle, strategy: LocatorStrategy) -> List[str]:
    """Read every raw value a strategy locates on the page.

    Raises:
        AutomationError: If the page cannot evaluate the selector
    """
    if strategy.attribute:
        values = await page.all_attributes(strategy.selector, strategy.attribute)
    else:
        values = await page.all_texts(strategy.selector)
    return [strategy.clean(value) for value in values if value]


async def first_match(
    strategies: Sequence[LocatorStrategy],
    read: Callable[[LocatorStrategy], Awaitable[List[str]]],
    accept: Callable[[str], bool]
) -> Optional[StrategyMatch]:
    """Return the first accepted value across an ordered list of strategies.

    A strategy whose read fails is treated as a miss and the next one is tried.

    Args:
        strategies: Strategies in priority order
        read: Coroutine returning the cleaned values for one strategy
        accept: Predicate a value must satisfy (besides the length window)

    Returns:
        StrategyMatch for the first accepted value, or None
    """
    for strategy in strategies:
        try:
            values = await read(strategy)
        except AutomationError as e:
            logging.debug(f"Locator {strategy.name} failed: {e}")
            continue

        for value in values:
            if strategy.fits(value) and accept(value):
                return StrategyMatch(strategy=strategy, text=value)
    return None
