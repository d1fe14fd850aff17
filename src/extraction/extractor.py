"""Extract an address candidate from a loaded place panel."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from src.extraction.page import PageHandle
from src.extraction.parser import extract_region, parse_address
from src.extraction.strategies import DEFAULT_STRATEGIES, LocatorStrategy, first_match, read_strategy
from src.extraction.text import normalize
from src.shared.validation import looks_like_address

__all__ = [
    'AddressCandidate',
    'extract_from_loaded_result',
]


@dataclass(frozen=True)
class AddressCandidate:
    """Address text read from one result entry, parsed but not yet validated.

    Attributes:
        raw_text: Value as read from the page
        text: Normalized value
        street_line: Parsed street line
        city: Parsed city
        strategy: Name of the locator strategy that produced the text
        region: (state, zipcode) embedded in the text, when parseable
    """

    raw_text: str
    text: str
    street_line: str
    city: str
    strategy: str
    region: Optional[Tuple[str, str]] = None


async def extract_from_loaded_result(
    page: PageHandle,
    strategies: Sequence[LocatorStrategy] = DEFAULT_STRATEGIES
) -> Optional[AddressCandidate]:
    """Try each locator strategy in order and parse the first address-like text.

    Args:
        page: Page showing an opened result entry
        strategies: Locator strategies in priority order

    Returns:
        AddressCandidate, or None if no strategy found address-like text
    """
    match = await first_match(
        strategies,
        lambda strategy: read_strategy(page, strategy),
        lambda value: looks_like_address(normalize(value)),
    )
    if match is None:
        return None

    text = normalize(match.text)
    parsed = parse_address(text)
    logging.debug(f"Locator {match.strategy.name} matched: {text}")
    return AddressCandidate(
        raw_text=match.text,
        text=text,
        street_line=parsed.street_line,
        city=parsed.city,
        strategy=match.strategy.name,
        region=extract_region(text),
    )
