"""Address text parsing.

Turns a normalized address blob such as ``"123 Main St, Springfield, IL 62704"``
into a street line and a city.
"""

import logging
import re
from typing import NamedTuple, Optional, Tuple

from src.extraction.text import normalize
from src.shared.validation import STREET_SUFFIXES

__all__ = [
    'ParsedAddress',
    'UNKNOWN_CITY',
    'extract_region',
    'parse_address',
]


UNKNOWN_CITY = 'Unknown'

# Trailing " IL 62704" (optionally "-1234" and anything after it)
STATE_ZIP_SUFFIX_RE = re.compile(r'\s+[A-Z]{2}\s+\d{5}.*$')

STATE_ZIP_RE = re.compile(r'^([A-Z]{2})\s+(\d{5})(?:-\d{4})?\b')

STREET_SPAN_RE = re.compile(
    r'\d+.*?\b(?:' + '|'.join(STREET_SUFFIXES) + r')\b\.?',
    re.IGNORECASE,
)


class ParsedAddress(NamedTuple):
    street_line: str
    city: str


def _strip_state_zip(segment: str) -> str:
    return STATE_ZIP_SUFFIX_RE.sub('', segment).strip()


def _parse(text: str) -> ParsedAddress:
    segments = [segment.strip() for segment in text.split(',')]

    if len(segments) >= 2:
        return ParsedAddress(segments[0], _strip_state_zip(segments[1]))

    match = STREET_SPAN_RE.search(text)
    if match:
        street_line = match.group(0).strip()
        remainder = text[match.end():].lstrip(' ,')
        city = _strip_state_zip(remainder.split(',')[0]) if remainder else ''
        return ParsedAddress(street_line, city or UNKNOWN_CITY)

    return ParsedAddress(text, UNKNOWN_CITY)


def parse_address(text: Optional[str]) -> ParsedAddress:
    """Split address text into (street_line, city).

    Comma-separated text uses the first segment as the street line and the
    second as the city, with any trailing state/ZIP stripped. Without commas,
    a "number ... street suffix" span is used as the street line.

    Never raises; on unexpected input the original text is returned as the
    street line with an unknown city.

    Args:
        text: Raw or normalized address text

    Returns:
        ParsedAddress(street_line, city)
    """
    try:
        return _parse(normalize(text))
    except Exception as e:  # pylint: disable=broad-except
        logging.debug(f"Address parse failed for {text!r}: {e}")
        return ParsedAddress(text if isinstance(text, str) else '', UNKNOWN_CITY)


def extract_region(text: Optional[str]) -> Optional[Tuple[str, str]]:
    """Return the (state, zipcode) pair embedded in a full address, if any.

    The pair is read from the third comma segment, e.g. ``"IL 62704"`` in
    ``"123 Main St, Springfield, IL 62704, United States"``.
    """
    segments = [segment.strip() for segment in normalize(text).split(',')]
    if len(segments) < 3:
        return None

    match = STATE_ZIP_RE.match(segments[2])
    if not match:
        return None
    return match.group(1), match.group(2)
