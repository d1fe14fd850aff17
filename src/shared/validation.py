"""Address validation heuristics.

This module classifies extracted (street line, city) pairs as plausible
postal addresses. The rules are kept as module-level pattern tables so they
can be tuned, swapped or tested on their own as the map page's text layout
drifts:

- STREET_SUFFIXES: tokens that must appear in a street line
- IMPROPER_ADDRESS_PATTERNS: noise that disqualifies a street line
  (ratings, business nouns, opening hours)
- INVALID_CITY_PATTERNS: values that disqualify a city
"""

import re
from typing import List, Optional, Pattern, Tuple

from src.shared.constants import VALIDATION

__all__ = [
    'CITY_CHARSET_RE',
    'IMPROPER_ADDRESS_PATTERNS',
    'INVALID_CITY_PATTERNS',
    'STREET_SUFFIXES',
    'STREET_SUFFIX_RE',
    'ValidationResult',
    'is_valid_address',
    'is_valid_address_line',
    'is_valid_city',
    'looks_like_address',
    'validate_address',
]


STREET_SUFFIXES: Tuple[str, ...] = (
    'St', 'Street',
    'Ave', 'Avenue',
    'Rd', 'Road',
    'Dr', 'Drive',
    'Blvd', 'Boulevard',
    'Way',
    'Lane', 'Ln',
    'Ct', 'Court',
    'Pl', 'Place',
    'Cir', 'Circle',
    'Pkwy', 'Parkway',
    'Hwy', 'Highway',
)

STREET_SUFFIX_RE: Pattern[str] = re.compile(
    r'\b(?:' + '|'.join(STREET_SUFFIXES) + r')\b\.?',
    re.IGNORECASE,
)

# A digit followed, somewhere later, by a street suffix token
ADDRESS_SHAPE_RE: Pattern[str] = re.compile(
    r'\d.*?\b(?:' + '|'.join(STREET_SUFFIXES) + r')\b',
    re.IGNORECASE,
)

IMPROPER_ADDRESS_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ('rating', re.compile(r'\d+\.\d+\s*\(\d[\d,]*\)')),
    ('star rating', re.compile(r'\d+-star', re.IGNORECASE)),
    ('accommodation', re.compile(r'\b(?:hotel|inn|suites|motel|resort|lodge)\b', re.IGNORECASE)),
    ('business venue', re.compile(r'\b(?:restaurant|cafe|mall|center|plaza)\b', re.IGNORECASE)),
    ('fuel retail', re.compile(r'\b(?:gas station|convenience store)\b', re.IGNORECASE)),
    ('opening hours', re.compile(r'\bopen \d+|\bclosed\b|\bhours\b', re.IGNORECASE)),
    ('sentinel', re.compile(r'^(?:not found|error)$', re.IGNORECASE)),
)

CITY_CHARSET_RE: Pattern[str] = re.compile(r"^[A-Za-z\s'.\-]+$")

INVALID_CITY_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ('sentinel', re.compile(r'^(?:unknown|n/a|null|undefined|not found|error)$', re.IGNORECASE)),
    ('all digits', re.compile(r'^\d+$')),
    ('no letters', re.compile(r'^[^A-Za-z]*$')),
    ('zip code', re.compile(r'\d{5}')),
    ('business noun', re.compile(r'\b(?:gas|station|store|shop|mart|center|plaza)\b', re.IGNORECASE)),
    ('opening hours', re.compile(r'\b(?:open|closed|hours)\b|24/7', re.IGNORECASE)),
    ('rating', re.compile(r'rating|\d+\.\d+', re.IGNORECASE)),
)


class ValidationResult:
    """Result of address validation.

    Attributes:
        is_valid: True if validation passed (no errors)
        errors: List of error messages
        warnings: List of warning messages
    """

    def __init__(self, is_valid: bool, errors: List[str], warnings: List[str]):
        self.is_valid = is_valid
        self.errors = errors
        self.warnings = warnings

    def __repr__(self) -> str:
        return f"ValidationResult(is_valid={self.is_valid}, errors={len(self.errors)}, warnings={len(self.warnings)})"


def looks_like_address(text: Optional[str]) -> bool:
    """Return True if text contains a digit followed by a street suffix."""
    if not text:
        return False
    return ADDRESS_SHAPE_RE.search(text) is not None


def _address_line_errors(line: Optional[str]) -> List[str]:
    if not line or not line.strip():
        return ['Address line is empty']

    errors = []
    if not re.search(r'\d', line):
        errors.append('Address line has no street number')
    if not STREET_SUFFIX_RE.search(line):
        errors.append('Address line has no street suffix')
    for name, pattern in IMPROPER_ADDRESS_PATTERNS:
        if pattern.search(line):
            errors.append(f"Address line contains {name} text")
    return errors


def _city_errors(city: Optional[str]) -> List[str]:
    if not city or not city.strip():
        return ['City is empty']

    city = city.strip()
    errors = []
    if not VALIDATION.CITY_MIN_LENGTH <= len(city) <= VALIDATION.CITY_MAX_LENGTH:
        errors.append(
            f"City length {len(city)} outside "
            f"{VALIDATION.CITY_MIN_LENGTH}-{VALIDATION.CITY_MAX_LENGTH}"
        )
    if not CITY_CHARSET_RE.match(city):
        errors.append('City contains characters other than letters, spaces and punctuation')
    if not city[0].isalpha():
        errors.append('City does not start with a letter')
    for name, pattern in INVALID_CITY_PATTERNS:
        if pattern.search(city):
            errors.append(f"City matches {name} pattern")
    return errors


def is_valid_address_line(line: Optional[str]) -> bool:
    """Return True if line has a street number, a street suffix and no noise."""
    return not _address_line_errors(line)


def is_valid_city(city: Optional[str]) -> bool:
    """Return True if city looks like a real place name."""
    return not _city_errors(city)


def is_valid_address(line: Optional[str], city: Optional[str]) -> bool:
    """Return True when both the street line and the city are valid."""
    return is_valid_address_line(line) and is_valid_city(city)


def validate_address(line: Optional[str], city: Optional[str]) -> ValidationResult:
    """Validate a street line and city, collecting every failed rule.

    Args:
        line: Extracted street line
        city: Extracted city

    Returns:
        ValidationResult with is_valid status, errors list, and warnings list
    """
    errors = _address_line_errors(line) + _city_errors(city)
    warnings = []

    if line and len(line) > VALIDATION.BROAD_MAX_LENGTH:
        warnings.append(f"Address line unusually long ({len(line)} chars)")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings
    )
