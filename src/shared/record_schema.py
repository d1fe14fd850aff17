"""
Record Schema - Canonical row layout and outcome types for extraction runs.

This module defines the persisted table header, the sentinel values written
for unresolved units, and the immutable value types passed between the record
store and the extraction pipeline.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple


__all__ = [
    'ERROR',
    'HEADER',
    'NOT_FOUND',
    'SENTINELS',
    'ExtractionOutcome',
    'Status',
    'WorkUnit',
]


# =============================================================================
# TABLE LAYOUT
# =============================================================================

HEADER: List[str] = ['zipcode', 'state', 'address', 'city']

NOT_FOUND = 'Not Found'
ERROR = 'Error'
SENTINELS = frozenset({NOT_FOUND, ERROR})


class Status(str, Enum):
    """Terminal classification of a work unit."""
    VALID = 'valid'
    NOT_FOUND = 'not_found'
    ERROR = 'error'


# =============================================================================
# VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class WorkUnit:
    """One (zipcode, state) pair to resolve.

    The pair is the identity key of a row in every table.
    """

    zipcode: str
    state: str

    @property
    def key(self) -> Tuple[str, str]:
        return (self.zipcode, self.state)

    def __str__(self) -> str:
        return f"{self.zipcode}/{self.state}"


@dataclass(frozen=True)
class ExtractionOutcome:
    """Terminal result for one work unit.

    ``address_line`` and ``city`` hold the sentinel values when the status is
    not VALID. ``attempts`` counts outer attempts consumed and ``search_term``
    records which term produced a valid hit.
    """

    zipcode: str
    state: str
    address_line: str
    city: str
    status: Status
    error_detail: Optional[str] = None
    attempts: int = 1
    search_term: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.zipcode, self.state)

    @classmethod
    def valid(cls, unit: WorkUnit, address_line: str, city: str,
              search_term: Optional[str] = None) -> 'ExtractionOutcome':
        return cls(unit.zipcode, unit.state, address_line, city, Status.VALID,
                   search_term=search_term)

    @classmethod
    def not_found(cls, unit: WorkUnit) -> 'ExtractionOutcome':
        return cls(unit.zipcode, unit.state, NOT_FOUND, NOT_FOUND, Status.NOT_FOUND)

    @classmethod
    def error(cls, unit: WorkUnit, detail: str) -> 'ExtractionOutcome':
        return cls(unit.zipcode, unit.state, ERROR, ERROR, Status.ERROR,
                   error_detail=detail)

    def to_row(self) -> List[str]:
        """Return the persisted (zipcode, state, address, city) row."""
        return [self.zipcode, self.state, self.address_line, self.city]
