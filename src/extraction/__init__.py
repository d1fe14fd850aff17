"""Map-search address extraction pipeline"""

from .text import normalize
from .parser import ParsedAddress, extract_region, parse_address
from .strategies import DEFAULT_STRATEGIES, LocatorStrategy, first_match
from .extractor import AddressCandidate, extract_from_loaded_result
from .retry import OuterRetryPolicy, SearchAttempt, SearchPolicy
from .orchestrator import AddressOrchestrator

__all__ = [
    'AddressCandidate',
    'AddressOrchestrator',
    'DEFAULT_STRATEGIES',
    'LocatorStrategy',
    'OuterRetryPolicy',
    'ParsedAddress',
    'SearchAttempt',
    'SearchPolicy',
    'extract_from_loaded_result',
    'extract_region',
    'first_match',
    'normalize',
    'parse_address',
]
