"""Centralized constants for the ZIP code address extractor.

This module provides frozen dataclass-based configuration groups for all
magic numbers used throughout the codebase. Using dataclasses provides:
- Type safety and IDE autocompletion
- Immutability (frozen=True prevents accidental modification)
- Grouped related constants logically

Usage:
    from src.shared.constants import BROWSER, RETRY, BATCH

    timeout = BROWSER.NAVIGATION_TIMEOUT_MS
    attempts = RETRY.OUTER_ATTEMPTS
    size = BATCH.CONCURRENCY
"""

from dataclasses import dataclass

__all__ = [
    'BATCH',
    'BatchDefaults',
    'BROWSER',
    'BrowserDefaults',
    'LOGGING',
    'LoggingDefaults',
    'RETRY',
    'RetryDefaults',
    'SHARD',
    'ShardDefaults',
    'TABLE',
    'TableDefaults',
    'VALIDATION',
    'ValidationDefaults',
]


@dataclass(frozen=True)
class BrowserDefaults:
    """Browser automation timeouts and session settings.

    All timeouts are in milliseconds, matching the automation library's units.
    They can be overridden in config/extractor.yaml.
    """

    NAVIGATION_TIMEOUT_MS: int = 45000
    """Timeout for page navigation."""

    RESULTS_WAIT_MS: int = 20000
    """Bounded wait for any result-list selector to appear."""

    CONSENT_VISIBLE_MS: int = 5000
    """How long to wait for a cookie consent button to become visible."""

    SETTLE_MS: int = 3000
    """Pause after clicking a result entry so the place panel can render."""

    BACK_SETTLE_MS: int = 2000
    """Pause after navigating back to the result list."""

    ELEMENT_TIMEOUT_MS: int = 5000
    """Timeout for a single element action (click, read)."""

    HEADLESS: bool = True
    """Run the browser without a visible window."""


@dataclass(frozen=True)
class RetryDefaults:
    """Retry policy bounds for the two retry layers.

    The search policy walks search terms and result entries; the outer policy
    re-runs a whole unit when it resolved to an error.
    """

    OUTER_ATTEMPTS: int = 2
    """Total attempts per unit when it resolves to an error."""

    BACKOFF_BASE_SECONDS: float = 2.0
    """Base delay for exponential backoff between outer attempts."""

    MAX_RESULT_ENTRIES: int = 3
    """Number of result entries examined per search term."""


@dataclass(frozen=True)
class BatchDefaults:
    """Batch dispatch settings for a single shard."""

    CONCURRENCY: int = 5
    """Units processed concurrently in one batch."""

    BATCH_DELAY_SECONDS: float = 1.0
    """Pause between consecutive batches."""

    SAVE_INTERVAL: int = 50
    """Persist outcomes every N batches (and always after the final batch)."""

    PROGRESS_INTERVAL: int = 10
    """Log progress every N batches."""


@dataclass(frozen=True)
class ShardDefaults:
    """Sharding defaults read when the environment does not provide values."""

    SHARD_INDEX: int = 0
    TOTAL_SHARDS: int = 1
    MAX_RECORDS_PER_SHARD: int = 1000
    TARGET_STATE: str = 'ALL'


@dataclass(frozen=True)
class TableDefaults:
    """Tabular file layout defaults."""

    MASTER_TABLE: str = 'data/FinalZipcodeState.csv'
    """Master table of (zipcode, state) pairs."""

    OUTPUT_DIR: str = 'data'
    """Directory for per-shard output tables."""

    FIELD_COUNT: int = 4
    """Number of fields every persisted row must have."""

    SHARD_SUFFIX: str = '_shard_'
    MERGED_SUFFIX: str = '_merged'


@dataclass(frozen=True)
class LoggingDefaults:
    """Logging configuration defaults."""

    LOG_FILE: str = 'logs/extractor.log'
    MAX_BYTES: int = 10 * 1024 * 1024
    """Maximum log file size before rotation (10MB)."""

    BACKUP_COUNT: int = 5
    """Number of rotated log files to keep."""

    FAILED_PREVIEW_COUNT: int = 10
    """How many failed units to list individually in the run summary."""


@dataclass(frozen=True)
class ValidationDefaults:
    """Length windows used by address and city heuristics."""

    CITY_MIN_LENGTH: int = 2
    CITY_MAX_LENGTH: int = 50

    ADDRESS_MIN_LENGTH: int = 10
    """Minimum text length for a targeted locator to count as an address."""

    BROAD_MIN_LENGTH: int = 15
    BROAD_MAX_LENGTH: int = 200
    """Length window for the broad text-scan fallback locator."""


BROWSER = BrowserDefaults()
RETRY = RetryDefaults()
BATCH = BatchDefaults()
SHARD = ShardDefaults()
TABLE = TableDefaults()
LOGGING = LoggingDefaults()
VALIDATION = ValidationDefaults()
