"""Shared utilities for the address extractor"""

from .logging_config import (
    setup_logging,
)

from .errors import (
    AutomationError,
    ConfigError,
    ExtractionError,
    NavigationError,
)

from .record_schema import (
    ERROR,
    HEADER,
    NOT_FOUND,
    ExtractionOutcome,
    Status,
    WorkUnit,
)

from .record_store import (
    RepairReport,
    initialize_shard_table,
    merge_shards,
    partition_range,
    repair,
    select_work_units,
    shard_output_path,
    upsert,
    upsert_many,
)

from .run_config import (
    RunConfig,
    ShardSelection,
    build_run_config,
    load_yaml_config,
    parse_target_states,
)

from .validation import (
    ValidationResult,
    is_valid_address,
    is_valid_address_line,
    is_valid_city,
    validate_address,
)

from .concurrency import (
    BatchDispatcher,
)

from .structured_logging import (
    OutcomeMetrics,
    StructuredLogger,
)

__all__ = [
    # Logging
    'setup_logging',
    'StructuredLogger',
    'OutcomeMetrics',
    # Errors
    'AutomationError',
    'ConfigError',
    'ExtractionError',
    'NavigationError',
    # Schema
    'ERROR',
    'HEADER',
    'NOT_FOUND',
    'ExtractionOutcome',
    'Status',
    'WorkUnit',
    # Record store
    'RepairReport',
    'initialize_shard_table',
    'merge_shards',
    'partition_range',
    'repair',
    'select_work_units',
    'shard_output_path',
    'upsert',
    'upsert_many',
    # Configuration
    'RunConfig',
    'ShardSelection',
    'build_run_config',
    'load_yaml_config',
    'parse_target_states',
    # Validation
    'ValidationResult',
    'is_valid_address',
    'is_valid_address_line',
    'is_valid_city',
    'validate_address',
    # Concurrency
    'BatchDispatcher',
]
