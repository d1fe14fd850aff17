"""Run configuration for a single shard run.

Settings are merged from four layers, highest priority first:

1. CLI overrides (explicit flags)
2. Environment variables (SHARD_INDEX, TOTAL_SHARDS, MAX_RECORDS_PER_SHARD,
   TARGET_STATE, CI)
3. config/extractor.yaml (``run:`` section and ``profiles:``)
4. Defaults in src/shared/constants.py

The result is an immutable ``RunConfig`` that is passed explicitly to every
component; nothing reads a module-level target-state setting.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

import yaml

from config import maps_config
from src.shared.constants import BATCH, BROWSER, LOGGING, RETRY, SHARD, TABLE
from src.shared.errors import ConfigError

__all__ = [
    'DEFAULT_CONFIG_PATH',
    'RunConfig',
    'ShardSelection',
    'build_run_config',
    'env_flag',
    'load_yaml_config',
    'parse_target_states',
    'resolve_search_terms',
    'validate_config',
]


DEFAULT_CONFIG_PATH = 'config/extractor.yaml'

ALL_STATES = 'ALL'

# Numeric run keys and the minimum value each accepts
NUMERIC_RUN_KEYS = {
    'concurrency': 1,
    'batch_delay': 0,
    'save_interval': 1,
    'navigation_timeout_ms': 1,
    'results_wait_ms': 1,
    'retries': 1,
    'backoff_base': 0,
    'max_results': 1,
}


def parse_target_states(value: Optional[str]) -> Optional[FrozenSet[str]]:
    """Parse a target-state selector.

    Args:
        value: ``ALL``, a single state code (``CA``) or a comma-joined set
            (``CA,NY``). Empty or None means ALL.

    Returns:
        Frozen set of uppercase state codes, or None for no filter
    """
    if value is None:
        return None
    states = [s.strip().upper() for s in str(value).split(',') if s.strip()]
    if not states or ALL_STATES in states:
        return None
    return frozenset(states)


def env_flag(value: Optional[str]) -> bool:
    """Interpret an environment variable as a boolean flag."""
    return str(value or '').strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(environ: Mapping[str, str], name: str) -> Optional[int]:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class ShardSelection:
    """Which pending rows of the master table this shard owns.

    Attributes:
        target_states: State codes to keep, or None for all states
        shard_index: Zero-based index of this shard
        total_shards: Number of shards the pending rows are split into
        max_per_shard: Cap on units taken from this shard's range (None = no cap)
        include_sentinels: Treat rows holding "Not Found"/"Error" as pending
    """

    target_states: Optional[FrozenSet[str]] = None
    shard_index: int = SHARD.SHARD_INDEX
    total_shards: int = SHARD.TOTAL_SHARDS
    max_per_shard: Optional[int] = SHARD.MAX_RECORDS_PER_SHARD
    include_sentinels: bool = False

    def __post_init__(self):
        if self.total_shards < 1:
            raise ConfigError(f"total_shards must be at least 1, got {self.total_shards}")
        if not 0 <= self.shard_index < self.total_shards:
            raise ConfigError(
                f"shard_index {self.shard_index} out of range for {self.total_shards} shard(s)"
            )
        if self.max_per_shard is not None and self.max_per_shard < 0:
            raise ConfigError(f"max_per_shard must be non-negative, got {self.max_per_shard}")

    def matches_state(self, state: str) -> bool:
        return self.target_states is None or state.strip().upper() in self.target_states

    def describe(self) -> str:
        states = ALL_STATES if self.target_states is None else ','.join(sorted(self.target_states))
        return f"shard {self.shard_index + 1}/{self.total_shards}, states={states}"


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for one shard run."""

    selection: ShardSelection = field(default_factory=ShardSelection)
    master_table: str = TABLE.MASTER_TABLE
    output_dir: str = TABLE.OUTPUT_DIR

    concurrency: int = BATCH.CONCURRENCY
    batch_delay: float = BATCH.BATCH_DELAY_SECONDS
    save_interval: int = BATCH.SAVE_INTERVAL

    headless: bool = BROWSER.HEADLESS
    navigation_timeout_ms: int = BROWSER.NAVIGATION_TIMEOUT_MS
    results_wait_ms: int = BROWSER.RESULTS_WAIT_MS

    retries: int = RETRY.OUTER_ATTEMPTS
    backoff_base: float = RETRY.BACKOFF_BASE_SECONDS
    max_results: int = RETRY.MAX_RESULT_ENTRIES
    profile: str = maps_config.DEFAULT_PROFILE
    search_terms: Tuple[str, ...] = tuple(maps_config.SEARCH_PROFILES[maps_config.DEFAULT_PROFILE])

    ci: bool = False
    resume: bool = False
    log_file: str = LOGGING.LOG_FILE
    diagnostics_dir: Optional[str] = None
    screenshot_on_error: bool = False


def load_yaml_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load the YAML run configuration.

    Args:
        config_path: Path to extractor.yaml

    Returns:
        Parsed configuration dict; empty if the file does not exist

    Raises:
        ConfigError: If the file is not valid YAML or not a mapping
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logging.warning(f"Config file not found: {config_path}, using defaults")
        return {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ConfigError(f"{config_path}: configuration must be a dictionary")
    return config


def validate_config(config: Dict[str, Any]) -> List[str]:
    """Check a loaded configuration for common mistakes.

    Args:
        config: Parsed extractor.yaml contents

    Returns:
        List of validation errors (empty if config is valid)
    """
    errors = []

    run = config.get('run', {})
    if not isinstance(run, dict):
        return ["'run' section must be a dictionary"]

    for key, minimum in NUMERIC_RUN_KEYS.items():
        if key in run:
            value = run[key]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value < minimum:
                errors.append(f"run.{key} must be a number >= {minimum}")

    profiles = config.get('profiles', {})
    if not isinstance(profiles, dict):
        errors.append("'profiles' must be a dictionary of term lists")
        profiles = {}
    for name, terms in profiles.items():
        if not isinstance(terms, list) or not terms or not all(isinstance(t, str) and t.strip() for t in terms):
            errors.append(f"Profile '{name}': must be a non-empty list of search terms")

    default_profile = config.get('default_profile')
    if default_profile is not None:
        known = set(maps_config.SEARCH_PROFILES) | set(profiles)
        if default_profile not in known:
            errors.append(f"Unknown default_profile '{default_profile}'")

    return errors


def resolve_search_terms(profile: str, config: Optional[Dict[str, Any]] = None) -> Tuple[str, ...]:
    """Return the ordered search terms for a profile name.

    YAML profiles take precedence over the built-in ones in maps_config.

    Raises:
        ConfigError: If the profile is unknown
    """
    profiles = dict(maps_config.SEARCH_PROFILES)
    profiles.update((config or {}).get('profiles') or {})
    if profile not in profiles:
        raise ConfigError(
            f"Unknown search profile '{profile}'. Available: {', '.join(sorted(profiles))}"
        )
    return tuple(term.strip() for term in profiles[profile])


def build_run_config(
    config: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> RunConfig:
    """Merge YAML, environment and CLI settings into a RunConfig.

    Args:
        config: Parsed extractor.yaml (see ``load_yaml_config``)
        environ: Environment mapping (defaults to ``os.environ``)
        overrides: CLI values; keys set to None are ignored

    Returns:
        Immutable RunConfig

    Raises:
        ConfigError: On invalid environment values or shard bounds
    """
    config = config or {}
    environ = os.environ if environ is None else environ
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    run = dict(config.get('run') or {})

    def pick(key: str, env_value: Any = None, default: Any = None) -> Any:
        if key in overrides:
            return overrides[key]
        if env_value is not None:
            return env_value
        return run.get(key, default)

    ci = env_flag(environ.get('CI'))

    max_records = pick('max_per_shard', _env_int(environ, 'MAX_RECORDS_PER_SHARD'),
                       SHARD.MAX_RECORDS_PER_SHARD)
    if max_records is not None and max_records <= 0:
        max_records = None

    selection = ShardSelection(
        target_states=parse_target_states(
            pick('target_state', environ.get('TARGET_STATE'), SHARD.TARGET_STATE)
        ),
        shard_index=pick('shard_index', _env_int(environ, 'SHARD_INDEX'), SHARD.SHARD_INDEX),
        total_shards=pick('total_shards', _env_int(environ, 'TOTAL_SHARDS'), SHARD.TOTAL_SHARDS),
        max_per_shard=max_records,
        include_sentinels=bool(overrides.get('retry_failed', False)),
    )

    profile = pick('profile', None, config.get('default_profile') or maps_config.DEFAULT_PROFILE)
    search_terms = resolve_search_terms(profile, config)

    headless = pick('headless', None, BROWSER.HEADLESS)
    if ci:
        headless = True

    return RunConfig(
        selection=selection,
        master_table=pick('master_table', None, TABLE.MASTER_TABLE),
        output_dir=pick('output_dir', None, TABLE.OUTPUT_DIR),
        concurrency=int(pick('concurrency', None, BATCH.CONCURRENCY)),
        batch_delay=float(pick('batch_delay', None, BATCH.BATCH_DELAY_SECONDS)),
        save_interval=int(pick('save_interval', None, BATCH.SAVE_INTERVAL)),
        headless=bool(headless),
        navigation_timeout_ms=int(pick('navigation_timeout_ms', None, BROWSER.NAVIGATION_TIMEOUT_MS)),
        results_wait_ms=int(pick('results_wait_ms', None, BROWSER.RESULTS_WAIT_MS)),
        retries=int(pick('retries', None, RETRY.OUTER_ATTEMPTS)),
        backoff_base=float(pick('backoff_base', None, RETRY.BACKOFF_BASE_SECONDS)),
        max_results=int(pick('max_results', None, RETRY.MAX_RESULT_ENTRIES)),
        profile=profile,
        search_terms=search_terms,
        ci=ci,
        resume=bool(overrides.get('resume', False)),
        log_file=pick('log_file', None, LOGGING.LOG_FILE),
        diagnostics_dir=pick('diagnostics_dir', None, None),
        screenshot_on_error=bool(pick('screenshot_on_error', None, False)),
    )
