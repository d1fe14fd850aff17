#!/usr/bin/env python3
"""
CLI for the ZIP Code Address Extractor

Usage:
    python run.py                                  # Run shard from env (SHARD_INDEX/TOTAL_SHARDS)
    python run.py --state CA                       # Only California rows
    python run.py --shard-index 1 --total-shards 4 # Second of four shards
    python run.py --profile gas_station            # Single-term search profile
    python run.py --resume                         # Skip rows already resolved in the shard output
    python run.py --retry-failed                   # Re-process "Not Found"/"Error" rows
    python run.py --status --total-shards 4        # Show progress of every shard output
    python run.py --merge --total-shards 4         # Merge shard outputs into one table
    python run.py --replay-html page.html --zipcode 10001 --state NY
"""

import argparse
import asyncio
import logging
import signal
import sys
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from src.extraction.browser import BrowserSession
from src.extraction.orchestrator import AddressOrchestrator
from src.extraction.page import HtmlSnapshotPage
from src.extraction.retry import OuterRetryPolicy, SearchPolicy
from src.extraction.runner import ShardResult, ShardRunner
from src.shared.errors import ConfigError
from src.shared.logging_config import setup_logging
from src.shared.record_schema import ExtractionOutcome, WorkUnit
from src.shared.record_store import merge_shards, merged_output_path, shard_output_path
from src.shared.run_config import (
    DEFAULT_CONFIG_PATH,
    RunConfig,
    build_run_config,
    load_yaml_config,
    validate_config,
)
from src.shared.status import format_summary, get_shard_status, get_table_status
from src.shared.structured_logging import Phase, StructuredLogger


# Valid US state abbreviations (50 states + DC)
VALID_STATE_ABBREVS = frozenset({
    'AL', 'AK', 'AZ', 'AR', 'CA', 'CO', 'CT', 'DE', 'DC', 'FL',
    'GA', 'HI', 'ID', 'IL', 'IN', 'IA', 'KS', 'KY', 'LA', 'ME',
    'MD', 'MA', 'MI', 'MN', 'MS', 'MO', 'MT', 'NE', 'NV', 'NH',
    'NJ', 'NM', 'NY', 'NC', 'ND', 'OH', 'OK', 'OR', 'PA', 'RI',
    'SC', 'SD', 'TN', 'TX', 'UT', 'VT', 'VA', 'WA', 'WV', 'WI', 'WY'
})

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_UNITS_FAILED = 2
EXIT_INTERRUPTED = 130


def validate_states(states_str: str) -> Optional[str]:
    """Validate a target-state selector.

    Args:
        states_str: ``ALL`` or comma-separated state abbreviations (e.g., "CA,NY")

    Returns:
        Normalized selector string, or None if empty

    Raises:
        argparse.ArgumentTypeError: If any state abbreviation is invalid
    """
    if not states_str:
        return None

    states = [s.strip().upper() for s in states_str.split(',') if s.strip()]
    if not states:
        return None
    if states == ['ALL']:
        return 'ALL'

    invalid = [s for s in states if s not in VALID_STATE_ABBREVS]
    if invalid:
        raise argparse.ArgumentTypeError(
            f"Invalid state abbreviation(s): {', '.join(invalid)}. "
            f"Use ALL or standard 2-letter US state codes (e.g., CA, NY, DC)."
        )

    return ','.join(states)


def validate_config_on_startup(config_path: str = DEFAULT_CONFIG_PATH) -> List[str]:
    """Validate the YAML configuration file on startup.

    Returns:
        List of validation errors (empty if config is valid)
    """
    try:
        config = load_yaml_config(config_path)
    except ConfigError as e:
        return [str(e)]
    return validate_config(config)


def setup_parser() -> argparse.ArgumentParser:
    """Setup command line argument parser"""
    parser = argparse.ArgumentParser(
        description="ZIP Code Address Extractor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    # Commands
    command_group = parser.add_mutually_exclusive_group()
    command_group.add_argument('--status', action='store_true', help='Show progress of master or shard tables')
    command_group.add_argument('--merge', action='store_true', help='Merge shard output tables into one table')
    command_group.add_argument('--replay-html', type=str, metavar='FILE',
                               help='Run extraction against a saved page HTML (needs --zipcode and --state)')

    # Selection
    parser.add_argument('--state', type=validate_states, default=None,
                        help='Target state(s): ALL, CA, or CA,NY (overrides TARGET_STATE)')
    parser.add_argument('--zipcode', type=str, default=None, help='Zipcode for --replay-html')
    parser.add_argument('--shard-index', type=int, default=None, help='Zero-based shard index (overrides SHARD_INDEX)')
    parser.add_argument('--total-shards', type=int, default=None, help='Number of shards (overrides TOTAL_SHARDS)')
    parser.add_argument('--max-records', type=int, default=None,
                        help='Maximum units per shard, 0 for no cap (overrides MAX_RECORDS_PER_SHARD)')
    parser.add_argument('--master', type=str, default=None, help='Master table path')
    parser.add_argument('--output-dir', type=str, default=None, help='Directory for shard output tables')
    parser.add_argument('--resume', action='store_true', help='Skip units already resolved in the shard output')
    parser.add_argument('--retry-failed', action='store_true', help='Treat "Not Found"/"Error" rows as pending')

    # Extraction
    parser.add_argument('--profile', type=str, default=None, help='Search-term profile from config')
    parser.add_argument('--concurrency', type=int, default=None, help='Units processed concurrently per batch')
    parser.add_argument('--retries', type=int, default=None, help='Attempts per unit that ends in Error')
    parser.add_argument('--headed', action='store_true', help='Show the browser window (ignored in CI)')
    parser.add_argument('--screenshot-on-error', action='store_true',
                        help='Save screenshot and HTML of units that end in Error')

    # Run policy and logging
    parser.add_argument('--fail-on-error', action='store_true', help='Exit with code 2 if any unit ends in Error')
    parser.add_argument('--config', type=str, default=DEFAULT_CONFIG_PATH, help='Path to extractor.yaml')
    parser.add_argument('--log-file', type=str, default=None, help='Log file path')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    return parser


def validate_cli_options(args) -> List[str]:
    """Validate CLI options for conflicts.

    Returns:
        List of validation errors (empty if options are valid)
    """
    errors = []

    if args.replay_html and not (args.zipcode and args.state and args.state != 'ALL' and ',' not in args.state):
        errors.append("--replay-html requires --zipcode and a single --state")
    if args.zipcode and not args.replay_html:
        errors.append("--zipcode can only be used with --replay-html")
    if args.zipcode and not args.zipcode.isdigit():
        errors.append("--zipcode must be numeric")

    if args.total_shards is not None and args.total_shards < 1:
        errors.append("--total-shards must be a positive integer")
    if args.shard_index is not None and args.shard_index < 0:
        errors.append("--shard-index must be non-negative")
    if args.max_records is not None and args.max_records < 0:
        errors.append("--max-records must be non-negative")
    if args.concurrency is not None and args.concurrency < 1:
        errors.append("--concurrency must be a positive integer")
    if args.retries is not None and args.retries < 1:
        errors.append("--retries must be a positive integer")
    if args.resume and args.retry_failed:
        errors.append("Cannot use --resume with --retry-failed")

    return errors


def cli_overrides(args) -> dict:
    """Map parsed CLI arguments onto RunConfig override keys."""
    return {
        'target_state': args.state,
        'shard_index': args.shard_index,
        'total_shards': args.total_shards,
        'max_per_shard': args.max_records,
        'master_table': args.master,
        'output_dir': args.output_dir,
        'profile': args.profile,
        'concurrency': args.concurrency,
        'retries': args.retries,
        'headless': False if args.headed else None,
        'screenshot_on_error': True if args.screenshot_on_error else None,
        'log_file': args.log_file,
        'resume': args.resume or None,
        'retry_failed': args.retry_failed or None,
    }


def show_status(config: RunConfig) -> None:
    """Print progress of the master table or of every shard output"""
    selection = config.selection

    print("\n" + "=" * 60)
    print("ADDRESS EXTRACTION STATUS")
    print("=" * 60)

    if selection.total_shards > 1:
        for status in get_shard_status(config.master_table, selection.total_shards, config.output_dir):
            print(f"\n--- SHARD {status['shard_index']} ---")
            print(format_summary(status))
        merged = get_table_status(merged_output_path(config.master_table, config.output_dir))
        if merged['exists']:
            print("\n--- MERGED ---")
            print(format_summary(merged))
    else:
        print(format_summary(get_table_status(config.master_table)))

    print("\n" + "=" * 60)


def run_merge(config: RunConfig) -> int:
    """Merge all shard outputs and print the merged summary."""
    total_shards = config.selection.total_shards
    if total_shards < 2:
        print("Nothing to merge: run is not sharded (use --total-shards N)")
        return EXIT_CONFIG_ERROR

    shard_paths = [
        shard_output_path(config.master_table, index, total_shards, config.output_dir)
        for index in range(total_shards)
    ]
    merged_path = merged_output_path(config.master_table, config.output_dir)
    merge_shards(shard_paths, merged_path)

    print("\n" + "=" * 40)
    print("MERGED RESULTS")
    print("=" * 40)
    print(format_summary(get_table_status(merged_path)))
    return EXIT_OK


def build_orchestrator(config: RunConfig, page_factory, structured: Optional[StructuredLogger] = None) -> AddressOrchestrator:
    """Create an orchestrator from the run configuration."""
    retry_policy = OuterRetryPolicy(attempts=config.retries, backoff_base=config.backoff_base)

    def on_retry(unit: WorkUnit, attempt: int, outcome: ExtractionOutcome) -> None:
        if structured is not None:
            structured.log_retry(str(unit), attempt, retry_policy.attempts, outcome.error_detail or '')

    return AddressOrchestrator(
        page_factory=page_factory,
        search_policy=SearchPolicy(terms=config.search_terms, max_entries=config.max_results),
        retry_policy=retry_policy,
        navigation_timeout_ms=config.navigation_timeout_ms,
        results_wait_ms=config.results_wait_ms,
        diagnostics_dir=config.diagnostics_dir if config.screenshot_on_error else None,
        on_retry=on_retry,
    )


async def run_shard(config: RunConfig) -> ShardResult:
    """Run one shard end to end with a live browser."""
    selection = config.selection
    structured = StructuredLogger(shard=f"{selection.shard_index + 1}/{selection.total_shards}")

    phase = Phase.INITIALIZATION
    structured.log_phase_start(phase.value, {'headless': config.headless})
    try:
        async with BrowserSession(headless=config.headless, timeout_ms=config.navigation_timeout_ms) as browser:
            structured.log_phase_end(phase.value)
            orchestrator = build_orchestrator(config, browser.new_page, structured)
            runner = ShardRunner(config, orchestrator, structured)
            phase = Phase.SELECTION
            units = runner.prepare()
            phase = Phase.EXTRACTION
            result = await runner.process(units)
            phase = Phase.CLEANUP
            structured.log_phase_start(phase.value)
        structured.log_phase_end(phase.value)
        return result
    except Exception as e:
        structured.log_error(str(e), phase.value)
        raise


async def replay_snapshot(config: RunConfig, html_path: str, unit: WorkUnit) -> ExtractionOutcome:
    """Resolve a unit against a saved page instead of a live browser."""
    page = HtmlSnapshotPage.from_file(html_path)

    @asynccontextmanager
    async def snapshot_page():
        yield page

    orchestrator = build_orchestrator(config, snapshot_page)
    return await orchestrator.resolve_once(unit)


def _raise_keyboard_interrupt(signum, frame):
    raise KeyboardInterrupt


def print_result(result: ShardResult, config: RunConfig) -> None:
    summary = result.summary
    print("\n" + "=" * 40)
    print(f"SHARD {config.selection.shard_index + 1}/{config.selection.total_shards} RESULTS")
    print("=" * 40)
    print(f"  Output: {result.output_path}")
    print(f"  Processed: {summary.get('total_units', 0)}")
    print(f"  Successful: {summary.get('valid', 0)}")
    print(f"  Not Found: {summary.get('not_found', 0)}")
    print(f"  Errors: {summary.get('errors', 0)}")
    print(f"  Success rate: {summary.get('success_rate_pct', 0.0)}%")
    if result.dropped:
        print(f"  Dropped (row missing): {result.dropped}")


def main():
    """Main entry point"""
    parser = setup_parser()
    args = parser.parse_args()

    cli_errors = validate_cli_options(args)
    if cli_errors:
        print("Invalid command line options:")
        for error in cli_errors:
            print(f"  - {error}")
        return EXIT_CONFIG_ERROR

    config_errors = validate_config_on_startup(args.config)
    if config_errors:
        print("Configuration errors found:")
        for error in config_errors:
            print(f"  - {error}")
        return EXIT_CONFIG_ERROR

    try:
        config = build_run_config(load_yaml_config(args.config), overrides=cli_overrides(args))
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    log_level = logging.DEBUG if args.verbose else logging.INFO
    setup_logging(config.log_file, level=log_level)

    if args.status:
        show_status(config)
        return EXIT_OK

    if args.merge:
        return run_merge(config)

    if config.ci:
        logging.info("Running in CI environment (headless forced)")
    logging.info(f"Target: {config.selection.describe()}, max per shard: {config.selection.max_per_shard}")

    # SIGTERM (CI cancellation) exits the same way as Ctrl+C
    signal.signal(signal.SIGTERM, _raise_keyboard_interrupt)

    try:
        if args.replay_html:
            unit = WorkUnit(zipcode=args.zipcode, state=args.state)
            outcome = asyncio.run(replay_snapshot(config, args.replay_html, unit))
            print(f"\n{unit}: {outcome.status.value}")
            print(f"  Address: {outcome.address_line}")
            print(f"  City: {outcome.city}")
            if outcome.error_detail:
                print(f"  Error: {outcome.error_detail}")
            return EXIT_OK

        result = asyncio.run(run_shard(config))
        print_result(result, config)

        if args.fail_on_error and result.has_errors:
            return EXIT_UNITS_FAILED
        return EXIT_OK

    except KeyboardInterrupt:
        logging.info("Extraction interrupted; progress up to the last save is kept")
        return EXIT_INTERRUPTED
    except Exception as e:
        logging.error(f"Extraction failed: {e}")
        return EXIT_CONFIG_ERROR


if __name__ == '__main__':
    sys.exit(main())
