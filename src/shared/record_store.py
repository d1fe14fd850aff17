"""Sharded record store for zipcode tables.

This module owns every read and write of the master and per-shard tables:

- ``repair``: normalize a table to the canonical 4-column layout
- ``select_work_units``: pick the pending rows owned by one shard
- ``initialize_shard_table``: create/repair a shard's output table and seed
  a row for every selected unit
- ``upsert`` / ``upsert_many``: overwrite rows by (zipcode, state) key
- ``merge_shards``: concatenate shard tables into one (single writer)

Shards never write to the same file. All writes are full read-modify-rewrite
passes through an atomic temp-file rename, so no file locking is needed.
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from src.shared.constants import TABLE
from src.shared.io import read_rows, write_rows
from src.shared.record_schema import HEADER, SENTINELS, ExtractionOutcome, WorkUnit
from src.shared.run_config import ShardSelection

__all__ = [
    'RepairReport',
    'initialize_shard_table',
    'is_pending',
    'merge_shards',
    'merged_output_path',
    'partition_range',
    'read_table',
    'repair',
    'resolved_keys',
    'select_work_units',
    'shard_output_path',
    'upsert',
    'upsert_many',
]


Key = Tuple[str, str]


@dataclass
class RepairReport:
    """What ``repair`` changed in a table."""

    header_fixed: bool = False
    rows_backfilled: int = 0
    rows_truncated: int = 0
    rows_dropped: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.header_fixed or self.rows_backfilled or self.rows_truncated or self.rows_dropped)


def _is_header(row: Sequence[str]) -> bool:
    return bool(row) and row[0].strip().lower() == HEADER[0]


def _valid_key(row: Sequence[str]) -> bool:
    if len(row) < 2:
        return False
    zipcode, state = row[0].strip(), row[1].strip()
    return zipcode.isdigit() and state.isalpha()


def _fit_row(row: Sequence[str]) -> List[str]:
    fields = [value.strip() for value in row[:TABLE.FIELD_COUNT]]
    return fields + [''] * (TABLE.FIELD_COUNT - len(fields))


def read_table(filepath: str) -> List[List[str]]:
    """Read the data rows of a table, tolerating malformed content.

    Header rows are skipped, rows with an empty or malformed key are dropped
    and every returned row has exactly 4 fields.
    """
    rows = read_rows(filepath)
    if rows and _is_header(rows[0]):
        rows = rows[1:]
    return [_fit_row(row) for row in rows if _valid_key(row)]


def repair(table_path: str) -> RepairReport:
    """Normalize a table in place to the canonical 4-column layout.

    Ensures the header is exactly ``zipcode,state,address,city`` (renaming a
    different header, inserting one when the first row is data), drops rows
    with an empty or malformed key, backfills short rows and truncates long
    ones. Row order is preserved. The file is rewritten only if something
    changed.

    Args:
        table_path: Path to the table

    Returns:
        RepairReport describing the changes
    """
    report = RepairReport()
    rows = read_rows(table_path)
    if not rows:
        return report

    first = rows[0]
    if _is_header(first) or not _valid_key(first):
        # First row is a header (possibly with the wrong columns) or garbage
        if [value.strip() for value in first] != HEADER:
            report.header_fixed = True
        rows = rows[1:]
    else:
        report.header_fixed = True

    repaired = []
    for row in rows:
        if not _valid_key(row):
            report.rows_dropped += 1
            continue
        if len(row) < TABLE.FIELD_COUNT:
            report.rows_backfilled += 1
        elif len(row) > TABLE.FIELD_COUNT:
            report.rows_truncated += 1
        repaired.append(_fit_row(row))

    if report.changed:
        write_rows(table_path, HEADER, repaired)
        logging.info(
            f"Repaired {table_path}: header_fixed={report.header_fixed}, "
            f"backfilled={report.rows_backfilled}, truncated={report.rows_truncated}, "
            f"dropped={report.rows_dropped}"
        )
        if report.rows_truncated:
            logging.warning(f"Truncated {report.rows_truncated} row(s) with extra fields in {table_path}")

    return report


def is_pending(row: Sequence[str], include_sentinels: bool = False) -> bool:
    """Return True if a row still needs an address lookup."""
    address, city = row[2].strip(), row[3].strip()
    if not address or not city:
        return True
    return include_sentinels and (address in SENTINELS or city in SENTINELS)


def partition_range(count: int, shard_index: int, total_shards: int) -> Tuple[int, int]:
    """Return the [start, end) slice of ``count`` items owned by a shard.

    Slices are contiguous, non-overlapping, of size ``ceil(count/total_shards)``
    (the last one may be shorter or empty).
    """
    if count <= 0:
        return (0, 0)
    size = math.ceil(count / total_shards)
    start = min(shard_index * size, count)
    end = min(start + size, count)
    return (start, end)


def resolved_keys(table_path: str) -> Set[Key]:
    """Keys already resolved (address and city filled) in a table."""
    return {
        (row[0], row[1])
        for row in read_table(table_path)
        if not is_pending(row, include_sentinels=False)
    }


def select_work_units(
    master_path: str,
    selection: ShardSelection,
    exclude: Optional[Set[Key]] = None
) -> List[WorkUnit]:
    """Select the ordered work units owned by one shard.

    Reads the master table, keeps pending rows in the target states,
    partitions them into ``total_shards`` contiguous ranges, takes this
    shard's range, removes ``exclude`` keys (resume) and caps the result to
    ``max_per_shard`` units from the start of the range.

    Args:
        master_path: Path to the master table
        selection: Shard index/count, state filter and cap
        exclude: Keys to skip (e.g. already resolved in this shard's output)

    Returns:
        Ordered list of WorkUnit (empty if nothing is pending)
    """
    pending = []
    seen: Set[Key] = set()
    for row in read_table(master_path):
        key = (row[0], row[1])
        if key in seen:
            continue
        seen.add(key)
        if selection.matches_state(row[1]) and is_pending(row, selection.include_sentinels):
            pending.append(WorkUnit(zipcode=row[0], state=row[1]))

    start, end = partition_range(len(pending), selection.shard_index, selection.total_shards)
    units = pending[start:end]
    logging.info(
        f"[{selection.describe()}] {len(pending)} pending rows, "
        f"range {start}-{end} ({len(units)} units)"
    )

    if exclude:
        before = len(units)
        units = [unit for unit in units if unit.key not in exclude]
        if before != len(units):
            logging.info(f"[{selection.describe()}] Skipping {before - len(units)} already resolved units")

    if selection.max_per_shard is not None and len(units) > selection.max_per_shard:
        logging.warning(
            f"[{selection.describe()}] Limiting to {selection.max_per_shard} of {len(units)} units. "
            f"Increase MAX_RECORDS_PER_SHARD or add more shards to process all data."
        )
        units = units[:selection.max_per_shard]

    return units


def shard_output_path(
    master_path: str,
    shard_index: int,
    total_shards: int,
    output_dir: Optional[str] = None
) -> str:
    """Output table path for a shard.

    With more than one shard each shard gets ``<stem>_shard_<i>.csv``; a
    single shard writes back into the master table itself.
    """
    master = Path(master_path)
    if total_shards <= 1:
        return str(master)
    directory = Path(output_dir) if output_dir else master.parent
    return str(directory / f"{master.stem}{TABLE.SHARD_SUFFIX}{shard_index}{master.suffix or '.csv'}")


def merged_output_path(master_path: str, output_dir: Optional[str] = None) -> str:
    """Path of the table produced by ``merge_shards``."""
    master = Path(master_path)
    directory = Path(output_dir) if output_dir else master.parent
    return str(directory / f"{master.stem}{TABLE.MERGED_SUFFIX}{master.suffix or '.csv'}")


def initialize_shard_table(output_path: str, units: Iterable[WorkUnit]) -> int:
    """Prepare a shard's output table so every selected unit has a row.

    Creates a header-only table if absent, repairs it, then appends an empty
    row for each unit whose key is missing.

    Args:
        output_path: Shard output table
        units: Units selected for this run

    Returns:
        Number of rows added
    """
    if not Path(output_path).exists():
        write_rows(output_path, HEADER, [])
        logging.info(f"Created output table {output_path}")
    else:
        repair(output_path)

    rows = read_table(output_path)
    existing = {(row[0], row[1]) for row in rows}
    added = [[unit.zipcode, unit.state, '', ''] for unit in units if unit.key not in existing]
    if added:
        write_rows(output_path, HEADER, rows + added)
        logging.info(f"Seeded {len(added)} rows in {output_path}")
    return len(added)


def upsert_many(output_path: str, outcomes: Iterable[ExtractionOutcome]) -> List[Key]:
    """Overwrite address/city of existing rows by key in one rewrite.

    Rows must already exist (see ``initialize_shard_table``). Outcomes whose
    key is missing are logged and dropped; other rows are left untouched.

    Args:
        output_path: Shard output table
        outcomes: Outcomes to persist

    Returns:
        Keys of outcomes that were dropped because no row matched
    """
    outcomes = list(outcomes)
    if not outcomes:
        return []

    rows = read_table(output_path)
    index: Dict[Key, int] = {}
    for position, row in enumerate(rows):
        index.setdefault((row[0], row[1]), position)

    dropped = []
    for outcome in outcomes:
        position = index.get(outcome.key)
        if position is None:
            logging.warning(f"[{outcome.zipcode}/{outcome.state}] Row not found in {output_path}, outcome dropped")
            dropped.append(outcome.key)
            continue
        rows[position] = outcome.to_row()

    if len(dropped) < len(outcomes):
        write_rows(output_path, HEADER, rows)
    return dropped


def upsert(output_path: str, outcome: ExtractionOutcome) -> bool:
    """Persist a single outcome. Returns False if its row was missing."""
    return not upsert_many(output_path, [outcome])


def merge_shards(shard_paths: Sequence[str], merged_path: str) -> int:
    """Concatenate shard tables into one table.

    Runs as a separate single-writer step after all shards have finished.
    The first occurrence of a key wins; missing shard files are skipped.

    Args:
        shard_paths: Shard output tables, in shard order
        merged_path: Destination table

    Returns:
        Number of rows written
    """
    merged = []
    seen: Set[Key] = set()
    for path in shard_paths:
        if not Path(path).exists():
            logging.warning(f"Shard table missing, skipped: {path}")
            continue
        for row in read_table(path):
            key = (row[0], row[1])
            if key in seen:
                continue
            seen.add(key)
            merged.append(row)

    write_rows(merged_path, HEADER, merged)
    logging.info(f"Merged {len(shard_paths)} shard table(s) into {merged_path}: {len(merged)} rows")
    return len(merged)
