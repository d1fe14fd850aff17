"""Status calculation for zipcode tables and shard outputs."""

from pathlib import Path
from typing import Any, Dict, List, Optional

from src.shared.record_schema import ERROR, NOT_FOUND
from src.shared.record_store import read_table, shard_output_path


__all__ = [
    'format_summary',
    'get_shard_status',
    'get_table_status',
]


def get_table_status(table_path: str) -> Dict[str, Any]:
    """Count resolved, unresolved and pending rows of a table.

    Args:
        table_path: Master or shard output table

    Returns:
        Status dictionary with row counts and success rate. ``exists`` is
        False (and all counts 0) when the table is missing.
    """
    status = {
        'path': table_path,
        'exists': Path(table_path).exists(),
        'total': 0,
        'valid': 0,
        'not_found': 0,
        'errors': 0,
        'pending': 0,
        'success_rate_pct': 0.0,
    }
    if not status['exists']:
        return status

    for _, _, address, city in read_table(table_path):
        status['total'] += 1
        if not address or not city:
            status['pending'] += 1
        elif address == NOT_FOUND or city == NOT_FOUND:
            status['not_found'] += 1
        elif address == ERROR or city == ERROR:
            status['errors'] += 1
        else:
            status['valid'] += 1

    processed = status['total'] - status['pending']
    if processed:
        status['success_rate_pct'] = round(status['valid'] / processed * 100, 1)
    return status


def get_shard_status(master_path: str, total_shards: int, output_dir: Optional[str] = None) -> List[Dict[str, Any]]:
    """Status of every shard output table of a sharded run."""
    statuses = []
    for shard_index in range(total_shards):
        path = shard_output_path(master_path, shard_index, total_shards, output_dir)
        status = get_table_status(path)
        status['shard_index'] = shard_index
        statuses.append(status)
    return statuses


def format_summary(status: Dict[str, Any]) -> str:
    """One-block human readable summary of a table status."""
    if not status['exists']:
        return f"{status['path']}: not found"
    return (
        f"{status['path']}\n"
        f"  Total records: {status['total']}\n"
        f"  Successful: {status['valid']}\n"
        f"  Not Found: {status['not_found']}\n"
        f"  Errors: {status['errors']}\n"
        f"  Pending: {status['pending']}\n"
        f"  Success rate: {status['success_rate_pct']}%"
    )
