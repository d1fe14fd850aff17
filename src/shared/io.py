"""File I/O utilities for zipcode tables.

Tables are comma-delimited text with a ``zipcode,state,address,city`` header.
Writes go through a temp file in the same directory followed by an atomic
rename, so an interrupted save never leaves a truncated table behind.
"""

import csv
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Sequence

__all__ = [
    'format_row',
    'read_rows',
    'write_rows',
]


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def format_row(row: Sequence[str]) -> str:
    """Format one table row.

    Key fields are written bare; address and city are always quoted so that
    commas inside an address survive and empty values read back as ``""``.
    """
    zipcode, state = row[0], row[1]
    rest = [_quote(value or '') for value in row[2:]]
    return ','.join([zipcode, state] + rest)


def read_rows(filepath: str) -> List[List[str]]:
    """Read all rows of a table, header included.

    Bytes that are not UTF-8 (e.g. a cp1252 export) are replaced rather than
    failing the read, and an Excel byte-order mark is dropped. A row the csv
    module cannot parse ends the read with the rows before it.

    Args:
        filepath: Path to the table

    Returns:
        List of rows (each a list of field strings); empty if the file is missing
    """
    path = Path(filepath)
    if not path.exists():
        return []

    rows = []
    with open(path, 'r', encoding='utf-8-sig', errors='replace', newline='') as f:
        try:
            for row in csv.reader(f):
                if row and any(field.strip() for field in row):
                    rows.append(row)
        except csv.Error as e:
            logging.warning(f"Stopped reading {filepath} after {len(rows)} rows: {e}")
    return rows


def write_rows(filepath: str, header: Sequence[str], rows: Iterable[Sequence[str]]) -> None:
    """Rewrite a table atomically (temp file + rename).

    Args:
        filepath: Destination path
        header: Header fields, written unquoted
        rows: Data rows, formatted with ``format_row``

    Raises:
        OSError: If filesystem operations fail
    """
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(
        suffix='.tmp',
        dir=path.parent,
        prefix=path.name + '.'
    )

    try:
        with os.fdopen(temp_fd, 'w', encoding='utf-8', newline='') as f:
            f.write(','.join(header) + '\n')
            for row in rows:
                f.write(format_row(row) + '\n')

        # os.replace is atomic on POSIX and Windows
        os.replace(temp_path, str(path))
    except OSError as e:
        Path(temp_path).unlink(missing_ok=True)
        logging.error(f"Failed to write table {filepath}: {e}")
        raise
