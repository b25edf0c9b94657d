"""Tabular snapshot files: write, inspect and repair."""

import csv
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence, Tuple, Union

from ..models.external_id import format_value, lookup_path

logger = logging.getLogger(__name__)

BOM = "\ufeff"


def backup_file_name(object_type: str) -> str:
    return f"{object_type}_backup.csv"


def inserted_ids_file_name(object_type: str) -> str:
    return f"{object_type}_inserted_ids.csv"


def write_records(
    path: Union[str, Path],
    fields: Sequence[str],
    records: Iterable[Dict[str, Any]],
) -> int:
    """
    Write records as CSV with a header row.

    Dotted field names are resolved through nested relationship values.
    Delimiters, quotes and newlines inside values are quoted, with
    embedded quotes doubled.

    Returns:
        Number of data rows written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL)
        writer.writerow(fields)
        for record in records:
            writer.writerow([format_value(lookup_path(record, name)) for name in fields])
            count += 1
    return count


def read_header(path: Union[str, Path]) -> List[str]:
    with open(path, newline="", encoding="utf-8-sig") as f:
        for row in csv.reader(f):
            if any(cell.strip() for cell in row):
                return [cell.replace(BOM, "").strip() for cell in row]
    return []


def count_rows(path: Union[str, Path]) -> int:
    """Number of non-blank data rows below the header."""
    with open(path, newline="", encoding="utf-8-sig") as f:
        rows = [row for row in csv.reader(f) if any(cell.strip() for cell in row)]
    return max(len(rows) - 1, 0)


def repair_csv(source: Union[str, Path], destination: Union[str, Path]) -> Tuple[List[str], int]:
    """
    Copy a snapshot, fixing the row problems the transfer tool rejects.

    - byte-order marks are stripped
    - blank lines are skipped
    - short rows are padded and long rows truncated to the header width

    Returns:
        (header, number of data rows written)
    """
    with open(source, newline="", encoding="utf-8-sig") as f:
        rows = [row for row in csv.reader(f) if any(cell.strip() for cell in row)]

    if not rows:
        raise ValueError(f"Snapshot has no header: {source}")

    header = [cell.replace(BOM, "").strip() for cell in rows[0]]
    width = len(header)
    repaired = 0

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    with open(destination, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, quoting=csv.QUOTE_MINIMAL)
        writer.writerow(header)
        for row in rows[1:]:
            if len(row) != width:
                repaired += 1
                row = (row + [""] * width)[:width]
            writer.writerow(row)

    if repaired:
        logger.warning(f"Repaired {repaired} ragged row(s) in {Path(source).name}")
    return header, len(rows) - 1
