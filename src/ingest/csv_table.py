"""CSV table readers and writers.

This module loads local CSV files into snapshots and writes snapshots
back out. The first CSV row holds the headers; every cell is text.
"""

from __future__ import annotations

import csv
from pathlib import Path

from core.constants import CSV_ENCODING
from core.errors import TabvcIngestError
from core.types import Snapshot


def read_csv_snapshot(source_path: Path) -> Snapshot:
    """Read a CSV file into a snapshot.

    Short rows are padded with empty cells; fully blank lines are skipped.

    Args:
        source_path: Path of the CSV file.

    Returns:
        Snapshot with the file's headers and rows.

    Raises:
        TabvcIngestError: If the file is missing, empty, or has rows wider
            than the header row.
    """
    if not source_path.is_file():
        raise TabvcIngestError(
            f"Failed to read table at {source_path}: file does not exist. "
            "Provide an existing CSV file."
        )
    try:
        with source_path.open("r", encoding=CSV_ENCODING, newline="") as handle:
            records = [row for row in csv.reader(handle) if any(cell.strip() for cell in row)]
    except (OSError, UnicodeDecodeError, csv.Error) as error:
        raise TabvcIngestError(f"Failed to read table at {source_path}: {error}.") from error
    if not records:
        raise TabvcIngestError(
            f"Failed to read table at {source_path}: file has no header row."
        )
    headers = records[0]
    rows: list[list[str]] = []
    for line_number, record in enumerate(records[1:], 2):
        if len(record) > len(headers):
            raise TabvcIngestError(
                f"Failed to read table at {source_path}:{line_number}: "
                f"row has {len(record)} cells but the header has {len(headers)}."
            )
        rows.append(record + [""] * (len(headers) - len(record)))
    return Snapshot.from_lists(headers, rows)


def write_csv_snapshot(snapshot: Snapshot, output_path: Path) -> None:
    """Write a snapshot as CSV, headers first.

    Raises:
        TabvcIngestError: If the file cannot be written.
    """
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding=CSV_ENCODING, newline="") as handle:
            writer = csv.writer(handle)
            writer.writerow(snapshot.headers)
            writer.writerows(snapshot.rows)
    except OSError as error:
        raise TabvcIngestError(
            f"Failed to write table to {output_path}: {error}. "
            "Check write permissions and available disk space."
        ) from error
