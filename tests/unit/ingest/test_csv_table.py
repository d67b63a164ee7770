"""Unit tests for CSV table reading and writing."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.errors import TabvcIngestError
from core.types import Snapshot
from ingest.csv_table import read_csv_snapshot, write_csv_snapshot
from tests.fixture_paths import fixture_path


def test_read_csv_snapshot_reads_headers_and_rows() -> None:
    """Reader should split the header row from data rows."""
    snapshot = read_csv_snapshot(fixture_path("tables/people.csv"))

    assert snapshot.headers == ("id", "name", "score")
    assert snapshot.rows[2] == ("3", "carol", "")


def test_read_csv_snapshot_pads_short_rows(tmp_path: Path) -> None:
    """Rows with fewer cells than headers should be padded."""
    source = tmp_path / "short.csv"
    source.write_text("a,b,c\n1\n\n2,3\n", encoding="utf-8")

    snapshot = read_csv_snapshot(source)

    assert snapshot.rows == (("1", "", ""), ("2", "3", ""))


def test_read_csv_snapshot_rejects_wide_rows() -> None:
    """Rows with more cells than headers should fail."""
    with pytest.raises(TabvcIngestError):
        read_csv_snapshot(fixture_path("tables/wide_row.csv"))


def test_read_csv_snapshot_rejects_missing_file(tmp_path: Path) -> None:
    """Missing files should fail with an ingest error."""
    with pytest.raises(TabvcIngestError):
        read_csv_snapshot(tmp_path / "missing.csv")


def test_read_csv_snapshot_rejects_empty_file(tmp_path: Path) -> None:
    """Files without a header row should fail."""
    source = tmp_path / "empty.csv"
    source.write_text("", encoding="utf-8")

    with pytest.raises(TabvcIngestError):
        read_csv_snapshot(source)


def test_write_csv_snapshot_round_trips_quoted_cells(tmp_path: Path) -> None:
    """Written CSV should read back with commas and quotes intact."""
    snapshot = Snapshot.from_lists(["text"], [['a, "quoted" cell']])
    output = tmp_path / "out" / "table.csv"

    write_csv_snapshot(snapshot, output)

    assert read_csv_snapshot(output) == snapshot
