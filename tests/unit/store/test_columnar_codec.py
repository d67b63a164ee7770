"""Unit tests for the columnar snapshot codec."""

from __future__ import annotations

import io

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from core.errors import CodecError, EmptyDatasetError, InvalidSchemaError
from store.columnar_codec import (
    decode_snapshot,
    encode_snapshot,
    iter_decoded_rows,
    sanitize_header,
    sanitize_headers,
)


def test_encode_decode_preserves_rows_in_order() -> None:
    """Decoding should return the encoded headers and rows unchanged."""
    headers = ["id", "name"]
    rows = [["1", "alice"], ["2", "bob"], ["3", "carol"]]

    snapshot = decode_snapshot(encode_snapshot(headers, rows))

    assert snapshot.headers == ("id", "name")
    assert snapshot.rows == (("1", "alice"), ("2", "bob"), ("3", "carol"))


def test_sanitize_header_replaces_invalid_characters() -> None:
    """Characters outside [A-Za-z0-9_] should become underscores."""
    assert sanitize_header("  Unit Price ($) ") == "Unit_Price____"


def test_sanitize_header_is_idempotent() -> None:
    """Sanitizing a sanitized header should not change it."""
    once = sanitize_header("first-name.2")

    assert sanitize_header(once) == once


def test_sanitize_headers_drops_blank_headers() -> None:
    """Headers that trim to empty should be dropped with their positions."""
    positions, names = sanitize_headers(["a", "   ", "b"])

    assert positions == [0, 2]
    assert names == ["a", "b"]


def test_encode_drops_cells_of_dropped_headers() -> None:
    """Dropping a header should drop its column from every row."""
    data = encode_snapshot(["a", "", "b"], [["1", "x", "2"], ["3", "y", "4"]])

    snapshot = decode_snapshot(data)

    assert snapshot.headers == ("a", "b")
    assert snapshot.rows == (("1", "2"), ("3", "4"))


def test_encode_raises_when_no_headers_survive() -> None:
    """Encoding should fail when every header sanitizes to empty."""
    with pytest.raises(InvalidSchemaError):
        encode_snapshot(["", "  "], [["1", "2"]])


def test_encode_keeps_duplicate_headers() -> None:
    """Duplicate headers should survive a round trip in their positions."""
    data = encode_snapshot(["v", "v"], [["1", "2"]])

    snapshot = decode_snapshot(data)

    assert snapshot.headers == ("v", "v")
    assert snapshot.rows == (("1", "2"),)


def test_encode_writes_text_for_missing_and_non_text_cells() -> None:
    """None and short rows should become empty strings, others their text."""
    data = encode_snapshot(["a", "b", "c"], [[None, 5], ["x", "y", "z"]])

    snapshot = decode_snapshot(data)

    assert snapshot.rows == (("", "5", ""), ("x", "y", "z"))


def test_encode_zero_rows_decodes_to_empty_snapshot() -> None:
    """A header-only snapshot should decode with no rows."""
    snapshot = decode_snapshot(encode_snapshot(["a", "b"], []))

    assert snapshot.headers == ("a", "b")
    assert snapshot.rows == ()


def test_decode_raises_for_empty_bytes() -> None:
    """Empty blobs should raise a dedicated error."""
    with pytest.raises(EmptyDatasetError):
        decode_snapshot(b"")


def test_decode_raises_for_corrupt_bytes() -> None:
    """Bytes that are not Parquet should raise a codec error."""
    with pytest.raises(CodecError):
        decode_snapshot(b"definitely not parquet")


def test_decode_falls_back_to_column_names_without_metadata() -> None:
    """Files without header metadata should use physical column names."""
    table = pa.table({"left": ["1"], "right": ["2"]})
    buffer = io.BytesIO()
    pq.write_table(table, buffer)

    snapshot = decode_snapshot(buffer.getvalue())

    assert snapshot.headers == ("left", "right")
    assert snapshot.rows == (("1", "2"),)


def test_iter_decoded_rows_yields_bounded_batches() -> None:
    """Decoding in batches should never yield more rows than the batch size."""
    rows = [[str(index)] for index in range(25)]
    data = encode_snapshot(["n"], rows, batch_size=10)

    batches = list(iter_decoded_rows(data, batch_size=10))

    assert all(len(batch) <= 10 for batch in batches)
    assert [row[0] for batch in batches for row in batch] == [str(index) for index in range(25)]
