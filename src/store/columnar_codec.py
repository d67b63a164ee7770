"""Columnar snapshot codec.

This module converts row-oriented snapshots into Parquet bytes and back.
Rows are written and read in bounded batches so memory follows batch size.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterator, Sequence

import pyarrow as pa
import pyarrow.parquet as pq

from core.constants import DEFAULT_CODEC_BATCH_SIZE, SCHEMA_HEADERS_METADATA_KEY
from core.errors import CodecError, EmptyDatasetError, InvalidSchemaError
from core.logging_config import get_logger
from core.types import Snapshot

_LOGGER = get_logger(__name__)
_INVALID_HEADER_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_header(header: str) -> str:
    """Return a header restricted to ``[A-Za-z0-9_]``.

    Args:
        header: Raw column header.

    Returns:
        Trimmed header with every other character replaced by ``_``.
    """
    return _INVALID_HEADER_CHARS.sub("_", header.strip())


def sanitize_headers(headers: Sequence[str]) -> tuple[list[int], list[str]]:
    """Sanitize headers and drop the ones that become empty.

    Args:
        headers: Raw column headers.

    Returns:
        Pair of kept source positions and their sanitized names.
    """
    positions: list[int] = []
    names: list[str] = []
    for position, header in enumerate(headers):
        cleaned = sanitize_header(header)
        if cleaned:
            positions.append(position)
            names.append(cleaned)
    return positions, names


def encode_snapshot(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    batch_size: int = DEFAULT_CODEC_BATCH_SIZE,
) -> bytes:
    """Encode a snapshot as Parquet bytes.

    Headers that sanitize to an empty string are dropped together with
    their cells, so the stored column count can be lower than the input.

    Args:
        headers: Column headers.
        rows: Row cells aligned positionally to headers.
        batch_size: Rows per written row group.

    Returns:
        Parquet file bytes.

    Raises:
        InvalidSchemaError: If no header survives sanitization.
        CodecError: If Parquet writing fails.
    """
    positions, names = sanitize_headers(headers)
    if not names:
        raise InvalidSchemaError(
            f"No valid headers remain after sanitizing {list(headers)!r}. "
            "Rename columns to include letters, digits, or underscores."
        )
    if len(names) < len(headers):
        _LOGGER.warning(
            "headers_dropped",
            input_columns=len(headers),
            kept_columns=len(names),
            dropped_positions=[index for index in range(len(headers)) if index not in positions],
        )
    schema = _build_schema(names)
    sink = pa.BufferOutputStream()
    try:
        with pq.ParquetWriter(sink, schema) as writer:
            for start in range(0, len(rows), batch_size):
                batch_rows = rows[start : start + batch_size]
                writer.write_batch(_build_record_batch(schema, positions, batch_rows))
    except (pa.ArrowException, OSError) as error:
        raise CodecError(
            f"Failed to encode snapshot with {len(rows)} rows: {error}. "
            "Check cell values and retry the save."
        ) from error
    return sink.getvalue().to_pybytes()


def decode_snapshot(data: bytes, batch_size: int = DEFAULT_CODEC_BATCH_SIZE) -> Snapshot:
    """Decode Parquet bytes into a snapshot.

    Args:
        data: Parquet file bytes.
        batch_size: Rows per read batch.

    Returns:
        Snapshot with headers and rows in stored order.

    Raises:
        EmptyDatasetError: If ``data`` is empty.
        CodecError: If the bytes are not a readable Parquet file.
    """
    parquet_file = _open_parquet(data)
    headers = _stored_headers(parquet_file.schema_arrow)
    rows: list[tuple[str, ...]] = []
    for batch in _iter_row_batches(parquet_file, batch_size):
        rows.extend(batch)
    return Snapshot(headers=headers, rows=tuple(rows))


def iter_decoded_rows(
    data: bytes, batch_size: int = DEFAULT_CODEC_BATCH_SIZE
) -> Iterator[list[tuple[str, ...]]]:
    """Yield decoded rows batch by batch.

    Args:
        data: Parquet file bytes.
        batch_size: Rows per yielded batch.

    Yields:
        Lists of decoded rows in stored order.
    """
    yield from _iter_row_batches(_open_parquet(data), batch_size)


def _build_schema(names: list[str]) -> pa.Schema:
    """Build an all-text Arrow schema carrying the header list.

    Physical column names must be unique, so colliding headers get a
    positional suffix; the metadata keeps the sanitized names as given.
    """
    seen: set[str] = set()
    fields = []
    for index, name in enumerate(names):
        physical_name = name if name not in seen else f"{name}__{index}"
        seen.add(physical_name)
        fields.append(pa.field(physical_name, pa.string()))
    metadata = {SCHEMA_HEADERS_METADATA_KEY: json.dumps(names).encode("utf-8")}
    return pa.schema(fields, metadata=metadata)


def _build_record_batch(
    schema: pa.Schema,
    positions: list[int],
    rows: Sequence[Sequence[Any]],
) -> pa.RecordBatch:
    columns = [
        pa.array([_cell_text(row, position) for row in rows], type=pa.string())
        for position in positions
    ]
    return pa.RecordBatch.from_arrays(columns, schema=schema)


def _cell_text(row: Sequence[Any], position: int) -> str:
    if position >= len(row):
        return ""
    value = row[position]
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _open_parquet(data: bytes) -> pq.ParquetFile:
    """Open Parquet bytes for batched reading.

    Raises:
        EmptyDatasetError: If ``data`` is empty.
        CodecError: If the bytes are not a readable Parquet file.
    """
    if not data:
        raise EmptyDatasetError(
            "Failed to decode snapshot: blob is empty. "
            "Re-upload the dataset for this commit."
        )
    try:
        return pq.ParquetFile(pa.BufferReader(data))
    except (pa.ArrowException, OSError) as error:
        raise CodecError(
            f"Failed to decode snapshot blob of {len(data)} bytes: {error}. "
            "The stored file is corrupt; re-upload the dataset for this commit."
        ) from error


def _stored_headers(schema: pa.Schema) -> tuple[str, ...]:
    """Return headers from schema metadata, falling back to column names."""
    metadata = schema.metadata or {}
    raw_headers = metadata.get(SCHEMA_HEADERS_METADATA_KEY)
    if raw_headers is None:
        return tuple(schema.names)
    try:
        headers = json.loads(raw_headers.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as error:
        raise CodecError(
            f"Failed to decode snapshot headers from schema metadata: {error}."
        ) from error
    if not isinstance(headers, list) or len(headers) != len(schema.names):
        raise CodecError(
            "Failed to decode snapshot headers: metadata does not match the stored columns."
        )
    return tuple(str(header) for header in headers)


def _iter_row_batches(
    parquet_file: pq.ParquetFile, batch_size: int
) -> Iterator[list[tuple[str, ...]]]:
    try:
        for batch in parquet_file.iter_batches(batch_size=batch_size):
            columns = [column.to_pylist() for column in batch.columns]
            yield [
                tuple("" if value is None else str(value) for value in cells)
                for cells in zip(*columns)
            ]
    except (pa.ArrowException, OSError) as error:
        raise CodecError(
            f"Failed to read snapshot rows: {error}. "
            "The stored file is corrupt; re-upload the dataset for this commit."
        ) from error
