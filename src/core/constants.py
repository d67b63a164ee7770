"""Core constants used across tabvc modules.

This module centralizes non-domain-specific constants.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".tabvc")
INDEX_DB_FILE_NAME = "index.db"
BLOBS_DIR_NAME = "blobs"
BLOB_BACKEND_LOCAL = "local"
BLOB_BACKEND_S3 = "s3"
SUPPORTED_BLOB_BACKENDS = (BLOB_BACKEND_LOCAL, BLOB_BACKEND_S3)
BLOB_FILE_NAME = "data.parquet"
BLOB_CONTENT_TYPE = "application/octet-stream"
DEFAULT_CODEC_BATCH_SIZE = 1000
DEFAULT_DELETE_BATCH_SIZE = 1000
S3_MAX_DELETE_BATCH_SIZE = 1000
DEFAULT_S3_TIMEOUT_SECONDS = 10.0
S3_MAX_ATTEMPTS = 5
S3_MISSING_KEY_CODES = ("NoSuchKey", "404", "NotFound")
MODIFICATION_DESCRIPTION_MAX_LENGTH = 255
TRUNCATION_MARKER = "..."
SCHEMA_HEADERS_METADATA_KEY = b"tabvc.headers"
CSV_ENCODING = "utf-8"
