"""Runtime configuration model for tabvc.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import (
    BLOB_BACKEND_LOCAL,
    BLOB_BACKEND_S3,
    DEFAULT_CODEC_BATCH_SIZE,
    DEFAULT_DATA_ROOT,
    DEFAULT_DELETE_BATCH_SIZE,
    DEFAULT_S3_TIMEOUT_SECONDS,
    INDEX_DB_FILE_NAME,
    S3_MAX_DELETE_BATCH_SIZE,
    SUPPORTED_BLOB_BACKENDS,
)
from core.errors import TabvcConfigError


@dataclass(frozen=True)
class TabvcConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory for the default index and blobs.
        database_url: SQLAlchemy URL of the commit index database.
        blob_backend: Blob store backend name ("local" or "s3").
        s3_bucket: Bucket holding snapshot blobs for the s3 backend.
        s3_region: Optional AWS region for S3 operations.
        s3_profile: Optional AWS profile for boto3 session initialization.
        s3_endpoint_url: Optional endpoint override (S3-compatible stores).
        s3_timeout_seconds: Connect and read timeout for S3 calls.
        codec_batch_size: Rows per Parquet batch when encoding/decoding.
        delete_batch_size: Keys per blob deletion request.
    """

    data_root: Path
    database_url: str
    blob_backend: str = BLOB_BACKEND_LOCAL
    s3_bucket: str | None = None
    s3_region: str | None = None
    s3_profile: str | None = None
    s3_endpoint_url: str | None = None
    s3_timeout_seconds: float = DEFAULT_S3_TIMEOUT_SECONDS
    codec_batch_size: int = DEFAULT_CODEC_BATCH_SIZE
    delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE

    @classmethod
    def from_env(cls) -> "TabvcConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            TabvcConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("TABVC_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        data_root = Path(data_root_value).expanduser().resolve()
        database_url = os.getenv("TABVC_DATABASE_URL") or default_database_url(data_root)
        blob_backend = _parse_blob_backend(os.getenv("TABVC_BLOB_BACKEND", BLOB_BACKEND_LOCAL))
        s3_bucket = _optional_env("TABVC_S3_BUCKET")
        if blob_backend == BLOB_BACKEND_S3 and not s3_bucket:
            raise TabvcConfigError(
                "TABVC_BLOB_BACKEND is 's3' but TABVC_S3_BUCKET is not set. "
                "Set the bucket name or use the local blob backend."
            )
        return cls(
            data_root=data_root,
            database_url=database_url,
            blob_backend=blob_backend,
            s3_bucket=s3_bucket,
            s3_region=_optional_env("TABVC_S3_REGION"),
            s3_profile=_optional_env("TABVC_S3_PROFILE"),
            s3_endpoint_url=_optional_env("TABVC_S3_ENDPOINT_URL"),
            s3_timeout_seconds=_parse_positive_float(
                "TABVC_S3_TIMEOUT_SECONDS",
                os.getenv("TABVC_S3_TIMEOUT_SECONDS", str(DEFAULT_S3_TIMEOUT_SECONDS)),
            ),
            codec_batch_size=_parse_positive_int(
                "TABVC_CODEC_BATCH_SIZE",
                os.getenv("TABVC_CODEC_BATCH_SIZE", str(DEFAULT_CODEC_BATCH_SIZE)),
            ),
            delete_batch_size=_parse_delete_batch_size(
                os.getenv("TABVC_DELETE_BATCH_SIZE", str(DEFAULT_DELETE_BATCH_SIZE))
            ),
        )


def default_database_url(data_root: Path) -> str:
    """Return the SQLite index URL under a data root.

    Args:
        data_root: Local data root directory.

    Returns:
        SQLAlchemy database URL.
    """
    return f"sqlite:///{data_root / INDEX_DB_FILE_NAME}"


def _optional_env(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


def _parse_blob_backend(raw_value: str) -> str:
    """Parse the blob backend environment value.

    Args:
        raw_value: Raw string from environment.

    Returns:
        Normalized backend name.

    Raises:
        TabvcConfigError: If the backend is unsupported.
    """
    backend = raw_value.strip().lower()
    if backend not in SUPPORTED_BLOB_BACKENDS:
        raise TabvcConfigError(
            f"Invalid TABVC_BLOB_BACKEND value '{raw_value}': "
            f"expected one of {SUPPORTED_BLOB_BACKENDS}."
        )
    return backend


def _parse_positive_int(name: str, raw_value: str) -> int:
    """Parse a positive integer environment value.

    Args:
        name: Variable name for error messages.
        raw_value: Raw string from environment.

    Returns:
        Parsed integer.

    Raises:
        TabvcConfigError: If value is not a positive integer.
    """
    try:
        value = int(raw_value)
    except ValueError as error:
        raise TabvcConfigError(
            f"Invalid {name} value: expected integer, got '{raw_value}'. "
            f"Set {name} to a positive number."
        ) from error
    if value <= 0:
        raise TabvcConfigError(
            f"Invalid {name} value: expected a positive integer, got {value}."
        )
    return value


def _parse_positive_float(name: str, raw_value: str) -> float:
    try:
        value = float(raw_value)
    except ValueError as error:
        raise TabvcConfigError(
            f"Invalid {name} value: expected number, got '{raw_value}'."
        ) from error
    if value <= 0:
        raise TabvcConfigError(f"Invalid {name} value: expected a positive number, got {value}.")
    return value


def _parse_delete_batch_size(raw_value: str) -> int:
    """Parse the blob deletion batch size, capped by the S3 request limit."""
    value = _parse_positive_int("TABVC_DELETE_BATCH_SIZE", raw_value)
    if value > S3_MAX_DELETE_BATCH_SIZE:
        raise TabvcConfigError(
            f"Invalid TABVC_DELETE_BATCH_SIZE value {value}: "
            f"S3 accepts at most {S3_MAX_DELETE_BATCH_SIZE} keys per delete request."
        )
    return value
