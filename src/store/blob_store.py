"""Snapshot blob storage.

This module stores one Parquet blob per commit under a key derived from
tenant, project, and commit ids. S3 and local-directory backends share
the same contract.
"""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Any, Protocol

from botocore.exceptions import ClientError

from core.config import TabvcConfig
from core.constants import (
    BLOB_BACKEND_S3,
    BLOB_CONTENT_TYPE,
    BLOB_FILE_NAME,
    BLOBS_DIR_NAME,
    DEFAULT_DELETE_BATCH_SIZE,
    S3_MAX_DELETE_BATCH_SIZE,
    S3_MISSING_KEY_CODES,
)
from core.errors import BlobNotFoundError, InvalidBlobError, TabvcConfigError
from core.logging_config import get_logger
from store.s3_client import create_s3_client

_LOGGER = get_logger(__name__)


class BlobStore(Protocol):
    """Contract shared by blob store backends."""

    def put(self, tenant_id: str, group_id: str, commit_id: str, data: bytes) -> str: ...

    def get(self, tenant_id: str, group_id: str, commit_id: str) -> bytes: ...

    def exists(self, tenant_id: str, group_id: str, commit_id: str) -> bool: ...

    def delete_all(self, tenant_id: str, group_id: str) -> int: ...


def project_prefix(tenant_id: str, group_id: str) -> str:
    """Return the key prefix holding every blob of a project.

    Args:
        tenant_id: Owning tenant.
        group_id: Project identifier.

    Returns:
        Prefix ending with ``/``.

    Raises:
        InvalidBlobError: If an identifier is empty or contains ``/``.
    """
    validate_key_segment("tenant_id", tenant_id)
    validate_key_segment("group_id", group_id)
    return f"tenants/{tenant_id}/projects/{group_id}/"


def blob_key(tenant_id: str, group_id: str, commit_id: str) -> str:
    """Return the deterministic blob key of one commit.

    Args:
        tenant_id: Owning tenant.
        group_id: Project identifier.
        commit_id: Commit identifier.

    Returns:
        Key of the form ``tenants/<t>/projects/<g>/commits/<c>/data.parquet``.
    """
    validate_key_segment("commit_id", commit_id)
    return f"{project_prefix(tenant_id, group_id)}commits/{commit_id}/{BLOB_FILE_NAME}"


def build_blob_store(config: TabvcConfig, s3_client: Any | None = None) -> BlobStore:
    """Build the blob store selected by config.

    Args:
        config: Runtime configuration.
        s3_client: Optional prebuilt S3 client for the s3 backend.

    Returns:
        Configured blob store.

    Raises:
        TabvcConfigError: If the s3 backend has no bucket.
    """
    if config.blob_backend == BLOB_BACKEND_S3:
        if not config.s3_bucket:
            raise TabvcConfigError("The s3 blob backend requires TABVC_S3_BUCKET.")
        client = s3_client if s3_client is not None else create_s3_client(config)
        return S3BlobStore(client, config.s3_bucket, config.delete_batch_size)
    return LocalBlobStore(config.data_root / BLOBS_DIR_NAME)


class S3BlobStore:
    """Blob store backed by an S3 bucket."""

    def __init__(
        self,
        s3_client: Any,
        bucket: str,
        delete_batch_size: int = DEFAULT_DELETE_BATCH_SIZE,
    ) -> None:
        """Initialize the store.

        Args:
            s3_client: Boto3 S3 client.
            bucket: Bucket holding snapshot blobs.
            delete_batch_size: Keys per ``DeleteObjects`` call, at most 1000.
        """
        self._s3 = s3_client
        self._bucket = bucket
        self._delete_batch_size = min(delete_batch_size, S3_MAX_DELETE_BATCH_SIZE)

    def put(self, tenant_id: str, group_id: str, commit_id: str, data: bytes) -> str:
        """Upload one commit blob.

        Returns:
            Object key written.

        Raises:
            InvalidBlobError: If ``data`` is empty.
        """
        _require_payload(data, commit_id)
        key = blob_key(tenant_id, group_id, commit_id)
        response = self._s3.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=data,
            ContentType=BLOB_CONTENT_TYPE,
        )
        _LOGGER.info(
            "blob_uploaded",
            bucket=self._bucket,
            key=key,
            size_bytes=len(data),
            etag=response.get("ETag"),
        )
        return key

    def get(self, tenant_id: str, group_id: str, commit_id: str) -> bytes:
        """Download one commit blob.

        Raises:
            BlobNotFoundError: If the key does not exist.
        """
        key = blob_key(tenant_id, group_id, commit_id)
        try:
            response = self._s3.get_object(Bucket=self._bucket, Key=key)
        except ClientError as error:
            if _is_missing_key(error):
                raise BlobNotFoundError(
                    f"Blob s3://{self._bucket}/{key} does not exist."
                ) from error
            raise
        data = response["Body"].read()
        _LOGGER.info("blob_downloaded", bucket=self._bucket, key=key, size_bytes=len(data))
        return data

    def exists(self, tenant_id: str, group_id: str, commit_id: str) -> bool:
        key = blob_key(tenant_id, group_id, commit_id)
        try:
            self._s3.head_object(Bucket=self._bucket, Key=key)
        except ClientError as error:
            if _is_missing_key(error):
                return False
            raise
        return True

    def delete_all(self, tenant_id: str, group_id: str) -> int:
        """Delete every blob under a project prefix.

        Keys are removed in batches of at most 1000, the ``DeleteObjects``
        limit. A failing batch is logged and skipped so the returned count
        reflects what was actually removed.

        Returns:
            Number of objects deleted.

        Raises:
            ClientError: If listing the prefix fails.
        """
        prefix = project_prefix(tenant_id, group_id)
        keys = self._list_keys(prefix)
        deleted_count = 0
        for start in range(0, len(keys), self._delete_batch_size):
            batch = keys[start : start + self._delete_batch_size]
            deleted_count += self._delete_batch(prefix, batch)
        _LOGGER.info(
            "project_blobs_deleted",
            bucket=self._bucket,
            prefix=prefix,
            listed=len(keys),
            deleted=deleted_count,
        )
        return deleted_count

    def _list_keys(self, prefix: str) -> list[str]:
        paginator = self._s3.get_paginator("list_objects_v2")
        keys: list[str] = []
        for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
            keys.extend(item["Key"] for item in page.get("Contents", []))
        return keys

    def _delete_batch(self, prefix: str, keys: list[str]) -> int:
        try:
            response = self._s3.delete_objects(
                Bucket=self._bucket,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": False},
            )
        except ClientError as error:
            _LOGGER.error(
                "blob_delete_batch_failed",
                bucket=self._bucket,
                prefix=prefix,
                batch_size=len(keys),
                error=str(error),
            )
            return 0
        errors = response.get("Errors", [])
        if errors:
            _LOGGER.warning(
                "blob_delete_batch_partial",
                bucket=self._bucket,
                prefix=prefix,
                failed_keys=[item.get("Key") for item in errors],
            )
        return len(response.get("Deleted", []))


class LocalBlobStore:
    """Blob store backed by a local directory tree."""

    def __init__(self, root: Path) -> None:
        self._root = root

    def put(self, tenant_id: str, group_id: str, commit_id: str, data: bytes) -> str:
        """Write one commit blob to disk.

        Returns:
            Blob key written.

        Raises:
            InvalidBlobError: If ``data`` is empty.
        """
        _require_payload(data, commit_id)
        key = blob_key(tenant_id, group_id, commit_id)
        path = self._root / key
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        _LOGGER.info("blob_uploaded", root=str(self._root), key=key, size_bytes=len(data))
        return key

    def get(self, tenant_id: str, group_id: str, commit_id: str) -> bytes:
        """Read one commit blob from disk.

        Raises:
            BlobNotFoundError: If the file does not exist.
        """
        key = blob_key(tenant_id, group_id, commit_id)
        path = self._root / key
        if not path.is_file():
            raise BlobNotFoundError(f"Blob {path} does not exist.")
        return path.read_bytes()

    def exists(self, tenant_id: str, group_id: str, commit_id: str) -> bool:
        return (self._root / blob_key(tenant_id, group_id, commit_id)).is_file()

    def delete_all(self, tenant_id: str, group_id: str) -> int:
        """Delete every blob file under a project prefix.

        A file that cannot be removed is logged and skipped, and the
        project directory is kept so the survivors stay addressable.

        Returns:
            Number of files deleted.
        """
        project_dir = self._root / project_prefix(tenant_id, group_id)
        if not project_dir.exists():
            return 0
        deleted_count = 0
        failed_count = 0
        for path in sorted(project_dir.rglob("*")):
            if not path.is_file():
                continue
            try:
                path.unlink()
            except OSError as error:
                failed_count += 1
                _LOGGER.error(
                    "blob_delete_file_failed",
                    root=str(self._root),
                    path=str(path),
                    error=str(error),
                )
                continue
            deleted_count += 1
        if failed_count == 0:
            shutil.rmtree(project_dir, ignore_errors=True)
        _LOGGER.info(
            "project_blobs_deleted",
            root=str(self._root),
            deleted=deleted_count,
            failed=failed_count,
        )
        return deleted_count


def validate_key_segment(name: str, value: str) -> None:
    """Check that an identifier can be used as one blob key segment.

    Raises:
        InvalidBlobError: If the identifier is empty or contains ``/``.
    """
    if not value or "/" in value:
        raise InvalidBlobError(
            f"Invalid {name} '{value}' for a blob key: "
            "identifiers must be non-empty and must not contain '/'."
        )


def _require_payload(data: bytes, commit_id: str) -> None:
    if not data:
        raise InvalidBlobError(
            f"Refusing to upload an empty blob for commit {commit_id}. "
            "Encode the snapshot before uploading."
        )


def _is_missing_key(error: ClientError) -> bool:
    code = str(error.response.get("Error", {}).get("Code", ""))
    return code in S3_MISSING_KEY_CODES
