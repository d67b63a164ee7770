"""Unit tests for snapshot blob stores."""

from __future__ import annotations

import io
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

from core.config import TabvcConfig, default_database_url
from core.errors import BlobNotFoundError, InvalidBlobError, TabvcConfigError
from store.blob_store import (
    LocalBlobStore,
    S3BlobStore,
    blob_key,
    build_blob_store,
    project_prefix,
)


class _FakePaginator:
    def __init__(self, client: "_FakeS3Client") -> None:
        self._client = client

    def paginate(self, Bucket: str, Prefix: str) -> list[dict[str, Any]]:
        keys = sorted(key for key in self._client.objects if key.startswith(Prefix))
        pages = [keys[start : start + 1000] for start in range(0, len(keys), 1000)]
        return [{"Contents": [{"Key": key} for key in page]} for page in pages] or [{}]


class _FakeS3Client:
    def __init__(self, failing_batches: tuple[int, ...] = ()) -> None:
        self.objects: dict[str, bytes] = {}
        self.delete_calls: list[int] = []
        self._failing_batches = failing_batches

    def put_object(self, Bucket: str, Key: str, Body: bytes, ContentType: str) -> dict[str, Any]:
        self.objects[Key] = Body
        return {"ETag": '"etag"'}

    def get_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        if Key not in self.objects:
            raise _client_error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(self.objects[Key])}

    def head_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        if Key not in self.objects:
            raise _client_error("404", "HeadObject")
        return {}

    def get_paginator(self, operation_name: str) -> _FakePaginator:
        return _FakePaginator(self)

    def delete_objects(self, Bucket: str, Delete: dict[str, Any]) -> dict[str, Any]:
        batch_number = len(self.delete_calls)
        keys = [item["Key"] for item in Delete["Objects"]]
        self.delete_calls.append(len(keys))
        if batch_number in self._failing_batches:
            raise _client_error("InternalError", "DeleteObjects")
        for key in keys:
            self.objects.pop(key, None)
        return {"Deleted": [{"Key": key} for key in keys]}


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def _seed_objects(client: _FakeS3Client, count: int) -> None:
    for index in range(count):
        client.objects[blob_key("t1", "g1", f"c{index:05d}")] = b"x"


def test_blob_key_is_deterministic() -> None:
    """Keys should be derived from tenant, project, and commit ids."""
    key = blob_key("t1", "g1", "c1")

    assert key == "tenants/t1/projects/g1/commits/c1/data.parquet"
    assert key.startswith(project_prefix("t1", "g1"))


def test_blob_key_rejects_path_separators() -> None:
    """Identifiers containing '/' should be rejected."""
    with pytest.raises(InvalidBlobError):
        blob_key("t1", "g1/../g2", "c1")


def test_s3_put_then_get_returns_bytes() -> None:
    """Uploaded bytes should be downloadable under the same ids."""
    store = S3BlobStore(_FakeS3Client(), "bucket")

    store.put("t1", "g1", "c1", b"payload")

    assert store.get("t1", "g1", "c1") == b"payload"


def test_s3_put_rejects_empty_payload() -> None:
    """Empty uploads should fail before any request is made."""
    client = _FakeS3Client()
    store = S3BlobStore(client, "bucket")

    with pytest.raises(InvalidBlobError):
        store.put("t1", "g1", "c1", b"")

    assert client.objects == {}


def test_s3_get_raises_for_missing_key() -> None:
    """Missing keys should map to a typed not-found error."""
    store = S3BlobStore(_FakeS3Client(), "bucket")

    with pytest.raises(BlobNotFoundError):
        store.get("t1", "g1", "missing")


def test_s3_get_reraises_other_client_errors() -> None:
    """Client errors other than a missing key should propagate."""

    class _DeniedClient(_FakeS3Client):
        def get_object(self, Bucket: str, Key: str) -> dict[str, Any]:
            raise _client_error("AccessDenied", "GetObject")

    store = S3BlobStore(_DeniedClient(), "bucket")

    with pytest.raises(ClientError):
        store.get("t1", "g1", "c1")


def test_s3_exists_reports_presence() -> None:
    """Exists should be true only for uploaded keys."""
    store = S3BlobStore(_FakeS3Client(), "bucket")
    store.put("t1", "g1", "c1", b"payload")

    assert store.exists("t1", "g1", "c1")
    assert not store.exists("t1", "g1", "c2")


def test_s3_delete_all_batches_at_most_1000_keys() -> None:
    """Deleting 2500 keys should take batches of 1000, 1000, and 500."""
    client = _FakeS3Client()
    _seed_objects(client, 2500)
    store = S3BlobStore(client, "bucket")

    deleted = store.delete_all("t1", "g1")

    assert deleted == 2500
    assert client.delete_calls == [1000, 1000, 500]


def test_s3_delete_all_counts_only_successful_batches() -> None:
    """A failing batch should be skipped and excluded from the count."""
    client = _FakeS3Client(failing_batches=(1,))
    _seed_objects(client, 2500)
    store = S3BlobStore(client, "bucket")

    deleted = store.delete_all("t1", "g1")

    assert deleted == 1500
    assert len(client.objects) == 1000


def test_s3_delete_all_leaves_other_projects() -> None:
    """Deleting one project should not touch another project's blobs."""
    client = _FakeS3Client()
    store = S3BlobStore(client, "bucket")
    store.put("t1", "g1", "c1", b"a")
    store.put("t1", "g2", "c2", b"b")

    store.delete_all("t1", "g1")

    assert store.exists("t1", "g2", "c2")


def test_local_store_round_trip_and_delete(tmp_path: Path) -> None:
    """Local store should write, read, and delete project blobs."""
    store = LocalBlobStore(tmp_path)
    store.put("t1", "g1", "c1", b"one")
    store.put("t1", "g1", "c2", b"two")

    payload = store.get("t1", "g1", "c2")
    deleted = store.delete_all("t1", "g1")

    assert payload == b"two"
    assert deleted == 2
    assert not store.exists("t1", "g1", "c1")


def test_local_store_delete_all_counts_files_removed_before_a_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A file that cannot be unlinked should be skipped, not abort the delete."""
    store = LocalBlobStore(tmp_path)
    for commit_id in ("c1", "c2", "c3"):
        store.put("t1", "g1", commit_id, b"data")
    original_unlink = Path.unlink

    def _unlink(path: Path, missing_ok: bool = False) -> None:
        if path.parent.name == "c2":
            raise PermissionError("read-only file")
        original_unlink(path, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", _unlink)

    deleted = store.delete_all("t1", "g1")

    assert deleted == 2
    assert store.exists("t1", "g1", "c2")
    assert not store.exists("t1", "g1", "c1")


def test_local_store_get_raises_for_missing_blob(tmp_path: Path) -> None:
    """Missing local blobs should raise a typed not-found error."""
    store = LocalBlobStore(tmp_path)

    with pytest.raises(BlobNotFoundError):
        store.get("t1", "g1", "c1")


def test_build_blob_store_uses_local_backend_by_default(tmp_path: Path) -> None:
    """The default backend should store blobs under the data root."""
    config = TabvcConfig(data_root=tmp_path, database_url=default_database_url(tmp_path))

    store = build_blob_store(config)

    assert isinstance(store, LocalBlobStore)


def test_build_blob_store_uses_injected_s3_client(tmp_path: Path) -> None:
    """The s3 backend should use the injected client."""
    config = TabvcConfig(
        data_root=tmp_path,
        database_url=default_database_url(tmp_path),
        blob_backend="s3",
        s3_bucket="bucket",
    )
    client = _FakeS3Client()

    store = build_blob_store(config, s3_client=client)
    store.put("t1", "g1", "c1", b"payload")

    assert blob_key("t1", "g1", "c1") in client.objects


def test_build_blob_store_requires_bucket_for_s3(tmp_path: Path) -> None:
    """The s3 backend should not build without a bucket."""
    config = replace(
        TabvcConfig(data_root=tmp_path, database_url=default_database_url(tmp_path)),
        blob_backend="s3",
    )

    with pytest.raises(TabvcConfigError):
        build_blob_store(config, s3_client=_FakeS3Client())
