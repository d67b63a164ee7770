"""Versioned dataset service.

This module orchestrates the commit index, the columnar codec, and the
blob store into project-level operations: save, load, list, and delete.

Saves write the index first and the blob second with no two-phase
commit. A failed upload leaves the commit row in place (state
``PENDING_BLOB``) so the attempt stays auditable and can be retried.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence, TypeVar

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.config import TabvcConfig
from core.constants import DEFAULT_CODEC_BATCH_SIZE
from core.errors import (
    BlobNotFoundError,
    CommitAlreadyCompleteError,
    FileNotFoundInStoreError,
    InvalidProjectNameError,
    InvalidSchemaError,
    NoChangesError,
    RowWidthMismatchError,
    StorageError,
    TabvcError,
)
from core.logging_config import get_logger
from core.types import (
    CommitRef,
    CommitState,
    DeleteProjectResult,
    ModificationEntry,
    ProjectSummary,
    Snapshot,
)
from store.blob_store import BlobStore, build_blob_store, project_prefix, validate_key_segment
from store.columnar_codec import decode_snapshot, encode_snapshot
from store.commit_index import CommitIndex
from store.commit_tree import CommitTree
from store.index_db import engine_from_config

_LOGGER = get_logger(__name__)
_STORAGE_ERRORS = (SQLAlchemyError, BotoCoreError, ClientError, OSError)
_T = TypeVar("_T")


class VersionService:
    """Project-level operations over the index and blob store."""

    def __init__(
        self,
        index: CommitIndex,
        blobs: BlobStore,
        codec_batch_size: int = DEFAULT_CODEC_BATCH_SIZE,
    ) -> None:
        """Initialize the service.

        Args:
            index: Commit graph index.
            blobs: Snapshot blob store.
            codec_batch_size: Rows per Parquet batch.
        """
        self._index = index
        self._blobs = blobs
        self._batch_size = codec_batch_size

    def save_new_project(self, tenant_id: str, name: str, snapshot: Snapshot) -> CommitRef:
        """Create a project whose root commit holds ``snapshot``.

        Args:
            tenant_id: Owning tenant.
            name: Project name, unique per tenant.
            snapshot: Initial tabular content.

        Returns:
            New group id and root commit id.

        Raises:
            InvalidSchemaError: If the snapshot shape is invalid.
            InvalidBlobError: If ``tenant_id`` cannot form a blob key.
            DuplicateNameError: If the tenant already has a project with ``name``.
            StorageError: If the index or blob store fails.
        """
        if not name.strip():
            raise InvalidProjectNameError("Project name must not be blank.")
        validate_snapshot_shape(snapshot)
        validate_key_segment("tenant_id", tenant_id)
        ref = _storage_call(self._index.create_root, tenant_id)
        self._upload(tenant_id, ref, snapshot)
        _storage_call(self._index.bind_name, tenant_id, ref.group_id, ref.commit_id, name)
        _LOGGER.info(
            "project_saved",
            tenant_id=tenant_id,
            group_id=ref.group_id,
            commit_id=ref.commit_id,
            rows=snapshot.row_count,
            columns=snapshot.column_count,
        )
        return ref

    def save_new_version(
        self,
        tenant_id: str,
        group_id: str,
        parent_commit_id: str,
        snapshot: Snapshot,
        modifications: Sequence[str],
    ) -> CommitRef:
        """Commit ``snapshot`` on top of a parent commit.

        Args:
            tenant_id: Owning tenant.
            group_id: Project identifier.
            parent_commit_id: Commit the new version derives from.
            snapshot: New tabular content.
            modifications: Ordered change descriptions, at least one.

        Returns:
            Group id and new commit id.

        Raises:
            NoChangesError: If ``modifications`` is empty.
            InvalidBlobError: If the ids cannot form a blob key.
            ParentNotFoundError: If the parent is not in the project.
            ForbiddenError: If the parent belongs to another tenant.
            StorageError: If the index or blob store fails.
        """
        if not modifications:
            raise NoChangesError(
                "No modifications to save. Make changes to the dataset before saving a version."
            )
        validate_snapshot_shape(snapshot)
        project_prefix(tenant_id, group_id)
        ref = _storage_call(
            self._index.create_child_with_modifications,
            tenant_id,
            group_id,
            parent_commit_id,
            list(modifications),
        )
        self._upload(tenant_id, ref, snapshot)
        _LOGGER.info(
            "version_saved",
            tenant_id=tenant_id,
            group_id=group_id,
            commit_id=ref.commit_id,
            parent_commit_id=parent_commit_id,
            modification_count=len(modifications),
        )
        return ref

    def load_snapshot(self, tenant_id: str, group_id: str, commit_id: str) -> Snapshot:
        """Materialize the snapshot of one commit.

        Raises:
            CommitNotFoundError: If the commit is not in the project.
            ForbiddenError: If the commit belongs to another tenant.
            FileNotFoundInStoreError: If the commit has no stored blob.
            CodecError: If the stored blob is corrupt.
        """
        _storage_call(self._index.get_commit, tenant_id, group_id, commit_id)
        try:
            data = _storage_call(self._blobs.get, tenant_id, group_id, commit_id)
        except BlobNotFoundError as error:
            _LOGGER.error(
                "snapshot_file_missing",
                tenant_id=tenant_id,
                group_id=group_id,
                commit_id=commit_id,
                state=CommitState.PENDING_BLOB.value,
            )
            raise FileNotFoundInStoreError(
                f"The data file for commit '{commit_id}' does not exist in storage. "
                "This happens when an upload failed or was deleted; save the version again."
            ) from error
        return decode_snapshot(data, self._batch_size)

    def load_root(self, tenant_id: str, group_id: str) -> Snapshot:
        """Materialize the root snapshot of a project."""
        root_commit_id = _storage_call(self._index.get_root, tenant_id, group_id)
        return self.load_snapshot(tenant_id, group_id, root_commit_id)

    def list_projects(self, tenant_id: str) -> list[ProjectSummary]:
        return _storage_call(self._index.list_projects, tenant_id)

    def list_project_history(self, tenant_id: str, group_id: str) -> CommitTree:
        """Return a project's full, self-contained commit tree.

        Raises:
            ProjectNotFoundError: If the project has no commits for the tenant.
            CommitGraphError: If the stored commits do not form one tree.
        """
        commits = _storage_call(self._index.list_commits, tenant_id, group_id)
        return CommitTree.from_commits(commits)

    def get_modifications(self, tenant_id: str, commit_id: str) -> list[ModificationEntry]:
        return _storage_call(self._index.get_modifications, tenant_id, commit_id)

    def rename_project(self, tenant_id: str, group_id: str, name: str) -> None:
        """Rebind a project's name through its root commit."""
        root_commit_id = _storage_call(self._index.get_root, tenant_id, group_id)
        _storage_call(self._index.bind_name, tenant_id, group_id, root_commit_id, name)

    def commit_state(self, tenant_id: str, group_id: str, commit_id: str) -> CommitState:
        """Infer whether a commit's blob has been stored."""
        _storage_call(self._index.get_commit, tenant_id, group_id, commit_id)
        if _storage_call(self._blobs.exists, tenant_id, group_id, commit_id):
            return CommitState.COMPLETE
        return CommitState.PENDING_BLOB

    def list_pending_commits(self, tenant_id: str, group_id: str) -> list[str]:
        """Return ids of a project's commits that have no stored blob."""
        commits = _storage_call(self._index.list_commits, tenant_id, group_id)
        return [
            record.commit_id
            for record in commits
            if not _storage_call(self._blobs.exists, tenant_id, group_id, record.commit_id)
        ]

    def retry_upload(
        self,
        tenant_id: str,
        group_id: str,
        commit_id: str,
        snapshot: Snapshot,
    ) -> str:
        """Upload the snapshot of a commit still in ``PENDING_BLOB``.

        Returns:
            Blob key written.

        Raises:
            CommitNotFoundError: If the commit is not in the project.
            CommitAlreadyCompleteError: If the commit already has a blob.
        """
        _storage_call(self._index.get_commit, tenant_id, group_id, commit_id)
        if _storage_call(self._blobs.exists, tenant_id, group_id, commit_id):
            raise CommitAlreadyCompleteError(
                f"Commit '{commit_id}' already has stored data and cannot be overwritten. "
                "Save a new version to record different content."
            )
        validate_snapshot_shape(snapshot)
        return self._upload(tenant_id, CommitRef(group_id=group_id, commit_id=commit_id), snapshot)

    def delete_project(self, tenant_id: str, group_id: str) -> DeleteProjectResult:
        """Delete a project's blobs, then its index rows.

        Blob deletion is best effort: if it fails outright the index rows
        are still deleted, trading orphaned blobs for a project that no
        longer shows up for the tenant.

        Raises:
            ProjectNotFoundError: If the project has no commits for the tenant.
        """
        _storage_call(self._index.list_commits, tenant_id, group_id)
        blobs_deleted = 0
        blob_cleanup_failed = False
        try:
            blobs_deleted = self._blobs.delete_all(tenant_id, group_id)
        except Exception as error:
            blob_cleanup_failed = True
            _LOGGER.error(
                "blob_delete_failed",
                tenant_id=tenant_id,
                group_id=group_id,
                error_type=type(error).__name__,
                error=str(error),
            )
        _storage_call(self._index.delete_project, tenant_id, group_id)
        _LOGGER.info(
            "project_deleted",
            tenant_id=tenant_id,
            group_id=group_id,
            blobs_deleted=blobs_deleted,
            blob_cleanup_failed=blob_cleanup_failed,
        )
        return DeleteProjectResult(
            group_id=group_id,
            blobs_deleted=blobs_deleted,
            blob_cleanup_failed=blob_cleanup_failed,
        )

    def _upload(self, tenant_id: str, ref: CommitRef, snapshot: Snapshot) -> str:
        """Encode and store a commit's snapshot, leaving the row on failure."""
        try:
            data = encode_snapshot(snapshot.headers, snapshot.rows, self._batch_size)
            return _storage_call(self._blobs.put, tenant_id, ref.group_id, ref.commit_id, data)
        except TabvcError as error:
            _LOGGER.error(
                "snapshot_upload_failed",
                tenant_id=tenant_id,
                group_id=ref.group_id,
                commit_id=ref.commit_id,
                state=CommitState.PENDING_BLOB.value,
                error=str(error),
            )
            raise


def validate_snapshot_shape(snapshot: Snapshot) -> None:
    """Check that every row has exactly one cell per header.

    Raises:
        InvalidSchemaError: If the snapshot has no headers.
        RowWidthMismatchError: If a row's width differs from the header count.
    """
    if not snapshot.headers:
        raise InvalidSchemaError("Snapshot has no headers. Provide at least one column.")
    width = len(snapshot.headers)
    for row_number, row in enumerate(snapshot.rows, 1):
        if len(row) != width:
            raise RowWidthMismatchError(
                f"Row {row_number} has {len(row)} cells but the snapshot has {width} headers. "
                "Pad or trim rows to the header count."
            )


def build_version_service(
    config: TabvcConfig,
    engine: Engine | None = None,
    s3_client: Any | None = None,
    create_schema: bool = True,
) -> VersionService:
    """Build a service from config, constructing clients once.

    Args:
        config: Runtime configuration.
        engine: Optional prebuilt index engine.
        s3_client: Optional prebuilt S3 client.
        create_schema: Create missing index tables.

    Returns:
        Ready-to-use version service.
    """
    index = CommitIndex(engine if engine is not None else engine_from_config(config))
    if create_schema:
        _storage_call(index.create_schema)
    blobs = build_blob_store(config, s3_client=s3_client)
    return VersionService(index, blobs, codec_batch_size=config.codec_batch_size)


def _storage_call(operation: Callable[..., _T], *args: Any) -> _T:
    """Run a store operation, wrapping unclassified failures.

    Typed tabvc errors pass through unchanged; driver and client
    exceptions become ``StorageError`` with the original message.
    """
    try:
        return operation(*args)
    except _STORAGE_ERRORS as error:
        raise StorageError(
            f"Storage operation {getattr(operation, '__name__', 'call')} failed: {error}"
        ) from error
