"""Public SDK surface for tabvc.

This module provides a stable import path for library users.
It re-exports the version service, its builders, and typed models.
"""

from __future__ import annotations

from core.config import TabvcConfig
from core.errors import (
    CommitAlreadyCompleteError,
    CommitNotFoundError,
    DuplicateNameError,
    FileNotFoundInStoreError,
    ForbiddenError,
    InvalidSchemaError,
    NoChangesError,
    ParentNotFoundError,
    ProjectNotFoundError,
    StorageError,
    TabvcError,
)
from core.types import (
    CommitRecord,
    CommitRef,
    CommitState,
    DeleteProjectResult,
    ModificationEntry,
    ProjectSummary,
    Snapshot,
)
from ingest.csv_table import read_csv_snapshot, write_csv_snapshot
from store.columnar_codec import decode_snapshot, encode_snapshot
from store.commit_tree import CommitTree
from store.version_service import VersionService, build_version_service

__all__ = [
    "CommitAlreadyCompleteError",
    "CommitNotFoundError",
    "CommitRecord",
    "CommitRef",
    "CommitState",
    "CommitTree",
    "DeleteProjectResult",
    "DuplicateNameError",
    "FileNotFoundInStoreError",
    "ForbiddenError",
    "InvalidSchemaError",
    "ModificationEntry",
    "NoChangesError",
    "ParentNotFoundError",
    "ProjectNotFoundError",
    "ProjectSummary",
    "Snapshot",
    "StorageError",
    "TabvcConfig",
    "TabvcError",
    "VersionService",
    "build_version_service",
    "decode_snapshot",
    "encode_snapshot",
    "read_csv_snapshot",
    "write_csv_snapshot",
]
