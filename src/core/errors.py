"""tabvc exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each error carries a stable ``code`` so callers can branch on it.
"""

from __future__ import annotations


class TabvcError(Exception):
    """Base exception for all tabvc failures."""

    code = "TABVC_ERROR"


class TabvcConfigError(TabvcError):
    """Raised for invalid runtime configuration."""

    code = "CONFIG_INVALID"


class InvalidSchemaError(TabvcError):
    """Raised when snapshot headers cannot form a valid schema."""

    code = "INVALID_SCHEMA"


class RowWidthMismatchError(InvalidSchemaError):
    """Raised when a row does not have one cell per header."""

    code = "ROW_WIDTH_MISMATCH"


class EmptyDatasetError(TabvcError):
    """Raised when an empty blob is handed to the decoder."""

    code = "EMPTY_DATASET"


class CodecError(TabvcError):
    """Raised when a blob cannot be encoded or decoded."""

    code = "CODEC_ERROR"


class InvalidBlobError(TabvcError):
    """Raised for empty payloads or malformed blob identifiers."""

    code = "INVALID_BLOB"


class BlobNotFoundError(TabvcError):
    """Raised by blob stores when a key does not exist."""

    code = "BLOB_NOT_FOUND"


class FileNotFoundInStoreError(TabvcError):
    """Raised when a commit exists in the index but its data file does not."""

    code = "FILE_NOT_FOUND"


class ParentNotFoundError(TabvcError):
    """Raised when a parent commit does not exist in the project."""

    code = "PARENT_NOT_FOUND"


class ProjectNotFoundError(TabvcError):
    """Raised when a project has no commits for the tenant."""

    code = "PROJECT_NOT_FOUND"


class CommitNotFoundError(TabvcError):
    """Raised when a commit id is unknown."""

    code = "COMMIT_NOT_FOUND"


class ForbiddenError(TabvcError):
    """Raised when a tenant touches a commit it does not own."""

    code = "FORBIDDEN"


class DuplicateNameError(TabvcError):
    """Raised when a project name is already taken for the tenant."""

    code = "DUPLICATE_PROJECT_NAME"


class InvalidProjectNameError(TabvcError):
    """Raised for blank project names."""

    code = "INVALID_PROJECT_NAME"


class NoChangesError(TabvcError):
    """Raised when a new version is saved without modifications."""

    code = "NO_CHANGES"


class EmptyModificationListError(TabvcError):
    """Raised when an empty modification log is recorded."""

    code = "EMPTY_MODIFICATIONS"


class CommitAlreadyCompleteError(TabvcError):
    """Raised when an upload targets a commit whose blob already exists."""

    code = "COMMIT_ALREADY_COMPLETE"


class CommitGraphError(TabvcError):
    """Raised when a commit list does not form a single rooted tree."""

    code = "COMMIT_GRAPH_INVALID"


class StorageError(TabvcError):
    """Raised for index or blob store failures that have no specific type."""

    code = "STORAGE_ERROR"


class TabvcIngestError(TabvcError):
    """Raised when a local table file cannot be read or written."""

    code = "INGEST_FAILED"
