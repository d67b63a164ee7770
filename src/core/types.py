"""Shared typed models.

This module defines immutable data models used by the codec, stores,
version service, and CLI to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class Snapshot:
    """Materialized tabular content of one commit.

    Attributes:
        headers: Ordered column headers; duplicates are allowed.
        rows: Ordered rows of text cells aligned to headers.
    """

    headers: tuple[str, ...]
    rows: tuple[tuple[str, ...], ...]

    @classmethod
    def from_lists(cls, headers: list[str], rows: list[list[str]]) -> "Snapshot":
        """Build a snapshot from caller-provided lists."""
        return cls(
            headers=tuple(headers),
            rows=tuple(tuple(row) for row in rows),
        )

    @property
    def column_count(self) -> int:
        return len(self.headers)

    @property
    def row_count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class CommitRef:
    """Identifiers returned when a commit is created.

    Attributes:
        group_id: Project the commit belongs to.
        commit_id: Newly created commit id.
    """

    group_id: str
    commit_id: str


@dataclass(frozen=True)
class CommitRecord:
    """One node of a project's commit tree.

    Attributes:
        commit_id: Commit identifier.
        group_id: Project identifier.
        tenant_id: Owning tenant.
        parent_commit_id: Parent commit, ``None`` for the root.
        parent_group_id: Project of the parent, ``None`` for the root.
    """

    commit_id: str
    group_id: str
    tenant_id: str
    parent_commit_id: str | None
    parent_group_id: str | None

    @property
    def is_root(self) -> bool:
        return self.parent_commit_id is None


@dataclass(frozen=True)
class ProjectSummary:
    """Project listing row.

    Attributes:
        name: Human-readable project name.
        group_id: Project identifier.
        root_commit_id: Root commit of the project.
    """

    name: str
    group_id: str
    root_commit_id: str


@dataclass(frozen=True)
class ModificationEntry:
    """One ordered entry of a commit's modification log."""

    order: int
    description: str


class CommitState(str, Enum):
    """Lifecycle state of a commit.

    ``PENDING_BLOB`` means the index row exists but the blob does not;
    ``COMPLETE`` means both exist.
    """

    PENDING_BLOB = "PENDING_BLOB"
    COMPLETE = "COMPLETE"


@dataclass(frozen=True)
class DeleteProjectResult:
    """Outcome of deleting a project end-to-end.

    Attributes:
        group_id: Deleted project identifier.
        blobs_deleted: Number of blobs removed from the blob store.
        blob_cleanup_failed: Whether blob deletion failed outright.
    """

    group_id: str
    blobs_deleted: int
    blob_cleanup_failed: bool = False
