"""Commit tree traversal.

This module rebuilds a project's tree from its flat commit list and
answers parent, child, ancestor, and generation queries. Sibling
commits sharing one parent are ordinary forks.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterable

from core.errors import CommitGraphError, CommitNotFoundError
from core.types import CommitRecord


@dataclass(frozen=True)
class CommitTree:
    """Validated, self-contained commit tree of one project.

    Attributes:
        commits: Commit records in creation order.
        root_id: Id of the unique root commit.
    """

    commits: tuple[CommitRecord, ...]
    root_id: str
    _by_id: dict[str, CommitRecord] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_id", {record.commit_id: record for record in self.commits})

    @classmethod
    def from_commits(cls, records: Iterable[CommitRecord]) -> "CommitTree":
        """Build a tree from a project's commit list.

        Args:
            records: Commits of one project.

        Returns:
            Validated tree.

        Raises:
            CommitGraphError: If there is not exactly one root, a parent is
                missing from the list, or the list mixes projects.
        """
        ordered = tuple(sorted(records, key=lambda record: record.commit_id))
        if not ordered:
            raise CommitGraphError("Cannot build a commit tree from an empty commit list.")
        group_ids = {record.group_id for record in ordered}
        if len(group_ids) != 1:
            raise CommitGraphError(f"Commit list spans several projects: {sorted(group_ids)}.")
        roots = [record.commit_id for record in ordered if record.is_root]
        if len(roots) != 1:
            raise CommitGraphError(f"Expected exactly one root commit, found {len(roots)}.")
        known_ids = {record.commit_id for record in ordered}
        for record in ordered:
            if not record.is_root and record.parent_commit_id not in known_ids:
                raise CommitGraphError(
                    f"Commit '{record.commit_id}' references parent "
                    f"'{record.parent_commit_id}' which is not in the project."
                )
        tree = cls(commits=ordered, root_id=roots[0])
        reachable = sum(len(level) for level in tree.generations())
        if reachable != len(ordered):
            raise CommitGraphError(
                f"{len(ordered) - reachable} commit(s) are not reachable from root "
                f"'{tree.root_id}'; the parent links contain a cycle."
            )
        return tree

    def __len__(self) -> int:
        return len(self.commits)

    def __contains__(self, commit_id: object) -> bool:
        return commit_id in self._by_id

    def get(self, commit_id: str) -> CommitRecord:
        """Return one commit record.

        Raises:
            CommitNotFoundError: If the commit is not in the tree.
        """
        record = self._by_id.get(commit_id)
        if record is None:
            raise CommitNotFoundError(f"Commit '{commit_id}' is not part of this project.")
        return record

    def parent(self, commit_id: str) -> str | None:
        return self.get(commit_id).parent_commit_id

    def children(self, commit_id: str) -> list[str]:
        """Return direct children in creation order."""
        self.get(commit_id)
        return [record.commit_id for record in self.commits if record.parent_commit_id == commit_id]

    def ancestors(self, commit_id: str) -> list[str]:
        """Return ancestors nearest first, ending with the root."""
        by_id = self._by_id
        lineage: list[str] = []
        current = self.get(commit_id).parent_commit_id
        while current is not None:
            lineage.append(current)
            current = by_id[current].parent_commit_id
        return lineage

    def depth(self, commit_id: str) -> int:
        return len(self.ancestors(commit_id))

    def leaves(self) -> list[str]:
        """Return commits without children in creation order."""
        parents = {record.parent_commit_id for record in self.commits}
        return [record.commit_id for record in self.commits if record.commit_id not in parents]

    def generations(self) -> list[list[str]]:
        """Group commits by distance from the root, breadth first.

        Returns:
            One list per level; level 0 holds the root.
        """
        children_by_parent: dict[str, list[str]] = {}
        for record in self.commits:
            if record.parent_commit_id is not None:
                children_by_parent.setdefault(record.parent_commit_id, []).append(record.commit_id)
        levels: list[list[str]] = []
        queue: deque[tuple[str, int]] = deque([(self.root_id, 0)])
        while queue:
            commit_id, level = queue.popleft()
            if level == len(levels):
                levels.append([])
            levels[level].append(commit_id)
            for child_id in children_by_parent.get(commit_id, []):
                queue.append((child_id, level + 1))
        return levels
