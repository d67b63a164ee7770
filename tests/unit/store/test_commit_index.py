"""Unit tests for the relational commit index."""

from __future__ import annotations

import pytest

from core.errors import (
    CommitNotFoundError,
    DuplicateNameError,
    EmptyModificationListError,
    ForbiddenError,
    InvalidProjectNameError,
    ParentNotFoundError,
    ProjectNotFoundError,
)
from store.commit_index import CommitIndex, truncate_description
from store.index_db import create_index_engine


def _index() -> CommitIndex:
    index = CommitIndex(create_index_engine("sqlite://"))
    index.create_schema()
    return index


def test_create_root_starts_new_project() -> None:
    """A root commit should have no parent and its own project."""
    index = _index()

    ref = index.create_root("t1")
    record = index.get_commit("t1", ref.group_id, ref.commit_id)

    assert record.is_root
    assert index.get_root("t1", ref.group_id) == ref.commit_id


def test_create_child_links_parent() -> None:
    """A child commit should point at its parent in the same project."""
    index = _index()
    root = index.create_root("t1")

    child = index.create_child("t1", root.group_id, root.commit_id)

    assert index.get_commit("t1", root.group_id, child.commit_id).parent_commit_id == root.commit_id


def test_create_child_allows_sibling_forks() -> None:
    """Two children of one parent should both be stored."""
    index = _index()
    root = index.create_root("t1")

    first = index.create_child("t1", root.group_id, root.commit_id)
    second = index.create_child("t1", root.group_id, root.commit_id)

    commits = index.list_commits("t1", root.group_id)
    assert [record.commit_id for record in commits] == [
        root.commit_id,
        first.commit_id,
        second.commit_id,
    ]


def test_create_child_rejects_parent_from_other_project() -> None:
    """Parents must belong to the project named by the caller."""
    index = _index()
    first = index.create_root("t1")
    second = index.create_root("t1")

    with pytest.raises(ParentNotFoundError):
        index.create_child("t1", second.group_id, first.commit_id)


def test_create_child_rejects_other_tenant() -> None:
    """A tenant should not extend another tenant's project."""
    index = _index()
    root = index.create_root("t1")

    with pytest.raises(ForbiddenError):
        index.create_child("t2", root.group_id, root.commit_id)


def test_create_child_with_modifications_is_atomic() -> None:
    """An empty modification list should leave no commit row behind."""
    index = _index()
    root = index.create_root("t1")

    with pytest.raises(EmptyModificationListError):
        index.create_child_with_modifications("t1", root.group_id, root.commit_id, [])

    assert len(index.list_commits("t1", root.group_id)) == 1


def test_modifications_are_returned_in_order() -> None:
    """Modification entries should keep their 1-based order."""
    index = _index()
    root = index.create_root("t1")

    child = index.create_child_with_modifications(
        "t1", root.group_id, root.commit_id, ["renamed a to A", "dropped column b"]
    )

    entries = index.get_modifications("t1", child.commit_id)
    assert [(entry.order, entry.description) for entry in entries] == [
        (1, "renamed a to A"),
        (2, "dropped column b"),
    ]


def test_record_modifications_truncates_long_descriptions() -> None:
    """Descriptions over 255 characters should be cut and end in '...'."""
    index = _index()
    root = index.create_root("t1")
    child = index.create_child("t1", root.group_id, root.commit_id)

    index.record_modifications(child.commit_id, root.commit_id, ["x" * 300])

    description = index.get_modifications("t1", child.commit_id)[0].description
    assert len(description) == 255
    assert description.endswith("...")


def test_truncate_description_keeps_short_text() -> None:
    """Descriptions within the limit should be stored as given."""
    assert truncate_description("x" * 255) == "x" * 255


def test_get_modifications_rejects_other_tenant() -> None:
    """A tenant should not read another tenant's modification log."""
    index = _index()
    root = index.create_root("t1")
    child = index.create_child_with_modifications("t1", root.group_id, root.commit_id, ["edit"])

    with pytest.raises(ForbiddenError):
        index.get_modifications("t2", child.commit_id)


def test_bind_name_lists_project() -> None:
    """Bound projects should be listed for their tenant only."""
    index = _index()
    ref = index.create_root("t1")

    index.bind_name("t1", ref.group_id, ref.commit_id, "  P1 ")

    projects = index.list_projects("t1")
    assert [(project.name, project.group_id) for project in projects] == [("P1", ref.group_id)]
    assert index.list_projects("t2") == []


def test_bind_name_renames_existing_binding() -> None:
    """Binding again through the same root should rename the project."""
    index = _index()
    ref = index.create_root("t1")
    index.bind_name("t1", ref.group_id, ref.commit_id, "old")

    index.bind_name("t1", ref.group_id, ref.commit_id, "new")

    assert [project.name for project in index.list_projects("t1")] == ["new"]


def test_bind_name_rejects_duplicate_for_tenant() -> None:
    """Another project of the same tenant should not take a bound name."""
    index = _index()
    first = index.create_root("t1")
    second = index.create_root("t1")
    index.bind_name("t1", first.group_id, first.commit_id, "P1")

    with pytest.raises(DuplicateNameError):
        index.bind_name("t1", second.group_id, second.commit_id, "P1")

    assert [project.group_id for project in index.list_projects("t1")] == [first.group_id]


def test_bind_name_allows_same_name_for_other_tenant() -> None:
    """Name uniqueness should be scoped to a tenant."""
    index = _index()
    first = index.create_root("t1")
    second = index.create_root("t2")
    index.bind_name("t1", first.group_id, first.commit_id, "P1")

    index.bind_name("t2", second.group_id, second.commit_id, "P1")

    assert [project.name for project in index.list_projects("t2")] == ["P1"]


def test_bind_name_rejects_blank_name() -> None:
    """Blank names should be rejected before touching the database."""
    index = _index()
    ref = index.create_root("t1")

    with pytest.raises(InvalidProjectNameError):
        index.bind_name("t1", ref.group_id, ref.commit_id, "   ")


def test_get_commit_raises_for_unknown_commit() -> None:
    """Unknown commit ids should raise a typed not-found error."""
    index = _index()
    ref = index.create_root("t1")

    with pytest.raises(CommitNotFoundError):
        index.get_commit("t1", ref.group_id, "missing")


def test_list_commits_raises_for_unknown_project() -> None:
    """Listing an unknown project should raise a not-found error."""
    index = _index()

    with pytest.raises(ProjectNotFoundError):
        index.list_commits("t1", "missing")


def test_delete_project_removes_rows_of_that_project_only() -> None:
    """Deleting a project should remove its commits, names, and logs."""
    index = _index()
    doomed = index.create_root("t1")
    kept = index.create_root("t1")
    child = index.create_child_with_modifications("t1", doomed.group_id, doomed.commit_id, ["edit"])
    index.bind_name("t1", doomed.group_id, doomed.commit_id, "doomed")
    index.bind_name("t1", kept.group_id, kept.commit_id, "kept")

    index.delete_project("t1", doomed.group_id)

    with pytest.raises(ProjectNotFoundError):
        index.list_commits("t1", doomed.group_id)
    with pytest.raises(CommitNotFoundError):
        index.get_modifications("t1", child.commit_id)
    assert [project.name for project in index.list_projects("t1")] == ["kept"]


def test_check_connection_reports_healthy_engine() -> None:
    """A reachable database should report a healthy connection."""
    assert _index().check_connection()
