"""Relational commit index.

This module owns every read and write of the commit, name-binding,
and modification tables. Each public operation runs in its own
transaction and is scoped to a tenant.
"""

from __future__ import annotations

from typing import Sequence

from sqlalchemy import Engine, and_, delete, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import MODIFICATION_DESCRIPTION_MAX_LENGTH, TRUNCATION_MARKER
from core.errors import (
    CommitNotFoundError,
    DuplicateNameError,
    EmptyModificationListError,
    ForbiddenError,
    InvalidProjectNameError,
    ParentNotFoundError,
    ProjectNotFoundError,
)
from core.logging_config import get_logger
from core.types import CommitRecord, CommitRef, ModificationEntry, ProjectSummary
from store.identifiers import CommitIdGenerator, new_group_id
from store.index_db import build_session_factory
from store.index_models import Base, CommitRow, ModificationRow, NameBindingRow

_LOGGER = get_logger(__name__)


class CommitIndex:
    """Commit graph index over a SQLAlchemy engine.

    The engine is created once by the caller and injected; the index
    never reads configuration or global state.
    """

    def __init__(self, engine: Engine, id_generator: CommitIdGenerator | None = None) -> None:
        """Initialize the index.

        Args:
            engine: Engine bound to the index database.
            id_generator: Optional commit id generator.
        """
        self._engine = engine
        self._sessions = build_session_factory(engine)
        self._ids = id_generator or CommitIdGenerator()

    def create_schema(self) -> None:
        """Create index tables that do not exist yet."""
        Base.metadata.create_all(self._engine)
        _LOGGER.info("index_schema_ready", dialect=self._engine.dialect.name)

    def check_connection(self) -> bool:
        """Return whether the index database answers a trivial query."""
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except SQLAlchemyError as error:
            _LOGGER.error("index_connection_failed", error=str(error))
            return False
        return True

    def create_root(self, tenant_id: str) -> CommitRef:
        """Allocate a new project with a fresh root commit.

        Args:
            tenant_id: Owning tenant.

        Returns:
            New group id and root commit id.
        """
        ref = CommitRef(group_id=new_group_id(), commit_id=self._ids.next_id())
        with self._sessions() as session, session.begin():
            session.add(
                CommitRow(
                    commit_id=ref.commit_id,
                    group_id=ref.group_id,
                    tenant_id=tenant_id,
                    parent_commit_id=None,
                    parent_group_id=None,
                )
            )
        _LOGGER.info("root_commit_created", tenant_id=tenant_id, **_ref_fields(ref))
        return ref

    def create_child(self, tenant_id: str, group_id: str, parent_commit_id: str) -> CommitRef:
        """Insert a commit on top of an existing parent.

        Args:
            tenant_id: Tenant creating the commit.
            group_id: Project of the parent.
            parent_commit_id: Parent commit id.

        Returns:
            Group id and new commit id.

        Raises:
            ParentNotFoundError: If the parent is not in the project.
            ForbiddenError: If the parent belongs to another tenant.
        """
        with self._sessions() as session, session.begin():
            ref = self._insert_child(session, tenant_id, group_id, parent_commit_id)
        _LOGGER.info("child_commit_created", tenant_id=tenant_id, parent=parent_commit_id, **_ref_fields(ref))
        return ref

    def create_child_with_modifications(
        self,
        tenant_id: str,
        group_id: str,
        parent_commit_id: str,
        descriptions: Sequence[str],
    ) -> CommitRef:
        """Insert a child commit and its modification log in one transaction.

        Raises:
            EmptyModificationListError: If ``descriptions`` is empty.
            ParentNotFoundError: If the parent is not in the project.
            ForbiddenError: If the parent belongs to another tenant.
        """
        _require_descriptions(descriptions)
        with self._sessions() as session, session.begin():
            ref = self._insert_child(session, tenant_id, group_id, parent_commit_id)
            session.flush()
            _insert_modifications(session, ref.commit_id, parent_commit_id, descriptions)
        _LOGGER.info(
            "child_commit_created",
            tenant_id=tenant_id,
            parent=parent_commit_id,
            modification_count=len(descriptions),
            **_ref_fields(ref),
        )
        return ref

    def bind_name(self, tenant_id: str, group_id: str, root_commit_id: str, name: str) -> None:
        """Bind or rename a project, keyed on its root commit.

        Args:
            tenant_id: Owning tenant.
            group_id: Project identifier.
            root_commit_id: Root commit of the project.
            name: Project name, unique per tenant.

        Raises:
            InvalidProjectNameError: If ``name`` is blank.
            ProjectNotFoundError: If the root commit does not exist.
            ForbiddenError: If the root belongs to another tenant.
            DuplicateNameError: If another project of the tenant has the name.
        """
        clean_name = name.strip()
        if not clean_name:
            raise InvalidProjectNameError("Project name must not be blank.")
        with self._sessions() as session, session.begin():
            _require_root(session, tenant_id, group_id, root_commit_id)
            holder = session.scalar(
                select(NameBindingRow).where(
                    NameBindingRow.tenant_id == tenant_id,
                    NameBindingRow.name == clean_name,
                )
            )
            if holder is not None and (holder.group_id, holder.root_commit_id) != (
                group_id,
                root_commit_id,
            ):
                raise _duplicate_name(clean_name)
            binding = session.scalar(
                select(NameBindingRow).where(
                    NameBindingRow.group_id == group_id,
                    NameBindingRow.root_commit_id == root_commit_id,
                )
            )
            if binding is None:
                session.add(
                    NameBindingRow(
                        name=clean_name,
                        group_id=group_id,
                        root_commit_id=root_commit_id,
                        tenant_id=tenant_id,
                    )
                )
            else:
                binding.name = clean_name
            try:
                session.flush()
            except IntegrityError as error:
                raise _duplicate_name(clean_name) from error
        _LOGGER.info("project_name_bound", tenant_id=tenant_id, group_id=group_id, name=clean_name)

    def list_projects(self, tenant_id: str) -> list[ProjectSummary]:
        """List projects whose root commit the tenant owns, ordered by name."""
        statement = (
            select(NameBindingRow.name, NameBindingRow.group_id, NameBindingRow.root_commit_id)
            .join(
                CommitRow,
                and_(
                    CommitRow.group_id == NameBindingRow.group_id,
                    CommitRow.commit_id == NameBindingRow.root_commit_id,
                ),
            )
            .where(CommitRow.tenant_id == tenant_id, CommitRow.parent_commit_id.is_(None))
            .order_by(NameBindingRow.name)
        )
        with self._sessions() as session:
            rows = session.execute(statement).all()
        return [
            ProjectSummary(name=row.name, group_id=row.group_id, root_commit_id=row.root_commit_id)
            for row in rows
        ]

    def list_commits(self, tenant_id: str, group_id: str) -> list[CommitRecord]:
        """List a project's commits in creation order.

        Raises:
            ProjectNotFoundError: If the tenant has no commits in the project.
        """
        statement = (
            select(CommitRow)
            .where(CommitRow.group_id == group_id, CommitRow.tenant_id == tenant_id)
            .order_by(CommitRow.commit_id)
        )
        with self._sessions() as session:
            rows = session.scalars(statement).all()
        if not rows:
            raise _project_not_found(tenant_id, group_id)
        return [_record_from_row(row) for row in rows]

    def get_root(self, tenant_id: str, group_id: str) -> str:
        """Return the root commit id of a project.

        Raises:
            ProjectNotFoundError: If the project has no root for the tenant.
        """
        statement = select(CommitRow.commit_id).where(
            CommitRow.group_id == group_id,
            CommitRow.tenant_id == tenant_id,
            CommitRow.parent_commit_id.is_(None),
        )
        with self._sessions() as session:
            commit_id = session.scalars(statement).first()
        if commit_id is None:
            raise _project_not_found(tenant_id, group_id)
        return commit_id

    def get_commit(self, tenant_id: str, group_id: str, commit_id: str) -> CommitRecord:
        """Return one commit after checking project membership and ownership.

        Raises:
            CommitNotFoundError: If the commit is not in the project.
            ForbiddenError: If the commit belongs to another tenant.
        """
        with self._sessions() as session:
            row = session.get(CommitRow, commit_id)
        if row is None or row.group_id != group_id:
            raise CommitNotFoundError(
                f"Commit '{commit_id}' not found in project '{group_id}'."
            )
        if row.tenant_id != tenant_id:
            raise ForbiddenError(f"Commit '{commit_id}' does not belong to the requesting tenant.")
        return _record_from_row(row)

    def record_modifications(
        self,
        commit_id: str,
        parent_commit_id: str,
        descriptions: Sequence[str],
    ) -> None:
        """Write a commit's modification log.

        Descriptions longer than 255 characters are cut and end in ``...``.

        Raises:
            EmptyModificationListError: If ``descriptions`` is empty.
            CommitNotFoundError: If the commit does not exist.
        """
        _require_descriptions(descriptions)
        with self._sessions() as session, session.begin():
            if session.get(CommitRow, commit_id) is None:
                raise CommitNotFoundError(f"Commit '{commit_id}' not found.")
            _insert_modifications(session, commit_id, parent_commit_id, descriptions)
        _LOGGER.info("modifications_recorded", commit_id=commit_id, count=len(descriptions))

    def get_modifications(self, tenant_id: str, commit_id: str) -> list[ModificationEntry]:
        """Return a commit's modification log in order.

        Raises:
            CommitNotFoundError: If the commit does not exist.
            ForbiddenError: If the commit belongs to another tenant.
        """
        with self._sessions() as session:
            commit = session.get(CommitRow, commit_id)
            if commit is None:
                raise CommitNotFoundError(f"Commit '{commit_id}' not found.")
            if commit.tenant_id != tenant_id:
                raise ForbiddenError(
                    f"Commit '{commit_id}' does not belong to the requesting tenant."
                )
            rows = session.scalars(
                select(ModificationRow)
                .where(ModificationRow.commit_id == commit_id)
                .order_by(ModificationRow.order_num)
            ).all()
        return [ModificationEntry(order=row.order_num, description=row.description) for row in rows]

    def delete_project(self, tenant_id: str, group_id: str) -> None:
        """Delete a project's commits, names, and logs atomically.

        Raises:
            ProjectNotFoundError: If the tenant has no commits in the project.
        """
        project_commits = select(CommitRow.commit_id).where(
            CommitRow.group_id == group_id,
            CommitRow.tenant_id == tenant_id,
        )
        with self._sessions() as session, session.begin():
            commit_count = len(session.scalars(project_commits).all())
            if commit_count == 0:
                raise _project_not_found(tenant_id, group_id)
            session.execute(
                delete(ModificationRow)
                .where(ModificationRow.commit_id.in_(project_commits))
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(NameBindingRow)
                .where(NameBindingRow.group_id == group_id, NameBindingRow.tenant_id == tenant_id)
                .execution_options(synchronize_session=False)
            )
            session.execute(
                delete(CommitRow)
                .where(CommitRow.group_id == group_id, CommitRow.tenant_id == tenant_id)
                .execution_options(synchronize_session=False)
            )
        _LOGGER.info(
            "project_index_deleted",
            tenant_id=tenant_id,
            group_id=group_id,
            commit_count=commit_count,
        )

    def _insert_child(
        self,
        session: Session,
        tenant_id: str,
        group_id: str,
        parent_commit_id: str,
    ) -> CommitRef:
        parent = session.scalar(
            select(CommitRow).where(
                CommitRow.commit_id == parent_commit_id,
                CommitRow.group_id == group_id,
            )
        )
        if parent is None:
            raise ParentNotFoundError(
                f"Parent commit '{parent_commit_id}' not found in project '{group_id}'. "
                "Reload the project history and pick an existing commit."
            )
        if parent.tenant_id != tenant_id:
            raise ForbiddenError(
                f"Parent commit '{parent_commit_id}' does not belong to the requesting tenant."
            )
        ref = CommitRef(group_id=group_id, commit_id=self._ids.next_id())
        session.add(
            CommitRow(
                commit_id=ref.commit_id,
                group_id=group_id,
                tenant_id=tenant_id,
                parent_commit_id=parent_commit_id,
                parent_group_id=group_id,
            )
        )
        return ref


def truncate_description(description: str) -> str:
    """Fit a description into the 255-character storage limit.

    Args:
        description: Raw modification description.

    Returns:
        The description, or its first 252 characters followed by ``...``.
    """
    if len(description) <= MODIFICATION_DESCRIPTION_MAX_LENGTH:
        return description
    keep = MODIFICATION_DESCRIPTION_MAX_LENGTH - len(TRUNCATION_MARKER)
    return description[:keep] + TRUNCATION_MARKER


def _insert_modifications(
    session: Session,
    commit_id: str,
    parent_commit_id: str,
    descriptions: Sequence[str],
) -> None:
    for order, description in enumerate(descriptions, start=1):
        session.add(
            ModificationRow(
                commit_id=commit_id,
                parent_commit_id=parent_commit_id,
                order_num=order,
                description=truncate_description(str(description)),
            )
        )


def _require_descriptions(descriptions: Sequence[str]) -> None:
    if not descriptions:
        raise EmptyModificationListError(
            "A modification log needs at least one description. "
            "Record what changed relative to the parent commit."
        )


def _require_root(session: Session, tenant_id: str, group_id: str, root_commit_id: str) -> None:
    root = session.get(CommitRow, root_commit_id)
    if root is None or root.group_id != group_id or root.parent_commit_id is not None:
        raise ProjectNotFoundError(
            f"Root commit '{root_commit_id}' not found in project '{group_id}'."
        )
    if root.tenant_id != tenant_id:
        raise ForbiddenError(f"Project '{group_id}' does not belong to the requesting tenant.")


def _record_from_row(row: CommitRow) -> CommitRecord:
    return CommitRecord(
        commit_id=row.commit_id,
        group_id=row.group_id,
        tenant_id=row.tenant_id,
        parent_commit_id=row.parent_commit_id,
        parent_group_id=row.parent_group_id,
    )


def _project_not_found(tenant_id: str, group_id: str) -> ProjectNotFoundError:
    return ProjectNotFoundError(
        f"Project '{group_id}' not found for tenant '{tenant_id}'. "
        "List projects to discover valid ids."
    )


def _duplicate_name(name: str) -> DuplicateNameError:
    return DuplicateNameError(
        f'A project with the name "{name}" already exists. Please choose a different name.'
    )


def _ref_fields(ref: CommitRef) -> dict[str, str]:
    return {"group_id": ref.group_id, "commit_id": ref.commit_id}
