"""ORM tables of the commit index.

Three tables hold the commit tree, project name bindings,
and per-commit modification logs.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from core.constants import MODIFICATION_DESCRIPTION_MAX_LENGTH


class Base(DeclarativeBase):
    """Declarative base for index tables."""


class CommitRow(Base):
    """One commit node; the root of a project has no parent."""

    __tablename__ = "commits"
    __table_args__ = (Index("ix_commits_tenant_group", "tenant_id", "group_id"),)

    commit_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_commit_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("commits.commit_id", ondelete="CASCADE"),
        nullable=True,
    )
    parent_group_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class NameBindingRow(Base):
    """Human-readable project name bound to a root commit."""

    __tablename__ = "names"
    __table_args__ = (
        UniqueConstraint("group_id", "root_commit_id", name="names_group_root_unique"),
        UniqueConstraint("tenant_id", "name", name="names_tenant_name_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    group_id: Mapped[str] = mapped_column(String(64), nullable=False)
    root_commit_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("commits.commit_id", ondelete="CASCADE"),
        nullable=False,
    )
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)


class ModificationRow(Base):
    """One ordered entry of a commit's modification log."""

    __tablename__ = "modifications"
    __table_args__ = (
        UniqueConstraint("commit_id", "order_num", name="modifications_commit_order_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    commit_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("commits.commit_id", ondelete="CASCADE"),
        nullable=False,
    )
    parent_commit_id: Mapped[str] = mapped_column(String(64), nullable=False)
    order_num: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(
        String(MODIFICATION_DESCRIPTION_MAX_LENGTH), nullable=False
    )
