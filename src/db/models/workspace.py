"""
Workspace, Subject and StudySession models.

These are the collaborator records the cycle engine reads: a workspace scopes
everything, subjects are what a cycle rotates over, and study sessions form the
append-only ledger progress is derived from.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id, utcnow


class Workspace(Base):
    """A user-owned container for subjects, sessions and cycles."""

    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    owner_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    subjects: Mapped[list[Subject]] = relationship(
        back_populates="workspace", cascade="all, delete-orphan", passive_deletes=True
    )
    cycles: Mapped[list["StudyCycle"]] = relationship(  # noqa: F821
        back_populates="workspace", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Workspace id={self.id} owner={self.owner_id} name={self.name!r}>"


class Subject(Base):
    """A study subject inside a workspace."""

    __tablename__ = "subjects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    workspace: Mapped[Workspace] = relationship(back_populates="subjects")

    __table_args__ = (UniqueConstraint("workspace_id", "name", name="uq_subject_workspace_name"),)

    def __repr__(self) -> str:
        return f"<Subject id={self.id} name={self.name!r}>"


class StudySession(Base):
    """
    One logged block of study time.

    `logged_at` is the instant the session counts from; a cycle's
    `last_reset_at` cutoff is compared against it.
    """

    __tablename__ = "study_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id", ondelete="CASCADE"), nullable=False
    )
    minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    logged_at: Mapped[datetime] = mapped_column(default=utcnow)

    subject: Mapped[Subject] = relationship()

    __table_args__ = (
        Index("idx_study_sessions_workspace_subject", "workspace_id", "subject_id"),
        Index("idx_study_sessions_logged_at", "workspace_id", "logged_at"),
    )

    def __repr__(self) -> str:
        return f"<StudySession subject={self.subject_id} minutes={self.minutes} at={self.logged_at}>"
