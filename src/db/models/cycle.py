"""
Study Cycle Models.

SQLAlchemy models for the study cycle rotation:
- Cycles and their ordered items
- Advance events (one rotation step)
- Completion events (rotation returned to position 0)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id, utcnow
from .workspace import Subject, Workspace


class StudyCycle(Base):
    """
    A circular rotation of subjects with per-subject time targets.

    Progress is never stored here. Only the pointer (`current_item_index`)
    and the reset cutoff (`last_reset_at`) are persisted; accumulated minutes
    are derived from the session ledger on every read.
    """

    __tablename__ = "study_cycles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    current_item_index: Mapped[int] = mapped_column(Integer, default=0)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    last_reset_at: Mapped[datetime | None] = mapped_column()

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)

    # Relationships
    workspace: Mapped[Workspace] = relationship(back_populates="cycles")
    items: Mapped[list[StudyCycleItem]] = relationship(
        back_populates="cycle",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="StudyCycleItem.position",
    )
    advances: Mapped[list[StudyCycleAdvance]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )
    completions: Mapped[list[StudyCycleCompletion]] = relationship(
        cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("idx_study_cycles_workspace_active", "workspace_id", "is_active"),
        CheckConstraint("current_item_index >= 0", name="ck_cycle_index_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<StudyCycle id={self.id} name={self.name!r} active={self.is_active} index={self.current_item_index}>"


class StudyCycleItem(Base):
    """One slot in a cycle: a subject paired with a target duration."""

    __tablename__ = "study_cycle_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    cycle_id: Mapped[str] = mapped_column(
        ForeignKey("study_cycles.id", ondelete="CASCADE"), nullable=False
    )
    # A subject referenced by a cycle cannot be deleted; items only leave in bulk
    subject_id: Mapped[str] = mapped_column(
        ForeignKey("subjects.id", ondelete="RESTRICT"), nullable=False
    )
    target_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    # Manually credited minutes (force-complete), not backed by a session
    compensation_minutes: Mapped[int] = mapped_column(Integer, default=0)

    cycle: Mapped[StudyCycle] = relationship(back_populates="items")
    subject: Mapped[Subject] = relationship(lazy="joined")

    __table_args__ = (
        UniqueConstraint("cycle_id", "position", name="uq_cycle_item_position"),
        CheckConstraint("target_minutes > 0", name="ck_cycle_item_target_positive"),
        CheckConstraint("compensation_minutes >= 0", name="ck_cycle_item_compensation"),
    )

    @property
    def subject_name(self) -> str:
        return self.subject.name

    def __repr__(self) -> str:
        return f"<StudyCycleItem pos={self.position} subject={self.subject_id} target={self.target_minutes}>"


class StudyCycleAdvance(Base):
    """Immutable record of one rotation step."""

    __tablename__ = "study_cycle_advances"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    cycle_id: Mapped[str] = mapped_column(
        ForeignKey("study_cycles.id", ondelete="CASCADE"), nullable=False
    )
    # Subject names are snapshots so history survives renames
    from_subject: Mapped[str] = mapped_column(Text, nullable=False)
    to_subject: Mapped[str] = mapped_column(Text, nullable=False)
    from_position: Mapped[int] = mapped_column(Integer, nullable=False)
    to_position: Mapped[int] = mapped_column(Integer, nullable=False)
    minutes_spent: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    # 1-based per cycle; orders events that share a timestamp
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_cycle_advances_cycle_time", "cycle_id", "created_at"),
        UniqueConstraint("cycle_id", "sequence", name="uq_cycle_advance_sequence"),
    )


class StudyCycleCompletion(Base):
    """Immutable record emitted when a rotation returns to position 0."""

    __tablename__ = "study_cycle_completions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    cycle_id: Mapped[str] = mapped_column(
        ForeignKey("study_cycles.id", ondelete="CASCADE"), nullable=False
    )
    cycle_name: Mapped[str | None] = mapped_column(Text)
    total_target_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    total_spent_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    items_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    # 1-based per cycle; doubles as the completion number
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_cycle_completions_cycle_time", "cycle_id", "created_at"),
        UniqueConstraint("cycle_id", "sequence", name="uq_cycle_completion_sequence"),
    )
