"""
History Recorder for study cycles.

Append-only log of rotation steps (advances) and full-cycle completions.
Reads merge both streams newest-first.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.db.models import StudyCycleAdvance, StudyCycleCompletion
from src.db.models.base import utcnow


@dataclass(frozen=True)
class HistoryEntry:
    """One merged history row. Fields not relevant to the entry type are None."""

    type: Literal["advance", "completion"]
    id: str
    created_at: datetime
    # advance
    from_subject: str | None = None
    to_subject: str | None = None
    from_position: int | None = None
    to_position: int | None = None
    minutes_spent: int | None = None
    # completion
    cycle_name: str | None = None
    total_target_minutes: int | None = None
    total_spent_minutes: int | None = None
    items_count: int | None = None
    completion_number: int | None = None
    sequence: int = 0


@dataclass
class CycleHistory:
    """History page plus lifetime counts."""

    cycle_id: str
    entries: list[HistoryEntry] = field(default_factory=list)
    total_advances: int = 0
    total_completions: int = 0


class HistoryRecorder:
    """Writes and reads advance/completion events."""

    def __init__(self, session: Session):
        self.session = session

    def record_advance(
        self,
        cycle_id: str,
        from_subject: str,
        to_subject: str,
        from_position: int,
        to_position: int,
        minutes_spent: int,
        at: datetime | None = None,
    ) -> StudyCycleAdvance:
        event = StudyCycleAdvance(
            cycle_id=cycle_id,
            from_subject=from_subject,
            to_subject=to_subject,
            from_position=from_position,
            to_position=to_position,
            minutes_spent=minutes_spent,
            created_at=at or utcnow(),
            sequence=self._next_sequence(StudyCycleAdvance, cycle_id),
        )
        self.session.add(event)
        self.session.flush()
        return event

    def record_completion(
        self,
        cycle_id: str,
        cycle_name: str | None,
        total_target_minutes: int,
        total_spent_minutes: int,
        items_count: int,
        at: datetime | None = None,
    ) -> StudyCycleCompletion:
        event = StudyCycleCompletion(
            cycle_id=cycle_id,
            cycle_name=cycle_name,
            total_target_minutes=total_target_minutes,
            total_spent_minutes=total_spent_minutes,
            items_count=items_count,
            created_at=at or utcnow(),
            sequence=self._next_sequence(StudyCycleCompletion, cycle_id),
        )
        self.session.add(event)
        self.session.flush()
        return event

    def _next_sequence(self, model, cycle_id: str) -> int:
        stmt = select(func.coalesce(func.max(model.sequence), 0)).where(model.cycle_id == cycle_id)
        return int(self.session.execute(stmt).scalar_one()) + 1

    def count_advances(self, cycle_id: str) -> int:
        stmt = select(func.count(StudyCycleAdvance.id)).where(StudyCycleAdvance.cycle_id == cycle_id)
        return int(self.session.execute(stmt).scalar_one())

    def count_completions(self, cycle_id: str) -> int:
        stmt = select(func.count(StudyCycleCompletion.id)).where(
            StudyCycleCompletion.cycle_id == cycle_id
        )
        return int(self.session.execute(stmt).scalar_one())

    def history(self, cycle_id: str, limit: int = 20) -> CycleHistory:
        """
        Merged advance and completion entries, newest first.

        Each stream is capped at `limit` before merging, which is enough to
        produce the first `limit` rows of the merged order. When an advance
        and a completion share a timestamp (same rotation step) the
        completion sorts first; events of one type sharing a timestamp
        fall back to their per-cycle sequence.
        """
        limit = max(0, limit)
        total_advances = self.count_advances(cycle_id)
        total_completions = self.count_completions(cycle_id)

        advances = self.session.scalars(
            select(StudyCycleAdvance)
            .where(StudyCycleAdvance.cycle_id == cycle_id)
            .order_by(StudyCycleAdvance.created_at.desc(), StudyCycleAdvance.sequence.desc())
            .limit(limit)
        ).all()
        completions = self.session.scalars(
            select(StudyCycleCompletion)
            .where(StudyCycleCompletion.cycle_id == cycle_id)
            .order_by(StudyCycleCompletion.created_at.desc(), StudyCycleCompletion.sequence.desc())
            .limit(limit)
        ).all()

        entries: list[HistoryEntry] = [
            HistoryEntry(
                type="advance",
                id=a.id,
                created_at=a.created_at,
                from_subject=a.from_subject,
                to_subject=a.to_subject,
                from_position=a.from_position,
                to_position=a.to_position,
                minutes_spent=a.minutes_spent,
                sequence=a.sequence,
            )
            for a in advances
        ]
        for c in completions:
            entries.append(
                HistoryEntry(
                    type="completion",
                    id=c.id,
                    created_at=c.created_at,
                    cycle_name=c.cycle_name,
                    total_target_minutes=c.total_target_minutes,
                    total_spent_minutes=c.total_spent_minutes,
                    items_count=c.items_count,
                    completion_number=c.sequence,
                    sequence=c.sequence,
                )
            )

        entries.sort(key=lambda e: (e.created_at, e.type == "completion", e.sequence), reverse=True)
        return CycleHistory(
            cycle_id=cycle_id,
            entries=entries[:limit],
            total_advances=total_advances,
            total_completions=total_completions,
        )
