"""
Cycle Repository: persistence of cycles and their ordered items.

All methods work inside the caller's session; committing is the job of the
transactional scope wrapping the engine operation.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from src.db.models import StudyCycle, StudyCycleItem


@dataclass(frozen=True)
class ItemSpec:
    """Requested slot: subject and target. Position comes from list order."""

    subject_id: str
    target_minutes: int


class CycleRepository:
    """Create/read/update/delete access to cycles and items."""

    def __init__(self, session: Session):
        self.session = session

    def _base_query(self):
        return select(StudyCycle).options(
            selectinload(StudyCycle.items).joinedload(StudyCycleItem.subject)
        )

    def get(self, workspace_id: str, cycle_id: str) -> StudyCycle | None:
        """Fetch a cycle with items; None if absent or owned by another workspace."""
        stmt = self._base_query().where(
            StudyCycle.id == cycle_id, StudyCycle.workspace_id == workspace_id
        )
        return self.session.scalars(stmt).first()

    def get_for_update(self, workspace_id: str, cycle_id: str) -> StudyCycle | None:
        """Like `get`, but row-locks the cycle for the rest of the transaction."""
        stmt = (
            self._base_query()
            .where(StudyCycle.id == cycle_id, StudyCycle.workspace_id == workspace_id)
            .with_for_update(of=StudyCycle)
        )
        return self.session.scalars(stmt).first()

    def get_active(self, workspace_id: str) -> StudyCycle | None:
        stmt = self._base_query().where(
            StudyCycle.workspace_id == workspace_id, StudyCycle.is_active.is_(True)
        )
        return self.session.scalars(stmt).first()

    def active_id(self, workspace_id: str) -> str | None:
        stmt = select(StudyCycle.id).where(
            StudyCycle.workspace_id == workspace_id, StudyCycle.is_active.is_(True)
        )
        return self.session.scalars(stmt).first()

    def list_for_workspace(self, workspace_id: str) -> list[StudyCycle]:
        """All cycles, active first, then by display order."""
        stmt = (
            self._base_query()
            .where(StudyCycle.workspace_id == workspace_id)
            .order_by(StudyCycle.is_active.desc(), StudyCycle.display_order, StudyCycle.created_at)
        )
        return list(self.session.scalars(stmt))

    def count_for_workspace(self, workspace_id: str) -> int:
        stmt = select(func.count(StudyCycle.id)).where(StudyCycle.workspace_id == workspace_id)
        return int(self.session.execute(stmt).scalar_one())

    def name_taken(self, workspace_id: str, name: str, exclude_id: str | None = None) -> bool:
        stmt = select(StudyCycle.id).where(
            StudyCycle.workspace_id == workspace_id, StudyCycle.name == name
        )
        if exclude_id is not None:
            stmt = stmt.where(StudyCycle.id != exclude_id)
        return self.session.scalars(stmt).first() is not None

    def next_display_order(self, workspace_id: str) -> int:
        stmt = select(func.max(StudyCycle.display_order)).where(
            StudyCycle.workspace_id == workspace_id
        )
        current = self.session.execute(stmt).scalar_one()
        return 0 if current is None else current + 1

    def create(
        self,
        workspace_id: str,
        name: str | None,
        items: Sequence[ItemSpec],
        is_active: bool,
        display_order: int,
    ) -> StudyCycle:
        cycle = StudyCycle(
            workspace_id=workspace_id,
            name=name,
            is_active=is_active,
            current_item_index=0,
            display_order=display_order,
        )
        cycle.items = self._build_items(items)
        self.session.add(cycle)
        self.session.flush()
        return cycle

    def replace_items(self, cycle: StudyCycle, items: Sequence[ItemSpec]) -> None:
        """
        Discard the cycle's items and recreate them with positions 0..n-1.

        Old rows are flushed out first so the (cycle_id, position) unique
        constraint never sees both generations at once.
        """
        cycle.items.clear()
        self.session.flush()
        cycle.items.extend(self._build_items(items))
        self.session.flush()

    def deactivate_others(self, workspace_id: str, keep_id: str | None = None) -> int:
        """Clear `is_active` on every cycle of the workspace except `keep_id`."""
        stmt = (
            update(StudyCycle)
            .where(StudyCycle.workspace_id == workspace_id, StudyCycle.is_active.is_(True))
            .values(is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        if keep_id is not None:
            stmt = stmt.where(StudyCycle.id != keep_id)
        result = self.session.execute(stmt)
        return result.rowcount or 0

    def delete(self, cycle: StudyCycle) -> None:
        self.session.delete(cycle)
        self.session.flush()

    @staticmethod
    def _build_items(items: Sequence[ItemSpec]) -> list[StudyCycleItem]:
        return [
            StudyCycleItem(
                subject_id=spec.subject_id,
                target_minutes=spec.target_minutes,
                position=position,
                compensation_minutes=0,
            )
            for position, spec in enumerate(items)
        ]
