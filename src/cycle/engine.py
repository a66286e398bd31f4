"""
Study Cycle Engine.

Orchestrates a workspace's study cycles: a circular rotation of subjects,
each with a target duration. Progress is derived on every read from the
session ledger plus per-item compensation; only the rotation pointer, the
reset cutoff and compensation minutes are stored.

Operations:
- create / update / delete / activate cycles
- advance the pointer (optionally force-completing the current slot)
- reset progress
- read views: suggestion, statistics, history

Each operation runs as one transaction. Mutations additionally hold the
workspace's lock and row-lock the cycle they change.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from src.cycle.access import require_subject
from src.cycle.errors import CycleConflictError, CycleNotFoundError, InvalidCycleStateError
from src.cycle.history import CycleHistory, HistoryRecorder
from src.cycle.ledger import SessionLedger
from src.cycle.locks import LockRegistry
from src.cycle.progress import ItemProgress, ProgressCalculator, successor_index
from src.cycle.repository import CycleRepository, ItemSpec
from src.db.database import transactional_scope
from src.db.models import StudyCycle
from src.db.models.base import utcnow

# =============================================================================
# Views
# =============================================================================


@dataclass
class CycleItemView:
    """A cycle slot as returned to callers."""

    id: str
    subject_id: str
    subject_name: str
    target_minutes: int
    position: int
    compensation_minutes: int


@dataclass
class CycleView:
    """A cycle with its ordered items and, when requested, fresh progress."""

    id: str
    workspace_id: str
    name: str | None
    is_active: bool
    current_item_index: int
    display_order: int
    last_reset_at: datetime | None
    created_at: datetime
    updated_at: datetime
    items: list[CycleItemView] = field(default_factory=list)
    progress: list[ItemProgress] = field(default_factory=list)


@dataclass
class CyclePatch:
    """Partial update. Fields left as None are not touched."""

    name: str | None = None
    is_active: bool | None = None
    current_item_index: int | None = None
    items: Sequence[ItemSpec] | None = None


@dataclass
class AdvanceResult:
    """Outcome of one rotation step."""

    cycle: CycleView
    previous_subject: str
    new_subject: str
    from_position: int
    to_position: int
    minutes_spent: int
    compensated_minutes: int
    cycle_completed: bool


@dataclass
class SuggestionDetail:
    """What to study now, what comes next, and how the whole cycle stands."""

    current_subject: str
    current_subject_id: str
    current_target_minutes: int
    current_accumulated_minutes: int
    remaining_minutes: int
    is_current_complete: bool
    next_subject: str
    next_subject_id: str
    next_target_minutes: int
    current_position: int
    total_items: int
    all_items_progress: list[ItemProgress]
    # Every item complete; independent of where the pointer is
    is_cycle_complete: bool


@dataclass
class CycleSuggestion:
    has_cycle: bool
    is_empty: bool = False
    cycle_id: str | None = None
    cycle_name: str | None = None
    suggestion: SuggestionDetail | None = None


@dataclass
class CycleStatistics:
    cycle_id: str
    cycle_name: str | None
    total_target_minutes: int
    total_accumulated_minutes: int
    completed_items_count: int
    total_items_count: int
    overall_percentage: int
    average_per_item: int


def clamp_index(requested: int, item_count: int) -> int:
    """Keep a pointer inside 0..item_count-1 (0 for an empty list)."""
    return max(0, min(requested, item_count - 1))


# =============================================================================
# Engine
# =============================================================================


class CycleEngine:
    """
    State transitions and read views for study cycles.

    Coordinates CycleRepository, SessionLedger, ProgressCalculator and
    HistoryRecorder inside one session per operation.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        calculator: ProgressCalculator | None = None,
        locks: LockRegistry | None = None,
    ):
        """
        Initialize the engine.

        Args:
            session_factory: Session factory to run operations on (default: application database)
            calculator: Progress calculator (default: ProgressCalculator())
            locks: Lock registry shared by every engine serving the same database
        """
        if session_factory is None:
            from src.db.database import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory
        self.calculator = calculator or ProgressCalculator()
        self.locks = locks or LockRegistry()

    # -------------------------------------------------------------------------
    # Units of work
    # -------------------------------------------------------------------------

    @contextmanager
    def _read(self) -> Iterator[Session]:
        with transactional_scope(self._session_factory) as session:
            yield session

    @contextmanager
    def _write(self, workspace_id: str) -> Iterator[Session]:
        with self.locks.hold(("workspace", workspace_id)):
            with transactional_scope(self._session_factory) as session:
                yield session

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _resolve(
        self,
        repo: CycleRepository,
        workspace_id: str,
        cycle_id: str | None,
        for_update: bool = False,
    ) -> StudyCycle | None:
        """Explicit cycle (not-found if missing) or the workspace's active cycle (may be None)."""
        if cycle_id is None:
            cycle_id = repo.active_id(workspace_id)
            if cycle_id is None:
                return None
        cycle = repo.get_for_update(workspace_id, cycle_id) if for_update else repo.get(workspace_id, cycle_id)
        if cycle is None:
            raise CycleNotFoundError("Study cycle not found")
        return cycle

    def _require(
        self,
        repo: CycleRepository,
        workspace_id: str,
        cycle_id: str | None,
        for_update: bool = False,
    ) -> StudyCycle:
        cycle = self._resolve(repo, workspace_id, cycle_id, for_update=for_update)
        if cycle is None:
            raise CycleNotFoundError("No active study cycle")
        return cycle

    def _check_subjects(self, session: Session, workspace_id: str, items: Sequence[ItemSpec]) -> None:
        for spec in items:
            require_subject(session, workspace_id, spec.subject_id)

    def _progress(self, session: Session, cycle: StudyCycle) -> list[ItemProgress]:
        ledger = SessionLedger(session)
        totals = ledger.sum_minutes_by_subject(cycle.workspace_id, since=cycle.last_reset_at)
        names = {item.subject_id: item.subject_name for item in cycle.items}
        return self.calculator.compute(cycle.items, totals, names)

    def _view(self, session: Session, cycle: StudyCycle, with_progress: bool = True) -> CycleView:
        items = [
            CycleItemView(
                id=item.id,
                subject_id=item.subject_id,
                subject_name=item.subject_name,
                target_minutes=item.target_minutes,
                position=item.position,
                compensation_minutes=item.compensation_minutes,
            )
            for item in sorted(cycle.items, key=lambda i: i.position)
        ]
        return CycleView(
            id=cycle.id,
            workspace_id=cycle.workspace_id,
            name=cycle.name,
            is_active=cycle.is_active,
            current_item_index=cycle.current_item_index,
            display_order=cycle.display_order,
            last_reset_at=cycle.last_reset_at,
            created_at=cycle.created_at,
            updated_at=cycle.updated_at,
            items=items,
            progress=self._progress(session, cycle) if with_progress else [],
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def list_cycles(self, workspace_id: str) -> list[CycleView]:
        """All cycles in the workspace, active first, then by display order."""
        with self._read() as session:
            cycles = CycleRepository(session).list_for_workspace(workspace_id)
            return [self._view(session, c, with_progress=False) for c in cycles]

    def get_active_cycle(self, workspace_id: str) -> CycleView | None:
        with self._read() as session:
            cycle = CycleRepository(session).get_active(workspace_id)
            return self._view(session, cycle) if cycle else None

    def get_cycle(self, workspace_id: str, cycle_id: str) -> CycleView:
        with self._read() as session:
            cycle = self._require(CycleRepository(session), workspace_id, cycle_id)
            return self._view(session, cycle)

    def get_suggestion(self, workspace_id: str, cycle_id: str | None = None) -> CycleSuggestion:
        """
        What to study now.

        Returns has_cycle=False without an active cycle, is_empty=True for a
        cycle without items, otherwise the current/next slot and the progress
        of every slot.
        """
        with self._read() as session:
            cycle = self._resolve(CycleRepository(session), workspace_id, cycle_id)
            if cycle is None:
                return CycleSuggestion(has_cycle=False)
            if not cycle.items:
                return CycleSuggestion(has_cycle=True, is_empty=True, cycle_id=cycle.id, cycle_name=cycle.name)

            progress = self._progress(session, cycle)
            index = cycle.current_item_index
            current = progress[index]
            upcoming = progress[successor_index(index, len(progress))]

            detail = SuggestionDetail(
                current_subject=current.subject_name,
                current_subject_id=current.subject_id,
                current_target_minutes=current.target_minutes,
                current_accumulated_minutes=current.accumulated_minutes,
                remaining_minutes=current.remaining_minutes,
                is_current_complete=current.is_complete,
                next_subject=upcoming.subject_name,
                next_subject_id=upcoming.subject_id,
                next_target_minutes=upcoming.target_minutes,
                current_position=index,
                total_items=len(progress),
                all_items_progress=progress,
                is_cycle_complete=all(p.is_complete for p in progress),
            )
            logger.debug(f"Suggestion for cycle {cycle.id}: {detail.current_subject} ({detail.remaining_minutes} min left)")
            return CycleSuggestion(has_cycle=True, cycle_id=cycle.id, cycle_name=cycle.name, suggestion=detail)

    def get_statistics(self, workspace_id: str, cycle_id: str | None = None) -> CycleStatistics | None:
        """Cycle-wide totals; None when no cycle resolves."""
        with self._read() as session:
            cycle = self._resolve(CycleRepository(session), workspace_id, cycle_id)
            if cycle is None:
                return None
            totals = self.calculator.summarize(self._progress(session, cycle))
            return CycleStatistics(cycle_id=cycle.id, cycle_name=cycle.name, **asdict(totals))

    def get_history(
        self,
        workspace_id: str,
        cycle_id: str | None = None,
        limit: int = 20,
    ) -> CycleHistory | None:
        """Advances and completions, newest first; None when no cycle resolves."""
        with self._read() as session:
            cycle = self._resolve(CycleRepository(session), workspace_id, cycle_id)
            if cycle is None:
                return None
            return HistoryRecorder(session).history(cycle.id, limit=limit)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create_cycle(
        self,
        workspace_id: str,
        name: str | None,
        items: Sequence[ItemSpec],
        activate_on_create: bool = False,
    ) -> CycleView:
        """
        Create a cycle with items positioned 0..n-1 in input order.

        The workspace's first cycle is always activated; later ones only when
        `activate_on_create` is set. Activation deactivates every other cycle
        first.

        Raises:
            CycleConflictError: name already used in the workspace
            CycleNotFoundError: an item references an unknown subject
        """
        with self._write(workspace_id) as session:
            repo = CycleRepository(session)
            if name is not None and repo.name_taken(workspace_id, name):
                raise CycleConflictError(f"A cycle named '{name}' already exists in this workspace")
            self._check_subjects(session, workspace_id, items)

            activate = activate_on_create or repo.count_for_workspace(workspace_id) == 0
            if activate:
                repo.deactivate_others(workspace_id)

            cycle = repo.create(
                workspace_id,
                name,
                items,
                is_active=activate,
                display_order=repo.next_display_order(workspace_id),
            )
            logger.info(
                f"Created cycle {cycle.id} ({name!r}) with {len(items)} items in workspace {workspace_id}"
                + (" [active]" if activate else "")
            )
            return self._view(session, cycle)

    def update_cycle(self, workspace_id: str, cycle_id: str, patch: CyclePatch) -> CycleView:
        """
        Apply a partial update.

        A new item list replaces the old one atomically; the pointer is then
        clamped to the new list. Setting is_active=True deactivates siblings.
        """
        with self._write(workspace_id) as session:
            repo = CycleRepository(session)
            cycle = self._require(repo, workspace_id, cycle_id, for_update=True)

            if patch.name is not None and patch.name != cycle.name:
                if repo.name_taken(workspace_id, patch.name, exclude_id=cycle.id):
                    raise CycleConflictError(f"A cycle named '{patch.name}' already exists in this workspace")
                cycle.name = patch.name

            if patch.items is not None:
                self._check_subjects(session, workspace_id, patch.items)
                repo.replace_items(cycle, patch.items)
                requested = (
                    patch.current_item_index
                    if patch.current_item_index is not None
                    else cycle.current_item_index
                )
                cycle.current_item_index = clamp_index(requested, len(patch.items))
            elif patch.current_item_index is not None:
                cycle.current_item_index = clamp_index(patch.current_item_index, len(cycle.items))

            if patch.is_active is not None:
                if patch.is_active:
                    repo.deactivate_others(workspace_id, keep_id=cycle.id)
                cycle.is_active = patch.is_active

            session.flush()
            logger.info(f"Updated cycle {cycle.id}: index={cycle.current_item_index} active={cycle.is_active}")
            return self._view(session, cycle)

    def delete_cycle(self, workspace_id: str, cycle_id: str) -> None:
        """Remove a cycle together with its items and history."""
        with self._write(workspace_id) as session:
            repo = CycleRepository(session)
            cycle = self._require(repo, workspace_id, cycle_id, for_update=True)
            repo.delete(cycle)
            logger.info(f"Deleted cycle {cycle_id} from workspace {workspace_id}")

    def activate_cycle(self, workspace_id: str, cycle_id: str) -> CycleView:
        """Make this the workspace's only active cycle; its pointer is kept."""
        with self._write(workspace_id) as session:
            repo = CycleRepository(session)
            cycle = self._require(repo, workspace_id, cycle_id, for_update=True)
            repo.deactivate_others(workspace_id, keep_id=cycle.id)
            cycle.is_active = True
            session.flush()
            logger.info(f"Activated cycle {cycle.id} in workspace {workspace_id}")
            return self._view(session, cycle)

    def advance_to_next(
        self,
        workspace_id: str,
        cycle_id: str | None = None,
        force_complete: bool = False,
    ) -> AdvanceResult:
        """
        Move the pointer to the next slot, wrapping to 0 after the last.

        With force_complete, an incomplete current slot is first credited the
        compensation minutes it lacks. Every step records an advance event;
        wrapping to position 0 also records a completion event with totals
        that include any compensation just applied.

        Raises:
            CycleNotFoundError: no such cycle (or no active cycle)
            InvalidCycleStateError: the cycle has no items
        """
        with self._write(workspace_id) as session:
            repo = CycleRepository(session)
            cycle = self._require(repo, workspace_id, cycle_id, for_update=True)
            items = sorted(cycle.items, key=lambda i: i.position)
            if not items:
                raise InvalidCycleStateError("Cycle has no items")

            index = cycle.current_item_index
            current = items[index]
            ledger = SessionLedger(session)
            session_minutes = ledger.sum_minutes_for_subject(
                workspace_id, current.subject_id, since=cycle.last_reset_at
            )
            minutes = {current.subject_id: session_minutes}
            progress = self.calculator.item_progress(current, minutes, current.subject_name)

            compensated = 0
            if force_complete and not progress.is_complete:
                compensated = self.calculator.shortfall(progress)
                current.compensation_minutes = (current.compensation_minutes or 0) + compensated
                progress = self.calculator.item_progress(current, minutes, current.subject_name)
                logger.info(
                    f"Force-complete: credited {compensated} min to {current.subject_name} "
                    f"(position {index}) in cycle {cycle.id}"
                )

            next_index = successor_index(index, len(items))
            upcoming = items[next_index]
            now = utcnow()
            history = HistoryRecorder(session)
            history.record_advance(
                cycle.id,
                from_subject=current.subject_name,
                to_subject=upcoming.subject_name,
                from_position=index,
                to_position=next_index,
                minutes_spent=progress.accumulated_minutes,
                at=now,
            )

            completed = next_index == 0
            if completed:
                totals = self.calculator.summarize(self._progress(session, cycle))
                history.record_completion(
                    cycle.id,
                    cycle_name=cycle.name,
                    total_target_minutes=totals.total_target_minutes,
                    total_spent_minutes=totals.total_accumulated_minutes,
                    items_count=totals.total_items_count,
                    at=now,
                )
                logger.info(
                    f"Cycle {cycle.id} completed a rotation: "
                    f"{totals.total_accumulated_minutes}/{totals.total_target_minutes} min over {totals.total_items_count} items"
                )

            cycle.current_item_index = next_index
            session.flush()
            logger.info(f"Advanced cycle {cycle.id}: {current.subject_name} -> {upcoming.subject_name}")

            return AdvanceResult(
                cycle=self._view(session, cycle),
                previous_subject=current.subject_name,
                new_subject=upcoming.subject_name,
                from_position=index,
                to_position=next_index,
                minutes_spent=progress.accumulated_minutes,
                compensated_minutes=compensated,
                cycle_completed=completed,
            )

    def reset_cycle(self, workspace_id: str, cycle_id: str | None = None) -> CycleView:
        """
        Start progress over.

        Zeroes compensation on every item, moves the pointer to 0 and sets
        last_reset_at so earlier sessions stop counting. History is kept.
        """
        with self._write(workspace_id) as session:
            repo = CycleRepository(session)
            cycle = self._require(repo, workspace_id, cycle_id, for_update=True)
            for item in cycle.items:
                item.compensation_minutes = 0
            cycle.last_reset_at = utcnow()
            cycle.current_item_index = 0
            session.flush()
            logger.info(f"Reset cycle {cycle.id} at {cycle.last_reset_at.isoformat()}")
            return self._view(session, cycle)
