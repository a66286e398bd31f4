"""
Unit tests for CycleEngine.

Each test runs against its own SQLite file; sessions are logged in the past
(see the `log_minutes` fixture) unless a test says otherwise.
"""

import threading
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from src.cycle import (
    CycleConflictError,
    CycleNotFoundError,
    CyclePatch,
    InvalidCycleStateError,
)
from src.cycle.engine import clamp_index
from src.cycle.locks import LockRegistry
from src.db.models import Subject


@pytest.fixture
def exam_cycle(cycle_engine, workspace, item_specs):
    """Math:120, Physics:60, English:30 as the workspace's first (active) cycle."""
    return cycle_engine.create_cycle(
        workspace["id"], "Exam", item_specs(("Math", 120), ("Physics", 60), ("English", 30))
    )


def advance_n(engine, workspace_id, n, **kwargs):
    return [engine.advance_to_next(workspace_id, **kwargs) for _ in range(n)]


class TestSuggestionScenarios:
    def test_fresh_cycle_points_at_first_subject(self, cycle_engine, workspace, exam_cycle):
        result = cycle_engine.get_suggestion(workspace["id"])
        s = result.suggestion

        assert result.has_cycle is True
        assert result.is_empty is False
        assert s.current_subject == "Math"
        assert s.remaining_minutes == 120
        assert s.is_current_complete is False
        assert s.next_subject == "Physics"
        assert s.current_position == 0
        assert s.total_items == 3

    def test_partial_progress(self, cycle_engine, workspace, exam_cycle, log_minutes):
        log_minutes("Math", 75)

        s = cycle_engine.get_suggestion(workspace["id"]).suggestion

        assert s.current_accumulated_minutes == 75
        assert s.remaining_minutes == 45
        assert s.is_current_complete is False

    def test_overshoot_clamps_remaining_at_zero(self, cycle_engine, workspace, item_specs, log_minutes):
        cycle_engine.create_cycle(workspace["id"], "Solo", item_specs(("Math", 60)))
        log_minutes("Math", 90)

        s = cycle_engine.get_suggestion(workspace["id"]).suggestion

        assert s.is_current_complete is True
        assert s.remaining_minutes == 0
        assert s.current_accumulated_minutes == 90
        # single item: the successor is itself
        assert s.next_subject == "Math"

    def test_no_active_cycle(self, cycle_engine, workspace):
        result = cycle_engine.get_suggestion(workspace["id"])

        assert result.has_cycle is False
        assert result.suggestion is None

    def test_empty_cycle_reports_is_empty(self, cycle_engine, workspace):
        cycle = cycle_engine.create_cycle(workspace["id"], "Empty", [])

        result = cycle_engine.get_suggestion(workspace["id"])

        assert result.has_cycle is True
        assert result.is_empty is True
        assert result.cycle_id == cycle.id

    def test_cycle_complete_independent_of_pointer(self, cycle_engine, workspace, exam_cycle, log_minutes):
        log_minutes("Math", 120)
        log_minutes("Physics", 60)
        log_minutes("English", 30)

        s = cycle_engine.get_suggestion(workspace["id"]).suggestion

        assert s.is_cycle_complete is True
        assert s.current_position == 0

    def test_reads_are_idempotent(self, cycle_engine, workspace, exam_cycle, log_minutes):
        log_minutes("Physics", 20)

        assert cycle_engine.get_suggestion(workspace["id"]) == cycle_engine.get_suggestion(workspace["id"])
        assert cycle_engine.get_statistics(workspace["id"]) == cycle_engine.get_statistics(workspace["id"])
        assert cycle_engine.get_active_cycle(workspace["id"]).updated_at == exam_cycle.updated_at


class TestAdvance:
    def test_full_rotation_returns_to_start(self, cycle_engine, workspace, exam_cycle):
        results = advance_n(cycle_engine, workspace["id"], 3)

        assert [r.to_position for r in results] == [1, 2, 0]
        assert results[-1].cycle.current_item_index == 0

    def test_completion_recorded_only_on_wrap(self, cycle_engine, workspace, exam_cycle):
        results = advance_n(cycle_engine, workspace["id"], 7)

        assert [r.cycle_completed for r in results] == [False, False, True, False, False, True, False]
        history = cycle_engine.get_history(workspace["id"])
        assert history.total_advances == 7
        assert history.total_completions == 2

    def test_wrap_records_one_completion_with_item_count(self, cycle_engine, workspace, exam_cycle):
        cycle_engine.update_cycle(workspace["id"], exam_cycle.id, CyclePatch(current_item_index=2))

        result = cycle_engine.advance_to_next(workspace["id"])

        assert result.cycle.current_item_index == 0
        history = cycle_engine.get_history(workspace["id"])
        completions = [e for e in history.entries if e.type == "completion"]
        assert len(completions) == 1
        assert completions[0].items_count == 3
        assert completions[0].cycle_name == "Exam"
        assert completions[0].completion_number == 1

    def test_advance_event_snapshot(self, cycle_engine, workspace, exam_cycle, log_minutes):
        log_minutes("Math", 40)

        result = cycle_engine.advance_to_next(workspace["id"])

        assert (result.previous_subject, result.new_subject) == ("Math", "Physics")
        assert (result.from_position, result.to_position) == (0, 1)
        assert result.minutes_spent == 40
        assert result.compensated_minutes == 0
        entry = cycle_engine.get_history(workspace["id"]).entries[0]
        assert (entry.from_subject, entry.to_subject, entry.minutes_spent) == ("Math", "Physics", 40)

    def test_force_complete_credits_shortfall(self, cycle_engine, workspace, exam_cycle, log_minutes):
        log_minutes("Math", 50)

        result = cycle_engine.advance_to_next(workspace["id"], force_complete=True)

        assert result.compensated_minutes == 70
        assert result.minutes_spent == 120
        math = result.cycle.progress[0]
        assert math.compensation_minutes == 70
        assert math.accumulated_minutes >= math.target_minutes
        assert math.is_complete is True

    def test_force_complete_on_complete_item_adds_nothing(self, cycle_engine, workspace, exam_cycle, log_minutes):
        log_minutes("Math", 150)

        result = cycle_engine.advance_to_next(workspace["id"], force_complete=True)

        assert result.compensated_minutes == 0
        assert result.cycle.items[0].compensation_minutes == 0

    def test_completion_totals_include_fresh_compensation(self, cycle_engine, workspace, item_specs):
        cycle_engine.create_cycle(workspace["id"], "Solo", item_specs(("Math", 60)))

        result = cycle_engine.advance_to_next(workspace["id"], force_complete=True)

        assert result.cycle_completed is True
        completion = next(e for e in cycle_engine.get_history(workspace["id"]).entries if e.type == "completion")
        assert completion.total_spent_minutes == 60
        assert completion.total_target_minutes == 60

    def test_empty_cycle_cannot_advance(self, cycle_engine, workspace):
        cycle = cycle_engine.create_cycle(workspace["id"], "Empty", [])

        with pytest.raises(InvalidCycleStateError):
            cycle_engine.advance_to_next(workspace["id"])

        assert cycle_engine.get_history(workspace["id"], cycle.id).total_advances == 0

    def test_no_active_cycle_is_not_found(self, cycle_engine, workspace):
        with pytest.raises(CycleNotFoundError):
            cycle_engine.advance_to_next(workspace["id"])

    def test_concurrent_advances_are_serialized(self, cycle_engine, workspace, exam_cycle):
        errors = []

        def worker():
            try:
                cycle_engine.advance_to_next(workspace["id"])
            except Exception as e:  # collected and asserted below
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(9)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        history = cycle_engine.get_history(workspace["id"], limit=100)
        assert history.total_advances == 9
        assert history.total_completions == 3
        assert cycle_engine.get_active_cycle(workspace["id"]).current_item_index == 0


class TestReset:
    def test_reset_ignores_earlier_sessions(self, cycle_engine, workspace, exam_cycle, log_minutes):
        log_minutes("Math", 100)
        cycle_engine.advance_to_next(workspace["id"], force_complete=True)

        cycle = cycle_engine.reset_cycle(workspace["id"])

        assert cycle.current_item_index == 0
        assert cycle.last_reset_at is not None
        assert all(i.compensation_minutes == 0 for i in cycle.items)
        s = cycle_engine.get_suggestion(workspace["id"]).suggestion
        assert s.current_accumulated_minutes == 0

    def test_sessions_after_reset_count(self, cycle_engine, workspace, exam_cycle, log_minutes):
        log_minutes("Math", 100)
        cycle_engine.reset_cycle(workspace["id"])
        log_minutes("Math", 15, ago=timedelta(minutes=-1))

        s = cycle_engine.get_suggestion(workspace["id"]).suggestion

        assert s.current_accumulated_minutes == 15

    def test_reset_keeps_history(self, cycle_engine, workspace, exam_cycle):
        advance_n(cycle_engine, workspace["id"], 3)

        cycle_engine.reset_cycle(workspace["id"])

        history = cycle_engine.get_history(workspace["id"])
        assert history.total_advances == 3
        assert history.total_completions == 1


class TestStatistics:
    def test_totals_match_suggestion_progress(self, cycle_engine, workspace, exam_cycle, log_minutes):
        log_minutes("Math", 130)
        log_minutes("Physics", 10)
        cycle_engine.advance_to_next(workspace["id"])
        cycle_engine.advance_to_next(workspace["id"], force_complete=True)

        stats = cycle_engine.get_statistics(workspace["id"])
        progress = cycle_engine.get_suggestion(workspace["id"]).suggestion.all_items_progress

        assert stats.total_accumulated_minutes == sum(p.accumulated_minutes for p in progress)
        assert stats.total_accumulated_minutes == 130 + 60
        assert stats.total_target_minutes == 210
        assert stats.completed_items_count == 2
        assert stats.total_items_count == 3
        assert stats.overall_percentage == 90
        assert stats.average_per_item == 63

    def test_none_without_active_cycle(self, cycle_engine, workspace):
        assert cycle_engine.get_statistics(workspace["id"]) is None
        assert cycle_engine.get_history(workspace["id"]) is None


class TestCreateAndActivate:
    def test_first_cycle_is_activated(self, cycle_engine, workspace, exam_cycle):
        assert exam_cycle.is_active is True
        assert exam_cycle.current_item_index == 0
        assert [i.position for i in exam_cycle.items] == [0, 1, 2]

    def test_later_cycles_stay_inactive_unless_requested(self, cycle_engine, workspace, exam_cycle, item_specs):
        quiet = cycle_engine.create_cycle(workspace["id"], "Quiet", item_specs(("Math", 10)))
        loud = cycle_engine.create_cycle(
            workspace["id"], "Loud", item_specs(("Physics", 10)), activate_on_create=True
        )

        assert quiet.is_active is False
        assert loud.is_active is True
        active = [c for c in cycle_engine.list_cycles(workspace["id"]) if c.is_active]
        assert [c.id for c in active] == [loud.id]

    def test_duplicate_name_conflicts(self, cycle_engine, workspace, exam_cycle, item_specs):
        with pytest.raises(CycleConflictError):
            cycle_engine.create_cycle(workspace["id"], "Exam", item_specs(("Math", 10)))

    def test_unnamed_cycles_never_conflict(self, cycle_engine, workspace, item_specs):
        cycle_engine.create_cycle(workspace["id"], None, item_specs(("Math", 10)))
        cycle_engine.create_cycle(workspace["id"], None, item_specs(("Math", 10)))

        assert len(cycle_engine.list_cycles(workspace["id"])) == 2

    def test_unknown_subject_rejected(self, cycle_engine, workspace):
        from src.cycle import ItemSpec

        with pytest.raises(CycleNotFoundError):
            cycle_engine.create_cycle(workspace["id"], "Bad", [ItemSpec("missing", 10)])

        assert cycle_engine.list_cycles(workspace["id"]) == []

    def test_activate_preserves_pointer(self, cycle_engine, workspace, exam_cycle, item_specs):
        other = cycle_engine.create_cycle(workspace["id"], "Other", item_specs(("Math", 10), ("English", 10)))
        cycle_engine.advance_to_next(workspace["id"])

        activated = cycle_engine.activate_cycle(workspace["id"], other.id)
        back = cycle_engine.activate_cycle(workspace["id"], exam_cycle.id)

        assert activated.is_active is True
        assert back.current_item_index == 1
        assert [c.id for c in cycle_engine.list_cycles(workspace["id"]) if c.is_active] == [exam_cycle.id]

    def test_list_orders_active_first(self, cycle_engine, workspace, exam_cycle, item_specs):
        second = cycle_engine.create_cycle(workspace["id"], "Second", item_specs(("Math", 10)))
        third = cycle_engine.create_cycle(workspace["id"], "Third", item_specs(("Math", 10)))
        cycle_engine.activate_cycle(workspace["id"], third.id)

        ids = [c.id for c in cycle_engine.list_cycles(workspace["id"])]

        assert ids == [third.id, exam_cycle.id, second.id]


class TestUpdate:
    def test_replacing_items_clamps_pointer(self, cycle_engine, workspace, exam_cycle, item_specs):
        cycle_engine.update_cycle(workspace["id"], exam_cycle.id, CyclePatch(current_item_index=2))

        updated = cycle_engine.update_cycle(
            workspace["id"], exam_cycle.id, CyclePatch(items=item_specs(("English", 45)))
        )

        assert updated.current_item_index == 0
        assert [(i.position, i.subject_name, i.target_minutes) for i in updated.items] == [(0, "English", 45)]

    def test_requested_index_clamped_to_new_items(self, cycle_engine, workspace, exam_cycle, item_specs):
        updated = cycle_engine.update_cycle(
            workspace["id"],
            exam_cycle.id,
            CyclePatch(items=item_specs(("Math", 10), ("Physics", 10)), current_item_index=5),
        )

        assert updated.current_item_index == 1

    def test_absent_fields_untouched(self, cycle_engine, workspace, exam_cycle):
        cycle_engine.advance_to_next(workspace["id"])

        updated = cycle_engine.update_cycle(workspace["id"], exam_cycle.id, CyclePatch(name="Renamed"))

        assert updated.name == "Renamed"
        assert updated.current_item_index == 1
        assert updated.is_active is True
        assert len(updated.items) == 3

    def test_rename_conflict(self, cycle_engine, workspace, exam_cycle, item_specs):
        other = cycle_engine.create_cycle(workspace["id"], "Other", item_specs(("Math", 10)))

        with pytest.raises(CycleConflictError):
            cycle_engine.update_cycle(workspace["id"], other.id, CyclePatch(name="Exam"))

    def test_rename_to_own_name_is_fine(self, cycle_engine, workspace, exam_cycle):
        updated = cycle_engine.update_cycle(workspace["id"], exam_cycle.id, CyclePatch(name="Exam"))

        assert updated.name == "Exam"

    def test_failed_update_leaves_state(self, cycle_engine, workspace, exam_cycle):
        from src.cycle import ItemSpec

        with pytest.raises(CycleNotFoundError):
            cycle_engine.update_cycle(
                workspace["id"], exam_cycle.id, CyclePatch(name="New", items=[ItemSpec("missing", 10)])
            )

        cycle = cycle_engine.get_cycle(workspace["id"], exam_cycle.id)
        assert cycle.name == "Exam"
        assert len(cycle.items) == 3

    def test_activate_via_patch_deactivates_siblings(self, cycle_engine, workspace, exam_cycle, item_specs):
        other = cycle_engine.create_cycle(workspace["id"], "Other", item_specs(("Math", 10)))

        cycle_engine.update_cycle(workspace["id"], other.id, CyclePatch(is_active=True))

        assert cycle_engine.get_active_cycle(workspace["id"]).id == other.id
        assert cycle_engine.get_cycle(workspace["id"], exam_cycle.id).is_active is False

    def test_unknown_cycle(self, cycle_engine, workspace):
        with pytest.raises(CycleNotFoundError):
            cycle_engine.update_cycle(workspace["id"], "missing", CyclePatch(name="x"))


class TestDelete:
    def test_delete_removes_cycle_and_history(self, cycle_engine, workspace, exam_cycle):
        advance_n(cycle_engine, workspace["id"], 3)

        cycle_engine.delete_cycle(workspace["id"], exam_cycle.id)

        assert cycle_engine.list_cycles(workspace["id"]) == []
        with pytest.raises(CycleNotFoundError):
            cycle_engine.get_history(workspace["id"], exam_cycle.id)

    def test_subject_in_use_cannot_be_deleted(self, cycle_engine, workspace, exam_cycle, session_factory):
        advance_n(cycle_engine, workspace["id"], 2)

        session = session_factory()
        try:
            session.delete(session.get(Subject, workspace["subjects"]["Physics"]))
            with pytest.raises(IntegrityError):
                session.flush()
            session.rollback()
        finally:
            session.close()

        cycle = cycle_engine.get_cycle(workspace["id"], exam_cycle.id)
        assert [i.position for i in cycle.items] == [0, 1, 2]
        assert cycle.current_item_index == 2
        assert cycle_engine.get_suggestion(workspace["id"]).suggestion.current_subject == "English"

    def test_delete_unknown(self, cycle_engine, workspace):
        with pytest.raises(CycleNotFoundError):
            cycle_engine.delete_cycle(workspace["id"], "missing")

    def test_cycle_in_other_workspace_is_not_found(self, cycle_engine, workspace, workspace_service, exam_cycle):
        other = workspace_service.create_workspace("alice", "Other")

        with pytest.raises(CycleNotFoundError):
            cycle_engine.get_cycle(other.id, exam_cycle.id)


class TestHelpers:
    @pytest.mark.parametrize(
        "requested,count,expected",
        [(0, 3, 0), (2, 3, 2), (5, 3, 2), (2, 1, 0), (4, 0, 0)],
    )
    def test_clamp_index(self, requested, count, expected):
        assert clamp_index(requested, count) == expected

    def test_lock_registry_reuses_locks(self):
        locks = LockRegistry()

        with locks.hold(("workspace", "a")):
            # reentrant for the holding thread
            with locks.hold(("workspace", "a")):
                pass
        with locks.hold(("workspace", "b")):
            pass

        assert len(locks) == 2
