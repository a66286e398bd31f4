"""
Unit tests for ProgressCalculator.

Pure computation over item-shaped objects; no database involved.
"""

from dataclasses import dataclass

import pytest

from src.cycle.progress import ProgressCalculator, round_half_up, successor_index


@dataclass
class Slot:
    subject_id: str
    target_minutes: int
    position: int
    compensation_minutes: int = 0


@pytest.fixture
def calc():
    return ProgressCalculator()


class TestItemProgress:
    def test_sessions_and_compensation_add_up(self, calc):
        p = calc.item_progress(Slot("math", 60, 0, compensation_minutes=15), {"math": 30}, "Math")

        assert p.session_minutes == 30
        assert p.compensation_minutes == 15
        assert p.accumulated_minutes == 45
        assert p.remaining_minutes == 15
        assert p.is_complete is False
        assert p.subject_name == "Math"

    def test_missing_subject_counts_as_zero(self, calc):
        p = calc.item_progress(Slot("math", 60, 0), {})

        assert p.accumulated_minutes == 0
        assert p.remaining_minutes == 60

    def test_exactly_on_target_is_complete(self, calc):
        p = calc.item_progress(Slot("math", 60, 0), {"math": 60})

        assert p.is_complete is True
        assert p.remaining_minutes == 0

    def test_overshoot_never_goes_negative(self, calc):
        p = calc.item_progress(Slot("math", 60, 0), {"math": 200})

        assert p.accumulated_minutes == 200
        assert p.remaining_minutes == 0

    def test_same_subject_in_two_slots_shares_minutes(self, calc):
        items = [Slot("math", 60, 0), Slot("physics", 30, 1), Slot("math", 90, 2)]
        progress = calc.compute(items, {"math": 70})

        assert [p.accumulated_minutes for p in progress] == [70, 0, 70]
        assert [p.is_complete for p in progress] == [True, False, False]


class TestCompute:
    def test_orders_by_position(self, calc):
        items = [Slot("b", 10, 1), Slot("c", 10, 2), Slot("a", 10, 0)]
        progress = calc.compute(items, {}, {"a": "A", "b": "B", "c": "C"})

        assert [p.position for p in progress] == [0, 1, 2]
        assert [p.subject_name for p in progress] == ["A", "B", "C"]

    def test_empty_items(self, calc):
        assert calc.compute([], {"math": 10}) == []


class TestSummarize:
    def test_totals(self, calc):
        items = [Slot("math", 60, 0), Slot("physics", 30, 1, compensation_minutes=30)]
        totals = calc.summarize(calc.compute(items, {"math": 30}))

        assert totals.total_target_minutes == 90
        assert totals.total_accumulated_minutes == 60
        assert totals.completed_items_count == 1
        assert totals.total_items_count == 2
        assert totals.overall_percentage == 67
        assert totals.average_per_item == 30

    def test_percentage_capped_at_100(self, calc):
        totals = calc.summarize(calc.compute([Slot("math", 60, 0)], {"math": 500}))

        assert totals.overall_percentage == 100
        assert totals.total_accumulated_minutes == 500

    def test_empty_progress_is_all_zero(self, calc):
        totals = calc.summarize([])

        assert totals.total_target_minutes == 0
        assert totals.overall_percentage == 0
        assert totals.average_per_item == 0

    def test_halves_round_up(self, calc):
        # 1 / 8 * 100 = 12.5 -> 13 ; 25 / 2 = 12.5 -> 13
        items = [Slot("a", 4, 0), Slot("b", 4, 1)]
        totals = calc.summarize(calc.compute(items, {"a": 1}))
        assert totals.overall_percentage == 13

        totals = calc.summarize(calc.compute(items, {"a": 20, "b": 5}))
        assert totals.average_per_item == 13


class TestHelpers:
    @pytest.mark.parametrize(
        "value,expected",
        [(0.0, 0), (0.4, 0), (0.5, 1), (1.5, 2), (2.5, 3), (66.666, 67)],
    )
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_successor_wraps(self):
        assert successor_index(0, 3) == 1
        assert successor_index(2, 3) == 0
        assert successor_index(0, 1) == 0

    def test_successor_of_empty_rotation_raises(self):
        with pytest.raises(ValueError):
            successor_index(0, 0)

    def test_shortfall(self, calc):
        p = calc.item_progress(Slot("math", 60, 0), {"math": 15})
        assert ProgressCalculator.shortfall(p) == 45

        done = calc.item_progress(Slot("math", 60, 0), {"math": 90})
        assert ProgressCalculator.shortfall(done) == 0
