"""
Progress Calculator for study cycles.

Pure functions over a cycle's items and the ledger's per-subject totals:

    accumulated = session minutes for the subject + compensation
    remaining   = max(0, target - accumulated)
    complete    = accumulated >= target

Nothing here touches the database; callers pass in the ledger aggregate.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol


class ProgressSlot(Protocol):
    """Anything shaped like a cycle item."""

    subject_id: str
    target_minutes: int
    position: int
    compensation_minutes: int


@dataclass(frozen=True)
class ItemProgress:
    """Derived progress of one cycle slot."""

    position: int
    subject_id: str
    subject_name: str
    target_minutes: int
    session_minutes: int
    compensation_minutes: int
    accumulated_minutes: int
    remaining_minutes: int
    is_complete: bool


@dataclass(frozen=True)
class CycleTotals:
    """Cycle-wide aggregate over a progress list."""

    total_target_minutes: int
    total_accumulated_minutes: int
    completed_items_count: int
    total_items_count: int
    overall_percentage: int
    average_per_item: int


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for non-negative input."""
    return int(math.floor(value + 0.5))


def successor_index(index: int, count: int) -> int:
    """Circular successor; the rotation never terminates."""
    if count <= 0:
        raise ValueError("successor of an empty rotation is undefined")
    return (index + 1) % count


class ProgressCalculator:
    """Computes per-item and cycle-wide progress."""

    def item_progress(
        self,
        item: ProgressSlot,
        subject_minutes: Mapping[str, int],
        subject_name: str = "",
    ) -> ItemProgress:
        session_minutes = int(subject_minutes.get(item.subject_id, 0))
        compensation = int(item.compensation_minutes or 0)
        accumulated = session_minutes + compensation
        return ItemProgress(
            position=item.position,
            subject_id=item.subject_id,
            subject_name=subject_name,
            target_minutes=item.target_minutes,
            session_minutes=session_minutes,
            compensation_minutes=compensation,
            accumulated_minutes=accumulated,
            remaining_minutes=max(0, item.target_minutes - accumulated),
            is_complete=accumulated >= item.target_minutes,
        )

    def compute(
        self,
        items: Iterable[ProgressSlot],
        subject_minutes: Mapping[str, int],
        subject_names: Mapping[str, str] | None = None,
    ) -> list[ItemProgress]:
        """
        Compute progress for every item, ordered by position.

        Args:
            items: Cycle items (any order)
            subject_minutes: Ledger totals keyed by subject_id
            subject_names: Optional display names keyed by subject_id

        Returns:
            One ItemProgress per item
        """
        names = subject_names or {}
        ordered = sorted(items, key=lambda item: item.position)
        return [
            self.item_progress(item, subject_minutes, names.get(item.subject_id, ""))
            for item in ordered
        ]

    def summarize(self, progress: list[ItemProgress]) -> CycleTotals:
        """
        Aggregate a progress list.

        overall_percentage = round(min(100, accumulated / target * 100)), 0 without targets
        average_per_item   = round(accumulated / item count), 0 without items
        """
        total_target = sum(p.target_minutes for p in progress)
        total_accumulated = sum(p.accumulated_minutes for p in progress)
        count = len(progress)

        percentage = 0
        if total_target > 0:
            percentage = round_half_up(min(100.0, total_accumulated / total_target * 100))

        return CycleTotals(
            total_target_minutes=total_target,
            total_accumulated_minutes=total_accumulated,
            completed_items_count=sum(1 for p in progress if p.is_complete),
            total_items_count=count,
            overall_percentage=percentage,
            average_per_item=round_half_up(total_accumulated / count) if count else 0,
        )

    @staticmethod
    def shortfall(progress: ItemProgress) -> int:
        """Minutes of compensation needed to make an item complete."""
        return max(0, progress.target_minutes - progress.accumulated_minutes)
