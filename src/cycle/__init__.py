"""
Study Cycle Module.

Provides the study cycle progress engine:
- Circular subject rotation with per-subject targets
- Progress derived from the session ledger plus compensation
- Advance / completion history
"""

from src.cycle.engine import (
    AdvanceResult,
    CycleEngine,
    CyclePatch,
    CycleStatistics,
    CycleSuggestion,
    CycleView,
)
from src.cycle.errors import (
    CycleConflictError,
    CycleNotFoundError,
    InvalidCycleStateError,
    InvalidSessionError,
    StudyCycleError,
    WorkspaceForbiddenError,
)
from src.cycle.history import CycleHistory, HistoryEntry, HistoryRecorder
from src.cycle.ledger import SessionLedger
from src.cycle.progress import ItemProgress, ProgressCalculator
from src.cycle.repository import CycleRepository, ItemSpec
from src.cycle.workspace_service import WorkspaceService

__all__ = [
    "CycleEngine",
    "CyclePatch",
    "CycleView",
    "AdvanceResult",
    "CycleSuggestion",
    "CycleStatistics",
    "CycleHistory",
    "HistoryEntry",
    "HistoryRecorder",
    "SessionLedger",
    "ProgressCalculator",
    "ItemProgress",
    "CycleRepository",
    "ItemSpec",
    "WorkspaceService",
    "StudyCycleError",
    "CycleNotFoundError",
    "InvalidCycleStateError",
    "InvalidSessionError",
    "CycleConflictError",
    "WorkspaceForbiddenError",
]
