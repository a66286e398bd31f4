"""
Study cycle error taxonomy.

Every error is raised at the point of detection and reaches the caller
untranslated. Transport layers map them (see `src.api.main`).
"""

from __future__ import annotations


class StudyCycleError(Exception):
    """Base class for errors reported by the study cycle engine."""


class CycleNotFoundError(StudyCycleError):
    """Raised when a cycle, workspace or item does not exist in the caller's workspace."""


class InvalidCycleStateError(StudyCycleError):
    """Raised when an operation is impossible in the cycle's current state."""


class CycleConflictError(StudyCycleError):
    """Raised when a cycle name is already taken within the workspace."""


class WorkspaceForbiddenError(StudyCycleError):
    """Raised when the caller does not own the workspace."""


class InvalidSessionError(StudyCycleError):
    """Raised when a study session to be logged is malformed (e.g. non-positive minutes)."""
