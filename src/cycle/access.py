"""
Workspace access guard.

Stand-in for the authorization collaborator: confirms a workspace exists and
belongs to the caller before any engine operation runs.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from src.cycle.errors import CycleNotFoundError, WorkspaceForbiddenError
from src.db.models import Subject, Workspace


def verify_workspace_access(session: Session, user_id: str, workspace_id: str) -> Workspace:
    """
    Load the workspace and check ownership.

    Raises:
        CycleNotFoundError: the workspace does not exist
        WorkspaceForbiddenError: the workspace belongs to someone else
    """
    workspace = session.get(Workspace, workspace_id)
    if workspace is None:
        raise CycleNotFoundError("Workspace not found")
    if workspace.owner_id != user_id:
        raise WorkspaceForbiddenError("Not authorized to access this workspace")
    return workspace


def require_subject(session: Session, workspace_id: str, subject_id: str) -> Subject:
    """Load a subject that must belong to the workspace."""
    subject = session.get(Subject, subject_id)
    if subject is None or subject.workspace_id != workspace_id:
        raise CycleNotFoundError(f"Subject {subject_id} not found in workspace")
    return subject
