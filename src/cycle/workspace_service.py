"""
Workspace Service: data access for the records the cycle engine reads.

Workspaces, subjects and logged study sessions are plain create/read records.
Session validation (positive minutes, subject in workspace) lives here, not
in the engine.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from loguru import logger
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from src.cycle.access import require_subject, verify_workspace_access
from src.cycle.errors import CycleConflictError, InvalidSessionError
from src.cycle.ledger import SessionLedger
from src.db.database import transactional_scope
from src.db.models import Subject, Workspace
from src.db.models.base import as_naive_utc


@dataclass
class WorkspaceView:
    id: str
    owner_id: str
    name: str
    created_at: datetime


@dataclass
class SubjectView:
    id: str
    workspace_id: str
    name: str


@dataclass
class SessionView:
    id: str
    workspace_id: str
    subject_id: str
    minutes: int
    logged_at: datetime


class WorkspaceService:
    """Create/read access to workspaces, subjects and the session ledger."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None):
        if session_factory is None:
            from src.db.database import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        with transactional_scope(self._session_factory) as session:
            yield session

    def verify_access(self, user_id: str, workspace_id: str) -> WorkspaceView:
        with self._scope() as session:
            ws = verify_workspace_access(session, user_id, workspace_id)
            return WorkspaceView(id=ws.id, owner_id=ws.owner_id, name=ws.name, created_at=ws.created_at)

    def create_workspace(self, owner_id: str, name: str) -> WorkspaceView:
        with self._scope() as session:
            ws = Workspace(owner_id=owner_id, name=name)
            session.add(ws)
            session.flush()
            logger.info(f"Created workspace {ws.id} ({name!r}) for {owner_id}")
            return WorkspaceView(id=ws.id, owner_id=ws.owner_id, name=ws.name, created_at=ws.created_at)

    def list_workspaces(self, owner_id: str) -> list[WorkspaceView]:
        with self._scope() as session:
            rows = session.scalars(
                select(Workspace).where(Workspace.owner_id == owner_id).order_by(Workspace.created_at)
            )
            return [
                WorkspaceView(id=ws.id, owner_id=ws.owner_id, name=ws.name, created_at=ws.created_at)
                for ws in rows
            ]

    def add_subject(self, workspace_id: str, name: str) -> SubjectView:
        with self._scope() as session:
            existing = session.scalars(
                select(Subject).where(Subject.workspace_id == workspace_id, Subject.name == name)
            ).first()
            if existing is not None:
                raise CycleConflictError(f"Subject '{name}' already exists in this workspace")
            subject = Subject(workspace_id=workspace_id, name=name)
            session.add(subject)
            session.flush()
            return SubjectView(id=subject.id, workspace_id=workspace_id, name=subject.name)

    def list_subjects(self, workspace_id: str) -> list[SubjectView]:
        with self._scope() as session:
            rows = session.scalars(
                select(Subject).where(Subject.workspace_id == workspace_id).order_by(Subject.name)
            )
            return [SubjectView(id=s.id, workspace_id=s.workspace_id, name=s.name) for s in rows]

    def find_subject(self, workspace_id: str, name: str) -> SubjectView | None:
        with self._scope() as session:
            subject = session.scalars(
                select(Subject).where(Subject.workspace_id == workspace_id, Subject.name == name)
            ).first()
            if subject is None:
                return None
            return SubjectView(id=subject.id, workspace_id=subject.workspace_id, name=subject.name)

    def log_session(
        self,
        workspace_id: str,
        subject_id: str,
        minutes: int,
        logged_at: datetime | None = None,
    ) -> SessionView:
        """
        Append a study session.

        Raises:
            InvalidSessionError: minutes is not positive
            CycleNotFoundError: the subject is not part of the workspace
        """
        if minutes <= 0:
            raise InvalidSessionError("Session minutes must be positive")
        with self._scope() as session:
            require_subject(session, workspace_id, subject_id)
            record = SessionLedger(session).record_session(
                workspace_id, subject_id, minutes, as_naive_utc(logged_at)
            )
            return SessionView(
                id=record.id,
                workspace_id=record.workspace_id,
                subject_id=record.subject_id,
                minutes=record.minutes,
                logged_at=record.logged_at,
            )

    def subject_totals(self, workspace_id: str, since: datetime | None = None) -> dict[str, int]:
        with self._scope() as session:
            return SessionLedger(session).sum_minutes_by_subject(workspace_id, since=as_naive_utc(since))
