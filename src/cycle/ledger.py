"""
Session Ledger: read/append access to logged study sessions.

The cycle engine only ever asks one question of the ledger: how many minutes
were logged per subject in a workspace, optionally counting only sessions at
or after a cutoff (a cycle's `last_reset_at`).
"""

from __future__ import annotations

from datetime import datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.db.models import StudySession


class SessionLedger:
    """Aggregates study sessions for progress computation."""

    def __init__(self, session: Session):
        self.session = session

    def sum_minutes_by_subject(
        self,
        workspace_id: str,
        since: datetime | None = None,
    ) -> dict[str, int]:
        """
        Sum session minutes grouped by subject.

        Args:
            workspace_id: Workspace to aggregate
            since: Only count sessions logged at or after this instant

        Returns:
            Mapping of subject_id to total minutes (subjects without sessions are absent)
        """
        stmt = (
            select(StudySession.subject_id, func.coalesce(func.sum(StudySession.minutes), 0))
            .where(StudySession.workspace_id == workspace_id)
            .group_by(StudySession.subject_id)
        )
        if since is not None:
            stmt = stmt.where(StudySession.logged_at >= since)

        totals = {subject_id: int(minutes) for subject_id, minutes in self.session.execute(stmt)}
        logger.debug(f"Ledger totals for workspace {workspace_id} since {since}: {totals}")
        return totals

    def sum_minutes_for_subject(
        self,
        workspace_id: str,
        subject_id: str,
        since: datetime | None = None,
    ) -> int:
        """Sum session minutes for a single subject."""
        stmt = select(func.coalesce(func.sum(StudySession.minutes), 0)).where(
            StudySession.workspace_id == workspace_id,
            StudySession.subject_id == subject_id,
        )
        if since is not None:
            stmt = stmt.where(StudySession.logged_at >= since)
        return int(self.session.execute(stmt).scalar_one())

    def record_session(
        self,
        workspace_id: str,
        subject_id: str,
        minutes: int,
        logged_at: datetime | None = None,
    ) -> StudySession:
        """Append a session. Validation of minutes and subject is the caller's job."""
        record = StudySession(workspace_id=workspace_id, subject_id=subject_id, minutes=minutes)
        if logged_at is not None:
            record.logged_at = logged_at
        self.session.add(record)
        self.session.flush()
        logger.info(f"Logged {minutes} min for subject {subject_id} in workspace {workspace_id}")
        return record

    def list_sessions(self, workspace_id: str, limit: int = 50) -> list[StudySession]:
        """Most recent sessions first."""
        stmt = (
            select(StudySession)
            .where(StudySession.workspace_id == workspace_id)
            .order_by(StudySession.logged_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))
