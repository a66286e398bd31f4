"""
Shared CLI plumbing: lazily built services, the rich console, and the
mapping of engine errors to exit codes.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich import print as rprint
from rich.console import Console

from config import get_settings
from src.cycle.errors import StudyCycleError

console = Console()

DEFAULT_USER = os.environ.get("STUDY_USER", "local")


class CLIContext:
    """
    Dependency injection container for CLI commands.

    Lazily initializes services so `--help` never touches the database.
    """

    def __init__(self, user_id: str = DEFAULT_USER):
        self.settings = get_settings()
        self.user_id = user_id
        self._engine = None
        self._workspaces = None

    @property
    def engine(self):
        """Lazy load CycleEngine."""
        if self._engine is None:
            from src.cycle import CycleEngine

            self._engine = CycleEngine()
        return self._engine

    @property
    def workspaces(self):
        """Lazy load WorkspaceService."""
        if self._workspaces is None:
            from src.cycle import WorkspaceService

            self._workspaces = WorkspaceService()
        return self._workspaces

    def workspace(self, workspace_id: str) -> str:
        """Check the CLI user owns the workspace; returns its id."""
        self.workspaces.verify_access(self.user_id, workspace_id)
        return workspace_id

    def subject_id(self, workspace_id: str, name: str) -> str:
        """Resolve a subject by name."""
        subject = self.workspaces.find_subject(workspace_id, name)
        if subject is None:
            rprint(f"[red]✗[/red] Unknown subject '{name}'. Add it with: study subject add {workspace_id} \"{name}\"")
            raise typer.Exit(code=1)
        return subject.id


@contextmanager
def handle_errors() -> Iterator[None]:
    """Print engine errors in red and exit with code 1."""
    try:
        yield
    except StudyCycleError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)


def parse_item(raw: str) -> tuple[str, int]:
    """Parse 'Subject:minutes' (the subject name may itself contain colons)."""
    name, sep, minutes = raw.rpartition(":")
    if not sep or not name.strip():
        raise typer.BadParameter(f"Expected SUBJECT:MINUTES, got '{raw}'")
    try:
        value = int(minutes)
    except ValueError:
        raise typer.BadParameter(f"Minutes must be an integer in '{raw}'") from None
    settings = get_settings()
    if not 1 <= value <= settings.target_minutes_max:
        raise typer.BadParameter(f"Minutes must be between 1 and {settings.target_minutes_max} in '{raw}'")
    return name.strip(), value
