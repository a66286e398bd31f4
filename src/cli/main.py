"""
Typer CLI for the study cycle tracker.

Commands:
    study db init                   - Initialize database tables
    study workspace create NAME     - Create a workspace (prints its ID)
    study workspace list            - List your workspaces
    study subject add WS NAME       - Add a subject to a workspace
    study subject list WS           - List subjects
    study session log WS SUBJECT MIN - Log minutes studied
    study session totals WS         - Minutes per subject
    study cycle ...                 - Study cycle commands (see src/cli/cycle_commands.py)
    study config                    - Show configuration
    study version                   - Show version

Usage:
    study --help
    study workspace create "Finals"
    study cycle create <WS> --item "Math:120" --item "Physics:60"
    study cycle advance <WS> --force
"""

from __future__ import annotations

import os
import sys

# Box drawing and progress glyphs need UTF-8 on Windows consoles
if sys.platform == "win32":
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import typer
from loguru import logger
from rich import print as rprint
from rich.table import Table

from config import get_settings
from src.cli.context import DEFAULT_USER, CLIContext, console, handle_errors
from src.cli.cycle_commands import cycle_app, format_minutes

app = typer.Typer(
    help="study: track study time with rotating study cycles",
    no_args_is_help=True,
)

app.add_typer(cycle_app, name="cycle")

UserOption = typer.Option(DEFAULT_USER, "--user", "-u", help="Acting user (workspace owner)")


# ========================================
# DATABASE COMMANDS
# ========================================

db_app = typer.Typer(help="Database management")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init() -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    logger.info("Initializing database tables...")
    from src.db.database import init_db

    init_db()
    rprint("[green]✓[/green] Database initialized!")


# ========================================
# WORKSPACE / SUBJECT / SESSION COMMANDS
# ========================================

workspace_app = typer.Typer(help="Workspaces", no_args_is_help=True)
app.add_typer(workspace_app, name="workspace")


@workspace_app.command("create")
def workspace_create(
    name: str = typer.Argument(..., help="Workspace name"),
    user: str = UserOption,
) -> None:
    """Create a workspace owned by the current user."""
    ctx = CLIContext(user)
    ws = ctx.workspaces.create_workspace(user, name)
    rprint(f"[green]✓[/green] Created workspace {ws.name}")
    # Bare ID on its own line so scripts can capture it
    print(ws.id)


@workspace_app.command("list")
def workspace_list(user: str = UserOption) -> None:
    """List workspaces owned by the current user."""
    ctx = CLIContext(user)
    rows = ctx.workspaces.list_workspaces(user)
    if not rows:
        rprint("[yellow]No workspaces.[/yellow]")
        return

    table = Table(title=f"Workspaces ({user})")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Created")
    for ws in rows:
        table.add_row(ws.name, ws.id, ws.created_at.strftime("%Y-%m-%d"))
    console.print(table)


subject_app = typer.Typer(help="Subjects", no_args_is_help=True)
app.add_typer(subject_app, name="subject")


@subject_app.command("add")
def subject_add(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    name: str = typer.Argument(..., help="Subject name"),
    user: str = UserOption,
) -> None:
    """Add a subject."""
    ctx = CLIContext(user)
    with handle_errors():
        subject = ctx.workspaces.add_subject(ctx.workspace(workspace_id), name)
    rprint(f"[green]✓[/green] Added subject {subject.name}")


@subject_app.command("list")
def subject_list(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    user: str = UserOption,
) -> None:
    """List subjects."""
    ctx = CLIContext(user)
    with handle_errors():
        subjects = ctx.workspaces.list_subjects(ctx.workspace(workspace_id))
    for subject in subjects:
        rprint(f"  {subject.name} [dim]{subject.id}[/dim]")


session_app = typer.Typer(help="Study sessions", no_args_is_help=True)
app.add_typer(session_app, name="session")


@session_app.command("log")
def session_log(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    subject: str = typer.Argument(..., help="Subject name"),
    minutes: int = typer.Argument(..., min=1, help="Minutes studied"),
    user: str = UserOption,
) -> None:
    """Log a study session."""
    ctx = CLIContext(user)
    with handle_errors():
        ws = ctx.workspace(workspace_id)
        ctx.workspaces.log_session(ws, ctx.subject_id(ws, subject), minutes)
    rprint(f"[green]✓[/green] Logged {format_minutes(minutes)} of {subject}")


@session_app.command("totals")
def session_totals(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    user: str = UserOption,
) -> None:
    """Minutes logged per subject (all time)."""
    ctx = CLIContext(user)
    with handle_errors():
        ws = ctx.workspace(workspace_id)
        subjects = {s.id: s.name for s in ctx.workspaces.list_subjects(ws)}
        totals = ctx.workspaces.subject_totals(ws)

    table = Table(title="Study Time")
    table.add_column("Subject", style="cyan")
    table.add_column("Total", justify="right")
    for subject_id, name in subjects.items():
        table.add_row(name, format_minutes(totals.get(subject_id, 0)))
    console.print(table)


# ========================================
# INFO COMMANDS
# ========================================


@app.command("config")
def show_config() -> None:
    """Show current configuration."""
    settings = get_settings()
    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Database URL", settings.database_url)
    table.add_row("Log Level", settings.log_level)
    for key, value in settings.get_cycle_config().items():
        table.add_row(key, str(value))
    console.print(table)


@app.command("version")
def show_version() -> None:
    """Show version information."""
    rprint("[bold]study-cycle-tracker[/bold] v0.1.0")
    rprint("  Sessions -> study cycles -> what to study next")


def main() -> None:
    """Entry point for the CLI."""
    logger.remove()
    logger.add(sys.stderr, level=os.environ.get("STUDY_LOG_LEVEL", "WARNING"))
    app()


if __name__ == "__main__":
    main()
