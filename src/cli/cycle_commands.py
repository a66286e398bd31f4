"""
Study cycle CLI commands.

Commands:
    study cycle create WS --name "Exam" --item "Math:120" --item "Physics:60"
    study cycle list WS
    study cycle show WS             - what to study now
    study cycle advance WS [--force]
    study cycle reset WS
    study cycle stats WS
    study cycle history WS --limit 10
    study cycle update WS CYCLE_ID --name ... --item ... --index N
    study cycle activate WS CYCLE_ID
    study cycle delete WS CYCLE_ID
"""

from __future__ import annotations

from typing import List, Optional

import typer
from rich import box
from rich import print as rprint
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from src.cli.context import DEFAULT_USER, CLIContext, console, handle_errors, parse_item
from src.cycle import CyclePatch, ItemSpec

cycle_app = typer.Typer(
    help="Study cycles: rotate through subjects with per-subject targets",
    no_args_is_help=True,
)

UserOption = typer.Option(DEFAULT_USER, "--user", "-u", help="Acting user (workspace owner)")


def format_minutes(minutes: int) -> str:
    """Render minutes as '1h 05m' / '45m'."""
    hours, rest = divmod(int(minutes), 60)
    return f"{hours}h {rest:02d}m" if hours else f"{rest}m"


def _progress_bar(accumulated: int, target: int, width: int = 20) -> str:
    ratio = min(1.0, accumulated / target) if target else 0.0
    filled = int(round(ratio * width))
    return "█" * filled + "░" * (width - filled)


def _item_specs(ctx: CLIContext, workspace_id: str, items: List[str]) -> list[ItemSpec]:
    specs = []
    for raw in items:
        name, minutes = parse_item(raw)
        specs.append(ItemSpec(subject_id=ctx.subject_id(workspace_id, name), target_minutes=minutes))
    return specs


@cycle_app.command("create")
def cycle_create(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Cycle name"),
    item: List[str] = typer.Option(..., "--item", "-i", help="SUBJECT:MINUTES, repeat in rotation order"),
    activate: bool = typer.Option(False, "--activate", help="Make this the active cycle"),
    user: str = UserOption,
) -> None:
    """Create a cycle. The first cycle of a workspace is activated automatically."""
    ctx = CLIContext(user)
    with handle_errors():
        ws = ctx.workspace(workspace_id)
        cycle = ctx.engine.create_cycle(ws, name, _item_specs(ctx, ws, item), activate_on_create=activate)

    state = "[green]active[/green]" if cycle.is_active else "[dim]inactive[/dim]"
    rprint(f"[green]✓[/green] Created cycle {cycle.name or '(unnamed)'} ({cycle.id}) - {state}")
    for it in cycle.items:
        rprint(f"  {it.position + 1}. {it.subject_name}  {format_minutes(it.target_minutes)}")


@cycle_app.command("list")
def cycle_list(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    user: str = UserOption,
) -> None:
    """List all cycles, active first."""
    ctx = CLIContext(user)
    with handle_errors():
        cycles = ctx.engine.list_cycles(ctx.workspace(workspace_id))

    if not cycles:
        rprint("[yellow]No cycles yet.[/yellow] Create one with: study cycle create")
        return

    table = Table(title="Study Cycles", box=box.ROUNDED)
    table.add_column("", width=2)
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Subjects")
    table.add_column("Position", justify="right")

    for cycle in cycles:
        subjects = " → ".join(i.subject_name for i in cycle.items) or "-"
        position = f"{cycle.current_item_index + 1}/{len(cycle.items)}" if cycle.items else "-"
        table.add_row("●" if cycle.is_active else "", cycle.name or "(unnamed)", cycle.id, subjects, position)

    console.print(table)


@cycle_app.command("show")
def cycle_show(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    user: str = UserOption,
) -> None:
    """Show what to study now and the progress of every subject."""
    ctx = CLIContext(user)
    with handle_errors():
        result = ctx.engine.get_suggestion(ctx.workspace(workspace_id))

    if not result.has_cycle:
        rprint("[yellow]No active cycle.[/yellow]")
        return
    if result.is_empty:
        rprint(f"[yellow]Cycle {result.cycle_name or result.cycle_id} has no subjects.[/yellow]")
        return

    s = result.suggestion
    content = Text()
    content.append(f"Now: {s.current_subject}\n", style="bold cyan")
    content.append(
        f"{format_minutes(s.current_accumulated_minutes)} / {format_minutes(s.current_target_minutes)}"
        f"  ({format_minutes(s.remaining_minutes)} left)\n"
    )
    if s.is_current_complete:
        content.append("Target reached - ready to advance\n", style="green")
    content.append(f"Next: {s.next_subject} ({format_minutes(s.next_target_minutes)})\n", style="dim")
    content.append(f"Position {s.current_position + 1} of {s.total_items}")
    if s.is_cycle_complete:
        content.append("\nEvery subject has reached its target", style="bold green")
    console.print(Panel(content, title=result.cycle_name or "Study Cycle", box=box.ROUNDED))

    table = Table(box=box.SIMPLE)
    table.add_column("#", justify="right")
    table.add_column("Subject")
    table.add_column("Progress")
    table.add_column("Done", justify="right")
    for p in s.all_items_progress:
        marker = "▶" if p.position == s.current_position else str(p.position + 1)
        table.add_row(
            marker,
            p.subject_name,
            _progress_bar(p.accumulated_minutes, p.target_minutes),
            f"{format_minutes(p.accumulated_minutes)}/{format_minutes(p.target_minutes)}",
        )
    console.print(table)


@cycle_app.command("advance")
def cycle_advance(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Credit missing minutes to the current subject"),
    user: str = UserOption,
) -> None:
    """Move on to the next subject in the rotation."""
    ctx = CLIContext(user)
    with handle_errors():
        result = ctx.engine.advance_to_next(ctx.workspace(workspace_id), force_complete=force)

    if result.compensated_minutes:
        rprint(f"[yellow]⚑[/yellow] Credited {format_minutes(result.compensated_minutes)} to {result.previous_subject}")
    rprint(f"[green]✓[/green] {result.previous_subject} → [bold cyan]{result.new_subject}[/bold cyan]")
    if result.cycle_completed:
        rprint("[bold green]★ Rotation complete![/bold green] Back to the first subject.")


@cycle_app.command("reset")
def cycle_reset(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    user: str = UserOption,
) -> None:
    """Start over: first subject, no credits, earlier sessions stop counting."""
    ctx = CLIContext(user)
    with handle_errors():
        cycle = ctx.engine.reset_cycle(ctx.workspace(workspace_id))
    rprint(f"[green]✓[/green] Cycle {cycle.name or cycle.id} reset")


@cycle_app.command("stats")
def cycle_stats(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    user: str = UserOption,
) -> None:
    """Show totals for the active cycle."""
    ctx = CLIContext(user)
    with handle_errors():
        stats = ctx.engine.get_statistics(ctx.workspace(workspace_id))

    if stats is None:
        rprint("[yellow]No active cycle.[/yellow]")
        return

    table = Table(title=f"Statistics: {stats.cycle_name or stats.cycle_id}", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Overall", f"{stats.overall_percentage}%")
    table.add_row("Studied", format_minutes(stats.total_accumulated_minutes))
    table.add_row("Target", format_minutes(stats.total_target_minutes))
    table.add_row("Subjects done", f"{stats.completed_items_count}/{stats.total_items_count}")
    table.add_row("Average per subject", format_minutes(stats.average_per_item))
    console.print(table)


@cycle_app.command("history")
def cycle_history(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    limit: int = typer.Option(20, "--limit", "-l", min=1, max=100, help="Entries to show"),
    user: str = UserOption,
) -> None:
    """Show recent advances and completed rotations."""
    ctx = CLIContext(user)
    with handle_errors():
        history = ctx.engine.get_history(ctx.workspace(workspace_id), limit=limit)

    if history is None:
        rprint("[yellow]No active cycle.[/yellow]")
        return

    rprint(f"[dim]{history.total_advances} advances, {history.total_completions} completed rotations[/dim]")
    for entry in history.entries:
        when = entry.created_at.strftime("%Y-%m-%d %H:%M")
        if entry.type == "completion":
            rprint(
                f"  {when}  [bold green]★ Rotation #{entry.completion_number}[/bold green] "
                f"{format_minutes(entry.total_spent_minutes)}/{format_minutes(entry.total_target_minutes)}"
            )
        else:
            rprint(
                f"  {when}  {entry.from_subject} → {entry.to_subject} "
                f"[dim]({format_minutes(entry.minutes_spent)})[/dim]"
            )


@cycle_app.command("update")
def cycle_update(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    cycle_id: str = typer.Argument(..., help="Cycle ID"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="New name"),
    item: Optional[List[str]] = typer.Option(None, "--item", "-i", help="Replace items: SUBJECT:MINUTES, repeatable"),
    index: Optional[int] = typer.Option(None, "--index", min=0, help="Move the pointer (0-based)"),
    user: str = UserOption,
) -> None:
    """Rename a cycle, replace its subjects, or move its pointer."""
    ctx = CLIContext(user)
    with handle_errors():
        ws = ctx.workspace(workspace_id)
        patch = CyclePatch(
            name=name,
            current_item_index=index,
            items=_item_specs(ctx, ws, item) if item else None,
        )
        cycle = ctx.engine.update_cycle(ws, cycle_id, patch)
    rprint(f"[green]✓[/green] Updated {cycle.name or cycle.id}: {len(cycle.items)} subjects, position {cycle.current_item_index + 1}")


@cycle_app.command("activate")
def cycle_activate(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    cycle_id: str = typer.Argument(..., help="Cycle ID"),
    user: str = UserOption,
) -> None:
    """Make a cycle the active one."""
    ctx = CLIContext(user)
    with handle_errors():
        cycle = ctx.engine.activate_cycle(ctx.workspace(workspace_id), cycle_id)
    rprint(f"[green]✓[/green] {cycle.name or cycle.id} is now active")


@cycle_app.command("delete")
def cycle_delete(
    workspace_id: str = typer.Argument(..., help="Workspace ID"),
    cycle_id: str = typer.Argument(..., help="Cycle ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    user: str = UserOption,
) -> None:
    """Delete a cycle with its history."""
    if not yes and not typer.confirm(f"Delete cycle {cycle_id} and its history?"):
        raise typer.Abort()
    ctx = CLIContext(user)
    with handle_errors():
        ctx.engine.delete_cycle(ctx.workspace(workspace_id), cycle_id)
    rprint("[green]✓[/green] Cycle deleted")
