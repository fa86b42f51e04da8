"""Holdfast command-line interface.

Commands:
    run         Run a probe suite, score it and record the score
    latest      Show the most recent score
    history     List past scores, newest first
    clear       Erase score history
    categories  List scoring categories and weights

Usage:
    $ holdfast run --probes mysuite.probes:ALL_PROBES
    $ holdfast run --probes mysuite.probes:build --monitor --port 8765
    $ holdfast history

For detailed help on any command:
    $ holdfast <command> --help
"""

import asyncio
import contextlib
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from holdfast.assess import AssessmentResult, AssessmentService, RunInProgressError
from holdfast.config import load_settings
from holdfast.core.categories import CATEGORIES, CATEGORY_TABLE_VERSION, category_label
from holdfast.core.correlator import DetectionCorrelator
from holdfast.core.db import DuplicateKeyError, HistoryStore
from holdfast.core.models import DefenseScore, Grade, ProgressEvent, ProgressPhase
from holdfast.core.signals import SignalBus
from holdfast.log import setup_logging
from holdfast.monitor import create_monitor_app, running_monitor
from holdfast.probes import ProbeLoadError, load_probes

app = typer.Typer(
    help="Holdfast — run attack probes and score how well the environment holds",
    no_args_is_help=True,
)
console = Console()

_GRADE_STYLES = {
    Grade.A: "bold green",
    Grade.B: "green",
    Grade.C: "yellow",
    Grade.D: "bold yellow",
    Grade.F: "bold red",
}
"""Rich markup styles for grade display."""

DbOption = Annotated[
    Path | None,
    typer.Option("--db", help="History database path (default: ~/.holdfast/history.db)."),
]


def _store(db_path: Path | None) -> HistoryStore:
    return HistoryStore(db_path or load_settings().db_path)


def _grade_markup(score: DefenseScore) -> str:
    style = _GRADE_STYLES.get(score.grade, "bold")
    return f"[{style}]{score.total_score}/{score.max_score} ({score.grade.value})[/{style}]"


def _print_score(score: DefenseScore) -> None:
    """Print a score's category breakdown and total."""
    table = Table(title=f"Defense Score — {score.tested_at.strftime('%Y-%m-%d %H:%M:%S')}")
    table.add_column("Category", style="magenta")
    table.add_column("Probes", justify="right")
    table.add_column("Blocked", justify="right")
    table.add_column("Points", justify="right")
    table.add_column("Score", justify="right")

    for cat in score.categories:
        blocked = sum(1 for r in cat.records if r.outcome.blocked)
        table.add_row(
            category_label(cat.category),
            str(len(cat.records)),
            str(blocked),
            f"{cat.score}/{cat.max_score}",
            f"{cat.percentage:.0f}%",
        )

    console.print(table)
    console.print(f"\n[bold]Total:[/bold] {_grade_markup(score)}")


def _print_failures(result: AssessmentResult) -> None:
    """List probes whose attack got through, and probes that errored."""
    open_records = [r for r in result.records if not r.outcome.blocked]
    errored = [r for r in result.records if r.outcome.error]

    if open_records:
        console.print(f"\n[bold red]Not blocked ({len(open_records)}):[/bold red]")
        for r in open_records:
            flag = " [yellow](detected)[/yellow]" if r.outcome.detected else ""
            console.print(f"  * {escape(f'[{r.severity.value}]')} {escape(r.name)}{flag}")
            if r.outcome.details:
                console.print(f"    [dim]{escape(r.outcome.details)}[/dim]")

    if errored:
        console.print(
            f"\n[yellow]! {len(errored)} probe(s) errored and were counted as blocked[/yellow]"
        )
        for r in errored:
            console.print(f"  * {escape(r.id)}: [dim]{escape(r.outcome.error or '')}[/dim]")


@app.callback()
def main(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Logging level (default: WARNING).")
    ] = None,
) -> None:
    """Configure logging before any command runs."""
    setup_logging(log_level)


@app.command()
def run(
    probes_ref: Annotated[
        str,
        typer.Option("--probes", help="Probe suite as 'module:attribute'."),
    ],
    db_path: DbOption = None,
    save: Annotated[
        bool, typer.Option("--save/--no-save", help="Record the score in history.")
    ] = True,
    monitor: Annotated[
        bool,
        typer.Option(
            "--monitor/--no-monitor", help="Accept detection signals over HTTP while running."
        ),
    ] = False,
    host: Annotated[
        str | None, typer.Option("--host", help="Signal receiver bind address.")
    ] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Signal receiver port.")] = None,
) -> None:
    """Run a probe suite and score the results.

    Probes run one at a time. When --monitor is set, a signal receiver
    listens for POST /signals/<kind> so an external monitor can flag
    attacks it observed.
    """
    settings = load_settings()
    bus = SignalBus()
    correlator = DetectionCorrelator(bus, grace_window=settings.grace_window)

    try:
        probes = load_probes(probes_ref, correlator)
    except ProbeLoadError as e:
        console.print(f"[red]X {escape(str(e))}[/red]")
        raise typer.Exit(1) from None

    if not probes:
        console.print("[yellow]! Probe suite is empty; the score will be 0 (F).[/yellow]")

    service = AssessmentService(_store(db_path))
    bind_host = host or settings.monitor_host
    bind_port = port or settings.monitor_port

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task("Starting", total=len(probes))

        def on_event(event: ProgressEvent) -> None:
            if event.phase == ProgressPhase.COMPLETED:
                progress.update(task_id, completed=event.total, description="Done")
            elif event.current is not None:
                progress.update(
                    task_id,
                    completed=event.completed - 1,
                    description=escape(event.current.name),
                )

        async def _run() -> AssessmentResult:
            receiver = (
                running_monitor(create_monitor_app(bus, echo=True), bind_host, bind_port)
                if monitor
                else contextlib.nullcontext()
            )
            async with receiver:
                return await service.assess(probes, on_event=on_event, save=save)

        try:
            result = asyncio.run(_run())
        except (RunInProgressError, DuplicateKeyError) as e:
            console.print(f"[red]X {escape(str(e))}[/red]")
            raise typer.Exit(1) from None

    _print_score(result.score)
    _print_failures(result)

    if result.delta is not None:
        sign = "+" if result.delta >= 0 else ""
        console.print(f"[dim]Change since last run: {sign}{result.delta}[/dim]")
    if result.saved:
        console.print(f"[green]OK Saved to history[/green] [dim]({service.store.db_path})[/dim]")


@app.command()
def latest(db_path: DbOption = None) -> None:
    """Show the most recent score."""
    score = _store(db_path).latest()
    if score is None:
        console.print("[dim]No results yet. Run 'holdfast run' first.[/dim]")
        return
    _print_score(score)


@app.command()
def history(db_path: DbOption = None) -> None:
    """List past scores, newest first."""
    scores = _store(db_path).all()
    if not scores:
        console.print("[dim]No results yet. Run 'holdfast run' first.[/dim]")
        return

    table = Table(title="Score History")
    table.add_column("Tested At", style="cyan", no_wrap=True)
    table.add_column("Score", justify="right")
    table.add_column("Grade", justify="center")
    table.add_column("Change", justify="right")
    table.add_column("Probes", justify="right")
    table.add_column("Categories", justify="right")

    for i, score in enumerate(scores):
        older = scores[i + 1] if i + 1 < len(scores) else None
        if older is None:
            change = "[dim]-[/dim]"
        else:
            diff = score.total_score - older.total_score
            style = "green" if diff > 0 else "red" if diff < 0 else "dim"
            change = f"[{style}]{diff:+d}[/{style}]"
        grade_style = _GRADE_STYLES.get(score.grade, "bold")
        table.add_row(
            score.tested_at.strftime("%Y-%m-%d %H:%M:%S"),
            str(score.total_score),
            f"[{grade_style}]{score.grade.value}[/{grade_style}]",
            change,
            str(score.record_count),
            str(len(score.categories)),
        )

    console.print(table)


@app.command()
def clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
    db_path: DbOption = None,
) -> None:
    """Erase all score history."""
    store = _store(db_path)
    count = store.count()
    if count == 0:
        console.print("[dim]Nothing to clear — history is already empty.[/dim]")
        return

    console.print(f"[bold]This will delete {count} stored score(s).[/bold]")
    if not yes:
        confirm = typer.confirm("Are you sure?")
        if not confirm:
            console.print("[dim]Cancelled.[/dim]")
            raise typer.Exit()

    deleted = store.clear()
    console.print(f"[green]Done — removed {deleted} score(s).[/green]")


@app.command()
def categories() -> None:
    """List scoring categories with their labels and weights."""
    table = Table(title=f"Scoring Categories (table v{CATEGORY_TABLE_VERSION})")
    table.add_column("Category", style="green")
    table.add_column("Label")
    table.add_column("Weight", justify="right")

    for category, info in CATEGORIES.items():
        table.add_row(category.value, info.label, f"{info.weight:.2f}")

    console.print(table)
    console.print("\n[dim]Weights are renormalized over the categories present in a run.[/dim]")
