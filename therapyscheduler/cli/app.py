"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, NoReturn, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import (
    InMemoryScheduleProvider,
    InMemorySessionStore,
    InMemoryTherapistDirectory,
)
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SchedulingError
from ..domain.models import format_time, to_date
from ..domain.results import AvailabilityResult, OptimizationStrategy, ResolutionConstraints
from ..services.scheduling import SchedulingService

app = typer.Typer(
    name="therapyscheduler",
    help="Check, resolve and optimize therapy session schedules",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DateOption = Annotated[
    Optional[str],
    typer.Option("--date", help="Day to schedule (YYYY-MM-DD). Defaults to today"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show engine debug logging.")] = False,
):
    """Therapy session scheduling engine."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    try:
        config_path = config_file or get_default_config_path()
        return AppConfig.load_from_yaml(config_path)
    except FileNotFoundError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[bold red]Invalid configuration:[/bold red] {e}")
        raise typer.Exit(1)


def _build_service(config: AppConfig) -> SchedulingService:
    """Wire the in-memory backends loaded from the roster to the engine."""
    return SchedulingService(
        schedule_provider=InMemoryScheduleProvider(config.schedule_configurations()),
        session_store=InMemorySessionStore(config.roster_sessions()),
        therapist_directory=InMemoryTherapistDirectory(
            t.to_therapist() for t in config.therapists
        ),
        rules=config.engine.to_rules(),
    )


def _resolve_therapist(config: AppConfig, identifier: str) -> str:
    try:
        return config.resolve_therapist_id(identifier)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _resolve_day(date_option: Optional[str], tz: str):
    if date_option:
        return to_date(date_option)
    return to_date(pendulum.now(tz))


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _print_availability(result: AvailabilityResult) -> None:
    if result.available:
        console.print("[bold green]✓ Time slot is available[/bold green]")
    else:
        console.print(f"[bold red]✗ {result.reason}[/bold red]")

    for conflict in result.conflicts:
        colour = "red" if conflict.is_error else "yellow"
        console.print(f"  [{colour}]{conflict.severity.value}[/{colour}] "
                      f"{conflict.type.value}: {conflict.message}")

    if result.suggestions:
        table = Table(title="Alternative slots", show_header=True, header_style="bold cyan")
        table.add_column("Slot", style="bold yellow")
        table.add_column("Priority")
        table.add_column("Reason", style="dim")
        for suggestion in result.suggestions:
            table.add_row(suggestion.format_display(), suggestion.priority.name, suggestion.reason)
        console.print()
        console.print(table)


@app.command()
def check(
    therapist: Annotated[str, typer.Argument(help="Therapist id or name")],
    start: Annotated[str, typer.Option("--start", "-s", help="Start time (HH:MM)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Session length in minutes")] = None,
    day: DateOption = None,
    config_file: ConfigOption = None,
):
    """
    Check whether a slot is free and list alternatives if it is not.

    Examples:

        therapyscheduler check anna --start 10:30 --duration 60
    """
    config = _load_config(config_file)
    therapist_id = _resolve_therapist(config, therapist)
    service = _build_service(config)

    try:
        target_day = _resolve_day(day, config.timezone)
        length = duration or _default_duration(config, therapist_id, target_day)
        result = asyncio.run(service.check_slot(
            therapist_id=therapist_id, day=target_day, start=start, duration=length,
        ))
    except SchedulingError as e:
        _fail(e)

    console.print(f"\n[bold cyan]{therapist_id}[/bold cyan] on {target_day.format('dddd, DD.MM.YYYY')}, "
                  f"{start} for {length} minutes\n")
    _print_availability(result)
    console.print()


@app.command()
def optimize(
    therapist: Annotated[str, typer.Argument(help="Therapist id or name")],
    duration: Annotated[Optional[List[int]], typer.Option("--duration", "-d", help="Candidate length in minutes (repeatable)")] = None,
    strategy: Annotated[Optional[OptimizationStrategy], typer.Option("--strategy", help="Scoring strategy")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of slots to show")] = 10,
    day: DateOption = None,
    config_file: ConfigOption = None,
):
    """
    List the best free slots of a therapist's day.
    """
    config = _load_config(config_file)
    therapist_id = _resolve_therapist(config, therapist)
    service = _build_service(config)
    strategy = strategy or config.engine.default_strategy

    try:
        target_day = _resolve_day(day, config.timezone)
        slots = asyncio.run(service.optimize_day(
            therapist_id=therapist_id,
            day=target_day,
            durations=duration or config.engine.candidate_durations,
            strategy=strategy,
        ))
    except SchedulingError as e:
        _fail(e)

    console.print()
    if not slots:
        console.print("[yellow]⚠ No free slots on this day.[/yellow]\n")
        return

    table = Table(
        title=f"Free slots for {therapist_id} on {target_day.to_date_string()} ({strategy.value})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Slot", style="bold yellow")
    table.add_column("Score", justify="right")
    table.add_column("Optimal", justify="center")
    table.add_column("Reason", style="dim")
    for slot in slots[:limit]:
        table.add_row(slot.format_display(), f"{slot.score:g}", "✓" if slot.is_optimal else "", slot.reason)

    console.print(table)
    console.print(f"[dim]{len(slots)} slot(s) in total[/dim]\n")


@app.command()
def resolve(
    therapist: Annotated[str, typer.Argument(help="Therapist id or name")],
    start: Annotated[str, typer.Option("--start", "-s", help="Requested start time (HH:MM)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Session length in minutes")] = None,
    max_shift: Annotated[Optional[int], typer.Option("--max-shift", help="Largest same-day shift in minutes")] = None,
    other_days: Annotated[bool, typer.Option("--other-days", help="Also search the following days.")] = False,
    days_forward: Annotated[Optional[int], typer.Option("--days-forward", help="How many following days to search")] = None,
    day: DateOption = None,
    config_file: ConfigOption = None,
):
    """
    Find the nearest conflict-free slot for a request.
    """
    config = _load_config(config_file)
    therapist_id = _resolve_therapist(config, therapist)
    service = _build_service(config)

    constraints = ResolutionConstraints(
        max_time_shift_minutes=config.engine.max_time_shift_minutes if max_shift is None else max_shift,
        allow_different_day=other_days,
        max_days_forward=config.engine.max_days_forward if days_forward is None else days_forward,
    )

    try:
        target_day = _resolve_day(day, config.timezone)
        length = duration or _default_duration(config, therapist_id, target_day)
        result = asyncio.run(service.resolve_conflict(
            therapist_id=therapist_id,
            day=target_day,
            start=start,
            duration=length,
            constraints=constraints,
        ))
    except SchedulingError as e:
        _fail(e)

    console.print()
    if result.resolved:
        slot_end = format_time(result.suggested_start + length)
        console.print(Panel.fit(
            f"[bold green]✓ {result.reason}[/bold green]\n\n"
            f"[bold]Date:[/bold] {to_date(result.suggested_date).format('dddd, DD.MM.YYYY')}\n"
            f"[bold]Time:[/bold] {format_time(result.suggested_start)} - {slot_end}",
            title="Resolved"
        ))
    else:
        console.print(f"[bold red]✗ {result.reason}[/bold red]")
    console.print()


@app.command()
def adjust(
    session_id: Annotated[str, typer.Argument(help="Session id")],
    duration: Annotated[int, typer.Option("--duration", "-d", help="New session length in minutes")],
    reason: Annotated[Optional[str], typer.Option("--reason", "-r", help="Reason recorded in the session notes")] = None,
    cascade: Annotated[bool, typer.Option("--cascade", help="Move later sessions of the day along.")] = False,
    config_file: ConfigOption = None,
):
    """
    Preview a duration change of a booked session.

    The roster file is not modified.
    """
    config = _load_config(config_file)
    service = _build_service(config)

    try:
        result = asyncio.run(service.adjust_session_duration(
            session_id=session_id, new_duration=duration, reason=reason, cascade=cascade,
        ))
    except SchedulingError as e:
        _fail(e)

    console.print()
    if not result.accepted:
        console.print(f"[bold red]✗ Duration change of {session_id} rejected[/bold red]")
        for conflict in result.rejected:
            console.print(f"  [red]{conflict.type.value}[/red]: {conflict.message}")
        console.print()
        raise typer.Exit(1)

    table = Table(
        title=f"Duration change ({result.delta:+d} minutes)",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Session", style="bold yellow")
    table.add_column("Time")
    table.add_column("Note", style="dim")
    for session in (result.updated_session, *result.shifted_sessions):
        table.add_row(
            session.session_id,
            f"{format_time(session.start)} - {format_time(session.end)}",
            session.notes.splitlines()[-1],
        )
    console.print(table)
    console.print()


@app.command()
def assign(
    specialty: Annotated[Optional[List[str]], typer.Option("--specialty", help="Required specialty (repeatable)")] = None,
    time: Annotated[str, typer.Option("--time", "-t", help="Preferred start time (HH:MM)")] = "09:00",
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Consultation length in minutes")] = None,
    exclude: Annotated[Optional[List[str]], typer.Option("--exclude", help="Therapist id to skip (repeatable)")] = None,
    day: DateOption = None,
    config_file: ConfigOption = None,
):
    """
    Pick the best therapist for a consultation.
    """
    config = _load_config(config_file)
    service = _build_service(config)

    try:
        target_day = _resolve_day(day, config.timezone)
        result = asyncio.run(service.assign_therapist(
            required_specialties=specialty or [],
            day=target_day,
            preferred_time=time,
            duration=duration,
            exclude_therapist_ids=exclude or [],
        ))
    except SchedulingError as e:
        _fail(e)

    console.print()
    if result.assigned:
        console.print(Panel.fit(
            f"[bold green]✓ {result.assigned.name or result.assigned.therapist_id}[/bold green] "
            f"(score {result.assigned.score:g})\n\n" + "\n".join(result.assigned.reasons),
            title=result.strategy
        ))
    else:
        console.print(f"[bold red]✗ {result.strategy}[/bold red] "
                      f"({result.total_candidates} candidate(s) checked)")

    if result.alternatives:
        table = Table(title="Alternatives", show_header=True, header_style="bold cyan")
        table.add_column("Therapist", style="bold yellow")
        table.add_column("Score", justify="right")
        table.add_column("Available", justify="center")
        table.add_column("Workload", justify="right")
        for alternative in result.alternatives:
            table.add_row(
                alternative.name or alternative.therapist_id,
                f"{alternative.score:g}",
                "✓" if alternative.available else "✗",
                f"{alternative.current_workload}/{alternative.max_workload}",
            )
        console.print()
        console.print(table)
    console.print()


@app.command()
def list_therapists(config_file: ConfigOption = None):
    """
    List all configured therapists.
    """
    config = _load_config(config_file)

    if not config.therapists:
        console.print("[yellow]No therapists defined in the config file.[/yellow]")
        return

    table = Table(
        title="Configured therapists",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("ID", style="bold yellow")
    table.add_column("Name")
    table.add_column("Specialties", style="dim")
    table.add_column("Rating", justify="right")
    table.add_column("Working days")

    for therapist in config.therapists:
        days = ", ".join(
            entry.day[:3].title() for entry in therapist.schedules if entry.is_working_day
        )
        table.add_row(
            therapist.id,
            therapist.name,
            ", ".join(therapist.specialties) or "-",
            f"{therapist.rating:.1f}" if therapist.rating is not None else "-",
            days or "-",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]therapyscheduler[/bold cyan] version [bold]{__version__}[/bold]\n")


def _default_duration(config: AppConfig, therapist_id: str, day) -> int:
    entry = config.schedule_entry_for(therapist_id, day)
    if entry is not None:
        return entry.session_duration
    return 60


if __name__ == "__main__":
    app()
