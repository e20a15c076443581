"""
Main CLI application using Typer.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, AsyncIterator, Dict, List, Optional, Union

import pendulum
import redis.asyncio as redis
import typer
from redis.exceptions import RedisError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..adapters.graph_client import GraphClient
from ..adapters.mock_calendar import MockCalendarClient
from ..adapters.presence_channel import InMemoryPresenceChannel, RedisPresenceChannel
from ..adapters.presence_store import InMemoryPresenceStore, RedisPresenceStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import AvailabilityError
from ..domain.models import GroupAvailability, PresenceOverride, TimeWindow
from ..domain.slot_grid import SlotGrid
from ..services.availability import AvailabilityService
from ..services.presence import PresencePropagator, PresenceService

app = typer.Typer(
    name="groupavail",
    help="Group availability from calendars and expiring presence overrides",
    add_completion=False,
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
PeopleArgument = Annotated[
    Optional[List[str]],
    typer.Argument(help="Member names or person ids. Defaults to every configured member."),
]
StartOption = Annotated[Optional[str], typer.Option("--start", help="Window start (ISO 8601)")]
EndOption = Annotated[Optional[str], typer.Option("--end", help="Window end (ISO 8601)")]
ResolutionOption = Annotated[
    Optional[int], typer.Option("--resolution", "-r", help="Slot width in minutes")
]


@dataclass
class Services:
    """Wired services for one CLI invocation."""
    availability: AvailabilityService
    presence: PresenceService
    channel: Union[InMemoryPresenceChannel, RedisPresenceChannel]


def configure_logging(level: str) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config = AppConfig.load_from_yaml(config_file or get_default_config_path())
    configure_logging(config.log_level)
    return config


@asynccontextmanager
async def build_services(config: AppConfig) -> AsyncIterator[Services]:
    """Wire adapters and services from configuration; closes Redis on exit."""
    if config.calendar.source == "graph":
        interval_source = GraphClient(
            access_token=config.calendar.graph_access_token,
            timeout=config.calendar.graph_timeout,
        )
    else:
        interval_source = MockCalendarClient(
            data_file=config.calendar.mock_data_file,
            calendar_ids=config.calendar_ids(),
        )

    client = None
    if config.presence.backend == "redis":
        client = redis.from_url(
            config.presence.redis_url,
            decode_responses=True,
            socket_timeout=config.presence.socket_timeout,
        )
        store = RedisPresenceStore(client=client, key_prefix=config.presence.key_prefix)
        channel = RedisPresenceChannel(client=client, channel=config.presence.channel)
    else:
        store = InMemoryPresenceStore()
        channel = InMemoryPresenceChannel()

    try:
        yield Services(
            availability=AvailabilityService(
                interval_source=interval_source,
                presence_store=store,
            ),
            presence=PresenceService(
                store=store,
                propagator=PresencePropagator(channel),
                done_early_minutes=config.defaults.done_early_minutes,
            ),
            channel=channel,
        )
    finally:
        if client is not None:
            await client.aclose()


def _determine_window(
    config: AppConfig,
    start_option: Optional[str],
    end_option: Optional[str],
    resolution: Optional[int],
) -> TimeWindow:
    """
    Resolve the query window from options and configured defaults.

    Without --start the window opens at the beginning of today (in the
    configured timezone); without --end it spans ``window_days``.
    """
    tz = config.timezone

    if start_option:
        start = pendulum.parse(start_option, tz=tz)
    else:
        start = pendulum.now(tz).start_of("day")

    if end_option:
        end = pendulum.parse(end_option, tz=tz)
    else:
        end = start.add(days=config.defaults.window_days)

    return TimeWindow(
        start_utc=start,
        end_utc=end,
        resolution_minutes=(
            resolution if resolution is not None else config.defaults.resolution_minutes
        ),
    )


def _fmt(value, tz: str, pattern: str = "ddd DD.MM.YYYY HH:mm") -> str:
    return value.in_timezone(tz).format(pattern)


def _warn_if_degraded(availability: GroupAvailability) -> None:
    if availability.presence_degraded:
        console.print(
            "[yellow]⚠ Presence store unreachable - results use calendar data only[/yellow]"
        )


def _warn_if_ephemeral(config: AppConfig) -> None:
    if config.presence.backend == "memory":
        console.print(
            "[yellow]⚠ Memory presence backend: status lives only for this command[/yellow]"
        )


def _fail(exc: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
    raise typer.Exit(1)


@app.command()
def availability(
    people: PeopleArgument = None,
    config_file: ConfigOption = None,
    start: StartOption = None,
    end: EndOption = None,
    resolution: ResolutionOption = None,
):
    """
    Show every person's free/busy verdict per slot.
    """
    try:
        config = _load_config(config_file)
        person_ids = config.resolve_people(people or [])
        window = _determine_window(config, start, end, resolution)

        async def run() -> GroupAvailability:
            async with build_services(config) as services:
                return await services.availability.group_availability(person_ids, window)

        result = asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    _warn_if_degraded(result)
    names = config.display_names()

    table = Table(title="Availability", show_header=True, header_style="bold cyan")
    table.add_column("Slot", style="bold")
    for person_id in result.person_ids:
        table.add_column(names.get(person_id, person_id))

    for index, (slot_start, _) in enumerate(SlotGrid(window)):
        cells = []
        for person_id in result.person_ids:
            verdict = result.verdicts[person_id][index]
            colour = "green" if verdict.free else "red"
            cells.append(f"[{colour}]{verdict.reason.value}[/{colour}]")
        table.add_row(_fmt(slot_start, config.timezone), *cells)

    console.print()
    console.print(table)
    console.print()


@app.command()
def common(
    people: PeopleArgument = None,
    config_file: ConfigOption = None,
    start: StartOption = None,
    end: EndOption = None,
    resolution: ResolutionOption = None,
):
    """
    List slots at which everybody is free.
    """
    try:
        config = _load_config(config_file)
        person_ids = config.resolve_people(people or [])
        window = _determine_window(config, start, end, resolution)

        async def run():
            async with build_services(config) as services:
                return await services.availability.group_report(person_ids, window)

        report = asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    _warn_if_degraded(report.availability)

    if not report.common_free_times:
        console.print("[yellow]⚠ No common free slots found.[/yellow]")
        return

    console.print(f"[bold green]✓ {len(report.common_free_times)} common free slot(s):[/bold green]\n")
    for slot in report.common_free_times:
        console.print(
            f"  {_fmt(slot.start, config.timezone)} – {_fmt(slot.end, config.timezone, 'HH:mm')}"
            f"  ({slot.free_count}/{slot.total})"
        )
    console.print()


@app.command()
def heatmap(
    people: PeopleArgument = None,
    config_file: ConfigOption = None,
    start: StartOption = None,
    end: EndOption = None,
    resolution: ResolutionOption = None,
):
    """
    Show how many people are free in each slot.
    """
    try:
        config = _load_config(config_file)
        person_ids = config.resolve_people(people or [])
        window = _determine_window(config, start, end, resolution)

        async def run():
            async with build_services(config) as services:
                return await services.availability.group_report(person_ids, window)

        report = asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    _warn_if_degraded(report.availability)

    table = Table(title="Availability heat-map", show_header=True, header_style="bold cyan")
    table.add_column("Slot", style="bold")
    table.add_column("Free", justify="right")
    table.add_column("%", justify="right")
    table.add_column("")

    for entry in report.heatmap:
        bar = "█" * round(entry.percentage / 10)
        table.add_row(
            _fmt(entry.start, config.timezone),
            f"{entry.free_count}/{entry.total}",
            f"{entry.percentage:.0f}",
            f"[green]{bar}[/green]",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def best(
    people: PeopleArgument = None,
    config_file: ConfigOption = None,
    start: StartOption = None,
    end: EndOption = None,
    resolution: ResolutionOption = None,
    duration: Annotated[
        Optional[int], typer.Option("--duration", "-d", help="Meeting duration in minutes")
    ] = None,
):
    """
    Suggest non-overlapping meeting windows where the whole group is free.
    """
    try:
        config = _load_config(config_file)
        person_ids = config.resolve_people(people or [])
        window = _determine_window(config, start, end, resolution)
        minutes = duration if duration is not None else config.defaults.duration_minutes

        async def run():
            async with build_services(config) as services:
                return await services.availability.group_report(
                    person_ids, window, duration_minutes=minutes
                )

        report = asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    _warn_if_degraded(report.availability)

    if not report.best_meeting_windows:
        console.print(
            "[yellow]⚠ No meeting windows found.[/yellow]\n"
            "Try a longer window or a shorter duration."
        )
        return

    console.print(
        f"[bold green]✓ {len(report.best_meeting_windows)} meeting window(s) "
        f"for {minutes} min:[/bold green]\n"
    )
    for candidate in report.best_meeting_windows:
        console.print(
            f"  {_fmt(candidate.start, config.timezone)} – "
            f"{_fmt(candidate.end, config.timezone, 'HH:mm')}"
            f"  ({candidate.participants} participants)"
        )
    console.print()


@app.command()
def free_now(
    people: PeopleArgument = None,
    config_file: ConfigOption = None,
    resolution: ResolutionOption = None,
):
    """
    List people who are free in the current slot.
    """
    try:
        config = _load_config(config_file)
        person_ids = config.resolve_people(people or [])

        async def run() -> List[str]:
            async with build_services(config) as services:
                return await services.availability.free_now(
                    person_ids,
                    resolution if resolution is not None else config.defaults.resolution_minutes,
                )

        free = asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    names = config.display_names()
    if not free:
        console.print("[yellow]Nobody is free right now.[/yellow]")
        return

    console.print("[bold green]Free now:[/bold green]")
    for person_id in free:
        console.print(f"  • {names.get(person_id, person_id)}")


def _print_presence(record: Optional[PresenceOverride], person_id: str, config: AppConfig) -> None:
    name = config.display_names().get(person_id, person_id)
    if record is None:
        console.print(f"  {name}: [dim]no override[/dim]")
        return
    until = _fmt(record.expires_at, config.timezone) if record.expires_at else "no expiry"
    console.print(f"  {name}: [bold]{record.status.value}[/bold] (until {until})")


@app.command()
def status_set(
    person: Annotated[str, typer.Argument(help="Member name or person id")],
    status: Annotated[str, typer.Argument(help="FREE, FREE_NOW, BUSY or AWAY")],
    config_file: ConfigOption = None,
    until: Annotated[Optional[str], typer.Option("--until", help="Expiry (ISO 8601)")] = None,
):
    """
    Set a presence override for one person and broadcast it.
    """
    try:
        config = _load_config(config_file)
        person_id = config.resolve_person(person)
        expires_at = pendulum.parse(until, tz=config.timezone) if until else None

        async def run():
            async with build_services(config) as services:
                return await services.presence.set_status(person_id, status.upper(), expires_at)

        update = asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    _warn_if_ephemeral(config)
    console.print("[green]✓ Presence updated[/green]")
    _print_presence(update.record, person_id, config)
    if not update.published:
        console.print("[yellow]⚠ Stored, but observers were not notified.[/yellow]")


@app.command()
def done_early(
    person: Annotated[str, typer.Argument(help="Member name or person id")],
    config_file: ConfigOption = None,
    until: Annotated[Optional[str], typer.Option("--until", help="Expiry (ISO 8601)")] = None,
):
    """
    Mark a person FREE_NOW, by default for the configured done-early period.
    """
    try:
        config = _load_config(config_file)
        person_id = config.resolve_person(person)
        expires_at = pendulum.parse(until, tz=config.timezone) if until else None

        async def run():
            async with build_services(config) as services:
                return await services.presence.done_early(person_id, expires_at)

        update = asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    _warn_if_ephemeral(config)
    console.print("[green]✓ Marked as free now[/green]")
    _print_presence(update.record, person_id, config)
    if not update.published:
        console.print("[yellow]⚠ Stored, but observers were not notified.[/yellow]")


@app.command()
def status_clear(
    person: Annotated[str, typer.Argument(help="Member name or person id")],
    config_file: ConfigOption = None,
):
    """
    Remove a person's presence override.
    """
    try:
        config = _load_config(config_file)
        person_id = config.resolve_person(person)

        async def run() -> None:
            async with build_services(config) as services:
                await services.presence.clear_status(person_id)

        asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    console.print("[green]✓ Presence cleared[/green]")


@app.command()
def status_show(
    people: PeopleArgument = None,
    config_file: ConfigOption = None,
):
    """
    Show the live presence override of each person.
    """
    try:
        config = _load_config(config_file)
        person_ids = config.resolve_people(people or [])

        async def run() -> Dict[str, PresenceOverride]:
            async with build_services(config) as services:
                return await services.presence.get_statuses(person_ids)

        snapshot = asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError) as exc:
        _fail(exc)

    if getattr(snapshot, "degraded", False):
        console.print("[yellow]⚠ Presence store unreachable[/yellow]")

    console.print("[bold cyan]Presence:[/bold cyan]")
    for person_id in person_ids:
        _print_presence(snapshot.get(person_id), person_id, config)


@app.command()
def watch(
    config_file: ConfigOption = None,
    count: Annotated[
        Optional[int], typer.Option("--count", "-n", help="Stop after this many changes")
    ] = None,
):
    """
    Print presence changes as they are broadcast (redis backend only).
    """
    try:
        config = _load_config(config_file)
        if config.presence.backend != "redis":
            raise ValueError("watch needs presence.backend set to 'redis'")
        names = config.display_names()

        async def run() -> None:
            async with build_services(config) as services:
                seen = 0
                async for message in services.channel.listen():
                    person_id = message.get("person_id", "")
                    until = message.get("expires_at") or "no expiry"
                    console.print(
                        f"  {names.get(person_id, person_id)}: "
                        f"[bold]{message.get('status')}[/bold] (until {until})"
                    )
                    seen += 1
                    if count is not None and seen >= count:
                        break

        asyncio.run(run())
    except (AvailabilityError, FileNotFoundError, ValueError, RedisError) as exc:
        _fail(exc)


@app.command()
def list_members(config_file: ConfigOption = None):
    """
    List all configured members.
    """
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, ValueError) as exc:
        _fail(exc)

    if not config.members:
        console.print("[yellow]No members defined in the config file.[/yellow]")
        return

    table = Table(title="Configured members", show_header=True, header_style="bold cyan")
    table.add_column("Name (Alias)", style="bold yellow")
    table.add_column("Person id", style="dim")
    table.add_column("Calendar id", style="dim")

    for member in config.members:
        table.add_row(member.name, member.person_id, member.calendar_id or "-")

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]groupavail[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
