"""History command for viewing the usage evidence of a package.

This module provides the `macsweep history` command, which lists the
stored usage events of one package, newest first.
"""

import json
from datetime import date
from typing import Annotated

import typer
from rich.table import Table

from macsweep.cli.types import SourceChoice, get_settings, open_store, resolve_package
from macsweep.models.usage import UsageEvent
from macsweep.utils.formatting import console, print_error, print_info


def history(
    name: Annotated[str, typer.Argument(help="Package name.")],
    source: Annotated[
        SourceChoice,
        typer.Option(
            "--source",
            "-s",
            help="Source of the package when the name is ambiguous.",
            case_sensitive=False,
        ),
    ] = SourceChoice.ALL,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            help="Maximum number of events to show.",
            min=1,
        ),
    ] = 20,
    since: Annotated[
        str | None,
        typer.Option(
            "--since",
            help="Show events since date (YYYY-MM-DD).",
        ),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show the usage history of a package.

    Each row is one usage signal observed on one day.

    Examples:
        macsweep history ripgrep            # Last 20 events
        macsweep history jq -n 50           # Last 50 events
        macsweep history node --since 2025-01-01
        macsweep history node --json        # JSON output for scripting
    """
    since_date: date | None = None
    if since:
        try:
            since_date = date.fromisoformat(since)
        except ValueError as e:
            print_error(f"Invalid date format: {since}")
            raise typer.Exit(code=1) from e

    settings = get_settings()
    with open_store(settings) as store:
        pkg = resolve_package(store, name, source)
        events = store.usage_events(pkg.key)

    if since_date is not None:
        events = [e for e in events if e.event_date >= since_date]
    events = events[:limit]

    if json_output:
        _print_json(events)
        return

    if not events:
        print_info(f"No usage evidence recorded for {pkg.key}.")
        return

    _print_table(str(pkg.key), events)


def _print_json(events: list[UsageEvent]) -> None:
    """Print events as JSON."""
    data = [
        {
            "name": e.key.name,
            "source": e.key.source.value,
            "kind": e.kind.value,
            "date": e.event_date.isoformat(),
            "detail": e.detail,
        }
        for e in events
    ]
    console.print_json(json.dumps(data))


def _format_detail(event: UsageEvent) -> str:
    """Render the signal-specific payload as ``key=value`` pairs."""
    if not event.detail:
        return ""
    return ", ".join(f"{key}={value}" for key, value in sorted(event.detail.items()))


def _print_table(title: str, events: list[UsageEvent]) -> None:
    """Print events as a Rich table."""
    table = Table(
        title=f"Usage History: {title}",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Date", style="info", width=10)
    table.add_column("Signal", width=14)
    table.add_column("Detail", style="muted")

    for event in events:
        table.add_row(event.event_date.isoformat(), event.kind.value, _format_detail(event))

    console.print(table)
