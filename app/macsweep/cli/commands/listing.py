"""List command implementation.

Shows the packages of the registry with their last-used estimate.
"""

import csv
import io
import json
from datetime import date
from enum import Enum
from typing import Annotated, Any

import typer

from macsweep.cli.types import OutputFormat, SourceChoice, get_settings, open_store
from macsweep.core.dependencies import analyze_dependencies
from macsweep.core.usage import aggregate_usage
from macsweep.models.package import Package
from macsweep.models.usage import UsageProfile
from macsweep.utils.formatting import (
    console,
    create_package_table,
    format_package_row,
    print_info,
)
from macsweep.utils.size import format_size

app = typer.Typer(
    help="List registered packages.",
    invoke_without_command=True,
)

_CSV_FIELDS = ("name", "source", "version", "size_bytes", "last_used", "first_seen", "install_path")


class SortField(str, Enum):
    """Sort options for the package list."""

    NAME = "name"
    SIZE = "size"
    LAST_USED = "last-used"
    SOURCE = "source"


def _sort_rows(rows: list[tuple[Package, UsageProfile]], sort: SortField) -> None:
    """Sort rows in place."""
    if sort == SortField.SIZE:
        rows.sort(key=lambda r: (-(r[0].size_bytes or 0), r[0].name.lower()))
    elif sort == SortField.LAST_USED:
        # Never used first, then oldest usage first
        rows.sort(key=lambda r: (r[1].last_used or date.min, r[0].name.lower()))
    elif sort == SortField.SOURCE:
        rows.sort(key=lambda r: (r[0].source.value, r[0].name.lower()))
    else:
        rows.sort(key=lambda r: (r[0].name.lower(), r[0].source.value))


def _unused_for(profile: UsageProfile, today: date, days: int) -> bool:
    """Check if a package is unused for at least ``days`` (or has no evidence)."""
    elapsed = profile.days_since_used(today)
    return elapsed is None or elapsed >= days


def _row_dict(pkg: Package, profile: UsageProfile) -> dict[str, Any]:
    return {
        **pkg.to_dict(),
        "last_used": profile.last_used.isoformat() if profile.last_used else None,
        "last_used_signal": profile.signal.value if profile.signal else None,
    }


def _print_csv(rows: list[tuple[Package, UsageProfile]]) -> None:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=_CSV_FIELDS, extrasaction="ignore")
    writer.writeheader()
    for pkg, profile in rows:
        writer.writerow(_row_dict(pkg, profile))
    typer.echo(buffer.getvalue(), nl=False)


@app.callback(invoke_without_command=True)
def list_packages(
    ctx: typer.Context,
    source: Annotated[
        SourceChoice,
        typer.Option(
            "--source",
            "-s",
            help="Only list packages from this source.",
            case_sensitive=False,
        ),
    ] = SourceChoice.ALL,
    unused: Annotated[
        int | None,
        typer.Option(
            "--unused",
            "-u",
            help="Only list packages unused for at least N days (or never used).",
            min=0,
        ),
    ] = None,
    orphaned: Annotated[
        bool,
        typer.Option(
            "--orphaned",
            "-o",
            help="Only list orphaned dependencies.",
        ),
    ] = False,
    sort: Annotated[
        SortField,
        typer.Option(
            "--sort",
            help="Sort by name, size, last-used or source.",
            case_sensitive=False,
        ),
    ] = SortField.NAME,
    limit: Annotated[
        int | None,
        typer.Option(
            "--limit",
            "-n",
            help="Limit number of packages to display.",
            min=1,
        ),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format: table, json or csv.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
) -> None:
    """List packages in the registry.

    Examples:
        macsweep list                       # All packages
        macsweep list --source homebrew     # Homebrew formulae only
        macsweep list --unused 90           # Unused for 90+ days
        macsweep list --orphaned            # Orphaned dependencies
        macsweep list --sort size -n 20     # 20 largest packages
        macsweep list --format csv          # CSV for spreadsheets
    """
    if ctx.invoked_subcommand is not None:
        return

    settings = get_settings()
    today = date.today()

    with open_store(settings) as store:
        packages = store.snapshot(source.to_source())
        reports = analyze_dependencies(store.snapshot()) if orphaned else {}
        rows = [(pkg, aggregate_usage(store, pkg.key)) for pkg in packages]

    if orphaned:
        rows = [r for r in rows if reports[r[0].key].is_orphan]
    if unused is not None:
        rows = [r for r in rows if _unused_for(r[1], today, unused)]

    _sort_rows(rows, sort)
    total = len(rows)
    if limit:
        rows = rows[:limit]

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps([_row_dict(pkg, profile) for pkg, profile in rows]))
        return
    if output_format == OutputFormat.CSV:
        _print_csv(rows)
        return

    if not rows:
        print_info("No packages match. Run 'macsweep scan' to refresh the registry.")
        return

    table = create_package_table("Orphaned Dependencies" if orphaned else "Installed Packages")
    for pkg, profile in rows:
        table.add_row(*format_package_row(pkg, profile.last_used, today))
    console.print(table)

    total_size = sum(pkg.size_bytes or 0 for pkg, _ in rows)
    summary = f"Showing {len(rows)} of {total} packages"
    if limit and len(rows) < total:
        summary += f" (limited to {limit})"
    console.print(f"\n[dim]{summary}, {format_size(total_size)} total[/dim]")
