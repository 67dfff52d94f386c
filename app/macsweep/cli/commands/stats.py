"""Stats command implementation.

Summarizes the registry per source, the cleanup potential per tier and
the recent scan and cleanup runs.
"""

import json
from collections import Counter
from datetime import date
from typing import Annotated, Any

import typer
from rich.table import Table

from macsweep.cli.display import create_summary_table
from macsweep.cli.types import get_settings, open_store
from macsweep.core.recommendations import RecommendationEngine
from macsweep.core.store import CleanupRecord
from macsweep.models.analysis import Recommendation
from macsweep.models.package import PackageSource
from macsweep.models.scan_result import ScanRun
from macsweep.utils.formatting import console, print_info
from macsweep.utils.size import format_size

app = typer.Typer(
    help="Show registry statistics.",
    invoke_without_command=True,
)


def _source_table(recommendations: list[Recommendation]) -> Table:
    """Build the per-source package count and size table."""
    counts: Counter[PackageSource] = Counter()
    sizes: Counter[PackageSource] = Counter()
    evidenced: Counter[PackageSource] = Counter()
    for rec in recommendations:
        source = rec.package.source
        counts[source] += 1
        sizes[source] += rec.size_recoverable
        if rec.usage.has_evidence:
            evidenced[source] += 1

    table = Table(
        title="Packages by Source",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Source")
    table.add_column("Packages", justify="right")
    table.add_column("With Usage", justify="right", style="muted")
    table.add_column("Size", justify="right", style="info")

    for source in PackageSource:
        if counts[source]:
            table.add_row(
                source.label,
                str(counts[source]),
                str(evidenced[source]),
                format_size(sizes[source]),
            )
    table.add_row(
        "[bold]Total[/bold]",
        f"[bold]{sum(counts.values())}[/bold]",
        str(sum(evidenced.values())),
        f"[bold]{format_size(sum(sizes.values()))}[/bold]",
    )
    return table


def _runs_table(scans: list[ScanRun], cleanups: list[CleanupRecord]) -> Table:
    """Build the table of recent scan and cleanup runs."""
    table = Table(
        title="Recent Runs",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Date", style="muted")
    table.add_column("Run")
    table.add_column("Result")

    rows: list[tuple[str, str, str]] = []
    for scan in scans:
        rows.append(
            (
                scan.timestamp.astimezone().strftime("%Y-%m-%d %H:%M"),
                f"scan ({scan.scope})",
                f"{scan.packages_found} found, {scan.inserted} new, {scan.pruned} pruned",
            )
        )
    for cleanup in cleanups:
        rows.append(
            (
                cleanup.timestamp.astimezone().strftime("%Y-%m-%d %H:%M"),
                f"cleanup ({cleanup.status})",
                f"{cleanup.packages_removed} removed, {cleanup.packages_failed} failed, "
                f"{format_size(cleanup.space_recovered)} freed",
            )
        )
    for row in sorted(rows, reverse=True):
        table.add_row(*row)
    return table


@app.callback(invoke_without_command=True)
def stats(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show registry statistics and cleanup potential.

    Examples:
        macsweep stats
        macsweep stats --json
    """
    if ctx.invoked_subcommand is not None:
        return

    settings = get_settings()
    engine = RecommendationEngine.from_settings(settings)

    with open_store(settings) as store:
        recommendations = engine.evaluate(store, date.today())
        scans = store.scan_runs(limit=5)
        cleanups = store.cleanups()[:5]

    summary = engine.summarize(recommendations)

    if json_output:
        by_source: dict[str, Any] = {}
        for rec in recommendations:
            entry = by_source.setdefault(rec.package.source.value, {"count": 0, "size_bytes": 0})
            entry["count"] += 1
            entry["size_bytes"] += rec.size_recoverable
        data = {
            "packages": len(recommendations),
            "by_source": by_source,
            "cleanup_potential": summary.to_dict(),
            "last_scan": scans[0].to_dict() if scans else None,
        }
        console.print_json(json.dumps(data))
        return

    if not recommendations:
        print_info("The registry is empty. Run 'macsweep scan' first.")
        return

    console.print(_source_table(recommendations))
    console.print()
    console.print(create_summary_table(summary))
    if scans or cleanups:
        console.print()
        console.print(_runs_table(scans, cleanups))
