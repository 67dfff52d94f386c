"""Info command implementation.

Shows everything known about one package: registry metadata, usage
estimate, dependency classification and recommendation.
"""

import json
from datetime import date
from typing import Annotated

import typer
from rich.table import Table

from macsweep.cli.types import SourceChoice, get_settings, open_store, resolve_package
from macsweep.core.dependencies import analyze_dependencies
from macsweep.core.recommendations import RecommendationEngine
from macsweep.core.usage import aggregate_usage
from macsweep.models.analysis import Recommendation
from macsweep.utils.formatting import console, format_package_name, format_severity
from macsweep.utils.size import format_days_ago


def _build_table(rec: Recommendation, today: date) -> Table:
    """Build a two-column key/value table for a recommendation."""
    pkg = rec.package
    table = Table(show_header=False, border_style="border", title=pkg.name)
    table.add_column("Field", style="bold_header")
    table.add_column("Value")

    table.add_row("Package", format_package_name(pkg))
    table.add_row("Source", pkg.source.label)
    table.add_row("Version", pkg.version or "-")
    table.add_row("Size", pkg.size_human)
    table.add_row("Path", pkg.install_path or "-")
    if pkg.install_date:
        table.add_row("Installed", pkg.install_date.strftime("%Y-%m-%d"))
    table.add_row("First seen", pkg.first_seen.strftime("%Y-%m-%d %H:%M"))
    table.add_row("Last seen", pkg.last_seen.strftime("%Y-%m-%d %H:%M"))

    if pkg.is_dependency is None:
        installed_as = "-"
    else:
        installed_as = "dependency" if pkg.is_dependency else "requested"
    table.add_row("Installed as", installed_as)
    table.add_row("Dependency class", rec.dependency.classification.value)
    if pkg.dependencies:
        table.add_row("Depends on", ", ".join(pkg.dependencies))
    if rec.dependency.dependents:
        table.add_row("Required by", ", ".join(key.name for key in rec.dependency.dependents))
    if rec.dependency.missing:
        table.add_row("Missing", f"[error]{', '.join(rec.dependency.missing)}[/error]")

    usage = rec.usage
    last_used = format_days_ago(usage.last_used, today)
    if usage.last_used is not None and usage.signal is not None:
        last_used += f" [muted]({usage.last_used.isoformat()}, {usage.signal.value})[/muted]"
    table.add_row("Last used", last_used)
    for kind, day in sorted(usage.signal_dates.items(), key=lambda item: item[0].value):
        table.add_row(f"  {kind.value}", f"[muted]{day.isoformat()}[/muted]")

    table.add_row("Recommendation", f"{format_severity(rec.severity)} [muted]{rec.reason}[/muted]")
    return table


def info(
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
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show details of a package.

    Examples:
        macsweep info ripgrep
        macsweep info requests --source pip
        macsweep info node --json
    """
    settings = get_settings()
    today = date.today()

    with open_store(settings) as store:
        pkg = resolve_package(store, name, source)
        usage = aggregate_usage(store, pkg.key)
        reports = analyze_dependencies(store.snapshot())

    engine = RecommendationEngine.from_settings(settings)
    rec = engine.classify(pkg, usage, reports[pkg.key], today)

    if json_output:
        console.print_json(json.dumps(rec.to_dict()))
        return

    console.print(_build_table(rec, today))

