"""Recommend command implementation.

Classifies every registered package into a removal tier and shows the
candidates, strongest tier first.
"""

import json
from datetime import date
from typing import Annotated

import typer

from macsweep.cli.display import create_summary_table
from macsweep.cli.types import SourceChoice, get_settings, open_store
from macsweep.core.recommendations import RecommendationEngine, select_at_least
from macsweep.models.analysis import Severity
from macsweep.utils.formatting import (
    console,
    create_recommendation_table,
    format_recommendation_row,
    print_success,
)

app = typer.Typer(
    help="Recommend packages for removal.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def recommend(
    ctx: typer.Context,
    severity: Annotated[
        Severity,
        typer.Option(
            "--severity",
            "-S",
            help="Minimum tier to show: safe, review or warning.",
            case_sensitive=False,
        ),
    ] = Severity.WARNING,
    source: Annotated[
        SourceChoice,
        typer.Option(
            "--source",
            "-s",
            help="Only show packages from this source.",
            case_sensitive=False,
        ),
    ] = SourceChoice.ALL,
    limit: Annotated[
        int | None,
        typer.Option(
            "--limit",
            "-n",
            help="Limit number of recommendations to display.",
            min=1,
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
    """Show removal candidates.

    Tiers, strongest first:
      safe     orphaned dependency, nothing needs it
      review   no usage evidence, or unused beyond the review threshold
      warning  unused beyond the warning threshold

    Examples:
        macsweep recommend                  # All candidates
        macsweep recommend --severity safe  # Orphans only
        macsweep recommend --json
    """
    if ctx.invoked_subcommand is not None:
        return

    settings = get_settings()
    today = date.today()
    engine = RecommendationEngine.from_settings(settings)

    with open_store(settings) as store:
        recommendations = engine.evaluate(store, today)

    selected_source = source.to_source()
    if selected_source is not None:
        recommendations = [r for r in recommendations if r.package.source == selected_source]

    candidates = select_at_least(recommendations, severity)
    summary = engine.summarize(candidates)
    shown = candidates[:limit] if limit else candidates

    if json_output:
        data = {
            "recommendations": [rec.to_dict() for rec in shown],
            "summary": summary.to_dict(),
            "thresholds": {"warning_days": engine.warning_days, "review_days": engine.review_days},
        }
        console.print_json(json.dumps(data))
        return

    if not candidates:
        print_success("Nothing to clean up.")
        return

    table = create_recommendation_table()
    for rec in shown:
        table.add_row(*format_recommendation_row(rec, today))
    console.print(table)

    if limit and len(shown) < len(candidates):
        console.print(f"[dim](showing {len(shown)} of {len(candidates)}, limited to {limit})[/dim]")

    console.print()
    console.print(create_summary_table(summary))
    console.print("\n[dim]Remove with: macsweep clean --severity <tier>[/dim]")
