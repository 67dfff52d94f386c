"""Clean command implementation.

Removes recommended or explicitly named packages. Every applied run
writes a backup manifest first, so it can be reverted with
`macsweep undo`.
"""

import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from types import FrameType
from typing import Annotated

import typer

from macsweep.cli.display import (
    create_outcome_table,
    create_plan_table,
    print_cleanup_summary,
)
from macsweep.cli.types import SourceChoice, get_settings, open_store, resolve_package
from macsweep.core.cleanup import CleanupEngine
from macsweep.core.errors import BackupError, PackageNotFoundError
from macsweep.core.recommendations import RecommendationEngine, select_at_least
from macsweep.models.analysis import Severity
from macsweep.models.backup import CleanupStatus
from macsweep.models.package import PackageKey
from macsweep.utils.formatting import console, print_error, print_info, print_success
from macsweep.utils.size import format_size

app = typer.Typer(
    help="Remove unused packages (reversible with undo).",
    invoke_without_command=True,
)


@contextmanager
def _cancel_on_interrupt(cancel: threading.Event) -> Iterator[None]:
    """Turn Ctrl+C into a cancellation request for pending removals.

    Removals already running finish; the rest are skipped.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum: int, frame: FrameType | None) -> None:
        console.print("\n[warning]Cancelling: waiting for running removals to finish...[/]")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


@app.callback(invoke_without_command=True)
def clean(
    ctx: typer.Context,
    severity: Annotated[
        Severity | None,
        typer.Option(
            "--severity",
            "-S",
            help="Remove every candidate at or above this tier: safe, review or warning.",
            case_sensitive=False,
        ),
    ] = None,
    packages: Annotated[
        list[str] | None,
        typer.Option(
            "--package",
            "-p",
            help="Package to remove (repeatable).",
        ),
    ] = None,
    source: Annotated[
        SourceChoice,
        typer.Option(
            "--source",
            "-s",
            help="Source of the --package names when ambiguous.",
            case_sensitive=False,
        ),
    ] = SourceChoice.ALL,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Show what would be removed without executing.",
        ),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option(
            "--yes",
            "-y",
            help="Skip confirmation prompt.",
        ),
    ] = False,
) -> None:
    """Remove packages and record a backup for undo.

    Examples:
        macsweep clean --severity safe --dry-run   # Preview orphan removal
        macsweep clean --severity review           # Remove safe + review tiers
        macsweep clean -p cowsay -p fortune -y     # Remove named packages
    """
    if ctx.invoked_subcommand is not None:
        return

    if severity is None and not packages:
        print_error("Nothing selected. Use --severity and/or --package.")
        raise typer.Exit(code=1)
    if severity == Severity.NONE:
        print_error("Severity 'none' selects packages that are not candidates.")
        raise typer.Exit(code=1)

    settings = get_settings()

    with open_store(settings) as store:
        keys: list[PackageKey] = [
            resolve_package(store, name, source).key for name in packages or []
        ]
        if severity is not None:
            recommender = RecommendationEngine.from_settings(settings)
            recommendations = recommender.evaluate(store, date.today())
            keys.extend(rec.key for rec in select_at_least(recommendations, severity))

        engine = CleanupEngine.from_settings(store, settings)
        try:
            plan = engine.plan(keys)
        except PackageNotFoundError as e:
            print_error(str(e))
            raise typer.Exit(code=1) from e

        if plan.is_empty:
            print_success("Nothing to clean up.")
            return

        console.print(create_plan_table(plan, dry_run=dry_run))
        recoverable = format_size(plan.size_bytes)
        console.print(f"\n[dim]{len(plan)} package(s), {recoverable} recoverable[/dim]")

        if dry_run:
            engine.execute(plan, dry_run=True)
            print_info(r"\[dry-run] No changes made.")
            return

        if not yes:
            confirmed = typer.confirm(f"\nRemove {len(plan)} package(s)?")
            if not confirmed:
                print_info("Cancelled.")
                return

        cancel = threading.Event()
        try:
            with _cancel_on_interrupt(cancel):
                report = engine.execute(plan, dry_run=False, cancel=cancel)
        except BackupError as e:
            print_error(f"Cleanup aborted, nothing was removed: {e}")
            raise typer.Exit(code=1) from e

    if report.status == CleanupStatus.ABORTED:
        print_info("Cancelled before any removal.")
        return

    console.print()
    console.print(create_outcome_table(report.items))
    print_cleanup_summary(report)

    if report.failed:
        raise typer.Exit(code=1)
