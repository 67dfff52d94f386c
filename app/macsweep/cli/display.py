"""Shared Rich display functions for cleanup runs and summaries.

Provides reusable table builders and summary printers for displaying
cleanup plans, cleanup results and undo results across CLI commands
(recommend, stats, clean, undo).
"""

from collections.abc import Sequence

from rich.table import Table

from macsweep.core.cleanup import CleanupPlan, CleanupReport, UndoReport
from macsweep.models.analysis import RecommendationSummary
from macsweep.models.backup import BackupItem, BackupManifest, OutcomeStatus
from macsweep.utils.formatting import console, format_severity, print_success
from macsweep.utils.size import format_size

_OUTCOME_MARKUP: dict[OutcomeStatus, str] = {
    OutcomeStatus.PENDING: "[muted]PENDING[/muted]",
    OutcomeStatus.REMOVED: "[success]OK[/success]",
    OutcomeStatus.FAILED: "[error]FAIL[/error]",
    OutcomeStatus.SKIPPED: "[warning]SKIP[/warning]",
}


def create_plan_table(plan: CleanupPlan, dry_run: bool = False) -> Table:
    """Create a Rich table displaying the packages of a cleanup plan.

    Args:
        plan: Plan to display.
        dry_run: Whether this is a dry-run (changes table title).

    Returns:
        Rich Table configured for plan display.
    """
    title = "Planned Removals (Dry Run)" if dry_run else "Planned Removals"

    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Source", width=14)
    table.add_column("Package", no_wrap=True)
    table.add_column("Version", style="muted")
    table.add_column("Size", style="info", justify="right")
    table.add_column("Command", style="muted")

    for item in plan.items:
        snapshot = item.snapshot
        table.add_row(
            snapshot.source.value,
            f"[warning]{snapshot.name}[/warning]",
            snapshot.version or "-",
            format_size(snapshot.size_bytes) if snapshot.size_bytes is not None else "unknown",
            " ".join(item.command) if item.command else "-",
        )

    return table


def create_outcome_table(items: Sequence[BackupItem], title: str = "Results") -> Table:
    """Create a Rich table displaying per-item outcomes.

    Successful items show "OK"; failed and skipped items show the reason.

    Args:
        items: Line items with their outcomes.
        title: Table title.

    Returns:
        Rich Table configured for results display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Status", width=8, justify="center")
    table.add_column("Source", width=14)
    table.add_column("Package", no_wrap=True)
    table.add_column("Message")

    for item in items:
        table.add_row(
            _OUTCOME_MARKUP[item.outcome.status],
            item.snapshot.source.value,
            item.snapshot.name,
            f"[muted]{item.outcome.reason or ''}[/muted]",
        )

    return table


def create_summary_table(summary: RecommendationSummary) -> Table:
    """Create a Rich table with candidate counts and sizes per tier."""
    table = Table(
        title="Cleanup Potential",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("Tier", width=8, justify="center")
    table.add_column("Packages", justify="right")
    table.add_column("Recoverable", style="info", justify="right")

    for severity, tier in summary.tiers.items():
        table.add_row(format_severity(severity), str(tier.count), format_size(tier.size_bytes))
    table.add_row(
        "[bold]Total[/bold]",
        f"[bold]{summary.total.count}[/bold]",
        f"[bold]{format_size(summary.total.size_bytes)}[/bold]",
    )
    return table


def create_backups_table(manifests: Sequence[BackupManifest]) -> Table:
    """Create a Rich table listing backup manifests (newest first)."""
    table = Table(
        title="Backups",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("ID", style="info", no_wrap=True)
    table.add_column("Date", style="muted")
    table.add_column("Status")
    table.add_column("Removed", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Freed", justify="right")

    for manifest in manifests:
        table.add_row(
            manifest.id,
            manifest.created_at.strftime("%Y-%m-%d %H:%M"),
            manifest.status.value,
            str(len(manifest.removed)),
            str(len(manifest.failed)),
            format_size(manifest.space_recovered),
        )
    return table


def print_cleanup_summary(report: CleanupReport) -> None:
    """Print a summary of a cleanup run.

    Shows a success message when every removal succeeded, or a count of
    removed/failed/skipped items otherwise.

    Args:
        report: Report returned by the cleanup engine.
    """
    removed = len(report.removed)
    failed = len(report.failed)
    skipped = len(report.skipped)
    freed = format_size(report.space_recovered)

    if failed == 0 and skipped == 0:
        print_success(f"Removed {removed} package(s), {freed} recovered.")
    else:
        console.print(
            f"\n[success]{removed} removed[/success], [error]{failed} failed[/error], "
            f"[warning]{skipped} skipped[/warning] ({freed} recovered)"
        )

    if report.manifest_id:
        console.print(f"[dim]Backup: {report.manifest_id} (undo with: macsweep undo)[/dim]")


def print_undo_summary(report: UndoReport) -> None:
    """Print a summary of an undo run, including unresolved items."""
    for warning in report.warnings:
        console.print(f"[warning]Warning:[/warning] {warning}")

    restored = len(report.restored)
    failed = len(report.failed)
    if failed == 0 and not report.warnings:
        print_success(f"Restored {restored} package(s) from {report.manifest_id}.")
    else:
        console.print(
            f"\n[success]{restored} restored[/success], [error]{failed} failed[/error], "
            f"[warning]{len(report.warnings)} unresolved[/warning]"
        )
