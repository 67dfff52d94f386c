"""Undo command for reverting a cleanup run.

This module provides the `macsweep undo` command, which reinstalls the
packages removed by a cleanup run from its backup manifest.
"""

from typing import Annotated

import typer

from macsweep.cli.display import create_backups_table, create_outcome_table, print_undo_summary
from macsweep.cli.types import get_settings, open_store
from macsweep.core.backup import BackupStore
from macsweep.core.cleanup import CleanupEngine
from macsweep.core.errors import BackupError
from macsweep.models.backup import BackupItem, BackupManifest, OutcomeStatus
from macsweep.utils.formatting import console, print_error, print_info

_RESTORABLE = (OutcomeStatus.REMOVED, OutcomeStatus.PENDING)


def undo(
    backup_id: Annotated[
        str | None,
        typer.Argument(help="Backup to restore (default: the most recent)."),
    ] = None,
    list_backups: Annotated[
        bool,
        typer.Option(
            "--list",
            "-l",
            help="List available backups and exit.",
        ),
    ] = False,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Show what would be restored without executing.",
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
    """Restore the packages removed by a cleanup run.

    Packages are reinstalled at their recorded version (applications are
    moved back from the Trash) and re-registered with their original
    first-seen date.

    Examples:
        macsweep undo                               # Undo the last cleanup
        macsweep undo --list                        # Show backups
        macsweep undo cleanup_20250101_120000_000000
        macsweep undo --dry-run                     # Preview only
    """
    settings = get_settings()
    backups = BackupStore(settings.effective_backup_dir)

    if list_backups:
        manifests = backups.list_manifests()
        if not manifests:
            print_info("No backups found.")
            return
        console.print(create_backups_table(manifests))
        return

    try:
        manifest = backups.load(backup_id) if backup_id else backups.latest()
    except BackupError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    items = [item for item in manifest.items if item.outcome.status in _RESTORABLE]
    if not items:
        print_info(f"Nothing to restore in {manifest.id}.")
        return

    _show_undo_preview(manifest, items)

    if dry_run:
        print_info(r"\[dry-run] No changes made.")
        return

    if not yes:
        confirm = typer.confirm(f"Restore {len(items)} package(s)?")
        if not confirm:
            print_info("Cancelled.")
            return

    with open_store(settings) as store:
        engine = CleanupEngine.from_settings(store, settings, backups)
        try:
            report = engine.undo(manifest.id)
        except BackupError as e:
            print_error(str(e))
            raise typer.Exit(code=1) from e

    console.print(create_outcome_table(report.items, title="Restored"))
    print_undo_summary(report)

    if report.failed or report.warnings:
        raise typer.Exit(code=1)


def _show_undo_preview(manifest: BackupManifest, items: list[BackupItem]) -> None:
    """Display the cleanup run and the packages that will be restored.

    Args:
        manifest: The backup manifest to replay.
        items: Items of the manifest that will be restored.
    """
    console.print(f"\n[bold]Undo: {manifest.id}[/bold]")
    console.print(f"  Date: {manifest.created_at.astimezone():%Y-%m-%d %H:%M}")
    console.print(f"  Status: {manifest.status.value}")
    console.print(f"  Packages ({len(items)}):")
    for item in items[:10]:
        version = f" {item.snapshot.version}" if item.snapshot.version else ""
        console.print(f"    - {item.snapshot.name}{version} ({item.snapshot.source.value})")
    if len(items) > 10:
        console.print(f"    ... and {len(items) - 10} more")
    console.print()
