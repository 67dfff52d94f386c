"""Scan command implementation.

Inventories installed packages, reconciles them into the evidence store
and collects usage evidence.
"""

import logging
from typing import Annotated

import typer

from macsweep.cli.types import SourceChoice, get_settings, open_store
from macsweep.core.errors import ExternalToolError
from macsweep.core.reconciler import RegistryReconciler, ScanReport, scan_sources
from macsweep.core.store import EvidenceStore
from macsweep.core.usage import EvidenceIngestResult, record_evidence
from macsweep.models.scan_result import ScanScope
from macsweep.scanners import SCANNERS, get_scanners
from macsweep.usage import get_readers
from macsweep.utils.formatting import console, print_error, print_info, print_warning

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Scan the system for installed packages and usage evidence.",
    invoke_without_command=True,
)


def _get_scope(source: SourceChoice, quick: bool) -> ScanScope:
    """Map the command options to a scan scope."""
    selected = source.to_source()
    if selected is not None:
        return ScanScope.single(selected)
    if quick:
        return ScanScope.quick()
    return ScanScope.full()


def collect_usage(store: EvidenceStore) -> EvidenceIngestResult:
    """Run every available usage reader against the current registry.

    Args:
        store: Evidence store to read packages from and write events to.

    Returns:
        Combined ingestion counts of all readers.
    """
    packages = store.snapshot()
    inserted = duplicates = unknown = 0
    for reader in get_readers():
        if not reader.is_available():
            logger.info("Skipping %s usage reader: not available", reader.kind.value)
            continue
        result = record_evidence(store, reader.read(packages))
        logger.debug(
            "%s reader: %d new, %d duplicate events",
            reader.kind.value,
            result.inserted,
            result.duplicates,
        )
        inserted += result.inserted
        duplicates += result.duplicates
        unknown += result.unknown
    return EvidenceIngestResult(inserted=inserted, duplicates=duplicates, unknown=unknown)


def resolve_sizes(store: EvidenceStore, refresh: bool = False) -> int:
    """Compute missing package sizes.

    Args:
        store: Evidence store holding the registry.
        refresh: Recompute sizes that are already known.

    Returns:
        Number of packages whose size was stored.
    """
    scanners = {source: scanner_cls() for source, scanner_cls in SCANNERS.items()}
    resolved = 0
    for pkg in store.snapshot():
        if pkg.size_bytes is not None and not refresh:
            continue
        try:
            size = scanners[pkg.source].resolve_size(pkg)
        except ExternalToolError as e:
            logger.warning("Cannot compute size of %s: %s", pkg.key, e)
            continue
        if size is None:
            continue
        store.set_size(pkg.key, size)
        resolved += 1
    return resolved


def _print_report(report: ScanReport) -> None:
    """Print warnings and the reconciliation summary of a scan."""
    for source in report.unavailable:
        print_warning(f"{source.label} is not available.")
    for source, error in report.failures.items():
        print_warning(f"{source.label} scan failed: {error}")
    for source in report.result.skipped_prune:
        print_warning(f"{source.label} is being cleaned up; removed packages were not pruned.")

    result = report.result
    print_info(
        f"Scanned {result.total} packages from {len(report.scanned)} source(s): "
        f"{result.inserted} new, {result.updated} updated, {len(result.pruned)} removed"
    )
    for key in result.pruned:
        console.print(f"  [muted]- {key}[/]")


@app.callback(invoke_without_command=True)
def scan(
    ctx: typer.Context,
    source: Annotated[
        SourceChoice,
        typer.Option(
            "--source",
            "-s",
            help="Package source to scan (default: all).",
            case_sensitive=False,
        ),
    ] = SourceChoice.ALL,
    quick: Annotated[
        bool,
        typer.Option(
            "--quick",
            "-q",
            help="Only refresh the inventory (no usage collection, no pruning).",
        ),
    ] = False,
    sizes: Annotated[
        bool,
        typer.Option(
            "--sizes",
            help="Recompute the installed size of every package.",
        ),
    ] = False,
) -> None:
    """Scan installed packages and collect usage evidence.

    A full scan reconciles every available source, removes packages that
    are no longer installed and reads shell history, Spotlight metadata
    and file access times.

    Examples:
        macsweep scan                     # Full scan
        macsweep scan --quick             # Inventory only
        macsweep scan --source npm        # Scan npm globals only
        macsweep scan --sizes             # Also recompute sizes
    """
    if ctx.invoked_subcommand is not None:
        return

    settings = get_settings()
    scope = _get_scope(source, quick)
    selected = source.to_source()
    scanners = get_scanners([selected] if selected is not None else None)

    if not any(scanner.is_available() for scanner in scanners):
        print_error("No package managers are available on this system.")
        raise typer.Exit(code=1)

    with open_store(settings) as store:
        reconciler = RegistryReconciler(store)
        with console.status("Scanning packages..."):
            report = scan_sources(scanners, reconciler, scope, max_workers=settings.max_concurrency)
        _print_report(report)

        if scope.kind != "quick":
            with console.status("Collecting usage evidence..."):
                usage = collect_usage(store)
            print_info(f"Recorded {usage.inserted} new usage event(s)")

        with console.status("Computing package sizes..."):
            resolved = resolve_sizes(store, refresh=sizes)
        if resolved:
            print_info(f"Computed sizes for {resolved} package(s)")

    if report.failures and not report.scanned:
        raise typer.Exit(code=1)
