"""Registry reconciliation of scanner output.

Merges per-source scan results into the evidence store: new packages are
inserted, known packages only get their mutable fields updated, and a full
scan prunes packages that a successfully scanned source no longer reports.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import UTC, datetime

from macsweep.core.errors import ExternalToolError
from macsweep.core.store import EvidenceStore, UpsertOutcome
from macsweep.models.package import PackageKey, PackageSource, RawPackage
from macsweep.models.scan_result import ScanRun, ScanScope
from macsweep.scanners.base import Scanner

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Counts of one reconciliation pass.

    Attributes:
        inserted: Packages seen for the first time.
        updated: Known packages whose mutable fields changed.
        unchanged: Known packages re-observed without changes.
        pruned: Packages removed because a full scan no longer found them.
        skipped_prune: Sources whose pruning was skipped (leased by a cleanup).
        scan_run: The stored scan run record.
    """

    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    pruned: tuple[PackageKey, ...] = field(default=())
    skipped_prune: tuple[PackageSource, ...] = field(default=())
    scan_run: ScanRun | None = None

    @property
    def total(self) -> int:
        """Number of records reconciled."""
        return self.inserted + self.updated + self.unchanged


@dataclass(frozen=True, slots=True)
class ScanReport:
    """Outcome of scanning several sources and reconciling the results.

    Attributes:
        result: Reconciliation counts.
        scanned: Sources whose scanner finished successfully.
        failures: Error message per failed source.
        unavailable: Sources whose package manager is not installed.
    """

    result: ReconcileResult
    scanned: tuple[PackageSource, ...] = field(default=())
    failures: dict[PackageSource, str] = field(default_factory=lambda: {})
    unavailable: tuple[PackageSource, ...] = field(default=())


class RegistryReconciler:
    """Reconcile scanner records into the evidence store.

    Example:
        >>> reconciler = RegistryReconciler(store)
        >>> result = reconciler.reconcile(records, ScanScope.full(), [PackageSource.NPM])
        >>> result.inserted
        3
    """

    def __init__(
        self,
        store: EvidenceStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            store: Evidence store to write to.
            clock: Source of the current time (defaults to UTC now).
        """
        self._store = store
        self._clock = clock or (lambda: datetime.now(UTC))

    def reconcile(
        self,
        records: Iterable[RawPackage],
        scope: ScanScope,
        scanned_sources: Iterable[PackageSource] = (),
        *,
        started: float | None = None,
    ) -> ReconcileResult:
        """Merge scanner records into the registry and record a scan run.

        Absence from a partial scan never deletes anything. A full scan
        prunes packages of ``scanned_sources`` that were not re-observed,
        except for sources currently leased by a cleanup run.

        Args:
            records: Normalized scanner records.
            scope: Requested scope of the scan.
            scanned_sources: Sources whose scanners completed successfully.
            started: ``time.monotonic()`` value when the scan began.

        Returns:
            ReconcileResult with the counts and the stored scan run.
        """
        started = time.monotonic() if started is None else started
        now = self._clock()

        counts = dict.fromkeys(UpsertOutcome, 0)
        observed: dict[PackageSource, set[str]] = defaultdict(set)
        for record in records:
            counts[self._store.upsert_package(record, now)] += 1
            observed[record.source].add(record.name)

        pruned: list[PackageKey] = []
        skipped: list[PackageSource] = []
        if scope.may_prune:
            leased = self._store.leased_sources(now)
            for source in scanned_sources:
                if source in leased:
                    logger.warning(
                        "Skipping prune of %s: a cleanup run is modifying it",
                        source.value,
                    )
                    skipped.append(source)
                    continue
                pruned.extend(self._store.prune_source(source, observed.get(source, set())))

        if pruned:
            logger.info("Pruned %d packages no longer installed", len(pruned))

        duration_ms = int((time.monotonic() - started) * 1000)
        scan_run = self._store.record_scan(
            scope,
            sum(counts.values()),
            inserted=counts[UpsertOutcome.INSERTED],
            updated=counts[UpsertOutcome.UPDATED],
            pruned=len(pruned),
            duration_ms=duration_ms,
            timestamp=now,
        )

        return ReconcileResult(
            inserted=counts[UpsertOutcome.INSERTED],
            updated=counts[UpsertOutcome.UPDATED],
            unchanged=counts[UpsertOutcome.UNCHANGED],
            pruned=tuple(pruned),
            skipped_prune=tuple(skipped),
            scan_run=scan_run,
        )


def _collect(scanner: Scanner) -> list[RawPackage]:
    return list(scanner.scan())


def scan_sources(
    scanners: Sequence[Scanner],
    reconciler: RegistryReconciler,
    scope: ScanScope,
    *,
    max_workers: int = 4,
) -> ScanReport:
    """Run scanners concurrently and reconcile their combined output.

    A failing scanner is reported and excluded from pruning; the other
    sources are still reconciled.

    Args:
        scanners: Scanners to run (filtered to the scope's source if any).
        reconciler: Reconciler writing to the evidence store.
        scope: Requested scope of the scan.
        max_workers: Maximum concurrent scanners.

    Returns:
        ScanReport with reconciliation counts and per-source failures.
    """
    started = time.monotonic()
    selected = [s for s in scanners if scope.source is None or s.source == scope.source]

    unavailable = tuple(s.source for s in selected if not s.is_available())
    runnable = [s for s in selected if s.source not in unavailable]
    for source in unavailable:
        logger.info("Skipping %s: not available on this system", source.value)

    records: list[RawPackage] = []
    scanned: list[PackageSource] = []
    failures: dict[PackageSource, str] = {}

    if runnable:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {pool.submit(_collect, scanner): scanner.source for scanner in runnable}
            for future in as_completed(futures):
                source = futures[future]
                try:
                    found = future.result()
                except (ExternalToolError, OSError) as e:
                    logger.warning("Scanner %s failed: %s", source.value, e)
                    failures[source] = str(e)
                    continue
                logger.debug("Scanner %s found %d packages", source.value, len(found))
                records.extend(found)
                scanned.append(source)

    result = reconciler.reconcile(records, scope, scanned, started=started)
    return ScanReport(
        result=result,
        scanned=tuple(scanned),
        failures=failures,
        unavailable=unavailable,
    )
