"""Cleanup transaction engine.

A cleanup run moves through these states:

    planned -> (dry-run: report)
            -> attempting -> completed | completed_with_failures
    planned -> aborted (cancelled before any removal)

The backup manifest is durably written (all items pending) before the
first removal, finalized with per-item outcomes afterwards and never
modified again. Undo reads a manifest and restores its removed items
through the same per-source operator table.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

from macsweep.core.backup import BackupStore
from macsweep.core.config import Settings
from macsweep.core.errors import ExternalToolError, InconsistentStateError
from macsweep.core.recommendations import select_at_least
from macsweep.core.store import CleanupRecord, EvidenceStore
from macsweep.models.analysis import Recommendation, Severity
from macsweep.models.backup import (
    BackupItem,
    BackupManifest,
    CleanupStatus,
    ItemOutcome,
    OutcomeStatus,
    PackageSnapshot,
    create_manifest_id,
)
from macsweep.models.package import PackageKey, PackageSource
from macsweep.operators import get_operator
from macsweep.operators.base import TIMEOUT_REASON, Operator

logger = logging.getLogger(__name__)

OperatorFactory = Callable[[PackageSource, float], Operator | None]

CANCELLED_REASON = "cancelled"

# Added to the lease lifetime for manifest and registry writes
LEASE_GRACE = timedelta(minutes=10)


@dataclass(frozen=True, slots=True)
class CleanupPlan:
    """Ordered line items of a cleanup run, all pending."""

    items: tuple[BackupItem, ...] = field(default=())

    def __len__(self) -> int:
        return len(self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def keys(self) -> tuple[PackageKey, ...]:
        return tuple(item.key for item in self.items)

    @property
    def sources(self) -> frozenset[PackageSource]:
        """Sources touched by the plan."""
        return frozenset(item.snapshot.source for item in self.items)

    @property
    def size_bytes(self) -> int:
        """Bytes freed if every removal succeeds."""
        return sum(item.snapshot.size_bytes or 0 for item in self.items)


@dataclass(frozen=True, slots=True)
class CleanupReport:
    """Result of executing (or simulating) a cleanup plan.

    Attributes:
        status: Final state of the run.
        items: Line items with their outcomes.
        dry_run: True if nothing was executed.
        manifest_id: Id of the written backup manifest (None for dry-runs
            and aborted runs).
    """

    status: CleanupStatus
    items: tuple[BackupItem, ...]
    dry_run: bool = False
    manifest_id: str | None = None

    def _with_status(self, status: OutcomeStatus) -> tuple[BackupItem, ...]:
        return tuple(i for i in self.items if i.outcome.status == status)

    @property
    def removed(self) -> tuple[BackupItem, ...]:
        return self._with_status(OutcomeStatus.REMOVED)

    @property
    def failed(self) -> tuple[BackupItem, ...]:
        return self._with_status(OutcomeStatus.FAILED)

    @property
    def skipped(self) -> tuple[BackupItem, ...]:
        return self._with_status(OutcomeStatus.SKIPPED)

    @property
    def space_recovered(self) -> int:
        """Bytes freed by the removed items."""
        return sum(i.snapshot.size_bytes or 0 for i in self.removed)


@dataclass(frozen=True, slots=True)
class UndoReport:
    """Result of restoring a cleanup run.

    Attributes:
        manifest_id: Manifest that was replayed.
        items: Attempted items; REMOVED here means successfully restored.
        warnings: Items that could not be resolved at all.
    """

    manifest_id: str
    items: tuple[BackupItem, ...] = field(default=())
    warnings: tuple[str, ...] = field(default=())

    @property
    def restored(self) -> tuple[BackupItem, ...]:
        return tuple(i for i in self.items if i.outcome.status == OutcomeStatus.REMOVED)

    @property
    def failed(self) -> tuple[BackupItem, ...]:
        return tuple(i for i in self.items if i.outcome.status == OutcomeStatus.FAILED)


def _default_operator(source: PackageSource, timeout: float) -> Operator | None:
    return get_operator(source, timeout=timeout)


class CleanupEngine:
    """Plan, execute and undo cleanup runs.

    Example:
        >>> engine = CleanupEngine(store, BackupStore(tmp_path))
        >>> plan = engine.plan([PackageKey("cowsay", PackageSource.NPM)])
        >>> engine.execute(plan, dry_run=True).status
        <CleanupStatus.PLANNED: 'planned'>
    """

    def __init__(
        self,
        store: EvidenceStore,
        backups: BackupStore,
        *,
        max_concurrency: int = 4,
        timeout: float = 300.0,
        operator_factory: OperatorFactory | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Evidence store holding the registry.
            backups: Backup manifest storage.
            max_concurrency: Maximum concurrent removal/restore commands.
            timeout: Seconds allowed for each external call.
            operator_factory: Operator lookup (defaults to the source table).
            clock: Source of the current time (defaults to UTC now).
        """
        if max_concurrency < 1:
            msg = f"max_concurrency must be at least 1, got {max_concurrency}"
            raise ValueError(msg)
        self._store = store
        self._backups = backups
        self._max_concurrency = max_concurrency
        self._timeout = timeout
        self._operator_factory = operator_factory or _default_operator
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_settings(
        cls,
        store: EvidenceStore,
        settings: Settings,
        backups: BackupStore | None = None,
    ) -> CleanupEngine:
        """Create an engine using the configured limits and backup directory."""
        return cls(
            store,
            backups or BackupStore(settings.effective_backup_dir),
            max_concurrency=settings.max_concurrency,
            timeout=float(settings.command_timeout_seconds),
        )

    # =========================================================================
    # Planning
    # =========================================================================

    def plan(self, keys: Iterable[PackageKey]) -> CleanupPlan:
        """Build a plan with one pending line item per package.

        Duplicate keys are planned once, in first-seen order.

        Raises:
            PackageNotFoundError: If a key is not in the registry.
        """
        items: list[BackupItem] = []
        seen: set[PackageKey] = set()
        for key in keys:
            if key in seen:
                continue
            seen.add(key)
            snapshot = PackageSnapshot.from_package(self._store.require_package(key))
            operator = self._operator_factory(key.source, self._timeout)
            command = operator.removal_command(snapshot) if operator is not None else ()
            items.append(BackupItem(snapshot=snapshot, command=command))
        return CleanupPlan(items=tuple(items))

    def plan_for_severity(
        self,
        recommendations: Iterable[Recommendation],
        minimum: Severity,
    ) -> CleanupPlan:
        """Plan the removal of every candidate at or above ``minimum``."""
        return self.plan(rec.key for rec in select_at_least(recommendations, minimum))

    # =========================================================================
    # Execution
    # =========================================================================

    def execute(
        self,
        plan: CleanupPlan,
        *,
        dry_run: bool = True,
        cancel: threading.Event | None = None,
    ) -> CleanupReport:
        """Execute or simulate a cleanup plan.

        A dry-run returns the plan as a report and has no side effects.

        Args:
            plan: Plan returned by :meth:`plan`.
            dry_run: If True, only report what would be removed.
            cancel: Event that requests cancellation; items not started when
                it is set are skipped.

        Returns:
            CleanupReport with per-item outcomes.

        Raises:
            BackupError: If the manifest cannot be written before removal.
        """
        if dry_run:
            return CleanupReport(status=CleanupStatus.PLANNED, items=plan.items, dry_run=True)

        if cancel is not None and cancel.is_set():
            logger.info("Cleanup cancelled before start")
            outcome = ItemOutcome.skipped(CANCELLED_REASON)
            skipped = tuple(item.with_outcome(outcome) for item in plan.items)
            return CleanupReport(status=CleanupStatus.ABORTED, items=skipped)

        started_at = self._clock()
        manifest = BackupManifest(
            id=create_manifest_id(started_at),
            created_at=started_at,
            status=CleanupStatus.ATTEMPTING,
            items=plan.items,
        )
        # Barrier: no removal may start before this write succeeds
        self._backups.write(manifest)

        self._store.acquire_leases(
            plan.sources, manifest.id, started_at, ttl=self._lease_ttl(len(plan))
        )
        try:
            items = self._attempt_all(plan.items, cancel)

            for item in items:
                if item.outcome.status == OutcomeStatus.REMOVED:
                    self._store.delete_package(item.key)

            failed = any(i.outcome.status == OutcomeStatus.FAILED for i in items)
            status = CleanupStatus.COMPLETED_WITH_FAILURES if failed else CleanupStatus.COMPLETED
            final = replace(manifest, status=status, items=items, finished_at=self._clock())
            self._backups.write(final)

            self._store.record_cleanup(
                CleanupRecord(
                    manifest_id=final.id,
                    timestamp=started_at,
                    status=status.value,
                    packages_removed=len(final.removed),
                    packages_failed=len(final.failed),
                    space_recovered=final.space_recovered,
                )
            )
        finally:
            self._store.release_leases(manifest.id)

        logger.info(
            "Cleanup %s finished: %d removed, %d failed",
            final.id,
            len(final.removed),
            len(final.failed),
        )
        return CleanupReport(status=status, items=items, manifest_id=final.id)

    def _lease_ttl(self, count: int) -> timedelta:
        """Upper bound for a run of ``count`` removals, plus a grace period."""
        rounds = math.ceil(count / self._max_concurrency)
        return timedelta(seconds=self._timeout * rounds) + LEASE_GRACE

    def _attempt_all(
        self,
        items: tuple[BackupItem, ...],
        cancel: threading.Event | None,
    ) -> tuple[BackupItem, ...]:
        """Attempt every removal independently, bounded by max_concurrency."""
        with ThreadPoolExecutor(max_workers=self._max_concurrency) as pool:
            futures = [pool.submit(self._attempt, item, cancel) for item in items]
            pairs = zip(items, futures, strict=True)
            return tuple(item.with_outcome(future.result()) for item, future in pairs)

    def _attempt(self, item: BackupItem, cancel: threading.Event | None) -> ItemOutcome:
        """Remove one package and convert the result into an outcome."""
        if cancel is not None and cancel.is_set():
            return ItemOutcome.skipped(CANCELLED_REASON)

        try:
            operator = self._operator_factory(item.snapshot.source, self._timeout)
            if operator is None:
                return ItemOutcome.failed(f"no operator for {item.snapshot.source.value}")
            result = operator.remove(item.snapshot)
        except ExternalToolError as e:
            return ItemOutcome.failed(str(e))
        except Exception as e:
            logger.exception("Unexpected error removing %s", item.key)
            return ItemOutcome.failed(str(e) or type(e).__name__)

        if result.success:
            return ItemOutcome.removed()
        if result.timed_out:
            return ItemOutcome.failed(TIMEOUT_REASON)
        logger.warning("Failed to remove %s: %s", item.key, result.error)
        return ItemOutcome.failed(result.error or "removal failed")

    # =========================================================================
    # Undo
    # =========================================================================

    def undo(self, manifest_id: str | None = None) -> UndoReport:
        """Restore the packages removed by a cleanup run.

        Removed items, and items an interrupted run left pending, are
        reinstalled through their operator and re-inserted into the registry
        with their snapshot attributes and original ``first_seen``. The
        manifest itself is left untouched, so undo can be retried.

        Args:
            manifest_id: Manifest to replay (defaults to the most recent).

        Returns:
            UndoReport with per-item outcomes and warnings.

        Raises:
            BackupNotFoundError: If the manifest does not exist.
            BackupError: If the manifest cannot be read.
        """
        manifest = self._backups.load(manifest_id) if manifest_id else self._backups.latest()
        candidates = tuple(
            item
            for item in manifest.items
            if item.outcome.status in (OutcomeStatus.REMOVED, OutcomeStatus.PENDING)
        )

        resolved: list[tuple[BackupItem, Operator]] = []
        warnings: list[str] = []
        for item in candidates:
            try:
                resolved.append((item, self._resolve_operator(item)))
            except InconsistentStateError as e:
                logger.warning("%s", e)
                warnings.append(str(e))

        with ThreadPoolExecutor(max_workers=self._max_concurrency) as pool:
            futures = [pool.submit(self._restore, item, operator) for item, operator in resolved]
            outcomes = [f.result() for f in futures]

        restored_at = self._clock()
        items: list[BackupItem] = []
        for (item, _), outcome in zip(resolved, outcomes, strict=True):
            if outcome.status == OutcomeStatus.REMOVED:
                self._store.restore_package(item.snapshot, restored_at)
            items.append(item.with_outcome(outcome))

        logger.info(
            "Undo of %s: %d restored, %d failed",
            manifest.id,
            sum(1 for i in items if i.outcome.status == OutcomeStatus.REMOVED),
            sum(1 for i in items if i.outcome.status == OutcomeStatus.FAILED),
        )
        return UndoReport(manifest_id=manifest.id, items=tuple(items), warnings=tuple(warnings))

    def _resolve_operator(self, item: BackupItem) -> Operator:
        operator = self._operator_factory(item.snapshot.source, self._timeout)
        if operator is None:
            msg = f"Cannot restore {item.key}: no operator for source {item.snapshot.source.value}"
            raise InconsistentStateError(msg)
        return operator

    def _restore(self, item: BackupItem, operator: Operator) -> ItemOutcome:
        try:
            result = operator.restore(item.snapshot)
        except ExternalToolError as e:
            return ItemOutcome.failed(str(e))
        except Exception as e:
            logger.exception("Unexpected error restoring %s", item.key)
            return ItemOutcome.failed(str(e) or type(e).__name__)
        if result.success:
            return ItemOutcome.removed()
        if result.timed_out:
            return ItemOutcome.failed(TIMEOUT_REASON)
        logger.warning("Failed to restore %s: %s", item.key, result.error)
        return ItemOutcome.failed(result.error or "restore failed")
