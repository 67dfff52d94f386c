"""Unit tests for the cleanup transaction engine."""

import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from macsweep.core.backup import BackupStore
from macsweep.core.cleanup import CleanupEngine
from macsweep.core.errors import BackupError, PackageNotFoundError
from macsweep.core.recommendations import RecommendationEngine
from macsweep.core.store import EvidenceStore
from macsweep.models.action import Action, ActionResult, ActionType
from macsweep.models.analysis import Severity
from macsweep.models.backup import CleanupStatus, OutcomeStatus, PackageSnapshot
from macsweep.models.package import PackageKey, PackageSource, RawPackage
from macsweep.operators.base import Operator

FIRST_SEEN = datetime(2024, 3, 1, tzinfo=UTC)
COWSAY = PackageKey("cowsay", PackageSource.NPM)
TYPESCRIPT = PackageKey("typescript", PackageSource.NPM)
JQ = PackageKey("jq", PackageSource.HOMEBREW)


class FakeOperator(Operator):
    """Operator recording calls instead of running package managers."""

    def __init__(
        self,
        source: PackageSource,
        *,
        fail: set[str] | None = None,
        timeout_on: set[str] | None = None,
        on_remove: threading.Event | None = None,
        crash_on: set[str] | None = None,
    ) -> None:
        super().__init__(timeout=30)
        self._source = source
        self._crash_on = crash_on or set()
        self._fail = fail or set()
        self._timeout_on = timeout_on or set()
        self._on_remove = on_remove
        self.removed: list[str] = []
        self.restored: list[PackageSnapshot] = []

    @property
    def source(self) -> PackageSource:
        return self._source

    def is_available(self) -> bool:
        return True

    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("fake", "remove", snapshot.name)

    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("fake", "install", snapshot.name)

    def remove(self, snapshot: PackageSnapshot) -> ActionResult:
        action = self.removal_action(snapshot)
        if self._on_remove is not None:
            self._on_remove.set()
        if snapshot.name in self._crash_on:
            msg = "disk on fire"
            raise RuntimeError(msg)
        if snapshot.name in self._timeout_on:
            return ActionResult(action=action, success=False, error="timeout", timed_out=True)
        if snapshot.name in self._fail:
            return ActionResult(action=action, success=False, error="permission denied")
        self.removed.append(snapshot.name)
        return ActionResult(action=action, success=True)

    def restore(self, snapshot: PackageSnapshot) -> ActionResult:
        if snapshot.name in self._crash_on:
            msg = "disk on fire"
            raise RuntimeError(msg)
        action = Action(ActionType.RESTORE, snapshot.name, snapshot.source)
        self.restored.append(snapshot)
        return ActionResult(action=action, success=True)


class LeaseWatchingOperator(FakeOperator):
    """Operator recording which sources are leased at a later time."""

    def __init__(self, store: EvidenceStore, at: datetime) -> None:
        super().__init__(PackageSource.NPM)
        self._store = store
        self._at = at
        self.leased: list[set[PackageSource]] = []

    def remove(self, snapshot: PackageSnapshot) -> ActionResult:
        self.leased.append(self._store.leased_sources(self._at))
        return super().remove(snapshot)


@pytest.fixture
def populated(store: EvidenceStore) -> EvidenceStore:
    """Store holding two npm packages and one formula."""
    store.upsert_package(
        RawPackage("cowsay", PackageSource.NPM, version="1.6.0", size_bytes=2048), FIRST_SEEN
    )
    store.upsert_package(
        RawPackage("typescript", PackageSource.NPM, version="5.4.5", size_bytes=40_000), FIRST_SEEN
    )
    store.upsert_package(
        RawPackage("jq", PackageSource.HOMEBREW, version="1.7.1", size_bytes=1000), FIRST_SEEN
    )
    return store


def _engine(
    store: EvidenceStore,
    backups: BackupStore,
    operator: FakeOperator | None,
    now: datetime,
    max_concurrency: int = 4,
) -> CleanupEngine:
    return CleanupEngine(
        store,
        backups,
        max_concurrency=max_concurrency,
        operator_factory=lambda source, timeout: operator,
        clock=lambda: now,
    )


class TestPlan:
    """Tests for CleanupEngine.plan."""

    def test_plan_snapshots_packages(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Plan items carry the snapshot and the removal command."""
        engine = _engine(populated, backups, FakeOperator(PackageSource.NPM), now)

        plan = engine.plan([COWSAY])

        assert len(plan) == 1
        item = plan.items[0]
        assert item.snapshot.version == "1.6.0"
        assert item.snapshot.first_seen == FIRST_SEEN
        assert item.command == ("fake", "remove", "cowsay")
        assert item.outcome.status == OutcomeStatus.PENDING
        assert plan.size_bytes == 2048

    def test_plan_deduplicates(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Duplicate keys are planned once, in first-seen order."""
        engine = _engine(populated, backups, FakeOperator(PackageSource.NPM), now)

        plan = engine.plan([TYPESCRIPT, COWSAY, TYPESCRIPT])

        assert plan.keys == (TYPESCRIPT, COWSAY)

    def test_plan_unknown_package(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Planning an unknown package raises PackageNotFoundError."""
        engine = _engine(populated, backups, FakeOperator(PackageSource.NPM), now)

        with pytest.raises(PackageNotFoundError):
            engine.plan([PackageKey("missing", PackageSource.NPM)])

    def test_plan_for_severity(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Severity plans include every candidate at or above the tier."""
        engine = _engine(populated, backups, FakeOperator(PackageSource.NPM), now)
        recommendations = RecommendationEngine().evaluate(populated, now.date())

        plan = engine.plan_for_severity(recommendations, Severity.REVIEW)

        assert set(plan.keys) == {COWSAY, TYPESCRIPT, JQ}
        assert plan.keys[0] == TYPESCRIPT

    def test_invalid_concurrency(self, store: EvidenceStore, backups: BackupStore) -> None:
        """max_concurrency must be at least 1."""
        with pytest.raises(ValueError, match="max_concurrency"):
            CleanupEngine(store, backups, max_concurrency=0)


class TestExecute:
    """Tests for CleanupEngine.execute."""

    def test_dry_run_has_no_side_effects(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """A dry-run removes nothing and writes no manifest."""
        operator = FakeOperator(PackageSource.NPM)
        engine = _engine(populated, backups, operator, now)
        before = populated.snapshot()

        report = engine.execute(engine.plan([COWSAY, TYPESCRIPT]), dry_run=True)

        assert report.status == CleanupStatus.PLANNED
        assert report.dry_run is True
        assert report.manifest_id is None
        assert all(i.outcome.status == OutcomeStatus.PENDING for i in report.items)
        assert operator.removed == []
        assert populated.snapshot() == before
        assert backups.list_ids() == []
        assert populated.cleanups() == []

    def test_execute_removes_and_records(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Successful removals delete rows and finalize the manifest."""
        operator = FakeOperator(PackageSource.NPM)
        engine = _engine(populated, backups, operator, now)

        report = engine.execute(engine.plan([COWSAY, TYPESCRIPT]), dry_run=False)

        assert report.status == CleanupStatus.COMPLETED
        assert report.manifest_id == "cleanup_20250601_120000_000000"
        assert len(report.removed) == 2
        assert report.space_recovered == 42_048
        assert sorted(operator.removed) == ["cowsay", "typescript"]
        assert populated.get_package(COWSAY) is None
        assert populated.get_package(TYPESCRIPT) is None

        manifest = backups.load(report.manifest_id)
        assert manifest.status == CleanupStatus.COMPLETED
        assert manifest.finished_at is not None
        assert [i.outcome.status for i in manifest.items] == [OutcomeStatus.REMOVED] * 2

        (record,) = populated.cleanups()
        assert record.packages_removed == 2
        assert record.space_recovered == 42_048

    def test_partial_failure_is_isolated(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """One failed removal does not affect the others."""
        operator = FakeOperator(PackageSource.NPM, fail={"cowsay"})
        engine = _engine(populated, backups, operator, now)

        report = engine.execute(engine.plan([COWSAY, TYPESCRIPT]), dry_run=False)

        assert report.status == CleanupStatus.COMPLETED_WITH_FAILURES
        outcomes = {i.key: i.outcome for i in report.items}
        assert outcomes[COWSAY].status == OutcomeStatus.FAILED
        assert outcomes[COWSAY].reason == "permission denied"
        assert outcomes[TYPESCRIPT].status == OutcomeStatus.REMOVED
        assert populated.get_package(COWSAY) is not None
        assert populated.get_package(TYPESCRIPT) is None

    def test_unexpected_operator_error_is_isolated(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """An operator raising an unexpected error fails only that item."""
        operator = FakeOperator(PackageSource.NPM, crash_on={"cowsay"})
        engine = _engine(populated, backups, operator, now)

        report = engine.execute(engine.plan([COWSAY, TYPESCRIPT]), dry_run=False)

        assert report.status == CleanupStatus.COMPLETED_WITH_FAILURES
        outcomes = {i.key: i.outcome for i in report.items}
        assert outcomes[COWSAY].status == OutcomeStatus.FAILED
        assert outcomes[COWSAY].reason == "disk on fire"
        assert outcomes[TYPESCRIPT].status == OutcomeStatus.REMOVED
        assert populated.get_package(COWSAY) is not None
        assert populated.get_package(TYPESCRIPT) is None
        assert report.manifest_id is not None
        final = backups.load(report.manifest_id)
        assert final.status == CleanupStatus.COMPLETED_WITH_FAILURES
        assert final.finished_at is not None
        assert len(populated.cleanups()) == 1
        assert populated.leased_sources(now) == set()

    def test_timeout_is_failure(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """A timed-out removal fails with reason 'timeout'."""
        operator = FakeOperator(PackageSource.NPM, timeout_on={"typescript"})
        engine = _engine(populated, backups, operator, now)

        report = engine.execute(engine.plan([TYPESCRIPT]), dry_run=False)

        assert report.items[0].outcome.status == OutcomeStatus.FAILED
        assert report.items[0].outcome.reason == "timeout"
        assert str(report.items[0].outcome) == "failed(timeout)"

    def test_missing_operator_is_failure(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Items without an operator fail without aborting the run."""
        engine = _engine(populated, backups, None, now)

        report = engine.execute(engine.plan([COWSAY]), dry_run=False)

        assert report.items[0].outcome.status == OutcomeStatus.FAILED
        assert report.items[0].command == ()
        assert populated.get_package(COWSAY) is not None

    def test_cancel_before_start_aborts(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Cancelling before the first removal aborts without a manifest."""
        operator = FakeOperator(PackageSource.NPM)
        engine = _engine(populated, backups, operator, now)
        cancel = threading.Event()
        cancel.set()

        report = engine.execute(engine.plan([COWSAY, TYPESCRIPT]), dry_run=False, cancel=cancel)

        assert report.status == CleanupStatus.ABORTED
        assert [i.outcome.reason for i in report.items] == ["cancelled", "cancelled"]
        assert operator.removed == []
        assert backups.list_ids() == []

    def test_cancel_during_run_skips_pending(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Items not started when cancellation is requested are skipped."""
        cancel = threading.Event()
        operator = FakeOperator(PackageSource.NPM, on_remove=cancel)
        engine = _engine(populated, backups, operator, now, max_concurrency=1)

        report = engine.execute(engine.plan([COWSAY, TYPESCRIPT]), dry_run=False, cancel=cancel)

        assert report.status == CleanupStatus.COMPLETED
        assert [i.outcome.status for i in report.items] == [
            OutcomeStatus.REMOVED,
            OutcomeStatus.SKIPPED,
        ]
        assert report.skipped[0].outcome.reason == "cancelled"
        assert populated.get_package(TYPESCRIPT) is not None

    def test_backup_failure_prevents_removal(
        self, populated: EvidenceStore, tmp_path: Path, now: datetime
    ) -> None:
        """Nothing is removed when the manifest cannot be written."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        operator = FakeOperator(PackageSource.NPM)
        engine = _engine(populated, BackupStore(blocker / "backups"), operator, now)

        with pytest.raises(BackupError):
            engine.execute(engine.plan([COWSAY]), dry_run=False)

        assert operator.removed == []
        assert populated.get_package(COWSAY) is not None
        assert populated.leased_sources(now) == set()

    def test_leases_released_after_run(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Source leases are released once the run is finalized."""
        engine = _engine(populated, backups, FakeOperator(PackageSource.NPM), now)

        engine.execute(engine.plan([COWSAY]), dry_run=False)

        assert populated.leased_sources(now) == set()

    def test_lease_outlives_slow_run(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Leases last as long as the run may take at the configured timeout."""
        operator = LeaseWatchingOperator(populated, now + timedelta(hours=2))
        engine = CleanupEngine(
            populated,
            backups,
            max_concurrency=1,
            timeout=3600.0,
            operator_factory=lambda source, timeout: operator,
            clock=lambda: now,
        )

        engine.execute(engine.plan([COWSAY, TYPESCRIPT]), dry_run=False)

        assert operator.leased == [{PackageSource.NPM}, {PackageSource.NPM}]
        assert populated.leased_sources(now) == set()


class TestUndo:
    """Tests for CleanupEngine.undo."""

    def test_round_trip_restores_registry(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Undo restores version, size and first_seen of removed packages."""
        operator = FakeOperator(PackageSource.NPM)
        engine = _engine(populated, backups, operator, now)
        report = engine.execute(engine.plan([COWSAY]), dry_run=False)

        undo = engine.undo(report.manifest_id)

        assert undo.manifest_id == report.manifest_id
        assert len(undo.restored) == 1
        assert undo.warnings == ()
        assert [s.name for s in operator.restored] == ["cowsay"]
        package = populated.require_package(COWSAY)
        assert package.version == "1.6.0"
        assert package.size_bytes == 2048
        assert package.first_seen == FIRST_SEEN

    def test_undo_defaults_to_latest(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Without an id the most recent manifest is replayed."""
        engine = _engine(populated, backups, FakeOperator(PackageSource.NPM), now)
        report = engine.execute(engine.plan([TYPESCRIPT]), dry_run=False)

        undo = engine.undo()

        assert undo.manifest_id == report.manifest_id
        assert populated.get_package(TYPESCRIPT) is not None

    def test_undo_skips_failed_items(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Only removed items are restored."""
        operator = FakeOperator(PackageSource.NPM, fail={"cowsay"})
        engine = _engine(populated, backups, operator, now)
        report = engine.execute(engine.plan([COWSAY, TYPESCRIPT]), dry_run=False)

        undo = engine.undo(report.manifest_id)

        assert [i.key for i in undo.items] == [TYPESCRIPT]
        assert [s.name for s in operator.restored] == ["typescript"]

    def test_undo_isolates_unexpected_operator_error(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """A restore raising an unexpected error fails only that item."""
        engine = _engine(populated, backups, FakeOperator(PackageSource.NPM), now)
        report = engine.execute(engine.plan([COWSAY, TYPESCRIPT]), dry_run=False)
        operator = FakeOperator(PackageSource.NPM, crash_on={"cowsay"})

        undo = _engine(populated, backups, operator, now).undo(report.manifest_id)

        assert [i.key for i in undo.restored] == [TYPESCRIPT]
        assert [i.key for i in undo.failed] == [COWSAY]
        assert undo.failed[0].outcome.reason == "disk on fire"
        assert populated.get_package(TYPESCRIPT) is not None
        assert populated.get_package(COWSAY) is None

    def test_undo_leaves_manifest_untouched(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """The manifest is not modified by undo."""
        engine = _engine(populated, backups, FakeOperator(PackageSource.NPM), now)
        report = engine.execute(engine.plan([COWSAY]), dry_run=False)
        assert report.manifest_id is not None
        before = backups.load(report.manifest_id)

        engine.undo(report.manifest_id)

        assert backups.load(report.manifest_id) == before

    def test_undo_without_operator_warns(
        self, populated: EvidenceStore, backups: BackupStore, now: datetime
    ) -> None:
        """Items whose operator cannot be resolved become warnings."""
        engine = _engine(populated, backups, FakeOperator(PackageSource.NPM), now)
        report = engine.execute(engine.plan([COWSAY]), dry_run=False)

        undo = _engine(populated, backups, None, now).undo(report.manifest_id)

        assert undo.items == ()
        assert len(undo.warnings) == 1
        assert "cowsay" in undo.warnings[0]
        assert populated.get_package(COWSAY) is None
