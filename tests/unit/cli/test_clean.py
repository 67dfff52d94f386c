"""Unit tests for clean and undo commands.

Package managers are replaced by a recording operator.
"""

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from macsweep.cli.main import app
from macsweep.core.backup import BackupStore
from macsweep.core.config import Settings
from macsweep.core.store import EvidenceStore
from macsweep.models.action import Action, ActionResult, ActionType
from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import PackageSource
from macsweep.operators.base import Operator

runner = CliRunner()


class RecordingOperator(Operator):
    """Operator recording removals and restores."""

    def __init__(self, source: PackageSource, fail: set[str]) -> None:
        super().__init__(timeout=30)
        self._source = source
        self._fail = fail
        self.removed: list[str] = []
        self.restored: list[str] = []

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
        if snapshot.name in self._fail:
            return ActionResult(action=action, success=False, error="permission denied")
        self.removed.append(snapshot.name)
        return ActionResult(action=action, success=True)

    def restore(self, snapshot: PackageSnapshot) -> ActionResult:
        self.restored.append(snapshot.name)
        action = Action(ActionType.RESTORE, snapshot.name, snapshot.source)
        return ActionResult(action=action, success=True)


class Operators:
    """One recording operator per source, created on first use."""

    def __init__(self) -> None:
        self.fail: set[str] = set()
        self.by_source: dict[PackageSource, RecordingOperator] = {}

    def __call__(self, source: PackageSource, timeout: float = 300.0) -> RecordingOperator:
        if source not in self.by_source:
            self.by_source[source] = RecordingOperator(source, self.fail)
        return self.by_source[source]

    @property
    def removed(self) -> list[str]:
        return sorted(name for op in self.by_source.values() for name in op.removed)

    @property
    def restored(self) -> list[str]:
        return sorted(name for op in self.by_source.values() for name in op.restored)


@pytest.fixture
def operators() -> Iterator[Operators]:
    """Replace package manager operators with recording fakes."""
    fakes = Operators()
    with patch("macsweep.core.cleanup.get_operator", side_effect=fakes):
        yield fakes


def _registered(settings: Settings) -> list[str]:
    with EvidenceStore.open(settings.effective_database_path) as store:
        return [pkg.name for pkg in store.snapshot()]


class TestCleanCommand:
    """Tests for macsweep clean command."""

    def test_clean_help(self) -> None:
        """Clean command shows help."""
        result = runner.invoke(app, ["clean", "--help"])

        assert result.exit_code == 0
        assert "--severity" in result.stdout
        assert "--dry-run" in result.stdout

    def test_clean_requires_selection(self, registry: Settings) -> None:
        """Clean without --severity or --package exits with code 1."""
        result = runner.invoke(app, ["clean"])

        assert result.exit_code == 1
        assert "Nothing selected" in result.output

    def test_clean_rejects_none_severity(self, registry: Settings) -> None:
        """Severity none is not a cleanup selection."""
        result = runner.invoke(app, ["clean", "--severity", "none"])

        assert result.exit_code == 1

    def test_clean_dry_run(self, registry: Settings, operators: Operators) -> None:
        """Dry-run shows the plan without removing anything."""
        result = runner.invoke(app, ["clean", "--severity", "review", "--dry-run"])

        assert result.exit_code == 0
        assert "Dry Run" in result.stdout
        assert "No changes made" in result.stdout
        assert operators.removed == []
        assert len(_registered(registry)) == 5
        assert BackupStore(registry.effective_backup_dir).list_ids() == []

    def test_clean_by_severity(self, registry: Settings, operators: Operators) -> None:
        """Orphans are removed and deleted from the registry."""
        result = runner.invoke(app, ["clean", "--severity", "safe", "--yes"])

        assert result.exit_code == 0
        assert "Removed 1 package(s)" in result.stdout
        assert operators.removed == ["libyaml"]
        assert "libyaml" not in _registered(registry)
        assert len(BackupStore(registry.effective_backup_dir).list_ids()) == 1

    def test_clean_named_packages(self, registry: Settings, operators: Operators) -> None:
        """--package selects packages regardless of their tier."""
        result = runner.invoke(app, ["clean", "-p", "cowsay", "-p", "ripgrep", "-y"])

        assert result.exit_code == 0
        assert operators.removed == ["cowsay", "ripgrep"]

    def test_clean_unknown_package(self, registry: Settings, operators: Operators) -> None:
        """Unknown package names exit with code 1 before any removal."""
        result = runner.invoke(app, ["clean", "-p", "nonexistent", "-y"])

        assert result.exit_code == 1
        assert operators.removed == []

    def test_clean_confirmation_declined(self, registry: Settings, operators: Operators) -> None:
        """Declining the prompt cancels the cleanup."""
        result = runner.invoke(app, ["clean", "--severity", "safe"], input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.stdout
        assert operators.removed == []

    def test_clean_with_failures(self, registry: Settings, operators: Operators) -> None:
        """A failed removal is reported and the package stays registered."""
        operators.fail.add("cowsay")

        result = runner.invoke(app, ["clean", "--severity", "review", "-y"])

        assert result.exit_code == 1
        assert "1 failed" in result.stdout
        registered = _registered(registry)
        assert "cowsay" in registered
        assert "libyaml" not in registered

    def test_clean_nothing_to_do(self, cli_settings: Settings, operators: Operators) -> None:
        """An empty registry has nothing to clean."""
        result = runner.invoke(app, ["clean", "--severity", "safe", "-y"])

        assert result.exit_code == 0
        assert "Nothing to clean up" in result.stdout

    def test_clean_aborts_without_backup(
        self, registry: Settings, operators: Operators, tmp_path: Path
    ) -> None:
        """Nothing is removed when the backup cannot be written."""
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("")
        registry.backup_dir = blocker

        result = runner.invoke(app, ["clean", "--severity", "safe", "-y"])

        assert result.exit_code == 1
        assert "Cleanup aborted" in result.output
        assert operators.removed == []
        assert "libyaml" in _registered(registry)


class TestUndoCommand:
    """Tests for macsweep undo command."""

    def test_undo_list_empty(self, cli_settings: Settings) -> None:
        """--list without backups prints an info message."""
        result = runner.invoke(app, ["undo", "--list"])

        assert result.exit_code == 0
        assert "No backups found" in result.stdout

    def test_undo_without_backups(self, cli_settings: Settings) -> None:
        """Undo without any backup exits with code 1."""
        result = runner.invoke(app, ["undo", "-y"])

        assert result.exit_code == 1
        assert "No backups found" in result.output

    def test_undo_unknown_backup(self, cli_settings: Settings) -> None:
        """An unknown backup id exits with code 1."""
        result = runner.invoke(app, ["undo", "cleanup_19700101_000000_000000", "-y"])

        assert result.exit_code == 1
        assert "Backup not found" in result.output

    def test_undo_restores_last_cleanup(self, registry: Settings, operators: Operators) -> None:
        """Undo reinstalls and re-registers the removed packages."""
        runner.invoke(app, ["clean", "--severity", "safe", "-y"])

        result = runner.invoke(app, ["undo", "-y"])

        assert result.exit_code == 0
        assert "Restored 1 package(s)" in result.stdout
        assert operators.restored == ["libyaml"]
        assert "libyaml" in _registered(registry)

    def test_undo_list_and_dry_run(self, registry: Settings, operators: Operators) -> None:
        """Backups are listed and can be previewed without changes."""
        runner.invoke(app, ["clean", "-p", "cowsay", "-y"])
        manifest_id = BackupStore(registry.effective_backup_dir).list_ids()[0]

        listing = runner.invoke(app, ["undo", "--list"])
        preview = runner.invoke(app, ["undo", manifest_id, "--dry-run"])

        assert listing.exit_code == 0
        assert "Backups" in listing.stdout
        assert preview.exit_code == 0
        assert "cowsay 1.6.0 (npm)" in preview.stdout
        assert "No changes made" in preview.stdout
        assert operators.restored == []

    def test_undo_skips_failed_items(self, registry: Settings, operators: Operators) -> None:
        """Items that were never removed are not restored."""
        operators.fail.add("cowsay")
        runner.invoke(app, ["clean", "-p", "cowsay", "-y"])

        result = runner.invoke(app, ["undo", "-y"])

        assert result.exit_code == 0
        assert "Nothing to restore" in result.stdout
        assert operators.restored == []
