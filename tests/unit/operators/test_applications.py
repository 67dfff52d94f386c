"""Unit tests for ApplicationsOperator.

Tests for moving application bundles to the Trash and back.
"""

from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import PackageSource
from macsweep.operators.applications import ApplicationsOperator
from macsweep.utils.shell import CommandResult

FIRST_SEEN = datetime(2024, 1, 1, tzinfo=UTC)


def _snapshot(install_path: str | None) -> PackageSnapshot:
    return PackageSnapshot(
        name="Example",
        source=PackageSource.APPLICATIONS,
        first_seen=FIRST_SEEN,
        install_path=install_path,
    )


class TestApplicationsOperator:
    """Tests for ApplicationsOperator class."""

    @pytest.fixture
    def trash(self, tmp_path: Path) -> Path:
        """Create an empty Trash directory."""
        path = tmp_path / "Trash"
        path.mkdir()
        return path

    @pytest.fixture
    def operator(self, trash: Path) -> ApplicationsOperator:
        """Create ApplicationsOperator with a temporary Trash."""
        return ApplicationsOperator(trash_dir=trash)

    def test_source_is_applications(self, operator: ApplicationsOperator) -> None:
        """Operator returns APPLICATIONS as source."""
        assert operator.source == PackageSource.APPLICATIONS

    def test_removal_command_uses_finder(self, operator: ApplicationsOperator) -> None:
        """Removal asks Finder to move the bundle to the Trash."""
        command = operator.removal_command(_snapshot("/Applications/Example.app"))

        assert command[:2] == ("osascript", "-e")
        assert 'POSIX file "/Applications/Example.app"' in command[2]

    def test_removal_command_escapes_quotes(self, operator: ApplicationsOperator) -> None:
        """Quotes in the bundle path are escaped for AppleScript."""
        command = operator.removal_command(_snapshot('/Applications/Say "Hi".app'))

        assert 'Say \\"Hi\\".app' in command[2]

    def test_remove_runs_osascript(self, operator: ApplicationsOperator) -> None:
        """remove() runs the Finder script."""
        with (
            patch("macsweep.operators.applications.command_exists", return_value=True),
            patch("macsweep.operators.base.run_command") as mock_run,
        ):
            mock_run.return_value = CommandResult(stdout="", stderr="", returncode=0)

            result = operator.remove(_snapshot("/Applications/Example.app"))

        assert result.success
        assert mock_run.call_args[0][0][0] == "osascript"

    def test_remove_without_path_fails(self, operator: ApplicationsOperator) -> None:
        """A bundle without a recorded path cannot be removed."""
        with patch("macsweep.operators.base.run_command") as mock_run:
            result = operator.remove(_snapshot(None))

        assert result.failed
        assert result.error == "install path unknown"
        mock_run.assert_not_called()

    def test_restore_from_trash(
        self, operator: ApplicationsOperator, trash: Path, tmp_path: Path
    ) -> None:
        """restore() moves the bundle back to its original path."""
        trashed = trash / "Example.app"
        (trashed / "Contents").mkdir(parents=True)
        target = tmp_path / "Applications" / "Example.app"

        result = operator.restore(_snapshot(str(target)))

        assert result.success
        assert (target / "Contents").is_dir()
        assert not trashed.exists()

    def test_restore_already_present(
        self, operator: ApplicationsOperator, tmp_path: Path
    ) -> None:
        """A bundle that is already back counts as restored."""
        target = tmp_path / "Example.app"
        target.mkdir()

        result = operator.restore(_snapshot(str(target)))

        assert result.success
        assert result.message == "Already present"

    def test_restore_missing_from_trash(
        self, operator: ApplicationsOperator, tmp_path: Path
    ) -> None:
        """A bundle that is no longer in the Trash cannot be restored."""
        result = operator.restore(_snapshot(str(tmp_path / "Example.app")))

        assert result.failed
        assert "not found in Trash" in (result.error or "")
