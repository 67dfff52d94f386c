"""Application bundle operator implementation.

Moves .app bundles to the Trash through Finder (so the system "Put Back"
still works) and recovers them from ~/.Trash on undo.
"""

import logging
import shutil
from pathlib import Path

from macsweep.models.action import Action, ActionResult, ActionType
from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import PackageSource
from macsweep.operators.base import Operator
from macsweep.utils.shell import command_exists

logger = logging.getLogger(__name__)


def _finder_delete_script(path: str) -> str:
    escaped = path.replace("\\", "\\\\").replace('"', '\\"')
    return f'tell application "Finder" to delete POSIX file "{escaped}"'


class ApplicationsOperator(Operator):
    """Operator for application bundles in /Applications and ~/Applications.

    Attributes:
        trash_dir: Directory searched for trashed bundles on restore.
    """

    def __init__(self, timeout: float | None = None, trash_dir: Path | None = None) -> None:
        """Initialize the operator.

        Args:
            timeout: Seconds allowed for each external call.
            trash_dir: Trash directory override (default: ~/.Trash).
        """
        super().__init__(timeout)
        self._trash_dir = trash_dir if trash_dir is not None else Path.home() / ".Trash"

    @property
    def source(self) -> PackageSource:
        """Return APPLICATIONS as the package source."""
        return PackageSource.APPLICATIONS

    @property
    def trash_dir(self) -> Path:
        return self._trash_dir

    def is_available(self) -> bool:
        """Check if osascript is available (macOS only)."""
        return command_exists("osascript")

    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        if not snapshot.install_path:
            return ()
        return ("osascript", "-e", _finder_delete_script(snapshot.install_path))

    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        if not snapshot.install_path:
            return ()
        bundle = Path(snapshot.install_path).name
        return ("mv", str(self._trash_dir / bundle), snapshot.install_path)

    def remove(self, snapshot: PackageSnapshot) -> ActionResult:
        """Move the application bundle to the Trash."""
        action = self.removal_action(snapshot)
        if not snapshot.install_path:
            return ActionResult(action=action, success=False, error="install path unknown")
        return self._execute(action)

    def restore(self, snapshot: PackageSnapshot) -> ActionResult:
        """Move the application bundle back from the Trash.

        Trashed bundles that collided with an existing name get a suffix
        from Finder; only the exact bundle name is recovered.
        """
        action = Action(
            action_type=ActionType.RESTORE,
            package=snapshot.name,
            source=snapshot.source,
            command=self.restore_command(snapshot),
        )
        if not snapshot.install_path:
            return ActionResult(action=action, success=False, error="install path unknown")

        target = Path(snapshot.install_path)
        trashed = self._trash_dir / target.name
        if target.exists():
            return ActionResult(action=action, success=True, message="Already present")
        if not trashed.exists():
            return ActionResult(action=action, success=False, error=f"{trashed} not found in Trash")

        logger.info("Recovering %s from %s", target, trashed)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(trashed), str(target))
        except OSError as e:
            return ActionResult(action=action, success=False, error=str(e))
        return ActionResult(action=action, success=True, message="Recovered from Trash")
