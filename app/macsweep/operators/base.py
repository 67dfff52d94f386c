"""Abstract base class for package operators.

This module defines the Operator interface that all removal/restore
operators must implement.
"""

import logging
import subprocess
from abc import ABC, abstractmethod

from macsweep.models.action import Action, ActionResult, ActionType
from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import PackageSource
from macsweep.utils.shell import run_command

logger = logging.getLogger(__name__)

TIMEOUT_REASON = "timeout"


class Operator(ABC):
    """Abstract base class for all package operators.

    Operators remove a package through its own package manager and restore
    it from a backup snapshot. Every external call is bounded by a timeout;
    a timed-out call is reported as a failed result, never raised.

    Example:
        >>> operator = NpmOperator(timeout=120)
        >>> if operator.is_available():
        ...     result = operator.remove(snapshot)
        ...     print(f"{result.action.package}: {result.success}")
    """

    # Default timeout for package-manager calls (5 minutes)
    _DEFAULT_TIMEOUT: float = 300.0

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize the operator.

        Args:
            timeout: Seconds allowed for each external call.
        """
        self._timeout = timeout if timeout is not None else self._DEFAULT_TIMEOUT

    @property
    def timeout(self) -> float:
        """Seconds allowed for each external call."""
        return self._timeout

    @property
    @abstractmethod
    def source(self) -> PackageSource:
        """Return the package source this operator handles."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this package manager is available on the system.

        Returns:
            True if the package manager can be used, False otherwise.
        """

    @abstractmethod
    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        """Return the command that removes the package."""

    @abstractmethod
    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        """Return the command that reinstalls the package.

        The recorded version is pinned where the package manager supports it.
        """

    def removal_action(self, snapshot: PackageSnapshot, reason: str | None = None) -> Action:
        """Build the removal action for a package."""
        return Action(
            action_type=ActionType.REMOVE,
            package=snapshot.name,
            source=snapshot.source,
            command=self.removal_command(snapshot),
            reason=reason,
        )

    def remove(self, snapshot: PackageSnapshot) -> ActionResult:
        """Remove a package.

        Args:
            snapshot: Pre-removal snapshot of the package.

        Returns:
            ActionResult describing the outcome.
        """
        return self._execute(self.removal_action(snapshot))

    def restore(self, snapshot: PackageSnapshot) -> ActionResult:
        """Reinstall a previously removed package.

        Args:
            snapshot: Snapshot recorded in the backup manifest.

        Returns:
            ActionResult describing the outcome.
        """
        action = Action(
            action_type=ActionType.RESTORE,
            package=snapshot.name,
            source=snapshot.source,
            command=self.restore_command(snapshot),
        )
        return self._execute(action)

    def _execute(self, action: Action) -> ActionResult:
        """Run the command of an action and convert the outcome.

        Args:
            action: Action whose command should be run.

        Returns:
            ActionResult; timeouts and missing executables become failures.
        """
        if action.source != self.source:
            msg = (
                f"Action source {action.source.value} doesn't match "
                f"operator source {self.source.value}"
            )
            raise ValueError(msg)

        if not self.is_available():
            return ActionResult(
                action=action,
                success=False,
                error=f"{self.source.label} is not available on this system",
            )

        logger.info("Executing %s %s: %s", action.action_type.value, action.key, action.display)

        try:
            result = run_command(list(action.command), timeout=self._timeout)
        except subprocess.TimeoutExpired:
            logger.warning("%s timed out after %.0fs", action.display, self._timeout)
            return ActionResult(action=action, success=False, error=TIMEOUT_REASON, timed_out=True)
        except OSError as e:
            return ActionResult(action=action, success=False, error=str(e))

        if result.success:
            return ActionResult(action=action, success=True, message="Operation completed")
        return ActionResult(action=action, success=False, error=result.error_text)
