"""Action models for package operations.

This module defines data structures for representing the source-specific
actions taken by operators (remove, restore) and their execution results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from macsweep.models.package import PackageKey, PackageSource


class ActionType(str, Enum):
    """Type of package management action.

    Attributes:
        REMOVE: Uninstall a package or move an application to the Trash.
        RESTORE: Reinstall a package or recover an application from the Trash.
    """

    REMOVE = "remove"
    RESTORE = "restore"


@dataclass(frozen=True, slots=True)
class Action:
    """Represents a single package management action to be executed.

    Attributes:
        action_type: The type of action (remove or restore).
        package: Name of the package to operate on.
        source: Package manager that handles this package.
        command: Command line (or description for non-command actions)
            that the operator runs.
        reason: Optional explanation for why this action is being taken.
    """

    action_type: ActionType
    package: str
    source: PackageSource
    command: tuple[str, ...] = field(default=())
    reason: str | None = None

    def __post_init__(self) -> None:
        """Validate action data after initialization."""
        if not self.package:
            msg = "Package name cannot be empty"
            raise ValueError(msg)

    @property
    def key(self) -> PackageKey:
        """Return the identity of the package acted on."""
        return PackageKey(self.package, self.source)

    @property
    def is_remove(self) -> bool:
        """Check if this is a remove action."""
        return self.action_type == ActionType.REMOVE

    @property
    def display(self) -> str:
        """Return the command as a single display string."""
        return " ".join(self.command) if self.command else "-"


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Result of executing a package management action.

    Attributes:
        action: The action that was executed.
        success: Whether the action completed successfully.
        message: Optional success message or additional information.
        error: Optional error message if the action failed.
        timed_out: Whether the external command exceeded its timeout.
    """

    action: Action
    success: bool
    message: str | None = None
    error: str | None = None
    timed_out: bool = False

    @property
    def failed(self) -> bool:
        """Check if the action failed."""
        return not self.success
