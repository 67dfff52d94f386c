"""pip and pipx operator implementations.

Removes and reinstalls Python packages (pip3) and isolated Python
applications (pipx).
"""

from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import PackageSource
from macsweep.operators.base import Operator
from macsweep.utils.shell import command_exists


def _requirement(snapshot: PackageSnapshot) -> str:
    """Return a pinned requirement string when the version is known."""
    if snapshot.version:
        return f"{snapshot.name}=={snapshot.version}"
    return snapshot.name


class PipOperator(Operator):
    """Operator for packages installed with pip3."""

    @property
    def source(self) -> PackageSource:
        """Return PIP as the package source."""
        return PackageSource.PIP

    def is_available(self) -> bool:
        """Check if pip3 is available."""
        return command_exists("pip3")

    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("pip3", "uninstall", "-y", snapshot.name)

    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("pip3", "install", _requirement(snapshot))


class PipxOperator(Operator):
    """Operator for applications installed with pipx."""

    @property
    def source(self) -> PackageSource:
        """Return PIPX as the package source."""
        return PackageSource.PIPX

    def is_available(self) -> bool:
        """Check if pipx is available."""
        return command_exists("pipx")

    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("pipx", "uninstall", snapshot.name)

    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("pipx", "install", _requirement(snapshot))
