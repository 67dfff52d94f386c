"""Cargo operator implementation.

Removes and reinstalls binaries installed with ``cargo install``.
"""

from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import PackageSource
from macsweep.operators.base import Operator
from macsweep.utils.shell import command_exists


class CargoOperator(Operator):
    """Operator for binaries installed with ``cargo install``."""

    @property
    def source(self) -> PackageSource:
        """Return CARGO as the package source."""
        return PackageSource.CARGO

    def is_available(self) -> bool:
        """Check if cargo is available."""
        return command_exists("cargo")

    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("cargo", "uninstall", snapshot.name)

    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        if snapshot.version:
            return ("cargo", "install", snapshot.name, "--version", snapshot.version)
        return ("cargo", "install", snapshot.name)
