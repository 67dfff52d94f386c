"""npm operator implementation.

Removes and reinstalls global npm packages.
"""

from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import PackageSource
from macsweep.operators.base import Operator
from macsweep.utils.shell import command_exists


class NpmOperator(Operator):
    """Operator for globally installed npm packages."""

    @property
    def source(self) -> PackageSource:
        """Return NPM as the package source."""
        return PackageSource.NPM

    def is_available(self) -> bool:
        """Check if npm is available."""
        return command_exists("npm")

    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("npm", "uninstall", "-g", snapshot.name)

    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        spec = f"{snapshot.name}@{snapshot.version}" if snapshot.version else snapshot.name
        return ("npm", "install", "-g", spec)
