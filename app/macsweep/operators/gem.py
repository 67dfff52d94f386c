"""RubyGems operator implementation."""

from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import PackageSource
from macsweep.operators.base import Operator
from macsweep.utils.shell import command_exists


class GemOperator(Operator):
    """Operator for Ruby gems."""

    @property
    def source(self) -> PackageSource:
        """Return GEM as the package source."""
        return PackageSource.GEM

    def is_available(self) -> bool:
        """Check if gem is available."""
        return command_exists("gem")

    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        # -x also removes executables without prompting
        return ("gem", "uninstall", "-x", snapshot.name)

    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        if snapshot.version:
            return ("gem", "install", snapshot.name, "-v", snapshot.version)
        return ("gem", "install", snapshot.name)
