"""Homebrew operator implementations.

Removes and reinstalls formulae and casks with the brew CLI.
"""

from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import PackageSource
from macsweep.operators.base import Operator
from macsweep.utils.shell import command_exists


class HomebrewOperator(Operator):
    """Operator for Homebrew formulae.

    Homebrew cannot reliably install an arbitrary older version, so
    restoration reinstalls the current formula.
    """

    @property
    def source(self) -> PackageSource:
        """Return HOMEBREW as the package source."""
        return PackageSource.HOMEBREW

    def is_available(self) -> bool:
        """Check if brew is available."""
        return command_exists("brew")

    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("brew", "uninstall", snapshot.name)

    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("brew", "install", snapshot.name)


class HomebrewCaskOperator(HomebrewOperator):
    """Operator for Homebrew casks."""

    @property
    def source(self) -> PackageSource:
        """Return HOMEBREW_CASK as the package source."""
        return PackageSource.HOMEBREW_CASK

    def removal_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("brew", "uninstall", "--cask", snapshot.name)

    def restore_command(self, snapshot: PackageSnapshot) -> tuple[str, ...]:
        return ("brew", "install", "--cask", snapshot.name)
