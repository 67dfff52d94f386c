"""Package scanners for different package managers.

This module exports the scanner classes for querying installed packages.
"""

from macsweep.models.package import PackageSource
from macsweep.scanners.applications import ApplicationsScanner
from macsweep.scanners.base import Scanner
from macsweep.scanners.cargo import CargoScanner
from macsweep.scanners.gem import GemScanner
from macsweep.scanners.homebrew import HomebrewCaskScanner, HomebrewScanner
from macsweep.scanners.npm import NpmScanner
from macsweep.scanners.pip import PipScanner, PipxScanner

SCANNERS: dict[PackageSource, type[Scanner]] = {
    PackageSource.HOMEBREW: HomebrewScanner,
    PackageSource.HOMEBREW_CASK: HomebrewCaskScanner,
    PackageSource.NPM: NpmScanner,
    PackageSource.PIP: PipScanner,
    PackageSource.PIPX: PipxScanner,
    PackageSource.CARGO: CargoScanner,
    PackageSource.GEM: GemScanner,
    PackageSource.APPLICATIONS: ApplicationsScanner,
}


def get_scanners(sources: list[PackageSource] | None = None) -> list[Scanner]:
    """Instantiate scanners for the given sources (all sources if None)."""
    selected = sources if sources is not None else list(SCANNERS)
    return [SCANNERS[source]() for source in selected]


__all__ = [
    "SCANNERS",
    "ApplicationsScanner",
    "CargoScanner",
    "GemScanner",
    "HomebrewCaskScanner",
    "HomebrewScanner",
    "NpmScanner",
    "PipScanner",
    "PipxScanner",
    "Scanner",
    "get_scanners",
]
