"""Homebrew package scanner implementations.

Scans installed formulae and casks using ``brew info --json=v2 --installed``.
"""

import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from macsweep.models.package import Package, PackageSource, RawPackage
from macsweep.scanners.base import Scanner
from macsweep.utils.shell import command_exists
from macsweep.utils.size import calculate_size

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "/opt/homebrew"


def guess_app_name(token: str) -> str:
    """Convert a cask token to the likely application name.

    Example:
        >>> guess_app_name("visual-studio-code")
        'Visual Studio Code'
    """
    return " ".join(word[:1].upper() + word[1:] for word in token.split("-") if word)


class HomebrewScanner(Scanner):
    """Scanner for Homebrew formulae.

    Formulae report their runtime dependencies and whether they were
    installed on request, so orphaned dependencies can be detected.
    """

    _INFO_COMMAND = ["brew", "info", "--json=v2", "--installed"]

    def __init__(self, prefix: str | None = None) -> None:
        """Initialize the scanner.

        Args:
            prefix: Homebrew prefix (detected with ``brew --prefix`` if None).
        """
        self._prefix = prefix

    @property
    def source(self) -> PackageSource:
        """Return HOMEBREW as the package source."""
        return PackageSource.HOMEBREW

    @property
    def prefix(self) -> str:
        """Homebrew prefix (Apple Silicon and Intel differ)."""
        if self._prefix is None:
            result = self._run(["brew", "--prefix"], allow_failure=True)
            self._prefix = result.stdout.strip() if result.success else DEFAULT_PREFIX
        return self._prefix

    def is_available(self) -> bool:
        """Check if brew is available."""
        return command_exists("brew")

    def scan(self) -> Iterator[RawPackage]:
        """Scan all installed formulae.

        Yields:
            RawPackage for each installed formula.

        Raises:
            ExternalToolError: If brew info fails or returns invalid JSON.
        """
        info = self._installed_info()
        formulae = info.get("formulae", [])
        names = {
            formula["full_name"]: formula["name"]
            for formula in formulae
            if formula.get("full_name") and formula.get("name")
        }
        for formula in formulae:
            package = self._parse_formula(formula, names)
            if package is not None:
                yield package

    def resolve_size(self, package: Package) -> int | None:
        """Measure the formula's keg directory in the Cellar."""
        cellar = Path(self.prefix) / "Cellar" / package.name
        if not cellar.exists():
            return None
        return calculate_size(cellar)

    def _installed_info(self) -> dict[str, Any]:
        result = self._run(self._INFO_COMMAND)
        data = self._load_json(result.stdout, "brew info")
        if not isinstance(data, dict):
            return {}
        return data

    def _parse_formula(
        self, formula: dict[str, Any], names: dict[str, str] | None = None
    ) -> RawPackage | None:
        """Parse a single formula entry of ``brew info`` output.

        Dependencies are recorded by formula name. Tapped formulae appear as
        ``user/tap/name`` in the dependency lists and are mapped through
        ``names`` (full name to name), falling back to the last path segment.

        Returns:
            RawPackage if parsing succeeds, None otherwise.
        """
        name = formula.get("name")
        if not name:
            logger.debug("Skipping formula without name: %r", str(formula)[:100])
            return None

        installed_list = formula.get("installed") or []
        installed: dict[str, Any] = installed_list[0] if installed_list else {}

        version = installed.get("version") or (formula.get("versions") or {}).get("stable")

        install_date: datetime | None = None
        timestamp = installed.get("time")
        if isinstance(timestamp, int | float):
            install_date = datetime.fromtimestamp(timestamp, UTC)

        if installed.get("runtime_dependencies") is not None:
            full_names = [
                dep["full_name"]
                for dep in installed["runtime_dependencies"]
                if isinstance(dep, dict) and dep.get("full_name")
            ]
        else:
            full_names = [dep for dep in formula.get("dependencies") or () if dep]
        names = names or {}
        dependencies = tuple(names.get(dep, dep.rsplit("/", 1)[-1]) for dep in full_names)

        is_dependency: bool | None = None
        if "installed_on_request" in installed:
            is_dependency = not installed["installed_on_request"]

        binary = Path(self.prefix) / "bin" / name
        return RawPackage(
            name=name,
            source=PackageSource.HOMEBREW,
            version=version,
            install_date=install_date,
            install_path=str(binary) if binary.exists() else None,
            dependencies=dependencies,
            is_dependency=is_dependency,
        )


class HomebrewCaskScanner(HomebrewScanner):
    """Scanner for Homebrew casks.

    Casks have no dependency flag; the application path is guessed from
    the cask token.
    """

    def __init__(self, prefix: str | None = None, app_dir: Path | None = None) -> None:
        """Initialize the scanner.

        Args:
            prefix: Homebrew prefix (detected with ``brew --prefix`` if None).
            app_dir: Directory casks install applications into.
        """
        super().__init__(prefix)
        self._app_dir = app_dir if app_dir is not None else Path("/Applications")

    @property
    def source(self) -> PackageSource:
        """Return HOMEBREW_CASK as the package source."""
        return PackageSource.HOMEBREW_CASK

    def scan(self) -> Iterator[RawPackage]:
        """Scan all installed casks.

        Yields:
            RawPackage for each installed cask.

        Raises:
            ExternalToolError: If brew info fails or returns invalid JSON.
        """
        info = self._installed_info()
        for cask in info.get("casks", []):
            token = cask.get("token")
            if not token:
                logger.debug("Skipping cask without token: %r", str(cask)[:100])
                continue

            app_path = self._app_dir / f"{guess_app_name(token)}.app"
            yield RawPackage(
                name=token,
                source=PackageSource.HOMEBREW_CASK,
                version=cask.get("installed") or cask.get("version"),
                install_path=str(app_path) if app_path.exists() else None,
            )

    def resolve_size(self, package: Package) -> int | None:
        """Measure the application bundle."""
        return Scanner.resolve_size(self, package)
