"""pip and pipx scanner implementations.

pip packages are read from ``pip3 inspect``, which reports each
distribution's requirements and whether it was installed on request.
pipx applications are read from ``pipx list --short``.
"""

import csv
import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from macsweep.models.package import Package, PackageSource, RawPackage
from macsweep.scanners.base import Scanner
from macsweep.utils.shell import command_exists

logger = logging.getLogger(__name__)

# Base tooling that every Python installation carries
_BASE_PACKAGES = frozenset({"pip", "setuptools", "wheel"})

_REQUIREMENT_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")
_EXTRA_MARKER_RE = re.compile(r"extra\s*==")


def canonicalize_name(name: str) -> str:
    """Normalize a distribution name (PEP 503)."""
    return re.sub(r"[-_.]+", "-", name).lower()


def parse_requirement_name(requirement: str) -> str | None:
    """Extract the distribution name from a Requires-Dist entry.

    Requirements only pulled in by an extra are ignored.

    Example:
        >>> parse_requirement_name("urllib3<3,>=1.21.1")
        'urllib3'
        >>> parse_requirement_name('PySocks!=1.5.7; extra == "socks"') is None
        True
    """
    _, _, marker = requirement.partition(";")
    if marker and _EXTRA_MARKER_RE.search(marker):
        return None
    match = _REQUIREMENT_NAME_RE.match(requirement)
    return match.group(1) if match else None


class PipScanner(Scanner):
    """Scanner for packages installed with pip3."""

    _INSPECT_COMMAND = ["pip3", "inspect"]

    @property
    def source(self) -> PackageSource:
        """Return PIP as the package source."""
        return PackageSource.PIP

    def is_available(self) -> bool:
        """Check if pip3 is available."""
        return command_exists("pip3")

    def scan(self) -> Iterator[RawPackage]:
        """Scan all installed distributions.

        Yields:
            RawPackage for each distribution except pip's own tooling.

        Raises:
            ExternalToolError: If pip3 inspect fails or returns invalid JSON.
        """
        result = self._run(self._INSPECT_COMMAND)
        data = self._load_json(result.stdout, "pip3 inspect")
        if not isinstance(data, dict):
            return
        installed: list[dict[str, Any]] = data.get("installed", [])

        names = {
            canonicalize_name(entry["metadata"]["name"]): entry["metadata"]["name"]
            for entry in installed
            if entry.get("metadata", {}).get("name")
        }

        for entry in installed:
            package = self._parse_entry(entry, names)
            if package is not None:
                yield package

    def resolve_size(self, package: Package) -> int | None:
        """Sum the file sizes listed in the distribution's RECORD file."""
        if not package.install_path:
            return None
        record = Path(package.install_path) / "RECORD"
        try:
            with open(record, newline="", encoding="utf-8") as f:
                rows = csv.reader(f)
                return sum(int(row[2]) for row in rows if len(row) >= 3 and row[2].isdigit())
        except OSError as e:
            logger.debug("Cannot read %s: %s", record, e)
            return None

    def _parse_entry(self, entry: dict[str, Any], names: dict[str, str]) -> RawPackage | None:
        """Parse a single ``installed`` entry of pip3 inspect output.

        Args:
            entry: Entry of the ``installed`` list.
            names: Installed names keyed by canonical name.

        Returns:
            RawPackage if parsing succeeds, None otherwise.
        """
        metadata = entry.get("metadata") or {}
        name = metadata.get("name")
        if not name:
            logger.debug("Skipping pip entry without name: %r", str(entry)[:100])
            return None
        if canonicalize_name(name) in _BASE_PACKAGES:
            return None

        dependencies: list[str] = []
        for requirement in metadata.get("requires_dist") or ():
            dep = parse_requirement_name(requirement)
            if dep is None:
                continue
            # Map onto the installed spelling so the analyzer can match it
            dependencies.append(names.get(canonicalize_name(dep), dep))

        requested = entry.get("requested")
        return RawPackage(
            name=name,
            source=PackageSource.PIP,
            version=metadata.get("version"),
            install_path=entry.get("metadata_location"),
            dependencies=tuple(dict.fromkeys(dependencies)),
            is_dependency=None if requested is None else not requested,
        )


class PipxScanner(Scanner):
    """Scanner for applications installed with pipx."""

    @property
    def source(self) -> PackageSource:
        """Return PIPX as the package source."""
        return PackageSource.PIPX

    def is_available(self) -> bool:
        """Check if pipx is available."""
        return command_exists("pipx")

    @property
    def venvs_dir(self) -> Path:
        """Directory holding one virtual environment per application."""
        home = os.environ.get("PIPX_HOME")
        base = Path(home) if home else Path.home() / ".local" / "pipx"
        return base / "venvs"

    def scan(self) -> Iterator[RawPackage]:
        """Scan all pipx applications.

        Yields:
            RawPackage for each application.

        Raises:
            ExternalToolError: If pipx list fails.
        """
        result = self._run(["pipx", "list", "--short"])
        for line in result.stdout.splitlines():
            parts = line.split()
            if not parts:
                continue
            name = parts[0]
            venv = self.venvs_dir / name
            yield RawPackage(
                name=name,
                source=PackageSource.PIPX,
                version=parts[1] if len(parts) > 1 else None,
                install_path=str(venv) if venv.exists() else None,
            )
