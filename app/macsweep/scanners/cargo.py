"""Cargo binaries scanner implementation.

Scans crates installed with ``cargo install`` using ``cargo install --list``.
"""

import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path

from macsweep.models.package import PackageSource, RawPackage
from macsweep.scanners.base import Scanner
from macsweep.utils.shell import command_exists

logger = logging.getLogger(__name__)

# "ripgrep v14.1.0:" optionally followed by a source in parentheses
_CRATE_RE = re.compile(r"^(\S+)\s+v(\S+?)(?:\s+\(.*\))?:$")


class CargoScanner(Scanner):
    """Scanner for crates installed with ``cargo install``.

    Output format::

        ripgrep v14.1.0:
            rg
    """

    @property
    def source(self) -> PackageSource:
        """Return CARGO as the package source."""
        return PackageSource.CARGO

    def is_available(self) -> bool:
        """Check if cargo is available."""
        return command_exists("cargo")

    @property
    def bin_dir(self) -> Path:
        """Directory cargo installs binaries into."""
        home = os.environ.get("CARGO_HOME")
        base = Path(home) if home else Path.home() / ".cargo"
        return base / "bin"

    def scan(self) -> Iterator[RawPackage]:
        """Scan all installed crates.

        Yields:
            RawPackage for each crate, pointing at its first binary.

        Raises:
            ExternalToolError: If cargo install --list fails.
        """
        result = self._run(["cargo", "install", "--list"])
        for name, version, binaries in self.parse_install_list(result.stdout):
            binary = self.bin_dir / binaries[0] if binaries else None
            yield RawPackage(
                name=name,
                source=PackageSource.CARGO,
                version=version,
                install_path=str(binary) if binary is not None and binary.exists() else None,
            )

    @staticmethod
    def parse_install_list(output: str) -> list[tuple[str, str, list[str]]]:
        """Parse ``cargo install --list`` output.

        Returns:
            List of (crate name, version, binary names).
        """
        crates: list[tuple[str, str, list[str]]] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            if line[0].isspace():
                if crates:
                    crates[-1][2].append(line.strip())
                continue
            match = _CRATE_RE.match(line.strip())
            if match is None:
                logger.debug("Skipping unrecognized cargo line: %r", line[:100])
                continue
            crates.append((match.group(1), match.group(2), []))
        return crates
