"""Abstract base class for package scanners.

This module defines the Scanner interface that all package source
scanners must implement.
"""

import json
import logging
import subprocess
from abc import ABC, abstractmethod
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from macsweep.core.errors import ExternalToolError
from macsweep.models.package import Package, PackageSource, RawPackage
from macsweep.utils.shell import CommandResult, run_command
from macsweep.utils.size import calculate_size

logger = logging.getLogger(__name__)


class Scanner(ABC):
    """Abstract base class for all package scanners.

    Scanners query a package manager (or a directory) and yield one
    RawPackage per installed artifact. Sizes are not computed during a scan;
    they are resolved lazily with :meth:`resolve_size`.

    Example:
        >>> scanner = NpmScanner()
        >>> if scanner.is_available():
        ...     for pkg in scanner.scan():
        ...         print(f"{pkg.name}: {pkg.version}")
    """

    # Timeout for listing commands (2 minutes)
    _SCAN_TIMEOUT: float = 120.0

    @property
    @abstractmethod
    def source(self) -> PackageSource:
        """Return the package source this scanner handles."""

    @abstractmethod
    def scan(self) -> Iterator[RawPackage]:
        """Scan and yield all installed packages from this source.

        Yields:
            RawPackage instances for each installed package.

        Raises:
            ExternalToolError: If the package manager cannot be queried.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this package manager is available on the system.

        Returns:
            True if the package manager can be used, False otherwise.
        """

    def resolve_size(self, package: Package) -> int | None:
        """Compute the installed size of a package.

        The default measures the install path (file or directory tree).

        Returns:
            Size in bytes, or None if the package has no measurable path.
        """
        if not package.install_path:
            return None
        path = Path(package.install_path)
        if not path.exists():
            return None
        return calculate_size(path)

    def _run(self, args: list[str], *, allow_failure: bool = False) -> CommandResult:
        """Run a listing command.

        Args:
            args: Command and arguments.
            allow_failure: Return the result even on a non-zero exit code
                (some tools exit non-zero on warnings).

        Raises:
            ExternalToolError: If the command is missing, times out or fails.
        """
        command = " ".join(args)
        try:
            result = run_command(args, timeout=self._SCAN_TIMEOUT)
        except subprocess.TimeoutExpired as e:
            msg = f"{command} timed out after {self._SCAN_TIMEOUT:.0f}s"
            raise ExternalToolError(msg) from e
        except OSError as e:
            msg = f"{command} could not be run: {e}"
            raise ExternalToolError(msg) from e

        if not result.success and not allow_failure:
            msg = f"{command} failed: {result.error_text}"
            raise ExternalToolError(msg)
        return result

    def _load_json(self, text: str, command: str) -> Any:
        """Parse JSON output of a listing command.

        Raises:
            ExternalToolError: If the output is not valid JSON.
        """
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            msg = f"Failed to parse {command} output: {e}"
            raise ExternalToolError(msg) from e
