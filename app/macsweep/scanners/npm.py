"""npm global package scanner implementation.

Scans globally installed packages using ``npm list -g --depth=0 --json``.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

from macsweep.models.package import PackageSource, RawPackage
from macsweep.scanners.base import Scanner
from macsweep.utils.shell import command_exists

logger = logging.getLogger(__name__)


class NpmScanner(Scanner):
    """Scanner for global npm packages.

    npm itself is skipped. Packages install into ``$(npm root -g)/<name>``.
    """

    _LIST_COMMAND = ["npm", "list", "-g", "--depth=0", "--json"]

    @property
    def source(self) -> PackageSource:
        """Return NPM as the package source."""
        return PackageSource.NPM

    def is_available(self) -> bool:
        """Check if npm is available."""
        return command_exists("npm")

    def scan(self) -> Iterator[RawPackage]:
        """Scan all global npm packages.

        Yields:
            RawPackage for each global package.

        Raises:
            ExternalToolError: If npm output cannot be parsed.
        """
        # npm list exits non-zero on peer dependency warnings; parse anyway
        result = self._run(self._LIST_COMMAND, allow_failure=True)
        data = self._load_json(result.stdout or "{}", "npm list")
        dependencies = data.get("dependencies") if isinstance(data, dict) else None
        if not dependencies:
            return

        root = self._global_root()
        for name, info in sorted(dependencies.items()):
            if name == "npm":
                continue
            version = info.get("version") if isinstance(info, dict) else None
            yield RawPackage(
                name=name,
                source=PackageSource.NPM,
                version=version,
                install_path=str(root / name) if root is not None else None,
            )

    def _global_root(self) -> Path | None:
        result = self._run(["npm", "root", "-g"], allow_failure=True)
        root = result.stdout.strip()
        if not result.success or not root:
            logger.debug("npm root -g failed: %s", result.error_text)
            return None
        return Path(root)
