"""RubyGems scanner implementation.

Scans locally installed gems using ``gem list --local``. Gems that only
exist as default gems of the Ruby installation are skipped.
"""

import logging
import re
from collections.abc import Iterator

from macsweep.models.package import PackageSource, RawPackage
from macsweep.scanners.base import Scanner
from macsweep.utils.shell import command_exists

logger = logging.getLogger(__name__)

# "json (2.7.1, default: 2.6.3)"
_GEM_RE = re.compile(r"^(\S+)\s+\((.*)\)$")


class GemScanner(Scanner):
    """Scanner for Ruby gems."""

    @property
    def source(self) -> PackageSource:
        """Return GEM as the package source."""
        return PackageSource.GEM

    def is_available(self) -> bool:
        """Check if gem is available."""
        return command_exists("gem")

    def scan(self) -> Iterator[RawPackage]:
        """Scan all locally installed gems.

        Yields:
            RawPackage for each user-installed gem (newest version).

        Raises:
            ExternalToolError: If gem list fails.
        """
        result = self._run(["gem", "list", "--local"])
        for line in result.stdout.splitlines():
            package = self._parse_gem_line(line)
            if package is not None:
                yield package

    def _parse_gem_line(self, line: str) -> RawPackage | None:
        """Parse a single line of ``gem list`` output.

        Returns:
            RawPackage if the gem has a user-installed version, None otherwise.
        """
        match = _GEM_RE.match(line.strip())
        if match is None:
            if line.strip() and not line.startswith("***"):
                logger.debug("Skipping unrecognized gem line: %r", line[:100])
            return None

        name, versions_text = match.groups()
        versions = [
            v.strip()
            for v in versions_text.split(",")
            if v.strip() and not v.strip().startswith("default:")
        ]
        if not versions:
            return None

        return RawPackage(
            name=name,
            source=PackageSource.GEM,
            # Platform gems list "1.15.4 arm64-darwin"
            version=versions[0].split()[0],
        )
