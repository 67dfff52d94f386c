"""File access time usage reader.

Uses the access time of a package's installed binary as a weak usage
signal. Volumes mounted with noatime (or relatime) make it unreliable,
so it ranks below Spotlight and shell history.
"""

import logging
from collections.abc import Iterator, Sequence
from datetime import datetime
from pathlib import Path

from macsweep.models.package import Package, PackageSource
from macsweep.models.usage import SignalKind, UsageEvidence
from macsweep.usage.base import UsageReader

logger = logging.getLogger(__name__)

# Directory atimes change on every listing and say nothing about use
_FILE_SOURCES = frozenset({PackageSource.HOMEBREW, PackageSource.CARGO})


class AccessTimeReader(UsageReader):
    """Usage reader based on binary access times."""

    @property
    def kind(self) -> SignalKind:
        """Return ATIME as the signal kind."""
        return SignalKind.ATIME

    def is_available(self) -> bool:
        """File access times are always readable."""
        return True

    def read(self, packages: Sequence[Package]) -> Iterator[UsageEvidence]:
        """Yield the access day of every package with an installed binary."""
        for package in packages:
            if package.source not in _FILE_SOURCES or not package.install_path:
                continue
            path = Path(package.install_path)
            try:
                stat = path.stat()
            except OSError as e:
                logger.debug("Cannot stat %s: %s", path, e)
                continue
            if not path.is_file():
                continue

            yield UsageEvidence(
                name=package.name,
                source=package.source,
                kind=SignalKind.ATIME,
                event_date=datetime.fromtimestamp(stat.st_atime).date(),
                detail={"path": str(path)},
            )
