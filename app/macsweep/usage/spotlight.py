"""Spotlight metadata usage reader.

Reads kMDItemLastUsedDate and kMDItemUseCount of application bundles
with ``mdls``.
"""

import logging
import re
import subprocess
from collections.abc import Iterator, Sequence
from datetime import date, datetime

from macsweep.models.package import Package
from macsweep.models.usage import SignalKind, UsageEvidence
from macsweep.usage.base import UsageReader
from macsweep.utils.shell import command_exists, run_command

logger = logging.getLogger(__name__)

# "kMDItemLastUsedDate = 2024-01-18 21:35:48 +0000"
_LAST_USED_RE = re.compile(
    r"kMDItemLastUsedDate\s*=\s*(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) ([+-]\d{4})"
)
_USE_COUNT_RE = re.compile(r"kMDItemUseCount\s*=\s*(\d+)")


def parse_mdls_output(output: str) -> tuple[date | None, int | None]:
    """Parse ``mdls`` output into (last used day, use count).

    The timestamp is converted to the local calendar day. ``(null)``
    values yield None.
    """
    last_used: date | None = None
    match = _LAST_USED_RE.search(output)
    if match:
        stamp = datetime.strptime(f"{match.group(1)} {match.group(2)}", "%Y-%m-%d %H:%M:%S %z")
        last_used = stamp.astimezone().date()

    use_count: int | None = None
    count_match = _USE_COUNT_RE.search(output)
    if count_match:
        use_count = int(count_match.group(1))

    return last_used, use_count


class SpotlightReader(UsageReader):
    """Usage reader for application bundles indexed by Spotlight."""

    _MDLS_TIMEOUT: float = 10.0

    @property
    def kind(self) -> SignalKind:
        """Return SPOTLIGHT as the signal kind."""
        return SignalKind.SPOTLIGHT

    def is_available(self) -> bool:
        """Check if mdls is available (macOS only)."""
        return command_exists("mdls")

    def read(self, packages: Sequence[Package]) -> Iterator[UsageEvidence]:
        """Yield the Spotlight last-used day of every application bundle."""
        for package in packages:
            if not package.install_path or not package.install_path.endswith(".app"):
                continue

            args = [
                "mdls",
                "-name",
                "kMDItemLastUsedDate",
                "-name",
                "kMDItemUseCount",
                package.install_path,
            ]
            try:
                result = run_command(args, timeout=self._MDLS_TIMEOUT)
            except (subprocess.TimeoutExpired, OSError) as e:
                logger.warning("mdls failed for %s: %s", package.install_path, e)
                continue
            if not result.success:
                logger.debug("mdls failed for %s: %s", package.install_path, result.error_text)
                continue

            last_used, use_count = parse_mdls_output(result.stdout)
            if last_used is None:
                continue
            yield UsageEvidence(
                name=package.name,
                source=package.source,
                kind=SignalKind.SPOTLIGHT,
                event_date=last_used,
                detail={"use_count": use_count},
            )
