"""macOS application bundle scanner.

Scans the top level of /Applications and ~/Applications for .app bundles
and reads their version from Contents/Info.plist.
"""

import logging
import plistlib
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from pathlib import Path

from macsweep.models.package import PackageSource, RawPackage
from macsweep.scanners.base import Scanner

logger = logging.getLogger(__name__)


def default_app_dirs() -> list[Path]:
    """Return the application directories scanned by default."""
    return [Path("/Applications"), Path.home() / "Applications"]


def read_bundle_version(bundle: Path) -> str | None:
    """Read the version of an application bundle from its Info.plist.

    Returns:
        CFBundleShortVersionString, falling back to CFBundleVersion.
    """
    plist_path = bundle / "Contents" / "Info.plist"
    try:
        with open(plist_path, "rb") as f:
            info = plistlib.load(f)
    except FileNotFoundError:
        return None
    except (OSError, plistlib.InvalidFileException, ValueError) as e:
        logger.debug("Cannot read %s: %s", plist_path, e)
        return None

    version = info.get("CFBundleShortVersionString") or info.get("CFBundleVersion")
    return str(version).strip() if version else None


class ApplicationsScanner(Scanner):
    """Scanner for application bundles.

    Attributes:
        app_dirs: Directories whose top-level .app bundles are reported.
    """

    def __init__(self, app_dirs: Sequence[Path] | None = None) -> None:
        """Initialize the scanner.

        Args:
            app_dirs: Directories to scan (default: /Applications, ~/Applications).
        """
        self._app_dirs = list(app_dirs) if app_dirs is not None else default_app_dirs()

    @property
    def source(self) -> PackageSource:
        """Return APPLICATIONS as the package source."""
        return PackageSource.APPLICATIONS

    @property
    def app_dirs(self) -> list[Path]:
        return self._app_dirs

    def is_available(self) -> bool:
        """Check if any application directory exists."""
        return any(path.is_dir() for path in self._app_dirs)

    def scan(self) -> Iterator[RawPackage]:
        """Scan all application bundles.

        Yields:
            RawPackage for each top-level .app bundle.
        """
        for app_dir in self._app_dirs:
            if not app_dir.is_dir():
                continue
            try:
                entries = sorted(app_dir.iterdir())
            except OSError as e:
                logger.warning("Cannot read %s: %s", app_dir, e)
                continue

            for bundle in entries:
                if bundle.suffix != ".app" or not bundle.is_dir():
                    continue
                yield RawPackage(
                    name=bundle.stem,
                    source=PackageSource.APPLICATIONS,
                    version=read_bundle_version(bundle),
                    install_date=_creation_time(bundle),
                    install_path=str(bundle),
                )


def _creation_time(path: Path) -> datetime | None:
    """Return the birth time of a path where the platform records one."""
    try:
        stat = path.stat()
    except OSError:
        return None
    birthtime = getattr(stat, "st_birthtime", None)
    if birthtime is None:
        return None
    return datetime.fromtimestamp(birthtime, UTC)
