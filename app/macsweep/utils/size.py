"""Size and age formatting helpers.

Directory sizes are computed with a plain walk that never follows
symlinks, so an application bundle is counted once.
"""

import logging
import os
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)


def calculate_size(path: str | Path) -> int:
    """Return the size in bytes of a file or directory tree.

    Unreadable entries are skipped. Symlinks are never followed.

    Args:
        path: File or directory to measure.

    Returns:
        Total size in bytes (0 if the path does not exist).
    """
    root = Path(path)
    if root.is_symlink():
        return 0
    if root.is_file():
        try:
            return root.stat().st_size
        except OSError:
            return 0

    total = 0
    for dirpath, _dirnames, filenames in os.walk(root, followlinks=False):
        for filename in filenames:
            file_path = os.path.join(dirpath, filename)
            if os.path.islink(file_path):
                continue
            try:
                total += os.path.getsize(file_path)
            except OSError as e:
                logger.debug("Cannot stat %s: %s", file_path, e)
    return total


def format_size(size_bytes: int) -> str:
    """Convert bytes to a human-readable string (e.g. ``"1.5 MB"``)."""
    size = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"


def format_days_ago(day: date | None, today: date) -> str:
    """Describe how long ago ``day`` was (``"never"`` for None)."""
    if day is None:
        return "never"
    days = (today - day).days
    if days <= 0:
        return "today"
    if days == 1:
        return "yesterday"
    if days < 60:
        return f"{days} days ago"
    if days < 730:
        return f"{days // 30} months ago"
    return f"{days // 365} years ago"
