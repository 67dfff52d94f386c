"""Usage readers for collecting last-used evidence.

This module exports the reader classes used during a full scan.
"""

from macsweep.usage.atime import AccessTimeReader
from macsweep.usage.base import UsageReader
from macsweep.usage.shell_history import ShellHistoryReader
from macsweep.usage.spotlight import SpotlightReader


def get_readers() -> list[UsageReader]:
    """Instantiate every usage reader."""
    return [ShellHistoryReader(), SpotlightReader(), AccessTimeReader()]


__all__ = [
    "AccessTimeReader",
    "ShellHistoryReader",
    "SpotlightReader",
    "UsageReader",
    "get_readers",
]
