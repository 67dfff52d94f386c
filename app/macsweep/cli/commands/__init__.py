"""CLI commands for macsweep.

This package contains all subcommand implementations.
"""

from macsweep.cli.commands import (
    clean,
    config,
    history,
    info,
    listing,
    mark_used,
    recommend,
    scan,
    stats,
    undo,
)

__all__ = [
    "clean",
    "config",
    "history",
    "info",
    "listing",
    "mark_used",
    "recommend",
    "scan",
    "stats",
    "undo",
]
