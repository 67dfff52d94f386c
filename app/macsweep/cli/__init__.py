"""CLI package for macsweep.

This package contains the Typer application and all subcommands.
"""

from macsweep.cli.main import app

__all__ = ["app"]
