"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from macsweep import __version__
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
from macsweep.utils.formatting import err_console

# Create main Typer app
app = typer.Typer(
    name="macsweep",
    help="Find and remove unused software on macOS.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"macsweep version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Route library logging to stderr through Rich.

    Args:
        verbose: Show debug messages.
        quiet: Only show errors.
    """
    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=verbose, rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
) -> None:
    """macsweep - Find and remove unused software on macOS.

    Inventories Homebrew, npm, pip, pipx, cargo, gem and /Applications,
    estimates when each package was last used and removes what is no
    longer needed. Every cleanup can be undone.
    """
    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    configure_logging(verbose, quiet)


# Register commands
app.add_typer(scan.app, name="scan")
app.add_typer(listing.app, name="list")
app.command(name="info")(info.info)
app.command(name="history")(history.history)
app.add_typer(recommend.app, name="recommend")
app.add_typer(stats.app, name="stats")
app.add_typer(clean.app, name="clean")
app.command(name="undo")(undo.undo)
app.command(name="mark-used")(mark_used.mark_used)
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
