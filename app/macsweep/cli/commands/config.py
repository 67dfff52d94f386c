"""Config commands.

Provides commands to show the effective settings and to create the
settings file with its defaults.
"""

import json
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.table import Table

from macsweep.cli.types import get_settings
from macsweep.core.config import ConfigError, Settings, save_settings
from macsweep.core.paths import ensure_config_dir, get_settings_path
from macsweep.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show or initialize the configuration.",
    no_args_is_help=True,
)


@app.command()
def show(
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show the effective settings."""
    settings = get_settings()
    path = get_settings_path()

    if json_output:
        data = settings.model_dump(mode="json")
        data["effective_database_path"] = str(settings.effective_database_path)
        data["effective_backup_dir"] = str(settings.effective_backup_dir)
        console.print_json(json.dumps(data))
        return

    table = Table(show_header=False, border_style="border", title="Settings")
    table.add_column("Setting", style="bold_header")
    table.add_column("Value")

    table.add_row("Config file", f"{path}" if path.exists() else f"{path} [muted](not created)[/]")
    table.add_row("warning_threshold_days", str(settings.warning_threshold_days))
    table.add_row("review_threshold_days", str(settings.review_threshold_days))
    table.add_row("max_concurrency", str(settings.max_concurrency))
    table.add_row("command_timeout_seconds", str(settings.command_timeout_seconds))
    table.add_row("database_path", str(settings.effective_database_path))
    table.add_row("backup_dir", str(settings.effective_backup_dir))
    console.print(table)


@app.command()
def init(
    warning_days: Annotated[
        int | None,
        typer.Option(
            "--warning-days",
            help="Days without use before a package is flagged.",
        ),
    ] = None,
    review_days: Annotated[
        int | None,
        typer.Option(
            "--review-days",
            help="Days without use before removal is recommended for review.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite an existing config file.",
        ),
    ] = False,
) -> None:
    """Create the config file with default settings."""
    path = get_settings_path()
    if path.exists() and not force:
        print_info(f"Config already exists: {path} (use --force to overwrite)")
        raise typer.Exit(code=1)

    overrides: dict[str, int] = {}
    if warning_days is not None:
        overrides["warning_threshold_days"] = warning_days
    if review_days is not None:
        overrides["review_threshold_days"] = review_days

    try:
        settings = Settings.model_validate(overrides)
    except ValidationError as e:
        print_error(f"Invalid settings: {e}")
        raise typer.Exit(code=1) from e

    try:
        ensure_config_dir()
    except RuntimeError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    try:
        saved = save_settings(settings, path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_success(f"Config written to {saved}")
