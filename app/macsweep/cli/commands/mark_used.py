"""Mark-used command implementation.

Records a manual usage event, for packages whose use leaves no trace in
shell history or Spotlight (services, libraries loaded by other tools).
"""

from datetime import date
from typing import Annotated

import typer

from macsweep.cli.types import SourceChoice, get_settings, open_store, resolve_package
from macsweep.models.usage import SignalKind
from macsweep.utils.formatting import print_info, print_success


def mark_used(
    name: Annotated[str, typer.Argument(help="Package name.")],
    source: Annotated[
        SourceChoice,
        typer.Option(
            "--source",
            "-s",
            help="Source of the package when the name is ambiguous.",
            case_sensitive=False,
        ),
    ] = SourceChoice.ALL,
) -> None:
    """Record that a package was used today.

    Examples:
        macsweep mark-used postgresql@16
        macsweep mark-used black --source pipx
    """
    settings = get_settings()
    with open_store(settings) as store:
        pkg = resolve_package(store, name, source)
        stored = store.record_usage_event(pkg.key, SignalKind.MANUAL, date.today(), {})

    if stored:
        print_success(f"Marked {pkg.key} as used today.")
    else:
        print_info(f"{pkg.key} was already marked as used today.")
