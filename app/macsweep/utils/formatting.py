"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

from __future__ import annotations

import sys
from datetime import date
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

from macsweep.core.theme import get_theme
from macsweep.models.analysis import Severity
from macsweep.utils.size import format_days_ago

if TYPE_CHECKING:
    from macsweep.models.analysis import Recommendation
    from macsweep.models.package import Package


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())

_SEVERITY_STYLES: dict[Severity, str] = {
    Severity.SAFE: "severity_safe",
    Severity.REVIEW: "severity_review",
    Severity.WARNING: "severity_warning",
    Severity.NONE: "severity_none",
}


def format_severity(severity: Severity) -> str:
    """Format a severity tier with its theme style."""
    style = _SEVERITY_STYLES[severity]
    return f"[{style}]{severity.value.upper()}[/]"


def format_package_name(pkg: Package) -> str:
    """Format a package name.

    Packages installed only as a dependency use an empty circle and muted
    styling; everything else is shown with a filled circle.
    """
    if pkg.is_dependency:
        return f"[package_dependency]○ {pkg.name}[/]"  # Empty circle
    return f"[package_requested]● {pkg.name}[/]"  # Filled circle


def create_package_table(title: str = "Installed Packages") -> Table:
    """Create a pre-configured table for displaying packages.

    The table uses zebra striping for improved readability.

    Args:
        title: Table title.

    Returns:
        Rich Table configured for package display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],  # Zebra striping for readability
    )
    table.add_column("Package", no_wrap=True)  # Style set per row
    table.add_column("Source", style="muted")
    table.add_column("Version", style="muted")
    table.add_column("Size", style="info", justify="right")
    table.add_column("Last Used", style="text")
    return table


def format_package_row(
    pkg: Package,
    last_used: date | None,
    today: date,
) -> tuple[str, str, str, str, str]:
    """Format a package as a table row with proper styling.

    Args:
        pkg: The registry package to format.
        last_used: Aggregated last-used day (None without evidence).
        today: Reference day for the relative "last used" text.

    Returns:
        Tuple of (name, source, version, size, last used) with Rich markup.
    """
    last = format_days_ago(last_used, today)
    if last_used is None:
        last = f"[muted]{last}[/]"
    return (
        format_package_name(pkg),
        pkg.source.value,
        pkg.version or "-",
        pkg.size_human,
        last,
    )


def create_recommendation_table(title: str = "Recommendations") -> Table:
    """Create a pre-configured table for displaying recommendations."""
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("Tier", width=8, justify="center")
    table.add_column("Package", no_wrap=True)
    table.add_column("Source", style="muted")
    table.add_column("Size", style="info", justify="right")
    table.add_column("Last Used", style="text")
    table.add_column("Reason", style="muted")
    return table


def format_recommendation_row(
    rec: Recommendation,
    today: date,
) -> tuple[str, str, str, str, str, str]:
    """Format a recommendation as a table row."""
    return (
        format_severity(rec.severity),
        format_package_name(rec.package),
        rec.package.source.value,
        rec.package.size_human,
        format_days_ago(rec.usage.last_used, today),
        rec.reason,
    )


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
