"""Shared types and utilities for CLI commands.

This module provides common enums and helper functions used across
multiple CLI command modules to avoid code duplication.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from enum import Enum

import typer

from macsweep.core.config import ConfigError, Settings, load_settings
from macsweep.core.errors import StoreError
from macsweep.core.store import EvidenceStore
from macsweep.models.package import Package, PackageSource
from macsweep.utils.formatting import print_error


class SourceChoice(str, Enum):
    """Available package sources for CLI commands."""

    HOMEBREW = "homebrew"
    HOMEBREW_CASK = "homebrew_cask"
    NPM = "npm"
    PIP = "pip"
    PIPX = "pipx"
    CARGO = "cargo"
    GEM = "gem"
    APPLICATIONS = "applications"
    ALL = "all"

    def to_source(self) -> PackageSource | None:
        """Return the matching package source (None for "all")."""
        if self == SourceChoice.ALL:
            return None
        return PackageSource(self.value)


class OutputFormat(str, Enum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"
    CSV = "csv"


def get_settings() -> Settings:
    """Load settings, exiting with code 1 on invalid configuration."""
    try:
        return load_settings()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


@contextmanager
def open_store(settings: Settings) -> Iterator[EvidenceStore]:
    """Open the configured evidence store for the duration of a command.

    Exits with code 1 if the store cannot be opened.
    """
    try:
        store = EvidenceStore.open(settings.effective_database_path)
    except StoreError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    with store:
        yield store


def resolve_package(store: EvidenceStore, name: str, source: SourceChoice) -> Package:
    """Look up a single package by name, exiting on missing or ambiguous names.

    Args:
        store: Evidence store to search.
        name: Package name (case-insensitive).
        source: Restrict the lookup to one source.

    Returns:
        The matching registry package.
    """
    matches = store.find_packages(name, source.to_source())
    if not matches:
        print_error(f"Package not found: {name}")
        raise typer.Exit(code=1)
    if len(matches) > 1:
        sources = ", ".join(pkg.source.value for pkg in matches)
        print_error(f"'{name}' is installed from several sources ({sources}). Use --source.")
        raise typer.Exit(code=1)
    return matches[0]
