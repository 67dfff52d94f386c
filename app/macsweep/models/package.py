"""Package models for registry reconciliation.

This module defines the core data structures for representing packages
reported by scanners (Homebrew, npm, pip, pipx, cargo, gem, Applications)
and the packages stored in the registry.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, NamedTuple


class PackageSource(str, Enum):
    """Enumeration of supported package sources."""

    HOMEBREW = "homebrew"
    HOMEBREW_CASK = "homebrew_cask"
    NPM = "npm"
    PIP = "pip"
    PIPX = "pipx"
    CARGO = "cargo"
    GEM = "gem"
    APPLICATIONS = "applications"

    @property
    def label(self) -> str:
        """Return a human-readable source label."""
        return _SOURCE_LABELS[self]


_SOURCE_LABELS: dict[PackageSource, str] = {
    PackageSource.HOMEBREW: "Homebrew",
    PackageSource.HOMEBREW_CASK: "Homebrew Cask",
    PackageSource.NPM: "npm",
    PackageSource.PIP: "pip",
    PackageSource.PIPX: "pipx",
    PackageSource.CARGO: "cargo",
    PackageSource.GEM: "gem",
    PackageSource.APPLICATIONS: "Applications",
}


class PackageKey(NamedTuple):
    """Registry identity of a package: ``(name, source)``."""

    name: str
    source: PackageSource

    def __str__(self) -> str:
        return f"{self.name} ({self.source.value})"


@dataclass(frozen=True, slots=True)
class RawPackage:
    """A package record as reported by a scanner.

    Attributes:
        name: Package name (e.g., 'ripgrep', 'Visual Studio Code').
        source: Package manager or directory that reported the package.
        version: Installed version string (if reported).
        install_date: Source-reported installation time (if available).
        install_path: Binary, bundle or prefix path (if known).
        size_bytes: Installed size in bytes (if already computed).
        dependencies: Names of declared dependencies within the same source.
        is_dependency: True if installed only as a dependency, False if
            installed on request, None if the source has no such flag.
    """

    name: str
    source: PackageSource
    version: str | None = None
    install_date: datetime | None = None
    install_path: str | None = None
    size_bytes: int | None = None
    dependencies: tuple[str, ...] = field(default=())
    is_dependency: bool | None = None

    def __post_init__(self) -> None:
        """Validate package data after initialization."""
        if not self.name:
            msg = "Package name cannot be empty"
            raise ValueError(msg)
        if self.size_bytes is not None and self.size_bytes < 0:
            msg = f"Package size cannot be negative, got {self.size_bytes}"
            raise ValueError(msg)
        # Stored once per name, first occurrence wins
        object.__setattr__(self, "dependencies", tuple(dict.fromkeys(self.dependencies)))

    @property
    def key(self) -> PackageKey:
        """Return the registry identity of this package."""
        return PackageKey(self.name, self.source)


@dataclass(frozen=True, slots=True)
class Package:
    """A package as stored in the registry.

    ``first_seen`` is assigned by the registry on first insertion and never
    changes afterwards. ``last_seen`` is bumped each time a scan re-observes
    the package.
    """

    name: str
    source: PackageSource
    first_seen: datetime
    last_seen: datetime
    version: str | None = None
    install_path: str | None = None
    install_date: datetime | None = None
    size_bytes: int | None = None
    dependencies: tuple[str, ...] = field(default=())
    is_dependency: bool | None = None

    @property
    def key(self) -> PackageKey:
        """Return the registry identity of this package."""
        return PackageKey(self.name, self.source)

    @property
    def size_human(self) -> str:
        """Return human-readable size string."""
        from macsweep.utils.size import format_size

        if self.size_bytes is None:
            return "unknown"
        return format_size(self.size_bytes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "source": self.source.value,
            "version": self.version,
            "install_path": self.install_path,
            "install_date": self.install_date.isoformat() if self.install_date else None,
            "first_seen": self.first_seen.isoformat(),
            "last_seen": self.last_seen.isoformat(),
            "size_bytes": self.size_bytes,
            "dependencies": list(self.dependencies),
            "is_dependency": self.is_dependency,
        }
