"""Scan run model.

A ScanRun is the immutable record of one scan invocation as stored in
the evidence store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from macsweep.models.package import PackageSource


@dataclass(frozen=True, slots=True)
class ScanScope:
    """Requested scope of a scan.

    Attributes:
        kind: "full", "quick" or "source".
        source: The single source scanned when kind is "source".
    """

    kind: str
    source: PackageSource | None = None

    def __post_init__(self) -> None:
        """Validate scope data after initialization."""
        if self.kind not in ("full", "quick", "source"):
            msg = f"Unknown scan scope: {self.kind}"
            raise ValueError(msg)
        if (self.kind == "source") != (self.source is not None):
            msg = "A source is required for (and only for) single-source scans"
            raise ValueError(msg)

    @classmethod
    def full(cls) -> ScanScope:
        """Scope for a full scan of every available source."""
        return cls("full")

    @classmethod
    def quick(cls) -> ScanScope:
        """Scope for a scan that skips usage collection and pruning."""
        return cls("quick")

    @classmethod
    def single(cls, source: PackageSource) -> ScanScope:
        """Scope for a scan of one source."""
        return cls("source", source)

    @classmethod
    def parse(cls, value: str) -> ScanScope:
        """Parse the stored representation (``full``, ``quick``, ``source:npm``)."""
        if value.startswith("source:"):
            return cls.single(PackageSource(value.split(":", 1)[1]))
        return cls(value)

    @property
    def may_prune(self) -> bool:
        """Only full scans may remove packages that were not re-observed."""
        return self.kind == "full"

    def __str__(self) -> str:
        if self.source is not None:
            return f"source:{self.source.value}"
        return self.kind


@dataclass(frozen=True, slots=True)
class ScanRun:
    """Record of a single scan invocation.

    Attributes:
        id: Row identifier assigned by the store.
        timestamp: When the scan finished.
        scope: Requested scope of the scan.
        packages_found: Number of records reconciled.
        inserted: Packages seen for the first time.
        updated: Known packages whose mutable fields changed.
        pruned: Packages removed because a full scan no longer found them.
        duration_ms: Wall-clock duration in milliseconds.
    """

    id: int
    timestamp: datetime
    scope: ScanScope
    packages_found: int
    inserted: int = 0
    updated: int = 0
    pruned: int = 0
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "scope": str(self.scope),
            "packages_found": self.packages_found,
            "inserted": self.inserted,
            "updated": self.updated,
            "pruned": self.pruned,
            "duration_ms": self.duration_ms,
        }
