"""Analysis result models.

Dependency classifications and removal recommendations derived from
the registry and usage profiles. None of these are persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from macsweep.models.package import Package, PackageKey
from macsweep.models.usage import UsageProfile


class DependencyClass(str, Enum):
    """Dependency classification of a package.

    Attributes:
        LEAF: Nothing installed depends on the package.
        DEPENDENCY: At least one installed package depends on it.
        ORPHAN: Installed only as a dependency, and no installed package
            depends on it any more.
        BROKEN_DEPENDENCY: Declares a dependency that is not installed.
    """

    LEAF = "leaf"
    DEPENDENCY = "dependency"
    ORPHAN = "orphan"
    BROKEN_DEPENDENCY = "broken_dependency"


@dataclass(frozen=True, slots=True)
class DependencyReport:
    """Dependency analysis result for one package.

    Attributes:
        key: The analyzed package.
        classification: Resulting dependency class.
        dependents: Installed packages that depend on this one.
        missing: Declared dependency names not found in the registry.
    """

    key: PackageKey
    classification: DependencyClass
    dependents: tuple[PackageKey, ...] = field(default=())
    missing: tuple[str, ...] = field(default=())

    @property
    def is_orphan(self) -> bool:
        """Check if the package is an orphaned dependency."""
        return self.classification == DependencyClass.ORPHAN


class Severity(str, Enum):
    """Removal recommendation tier.

    Attributes:
        SAFE: Orphaned dependency, nothing installed needs it.
        REVIEW: No usage evidence, or unused beyond the review threshold.
        WARNING: Unused beyond the warning threshold.
        NONE: Not recommended for removal.
    """

    SAFE = "safe"
    REVIEW = "review"
    WARNING = "warning"
    NONE = "none"

    @property
    def rank(self) -> int:
        """Strength of the recommendation (higher is stronger)."""
        return _SEVERITY_RANK[self]

    def at_least(self, other: Severity) -> bool:
        """Check whether this tier is at least as strong as ``other``."""
        return self.rank >= other.rank


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.SAFE: 3,
    Severity.REVIEW: 2,
    Severity.WARNING: 1,
    Severity.NONE: 0,
}

# Presentation order of tiers (strongest first)
SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.SAFE,
    Severity.REVIEW,
    Severity.WARNING,
    Severity.NONE,
)


@dataclass(frozen=True, slots=True)
class Recommendation:
    """Classified and scored package.

    Attributes:
        package: Registry row of the package.
        severity: Recommendation tier.
        reason: Human-readable explanation of the tier.
        usage: Aggregated usage profile.
        dependency: Dependency analysis result.
    """

    package: Package
    severity: Severity
    reason: str
    usage: UsageProfile
    dependency: DependencyReport

    @property
    def key(self) -> PackageKey:
        """Return the identity of the recommended package."""
        return self.package.key

    @property
    def size_recoverable(self) -> int:
        """Bytes freed by removing the package (0 when unknown)."""
        return self.package.size_bytes or 0

    @property
    def is_candidate(self) -> bool:
        """Check if the package is recommended for removal at all."""
        return self.severity != Severity.NONE

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            **self.package.to_dict(),
            "severity": self.severity.value,
            "reason": self.reason,
            "last_used": self.usage.last_used.isoformat() if self.usage.last_used else None,
            "last_used_signal": self.usage.signal.value if self.usage.signal else None,
            "dependency_class": self.dependency.classification.value,
            "dependents": [key.name for key in self.dependency.dependents],
            "missing_dependencies": list(self.dependency.missing),
        }


@dataclass(frozen=True, slots=True)
class TierSummary:
    """Candidate count and recoverable bytes for one tier."""

    count: int = 0
    size_bytes: int = 0


@dataclass(frozen=True, slots=True)
class RecommendationSummary:
    """Aggregate over a classified package set.

    Attributes:
        tiers: Per-tier totals for the candidate tiers (safe, review, warning).
        total: Totals over all candidate tiers.
    """

    tiers: dict[Severity, TierSummary]
    total: TierSummary

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "tiers": {
                severity.value: {"count": tier.count, "size_bytes": tier.size_bytes}
                for severity, tier in self.tiers.items()
            },
            "total": {"count": self.total.count, "size_bytes": self.total.size_bytes},
        }
