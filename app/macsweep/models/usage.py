"""Usage evidence models.

Usage readers (shell history, Spotlight, file access times, manual marks)
yield UsageEvidence records. The store keeps at most one UsageEvent per
package, signal kind and calendar day. UsageProfile is the derived
last-used estimate for one package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from macsweep.models.package import PackageKey, PackageSource


class SignalKind(str, Enum):
    """Kind of usage signal.

    Attributes:
        SHELL_HISTORY: Command invocation found in a shell history file.
        SPOTLIGHT: kMDItemLastUsedDate reported by Spotlight.
        ATIME: Access time of the installed binary (unreliable with noatime).
        MANUAL: User override recorded with ``macsweep mark-used``.
    """

    SHELL_HISTORY = "shell_history"
    SPOTLIGHT = "spotlight"
    ATIME = "atime"
    MANUAL = "manual"

    @property
    def confidence(self) -> int:
        """Confidence rank used to break ties on equal dates (higher wins)."""
        return _CONFIDENCE[self]


_CONFIDENCE: dict[SignalKind, int] = {
    SignalKind.SPOTLIGHT: 4,
    SignalKind.SHELL_HISTORY: 3,
    SignalKind.ATIME: 2,
    SignalKind.MANUAL: 1,
}


@dataclass(frozen=True, slots=True)
class UsageEvidence:
    """A usage observation produced by a usage reader.

    Attributes:
        name: Package name the evidence refers to.
        source: Source of the package the evidence refers to.
        kind: Signal kind that produced the observation.
        event_date: Day on which the package was used.
        detail: Opaque signal-specific payload (counts, raw values).
    """

    name: str
    source: PackageSource
    kind: SignalKind
    event_date: date
    detail: dict[str, Any] = field(default_factory=lambda: {})

    @property
    def key(self) -> PackageKey:
        """Return the identity of the package this evidence refers to."""
        return PackageKey(self.name, self.source)


@dataclass(frozen=True, slots=True)
class UsageEvent:
    """A stored usage event."""

    key: PackageKey
    kind: SignalKind
    event_date: date
    detail: dict[str, Any] = field(default_factory=lambda: {})


@dataclass(frozen=True, slots=True)
class UsageProfile:
    """Aggregated last-used estimate for one package.

    Attributes:
        key: The package the profile belongs to.
        last_used: Most recent event date across all signals, or None when
            there is no evidence at all.
        signal: Signal kind of the winning event (highest confidence when
            several signals share the most recent date).
        signal_dates: Most recent date observed per signal kind.
        event_count: Number of stored events for the package.
    """

    key: PackageKey
    last_used: date | None = None
    signal: SignalKind | None = None
    signal_dates: dict[SignalKind, date] = field(default_factory=lambda: {})
    event_count: int = 0

    @property
    def has_evidence(self) -> bool:
        """Check whether any usage evidence exists for the package."""
        return self.last_used is not None

    @property
    def confidence(self) -> int:
        """Confidence rank of the winning signal (0 without evidence)."""
        return self.signal.confidence if self.signal is not None else 0

    def days_since_used(self, today: date) -> int | None:
        """Return days elapsed since last use, or None without evidence."""
        if self.last_used is None:
            return None
        return (today - self.last_used).days
