"""Backup manifest models for cleanup runs.

A BackupManifest is written before any removal of a cleanup run and
finalized with per-item outcomes once every attempt has finished. It is
the only input of the undo path.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from macsweep.models.package import Package, PackageKey, PackageSource


class CleanupStatus(str, Enum):
    """State of a cleanup run.

    Attributes:
        PLANNED: Plan computed, nothing attempted (dry-run reports end here).
        ATTEMPTING: Manifest written, removals in progress.
        COMPLETED: Every attempted removal succeeded.
        COMPLETED_WITH_FAILURES: At least one removal failed.
        ABORTED: Cancelled before any removal began.
    """

    PLANNED = "planned"
    ATTEMPTING = "attempting"
    COMPLETED = "completed"
    COMPLETED_WITH_FAILURES = "completed_with_failures"
    ABORTED = "aborted"


class OutcomeStatus(str, Enum):
    """Outcome of a single line item.

    Attributes:
        PENDING: Not attempted yet (only seen in manifests of interrupted runs).
        REMOVED: Removal (or restoration, in undo reports) succeeded.
        FAILED: The action failed; ``reason`` explains why.
        SKIPPED: The action was not attempted; ``reason`` explains why.
    """

    PENDING = "pending"
    REMOVED = "removed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True)
class ItemOutcome:
    """Outcome of one attempted action with an optional reason."""

    status: OutcomeStatus
    reason: str | None = None

    @classmethod
    def pending(cls) -> ItemOutcome:
        return cls(OutcomeStatus.PENDING)

    @classmethod
    def removed(cls) -> ItemOutcome:
        return cls(OutcomeStatus.REMOVED)

    @classmethod
    def failed(cls, reason: str) -> ItemOutcome:
        return cls(OutcomeStatus.FAILED, reason)

    @classmethod
    def skipped(cls, reason: str) -> ItemOutcome:
        return cls(OutcomeStatus.SKIPPED, reason)

    def __str__(self) -> str:
        if self.reason:
            return f"{self.status.value}({self.reason})"
        return self.status.value


@dataclass(frozen=True, slots=True)
class PackageSnapshot:
    """Pre-removal metadata snapshot of a package.

    Holds enough information to reinstall or recover the package and to
    re-insert it into the registry with its original ``first_seen``.
    """

    name: str
    source: PackageSource
    first_seen: datetime
    version: str | None = None
    install_path: str | None = None
    install_date: datetime | None = None
    size_bytes: int | None = None
    dependencies: tuple[str, ...] = field(default=())
    is_dependency: bool | None = None

    @property
    def key(self) -> PackageKey:
        """Return the identity of the snapshotted package."""
        return PackageKey(self.name, self.source)

    @classmethod
    def from_package(cls, package: Package) -> PackageSnapshot:
        """Capture the snapshot of a registry row."""
        return cls(
            name=package.name,
            source=package.source,
            first_seen=package.first_seen,
            version=package.version,
            install_path=package.install_path,
            install_date=package.install_date,
            size_bytes=package.size_bytes,
            dependencies=package.dependencies,
            is_dependency=package.is_dependency,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "name": self.name,
            "source": self.source.value,
            "first_seen": self.first_seen.isoformat(),
            "version": self.version,
            "install_path": self.install_path,
            "install_date": self.install_date.isoformat() if self.install_date else None,
            "size_bytes": self.size_bytes,
            "dependencies": list(self.dependencies),
            "is_dependency": self.is_dependency,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PackageSnapshot:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If the source or a timestamp is invalid.
        """
        install_date = data.get("install_date")
        return cls(
            name=data["name"],
            source=PackageSource(data["source"]),
            first_seen=datetime.fromisoformat(data["first_seen"]),
            version=data.get("version"),
            install_path=data.get("install_path"),
            install_date=datetime.fromisoformat(install_date) if install_date else None,
            size_bytes=data.get("size_bytes"),
            dependencies=tuple(data.get("dependencies", ())),
            is_dependency=data.get("is_dependency"),
        )


@dataclass(frozen=True, slots=True)
class BackupItem:
    """One line item of a cleanup run.

    Attributes:
        snapshot: Pre-removal metadata of the package.
        command: Removal command chosen from the operator table.
        outcome: Result of the removal attempt.
    """

    snapshot: PackageSnapshot
    command: tuple[str, ...] = field(default=())
    outcome: ItemOutcome = field(default_factory=ItemOutcome.pending)

    @property
    def key(self) -> PackageKey:
        """Return the identity of the package."""
        return self.snapshot.key

    def with_outcome(self, outcome: ItemOutcome) -> BackupItem:
        """Return a copy of this item with ``outcome`` recorded."""
        return replace(self, outcome=outcome)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "package": self.snapshot.to_dict(),
            "command": list(self.command),
            "outcome": self.outcome.status.value,
            "reason": self.outcome.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupItem:
        """Deserialize from dictionary."""
        return cls(
            snapshot=PackageSnapshot.from_dict(data["package"]),
            command=tuple(data.get("command", ())),
            outcome=ItemOutcome(OutcomeStatus(data["outcome"]), data.get("reason")),
        )


@dataclass(frozen=True, slots=True)
class BackupManifest:
    """Durable record of one cleanup run.

    Attributes:
        id: Timestamp-derived identifier (``cleanup_YYYYmmdd_HHMMSS_ffffff``),
            so that lexical order is chronological order.
        created_at: When the manifest was first written.
        status: State of the run when the manifest was last written.
        items: Ordered line items of the run.
        finished_at: When the run was finalized (None while attempting).
    """

    id: str
    created_at: datetime
    status: CleanupStatus
    items: tuple[BackupItem, ...]
    finished_at: datetime | None = None

    def __post_init__(self) -> None:
        """Validate manifest data after initialization."""
        if not self.id:
            msg = "Backup manifest ID cannot be empty"
            raise ValueError(msg)

    @property
    def removed(self) -> tuple[BackupItem, ...]:
        """Items whose removal succeeded."""
        return tuple(i for i in self.items if i.outcome.status == OutcomeStatus.REMOVED)

    @property
    def failed(self) -> tuple[BackupItem, ...]:
        """Items whose removal failed."""
        return tuple(i for i in self.items if i.outcome.status == OutcomeStatus.FAILED)

    @property
    def space_recovered(self) -> int:
        """Bytes freed by the removed items."""
        return sum(i.snapshot.size_bytes or 0 for i in self.removed)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "status": self.status.value,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "items": [item.to_dict() for item in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupManifest:
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If status or item data is invalid.
        """
        finished_at = data.get("finished_at")
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            status=CleanupStatus(data["status"]),
            items=tuple(BackupItem.from_dict(item) for item in data["items"]),
            finished_at=datetime.fromisoformat(finished_at) if finished_at else None,
        )

    def to_json(self) -> str:
        """Serialize to pretty-printed JSON."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, text: str) -> BackupManifest:
        """Deserialize from JSON text.

        Raises:
            json.JSONDecodeError: If the text is not valid JSON.
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        data = json.loads(text)
        if not isinstance(data, dict):
            msg = f"Backup manifest must be a JSON object, got {type(data).__name__}"
            raise ValueError(msg)
        return cls.from_dict(data)


def create_manifest_id(now: datetime) -> str:
    """Build a manifest identifier from the run timestamp."""
    return f"cleanup_{now:%Y%m%d_%H%M%S_%f}"
