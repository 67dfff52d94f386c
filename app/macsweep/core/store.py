"""Evidence store backed by SQLite.

This module provides the EvidenceStore class that persists the package
registry, usage events, scan runs, cleanup records and source leases.

Writes are serialized through a single lock (single-writer discipline),
and each per-identity upsert runs in its own transaction. Readers get
immutable snapshots, so analysis never observes a half-written row.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from macsweep.core.errors import PackageNotFoundError, StoreError
from macsweep.models.backup import PackageSnapshot
from macsweep.models.package import Package, PackageKey, PackageSource, RawPackage
from macsweep.models.scan_result import ScanRun, ScanScope
from macsweep.models.usage import SignalKind, UsageEvent

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

# Lifetime of a lease acquired without an explicit ttl
DEFAULT_LEASE_TTL = timedelta(hours=1)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS packages (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL,
    source TEXT NOT NULL,
    version TEXT,
    install_path TEXT,
    install_date TEXT,
    size_bytes INTEGER,
    is_dependency INTEGER,
    first_seen TEXT NOT NULL,
    last_seen TEXT NOT NULL,
    UNIQUE(name, source)
);

CREATE TABLE IF NOT EXISTS package_dependencies (
    id INTEGER PRIMARY KEY,
    package_id INTEGER NOT NULL REFERENCES packages(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    dependency_name TEXT NOT NULL,
    UNIQUE(package_id, dependency_name)
);

CREATE TABLE IF NOT EXISTS usage_events (
    id INTEGER PRIMARY KEY,
    package_id INTEGER NOT NULL REFERENCES packages(id) ON DELETE CASCADE,
    event_type TEXT NOT NULL,
    event_date TEXT NOT NULL,
    details TEXT,
    UNIQUE(package_id, event_type, event_date)
);

CREATE TABLE IF NOT EXISTS scans (
    id INTEGER PRIMARY KEY,
    scan_date TEXT NOT NULL,
    scan_type TEXT NOT NULL,
    packages_found INTEGER NOT NULL,
    inserted INTEGER NOT NULL DEFAULT 0,
    updated INTEGER NOT NULL DEFAULT 0,
    pruned INTEGER NOT NULL DEFAULT 0,
    duration_ms INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS cleanups (
    id INTEGER PRIMARY KEY,
    manifest_id TEXT NOT NULL,
    cleanup_date TEXT NOT NULL,
    status TEXT NOT NULL,
    packages_removed INTEGER NOT NULL,
    packages_failed INTEGER NOT NULL,
    space_recovered INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS source_leases (
    source TEXT NOT NULL,
    owner TEXT NOT NULL,
    acquired_at TEXT NOT NULL,
    expires_at TEXT,
    PRIMARY KEY (source, owner)
);

CREATE INDEX IF NOT EXISTS idx_packages_name ON packages(name);
CREATE INDEX IF NOT EXISTS idx_packages_source ON packages(source);
CREATE INDEX IF NOT EXISTS idx_usage_events_package_id ON usage_events(package_id);
CREATE INDEX IF NOT EXISTS idx_usage_events_event_date ON usage_events(event_date);
CREATE INDEX IF NOT EXISTS idx_package_dependencies_package_id
    ON package_dependencies(package_id);
"""

_PACKAGE_COLUMNS = (
    "id, name, source, version, install_path, install_date, size_bytes, "
    "is_dependency, first_seen, last_seen"
)


class UpsertOutcome(str, Enum):
    """Result of reconciling one raw package record."""

    INSERTED = "inserted"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True, slots=True)
class CleanupRecord:
    """Summary row of one applied cleanup run."""

    manifest_id: str
    timestamp: datetime
    status: str
    packages_removed: int
    packages_failed: int
    space_recovered: int


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_text(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _to_flag(value: bool | None) -> int | None:
    return None if value is None else int(value)


class EvidenceStore:
    """Durable record of packages, usage events and scan runs.

    Storage location: ~/.local/share/macsweep/macsweep.db, or ``":memory:"``
    for an ephemeral store.

    The store is passed explicitly to every component. All access to the
    shared connection goes through ``_lock``; the lock is never held while
    an external command runs.

    Example:
        >>> with EvidenceStore.open(":memory:") as store:
        ...     store.upsert_package(RawPackage("jq", PackageSource.HOMEBREW))
        <UpsertOutcome.INSERTED: 'inserted'>
    """

    def __init__(self, connection: sqlite3.Connection, path: str) -> None:
        """Initialize the store around an open connection.

        Use :meth:`open` instead of calling this directly.
        """
        self._conn = connection
        self._path = path
        self._lock = threading.RLock()

    @classmethod
    def open(cls, path: Path | str = MEMORY) -> EvidenceStore:
        """Open (or create) an evidence store and apply the schema.

        Args:
            path: Database file path, or ``":memory:"``.

        Returns:
            Ready-to-use EvidenceStore.

        Raises:
            StoreError: If the database cannot be opened or initialized.
        """
        location = str(path)
        try:
            if location != MEMORY:
                Path(location).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(location, check_same_thread=False)
            conn.execute("PRAGMA foreign_keys = ON")
            conn.executescript(_SCHEMA)
            _upgrade_schema(conn)
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            msg = f"Cannot open evidence store at {location}: {e}"
            raise StoreError(msg) from e

        logger.debug("Opened evidence store at %s", location)
        return cls(conn, location)

    @property
    def path(self) -> str:
        """Location of the database."""
        return self._path

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> EvidenceStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block under the writer lock in a single transaction."""
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as e:
                msg = f"Evidence store write failed: {e}"
                raise StoreError(msg) from e

    # =========================================================================
    # Packages
    # =========================================================================

    def upsert_package(self, raw: RawPackage, now: datetime | None = None) -> UpsertOutcome:
        """Insert or update a single package record.

        New packages get ``first_seen = now``. Known packages only have the
        mutable fields updated, and only when they differ; fields a scanner
        did not report (None) keep their stored value. ``last_seen`` is
        refreshed either way but does not count as an update.

        Args:
            raw: Normalized scanner record.
            now: Timestamp to record (defaults to the current UTC time).

        Returns:
            Whether the row was inserted, updated or left unchanged.
        """
        now = now or _utcnow()
        stamp = now.isoformat()

        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO packages (name, source, version, install_path, install_date, "
                "size_bytes, is_dependency, first_seen, last_seen) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(name, source) DO NOTHING",
                (
                    raw.name,
                    raw.source.value,
                    raw.version,
                    raw.install_path,
                    _to_text(raw.install_date),
                    raw.size_bytes,
                    _to_flag(raw.is_dependency),
                    stamp,
                    stamp,
                ),
            )
            if cursor.rowcount == 1:
                self._write_dependencies(conn, cursor.lastrowid, raw.dependencies)
                return UpsertOutcome.INSERTED

            row = self._select_package(conn, raw.key)
            if row is None:
                msg = f"Package {raw.key} vanished during upsert"
                raise StoreError(msg)
            package_id, existing = row

            changes = _mutable_changes(existing, raw)
            if changes:
                assignments = ", ".join(f"{column} = ?" for column in changes)
                conn.execute(
                    f"UPDATE packages SET {assignments}, last_seen = ? WHERE id = ?",  # nosec: B608
                    (*changes.values(), stamp, package_id),
                )
            else:
                conn.execute(
                    "UPDATE packages SET last_seen = ? WHERE id = ?",
                    (stamp, package_id),
                )

            deps_changed = tuple(raw.dependencies) != existing.dependencies
            if deps_changed:
                self._write_dependencies(conn, package_id, raw.dependencies)

        if changes or deps_changed:
            logger.debug("Updated %s: %s", raw.key, ", ".join(changes) or "dependencies")
            return UpsertOutcome.UPDATED
        return UpsertOutcome.UNCHANGED

    def get_package(self, key: PackageKey) -> Package | None:
        """Get a package by identity, or None if not in the registry."""
        with self._lock:
            row = self._select_package(self._conn, key)
        return row[1] if row else None

    def require_package(self, key: PackageKey) -> Package:
        """Get a package by identity.

        Raises:
            PackageNotFoundError: If the package is not in the registry.
        """
        package = self.get_package(key)
        if package is None:
            msg = f"Package not found: {key}"
            raise PackageNotFoundError(msg)
        return package

    def find_packages(self, name: str, source: PackageSource | None = None) -> list[Package]:
        """Find packages by case-insensitive name, optionally within one source."""
        query = f"SELECT {_PACKAGE_COLUMNS} FROM packages "  # nosec: B608
        query += "WHERE name = ? COLLATE NOCASE"
        params: list[Any] = [name]
        if source is not None:
            query += " AND source = ?"
            params.append(source.value)
        query += " ORDER BY source"

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
            return [self._row_to_package(self._conn, row) for row in rows]

    def snapshot(self, source: PackageSource | None = None) -> list[Package]:
        """Return an immutable, consistent snapshot of the registry.

        Args:
            source: Only include packages of this source.

        Returns:
            Packages ordered by name and source.
        """
        query = f"SELECT {_PACKAGE_COLUMNS} FROM packages"  # nosec: B608
        params: list[Any] = []
        if source is not None:
            query += " WHERE source = ?"
            params.append(source.value)
        query += " ORDER BY name, source"

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
            return [self._row_to_package(self._conn, row) for row in rows]

    def count_packages(self) -> int:
        """Return the registry size."""
        with self._lock:
            (count,) = self._conn.execute("SELECT COUNT(*) FROM packages").fetchone()
        return int(count)

    def delete_package(self, key: PackageKey) -> bool:
        """Remove a package (and its usage events) from the registry.

        Returns:
            True if a row was deleted, False if the package was unknown.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM packages WHERE name = ? AND source = ?",
                (key.name, key.source.value),
            )
        return cursor.rowcount > 0

    def prune_source(self, source: PackageSource, observed: Iterable[str]) -> list[PackageKey]:
        """Delete packages of ``source`` whose names are not in ``observed``.

        Returns:
            Identities of the pruned packages.
        """
        keep = set(observed)
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT id, name FROM packages WHERE source = ?",
                (source.value,),
            ).fetchall()
            stale = [(row_id, name) for row_id, name in rows if name not in keep]
            conn.executemany("DELETE FROM packages WHERE id = ?", [(i,) for i, _ in stale])
        return [PackageKey(name, source) for _, name in stale]

    def set_size(self, key: PackageKey, size_bytes: int) -> None:
        """Cache a lazily computed package size.

        Raises:
            PackageNotFoundError: If the package is not in the registry.
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE packages SET size_bytes = ? WHERE name = ? AND source = ?",
                (size_bytes, key.name, key.source.value),
            )
        if cursor.rowcount == 0:
            msg = f"Package not found: {key}"
            raise PackageNotFoundError(msg)

    def restore_package(self, snapshot: PackageSnapshot, now: datetime | None = None) -> None:
        """Re-insert a package from a backup snapshot.

        The snapshot's attributes and ``first_seen`` are restored. If a scan
        already re-registered the package, its mutable fields are overwritten
        and ``first_seen`` is moved back to the snapshot value when earlier.
        """
        stamp = (now or _utcnow()).isoformat()
        values = (
            snapshot.version,
            snapshot.install_path,
            _to_text(snapshot.install_date),
            snapshot.size_bytes,
            _to_flag(snapshot.is_dependency),
        )

        with self._transaction() as conn:
            row = self._select_package(conn, snapshot.key)
            if row is None:
                cursor = conn.execute(
                    "INSERT INTO packages (version, install_path, install_date, size_bytes, "
                    "is_dependency, name, source, first_seen, last_seen) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        *values,
                        snapshot.name,
                        snapshot.source.value,
                        snapshot.first_seen.isoformat(),
                        stamp,
                    ),
                )
                package_id = cursor.lastrowid
            else:
                package_id, existing = row
                first_seen = min(existing.first_seen, snapshot.first_seen)
                conn.execute(
                    "UPDATE packages SET version = ?, install_path = ?, install_date = ?, "
                    "size_bytes = ?, is_dependency = ?, first_seen = ?, last_seen = ? "
                    "WHERE id = ?",
                    (*values, first_seen.isoformat(), stamp, package_id),
                )
            self._write_dependencies(conn, package_id, snapshot.dependencies)

    # =========================================================================
    # Usage events
    # =========================================================================

    def record_usage_event(
        self,
        key: PackageKey,
        kind: SignalKind,
        event_date: date,
        detail: dict[str, Any] | None = None,
    ) -> bool:
        """Record a usage event, ignoring repeats of the same signal and day.

        Returns:
            True if a new event was stored, False if it already existed.

        Raises:
            PackageNotFoundError: If the package is not in the registry.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id FROM packages WHERE name = ? AND source = ?",
                (key.name, key.source.value),
            ).fetchone()
            if row is None:
                msg = f"Package not found: {key}"
                raise PackageNotFoundError(msg)

            cursor = conn.execute(
                "INSERT INTO usage_events (package_id, event_type, event_date, details) "
                "VALUES (?, ?, ?, ?) "
                "ON CONFLICT(package_id, event_type, event_date) DO NOTHING",
                (row[0], kind.value, event_date.isoformat(), json.dumps(detail or {})),
            )
        return cursor.rowcount == 1

    def usage_events(self, key: PackageKey) -> list[UsageEvent]:
        """Return all usage events of a package, newest first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT e.event_type, e.event_date, e.details FROM usage_events e "
                "JOIN packages p ON p.id = e.package_id "
                "WHERE p.name = ? AND p.source = ? "
                "ORDER BY e.event_date DESC, e.event_type",
                (key.name, key.source.value),
            ).fetchall()

        return [
            UsageEvent(
                key=key,
                kind=SignalKind(event_type),
                event_date=date.fromisoformat(event_date),
                detail=json.loads(details) if details else {},
            )
            for event_type, event_date, details in rows
        ]

    # =========================================================================
    # Scan runs and cleanups
    # =========================================================================

    def record_scan(
        self,
        scope: ScanScope,
        packages_found: int,
        *,
        inserted: int = 0,
        updated: int = 0,
        pruned: int = 0,
        duration_ms: int = 0,
        timestamp: datetime | None = None,
    ) -> ScanRun:
        """Append an immutable scan run record."""
        timestamp = timestamp or _utcnow()
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO scans (scan_date, scan_type, packages_found, inserted, "
                "updated, pruned, duration_ms) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    timestamp.isoformat(),
                    str(scope),
                    packages_found,
                    inserted,
                    updated,
                    pruned,
                    duration_ms,
                ),
            )
        return ScanRun(
            id=int(cursor.lastrowid or 0),
            timestamp=timestamp,
            scope=scope,
            packages_found=packages_found,
            inserted=inserted,
            updated=updated,
            pruned=pruned,
            duration_ms=duration_ms,
        )

    def scan_runs(self, limit: int | None = None) -> list[ScanRun]:
        """Return recorded scan runs, newest first."""
        query = (
            "SELECT id, scan_date, scan_type, packages_found, inserted, updated, pruned, "
            "duration_ms FROM scans ORDER BY id DESC"
        )
        params: tuple[Any, ...] = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)

        with self._lock:
            rows = self._conn.execute(query, params).fetchall()

        return [
            ScanRun(
                id=row[0],
                timestamp=datetime.fromisoformat(row[1]),
                scope=ScanScope.parse(row[2]),
                packages_found=row[3],
                inserted=row[4],
                updated=row[5],
                pruned=row[6],
                duration_ms=row[7],
            )
            for row in rows
        ]

    def record_cleanup(self, record: CleanupRecord) -> None:
        """Append a cleanup summary row."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO cleanups (manifest_id, cleanup_date, status, packages_removed, "
                "packages_failed, space_recovered) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.manifest_id,
                    record.timestamp.isoformat(),
                    record.status,
                    record.packages_removed,
                    record.packages_failed,
                    record.space_recovered,
                ),
            )

    def cleanups(self) -> list[CleanupRecord]:
        """Return recorded cleanup runs, newest first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT manifest_id, cleanup_date, status, packages_removed, packages_failed, "
                "space_recovered FROM cleanups ORDER BY id DESC"
            ).fetchall()
        return [
            CleanupRecord(
                manifest_id=row[0],
                timestamp=datetime.fromisoformat(row[1]),
                status=row[2],
                packages_removed=row[3],
                packages_failed=row[4],
                space_recovered=row[5],
            )
            for row in rows
        ]

    # =========================================================================
    # Source leases
    # =========================================================================

    def acquire_leases(
        self,
        sources: Iterable[PackageSource],
        owner: str,
        now: datetime | None = None,
        ttl: timedelta = DEFAULT_LEASE_TTL,
    ) -> None:
        """Mark sources as being modified by the cleanup run ``owner``.

        The lease expires ``ttl`` after ``now`` unless released earlier.
        """
        acquired = now or _utcnow()
        expires = acquired + ttl
        with self._transaction() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO source_leases (source, owner, acquired_at, expires_at) "
                "VALUES (?, ?, ?, ?)",
                [
                    (source.value, owner, acquired.isoformat(), expires.isoformat())
                    for source in set(sources)
                ],
            )

    def release_leases(self, owner: str) -> None:
        """Release every lease held by ``owner``."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM source_leases WHERE owner = ?", (owner,))

    def leased_sources(self, now: datetime | None = None) -> set[PackageSource]:
        """Return sources with a lease that has not expired at ``now``."""
        now = now or _utcnow()
        with self._lock:
            rows = self._conn.execute(
                "SELECT source, acquired_at, expires_at FROM source_leases"
            ).fetchall()
        leased: set[PackageSource] = set()
        for source, acquired_at, expires_at in rows:
            if expires_at is None:
                expires = datetime.fromisoformat(acquired_at) + DEFAULT_LEASE_TTL
            else:
                expires = datetime.fromisoformat(expires_at)
            if expires > now:
                leased.add(PackageSource(source))
        return leased

    # =========================================================================
    # Row helpers
    # =========================================================================

    def _select_package(
        self,
        conn: sqlite3.Connection,
        key: PackageKey,
    ) -> tuple[int, Package] | None:
        row = conn.execute(
            f"SELECT {_PACKAGE_COLUMNS} FROM packages WHERE name = ? AND source = ?",  # nosec: B608
            (key.name, key.source.value),
        ).fetchone()
        if row is None:
            return None
        return row[0], self._row_to_package(conn, row)

    def _row_to_package(self, conn: sqlite3.Connection, row: tuple[Any, ...]) -> Package:
        deps = conn.execute(
            "SELECT dependency_name FROM package_dependencies "
            "WHERE package_id = ? ORDER BY position",
            (row[0],),
        ).fetchall()
        is_dependency = row[7]
        return Package(
            name=row[1],
            source=PackageSource(row[2]),
            version=row[3],
            install_path=row[4],
            install_date=_from_text(row[5]),
            size_bytes=row[6],
            is_dependency=None if is_dependency is None else bool(is_dependency),
            first_seen=datetime.fromisoformat(row[8]),
            last_seen=datetime.fromisoformat(row[9]),
            dependencies=tuple(name for (name,) in deps),
        )

    def _write_dependencies(
        self,
        conn: sqlite3.Connection,
        package_id: int | None,
        dependencies: Iterable[str],
    ) -> None:
        conn.execute("DELETE FROM package_dependencies WHERE package_id = ?", (package_id,))
        conn.executemany(
            "INSERT OR IGNORE INTO package_dependencies (package_id, position, dependency_name) "
            "VALUES (?, ?, ?)",
            [(package_id, position, name) for position, name in enumerate(dependencies)],
        )


def _upgrade_schema(conn: sqlite3.Connection) -> None:
    """Add columns introduced after a database was created."""
    columns = {row[1] for row in conn.execute("PRAGMA table_info(source_leases)")}
    if "expires_at" not in columns:
        conn.execute("ALTER TABLE source_leases ADD COLUMN expires_at TEXT")


def _mutable_changes(existing: Package, raw: RawPackage) -> dict[str, Any]:
    """Return the mutable columns of ``existing`` that ``raw`` changes.

    Dependencies are handled separately since they live in their own table.
    """
    changes: dict[str, Any] = {}
    if raw.version is not None and raw.version != existing.version:
        changes["version"] = raw.version
    if raw.install_path is not None and raw.install_path != existing.install_path:
        changes["install_path"] = raw.install_path
    if raw.install_date is not None and raw.install_date != existing.install_date:
        changes["install_date"] = raw.install_date.isoformat()
    if raw.size_bytes is not None and raw.size_bytes != existing.size_bytes:
        changes["size_bytes"] = raw.size_bytes
    if raw.is_dependency is not None and raw.is_dependency != existing.is_dependency:
        changes["is_dependency"] = int(raw.is_dependency)
    return changes
