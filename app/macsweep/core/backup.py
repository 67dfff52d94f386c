"""Backup manifest persistence.

This module provides the BackupStore class that writes one pretty-printed
JSON manifest per cleanup run and reads them back for undo.
"""

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from macsweep.core.errors import BackupError, BackupNotFoundError
from macsweep.core.paths import get_backup_dir
from macsweep.models.backup import BackupManifest

logger = logging.getLogger(__name__)


class BackupStore:
    """Manages backup manifests on disk.

    Storage location: ~/.local/state/macsweep/backups/<id>.json

    Manifest ids are timestamp-derived, so sorting file names sorts runs
    chronologically.

    Attributes:
        backup_dir: Directory containing the manifests.
    """

    SUFFIX = ".json"

    def __init__(self, backup_dir: Path | None = None) -> None:
        """Initialize BackupStore.

        Args:
            backup_dir: Optional override for the backup directory.
                Default: ~/.local/state/macsweep/backups
        """
        self._backup_dir = backup_dir if backup_dir is not None else get_backup_dir()

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    def path_for(self, manifest_id: str) -> Path:
        """Return the file path of a manifest."""
        return self._backup_dir / f"{manifest_id}{self.SUFFIX}"

    def write(self, manifest: BackupManifest) -> Path:
        """Durably write a manifest.

        The file is written to a temporary file, flushed to disk and then
        moved into place with os.replace(), so a reader never sees a partial
        manifest.

        Raises:
            BackupError: If the manifest cannot be written.
        """
        target = self.path_for(manifest.id)
        tmp_path: Path | None = None
        try:
            self._backup_dir.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self._backup_dir,
                delete=False,
                suffix=".tmp",
            ) as f:
                tmp_path = Path(f.name)
                f.write(manifest.to_json())
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, target)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            msg = f"Failed to write backup manifest {target}: {e}"
            raise BackupError(msg) from e

        logger.debug("Wrote backup manifest %s (%s)", manifest.id, manifest.status.value)
        return target

    def load(self, manifest_id: str) -> BackupManifest:
        """Read a manifest by id.

        Raises:
            BackupNotFoundError: If no manifest with this id exists.
            BackupError: If the manifest cannot be read or parsed.
        """
        path = self.path_for(manifest_id)
        if not path.exists():
            msg = f"Backup not found: {manifest_id}"
            raise BackupNotFoundError(msg)
        try:
            return BackupManifest.from_json(path.read_text(encoding="utf-8"))
        except OSError as e:
            msg = f"Failed to read backup manifest {path}: {e}"
            raise BackupError(msg) from e
        except (json.JSONDecodeError, AttributeError, KeyError, TypeError, ValueError) as e:
            msg = f"Corrupt backup manifest {path}: {e}"
            raise BackupError(msg) from e

    def list_ids(self) -> list[str]:
        """Return manifest ids, newest first."""
        if not self._backup_dir.exists():
            return []
        return sorted(
            (p.stem for p in self._backup_dir.glob(f"*{self.SUFFIX}")),
            reverse=True,
        )

    def list_manifests(self) -> list[BackupManifest]:
        """Return all readable manifests, newest first.

        Corrupt manifests are skipped with a warning.
        """
        manifests: list[BackupManifest] = []
        for manifest_id in self.list_ids():
            try:
                manifests.append(self.load(manifest_id))
            except BackupError as e:
                logger.warning("Skipping backup %s: %s", manifest_id, e)
        return manifests

    def latest(self) -> BackupManifest:
        """Return the most recent manifest.

        Raises:
            BackupNotFoundError: If there are no manifests.
        """
        ids = self.list_ids()
        if not ids:
            msg = f"No backups found in {self._backup_dir}"
            raise BackupNotFoundError(msg)
        return self.load(ids[0])
