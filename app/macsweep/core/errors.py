"""Exception hierarchy for macsweep.

Only StoreError and BackupError are fatal; the other errors are raised
for single items and recorded as per-item outcomes by batch operations.
"""


class MacsweepError(Exception):
    """Base exception for macsweep errors."""


class PackageNotFoundError(MacsweepError):
    """Raised when a package identity is not in the registry."""


class ExternalToolError(MacsweepError):
    """Raised when a package manager or system command fails or times out."""


class InconsistentStateError(MacsweepError):
    """Raised when persisted state references something no longer resolvable."""


class StoreError(MacsweepError):
    """Raised when the evidence store cannot be opened or created."""


class BackupError(MacsweepError):
    """Raised when a backup manifest cannot be written or read."""


class BackupNotFoundError(BackupError):
    """Raised when a requested backup manifest does not exist."""
