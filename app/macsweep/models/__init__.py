"""Data models for macsweep.

This module exports the core data structures used throughout the application.
"""

from macsweep.models.action import Action, ActionResult, ActionType
from macsweep.models.analysis import (
    DependencyClass,
    DependencyReport,
    Recommendation,
    RecommendationSummary,
    Severity,
    TierSummary,
)
from macsweep.models.backup import (
    BackupItem,
    BackupManifest,
    CleanupStatus,
    ItemOutcome,
    OutcomeStatus,
    PackageSnapshot,
)
from macsweep.models.package import Package, PackageKey, PackageSource, RawPackage
from macsweep.models.scan_result import ScanRun, ScanScope
from macsweep.models.usage import SignalKind, UsageEvent, UsageEvidence, UsageProfile

__all__ = [
    "Action",
    "ActionResult",
    "ActionType",
    "BackupItem",
    "BackupManifest",
    "CleanupStatus",
    "DependencyClass",
    "DependencyReport",
    "ItemOutcome",
    "OutcomeStatus",
    "Package",
    "PackageKey",
    "PackageSnapshot",
    "PackageSource",
    "RawPackage",
    "Recommendation",
    "RecommendationSummary",
    "ScanRun",
    "ScanScope",
    "Severity",
    "SignalKind",
    "TierSummary",
    "UsageEvent",
    "UsageEvidence",
    "UsageProfile",
]
