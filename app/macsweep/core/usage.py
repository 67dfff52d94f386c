"""Usage evidence aggregation.

Turns the stored usage events of a package into a UsageProfile: the most
recent event date across all signal kinds, with the signal that produced
it. Profiles are recomputed from the store on every call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from macsweep.core.errors import PackageNotFoundError
from macsweep.core.store import EvidenceStore
from macsweep.models.package import PackageKey
from macsweep.models.usage import SignalKind, UsageEvent, UsageEvidence, UsageProfile

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EvidenceIngestResult:
    """Counts of one evidence ingestion pass.

    Attributes:
        inserted: New usage events stored.
        duplicates: Evidence already recorded for the same signal and day.
        unknown: Evidence for packages not in the registry.
    """

    inserted: int = 0
    duplicates: int = 0
    unknown: int = 0


def build_profile(key: PackageKey, events: Iterable[UsageEvent]) -> UsageProfile:
    """Aggregate usage events into a profile.

    The last-used date is the maximum event date. When several signals share
    that date, the highest-confidence signal is reported; confidence never
    changes the date itself.
    """
    signal_dates: dict[SignalKind, date] = {}
    count = 0
    for event in events:
        count += 1
        current = signal_dates.get(event.kind)
        if current is None or event.event_date > current:
            signal_dates[event.kind] = event.event_date

    if not signal_dates:
        return UsageProfile(key=key)

    signal, last_used = max(
        signal_dates.items(),
        key=lambda item: (item[1], item[0].confidence),
    )
    return UsageProfile(
        key=key,
        last_used=last_used,
        signal=signal,
        signal_dates=signal_dates,
        event_count=count,
    )


def aggregate_usage(store: EvidenceStore, key: PackageKey) -> UsageProfile:
    """Compute the usage profile of a package from the evidence store.

    Args:
        store: Evidence store to read events from.
        key: Package identity.

    Returns:
        UsageProfile (empty when the package has no evidence).
    """
    return build_profile(key, store.usage_events(key))


def record_evidence(
    store: EvidenceStore,
    evidence: Iterable[UsageEvidence],
) -> EvidenceIngestResult:
    """Store usage evidence produced by readers.

    Re-observing the same signal on the same day is a no-op. Evidence for
    packages missing from the registry is counted and skipped.

    Args:
        store: Evidence store to write to.
        evidence: Observations from usage readers.

    Returns:
        EvidenceIngestResult with inserted, duplicate and unknown counts.
    """
    inserted = duplicates = unknown = 0
    for item in evidence:
        try:
            stored = store.record_usage_event(item.key, item.kind, item.event_date, item.detail)
        except PackageNotFoundError:
            logger.debug("Ignoring %s evidence for unknown package %s", item.kind.value, item.key)
            unknown += 1
            continue
        if stored:
            inserted += 1
        else:
            duplicates += 1

    return EvidenceIngestResult(inserted=inserted, duplicates=duplicates, unknown=unknown)
