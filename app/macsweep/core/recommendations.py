"""Removal recommendation engine.

Combines dependency classification and usage profiles into a severity
tier per package:

- SAFE: orphaned dependency, nothing installed needs it
- REVIEW: no usage evidence, or unused for at least the review threshold
- WARNING: unused for at least the warning threshold
- NONE: recently used, not recommended

Thresholds are supplied by the caller (defaults come from Settings).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date

from macsweep.core.config import Settings
from macsweep.core.dependencies import analyze_dependencies
from macsweep.core.store import EvidenceStore
from macsweep.core.usage import aggregate_usage
from macsweep.models.analysis import (
    SEVERITY_ORDER,
    DependencyClass,
    DependencyReport,
    Recommendation,
    RecommendationSummary,
    Severity,
    TierSummary,
)
from macsweep.models.package import Package, PackageKey
from macsweep.models.usage import UsageProfile

logger = logging.getLogger(__name__)

CANDIDATE_TIERS: tuple[Severity, ...] = (Severity.SAFE, Severity.REVIEW, Severity.WARNING)


class RecommendationEngine:
    """Classify packages into removal tiers.

    Example:
        >>> engine = RecommendationEngine(warning_days=30, review_days=90)
        >>> recs = engine.evaluate(store, today=date(2025, 1, 1))
        >>> [r.package.name for r in recs if r.severity == Severity.SAFE]
        ['libyaml']
    """

    def __init__(self, warning_days: int = 30, review_days: int = 90) -> None:
        """Initialize the engine with its age thresholds.

        Args:
            warning_days: Lower bound in days for the WARNING tier.
            review_days: Lower bound in days for the REVIEW tier.

        Raises:
            ValueError: If the thresholds are not positive and increasing.
        """
        if warning_days < 1 or warning_days >= review_days:
            msg = (
                f"Thresholds must satisfy 0 < warning_days < review_days "
                f"(got {warning_days} and {review_days})"
            )
            raise ValueError(msg)
        self._warning_days = warning_days
        self._review_days = review_days

    @classmethod
    def from_settings(cls, settings: Settings) -> RecommendationEngine:
        """Create an engine using the configured thresholds."""
        return cls(settings.warning_threshold_days, settings.review_threshold_days)

    @property
    def warning_days(self) -> int:
        return self._warning_days

    @property
    def review_days(self) -> int:
        return self._review_days

    def classify(
        self,
        package: Package,
        usage: UsageProfile,
        dependency: DependencyReport,
        today: date,
    ) -> Recommendation:
        """Assign a severity tier and reason to one package.

        First match wins: orphan, then no evidence or review age, then
        warning age, then none.
        """
        if dependency.classification == DependencyClass.ORPHAN:
            severity = Severity.SAFE
            reason = "Orphaned dependency - no longer required by any installed package"
        elif usage.last_used is None:
            severity = Severity.REVIEW
            reason = "No usage evidence found"
        else:
            days = max((today - usage.last_used).days, 0)
            if days >= self._review_days:
                severity = Severity.REVIEW
                reason = f"Not used in {days} days (~{days // 30} months)"
            elif days >= self._warning_days:
                severity = Severity.WARNING
                reason = f"Not used in {days} days"
            else:
                severity = Severity.NONE
                reason = "Used recently" if days else "Used today"

        return Recommendation(
            package=package,
            severity=severity,
            reason=reason,
            usage=usage,
            dependency=dependency,
        )

    def recommend(
        self,
        packages: Iterable[Package],
        profiles: Mapping[PackageKey, UsageProfile],
        reports: Mapping[PackageKey, DependencyReport],
        today: date,
    ) -> list[Recommendation]:
        """Classify every package and order the result.

        Tiers are ordered strongest first; within a tier by size descending,
        then name ascending, then source.

        Args:
            packages: Registry snapshot.
            profiles: Usage profile per package (missing means no evidence).
            reports: Dependency report per package (missing means leaf).
            today: Reference day for age computation.

        Returns:
            One Recommendation per package, including NONE-tier packages.
        """
        recommendations = [
            self.classify(
                pkg,
                profiles.get(pkg.key) or UsageProfile(key=pkg.key),
                reports.get(pkg.key) or DependencyReport(pkg.key, DependencyClass.LEAF),
                today,
            )
            for pkg in packages
        ]
        tier_index = {severity: index for index, severity in enumerate(SEVERITY_ORDER)}
        recommendations.sort(
            key=lambda r: (
                tier_index[r.severity],
                -r.size_recoverable,
                r.package.name,
                r.package.source.value,
            )
        )
        return recommendations

    def evaluate(self, store: EvidenceStore, today: date | None = None) -> list[Recommendation]:
        """Classify a fresh snapshot of the evidence store.

        Args:
            store: Evidence store to read from.
            today: Reference day (defaults to the local current date).

        Returns:
            Ordered recommendations for every registered package.
        """
        today = today or date.today()
        packages = store.snapshot()
        profiles = {pkg.key: aggregate_usage(store, pkg.key) for pkg in packages}
        reports = analyze_dependencies(packages)
        logger.debug("Evaluating %d packages against %s", len(packages), today.isoformat())
        return self.recommend(packages, profiles, reports, today)

    @staticmethod
    def summarize(recommendations: Iterable[Recommendation]) -> RecommendationSummary:
        """Count candidates and recoverable bytes per tier and overall."""
        counts = dict.fromkeys(CANDIDATE_TIERS, 0)
        sizes = dict.fromkeys(CANDIDATE_TIERS, 0)
        for rec in recommendations:
            if rec.severity in counts:
                counts[rec.severity] += 1
                sizes[rec.severity] += rec.size_recoverable

        tiers = {tier: TierSummary(counts[tier], sizes[tier]) for tier in CANDIDATE_TIERS}
        total = TierSummary(sum(counts.values()), sum(sizes.values()))
        return RecommendationSummary(tiers=tiers, total=total)


def select_at_least(
    recommendations: Iterable[Recommendation],
    minimum: Severity,
) -> list[Recommendation]:
    """Return candidates whose tier is at least ``minimum``."""
    return [r for r in recommendations if r.is_candidate and r.severity.at_least(minimum)]
