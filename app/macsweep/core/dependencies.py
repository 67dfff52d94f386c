"""Dependency graph analysis.

Builds a directed graph over the registry (dependent -> dependency, within
one source, keyed by package identity) and classifies every package as a
leaf, a dependency, an orphan or a package with broken dependencies.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from macsweep.models.analysis import DependencyClass, DependencyReport
from macsweep.models.package import Package, PackageKey, PackageSource

logger = logging.getLogger(__name__)


def build_dependency_graph(
    packages: Iterable[Package],
) -> tuple[dict[PackageKey, set[PackageKey]], dict[PackageKey, tuple[str, ...]]]:
    """Resolve declared dependency names to registry identities.

    Names are matched case-insensitively within the declaring package's
    source. Sources without dependency information contribute no edges.

    Returns:
        Tuple of (dependents per dependency key, missing names per key).
    """
    packages = list(packages)
    by_name: dict[tuple[PackageSource, str], PackageKey] = {
        (pkg.source, pkg.name.lower()): pkg.key for pkg in packages
    }

    dependents: dict[PackageKey, set[PackageKey]] = defaultdict(set)
    missing: dict[PackageKey, tuple[str, ...]] = {}
    for pkg in packages:
        unresolved: list[str] = []
        for dep_name in pkg.dependencies:
            target = by_name.get((pkg.source, dep_name.lower()))
            if target is None:
                unresolved.append(dep_name)
            elif target != pkg.key:
                dependents[target].add(pkg.key)
        if unresolved:
            missing[pkg.key] = tuple(unresolved)

    return dependents, missing


def analyze_dependencies(packages: Iterable[Package]) -> dict[PackageKey, DependencyReport]:
    """Classify every package of a registry snapshot.

    Rules, first match wins:

    1. declares a dependency missing from the registry: broken dependency;
    2. nothing depends on it and it was installed only as a dependency: orphan;
    3. nothing depends on it: leaf;
    4. otherwise: dependency.

    A package whose source does not report the dependency flag
    (``is_dependency is None``) is never an orphan.

    Args:
        packages: Registry snapshot.

    Returns:
        DependencyReport per package identity.
    """
    packages = list(packages)
    dependents, missing = build_dependency_graph(packages)

    reports: dict[PackageKey, DependencyReport] = {}
    for pkg in packages:
        key = pkg.key
        incoming = tuple(sorted(dependents.get(key, ()), key=lambda k: (k.name, k.source.value)))
        if key in missing:
            classification = DependencyClass.BROKEN_DEPENDENCY
            logger.debug("%s declares missing dependencies: %s", key, ", ".join(missing[key]))
        elif not incoming and pkg.is_dependency is True:
            classification = DependencyClass.ORPHAN
        elif not incoming:
            classification = DependencyClass.LEAF
        else:
            classification = DependencyClass.DEPENDENCY

        reports[key] = DependencyReport(
            key=key,
            classification=classification,
            dependents=incoming,
            missing=missing.get(key, ()),
        )

    return reports
