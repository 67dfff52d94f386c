"""Package operators for executing removal and restore actions.

This module provides the per-source operator table used both to remove
packages during cleanup and to restore them on undo.
"""

from macsweep.models.package import PackageSource
from macsweep.operators.applications import ApplicationsOperator
from macsweep.operators.base import Operator
from macsweep.operators.cargo import CargoOperator
from macsweep.operators.gem import GemOperator
from macsweep.operators.homebrew import HomebrewCaskOperator, HomebrewOperator
from macsweep.operators.npm import NpmOperator
from macsweep.operators.pip import PipOperator, PipxOperator

OPERATORS: dict[PackageSource, type[Operator]] = {
    PackageSource.HOMEBREW: HomebrewOperator,
    PackageSource.HOMEBREW_CASK: HomebrewCaskOperator,
    PackageSource.NPM: NpmOperator,
    PackageSource.PIP: PipOperator,
    PackageSource.PIPX: PipxOperator,
    PackageSource.CARGO: CargoOperator,
    PackageSource.GEM: GemOperator,
    PackageSource.APPLICATIONS: ApplicationsOperator,
}


def get_operator(source: PackageSource, timeout: float | None = None) -> Operator | None:
    """Return the operator for a source, or None if there is none.

    Args:
        source: Package source.
        timeout: Seconds allowed for each external call.
    """
    operator_cls = OPERATORS.get(source)
    return operator_cls(timeout=timeout) if operator_cls is not None else None


__all__ = [
    "OPERATORS",
    "ApplicationsOperator",
    "CargoOperator",
    "GemOperator",
    "HomebrewCaskOperator",
    "HomebrewOperator",
    "NpmOperator",
    "Operator",
    "PipOperator",
    "PipxOperator",
    "get_operator",
]
