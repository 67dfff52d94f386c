"""Abstract base class for usage readers.

A usage reader inspects one kind of signal (shell history, Spotlight
metadata, file access times) and yields usage evidence for packages of
the registry.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence

from macsweep.models.package import Package
from macsweep.models.usage import SignalKind, UsageEvidence


class UsageReader(ABC):
    """Abstract base class for all usage readers.

    Example:
        >>> reader = ShellHistoryReader()
        >>> if reader.is_available():
        ...     for evidence in reader.read(store.snapshot()):
        ...         print(evidence.name, evidence.event_date)
    """

    @property
    @abstractmethod
    def kind(self) -> SignalKind:
        """Return the signal kind this reader produces."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the signal can be read on this system."""

    @abstractmethod
    def read(self, packages: Sequence[Package]) -> Iterator[UsageEvidence]:
        """Yield usage evidence for the given packages.

        Args:
            packages: Registry snapshot to match evidence against.

        Yields:
            UsageEvidence, at most one per package and calendar day.
        """
