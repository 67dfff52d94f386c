"""macsweep - package hygiene for macOS.

Inventories packages from Homebrew, language package managers and the
Applications folders, estimates when each was last used and performs
reversible cleanups.
"""

__version__ = "0.3.0"
