"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from collections.abc import Iterator
from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from macsweep.core.backup import BackupStore
from macsweep.core.config import Settings
from macsweep.core.store import EvidenceStore
from macsweep.models.package import PackageKey, PackageSource, RawPackage
from macsweep.models.usage import SignalKind


@pytest.fixture
def store() -> Iterator[EvidenceStore]:
    """Ephemeral in-memory evidence store."""
    with EvidenceStore.open(":memory:") as evidence_store:
        yield evidence_store


@pytest.fixture
def now() -> datetime:
    """Fixed reference time used as the scan clock."""
    return datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def today() -> date:
    """Fixed reference day for age computations."""
    return date(2025, 6, 1)


@pytest.fixture
def backups(tmp_path: Path) -> BackupStore:
    """Backup store writing into a temporary directory."""
    return BackupStore(tmp_path / "backups")


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing the store and backups into a temporary directory."""
    return Settings(
        database_path=tmp_path / "macsweep.db",
        backup_dir=tmp_path / "backups",
    )


@pytest.fixture
def cli_settings(settings: Settings) -> Iterator[Settings]:
    """Point CLI commands at the temporary settings."""
    with patch("macsweep.cli.types.load_settings", return_value=settings):
        yield settings


@pytest.fixture
def registry(cli_settings: Settings) -> Settings:
    """CLI settings whose store holds one package per recommendation tier.

    - ripgrep (homebrew): requested, used today
    - pcre2 (homebrew): required by ripgrep, no usage evidence
    - libyaml (homebrew): orphaned dependency, 2 KB
    - black (pipx): last used 40 days ago
    - cowsay (npm): no usage evidence
    """
    today = date.today()
    with EvidenceStore.open(cli_settings.effective_database_path) as evidence_store:
        evidence_store.upsert_package(
            RawPackage(
                "ripgrep",
                PackageSource.HOMEBREW,
                version="14.1.0",
                size_bytes=4096,
                dependencies=("pcre2",),
                is_dependency=False,
            )
        )
        evidence_store.upsert_package(
            RawPackage("pcre2", PackageSource.HOMEBREW, version="10.42", is_dependency=True)
        )
        evidence_store.upsert_package(
            RawPackage(
                "libyaml",
                PackageSource.HOMEBREW,
                version="0.2.5",
                size_bytes=2048,
                is_dependency=True,
            )
        )
        evidence_store.upsert_package(RawPackage("black", PackageSource.PIPX, version="24.4.2"))
        evidence_store.upsert_package(RawPackage("cowsay", PackageSource.NPM, version="1.6.0"))
        evidence_store.record_usage_event(
            PackageKey("ripgrep", PackageSource.HOMEBREW),
            SignalKind.SHELL_HISTORY,
            today,
            {"invocations": 3},
        )
        evidence_store.record_usage_event(
            PackageKey("black", PackageSource.PIPX),
            SignalKind.SHELL_HISTORY,
            today - timedelta(days=40),
        )
    return cli_settings


@pytest.fixture
def mock_brew_info_output() -> str:
    """Sample ``brew info --json=v2 --installed`` output for testing."""
    return """{
  "formulae": [
    {
      "name": "ripgrep",
      "versions": {"stable": "14.1.0"},
      "dependencies": ["pcre2"],
      "installed": [
        {
          "version": "14.1.0",
          "time": 1700000000,
          "installed_on_request": true,
          "runtime_dependencies": [{"full_name": "pcre2", "version": "10.42"}]
        }
      ]
    },
    {
      "name": "pcre2",
      "versions": {"stable": "10.42"},
      "dependencies": [],
      "installed": [
        {
          "version": "10.42",
          "time": 1690000000,
          "installed_on_request": false,
          "runtime_dependencies": []
        }
      ]
    },
    {
      "name": "libyaml",
      "versions": {"stable": "0.2.5"},
      "dependencies": [],
      "installed": [
        {
          "version": "0.2.5",
          "installed_on_request": false
        }
      ]
    }
  ],
  "casks": [
    {
      "token": "visual-studio-code",
      "version": "1.90.0",
      "installed": "1.89.1"
    },
    {
      "token": "iterm2",
      "version": "3.5.0",
      "installed": null
    }
  ]
}"""


@pytest.fixture
def mock_npm_list_output() -> str:
    """Sample ``npm list -g --depth=0 --json`` output for testing."""
    return """{
  "name": "lib",
  "dependencies": {
    "npm": {"version": "10.2.4"},
    "typescript": {"version": "5.4.5"},
    "cowsay": {"version": "1.6.0"}
  }
}"""


@pytest.fixture
def mock_pip_inspect_output() -> str:
    """Sample ``pip3 inspect`` output for testing."""
    return """{
  "version": "1",
  "installed": [
    {
      "metadata": {
        "name": "requests",
        "version": "2.31.0",
        "requires_dist": [
          "charset-normalizer<4,>=2",
          "urllib3<3,>=1.21.1",
          "PySocks!=1.5.7,>=1.5.6; extra == \\"socks\\""
        ]
      },
      "requested": true,
      "metadata_location": "/site-packages/requests-2.31.0.dist-info"
    },
    {
      "metadata": {"name": "charset_normalizer", "version": "3.3.2"},
      "requested": false,
      "metadata_location": "/site-packages/charset_normalizer-3.3.2.dist-info"
    },
    {
      "metadata": {"name": "urllib3", "version": "2.2.1"},
      "requested": false
    },
    {
      "metadata": {"name": "pip", "version": "24.0"},
      "requested": true
    },
    {
      "metadata": {"name": "setuptools", "version": "69.5.1"}
    }
  ]
}"""


@pytest.fixture
def mock_cargo_list_output() -> str:
    """Sample ``cargo install --list`` output for testing."""
    return """bat v0.24.0:
    bat
ripgrep v14.1.0:
    rg
cargo-edit v0.12.2 (https://github.com/killercup/cargo-edit#1a2b3c4d):
    cargo-add
    cargo-rm
"""


@pytest.fixture
def mock_gem_list_output() -> str:
    """Sample ``gem list --local`` output for testing."""
    return """
*** LOCAL GEMS ***

bundler (2.5.6, default: 2.4.19)
json (default: 2.6.3)
nokogiri (1.15.4 arm64-darwin)
rake (13.1.0, 13.0.6)
"""
