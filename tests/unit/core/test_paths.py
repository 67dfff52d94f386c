"""Unit tests for XDG path management.

Tests for the paths module that provides XDG-compliant directory paths.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from macsweep.core.paths import (
    APP_NAME,
    ensure_config_dir,
    ensure_dir,
    get_backup_dir,
    get_config_dir,
    get_data_dir,
    get_database_path,
    get_settings_path,
    get_state_dir,
    get_theme_path,
)


class TestGetConfigDir:
    """Tests for get_config_dir function."""

    def test_default_config_dir(self) -> None:
        """get_config_dir returns default path when XDG_CONFIG_HOME not set."""
        with patch.dict(os.environ, {}, clear=True):
            os.environ.pop("XDG_CONFIG_HOME", None)

            result = get_config_dir()

        assert result == Path.home() / ".config" / APP_NAME

    def test_respects_xdg_config_home(self, tmp_path: Path) -> None:
        """get_config_dir respects XDG_CONFIG_HOME environment variable."""
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            result = get_config_dir()

        assert result == tmp_path / APP_NAME

    def test_empty_xdg_value_uses_default(self) -> None:
        """An empty XDG_CONFIG_HOME falls back to the home directory."""
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": ""}):
            result = get_config_dir()

        assert result == Path.home() / ".config" / APP_NAME


class TestGetDataDir:
    """Tests for get_data_dir function."""

    def test_default_data_dir(self) -> None:
        """get_data_dir returns default path when XDG_DATA_HOME not set."""
        with patch.dict(os.environ, {}, clear=True):
            os.environ.pop("XDG_DATA_HOME", None)

            result = get_data_dir()

        assert result == Path.home() / ".local" / "share" / APP_NAME

    def test_respects_xdg_data_home(self, tmp_path: Path) -> None:
        """get_data_dir respects XDG_DATA_HOME environment variable."""
        with patch.dict(os.environ, {"XDG_DATA_HOME": str(tmp_path)}):
            result = get_data_dir()

        assert result == tmp_path / APP_NAME


class TestGetStateDir:
    """Tests for get_state_dir function."""

    def test_default_state_dir(self) -> None:
        """get_state_dir returns default path when XDG_STATE_HOME not set."""
        with patch.dict(os.environ, {}, clear=True):
            os.environ.pop("XDG_STATE_HOME", None)

            result = get_state_dir()

        assert result == Path.home() / ".local" / "state" / APP_NAME

    def test_respects_xdg_state_home(self, tmp_path: Path) -> None:
        """get_state_dir respects XDG_STATE_HOME environment variable."""
        with patch.dict(os.environ, {"XDG_STATE_HOME": str(tmp_path)}):
            result = get_state_dir()

        assert result == tmp_path / APP_NAME


class TestFilePaths:
    """Tests for the derived file paths."""

    def test_settings_path(self, tmp_path: Path) -> None:
        """The settings file lives in the config directory."""
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            result = get_settings_path()

        assert result == tmp_path / APP_NAME / "config.toml"

    def test_theme_path(self, tmp_path: Path) -> None:
        """The theme file lives in the config directory."""
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            result = get_theme_path()

        assert result == tmp_path / APP_NAME / "theme.toml"

    def test_database_path(self, tmp_path: Path) -> None:
        """The evidence store lives in the data directory."""
        with patch.dict(os.environ, {"XDG_DATA_HOME": str(tmp_path)}):
            result = get_database_path()

        assert result == tmp_path / APP_NAME / "macsweep.db"

    def test_backup_dir(self, tmp_path: Path) -> None:
        """Backup manifests live in the state directory."""
        with patch.dict(os.environ, {"XDG_STATE_HOME": str(tmp_path)}):
            result = get_backup_dir()

        assert result == tmp_path / APP_NAME / "backups"


class TestEnsureDir:
    """Tests for directory creation helpers."""

    def test_creates_nested_directory(self, tmp_path: Path) -> None:
        """ensure_dir creates missing parents."""
        target = tmp_path / "a" / "b"

        result = ensure_dir(target, "test")

        assert result == target
        assert target.is_dir()

    def test_existing_directory_is_fine(self, tmp_path: Path) -> None:
        """ensure_dir succeeds when the directory already exists."""
        assert ensure_dir(tmp_path, "test") == tmp_path

    def test_failure_raises_runtime_error(self, tmp_path: Path) -> None:
        """A file in the way raises RuntimeError with the directory name."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file")

        with pytest.raises(RuntimeError, match="Cannot create backup directory"):
            ensure_dir(blocker / "sub", "backup")

    def test_ensure_config_dir(self, tmp_path: Path) -> None:
        """ensure_config_dir creates the config directory."""
        with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path)}):
            result = ensure_config_dir()

        assert result == tmp_path / APP_NAME
        assert result.is_dir()
