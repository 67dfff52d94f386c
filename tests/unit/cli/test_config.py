"""Unit tests for config commands and global options."""

import json
import tomllib
from pathlib import Path

import pytest
from typer.testing import CliRunner

from macsweep import __version__
from macsweep.cli.main import app

runner = CliRunner()


@pytest.fixture
def xdg_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every XDG base directory into a temporary directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "state"))
    return tmp_path


class TestGlobalOptions:
    """Tests for options of the main application."""

    def test_version(self) -> None:
        """--version prints the version and exits."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"macsweep version {__version__}" in result.stdout

    def test_no_args_shows_help(self) -> None:
        """Running without a command shows the command list."""
        result = runner.invoke(app, [])

        assert "scan" in result.output
        assert "recommend" in result.output


class TestConfigShow:
    """Tests for macsweep config show."""

    def test_show_defaults_json(self, xdg_home: Path) -> None:
        """Without a config file the defaults and XDG paths are shown."""
        result = runner.invoke(app, ["config", "show", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["warning_threshold_days"] == 30
        assert data["review_threshold_days"] == 90
        assert data["database_path"] is None
        expected_db = xdg_home / "data" / "macsweep" / "macsweep.db"
        assert data["effective_database_path"] == str(expected_db)
        expected_backups = xdg_home / "state" / "macsweep" / "backups"
        assert data["effective_backup_dir"] == str(expected_backups)

    def test_show_table(self, xdg_home: Path) -> None:
        """The table lists every setting."""
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "review_threshold_days" in result.stdout
        assert "not created" in result.stdout

    def test_show_invalid_config(self, xdg_home: Path) -> None:
        """An invalid config file exits with code 1."""
        config_dir = xdg_home / "config" / "macsweep"
        config_dir.mkdir(parents=True)
        (config_dir / "config.toml").write_text("warning_threshold_days = 100\n")

        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 1
        assert "Invalid config content" in result.output


class TestConfigInit:
    """Tests for macsweep config init."""

    def test_init_writes_defaults(self, xdg_home: Path) -> None:
        """init creates the config file with default thresholds."""
        result = runner.invoke(app, ["config", "init"])

        assert result.exit_code == 0
        assert "Config written" in result.stdout
        path = xdg_home / "config" / "macsweep" / "config.toml"
        data = tomllib.loads(path.read_text())
        assert data["warning_threshold_days"] == 30
        assert data["review_threshold_days"] == 90
        assert "database_path" not in data

    def test_init_with_thresholds(self, xdg_home: Path) -> None:
        """Threshold options are written to the file and picked up by show."""
        runner.invoke(app, ["config", "init", "--warning-days", "14", "--review-days", "60"])

        result = runner.invoke(app, ["config", "show", "--json"])

        data = json.loads(result.stdout)
        assert data["warning_threshold_days"] == 14
        assert data["review_threshold_days"] == 60

    def test_init_rejects_inverted_thresholds(self, xdg_home: Path) -> None:
        """The warning threshold must be lower than the review threshold."""
        result = runner.invoke(app, ["config", "init", "--warning-days", "120"])

        assert result.exit_code == 1
        assert "Invalid settings" in result.output
        assert not (xdg_home / "config" / "macsweep" / "config.toml").exists()

    def test_init_refuses_to_overwrite(self, xdg_home: Path) -> None:
        """An existing config file is kept unless --force is given."""
        runner.invoke(app, ["config", "init", "--warning-days", "14"])

        refused = runner.invoke(app, ["config", "init"])
        forced = runner.invoke(app, ["config", "init", "--force"])

        assert refused.exit_code == 1
        assert "Config already exists" in refused.stdout
        assert forced.exit_code == 0
        path = xdg_home / "config" / "macsweep" / "config.toml"
        assert tomllib.loads(path.read_text())["warning_threshold_days"] == 30
