"""Unit tests for info and mark-used commands."""

import json
from datetime import date

from typer.testing import CliRunner

from macsweep.cli.main import app
from macsweep.core.config import Settings
from macsweep.core.store import EvidenceStore
from macsweep.models.package import PackageKey, PackageSource, RawPackage

runner = CliRunner()


class TestInfoCommand:
    """Tests for macsweep info command."""

    def test_info_table(self, registry: Settings) -> None:
        """The table shows metadata and the recommendation."""
        result = runner.invoke(app, ["info", "pcre2"])

        assert result.exit_code == 0
        assert "10.42" in result.stdout
        assert "Required by" in result.stdout
        assert "REVIEW" in result.stdout

    def test_info_json(self, registry: Settings) -> None:
        """JSON output carries usage, dependency class and severity."""
        result = runner.invoke(app, ["info", "ripgrep", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["severity"] == "none"
        assert data["reason"] == "Used today"
        assert data["last_used"] == date.today().isoformat()
        assert data["dependency_class"] == "leaf"
        assert data["dependencies"] == ["pcre2"]

    def test_info_orphan(self, registry: Settings) -> None:
        """Orphaned dependencies are reported as safe to remove."""
        result = runner.invoke(app, ["info", "libyaml", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["severity"] == "safe"
        assert data["dependency_class"] == "orphan"

    def test_info_case_insensitive(self, registry: Settings) -> None:
        """Package names are matched case-insensitively."""
        result = runner.invoke(app, ["info", "RipGrep", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["name"] == "ripgrep"

    def test_info_unknown_package(self, registry: Settings) -> None:
        """Unknown packages exit with code 1."""
        result = runner.invoke(app, ["info", "nonexistent"])

        assert result.exit_code == 1
        assert "Package not found" in result.output

    def test_info_ambiguous_name(self, registry: Settings) -> None:
        """A name installed from several sources needs --source."""
        with EvidenceStore.open(registry.effective_database_path) as store:
            store.upsert_package(RawPackage("ripgrep", PackageSource.CARGO, version="14.1.0"))

        ambiguous = runner.invoke(app, ["info", "ripgrep"])
        resolved = runner.invoke(app, ["info", "ripgrep", "--source", "cargo", "--json"])

        assert ambiguous.exit_code == 1
        assert "--source" in ambiguous.output
        assert resolved.exit_code == 0
        assert json.loads(resolved.stdout)["source"] == "cargo"


class TestMarkUsedCommand:
    """Tests for macsweep mark-used command."""

    def test_mark_used_records_manual_event(self, registry: Settings) -> None:
        """A manual usage event is stored for today."""
        result = runner.invoke(app, ["mark-used", "cowsay"])

        assert result.exit_code == 0
        assert "Marked cowsay (npm) as used today" in result.stdout
        with EvidenceStore.open(registry.effective_database_path) as store:
            events = store.usage_events(PackageKey("cowsay", PackageSource.NPM))
        assert [(e.kind.value, e.event_date) for e in events] == [("manual", date.today())]

    def test_mark_used_twice_is_idempotent(self, registry: Settings) -> None:
        """Marking a package twice on the same day stores one event."""
        runner.invoke(app, ["mark-used", "cowsay"])

        result = runner.invoke(app, ["mark-used", "cowsay"])

        assert result.exit_code == 0
        assert "already marked" in result.stdout

    def test_mark_used_changes_recommendation(self, registry: Settings) -> None:
        """A marked package is no longer a removal candidate."""
        runner.invoke(app, ["mark-used", "cowsay", "--source", "npm"])

        result = runner.invoke(app, ["info", "cowsay", "--json"])

        assert json.loads(result.stdout)["severity"] == "none"

    def test_mark_used_unknown_package(self, registry: Settings) -> None:
        """Unknown packages exit with code 1."""
        result = runner.invoke(app, ["mark-used", "nonexistent"])

        assert result.exit_code == 1
