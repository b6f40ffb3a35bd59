"""Tests for the bridle profile commands."""

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from bridle.cli.app import app

runner = CliRunner()

LIVE_CONFIG = {
    "model": "anthropic/claude-sonnet-4",
    "mcp": {"search": {"type": "local", "command": ["npx", "-y", "search-mcp"]}},
}


@pytest.fixture
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point both the live harness dirs and the bridle config dir at tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("BRIDLE_CONFIG_DIR", str(tmp_path / "bridle"))
    with patch("pathlib.Path.home", return_value=home):
        yield home


def _write_live(home: Path) -> Path:
    live = home / ".config" / "opencode"
    live.mkdir(parents=True)
    (live / "opencode.json").write_text(json.dumps(LIVE_CONFIG))
    return live


def _list(harness: str = "opencode") -> list[dict]:
    result = runner.invoke(app, ["profile", "list", harness, "--json"])
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


class TestCreateAndList:
    """Test profile create and list."""

    def test_create_empty(self, home: Path) -> None:
        result = runner.invoke(app, ["profile", "create", "opencode", "work"])

        assert result.exit_code == 0
        assert "Created profile" in result.output
        assert _list() == [{"harness": "opencode", "name": "work", "active": False}]

    def test_create_from_current(self, home: Path) -> None:
        _write_live(home)

        result = runner.invoke(app, ["profile", "create", "opencode", "backup", "--from-current"])
        assert result.exit_code == 0

        shown = runner.invoke(app, ["profile", "show", "opencode", "backup", "--json"])
        assert shown.exit_code == 0
        data = json.loads(shown.output)
        assert "search" in data["config"]["mcp_servers"]
        assert data["config"]["model"] == "anthropic/claude-sonnet-4"

    def test_create_from_current_without_config(self, home: Path) -> None:
        result = runner.invoke(app, ["profile", "create", "goose", "work", "-c"])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_create_invalid_name(self, home: Path) -> None:
        result = runner.invoke(app, ["profile", "create", "opencode", "Bad Name"])
        assert result.exit_code == 1

    def test_unknown_harness(self, home: Path) -> None:
        result = runner.invoke(app, ["profile", "create", "vscode", "work"])

        assert result.exit_code == 1
        assert "Unknown harness" in result.output

    def test_harness_aliases(self, home: Path) -> None:
        result = runner.invoke(app, ["profile", "create", "claude", "work"])

        assert result.exit_code == 0
        assert _list("claude-code")[0]["name"] == "work"

    def test_list_all_harnesses(self, home: Path) -> None:
        runner.invoke(app, ["profile", "create", "goose", "a"])
        runner.invoke(app, ["profile", "create", "amp", "b"])

        result = runner.invoke(app, ["profile", "list", "--json"])

        assert result.exit_code == 0
        pairs = [(row["harness"], row["name"]) for row in json.loads(result.output)]
        assert pairs == [("goose", "a"), ("amp-code", "b")]

    def test_list_uses_default_harness(self, home: Path) -> None:
        runner.invoke(app, ["config", "set", "default_harness", "goose"])
        runner.invoke(app, ["profile", "create", "goose", "a"])
        runner.invoke(app, ["profile", "create", "opencode", "b"])

        result = runner.invoke(app, ["profile", "list", "--json"])

        assert [row["name"] for row in json.loads(result.output)] == ["a"]

    def test_list_empty(self, home: Path) -> None:
        result = runner.invoke(app, ["profile", "list", "opencode"])

        assert result.exit_code == 0
        assert "No profiles found" in result.output


class TestShow:
    """Test profile show."""

    def test_show_table(self, home: Path) -> None:
        _write_live(home)
        runner.invoke(app, ["profile", "create", "opencode", "work", "-c"])

        result = runner.invoke(app, ["profile", "show", "opencode", "work"])

        assert result.exit_code == 0
        assert "Profile: work" in result.output
        assert "search" in result.output

    def test_show_missing(self, home: Path) -> None:
        result = runner.invoke(app, ["profile", "show", "opencode", "nope"])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestSwitchAndDelete:
    """Test profile switch and delete."""

    def test_switch_marks_active(self, home: Path) -> None:
        live = _write_live(home)
        runner.invoke(app, ["profile", "create", "opencode", "work", "-c"])

        result = runner.invoke(app, ["profile", "switch", "opencode", "work"])

        assert result.exit_code == 0
        assert "Switched" in result.output
        assert _list()[0]["active"] is True
        assert json.loads((live / "opencode.json").read_text()) == LIVE_CONFIG

    def test_delete_with_confirmation(self, home: Path) -> None:
        runner.invoke(app, ["profile", "create", "opencode", "work"])

        declined = runner.invoke(app, ["profile", "delete", "opencode", "work"], input="n\n")
        assert declined.exit_code == 1
        assert len(_list()) == 1

        accepted = runner.invoke(app, ["profile", "delete", "opencode", "work"], input="y\n")
        assert accepted.exit_code == 0
        assert _list() == []

    def test_delete_active_needs_force(self, home: Path) -> None:
        _write_live(home)
        runner.invoke(app, ["profile", "create", "opencode", "work", "-c"])
        runner.invoke(app, ["profile", "switch", "opencode", "work"])

        refused = runner.invoke(app, ["profile", "delete", "opencode", "work", "-y"])
        assert refused.exit_code == 1
        assert "active" in refused.output

        forced = runner.invoke(app, ["profile", "delete", "opencode", "work", "-y", "--force"])
        assert forced.exit_code == 0
        assert _list() == []


class TestEditAndDiff:
    """Test profile edit and diff."""

    def test_edit_failing_editor(self, home: Path) -> None:
        runner.invoke(app, ["profile", "create", "opencode", "work"])

        result = runner.invoke(app, ["profile", "edit", "opencode", "work", "--editor", "false"])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_diff_json(self, home: Path) -> None:
        _write_live(home)
        runner.invoke(app, ["profile", "create", "opencode", "default"])
        runner.invoke(app, ["profile", "create", "opencode", "backup", "-c"])

        result = runner.invoke(app, ["profile", "diff", "opencode", "default", "backup", "--json"])

        assert result.exit_code == 0
        entries = {entry["path"]: entry for entry in json.loads(result.output)["entries"]}
        assert entries["mcp_servers.search"]["kind"] == "added"
        assert entries["model"]["after"] == "anthropic/claude-sonnet-4"

    def test_diff_identical(self, home: Path) -> None:
        runner.invoke(app, ["profile", "create", "opencode", "a"])
        runner.invoke(app, ["profile", "create", "opencode", "b"])

        result = runner.invoke(app, ["profile", "diff", "opencode", "a", "b"])

        assert result.exit_code == 0
        assert "identical" in result.output
