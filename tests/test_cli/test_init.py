"""Tests for the `braid init` CLI command."""

from __future__ import annotations

import json
from pathlib import Path

from click.testing import CliRunner

from braid.cli.main import cli
from braid.core.ids import validate_id


class TestInit:
    """braid init creates .braid/ with a config and a docs/ store."""

    def test_creates_layout(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["init", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert (tmp_path / ".braid" / "docs").is_dir()
        assert (tmp_path / ".braid" / "config.json").is_file()
        assert "Initialized braid" in result.output

    def test_config_contents(self, tmp_path: Path) -> None:
        CliRunner().invoke(cli, ["init", "--path", str(tmp_path)])
        config = json.loads((tmp_path / ".braid" / "config.json").read_text())
        assert config["text_field"] == "text"
        assert config["repair_on_drift"] is True
        assert validate_id(config["peer_id"], "peer")

    def test_text_field_option(self, tmp_path: Path) -> None:
        CliRunner().invoke(cli, ["init", "--path", str(tmp_path), "--text-field", "body"])
        config = json.loads((tmp_path / ".braid" / "config.json").read_text())
        assert config["text_field"] == "body"

    def test_idempotent(self, tmp_path: Path) -> None:
        runner = CliRunner()
        runner.invoke(cli, ["init", "--path", str(tmp_path)])
        before = (tmp_path / ".braid" / "config.json").read_text()
        result = runner.invoke(cli, ["init", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert "already initialized" in result.output
        assert (tmp_path / ".braid" / "config.json").read_text() == before

    def test_file_in_the_way(self, tmp_path: Path) -> None:
        (tmp_path / ".braid").write_text("not a dir")
        result = CliRunner().invoke(cli, ["init", "--path", str(tmp_path)])
        assert result.exit_code != 0
        assert "not a directory" in result.output

    def test_missing_path(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["init", "--path", str(tmp_path / "nope")])
        assert result.exit_code != 0


class TestVersion:
    def test_version(self) -> None:
        from braid import __version__

        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
