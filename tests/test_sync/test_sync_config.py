"""Tests for sync/config.py."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from braid.core.ids import validate_id
from braid.sync.config import CONFIG_FILE, default_sync_config, load_sync_config, save_sync_config


class TestDefaults:
    def test_keys(self) -> None:
        config = default_sync_config()
        assert config["text_field"] == "text"
        assert config["repair_on_drift"] is True
        assert config["log_drift_details"] is False
        assert validate_id(config["peer_id"], "peer")


class TestLoadSave:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_sync_config(tmp_path)
        assert config["text_field"] == "text"

    def test_round_trip(self, tmp_path: Path) -> None:
        config = default_sync_config()
        config["text_field"] = "body"
        config["repair_on_drift"] = False
        save_sync_config(tmp_path / ".braid", config)
        assert load_sync_config(tmp_path / ".braid") == config

    def test_file_is_sorted_json(self, tmp_path: Path) -> None:
        save_sync_config(tmp_path, default_sync_config())
        raw = (tmp_path / CONFIG_FILE).read_text()
        assert raw.endswith("\n")
        assert list(json.loads(raw)) == sorted(json.loads(raw))

    def test_partial_file_is_filled_in(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE).write_text('{"log_drift_details": true}')
        config = load_sync_config(tmp_path)
        assert config["log_drift_details"] is True
        assert config["repair_on_drift"] is True

    def test_unknown_keys_ignored(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE).write_text('{"colour": "blue"}')
        assert "colour" not in load_sync_config(tmp_path)

    def test_non_object_rejected(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE).write_text("[1, 2]")
        with pytest.raises(ValueError, match="JSON object"):
            load_sync_config(tmp_path)
