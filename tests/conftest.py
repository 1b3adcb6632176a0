"""Shared test fixtures."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from braid.core.basic_schema import basic_adapter
from braid.core.spans import BlockMarker, BlockSpan, TextSpan


@pytest.fixture()
def adapter():
    """Return a grammar adapter over the basic schema."""
    return basic_adapter()


@pytest.fixture()
def schema(adapter):
    return adapter.schema


@pytest.fixture()
def bullet_items() -> list:
    """Two bullet list items, ``item 1`` and ``item 2``."""
    return [
        BlockSpan(BlockMarker("list_item", ("bullet_list",))),
        TextSpan("item 1"),
        BlockSpan(BlockMarker("list_item", ("bullet_list",))),
        TextSpan("item 2"),
    ]


@pytest.fixture()
def braid_root(tmp_path: Path) -> Path:
    """Return a temporary directory suitable for initializing .braid/ in."""
    return tmp_path


@pytest.fixture()
def initialized_root(braid_root: Path) -> Path:
    """Return a temporary directory with .braid/ already initialized."""
    from braid.storage.fs import ensure_braid_dirs
    from braid.sync.config import default_sync_config, save_sync_config

    braid_dir = ensure_braid_dirs(braid_root)
    save_sync_config(braid_dir, default_sync_config())
    return braid_root


@pytest.fixture()
def cli_runner() -> CliRunner:
    """Return a Click CliRunner for invoking CLI commands."""
    return CliRunner()


@pytest.fixture()
def cli_env(initialized_root: Path) -> dict[str, str]:
    """Return env dict with BRAID_ROOT pointing to initialized_root."""
    return {"BRAID_ROOT": str(initialized_root)}


@pytest.fixture()
def invoke(cli_runner: CliRunner, cli_env: dict[str, str]):
    """Return a helper that invokes CLI commands with the right environment.

    Usage::

        result = invoke("tree", "spans.json")
    """
    from braid.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), env=cli_env, **kwargs)

    return _invoke


@pytest.fixture()
def invoke_json(invoke):
    """Like invoke, but appends --json and parses the response.

    Returns (parsed_dict, exit_code) tuple.
    """

    def _invoke_json(*args: str) -> tuple[dict, int]:
        result = invoke(*args, "--json")
        parsed = json.loads(result.output)
        return parsed, result.exit_code

    return _invoke_json


@pytest.fixture()
def write_json(tmp_path: Path):
    """Factory fixture: write *data* as JSON under tmp_path and return the path."""

    def _write(name: str, data: object) -> str:
        path = tmp_path / name
        path.write_text(json.dumps(data))
        return str(path)

    return _write
