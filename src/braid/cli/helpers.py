"""Shared CLI helpers and output utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn

import click

from braid.storage.fs import BRAID_DIR, BraidRootError, find_root


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


def require_root(is_json: bool = False) -> Path:
    """Find the .braid/ directory or exit with error."""
    try:
        root = find_root()
    except BraidRootError as e:
        output_error(str(e), "NOT_INITIALIZED", is_json)
    if root is None:
        output_error(
            "Not a braid project (no .braid/ found). Run 'braid init' first.",
            "NOT_INITIALIZED",
            is_json,
        )
    return root / BRAID_DIR


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------


def read_json_file(path: str, is_json: bool) -> object:
    """Parse a JSON file given on the command line, or exit with error."""
    try:
        return json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        output_error(f"{path} is not valid JSON: {e}", "INVALID_JSON", is_json)


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def json_envelope(ok: bool, *, data: object = None, error: object = None) -> str:
    """Build a structured JSON output envelope."""
    result: dict = {"ok": ok}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result, sort_keys=True, indent=2) + "\n"


def json_error_obj(code: str, message: str) -> dict:
    return {"code": code, "message": message}


def output_error(message: str, code: str, is_json: bool, exit_code: int = 1) -> NoReturn:
    """Print error and exit. JSON errors go to stdout; human errors to stderr."""
    if is_json:
        click.echo(json_envelope(False, error=json_error_obj(code, message)))
    else:
        click.echo(f"Error: {message}", err=True)
    raise SystemExit(exit_code)


def output_result(*, data: object, human_message: str, is_json: bool) -> None:
    """Print success result in the appropriate format."""
    if is_json:
        click.echo(json_envelope(True, data=data))
    else:
        click.echo(human_message)
