"""CLI entry point and commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click

from braid import __version__
from braid.cli.helpers import output_error, output_result, read_json_file, require_root
from braid.core.basic_schema import basic_adapter
from braid.core.builder import build_tree
from braid.core.debug import index_table, render_tree
from braid.core.extract import extract_spans
from braid.core.grammar import GrammarAdapter
from braid.core.ids import generate_document_id, validate_id
from braid.core.spans import Span, spans_from_json, spans_to_json
from braid.errors import BraidError
from braid.storage.fs import BRAID_DIR, ensure_braid_dirs
from braid.storage.locks import LockTimeout


@click.group()
@click.version_option(__version__, prog_name="braid")
@click.option("-v", "--verbose", is_flag=True, help="Log translation details to stderr.")
def cli(verbose: bool) -> None:
    """braid: sync a flat span sequence with a structured document tree."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )


def _load_spans(path: str, is_json: bool) -> list[Span]:
    data = read_json_file(path, is_json)
    if not isinstance(data, list):
        output_error(f"{path} must contain a JSON array of spans", "INVALID_SPANS", is_json)
    try:
        return spans_from_json(data)
    except (ValueError, AttributeError) as e:
        output_error(f"Invalid spans in {path}: {e}", "INVALID_SPANS", is_json)


def _load_tree(adapter: GrammarAdapter, path: str, is_json: bool):
    """Parse a tree file against the schema *adapter* was built from."""
    data = read_json_file(path, is_json)
    try:
        return adapter.schema.node_from_json(data)
    except (BraidError, KeyError, ValueError) as e:
        output_error(f"Invalid tree in {path}: {e}", "INVALID_TREE", is_json)


def _format_spans(spans: list[Span]) -> str:
    return "\n".join(json.dumps(item, sort_keys=True) for item in spans_to_json(spans))


# ---------------------------------------------------------------------------
# braid init
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--path",
    "target_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Directory to initialize braid in (defaults to current directory).",
)
@click.option("--text-field", default=None, help="Name of the rich-text field in stored documents.")
def init(target_path: str, text_field: str | None) -> None:
    """Initialize a .braid/ document store."""
    from braid.sync.config import default_sync_config, save_sync_config

    root = Path(target_path)
    braid_dir = root / BRAID_DIR

    if braid_dir.is_dir():
        click.echo(f"braid already initialized in {BRAID_DIR}/")
        return
    if braid_dir.exists():
        raise click.ClickException(
            f"Cannot initialize: '{BRAID_DIR}' exists but is not a directory. Remove it and try again."
        )

    braid_dir = ensure_braid_dirs(root)
    config = default_sync_config()
    if text_field:
        config["text_field"] = text_field
    save_sync_config(braid_dir, config)
    click.echo(f"Initialized braid in {BRAID_DIR}/ (peer {config['peer_id']})")


# ---------------------------------------------------------------------------
# Codec inspection
# ---------------------------------------------------------------------------


@cli.command("tree")
@click.argument("spans_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output the tree as JSON.")
def tree_cmd(spans_file: str, as_json: bool) -> None:
    """Render the canonical tree for a span JSON file."""
    spans = _load_spans(spans_file, as_json)
    try:
        tree = build_tree(basic_adapter(), spans)
    except BraidError as e:
        output_error(str(e), "BUILD_FAILED", as_json)
    output_result(data=tree.to_json(), human_message=render_tree(tree), is_json=as_json)


@cli.command("spans")
@click.argument("tree_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def spans_cmd(tree_file: str, as_json: bool) -> None:
    """Extract the span sequence from a tree JSON file."""
    adapter = basic_adapter()
    tree = _load_tree(adapter, tree_file, as_json)
    try:
        spans = extract_spans(adapter, tree)
    except BraidError as e:
        output_error(str(e), "EXTRACT_FAILED", as_json)
    output_result(data=spans_to_json(spans), human_message=_format_spans(spans), is_json=as_json)


@cli.command("indexes")
@click.argument("spans_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def indexes_cmd(spans_file: str, as_json: bool) -> None:
    """Show the forward event stream with domain and tree indexes."""
    spans = _load_spans(spans_file, as_json)
    try:
        rows = index_table(basic_adapter(), spans)
    except BraidError as e:
        output_error(str(e), "TRAVERSAL_FAILED", as_json)
    lines = [f"{'domain':>13}  {'tree':>9}  event"]
    for row in rows:
        domain = f"{row['domain_before']}->{row['domain_after']}"
        tree = f"{row['tree_before']}->{row['tree_after']}"
        lines.append(f"{domain:>13}  {tree:>9}  {row['event']}")
    output_result(data=rows, human_message="\n".join(lines), is_json=as_json)


# ---------------------------------------------------------------------------
# Document store
# ---------------------------------------------------------------------------


@cli.command("import")
@click.argument("tree_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--id", "doc_id", default=None, help="Document id (default: a new doc_ id).")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def import_cmd(tree_file: str, doc_id: str | None, as_json: bool) -> None:
    """Import a tree JSON file into the Automerge document store."""
    from braid.sync.config import load_sync_config
    from braid.sync.domain import SpanDocument
    from braid.sync.loader import load_tree_into_domain
    from braid.sync.store import AutomergeStore

    braid_dir = require_root(as_json)
    if doc_id is not None and not validate_id(doc_id, "doc"):
        output_error(f"Invalid document id: '{doc_id}'.", "INVALID_ID", as_json)
    doc_id = doc_id or generate_document_id()

    adapter = basic_adapter()
    tree = _load_tree(adapter, tree_file, as_json)
    config = load_sync_config(braid_dir)
    handle = SpanDocument(doc_id=doc_id)
    try:
        load_tree_into_domain(adapter, handle, tree)
    except BraidError as e:
        output_error(str(e), "IMPORT_FAILED", as_json)

    spans = handle.spans()
    try:
        AutomergeStore(braid_dir).write_spans(doc_id, spans, config.get("text_field", "text"))
    except LockTimeout as e:
        output_error(str(e), "LOCKED", as_json)
    output_result(
        data={"id": doc_id, "spans": len(spans), "length": handle.length},
        human_message=f"Imported {tree_file} as {doc_id} ({handle.length} units)",
        is_json=as_json,
    )


@cli.command("show")
@click.argument("doc_id")
@click.option("--tree", "as_tree", is_flag=True, help="Render the stored spans as a tree.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def show_cmd(doc_id: str, as_tree: bool, as_json: bool) -> None:
    """Print the spans stored for a document."""
    from braid.sync.store import AutomergeStore

    braid_dir = require_root(as_json)
    store = AutomergeStore(braid_dir)
    if not store.has(doc_id):
        output_error(f"No stored document '{doc_id}'.", "NOT_FOUND", as_json)
    spans = store.read_spans(doc_id)

    if as_tree:
        tree = build_tree(basic_adapter(), spans)
        output_result(data=tree.to_json(), human_message=render_tree(tree), is_json=as_json)
        return
    output_result(data=spans_to_json(spans), human_message=_format_spans(spans), is_json=as_json)


@cli.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def list_cmd(as_json: bool) -> None:
    """List stored document ids."""
    from braid.sync.store import AutomergeStore

    braid_dir = require_root(as_json)
    ids = AutomergeStore(braid_dir).list_document_ids()
    output_result(data=ids, human_message="\n".join(ids) if ids else "No documents.", is_json=as_json)


if __name__ == "__main__":
    cli()
