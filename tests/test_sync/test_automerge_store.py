"""Tests for sync/store.py: Automerge document persistence."""

from __future__ import annotations

import pytest

automerge = pytest.importorskip("automerge")

from automerge import Document  # noqa: E402

from braid.core.spans import BlockMarker, BlockSpan, TextSpan  # noqa: E402
from braid.sync.store import AutomergeStore, automerge_to_spans, plain_text, spans_to_automerge  # noqa: E402


@pytest.fixture
def store(tmp_path):
    """Create an AutomergeStore in a temp directory."""
    return AutomergeStore(tmp_path / ".braid")


class TestAutomergeStore:
    def test_write_and_read(self, store, bullet_items):
        store.write_spans("doc_a", bullet_items)
        assert store.read_spans("doc_a") == bullet_items

    def test_survives_reload(self, store, bullet_items):
        store.write_spans("doc_a", bullet_items)
        store._cache.clear()
        assert store.read_spans("doc_a") == bullet_items

    def test_overwrite(self, store, bullet_items):
        store.write_spans("doc_a", bullet_items)
        store.write_spans("doc_a", [TextSpan("new", {"em": True})])
        store._cache.clear()
        assert store.read_spans("doc_a") == [TextSpan("new", {"em": True})]

    def test_has_and_remove(self, store):
        assert not store.has("doc_a")
        store.write_spans("doc_a", [TextSpan("x")])
        assert store.has("doc_a")
        store.remove("doc_a")
        assert not store.has("doc_a")

    def test_read_missing(self, store):
        with pytest.raises(KeyError):
            store.read_spans("doc_missing")

    def test_write_uses_the_locks_dir(self, store, tmp_path):
        store.write_spans("doc_a", [TextSpan("x")])
        assert (tmp_path / ".braid" / "locks").is_dir()

    def test_list_document_ids(self, store):
        store.write_spans("doc_b", [])
        store.write_spans("doc_a", [TextSpan("x")])
        assert store.list_document_ids() == ["doc_a", "doc_b"]


class TestDocumentFields:
    def test_empty_document_has_no_spans(self):
        assert automerge_to_spans(Document()) == []

    def test_meta_is_written(self):
        doc = Document()
        spans_to_automerge(doc, "doc_a", [TextSpan("x")], text_field="body")
        data = doc.to_py()
        assert str(data["_meta"]["id"]) == "doc_a"
        assert str(data["_meta"]["text_field"]) == "body"
        assert automerge_to_spans(doc) == [TextSpan("x")]


class TestPlainText:
    def test_blocks_become_newlines(self, bullet_items):
        assert plain_text(bullet_items) == "item 1\nitem 2"

    def test_embeds_add_nothing(self):
        spans = [
            BlockSpan(BlockMarker("paragraph")),
            TextSpan("a"),
            BlockSpan(BlockMarker("image", (), {"src": "x.png"}, True)),
            TextSpan("b"),
        ]
        assert plain_text(spans) == "ab"
