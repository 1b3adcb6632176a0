"""Tests for sync/orchestrator.py: keeping an editor and a span document in step."""

from __future__ import annotations

import logging

import pytest

from braid.core.builder import build_tree
from braid.core.spans import BlockMarker, BlockSpan, TextSpan
from braid.errors import SyncError
from braid.sync.config import default_sync_config
from braid.sync.domain import SpanDocument
from braid.sync.ops import SpliceText
from braid.sync.orchestrator import REMOTE_META, REPAIR_META, SyncOrchestrator, SyncState, same_content
from braid.tree.model import Fragment, Slice
from braid.tree.state import Editor, EditorState, TextSelection
from braid.tree.steps import ReplaceStep

P = BlockSpan(BlockMarker("paragraph"))


def _wire(adapter, spans, config=None, attach=True) -> SyncOrchestrator:
    handle = SpanDocument(spans)
    editor = Editor(EditorState.create(build_tree(adapter, spans)))
    orchestrator = SyncOrchestrator(adapter, editor, handle, config)
    if attach:
        orchestrator.attach()
    return orchestrator


def _in_step(orchestrator) -> bool:
    return orchestrator.editor.state.doc.eq(build_tree(orchestrator.adapter, orchestrator.handle.spans()))


def _drifting_edit(orchestrator) -> None:
    """Type a character and add a mark that has no domain counterpart, in one transaction."""
    schema = orchestrator.adapter.schema
    tr = orchestrator.editor.state.tr
    tr.insert_text("!", 6)
    tr.add_mark(1, 3, schema.mark("code"))
    orchestrator.editor.dispatch(tr)


class TestLocalEdits:
    def test_typing_is_committed(self, adapter) -> None:
        orchestrator = _wire(adapter, [TextSpan("hello")])
        editor = orchestrator.editor
        editor.dispatch(editor.state.tr.insert_text(" world", 6))
        assert orchestrator.handle.spans() == [TextSpan("hello world")]
        assert orchestrator.drift_count == 0
        assert orchestrator.state is SyncState.IDLE
        assert _in_step(orchestrator)

    def test_one_change_per_transaction(self, adapter) -> None:
        orchestrator = _wire(adapter, [P, TextSpan("ab")])
        seen = []
        orchestrator.handle.on_change(seen.append)
        editor = orchestrator.editor
        tr = editor.state.tr
        tr.insert_text("x", 3)
        tr.insert_text("y", 1)
        editor.dispatch(tr)
        assert len(seen) == 1
        assert orchestrator.handle.spans() == [P, TextSpan("yabx")]

    def test_own_change_is_not_fed_back(self, adapter) -> None:
        orchestrator = _wire(adapter, [P, TextSpan("ab")])
        editor = orchestrator.editor
        editor.dispatch(editor.state.tr.insert_text("c", 3))
        assert editor.state.doc.eq(build_tree(adapter, [P, TextSpan("abc")]))
        assert len(editor.history) == 1

    def test_selection_only_transaction_commits_nothing(self, adapter) -> None:
        orchestrator = _wire(adapter, [P, TextSpan("ab")])
        heads = orchestrator.handle.heads
        editor = orchestrator.editor
        editor.dispatch(editor.state.tr.set_selection(TextSelection(2)))
        assert orchestrator.handle.heads == heads

    def test_unsynced_mark_only_commits_nothing(self, adapter, schema) -> None:
        orchestrator = _wire(adapter, [P, TextSpan("ab")])
        heads = orchestrator.handle.heads
        old_state = orchestrator.editor.state
        tr = old_state.tr.add_mark(1, 3, schema.mark("code"))
        assert orchestrator.capture_local_edit([tr], old_state) is None
        assert orchestrator.handle.heads == heads

    def test_paragraph_split_syncs_bookkeeping_quietly(self, adapter, schema, caplog) -> None:
        orchestrator = _wire(adapter, [TextSpan("hello world")])
        editor = orchestrator.editor
        split = Slice(Fragment.from_array([schema.node("paragraph"), schema.node("paragraph")]), 1, 1)
        tr = editor.state.tr
        tr.step(ReplaceStep(7, 7, split))
        with caplog.at_level(logging.DEBUG, logger="braid.sync.orchestrator"):
            editor.dispatch(tr)
        assert orchestrator.handle.spans() == [P, TextSpan("hello "), P, TextSpan("world")]
        assert orchestrator.drift_count == 0
        assert "bookkeeping" in caplog.text
        assert _in_step(orchestrator)
        assert editor.history[-1].get_meta(REPAIR_META) is True

    def test_untranslatable_edit_raises(self, adapter) -> None:
        editor = Editor(EditorState.create(build_tree(adapter, [TextSpan("hello")])))
        orchestrator = SyncOrchestrator(adapter, editor, SpanDocument())
        orchestrator.attach()
        with pytest.raises(SyncError, match="Could not commit local edit"):
            editor.dispatch(editor.state.tr.insert_text("!", 6))
        assert orchestrator.state is SyncState.IDLE


class TestDrift:
    def test_drift_is_counted_and_repaired(self, adapter, caplog) -> None:
        orchestrator = _wire(adapter, [TextSpan("hello")])
        with caplog.at_level(logging.WARNING, logger="braid.sync.orchestrator"):
            _drifting_edit(orchestrator)
        assert orchestrator.handle.spans() == [TextSpan("hello!")]
        assert orchestrator.drift_count == 1
        assert "does not match" in caplog.text
        assert "Drift details" not in caplog.text
        assert _in_step(orchestrator)

    def test_repair_is_idempotent(self, adapter) -> None:
        orchestrator = _wire(adapter, [TextSpan("hello")])
        _drifting_edit(orchestrator)
        assert orchestrator.repair() is None

    def test_repair_keeps_selection(self, adapter) -> None:
        orchestrator = _wire(adapter, [TextSpan("hello")])
        editor = orchestrator.editor
        editor.dispatch(editor.state.tr.set_selection(TextSelection(2, 4)))
        _drifting_edit(orchestrator)
        assert editor.state.selection == TextSelection(2, 4)

    def test_repair_can_be_disabled(self, adapter, schema) -> None:
        config = default_sync_config()
        config["repair_on_drift"] = False
        orchestrator = _wire(adapter, [TextSpan("hello")], config)
        _drifting_edit(orchestrator)
        assert orchestrator.drift_count == 1
        assert not _in_step(orchestrator)
        repair = orchestrator.repair()
        assert repair is not None
        assert repair.get_meta(REPAIR_META) is True
        assert _in_step(orchestrator)

    def test_drift_details(self, adapter, caplog) -> None:
        config = default_sync_config()
        config["log_drift_details"] = True
        orchestrator = _wire(adapter, [TextSpan("hello")], config)
        with caplog.at_level(logging.WARNING, logger="braid.sync.orchestrator"):
            _drifting_edit(orchestrator)
        assert "Drift details" in caplog.text
        assert "addMark" in caplog.text


class TestRemoteChanges:
    def test_remote_splice(self, adapter) -> None:
        orchestrator = _wire(adapter, [TextSpan("hello")])
        editor = orchestrator.editor
        seen = []
        editor.register_handler(lambda trs, old, new: seen.extend(trs))
        orchestrator.handle.change(lambda tx: tx.splice_text(0, "Hi "))
        assert editor.state.doc.eq(build_tree(adapter, [TextSpan("Hi hello")]))
        assert len(seen) == 1
        tr = seen[0]
        assert tr.get_meta(REMOTE_META) is True
        assert tr.get_meta("add_to_history") is False
        assert editor.history == []

    def test_remote_change_is_not_fed_back(self, adapter) -> None:
        orchestrator = _wire(adapter, [P, TextSpan("ab")])
        handle = orchestrator.handle
        handle.change(lambda tx: tx.insert_block(3, BlockMarker("heading", (), {"level": 1})))
        heads = handle.heads
        assert handle.spans() == [P, TextSpan("ab"), BlockSpan(BlockMarker("heading", (), {"level": 1}))]
        assert handle.heads == heads
        assert _in_step(orchestrator)

    def test_patches_from_another_peer(self, adapter, bullet_items) -> None:
        orchestrator = _wire(adapter, bullet_items)
        peer = orchestrator.handle.fork()
        start = peer.heads
        peer.change(lambda tx: tx.mark(1, 14, "strong"))
        peer.change(lambda tx: tx.splice_text(14, "!"))
        orchestrator.handle.apply_patches(peer.diff(start))
        assert orchestrator.handle.spans() == peer.spans()
        assert _in_step(orchestrator)

    def test_empty_patches(self, adapter) -> None:
        orchestrator = _wire(adapter, [TextSpan("x")])
        handle = orchestrator.handle
        assert orchestrator.apply_remote_change(handle, [], handle.heads) is None

    def test_bad_patch_raises(self, adapter) -> None:
        orchestrator = _wire(adapter, [TextSpan("x")], attach=False)
        handle = orchestrator.handle
        with pytest.raises(SyncError, match="Could not apply remote change"):
            orchestrator.apply_remote_change(handle, [SpliceText(10, "y")], handle.heads)
        assert orchestrator.state is SyncState.IDLE


class TestWiring:
    def test_detach(self, adapter) -> None:
        orchestrator = _wire(adapter, [TextSpan("hello")])
        orchestrator.detach()
        orchestrator.detach()
        editor = orchestrator.editor
        editor.dispatch(editor.state.tr.insert_text("!", 6))
        assert orchestrator.handle.spans() == [TextSpan("hello")]
        orchestrator.handle.change(lambda tx: tx.splice_text(0, ">"))
        assert editor.state.doc.eq(build_tree(adapter, [TextSpan("hello!")]))

    def test_attach_twice_registers_once(self, adapter) -> None:
        orchestrator = _wire(adapter, [TextSpan("hello")])
        orchestrator.attach()
        seen = []
        orchestrator.handle.on_change(seen.append)
        editor = orchestrator.editor
        editor.dispatch(editor.state.tr.insert_text("!", 6))
        assert len(seen) == 1

    def test_change_handle(self, adapter) -> None:
        orchestrator = _wire(adapter, [TextSpan("hello")])
        old = orchestrator.handle
        new = SpanDocument([TextSpan("hello")])
        orchestrator.change_handle(new)
        old.change(lambda tx: tx.splice_text(0, "old "))
        assert orchestrator.editor.state.doc.eq(build_tree(adapter, [TextSpan("hello")]))
        new.change(lambda tx: tx.splice_text(0, "new "))
        assert orchestrator.editor.state.doc.eq(build_tree(adapter, [TextSpan("new hello")]))


class TestSameContent:
    def test_ignores_bookkeeping(self, adapter, schema) -> None:
        a = schema.node("doc", None, [schema.node("paragraph", {"explicit_block": True}, [schema.text("x")])])
        b = schema.node("doc", None, [schema.node("paragraph", None, [schema.text("x")])])
        assert not a.eq(b)
        assert same_content(a, b)

    def test_sees_marks(self, schema) -> None:
        a = schema.node("doc", None, [schema.node("paragraph", None, [schema.text("x")])])
        b = schema.node("doc", None, [schema.node("paragraph", None, [schema.text("x", [schema.mark("code")])])])
        assert not same_content(a, b)
