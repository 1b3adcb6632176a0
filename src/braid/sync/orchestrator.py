"""Bidirectional sync between an editor and a domain handle.

Handles two flows:
1. Local editor transaction -> domain operations committed in one change
2. Remote domain change -> editor transaction, kept out of local history

A guard records which flow is running so that the change each flow causes
on the other side is not fed back in.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator

from braid.core.builder import build_tree
from braid.core.grammar import STATE_ATTRS, GrammarAdapter
from braid.core.spans import Span, spans_to_json
from braid.errors import BraidError, SyncError
from braid.sync.config import SyncConfig, default_sync_config
from braid.sync.domain import DomainChange, Heads, SpanDocument, SpanTransaction
from braid.sync.ops import DomainOp
from braid.sync.translate import domain_ops_to_tree, replace_differing_range, tree_steps_to_domain_ops
from braid.tree.model import Node
from braid.tree.state import Editor, EditorState, TextSelection, Transaction

logger = logging.getLogger(__name__)

REPAIR_META = "braid_repair"
REMOTE_META = "braid_remote"


class SyncState(Enum):
    IDLE = "idle"
    APPLYING_LOCAL = "applying-local"
    APPLYING_REMOTE = "applying-remote"


def same_content(a: Node, b: Node) -> bool:
    """Compare two trees, ignoring the bookkeeping attributes."""
    if a.type is not b.type or a.text != b.text:
        return False
    if len(a.marks) != len(b.marks) or not all(x.eq(y) for x, y in zip(a.marks, b.marks)):
        return False
    if _visible_attrs(a) != _visible_attrs(b):
        return False
    if a.child_count != b.child_count:
        return False
    return all(same_content(x, y) for x, y in zip(a.content, b.content))


def _visible_attrs(node: Node) -> dict:
    return {k: v for k, v in node.attrs.items() if k not in STATE_ATTRS}


class SyncOrchestrator:
    """Keeps an :class:`Editor` and a :class:`SpanDocument` in step."""

    def __init__(
        self,
        adapter: GrammarAdapter,
        editor: Editor,
        handle: SpanDocument,
        config: SyncConfig | None = None,
    ) -> None:
        self.adapter = adapter
        self.editor = editor
        self.handle = handle
        self.config: SyncConfig = config or default_sync_config()
        self.state = SyncState.IDLE
        self.drift_count = 0
        self._attached = False

    @contextmanager
    def _guard(self, state: SyncState) -> Iterator[None]:
        previous = self.state
        self.state = state
        try:
            yield
        finally:
            self.state = previous

    @property
    def busy(self) -> bool:
        return self.state is not SyncState.IDLE

    # -- wiring -------------------------------------------------------------

    def attach(self) -> None:
        """Start listening to editor transactions and domain changes."""
        if self._attached:
            return
        self.editor.register_handler(self._on_transactions)
        self.handle.on_change(self._on_domain_change)
        self._attached = True

    def detach(self) -> None:
        """Stop listening; the editor and the handle are left as they are."""
        if not self._attached:
            return
        self.editor.unregister_handler(self._on_transactions)
        self.handle.off_change(self._on_domain_change)
        self._attached = False

    def change_handle(self, handle: SpanDocument) -> None:
        """Point the orchestrator at another domain handle."""
        if self._attached:
            self.handle.off_change(self._on_domain_change)
            handle.on_change(self._on_domain_change)
        self.handle = handle

    def _on_transactions(
        self, transactions: list[Transaction], old_state: EditorState, _new_state: EditorState
    ) -> None:
        if self.busy:
            return
        self.capture_local_edit(transactions, old_state)

    def _on_domain_change(self, change: DomainChange) -> None:
        if self.busy:
            return
        self.apply_remote_change(change.document, change.patches, change.heads_before)

    # -- local -> domain ----------------------------------------------------

    def capture_local_edit(
        self, transactions: list[Transaction], old_state: EditorState
    ) -> Transaction | None:
        """Commit the steps of *transactions* to the domain handle.

        Returns the repair transaction dispatched to the editor when its
        tree had drifted from the domain spans, else ``None``.

        Raises:
            SyncError: If the steps cannot be translated or committed.
        """
        transactions = [tr for tr in transactions if tr.doc_changed]
        if not transactions:
            return None

        heads_before = self.handle.heads
        spans_before = self.handle.spans()

        with self._guard(SyncState.APPLYING_LOCAL):
            try:
                self.handle.change(lambda tx: self._translate_into(tx, transactions))
            except (BraidError, ValueError, IndexError) as exc:
                raise SyncError(f"Could not commit local edit: {exc}") from exc

            heads_after = self.handle.heads
            if heads_after == heads_before:
                return None

            patches = self.handle.diff(heads_before, heads_after)
            return self._check_drift(old_state, spans_before, patches, transactions)

    def _translate_into(self, tx: SpanTransaction, transactions: list[Transaction]) -> None:
        for tr in transactions:
            for op in tree_steps_to_domain_ops(self.adapter, tx.spans, tr.steps, tr.before):
                tx.apply(op)

    def _check_drift(
        self,
        old_state: EditorState,
        spans_before: list[Span],
        patches: list[DomainOp],
        transactions: list[Transaction],
    ) -> Transaction | None:
        try:
            expected = domain_ops_to_tree(self.adapter, spans_before, patches, old_state.tr).doc
        except (BraidError, ValueError, IndexError) as exc:
            logger.warning("Could not replay committed patches onto the previous tree: %s", exc)
            expected = build_tree(self.adapter, self.handle.spans())

        actual = self.editor.state.doc
        if expected.eq(actual):
            return None
        if same_content(expected, actual):
            logger.debug("Syncing bookkeeping attributes after local edit")
            return self._repair()

        self.drift_count += 1
        logger.warning("Editor tree does not match the domain spans; repairing")
        if self.config.get("log_drift_details"):
            logger.warning(
                "Drift details: spans_before=%s steps=%s",
                json.dumps(spans_to_json(spans_before), sort_keys=True),
                json.dumps([step.to_json() for tr in transactions for step in tr.steps], default=str),
            )
        if not self.config.get("repair_on_drift", True):
            return None
        return self._repair()

    # -- domain -> local ----------------------------------------------------

    def apply_remote_change(
        self, domain_doc: SpanDocument, patches: list[DomainOp], heads_before: Heads
    ) -> Transaction | None:
        """Apply a change made on the domain side to the editor.

        The transaction is dispatched with ``add_to_history`` off so remote
        edits never land on the local undo stack.
        """
        if not patches:
            return None
        spans = domain_doc.spans(heads_before)
        with self._guard(SyncState.APPLYING_REMOTE):
            try:
                tr = domain_ops_to_tree(self.adapter, spans, patches, self.editor.state.tr)
            except (BraidError, ValueError, IndexError) as exc:
                raise SyncError(f"Could not apply remote change: {exc}") from exc
            tr.set_meta("add_to_history", False)
            tr.set_meta(REMOTE_META, True)
            self.editor.dispatch(tr)
        return tr

    # -- repair -------------------------------------------------------------

    def repair(self) -> Transaction | None:
        """Rebuild whatever part of the editor tree differs from the domain spans.

        Returns the dispatched transaction, or ``None`` when the tree
        already matches.  Running it again right after is a no-op.
        """
        with self._guard(SyncState.APPLYING_LOCAL):
            return self._repair()

    def _repair(self) -> Transaction | None:
        target = build_tree(self.adapter, self.handle.spans())
        state = self.editor.state
        tr = state.tr
        if not replace_differing_range(tr, target):
            return None
        try:
            selection = TextSelection.from_json(tr.doc, state.selection.to_json())
        except (ValueError, IndexError) as exc:
            logger.warning("Selection %r does not fit the repaired tree (%s); collapsing", state.selection, exc)
            selection = TextSelection.near(tr.doc, state.selection.head)
        tr.set_selection(selection)
        tr.set_stored_marks(state.stored_marks)
        tr.set_meta(REPAIR_META, True)
        self.editor.dispatch(tr)
        return tr
