"""In-memory domain handle: a span sequence with a hash-chained change history.

:class:`SpanDocument` stands in for the replicated text field.  Each committed
change gets a head hash chained to the previous head, so any earlier state
can be viewed with :meth:`SpanDocument.spans` and the operations between two
states recovered with :meth:`SpanDocument.diff`.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from braid.core.ids import generate_change_id, generate_document_id
from braid.core.spans import BlockMarker, BlockSpan, MarkSet, Span, normalize_spans
from braid.sync.ops import (
    AddMark,
    DeleteRange,
    DomainOp,
    InsertBlock,
    RemoveMark,
    SpliceText,
    UpdateBlock,
    apply_op,
    ops_for_spans,
)

logger = logging.getLogger(__name__)

Heads = tuple[str, ...]

# A full copy of the spans is kept every this many changes; older states
# are rebuilt by replaying operations from the nearest copy.
SNAPSHOT_INTERVAL = 64


@dataclass(frozen=True)
class DomainChange:
    """Payload delivered to change listeners after a commit."""

    document: SpanDocument
    patches: list[DomainOp]
    heads_before: Heads


ChangeListener = Callable[[DomainChange], None]


@dataclass(frozen=True)
class _Change:
    head: str
    change_id: str
    ops: tuple[DomainOp, ...]


def _hash_change(parent: str | None, change_id: str, ops: tuple[DomainOp, ...]) -> str:
    payload = json.dumps(
        {"parent": parent, "id": change_id, "ops": [op.to_dict() for op in ops]},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class SpanTransaction:
    """Collects operations for one change, applying each to a working copy."""

    def __init__(self, spans: list[Span]) -> None:
        self._spans = list(spans)
        self.ops: list[DomainOp] = []

    @property
    def spans(self) -> list[Span]:
        return list(self._spans)

    @property
    def length(self) -> int:
        return sum(span.length for span in self._spans)

    def apply(self, op: DomainOp) -> None:
        self._spans = apply_op(self._spans, op)
        self.ops.append(op)

    def splice_text(self, index: int, value: str, marks: MarkSet | None = None) -> None:
        if value:
            self.apply(SpliceText(index, value, dict(marks or {})))

    def delete(self, index: int, length: int = 1) -> None:
        if length > 0:
            self.apply(DeleteRange(index, length))

    def insert_block(self, index: int, marker: BlockMarker) -> None:
        self.apply(InsertBlock(index, marker))

    def update_block(self, index: int, marker: BlockMarker) -> None:
        self.apply(UpdateBlock(index, marker))

    def mark(self, start: int, end: int, name: str, value: Any = True) -> None:
        if start < end:
            self.apply(AddMark(start, end, name, value))

    def unmark(self, start: int, end: int, name: str) -> None:
        if start < end:
            self.apply(RemoveMark(start, end, name))

    def replace_all(self, spans: list[Span]) -> None:
        """Delete the whole sequence and write *spans* in its place."""
        self.delete(0, self.length)
        for op in ops_for_spans(normalize_spans(list(spans))):
            self.apply(op)


class SpanDocument:
    """A rich-text field held as spans, with heads and change listeners."""

    def __init__(
        self,
        spans: list[Span] | None = None,
        doc_id: str | None = None,
        snapshot_interval: int = SNAPSHOT_INTERVAL,
    ) -> None:
        if snapshot_interval < 1:
            raise ValueError("snapshot_interval must be at least 1")
        self.doc_id = doc_id or generate_document_id()
        self.snapshot_interval = snapshot_interval
        self._changes: list[_Change] = []
        self._snapshots: dict[int, list[Span]] = {}
        self._positions: dict[str, int] = {}
        self._current: list[Span] = []
        self._listeners: list[ChangeListener] = []
        if spans:
            self._commit(ops_for_spans(normalize_spans(list(spans))), notify=False)

    def __repr__(self) -> str:
        return f"SpanDocument({self.doc_id!r}, heads={self.heads!r})"

    # -- state --------------------------------------------------------------

    @property
    def heads(self) -> Heads:
        if not self._changes:
            return ()
        return (self._changes[-1].head,)

    def spans(self, heads: Heads | None = None) -> list[Span]:
        """Return the spans now, or as of *heads*."""
        if heads is None:
            return list(self._current)
        position = self._position(heads)
        if position < 0:
            return []
        base = position - position % self.snapshot_interval
        spans = self._snapshots[base]
        for change in self._changes[base + 1 : position + 1]:
            for op in change.ops:
                spans = apply_op(spans, op)
        return list(spans)

    @property
    def length(self) -> int:
        return sum(span.length for span in self._current)

    def block_count(self) -> int:
        return sum(1 for span in self._current if isinstance(span, BlockSpan))

    # -- changes ------------------------------------------------------------

    def change(self, fn: Callable[[SpanTransaction], Any]) -> list[DomainOp]:
        """Run *fn* against a transaction and commit what it recorded.

        Returns the committed operations.  A change that records nothing
        leaves the heads untouched and notifies nobody.
        """
        tx = SpanTransaction(self._current)
        fn(tx)
        if not tx.ops:
            return []
        self._commit(tx.ops)
        return list(tx.ops)

    def apply_patches(self, ops: list[DomainOp]) -> Heads:
        """Replay operations produced by another peer as one change."""
        if ops:
            self._commit(list(ops))
        return self.heads

    def diff(self, heads_before: Heads, heads_after: Heads | None = None) -> list[DomainOp]:
        """Return the operations that lead from *heads_before* to *heads_after*."""
        start = self._position(heads_before)
        end = self._position(self.heads if heads_after is None else heads_after)
        if end < start:
            raise ValueError("heads_after precedes heads_before")
        patches: list[DomainOp] = []
        for change in self._changes[start + 1 : end + 1]:
            patches.extend(change.ops)
        return patches

    def fork(self) -> SpanDocument:
        """Return an independent copy sharing this document's history."""
        clone = SpanDocument(doc_id=self.doc_id, snapshot_interval=self.snapshot_interval)
        clone._changes = list(self._changes)
        clone._snapshots = dict(self._snapshots)
        clone._positions = dict(self._positions)
        clone._current = list(self._current)
        return clone

    # -- listeners ----------------------------------------------------------

    def on_change(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def off_change(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -- internals ----------------------------------------------------------

    def _position(self, heads: Heads) -> int:
        if not heads:
            return -1
        try:
            return self._positions[heads[0]]
        except KeyError:
            raise ValueError(f"Unknown heads: {heads!r}") from None

    def _commit(self, ops: list[DomainOp], notify: bool = True) -> None:
        heads_before = self.heads
        spans = self._current
        for op in ops:
            spans = apply_op(spans, op)
        parent = heads_before[0] if heads_before else None
        change_id = generate_change_id()
        frozen_ops = tuple(ops)
        change = _Change(_hash_change(parent, change_id, frozen_ops), change_id, frozen_ops)
        position = len(self._changes)
        self._positions[change.head] = position
        self._changes.append(change)
        if position % self.snapshot_interval == 0:
            self._snapshots[position] = spans
        self._current = spans
        logger.debug("Committed %d op(s) to %s as %s", len(ops), self.doc_id, change.head[:12])
        if not notify:
            return
        event = DomainChange(self, list(ops), heads_before)
        for listener in list(self._listeners):
            listener(event)
