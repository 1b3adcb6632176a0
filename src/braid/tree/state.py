"""Editor state: selection, state snapshots, transactions, and an in-process host.

:class:`Editor` stands in for an editor view.  It owns the current
:class:`EditorState` and calls registered transaction handlers with
``(transactions, old_state, new_state)`` after every document change.
"""

from __future__ import annotations

import time
from typing import Any, Callable

from braid.tree.model import Mark, Node
from braid.tree.steps import Mapping, Transform

TransactionHandler = Callable[[list["Transaction"], "EditorState", "EditorState"], None]


class TextSelection:
    """A selection between two positions that both point into inline content."""

    def __init__(self, anchor: int, head: int | None = None) -> None:
        self.anchor = anchor
        self.head = anchor if head is None else head

    @property
    def from_(self) -> int:
        return min(self.anchor, self.head)

    @property
    def to(self) -> int:
        return max(self.anchor, self.head)

    @property
    def empty(self) -> bool:
        return self.anchor == self.head

    @classmethod
    def create(cls, doc: Node, anchor: int, head: int | None = None) -> TextSelection:
        """Create a selection, validating both ends against *doc*.

        Raises ``ValueError`` or ``IndexError`` when an end does not point
        into a textblock.
        """
        head = anchor if head is None else head
        for pos in (anchor, head):
            if not doc.resolve(pos).parent.inline_content:
                raise ValueError(f"Position {pos} does not point into inline content")
        return cls(anchor, head)

    @classmethod
    def at_start(cls, doc: Node) -> TextSelection:
        return cls(_first_text_position(doc, 0))

    @classmethod
    def near(cls, doc: Node, pos: int) -> TextSelection:
        """A cursor at the closest valid position at or after *pos*, else before it."""
        pos = max(0, min(pos, doc.content.size))
        forward = _first_text_position(doc, pos)
        if forward >= pos and doc.resolve(forward).parent.inline_content:
            return cls(forward)
        return cls(_last_text_position(doc, pos))

    def map(self, doc: Node, mapping: Mapping) -> TextSelection:
        anchor = mapping.map(self.anchor)
        head = mapping.map(self.head)
        try:
            return TextSelection.create(doc, anchor, head)
        except (ValueError, IndexError):
            return TextSelection.near(doc, head)

    def eq(self, other: object) -> bool:
        return (
            isinstance(other, TextSelection)
            and other.anchor == self.anchor
            and other.head == self.head
        )

    def __eq__(self, other: object) -> bool:
        return self.eq(other)

    __hash__ = None  # type: ignore[assignment]

    def to_json(self) -> dict:
        return {"type": "text", "anchor": self.anchor, "head": self.head}

    @classmethod
    def from_json(cls, doc: Node, data: dict) -> TextSelection:
        return cls.create(doc, data["anchor"], data["head"])

    def __repr__(self) -> str:
        return f"TextSelection({self.anchor}, {self.head})"


def _first_text_position(doc: Node, start: int) -> int:
    found: list[int] = []

    def visit(node: Node, pos: int, _parent: Node | None, _index: int) -> bool:
        if found:
            return False
        if node.inline_content:
            inner = pos + 1
            found.append(max(inner, min(start, inner + node.content.size)))
            return False
        return True

    doc.nodes_between(start, doc.content.size, visit)
    return found[0] if found else 0


def _last_text_position(doc: Node, end: int) -> int:
    found: list[int] = []

    def visit(node: Node, pos: int, _parent: Node | None, _index: int) -> bool:
        if node.inline_content:
            inner = pos + 1
            found.append(min(inner + node.content.size, max(end, inner)))
            return False
        return True

    doc.nodes_between(0, end, visit)
    return found[-1] if found else 0


class EditorState:
    """An immutable snapshot of the editor: document, selection, stored marks."""

    def __init__(
        self,
        doc: Node,
        selection: TextSelection,
        stored_marks: tuple[Mark, ...] | None = None,
    ) -> None:
        self.doc = doc
        self.selection = selection
        self.stored_marks = stored_marks

    @classmethod
    def create(cls, doc: Node, selection: TextSelection | None = None) -> EditorState:
        return cls(doc, selection or TextSelection.at_start(doc))

    @property
    def schema(self):
        return self.doc.type.schema

    @property
    def tr(self) -> Transaction:
        return Transaction(self)

    def apply(self, tr: Transaction) -> EditorState:
        """Return the state that results from *tr*."""
        selection = tr.selection
        if tr.stored_marks_set:
            stored = tr.stored_marks
        elif tr.doc_changed or tr.selection_set:
            stored = None
        else:
            stored = self.stored_marks
        return EditorState(tr.doc, selection, stored)


class Transaction(Transform):
    """A transform that also tracks selection, stored marks, and metadata."""

    def __init__(self, state: EditorState) -> None:
        super().__init__(state.doc)
        self.time = time.time()
        self._selection = state.selection
        self._cur_selection_for = 0
        self.selection_set = False
        self.stored_marks = state.stored_marks
        self.stored_marks_set = False
        self.meta: dict[str, Any] = {}

    @property
    def selection(self) -> TextSelection:
        if self._cur_selection_for < len(self.steps):
            pending = Mapping(self.mapping.maps[self._cur_selection_for :])
            self._selection = self._selection.map(self.doc, pending)
            self._cur_selection_for = len(self.steps)
        return self._selection

    def set_selection(self, selection: TextSelection) -> Transaction:
        self._selection = selection
        self._cur_selection_for = len(self.steps)
        self.selection_set = True
        return self

    def set_stored_marks(self, marks: tuple[Mark, ...] | None) -> Transaction:
        self.stored_marks = marks
        self.stored_marks_set = True
        return self

    def set_meta(self, key: str, value: Any) -> Transaction:
        self.meta[key] = value
        return self

    def get_meta(self, key: str) -> Any:
        return self.meta.get(key)


class Editor:
    """In-process editor host: owns the current state and transaction handlers."""

    def __init__(self, state: EditorState) -> None:
        self.state = state
        self.history: list[Transaction] = []
        self._handlers: list[TransactionHandler] = []

    def register_handler(self, handler: TransactionHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unregister_handler(self, handler: TransactionHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def dispatch(self, tr: Transaction) -> None:
        old_state = self.state
        self.state = old_state.apply(tr)
        if tr.doc_changed and tr.get_meta("add_to_history") is not False:
            self.history.append(tr)
        if not tr.doc_changed:
            return
        for handler in list(self._handlers):
            handler([tr], old_state, self.state)
