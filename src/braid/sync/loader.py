"""Import an existing tree into a domain handle."""

from __future__ import annotations

import logging

from braid.core.grammar import GrammarAdapter
from braid.errors import SyncError
from braid.sync.domain import SpanDocument, SpanTransaction
from braid.sync.ops import DomainOp
from braid.sync.translate import tree_steps_to_domain_ops
from braid.tree.model import Fragment, Node
from braid.tree.steps import Transform

logger = logging.getLogger(__name__)


def _strip_marks(node: Node) -> Node:
    schema = node.type.schema
    if node.is_text:
        return schema.text(node.text)
    return node.copy(Fragment.from_array([_strip_marks(child) for child in node.content]))


def tree_load_transform(tree: Node) -> Transform:
    """Steps that turn an empty document into *tree*: content first, marks after."""
    empty = tree.type.create_and_fill()
    if empty is None:
        raise SyncError(f"{tree.type.name} has no valid empty form to load into")
    tr = Transform(empty)
    tr.replace_with(0, empty.content.size, _strip_marks(tree).content)

    def add_marks(node: Node, pos: int, _parent: Node | None, _index: int) -> None:
        if node.is_text:
            for mark in node.marks:
                tr.add_mark(pos, pos + node.node_size, mark)

    tree.descendants(add_marks)
    return tr


def load_tree_into_domain(adapter: GrammarAdapter, handle: SpanDocument, tree: Node) -> list[DomainOp]:
    """Replace the whole text of *handle* with the spans of *tree*, in one change."""
    tr = tree_load_transform(tree)
    ops = tree_steps_to_domain_ops(adapter, [], tr.steps, tr.before)

    def write(tx: SpanTransaction) -> None:
        tx.delete(0, tx.length)
        for op in ops:
            tx.apply(op)

    committed = handle.change(write)
    logger.debug("Loaded %s into %s with %d op(s)", tree.type.name, handle.doc_id, len(committed))
    return committed
