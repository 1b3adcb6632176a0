"""Translate positions between the domain sequence and the tree.

Every query runs one forward scan over the canonical event stream of a span
sequence, annotated with the domain and tree index around each event.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from braid.core.events import (
    BlockEvent,
    IndexedEvent,
    LeafNode,
    OpenTag,
    Role,
    TextEvent,
    events_with_index_changes,
)
from braid.core.grammar import GrammarAdapter
from braid.core.spans import Span, text_length
from braid.core.traversal import traverse_node, traverse_spans
from braid.tree.model import Node


@dataclass(frozen=True)
class DomainRange:
    start: int
    end: int


def indexed_events(adapter: GrammarAdapter, spans: list[Span]) -> Iterator[IndexedEvent]:
    return events_with_index_changes(traverse_spans(adapter, spans), root=adapter.top_type.name)


def domain_splice_index_to_tree_index(
    adapter: GrammarAdapter, spans: list[Span], target: int
) -> int | None:
    """Return the tree position where text spliced at domain index *target* goes.

    The result is always a position inside inline content: the start of a
    textblock, after a leaf, or within or after a text run.
    """
    max_insertable: int | None = None
    for state in indexed_events(adapter, spans):
        event = state.event
        if state.before.domain >= target and max_insertable is not None:
            return max_insertable
        if isinstance(event, OpenTag):
            if adapter.schema.node_type(event.tag).is_textblock:
                max_insertable = state.after.tree
        elif isinstance(event, LeafNode):
            max_insertable = state.after.tree
        elif isinstance(event, TextEvent):
            max_insertable = state.after.tree
            if state.after.domain >= target and state.before.domain + text_length(event.text) >= target:
                return state.before.tree + (target - state.before.domain) - 1
    return max_insertable


def domain_index_to_tree_block_start(
    adapter: GrammarAdapter, spans: list[Span], target: int
) -> int | None:
    """Return the content start of the block that domain index *target* belongs to."""
    last_block_start: int | None = None
    is_first_tag = True
    for state in indexed_events(adapter, spans):
        event = state.event
        if isinstance(event, OpenTag):
            if event.role is Role.EXPLICIT:
                last_block_start = state.after.tree
            elif is_first_tag and adapter.schema.node_type(event.tag).is_textblock:
                # Text before the first block marker lives in this render-only textblock.
                last_block_start = state.after.tree
            is_first_tag = False
        elif isinstance(event, BlockEvent):
            if state.after.domain == target:
                return state.after.tree + 1
        if state.after.domain >= target:
            return last_block_start
    return last_block_start


def tree_range_to_domain_range(
    adapter: GrammarAdapter, spans: list[Span], from_: int, to: int
) -> DomainRange:
    """Map the tree range ``[from_, to)`` onto the domain sequence."""
    return _domain_range(indexed_events(adapter, spans), from_, to)


def node_range_to_domain_range(
    adapter: GrammarAdapter, node: Node, from_: int, to: int
) -> DomainRange:
    """Like :func:`tree_range_to_domain_range`, scanning an existing tree.

    Positions are interpreted against *node* itself rather than the
    canonical rebuild of its spans, so a tree with non-canonical
    render-only wrappers still maps exactly.
    """
    events = events_with_index_changes(traverse_node(adapter, node), root=adapter.top_type.name)
    return _domain_range(events, from_, to)


def _domain_range(events: Iterator[IndexedEvent], from_: int, to: int) -> DomainRange:
    start: int | None = 0 if from_ == 0 else None
    end: int | None = None
    max_tree: int | None = None
    max_domain: int | None = None

    while max_tree is None or max_tree <= to or start is None or end is None:
        state = next(events, None)
        if state is None:
            break
        event = state.event
        max_tree = state.after.tree
        max_domain = state.after.domain

        if start is None:
            if state.after.tree < from_:
                continue
            if isinstance(event, TextEvent):
                if state.before.tree > from_:
                    start = max(state.before.domain, 0) + 1
                elif state.before.tree + len(event.text) > from_:
                    start = state.before.domain + (from_ - state.before.tree) + 1
                else:
                    start = max(state.after.domain, 0) + 1
            else:
                start = state.after.domain + 1

        if end is None:
            if state.after.tree < to:
                continue
            if isinstance(event, TextEvent):
                if state.before.tree >= to:
                    end = state.before.domain + 1
                elif state.before.tree + len(event.text) > to:
                    end = state.before.domain + (to - state.before.tree) + 1
            elif state.before.tree >= to:
                end = state.before.domain + 1

    if start is not None:
        if end is None:
            end = max_domain + 1 if max_domain else start
        return DomainRange(start, end)
    end_of_doc = max_domain + 1 if max_domain else 0
    return DomainRange(end_of_doc, end_of_doc)
