"""Materialize the forward event stream into a tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from braid.core.events import BlockEvent, CloseTag, LeafNode, OpenTag, TextEvent, TraversalEvent
from braid.core.grammar import EXPLICIT_BLOCK, STATE_ATTRS, UNKNOWN_ATTRS, UNKNOWN_BLOCK, GrammarAdapter
from braid.core.spans import BlockMarker, Span
from braid.core.traversal import traverse_spans
from braid.errors import TraversalInvariantError
from braid.tree.model import Node
from braid.tree.schema import Schema


@dataclass
class _Frame:
    tag: str
    attrs: dict
    children: list[Node] = field(default_factory=list)


def build_tree(adapter: GrammarAdapter, spans: list[Span]) -> Node:
    """Return the canonical tree for *spans*."""
    return build_from_events(adapter, traverse_spans(adapter, spans))


def build_from_events(adapter: GrammarAdapter, events: Iterable[TraversalEvent]) -> Node:
    schema = adapter.schema
    stack = [_Frame(adapter.top_type.name, {})]
    # Attributes primed by a block event for the node that follows it.
    next_attrs: dict | None = None

    for event in events:
        if isinstance(event, OpenTag):
            attrs = dict(next_attrs or {})
            attrs.update(event.attrs or {})
            stack.append(_Frame(event.tag, attrs))
        elif isinstance(event, CloseTag):
            if len(stack) < 2:
                raise TraversalInvariantError(f"Unbalanced close tag for {event.tag}")
            frame = stack.pop()
            stack[-1].children.append(_construct_node(schema, frame.tag, frame.attrs, frame.children))
        elif isinstance(event, LeafNode):
            stack[-1].children.append(_construct_node(schema, event.tag, dict(next_attrs or {}), []))
        elif isinstance(event, TextEvent):
            if event.text:
                stack[-1].children.append(schema.text(event.text, adapter.tree_mark_set(event.marks)))

        if isinstance(event, BlockEvent):
            next_attrs = {EXPLICIT_BLOCK: True, **_node_attrs(adapter, event.marker)}
            if event.is_unknown:
                next_attrs[UNKNOWN_BLOCK] = event.marker.to_dict()
        else:
            next_attrs = None

    if len(stack) != 1:
        raise TraversalInvariantError(f"Invalid stack depth {len(stack)} at end of event stream")
    root = stack[0]
    return _construct_node(schema, root.tag, root.attrs, root.children)


def _node_attrs(adapter: GrammarAdapter, marker: BlockMarker) -> dict:
    attrs = dict(marker.attrs)
    mapping = adapter.mapping_for_kind(marker.kind)
    if mapping is not None and mapping.attr_codec is not None:
        attrs.update(mapping.attr_codec.from_domain(marker))
    return attrs


def _construct_node(schema: Schema, name: str, attrs: dict, children: list[Node]) -> Node:
    node_type = schema.node_type(name)
    known: dict = {}
    unknown: dict = {}
    for key, value in attrs.items():
        if key in STATE_ATTRS or key in node_type.attrs:
            known[key] = value
        else:
            unknown[key] = value
    if unknown:
        known[UNKNOWN_ATTRS] = unknown
    return schema.node(node_type, known, children)
