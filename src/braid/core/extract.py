"""Read the span sequence back out of a tree."""

from __future__ import annotations

from dataclasses import replace

from braid.core.events import BlockEvent, TextEvent
from braid.core.grammar import EXPLICIT_BLOCK, GrammarAdapter
from braid.core.spans import BlockSpan, Span, TextSpan
from braid.core.traversal import traverse_node
from braid.tree.model import Node


def extract_spans(adapter: GrammarAdapter, node: Node) -> list[Span]:
    spans: list[Span] = []
    for event in traverse_node(adapter, node):
        if isinstance(event, BlockEvent):
            marker = event.marker
            if EXPLICIT_BLOCK in marker.attrs:
                attrs = {k: v for k, v in marker.attrs.items() if k != EXPLICIT_BLOCK}
                marker = replace(marker, attrs=attrs)
            spans.append(BlockSpan(marker))
        elif isinstance(event, TextEvent):
            prev = spans[-1] if spans else None
            if isinstance(prev, TextSpan) and prev.marks == event.marks:
                spans[-1] = TextSpan(prev.value + event.text, prev.marks)
            else:
                spans.append(TextSpan(event.text, dict(event.marks)))
    return spans
