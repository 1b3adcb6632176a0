"""Human-readable renderings of event streams and trees."""

from __future__ import annotations

import json

from braid.core.events import BlockEvent, CloseTag, LeafNode, OpenTag, TextEvent, TraversalEvent
from braid.core.grammar import GrammarAdapter
from braid.core.positions import indexed_events
from braid.core.spans import Span
from braid.tree.model import Node


def format_event(event: TraversalEvent) -> str:
    if isinstance(event, OpenTag):
        attrs = f" {json.dumps(event.attrs, sort_keys=True)}" if event.attrs else ""
        return f"<{event.tag}> ({event.role.value}){attrs}"
    if isinstance(event, CloseTag):
        return f"</{event.tag}> ({event.role.value})"
    if isinstance(event, LeafNode):
        return f"<{event.tag}/> ({event.role.value})"
    if isinstance(event, TextEvent):
        marks = f" {json.dumps(event.marks, sort_keys=True)}" if event.marks else ""
        return f"{json.dumps(event.text)}{marks}"
    if isinstance(event, BlockEvent):
        marker = event.marker
        parents = "/".join(marker.parents)
        unknown = " unknown" if event.is_unknown else ""
        return f"block {marker.kind} [{parents}]{unknown}"
    return repr(event)


def index_table(adapter: GrammarAdapter, spans: list[Span]) -> list[dict]:
    """One row per forward event with the domain and tree indexes around it."""
    rows = []
    for state in indexed_events(adapter, spans):
        rows.append(
            {
                "event": format_event(state.event),
                "domain_before": state.before.domain,
                "domain_after": state.after.domain,
                "tree_before": state.before.tree,
                "tree_after": state.after.tree,
            }
        )
    return rows


def render_tree(node: Node, indent: int = 0) -> str:
    """Render a tree one node per line, showing non-default attributes."""
    pad = "  " * indent
    if node.is_text:
        marks = ",".join(m.type.name for m in node.marks)
        suffix = f" [{marks}]" if marks else ""
        return f"{pad}{json.dumps(node.text)}{suffix}"
    defaults = node.type.default_attrs or {}
    shown = {k: v for k, v in node.attrs.items() if defaults.get(k, object()) != v}
    attrs = f" {json.dumps(shown, sort_keys=True, default=str)}" if shown else ""
    lines = [f"{pad}{node.type.name}{attrs}"]
    for child in node.content:
        lines.append(render_tree(child, indent + 1))
    return "\n".join(lines)
