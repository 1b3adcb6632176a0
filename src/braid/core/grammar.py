"""Grammar adapter: binds tree node/mark types to domain block kinds and mark names.

Node specs opt in with a ``"domain"`` annotation::

    "heading": {
        "content": "inline*",
        "group": "block",
        "attrs": {"level": {"default": 1}},
        "domain": {"block": "heading", "attrs": AttrCodec(...)},
    }

Exactly one node type must carry ``{"unknown_block": True}``; it holds
blocks whose kind the local grammar does not know.  An inline leaf type
may carry ``{"unknown_leaf": True}`` to hold unknown embeds, and a mark
type may carry ``{"unknown_mark": True}`` to hold unknown domain marks.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from braid.core.spans import BlockMarker, MarkSet
from braid.errors import GrammarConfigError
from braid.tree.model import Mark, Node
from braid.tree.schema import MarkType, NodeType, Schema

logger = logging.getLogger(__name__)

# Bookkeeping attributes carried by tree nodes.
EXPLICIT_BLOCK = "explicit_block"
UNKNOWN_ATTRS = "unknown_attrs"
UNKNOWN_PARENT_BLOCK = "unknown_parent_block"
UNKNOWN_BLOCK = "unknown_block"
UNKNOWN_MARKS = "unknown_marks"
# Set on wrappers the grammar forced around a block; they are not parents.
IMPLIED_WRAPPER = "implied_wrapper"

STATE_ATTRS = frozenset({EXPLICIT_BLOCK, UNKNOWN_ATTRS, UNKNOWN_BLOCK, IMPLIED_WRAPPER})


@dataclass(frozen=True)
class AttrCodec:
    """Converts block attributes between a tree node and a domain marker."""

    from_tree: Callable[[Node], dict]
    from_domain: Callable[[BlockMarker], dict]


@dataclass(frozen=True)
class MarkCodec:
    """Converts between a tree mark's attributes and a domain mark value."""

    from_domain: Callable[[Any], dict]
    from_tree: Callable[[Mark], Any]


DEFAULT_MARK_CODEC = MarkCodec(from_domain=lambda value: {}, from_tree=lambda mark: True)


@dataclass(frozen=True)
class NodeMapping:
    domain_kind: str
    tree_type: NodeType
    is_embed: bool = False
    attr_codec: AttrCodec | None = None


@dataclass(frozen=True)
class MarkMapping:
    domain_name: str
    tree_mark_type: MarkType
    codec: MarkCodec = DEFAULT_MARK_CODEC


class GrammarAdapter:
    """Resolved mapping tables between a tree grammar and the domain model."""

    def __init__(self, schema: Schema) -> None:
        node_mappings: list[NodeMapping] = []
        mark_mappings: list[MarkMapping] = []
        unknown_block: NodeType | None = None
        unknown_leaf: NodeType | None = None
        unknown_mark: MarkType | None = None

        for node_type in schema.nodes.values():
            annotation = node_type.spec.get("domain")
            if annotation is None:
                continue
            if annotation.get("unknown_block"):
                if unknown_block is not None:
                    raise GrammarConfigError(
                        f"Only one node can be marked as the unknown block "
                        f"(found {unknown_block.name} and {node_type.name})"
                    )
                unknown_block = node_type
            if annotation.get("unknown_leaf"):
                unknown_leaf = node_type
            if annotation.get("block") is not None:
                node_mappings.append(
                    NodeMapping(
                        domain_kind=annotation["block"],
                        tree_type=node_type,
                        is_embed=bool(annotation.get("is_embed", False)),
                        attr_codec=annotation.get("attrs"),
                    )
                )

        for mark_type in schema.marks.values():
            annotation = mark_type.spec.get("domain")
            if annotation is None:
                continue
            if annotation.get("unknown_mark"):
                unknown_mark = mark_type
            if annotation.get("mark") is not None:
                mark_mappings.append(
                    MarkMapping(
                        domain_name=annotation["mark"],
                        tree_mark_type=mark_type,
                        codec=annotation.get("codec") or DEFAULT_MARK_CODEC,
                    )
                )

        if unknown_block is None:
            raise GrammarConfigError(
                "No unknown block specified: one node must be marked as the "
                "unknown block with a {'unknown_block': True} domain annotation"
            )

        self.schema = schema
        self.node_mappings = tuple(node_mappings)
        self.mark_mappings = tuple(mark_mappings)
        self.unknown_block = unknown_block
        self.unknown_leaf = unknown_leaf
        self.unknown_mark = unknown_mark

        # First mapping wins for both directions.
        self._by_kind: dict[str, NodeMapping] = {}
        self._by_type: dict[str, NodeMapping] = {}
        for mapping in node_mappings:
            self._by_kind.setdefault(mapping.domain_kind, mapping)
            self._by_type.setdefault(mapping.tree_type.name, mapping)
        self._marks_by_name: dict[str, MarkMapping] = {}
        self._marks_by_type: dict[str, MarkMapping] = {}
        for mark_mapping in mark_mappings:
            self._marks_by_name.setdefault(mark_mapping.domain_name, mark_mapping)
            self._marks_by_type.setdefault(mark_mapping.tree_mark_type.name, mark_mapping)

    @property
    def text_type(self) -> NodeType:
        return self.schema.nodes["text"]

    @property
    def top_type(self) -> NodeType:
        return self.schema.top_node_type

    def mapping_for_kind(self, kind: str) -> NodeMapping | None:
        return self._by_kind.get(kind)

    def mapping_for_type(self, node_type: NodeType) -> NodeMapping | None:
        return self._by_type.get(node_type.name)

    def mark_mapping_for_name(self, name: str) -> MarkMapping | None:
        return self._marks_by_name.get(name)

    def mark_mapping_for_type(self, mark_type: MarkType) -> MarkMapping | None:
        return self._marks_by_type.get(mark_type.name)

    def nodes_for_block(self, kind: str, is_embed: bool) -> tuple[NodeType, dict | None]:
        """Return the tree type for a block kind, plus the attrs it opens with.

        Unknown kinds resolve to the unknown-leaf carrier for embeds and to
        the unknown-block carrier otherwise.
        """
        mapping = self._by_kind.get(kind)
        if mapping is not None:
            return mapping.tree_type, None
        if is_embed and self.unknown_leaf is not None:
            return self.unknown_leaf, None
        return self.unknown_block, {UNKNOWN_PARENT_BLOCK: kind}

    # -- marks --------------------------------------------------------------

    def domain_marks_from_tree(self, marks: tuple[Mark, ...]) -> MarkSet:
        result: MarkSet = {}
        for mark in marks:
            mapping = self._marks_by_type.get(mark.type.name)
            if mapping is not None:
                result[mapping.domain_name] = mapping.codec.from_tree(mark)
            elif mark.type is self.unknown_mark:
                for key, value in (mark.attrs.get(UNKNOWN_MARKS) or {}).items():
                    result[key] = value
        return result

    def tree_marks_from_domain(self, marks: MarkSet) -> list[Mark]:
        """Create tree marks for a domain mark set.

        ``None`` values are tombstones and are skipped.  Names with no
        mapping are collected into one unknown-mark carrier.
        """
        unknown: dict[str, Any] = {}
        result: list[Mark] = []
        for name, value in marks.items():
            if value is None:
                continue
            mapping = self._marks_by_name.get(name)
            if mapping is None:
                unknown[name] = value
            else:
                result.append(mapping.tree_mark_type.create(mapping.codec.from_domain(value)))
        if unknown:
            if self.unknown_mark is None:
                logger.debug("Dropping unmapped marks %s: no unknown mark carrier", sorted(unknown))
            else:
                result.append(self.unknown_mark.create({UNKNOWN_MARKS: unknown}))
        return result

    def tree_mark_set(self, marks: MarkSet) -> tuple[Mark, ...]:
        """Like :meth:`tree_marks_from_domain`, but as an ordered mark set."""
        mark_set: tuple[Mark, ...] = ()
        for mark in self.tree_marks_from_domain(marks):
            mark_set = mark.add_to_set(mark_set)
        return mark_set


def add_state_attrs(nodes: dict[str, dict]) -> dict[str, dict]:
    """Add the codec's bookkeeping attributes to node specs in place.

    Every non-text node gets ``explicit_block``, ``unknown_attrs`` and
    ``implied_wrapper``; the unknown-block carrier also gets
    ``unknown_parent_block`` and ``unknown_block``.
    """
    for name, spec in nodes.items():
        if name != "text":
            attrs = spec.setdefault("attrs", {})
            attrs[EXPLICIT_BLOCK] = {"default": False}
            attrs[UNKNOWN_ATTRS] = {"default": None}
            attrs[IMPLIED_WRAPPER] = {"default": False}
        if (spec.get("domain") or {}).get("unknown_block"):
            attrs = spec.setdefault("attrs", {})
            attrs[UNKNOWN_PARENT_BLOCK] = {"default": None}
            attrs[UNKNOWN_BLOCK] = {"default": None}
    return nodes


def link_codec() -> MarkCodec:
    """Codec storing a link's ``href`` and ``title`` as a JSON string value."""

    def from_domain(value: Any) -> dict:
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except ValueError:
                logger.warning("Failed to parse link mark as JSON: %r", value)
            else:
                if isinstance(parsed, dict):
                    return {"href": parsed.get("href") or "", "title": parsed.get("title") or ""}
        return {"href": "", "title": ""}

    def from_tree(mark: Mark) -> str:
        return json.dumps({"href": mark.attrs.get("href"), "title": mark.attrs.get("title")})

    return MarkCodec(from_domain=from_domain, from_tree=from_tree)


def pick_attrs(*names: str) -> AttrCodec:
    """Codec copying the named attributes verbatim in both directions."""
    return AttrCodec(
        from_tree=lambda node: {name: node.attrs.get(name) for name in names},
        from_domain=lambda marker: {name: marker.attrs.get(name) for name in names},
    )
