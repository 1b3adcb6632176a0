"""Grammar definitions: node types, mark types, and the schema that binds them.

A schema is built from a plain mapping::

    Schema({
        "nodes": {
            "doc": {"content": "block+"},
            "paragraph": {"content": "inline*", "group": "block"},
            "text": {"group": "inline"},
        },
        "marks": {"strong": {}},
    })

Node and mark specs are kept as given, so callers may attach extra keys
(the codec reads a ``"domain"`` key) and find them on ``type.spec``.
"""

from __future__ import annotations

from typing import Any

from braid.errors import SchemaError
from braid.tree.content import ContentMatch
from braid.tree.model import Fragment, Mark, Node, TextNode

_NO_DEFAULT = object()


class Attribute:
    __slots__ = ("default",)

    def __init__(self, spec: dict) -> None:
        self.default = spec.get("default", _NO_DEFAULT)

    @property
    def has_default(self) -> bool:
        return self.default is not _NO_DEFAULT


def _init_attrs(spec: dict | None) -> dict[str, Attribute]:
    return {name: Attribute(attr_spec or {}) for name, attr_spec in (spec or {}).items()}


def _default_attrs(attrs: dict[str, Attribute]) -> dict | None:
    defaults = {}
    for name, attr in attrs.items():
        if not attr.has_default:
            return None
        defaults[name] = attr.default
    return defaults


def _compute_attrs(attrs: dict[str, Attribute], given: dict | None) -> dict:
    built = {}
    for name, attr in attrs.items():
        if given is not None and name in given:
            built[name] = given[name]
        elif attr.has_default:
            built[name] = attr.default
        else:
            raise SchemaError(f"No value supplied for attribute {name}")
    return built


class NodeType:
    """A node type in a :class:`Schema`."""

    def __init__(self, name: str, schema: Schema, spec: dict) -> None:
        self.name = name
        self.schema = schema
        self.spec = spec
        self.groups = tuple(spec.get("group", "").split())
        self.attrs = _init_attrs(spec.get("attrs"))
        self.default_attrs = _default_attrs(self.attrs)
        self.content_match: ContentMatch = ContentMatch.empty
        self.inline_content = False
        self.is_block = not (spec.get("inline") or name == "text")
        self.is_text = name == "text"

    @property
    def is_inline(self) -> bool:
        return not self.is_block

    @property
    def is_textblock(self) -> bool:
        return self.is_block and self.inline_content

    @property
    def is_leaf(self) -> bool:
        return self.content_match is ContentMatch.empty

    def has_required_attrs(self) -> bool:
        return any(not attr.has_default for attr in self.attrs.values())

    def compute_attrs(self, attrs: dict | None) -> dict:
        if attrs is None and self.default_attrs is not None:
            return dict(self.default_attrs)
        return _compute_attrs(self.attrs, attrs)

    def compatible_content(self, other: NodeType) -> bool:
        return self is other or self.content_match.compatible(other.content_match)

    def create(
        self,
        attrs: dict | None = None,
        content: Fragment | Node | list[Node] | None = None,
        marks: tuple[Mark, ...] | list[Mark] = (),
    ) -> Node:
        """Create a node without checking its content against the grammar."""
        if self.is_text:
            raise SchemaError("NodeType.create can't construct text nodes")
        return Node(self, self.compute_attrs(attrs), Fragment.from_(content), tuple(marks))

    def create_checked(
        self,
        attrs: dict | None = None,
        content: Fragment | Node | list[Node] | None = None,
        marks: tuple[Mark, ...] | list[Mark] = (),
    ) -> Node:
        fragment = Fragment.from_(content)
        self.check_content(fragment)
        return Node(self, self.compute_attrs(attrs), fragment, tuple(marks))

    def create_and_fill(
        self,
        attrs: dict | None = None,
        content: Fragment | Node | list[Node] | None = None,
        marks: tuple[Mark, ...] | list[Mark] = (),
    ) -> Node | None:
        """Create a node, adding whatever content the grammar requires around
        *content*.  Returns ``None`` when no valid fill exists."""
        attrs = self.compute_attrs(attrs)
        fragment = Fragment.from_(content)
        if fragment.size:
            before = self.content_match.fill_before(fragment)
            if before is None:
                return None
            fragment = before.append(fragment)
        matched = self.content_match.match_fragment(fragment)
        after = matched.fill_before(Fragment.empty, True) if matched is not None else None
        if after is None:
            return None
        return Node(self, attrs, fragment.append(after), tuple(marks))

    def valid_content(self, content: Fragment) -> bool:
        result = self.content_match.match_fragment(content)
        return result is not None and result.valid_end

    def check_content(self, content: Fragment) -> None:
        if not self.valid_content(content):
            raise SchemaError(f"Invalid content for node {self.name}: {content!r}")

    def __repr__(self) -> str:
        return f"<NodeType {self.name}>"


class MarkType:
    """A mark type in a :class:`Schema`."""

    def __init__(self, name: str, rank: int, schema: Schema, spec: dict) -> None:
        self.name = name
        self.rank = rank
        self.schema = schema
        self.spec = spec
        self.attrs = _init_attrs(spec.get("attrs"))

    def create(self, attrs: dict | None = None) -> Mark:
        return Mark(self, _compute_attrs(self.attrs, attrs))

    def is_in_set(self, marks: tuple[Mark, ...]) -> Mark | None:
        for mark in marks:
            if mark.type is self:
                return mark
        return None

    def remove_from_set(self, marks: tuple[Mark, ...]) -> tuple[Mark, ...]:
        return tuple(m for m in marks if m.type is not self)

    def __repr__(self) -> str:
        return f"<MarkType {self.name}>"


class Schema:
    """A compiled grammar: node types with content automata, and mark types."""

    def __init__(self, spec: dict) -> None:
        self.spec = spec
        self.nodes: dict[str, NodeType] = {
            name: NodeType(name, self, node_spec or {})
            for name, node_spec in spec.get("nodes", {}).items()
        }
        self.marks: dict[str, MarkType] = {
            name: MarkType(name, rank, self, mark_spec or {})
            for rank, (name, mark_spec) in enumerate(spec.get("marks", {}).items())
        }
        for name in self.marks:
            if name in self.nodes:
                raise SchemaError(f"{name} can not be both a node and a mark")

        top = spec.get("top_node", "doc")
        if top not in self.nodes:
            raise SchemaError(f"Schema is missing its top node type ('{top}')")
        if "text" not in self.nodes:
            raise SchemaError("Every schema needs a 'text' type")
        if self.nodes["text"].attrs:
            raise SchemaError("The text node type should not have attributes")

        content_cache: dict[str, ContentMatch] = {}
        for node_type in self.nodes.values():
            expr = node_type.spec.get("content", "")
            if expr not in content_cache:
                content_cache[expr] = ContentMatch.parse(expr, self.nodes)
            node_type.content_match = content_cache[expr]
            node_type.inline_content = node_type.content_match.inline_content

        self.top_node_type = self.nodes[top]

    def node_type(self, name: str) -> NodeType:
        try:
            return self.nodes[name]
        except KeyError:
            raise SchemaError(f"Unknown node type: {name}") from None

    def mark_type(self, name: str) -> MarkType:
        try:
            return self.marks[name]
        except KeyError:
            raise SchemaError(f"Unknown mark type: {name}") from None

    def node(
        self,
        type: str | NodeType,
        attrs: dict | None = None,
        content: Fragment | Node | list[Node] | None = None,
        marks: tuple[Mark, ...] | list[Mark] = (),
    ) -> Node:
        """Create a node, checking its content against the grammar."""
        if isinstance(type, str):
            type = self.node_type(type)
        elif type.schema is not self:
            raise SchemaError(f"Node type from different schema used ({type.name})")
        return type.create_checked(attrs, content, marks)

    def text(self, text: str, marks: tuple[Mark, ...] | list[Mark] = ()) -> TextNode:
        if not text:
            raise SchemaError("Empty text nodes are not allowed")
        return TextNode(self.nodes["text"], {}, text, tuple(marks))

    def mark(self, type: str | MarkType, attrs: dict | None = None) -> Mark:
        if isinstance(type, str):
            type = self.mark_type(type)
        return type.create(attrs)

    def node_from_json(self, data: dict) -> Node:
        if not isinstance(data, dict) or "type" not in data:
            raise SchemaError(f"Invalid input for node_from_json: {data!r}")
        marks = tuple(self.mark_from_json(m) for m in data.get("marks", []))
        if data["type"] == "text":
            if not isinstance(data.get("text"), str):
                raise SchemaError("Invalid text node in JSON")
            return self.text(data["text"], marks)
        content = Fragment.from_array([self.node_from_json(c) for c in data.get("content", [])])
        node_type = self.node_type(data["type"])
        return node_type.create_checked(data.get("attrs"), content, marks)

    def mark_from_json(self, data: dict) -> Mark:
        return self.mark_type(data["type"]).create(data.get("attrs"))
