"""The codec between span sequences and trees, expressed as event streams.

:func:`traverse_spans` walks spans and emits the balanced event stream of
the canonical tree they describe.  Tree nodes backed by a block marker are
emitted with :attr:`Role.EXPLICIT`; wrappers the grammar needs around them
are synthesized and emitted with :attr:`Role.RENDER_ONLY`.

:func:`traverse_node` walks a tree and emits events from which the span
sequence can be read back, deciding for every node whether it needs a
block marker of its own.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from braid.core.events import (
    BlockEvent,
    CloseTag,
    LeafNode,
    OpenTag,
    Role,
    TextEvent,
    TraversalEvent,
)
from braid.core.grammar import (
    EXPLICIT_BLOCK,
    IMPLIED_WRAPPER,
    UNKNOWN_ATTRS,
    UNKNOWN_BLOCK,
    UNKNOWN_PARENT_BLOCK,
    GrammarAdapter,
    NodeMapping,
)
from braid.core.spans import BlockMarker, BlockSpan, MarkSet, Span, TextSpan, text_length
from braid.errors import TraversalInvariantError
from braid.tree.content import ContentMatch
from braid.tree.model import Fragment, Node
from braid.tree.schema import NodeType

# ---------------------------------------------------------------------------
# Spans -> events
# ---------------------------------------------------------------------------


def traverse_spans(adapter: GrammarAdapter, spans: list[Span]) -> Iterator[TraversalEvent]:
    """Emit the event stream for *spans*.  The root node is not included."""
    if not spans:
        default = adapter.top_type.content_match.default_type
        name = default.name if default is not None else "paragraph"
        yield OpenTag(name, Role.RENDER_ONLY)
        yield CloseTag(name, Role.RENDER_ONLY)
        return
    state = _TraverseState(adapter)
    for span in spans:
        if isinstance(span, BlockSpan):
            yield from state.new_block(span.marker)
        else:
            yield from state.new_text(span.value, span.marks)
    yield from state.finish()


@dataclass
class _Frame:
    node_type: NodeType
    role: Role
    last_match: ContentMatch
    attrs: dict | None = None


class _TraverseState:
    def __init__(self, adapter: GrammarAdapter) -> None:
        self.adapter = adapter
        self.stack: list[_Frame] = []
        self.top_match = adapter.top_type.content_match

    @property
    def current_match(self) -> ContentMatch:
        if self.stack:
            return self.stack[-1].last_match
        return self.top_match

    def _set_match(self, match: ContentMatch | None, node_type: NodeType) -> None:
        if match is None:
            parent = self.stack[-1].node_type.name if self.stack else self.adapter.top_type.name
            raise TraversalInvariantError(
                f"Grammar does not allow {node_type.name} inside {parent} here"
            )
        if self.stack:
            self.stack[-1].last_match = match
        else:
            self.top_match = match

    def _push(self, node_type: NodeType, attrs: dict | None, role: Role) -> OpenTag:
        self._set_match(self.current_match.match_type(node_type), node_type)
        self.stack.append(_Frame(node_type, role, node_type.content_match, attrs))
        return OpenTag(node_type.name, role, attrs)

    def _wrap_for(self, node_type: NodeType) -> Iterator[TraversalEvent]:
        wrapping = self.current_match.find_wrapping(node_type)
        for wrapper in wrapping or ():
            attrs = None if wrapper.is_textblock else {IMPLIED_WRAPPER: True}
            yield self._push(wrapper, attrs, Role.RENDER_ONLY)

    def new_block(self, marker: BlockMarker) -> Iterator[TraversalEvent]:
        if marker.is_embed:
            content, _ = self.adapter.nodes_for_block(marker.kind, True)
            yield from self._wrap_for(content)
            self._set_match(self.current_match.match_type(content), content)
            yield self._block_event(marker)
            yield LeafNode(content.name, Role.EXPLICIT)
            return

        new_outer = [self.adapter.nodes_for_block(parent, False) for parent in marker.parents]
        i = 0
        while i < len(new_outer) and i < len(self.stack):
            frame = self.stack[i]
            node_type, attrs = new_outer[i]
            if frame.node_type is not node_type or frame.attrs != attrs:
                break
            i += 1
        to_close = self.stack[i:]
        del self.stack[i:]
        for frame in reversed(to_close):
            yield from self._finish_frame(frame)
            yield CloseTag(frame.node_type.name, frame.role)
        for node_type, attrs in new_outer[i:]:
            yield from self._fill_before(node_type)
            yield self._push(node_type, attrs, Role.RENDER_ONLY)

        content, content_attrs = self.adapter.nodes_for_block(marker.kind, False)
        if self.current_match.match_type(content) is None:
            yield from self._wrap_for(content)
        yield self._block_event(marker)
        yield self._push(content, content_attrs, Role.EXPLICIT)

    def new_text(self, text: str, marks: MarkSet) -> Iterator[TraversalEvent]:
        text_type = self.adapter.text_type
        yield from self._wrap_for(text_type)
        self._set_match(self.current_match.match_type(text_type), text_type)
        yield TextEvent(text, dict(marks))

    def finish(self) -> Iterator[TraversalEvent]:
        frames = self.stack
        self.stack = []
        for frame in reversed(frames):
            yield from self._finish_frame(frame)
            yield CloseTag(frame.node_type.name, frame.role)

    def _fill_before(self, node_type: NodeType) -> Iterator[TraversalEvent]:
        fill = self.current_match.fill_before(Fragment.from_(node_type.create()))
        if fill is not None:
            yield from self._emit_fragment(fill)
            self._set_match(self.current_match.match_fragment(fill), node_type)

    def _finish_frame(self, frame: _Frame) -> Iterator[TraversalEvent]:
        fill = frame.last_match.fill_before(Fragment.empty, True)
        if fill is not None:
            yield from self._emit_fragment(fill)

    def _emit_fragment(self, fragment: Fragment) -> Iterator[TraversalEvent]:
        for node in fragment:
            if node.is_text:
                yield TextEvent(node.text, self.adapter.domain_marks_from_tree(node.marks))
            elif node.is_leaf:
                yield LeafNode(node.type.name, Role.RENDER_ONLY)
            else:
                yield OpenTag(node.type.name, Role.RENDER_ONLY)
                yield from self._emit_fragment(node.content)
                yield CloseTag(node.type.name, Role.RENDER_ONLY)

    def _block_event(self, marker: BlockMarker) -> BlockEvent:
        return BlockEvent(marker, is_unknown=self.adapter.mapping_for_kind(marker.kind) is None)


def block_at_index(spans: list[Span], target: int) -> tuple[int, BlockMarker] | None:
    """Return ``(index, marker)`` of the block governing domain index *target*.

    Returns ``None`` when *target* falls in text before the first marker.
    """
    idx = 0
    block: tuple[int, BlockMarker] | None = None
    for span in spans:
        if idx > target:
            return block
        if isinstance(span, TextSpan):
            if idx + text_length(span.value) > target:
                return block
            idx += text_length(span.value)
        else:
            block = (idx, span.marker)
            idx += 1
    return block


# ---------------------------------------------------------------------------
# Tree -> events
# ---------------------------------------------------------------------------


def traverse_node(adapter: GrammarAdapter, node: Node) -> Iterator[TraversalEvent]:
    """Emit the event stream for a tree, including the root's open/close pair."""
    yield from _walk(adapter, node, [], 0, node.child_count)


def _walk(
    adapter: GrammarAdapter,
    node: Node,
    path: list[Node],
    index: int,
    siblings: int,
) -> Iterator[TraversalEvent]:
    if node.is_text:
        yield TextEvent(node.text, adapter.domain_marks_from_tree(node.marks))
        return
    block = _block_for_node(adapter, node, path, index, siblings)
    role = Role.EXPLICIT if block is not None else Role.RENDER_ONLY
    if block is not None:
        yield block
    if node.is_leaf:
        yield LeafNode(node.type.name, role)
        return
    yield OpenTag(node.type.name, role)
    path.append(node)
    count = node.child_count
    for i, child in enumerate(node.content):
        yield from _walk(adapter, child, path, i, count)
    path.pop()
    yield CloseTag(node.type.name, role)


def _block_for_node(
    adapter: GrammarAdapter,
    node: Node,
    path: list[Node],
    index: int,
    siblings: int,
) -> BlockEvent | None:
    unknown = node.attrs.get(UNKNOWN_BLOCK)
    if unknown is not None:
        return BlockEvent(BlockMarker.from_dict(unknown), is_unknown=True)

    mapping = _block_mapping_for_node(adapter, node)
    explicit = bool(node.attrs.get(EXPLICIT_BLOCK))
    if mapping is None:
        if explicit:
            raise TraversalInvariantError(
                f"No mapping found for {node.type.name} node marked as a block"
            )
        return None

    attrs = dict(mapping.attr_codec.from_tree(node)) if mapping.attr_codec else {}
    unknown_attrs = node.attrs.get(UNKNOWN_ATTRS)
    if unknown_attrs:
        attrs.update(unknown_attrs)

    if explicit or mapping.is_embed:
        return BlockEvent(
            BlockMarker(
                mapping.domain_kind,
                _find_parents(adapter, path),
                attrs,
                mapping.is_embed,
            )
        )

    # Not flagged: a container of explicit blocks, or a freshly inserted block.
    explicit_children = _find_explicit_children(node)
    if explicit_children is not None:
        before, first = explicit_children
        default = mapping.tree_type.content_match.fill_before(Fragment.from_(first), True)
        if default is None:
            raise TraversalInvariantError(
                f"Grammar could not find a wrapping for {first.type.name} in {node.type.name}"
            )
        if default.eq(before):
            return None

    emit = False
    if node.is_textblock:
        parent = path[-1] if path else None
        if parent is None or (parent.type is adapter.top_type and siblings > 1):
            emit = True
        else:
            is_text_wrapper = (
                parent.type.content_match.default_type is node.type
                and index == 0
                and not explicit
            )
            emit = not is_text_wrapper
    elif any(child.is_textblock for child in node.content):
        emit = True

    if not emit:
        return None
    return BlockEvent(
        BlockMarker(mapping.domain_kind, _find_parents(adapter, path), attrs, mapping.is_embed),
        is_unknown=mapping.tree_type is adapter.unknown_block,
    )


def _block_mapping_for_node(adapter: GrammarAdapter, node: Node) -> NodeMapping | None:
    if node.type is adapter.unknown_block and node.attrs.get(UNKNOWN_PARENT_BLOCK):
        return NodeMapping(node.attrs[UNKNOWN_PARENT_BLOCK], node.type)
    return adapter.mapping_for_type(node.type)


def _find_parents(adapter: GrammarAdapter, path: list[Node]) -> tuple[str, ...]:
    parents = []
    last = len(path) - 1
    for i, parent in enumerate(path):
        # A render-only textblock around the content is implied by the grammar.
        if i == last and parent.is_textblock and not parent.attrs.get(EXPLICIT_BLOCK):
            continue
        if parent.attrs.get(IMPLIED_WRAPPER):
            continue
        mapping = _block_mapping_for_node(adapter, parent)
        if mapping is None:
            continue
        parents.append(mapping.domain_kind)
    return tuple(parents)


def _has_explicit(node: Node) -> bool:
    if node.attrs.get(EXPLICIT_BLOCK):
        return True
    found = False

    def visit(desc: Node, _pos: int, _parent: Node | None, _index: int) -> bool:
        nonlocal found
        if found:
            return False
        if desc.attrs.get(EXPLICIT_BLOCK):
            found = True
            return False
        return True

    node.descendants(visit)
    return found


def _find_explicit_children(node: Node) -> tuple[Fragment, Node] | None:
    """Return the content before the first child that is, or contains, an
    explicit block, together with that child."""
    count = 0
    first: Node | None = None
    before: list[Node] = []
    for child in node.content:
        if _has_explicit(child):
            count += 1
            if first is None:
                first = child
        if first is None:
            before.append(child)
        if count > 1:
            break
    if first is None:
        return None
    return Fragment.from_array(before), first
