"""Immutable tree values: marks, nodes, fragments, slices, and resolved positions.

Positions count node boundary tokens and text characters.  A non-leaf node
contributes an opening and a closing token around its content, a leaf node
counts as one, and a text node counts one per character.  Position 0 is the
start of the root node's content.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Iterator

from braid.errors import ReplaceError


# ---------------------------------------------------------------------------
# Marks
# ---------------------------------------------------------------------------


class Mark:
    """A mark instance (a mark type plus attributes) attached to inline content."""

    __slots__ = ("type", "attrs")

    def __init__(self, type: Any, attrs: dict) -> None:
        self.type = type
        self.attrs = attrs

    def add_to_set(self, marks: tuple[Mark, ...]) -> tuple[Mark, ...]:
        """Return *marks* with this mark added, replacing a mark of the same type.

        Sets are kept ordered by mark type rank.
        """
        result: list[Mark] = []
        placed = False
        for other in marks:
            if self.eq(other):
                return marks
            if other.type is self.type:
                continue
            if not placed and other.type.rank > self.type.rank:
                result.append(self)
                placed = True
            result.append(other)
        if not placed:
            result.append(self)
        return tuple(result)

    def remove_from_set(self, marks: tuple[Mark, ...]) -> tuple[Mark, ...]:
        return tuple(m for m in marks if not self.eq(m))

    def is_in_set(self, marks: tuple[Mark, ...]) -> bool:
        return any(self.eq(m) for m in marks)

    def eq(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Mark):
            return False
        return self.type is other.type and self.attrs == other.attrs

    def __eq__(self, other: object) -> bool:
        return self.eq(other)

    __hash__ = None  # type: ignore[assignment]

    def to_json(self) -> dict:
        out: dict[str, Any] = {"type": self.type.name}
        if self.attrs:
            out["attrs"] = dict(self.attrs)
        return out

    def __repr__(self) -> str:
        if self.attrs:
            return f"{self.type.name}({json.dumps(self.attrs, sort_keys=True)})"
        return self.type.name


def same_mark_set(a: tuple[Mark, ...], b: tuple[Mark, ...]) -> bool:
    if a is b:
        return True
    if len(a) != len(b):
        return False
    return all(x.eq(y) for x, y in zip(a, b))


# ---------------------------------------------------------------------------
# Fragments
# ---------------------------------------------------------------------------


class Fragment:
    """An ordered, immutable sequence of child nodes."""

    __slots__ = ("content", "size")

    empty: Fragment

    def __init__(self, content: tuple[Node, ...] = (), size: int | None = None) -> None:
        self.content = tuple(content)
        if size is None:
            size = sum(child.node_size for child in self.content)
        self.size = size

    @classmethod
    def from_array(cls, nodes: list[Node] | tuple[Node, ...]) -> Fragment:
        """Build a fragment, joining adjacent text nodes with the same marks."""
        if not nodes:
            return cls.empty
        joined: list[Node] = []
        size = 0
        for node in nodes:
            size += node.node_size
            if joined and node.is_text and node.same_markup(joined[-1]):
                joined[-1] = joined[-1].with_text(joined[-1].text + node.text)
            else:
                joined.append(node)
        return cls(tuple(joined), size)

    @classmethod
    def from_(cls, content: Fragment | Node | list[Node] | tuple[Node, ...] | None) -> Fragment:
        if content is None:
            return cls.empty
        if isinstance(content, Fragment):
            return content
        if isinstance(content, Node):
            return cls((content,), content.node_size)
        return cls.from_array(list(content))

    # -- access -------------------------------------------------------------

    @property
    def child_count(self) -> int:
        return len(self.content)

    def child(self, index: int) -> Node:
        return self.content[index]

    def maybe_child(self, index: int) -> Node | None:
        if 0 <= index < len(self.content):
            return self.content[index]
        return None

    @property
    def first_child(self) -> Node | None:
        return self.content[0] if self.content else None

    @property
    def last_child(self) -> Node | None:
        return self.content[-1] if self.content else None

    def __iter__(self) -> Iterator[Node]:
        return iter(self.content)

    def for_each(self, f: Callable[[Node, int, int], Any]) -> None:
        """Call ``f(child, offset, index)`` for every child."""
        pos = 0
        for i, child in enumerate(self.content):
            f(child, pos, i)
            pos += child.node_size

    def nodes_between(
        self,
        from_: int,
        to: int,
        f: Callable[[Node, int, Node | None, int], Any],
        node_start: int = 0,
        parent: Node | None = None,
    ) -> None:
        """Invoke *f* on every node overlapping ``[from_, to)``.

        Returning ``False`` from *f* skips that node's children.
        """
        pos = 0
        for i, child in enumerate(self.content):
            if pos >= to:
                break
            end = pos + child.node_size
            if end > from_ and f(child, node_start + pos, parent, i) is not False and child.content.size:
                start = pos + 1
                child.content.nodes_between(
                    max(0, from_ - start),
                    min(child.content.size, to - start),
                    f,
                    node_start + start,
                    child,
                )
            pos = end

    def descendants(self, f: Callable[[Node, int, Node | None, int], Any]) -> None:
        self.nodes_between(0, self.size, f)

    @property
    def text_content(self) -> str:
        return "".join(child.text_content for child in self.content)

    # -- derivation ---------------------------------------------------------

    def append(self, other: Fragment) -> Fragment:
        if not other.size:
            return self
        if not self.size:
            return other
        last, first = self.content[-1], other.content[0]
        content = list(self.content)
        rest = other.content
        if last.is_text and last.same_markup(first):
            content[-1] = last.with_text(last.text + first.text)
            rest = other.content[1:]
        content.extend(rest)
        return Fragment(tuple(content), self.size + other.size)

    def cut(self, from_: int, to: int | None = None) -> Fragment:
        if to is None:
            to = self.size
        if from_ == 0 and to == self.size:
            return self
        result: list[Node] = []
        size = 0
        if to > from_:
            pos = 0
            for child in self.content:
                if pos >= to:
                    break
                end = pos + child.node_size
                if end > from_:
                    if pos < from_ or end > to:
                        if child.is_text:
                            child = child.cut(max(0, from_ - pos), min(len(child.text), to - pos))
                        else:
                            child = child.cut(
                                max(0, from_ - pos - 1),
                                min(child.content.size, to - pos - 1),
                            )
                    result.append(child)
                    size += child.node_size
                pos = end
        return Fragment(tuple(result), size)

    def cut_by_index(self, from_: int, to: int) -> Fragment:
        if from_ == to:
            return Fragment.empty
        if from_ == 0 and to == len(self.content):
            return self
        return Fragment(self.content[from_:to])

    def replace_child(self, index: int, node: Node) -> Fragment:
        current = self.content[index]
        if current is node:
            return self
        content = list(self.content)
        content[index] = node
        return Fragment(tuple(content), self.size + node.node_size - current.node_size)

    def add_to_start(self, node: Node) -> Fragment:
        return Fragment((node,) + self.content, self.size + node.node_size)

    def add_to_end(self, node: Node) -> Fragment:
        return Fragment(self.content + (node,), self.size + node.node_size)

    def find_index(self, pos: int, round: int = -1) -> tuple[int, int]:
        """Return ``(index, offset)`` of the child boundary at or before *pos*."""
        if pos == 0:
            return 0, pos
        if pos == self.size:
            return len(self.content), pos
        if pos > self.size or pos < 0:
            raise IndexError(f"Position {pos} outside of fragment ({self})")
        cur_pos = 0
        for i, cur in enumerate(self.content):
            end = cur_pos + cur.node_size
            if end >= pos:
                if end == pos or round > 0:
                    return i + 1, end
                return i, cur_pos
            cur_pos = end
        raise IndexError(f"Position {pos} outside of fragment ({self})")

    # -- comparison ---------------------------------------------------------

    def eq(self, other: Fragment) -> bool:
        if len(self.content) != len(other.content):
            return False
        return all(a.eq(b) for a, b in zip(self.content, other.content))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Fragment) and self.eq(other)

    __hash__ = None  # type: ignore[assignment]

    def find_diff_start(self, other: Fragment, pos: int = 0) -> int | None:
        """Return the first position at which this fragment and *other* differ."""
        return find_diff_start(self, other, pos)

    def find_diff_end(
        self, other: Fragment, pos: int | None = None, other_pos: int | None = None
    ) -> tuple[int, int] | None:
        """Return the ``(end_a, end_b)`` positions where the fragments stop differing,
        scanning from the end."""
        if pos is None:
            pos = self.size
        if other_pos is None:
            other_pos = other.size
        return find_diff_end(self, other, pos, other_pos)

    # -- serialization ------------------------------------------------------

    def to_json(self) -> list[dict] | None:
        if not self.content:
            return None
        return [child.to_json() for child in self.content]

    def to_string_inner(self) -> str:
        return ", ".join(repr(child) for child in self.content)

    def __repr__(self) -> str:
        return f"<{self.to_string_inner()}>"


Fragment.empty = Fragment((), 0)


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


class Node:
    """An immutable tree node with a type, attributes, content, and marks."""

    __slots__ = ("type", "attrs", "content", "marks")

    is_text = False

    def __init__(
        self,
        type: Any,
        attrs: dict,
        content: Fragment | None = None,
        marks: tuple[Mark, ...] = (),
    ) -> None:
        self.type = type
        self.attrs = attrs
        self.content = content if content is not None else Fragment.empty
        self.marks = tuple(marks)

    # -- shape --------------------------------------------------------------

    @property
    def text(self) -> str | None:
        return None

    @property
    def node_size(self) -> int:
        return 1 if self.type.is_leaf else 2 + self.content.size

    @property
    def child_count(self) -> int:
        return self.content.child_count

    def child(self, index: int) -> Node:
        return self.content.child(index)

    def maybe_child(self, index: int) -> Node | None:
        return self.content.maybe_child(index)

    @property
    def first_child(self) -> Node | None:
        return self.content.first_child

    @property
    def last_child(self) -> Node | None:
        return self.content.last_child

    @property
    def is_block(self) -> bool:
        return self.type.is_block

    @property
    def is_inline(self) -> bool:
        return self.type.is_inline

    @property
    def is_textblock(self) -> bool:
        return self.type.is_textblock

    @property
    def inline_content(self) -> bool:
        return self.type.inline_content

    @property
    def is_leaf(self) -> bool:
        return self.type.is_leaf

    @property
    def text_content(self) -> str:
        return self.content.text_content

    def for_each(self, f: Callable[[Node, int, int], Any]) -> None:
        self.content.for_each(f)

    def nodes_between(
        self,
        from_: int,
        to: int,
        f: Callable[[Node, int, Node | None, int], Any],
        start_pos: int = 0,
    ) -> None:
        self.content.nodes_between(from_, to, f, start_pos, self)

    def descendants(self, f: Callable[[Node, int, Node | None, int], Any]) -> None:
        self.nodes_between(0, self.content.size, f)

    # -- comparison ---------------------------------------------------------

    def same_markup(self, other: Node) -> bool:
        return self.has_markup(other.type, other.attrs, other.marks)

    def has_markup(self, type: Any, attrs: dict | None = None, marks: tuple[Mark, ...] = ()) -> bool:
        return (
            self.type is type
            and self.attrs == (attrs if attrs is not None else type.default_attrs or {})
            and same_mark_set(self.marks, tuple(marks))
        )

    def eq(self, other: object) -> bool:
        if self is other:
            return True
        if not isinstance(other, Node):
            return False
        return self.same_markup(other) and self.content.eq(other.content)

    def __eq__(self, other: object) -> bool:
        return self.eq(other)

    __hash__ = None  # type: ignore[assignment]

    # -- derivation ---------------------------------------------------------

    def copy(self, content: Fragment | None = None) -> Node:
        if content is self.content:
            return self
        return Node(self.type, self.attrs, content, self.marks)

    def mark(self, marks: tuple[Mark, ...]) -> Node:
        if same_mark_set(marks, self.marks):
            return self
        return Node(self.type, self.attrs, self.content, marks)

    def cut(self, from_: int, to: int | None = None) -> Node:
        if to is None:
            to = self.content.size
        if from_ == 0 and to == self.content.size:
            return self
        return self.copy(self.content.cut(from_, to))

    def slice(self, from_: int, to: int | None = None, include_parents: bool = False) -> Slice:
        if to is None:
            to = self.content.size
        if from_ == to:
            return Slice.empty
        rfrom = self.resolve(from_)
        rto = self.resolve(to)
        depth = 0 if include_parents else rfrom.shared_depth(to)
        start = rfrom.start(depth)
        node = rfrom.node(depth)
        content = node.content.cut(rfrom.pos - start, rto.pos - start)
        return Slice(content, rfrom.depth - depth, rto.depth - depth)

    def replace(self, from_: int, to: int, slice: Slice) -> Node:
        """Replace ``[from_, to)`` with *slice*; raises ``ReplaceError`` when
        the result would not fit the grammar."""
        return replace(self.resolve(from_), self.resolve(to), slice)

    def resolve(self, pos: int) -> ResolvedPos:
        return ResolvedPos.resolve(self, pos)

    def node_at(self, pos: int) -> Node | None:
        node: Node | None = self
        while node is not None:
            index, offset = node.content.find_index(pos)
            node = node.content.maybe_child(index)
            if node is None:
                return None
            if offset == pos or node.is_text:
                return node
            pos -= offset + 1
        return None

    def check(self) -> None:
        """Verify, recursively, that this node's content matches its type."""
        self.type.check_content(self.content)
        for child in self.content:
            child.check()

    # -- serialization ------------------------------------------------------

    def to_json(self) -> dict:
        out: dict[str, Any] = {"type": self.type.name}
        if self.attrs:
            out["attrs"] = dict(self.attrs)
        if self.content.size:
            out["content"] = self.content.to_json()
        if self.marks:
            out["marks"] = [m.to_json() for m in self.marks]
        return out

    def __repr__(self) -> str:
        name = self.type.name
        if self.content.size:
            name += f"({self.content.to_string_inner()})"
        return _wrap_marks(self.marks, name)


class TextNode(Node):
    """A leaf node holding a non-empty run of characters."""

    __slots__ = ("_text",)

    is_text = True

    def __init__(self, type: Any, attrs: dict, text: str, marks: tuple[Mark, ...] = ()) -> None:
        super().__init__(type, attrs, None, marks)
        self._text = text

    @property
    def text(self) -> str:
        return self._text

    @property
    def node_size(self) -> int:
        return len(self._text)

    @property
    def text_content(self) -> str:
        return self._text

    def with_text(self, text: str) -> TextNode:
        if text == self._text:
            return self
        return TextNode(self.type, self.attrs, text, self.marks)

    def mark(self, marks: tuple[Mark, ...]) -> TextNode:
        if same_mark_set(marks, self.marks):
            return self
        return TextNode(self.type, self.attrs, self._text, marks)

    def cut(self, from_: int = 0, to: int | None = None) -> TextNode:
        if to is None:
            to = len(self._text)
        if from_ == 0 and to == len(self._text):
            return self
        return self.with_text(self._text[from_:to])

    def eq(self, other: object) -> bool:
        if self is other:
            return True
        return isinstance(other, TextNode) and self.same_markup(other) and self._text == other.text

    def to_json(self) -> dict:
        out = super().to_json()
        out["text"] = self._text
        return out

    def __repr__(self) -> str:
        return _wrap_marks(self.marks, json.dumps(self._text))


def _wrap_marks(marks: tuple[Mark, ...], text: str) -> str:
    for mark in reversed(marks):
        text = f"{mark.type.name}({text})"
    return text


# ---------------------------------------------------------------------------
# Slices
# ---------------------------------------------------------------------------


class Slice:
    """A piece cut out of a document: a fragment plus its open depths."""

    __slots__ = ("content", "open_start", "open_end")

    empty: Slice

    def __init__(self, content: Fragment, open_start: int, open_end: int) -> None:
        self.content = content
        self.open_start = open_start
        self.open_end = open_end

    @property
    def size(self) -> int:
        return self.content.size - self.open_start - self.open_end

    def eq(self, other: Slice) -> bool:
        return (
            self.content.eq(other.content)
            and self.open_start == other.open_start
            and self.open_end == other.open_end
        )

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Slice) and self.eq(other)

    __hash__ = None  # type: ignore[assignment]

    def to_json(self) -> dict | None:
        if not self.content.size:
            return None
        out: dict[str, Any] = {"content": self.content.to_json()}
        if self.open_start > 0:
            out["openStart"] = self.open_start
        if self.open_end > 0:
            out["openEnd"] = self.open_end
        return out

    def __repr__(self) -> str:
        return f"{self.content!r}({self.open_start},{self.open_end})"


Slice.empty = Slice(Fragment.empty, 0, 0)


# ---------------------------------------------------------------------------
# Resolved positions
# ---------------------------------------------------------------------------


class ResolvedPos:
    """A position with its full ancestor path resolved.

    ``path`` holds ``(node, index, offset)`` triples from the root down.
    """

    __slots__ = ("pos", "path", "parent_offset", "depth")

    def __init__(self, pos: int, path: list, parent_offset: int) -> None:
        self.pos = pos
        self.path = path
        self.parent_offset = parent_offset
        self.depth = len(path) // 3 - 1

    @classmethod
    def resolve(cls, doc: Node, pos: int) -> ResolvedPos:
        if not 0 <= pos <= doc.content.size:
            raise IndexError(f"Position {pos} out of range")
        path: list = []
        start = 0
        parent_offset = pos
        node = doc
        while True:
            index, offset = node.content.find_index(parent_offset)
            rem = parent_offset - offset
            path.extend((node, index, start + offset))
            if not rem:
                break
            node = node.child(index)
            if node.is_text:
                break
            parent_offset = rem - 1
            start += offset + 1
        return cls(pos, path, parent_offset)

    def _depth(self, depth: int | None) -> int:
        if depth is None:
            return self.depth
        if depth < 0:
            return self.depth + depth
        return depth

    @property
    def parent(self) -> Node:
        return self.node(self.depth)

    @property
    def doc(self) -> Node:
        return self.node(0)

    def node(self, depth: int | None = None) -> Node:
        return self.path[self._depth(depth) * 3]

    def index(self, depth: int | None = None) -> int:
        return self.path[self._depth(depth) * 3 + 1]

    def index_after(self, depth: int | None = None) -> int:
        depth = self._depth(depth)
        return self.index(depth) + (0 if depth == self.depth and not self.text_offset else 1)

    def start(self, depth: int | None = None) -> int:
        depth = self._depth(depth)
        return 0 if depth == 0 else self.path[depth * 3 - 1] + 1

    def end(self, depth: int | None = None) -> int:
        depth = self._depth(depth)
        return self.start(depth) + self.node(depth).content.size

    def before(self, depth: int | None = None) -> int:
        depth = self._depth(depth)
        if not depth:
            raise IndexError("There is no position before the top-level node")
        return self.pos if depth == self.depth + 1 else self.path[depth * 3 - 1]

    def after(self, depth: int | None = None) -> int:
        depth = self._depth(depth)
        if not depth:
            raise IndexError("There is no position after the top-level node")
        if depth == self.depth + 1:
            return self.pos
        return self.path[depth * 3 - 1] + self.path[depth * 3].node_size

    @property
    def text_offset(self) -> int:
        return self.pos - self.path[-1]

    @property
    def node_after(self) -> Node | None:
        parent = self.parent
        index = self.index(self.depth)
        if index == parent.child_count:
            return None
        d_off = self.pos - self.path[-1]
        child = parent.child(index)
        return child.cut(d_off) if d_off else child

    @property
    def node_before(self) -> Node | None:
        index = self.index(self.depth)
        d_off = self.pos - self.path[-1]
        if d_off:
            return self.parent.child(index).cut(0, d_off)
        return None if index == 0 else self.parent.child(index - 1)

    def shared_depth(self, pos: int) -> int:
        for depth in range(self.depth, 0, -1):
            if self.start(depth) <= pos and self.end(depth) >= pos:
                return depth
        return 0

    def __repr__(self) -> str:
        parts = []
        for i in range(1, self.depth + 1):
            parts.append(f"{self.node(i).type.name}_{self.index(i - 1)}")
        return "/".join(parts) + ":" + str(self.parent_offset)


# ---------------------------------------------------------------------------
# Replacement
# ---------------------------------------------------------------------------


def replace(rfrom: ResolvedPos, rto: ResolvedPos, slice: Slice) -> Node:
    if slice.open_start > rfrom.depth:
        raise ReplaceError("Inserted content deeper than insertion position")
    if rfrom.depth - slice.open_start != rto.depth - slice.open_end:
        raise ReplaceError("Inconsistent open depths")
    return _replace_outer(rfrom, rto, slice, 0)


def _replace_outer(rfrom: ResolvedPos, rto: ResolvedPos, slice: Slice, depth: int) -> Node:
    index = rfrom.index(depth)
    node = rfrom.node(depth)
    if index == rto.index(depth) and depth < rfrom.depth - slice.open_start:
        inner = _replace_outer(rfrom, rto, slice, depth + 1)
        return node.copy(node.content.replace_child(index, inner))
    if not slice.content.size:
        return _close(node, _replace_two_way(rfrom, rto, depth))
    if not slice.open_start and not slice.open_end and rfrom.depth == depth and rto.depth == depth:
        parent = rfrom.parent
        content = parent.content
        return _close(
            parent,
            content.cut(0, rfrom.parent_offset)
            .append(slice.content)
            .append(content.cut(rto.parent_offset)),
        )
    start, end = _prepare_slice_for_replace(slice, rfrom)
    return _close(node, _replace_three_way(rfrom, start, end, rto, depth))


def _check_join(main: Node, sub: Node) -> None:
    if not sub.type.compatible_content(main.type):
        raise ReplaceError(f"Cannot join {sub.type.name} onto {main.type.name}")


def _joinable(rbefore: ResolvedPos, rafter: ResolvedPos, depth: int) -> Node:
    node = rbefore.node(depth)
    _check_join(node, rafter.node(depth))
    return node


def _add_node(child: Node, target: list[Node]) -> None:
    if target and child.is_text and child.same_markup(target[-1]):
        target[-1] = target[-1].with_text(target[-1].text + child.text)
    else:
        target.append(child)


def _add_range(
    rstart: ResolvedPos | None, rend: ResolvedPos | None, depth: int, target: list[Node]
) -> None:
    node = (rend or rstart).node(depth)
    start_index = 0
    end_index = rend.index(depth) if rend else node.child_count
    if rstart:
        start_index = rstart.index(depth)
        if rstart.depth > depth:
            start_index += 1
        elif rstart.text_offset:
            _add_node(rstart.node_after, target)
            start_index += 1
    for i in range(start_index, end_index):
        _add_node(node.child(i), target)
    if rend and rend.depth == depth and rend.text_offset:
        _add_node(rend.node_before, target)


def _close(node: Node, content: Fragment) -> Node:
    if not node.type.valid_content(content):
        raise ReplaceError(f"Invalid content for node {node.type.name}: {content!r}")
    return node.copy(content)


def _replace_three_way(
    rfrom: ResolvedPos, rstart: ResolvedPos, rend: ResolvedPos, rto: ResolvedPos, depth: int
) -> Fragment:
    open_start = _joinable(rfrom, rstart, depth + 1) if rfrom.depth > depth else None
    open_end = _joinable(rend, rto, depth + 1) if rto.depth > depth else None

    content: list[Node] = []
    _add_range(None, rfrom, depth, content)
    if open_start is not None and open_end is not None and rstart.index(depth) == rend.index(depth):
        _check_join(open_start, open_end)
        _add_node(
            _close(open_start, _replace_three_way(rfrom, rstart, rend, rto, depth + 1)), content
        )
    else:
        if open_start is not None:
            _add_node(_close(open_start, _replace_two_way(rfrom, rstart, depth + 1)), content)
        _add_range(rstart, rend, depth, content)
        if open_end is not None:
            _add_node(_close(open_end, _replace_two_way(rend, rto, depth + 1)), content)
    _add_range(rto, None, depth, content)
    return Fragment(tuple(content))


def _replace_two_way(rfrom: ResolvedPos, rto: ResolvedPos, depth: int) -> Fragment:
    content: list[Node] = []
    _add_range(None, rfrom, depth, content)
    if rfrom.depth > depth:
        type_node = _joinable(rfrom, rto, depth + 1)
        _add_node(_close(type_node, _replace_two_way(rfrom, rto, depth + 1)), content)
    _add_range(rto, None, depth, content)
    return Fragment(tuple(content))


def _prepare_slice_for_replace(slice: Slice, along: ResolvedPos) -> tuple[ResolvedPos, ResolvedPos]:
    extra = along.depth - slice.open_start
    parent = along.node(extra)
    node = parent.copy(slice.content)
    for i in range(extra - 1, -1, -1):
        node = along.node(i).copy(Fragment.from_(node))
    return (
        node.resolve(slice.open_start + extra),
        node.resolve(node.content.size - slice.open_end - extra),
    )


# ---------------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------------


def find_diff_start(a: Fragment, b: Fragment, pos: int) -> int | None:
    i = 0
    while True:
        if i == a.child_count or i == b.child_count:
            return None if a.child_count == b.child_count else pos
        child_a, child_b = a.child(i), b.child(i)
        i += 1
        if child_a is child_b:
            pos += child_a.node_size
            continue
        if not child_a.same_markup(child_b):
            return pos
        if child_a.is_text and child_a.text != child_b.text:
            text_a, text_b = child_a.text, child_b.text
            j = 0
            while j < len(text_a) and j < len(text_b) and text_a[j] == text_b[j]:
                j += 1
                pos += 1
            return pos
        if child_a.content.size or child_b.content.size:
            inner = find_diff_start(child_a.content, child_b.content, pos + 1)
            if inner is not None:
                return inner
        pos += child_a.node_size


def find_diff_end(a: Fragment, b: Fragment, pos_a: int, pos_b: int) -> tuple[int, int] | None:
    i_a, i_b = a.child_count, b.child_count
    while True:
        if i_a == 0 or i_b == 0:
            return None if i_a == i_b else (pos_a, pos_b)
        i_a -= 1
        i_b -= 1
        child_a, child_b = a.child(i_a), b.child(i_b)
        size = child_a.node_size
        if child_a is child_b:
            pos_a -= size
            pos_b -= size
            continue
        if not child_a.same_markup(child_b):
            return pos_a, pos_b
        if child_a.is_text and child_a.text != child_b.text:
            text_a, text_b = child_a.text, child_b.text
            same = 0
            min_size = min(len(text_a), len(text_b))
            while same < min_size and text_a[-same - 1] == text_b[-same - 1]:
                same += 1
                pos_a -= 1
                pos_b -= 1
            return pos_a, pos_b
        if child_a.content.size or child_b.content.size:
            inner = find_diff_end(child_a.content, child_b.content, pos_a - 1, pos_b - 1)
            if inner is not None:
                return inner
        pos_a -= size
        pos_b -= size
