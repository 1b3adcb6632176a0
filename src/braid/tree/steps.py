"""Document steps, position maps, and the transform that accumulates them."""

from __future__ import annotations

from typing import Any, Callable

from braid.errors import ReplaceError, TransformError
from braid.tree.model import Fragment, Mark, Node, Slice
from braid.tree.schema import MarkType, Schema


class StepMap:
    """Position changes of one step as ``(start, old_size, new_size)`` ranges."""

    empty: StepMap

    def __init__(self, ranges: tuple[tuple[int, int, int], ...] = ()) -> None:
        self.ranges = tuple(ranges)

    def map(self, pos: int, assoc: int = 1) -> int:
        diff = 0
        for start, old_size, new_size in self.ranges:
            if start > pos:
                break
            end = start + old_size
            if pos <= end:
                if not old_size:
                    side = assoc
                elif pos == start:
                    side = -1
                elif pos == end:
                    side = 1
                else:
                    side = assoc
                return start + diff + (0 if side < 0 else new_size)
            diff += new_size - old_size
        return pos + diff

    def for_each(self, f: Callable[[int, int, int, int], Any]) -> None:
        """Call ``f(old_start, old_end, new_start, new_end)`` for each range."""
        diff = 0
        for start, old_size, new_size in self.ranges:
            new_start = start + diff
            f(start, start + old_size, new_start, new_start + new_size)
            diff += new_size - old_size

    def __repr__(self) -> str:
        return f"StepMap({list(self.ranges)})"


StepMap.empty = StepMap()


class Mapping:
    """A sequence of step maps applied in order."""

    def __init__(self, maps: list[StepMap] | None = None) -> None:
        self.maps: list[StepMap] = list(maps or [])

    def append_map(self, step_map: StepMap) -> None:
        self.maps.append(step_map)

    def map(self, pos: int, assoc: int = 1) -> int:
        for step_map in self.maps:
            pos = step_map.map(pos, assoc)
        return pos


class StepResult:
    """Outcome of applying a step: a new document, or a failure message."""

    def __init__(self, doc: Node | None, failed: str | None) -> None:
        self.doc = doc
        self.failed = failed

    @classmethod
    def ok(cls, doc: Node) -> StepResult:
        return cls(doc, None)

    @classmethod
    def fail(cls, message: str) -> StepResult:
        return cls(None, message)

    @classmethod
    def from_replace(cls, doc: Node, from_: int, to: int, slice: Slice) -> StepResult:
        try:
            return cls.ok(doc.replace(from_, to, slice))
        except ReplaceError as exc:
            return cls.fail(str(exc))


class Step:
    """Base class for atomic document changes."""

    json_id = ""

    def apply(self, doc: Node) -> StepResult:
        raise NotImplementedError

    def get_map(self) -> StepMap:
        return StepMap.empty

    def to_json(self) -> dict:
        raise NotImplementedError

    @staticmethod
    def from_json(schema: Schema, data: dict) -> Step:
        kind = data.get("stepType")
        if kind == "replace":
            slice = _slice_from_json(schema, data.get("slice"))
            return ReplaceStep(data["from"], data["to"], slice, bool(data.get("structure")))
        if kind in ("addMark", "removeMark"):
            mark = schema.mark_from_json(data["mark"])
            cls = AddMarkStep if kind == "addMark" else RemoveMarkStep
            return cls(data["from"], data["to"], mark)
        raise TransformError(f"No step type {kind!r} defined")


def _slice_from_json(schema: Schema, data: dict | None) -> Slice:
    if not data:
        return Slice.empty
    content = Fragment.from_array([schema.node_from_json(c) for c in data.get("content", [])])
    return Slice(content, data.get("openStart", 0), data.get("openEnd", 0))


class ReplaceStep(Step):
    """Replace ``[from_, to)`` with a slice."""

    json_id = "replace"

    def __init__(self, from_: int, to: int, slice: Slice, structure: bool = False) -> None:
        self.from_ = from_
        self.to = to
        self.slice = slice
        self.structure = structure

    def apply(self, doc: Node) -> StepResult:
        if self.structure and _content_between(doc, self.from_, self.to):
            return StepResult.fail("Structure replace would overwrite content")
        return StepResult.from_replace(doc, self.from_, self.to, self.slice)

    def get_map(self) -> StepMap:
        return StepMap(((self.from_, self.to - self.from_, self.slice.size),))

    def to_json(self) -> dict:
        out: dict[str, Any] = {"stepType": self.json_id, "from": self.from_, "to": self.to}
        if self.slice.size:
            out["slice"] = self.slice.to_json()
        if self.structure:
            out["structure"] = True
        return out

    def __repr__(self) -> str:
        return f"ReplaceStep({self.from_}, {self.to}, {self.slice!r})"


def _content_between(doc: Node, from_: int, to: int) -> bool:
    rfrom = doc.resolve(from_)
    dist = to - from_
    depth = rfrom.depth
    while dist > 0 and depth > 0 and rfrom.index_after(depth) == rfrom.node(depth).child_count:
        depth -= 1
        dist -= 1
    if dist > 0:
        nxt = rfrom.node(depth).maybe_child(rfrom.index_after(depth))
        while dist > 0:
            if nxt is None or nxt.is_leaf:
                return True
            nxt = nxt.first_child
            dist -= 1
    return False


def _map_fragment(
    fragment: Fragment, f: Callable[[Node, Node], Node], parent: Node
) -> Fragment:
    mapped = []
    for child in fragment:
        if child.content.size:
            child = child.copy(_map_fragment(child.content, f, child))
        if child.is_inline:
            child = f(child, parent)
        mapped.append(child)
    return Fragment.from_array(mapped)


class AddMarkStep(Step):
    """Add a mark to all inline content in ``[from_, to)``."""

    json_id = "addMark"

    def __init__(self, from_: int, to: int, mark: Mark) -> None:
        self.from_ = from_
        self.to = to
        self.mark = mark

    def apply(self, doc: Node) -> StepResult:
        old_slice = doc.slice(self.from_, self.to)
        rfrom = doc.resolve(self.from_)
        parent = rfrom.node(rfrom.shared_depth(self.to))
        content = _map_fragment(
            old_slice.content,
            lambda node, _parent: node.mark(self.mark.add_to_set(node.marks)),
            parent,
        )
        slice = Slice(content, old_slice.open_start, old_slice.open_end)
        return StepResult.from_replace(doc, self.from_, self.to, slice)

    def to_json(self) -> dict:
        return {"stepType": self.json_id, "mark": self.mark.to_json(), "from": self.from_, "to": self.to}

    def __repr__(self) -> str:
        return f"AddMarkStep({self.from_}, {self.to}, {self.mark!r})"


class RemoveMarkStep(Step):
    """Remove a mark from all inline content in ``[from_, to)``."""

    json_id = "removeMark"

    def __init__(self, from_: int, to: int, mark: Mark) -> None:
        self.from_ = from_
        self.to = to
        self.mark = mark

    def apply(self, doc: Node) -> StepResult:
        old_slice = doc.slice(self.from_, self.to)
        content = _map_fragment(
            old_slice.content,
            lambda node, _parent: node.mark(self.mark.remove_from_set(node.marks)),
            doc,
        )
        slice = Slice(content, old_slice.open_start, old_slice.open_end)
        return StepResult.from_replace(doc, self.from_, self.to, slice)

    def to_json(self) -> dict:
        return {"stepType": self.json_id, "mark": self.mark.to_json(), "from": self.from_, "to": self.to}

    def __repr__(self) -> str:
        return f"RemoveMarkStep({self.from_}, {self.to}, {self.mark!r})"


class Transform:
    """Accumulates steps over a document, keeping every intermediate doc."""

    def __init__(self, doc: Node) -> None:
        self.doc = doc
        self.steps: list[Step] = []
        self.docs: list[Node] = []
        self.mapping = Mapping()

    @property
    def before(self) -> Node:
        return self.docs[0] if self.docs else self.doc

    @property
    def doc_changed(self) -> bool:
        return bool(self.steps)

    def step(self, step: Step) -> Transform:
        result = self.maybe_step(step)
        if result.failed is not None:
            raise TransformError(result.failed)
        return self

    def maybe_step(self, step: Step) -> StepResult:
        result = step.apply(self.doc)
        if result.failed is None:
            self.add_step(step, result.doc)
        return result

    def add_step(self, step: Step, doc: Node) -> None:
        self.docs.append(self.doc)
        self.steps.append(step)
        self.mapping.append_map(step.get_map())
        self.doc = doc

    def replace(self, from_: int, to: int | None = None, slice: Slice = Slice.empty) -> Transform:
        if to is None:
            to = from_
        if from_ == to and not slice.size:
            return self
        return self.step(ReplaceStep(from_, to, slice))

    def replace_with(self, from_: int, to: int, content: Fragment | Node | list[Node]) -> Transform:
        return self.replace(from_, to, Slice(Fragment.from_(content), 0, 0))

    def insert(self, pos: int, content: Fragment | Node | list[Node]) -> Transform:
        return self.replace_with(pos, pos, content)

    def delete(self, from_: int, to: int) -> Transform:
        return self.replace(from_, to, Slice.empty)

    def insert_text(self, text: str, from_: int, to: int | None = None, marks: tuple[Mark, ...] = ()) -> Transform:
        schema = self.doc.type.schema
        if not text:
            return self.delete(from_, from_ if to is None else to)
        return self.replace_with(from_, from_ if to is None else to, schema.text(text, marks))

    def add_mark(self, from_: int, to: int, mark: Mark) -> Transform:
        if from_ < to:
            self.step(AddMarkStep(from_, to, mark))
        return self

    def remove_mark(self, from_: int, to: int, mark: Mark | MarkType) -> Transform:
        """Remove *mark*, or every mark of a given mark type, from the range."""
        if from_ >= to:
            return self
        if isinstance(mark, Mark):
            return self.step(RemoveMarkStep(from_, to, mark))
        found: list[Mark] = []

        def collect(node: Node, _pos: int, _parent: Node | None, _index: int) -> None:
            if node.is_inline:
                existing = mark.is_in_set(node.marks)
                if existing is not None and not existing.is_in_set(tuple(found)):
                    found.append(existing)

        self.doc.nodes_between(from_, to, collect)
        for existing in found:
            self.step(RemoveMarkStep(from_, to, existing))
        return self
