"""Domain operations: the patch vocabulary of the replicated span sequence.

Every operation addresses the flat domain sequence, where each character and
each block marker occupies one index.  :func:`apply_op` patches a span list
and returns a new, normalized one; the input is never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from braid.core.spans import BlockMarker, BlockSpan, MarkSet, Span, TextSpan, normalize_spans, text_units


@dataclass(frozen=True)
class SpliceText:
    index: int
    value: str
    marks: MarkSet = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"action": "splice", "index": self.index, "value": self.value, "marks": dict(self.marks)}


@dataclass(frozen=True)
class DeleteRange:
    index: int
    length: int = 1

    def to_dict(self) -> dict:
        return {"action": "del", "index": self.index, "length": self.length}


@dataclass(frozen=True)
class InsertBlock:
    index: int
    marker: BlockMarker

    def to_dict(self) -> dict:
        return {"action": "insertBlock", "index": self.index, "block": self.marker.to_dict()}


@dataclass(frozen=True)
class UpdateBlock:
    """Replace the marker at *index*; the unit count is unchanged."""

    index: int
    marker: BlockMarker

    def to_dict(self) -> dict:
        return {"action": "updateBlock", "index": self.index, "block": self.marker.to_dict()}


@dataclass(frozen=True)
class AddMark:
    start: int
    end: int
    name: str
    value: Any = True

    def to_dict(self) -> dict:
        return {"action": "mark", "start": self.start, "end": self.end, "name": self.name, "value": self.value}


@dataclass(frozen=True)
class RemoveMark:
    start: int
    end: int
    name: str

    def to_dict(self) -> dict:
        return {"action": "unmark", "start": self.start, "end": self.end, "name": self.name}


DomainOp = Union[SpliceText, DeleteRange, InsertBlock, UpdateBlock, AddMark, RemoveMark]

MARK_OPS = (AddMark, RemoveMark)


def op_from_dict(data: dict) -> DomainOp:
    action = data.get("action")
    if action == "splice":
        return SpliceText(int(data["index"]), str(data["value"]), dict(data.get("marks") or {}))
    if action == "del":
        return DeleteRange(int(data["index"]), int(data.get("length", 1)))
    if action == "insertBlock":
        return InsertBlock(int(data["index"]), BlockMarker.from_dict(data.get("block")))
    if action == "updateBlock":
        return UpdateBlock(int(data["index"]), BlockMarker.from_dict(data.get("block")))
    if action == "mark":
        return AddMark(int(data["start"]), int(data["end"]), str(data["name"]), data.get("value", True))
    if action == "unmark":
        return RemoveMark(int(data["start"]), int(data["end"]), str(data["name"]))
    raise ValueError(f"Unknown operation action: {action!r}")


# ---------------------------------------------------------------------------
# Unit view
# ---------------------------------------------------------------------------


def spans_to_units(spans: list[Span]) -> list[Span]:
    """Explode spans into one span per domain index."""
    units: list[Span] = []
    for span in spans:
        if isinstance(span, TextSpan):
            units.extend(TextSpan(ch, span.marks) for ch in text_units(span.value))
        else:
            units.append(span)
    return units


def units_to_spans(units: list[Span]) -> list[Span]:
    return normalize_spans(units)


def _clean_marks(marks: MarkSet) -> MarkSet:
    return {name: value for name, value in marks.items() if value is not None}


def _check_index(index: int, length: int, what: str) -> None:
    if index < 0 or index > length:
        raise IndexError(f"{what} index {index} outside 0..{length}")


def _check_range(start: int, end: int, length: int, what: str) -> None:
    if start < 0 or end > length or start > end:
        raise IndexError(f"{what} range [{start}, {end}) outside 0..{length}")


def apply_op(spans: list[Span], op: DomainOp) -> list[Span]:
    """Return *spans* with *op* applied."""
    units = spans_to_units(spans)
    size = len(units)

    if isinstance(op, SpliceText):
        _check_index(op.index, size, "splice")
        marks = _clean_marks(op.marks)
        units[op.index : op.index] = [TextSpan(ch, marks) for ch in text_units(op.value)]
    elif isinstance(op, DeleteRange):
        _check_range(op.index, op.index + op.length, size, "delete")
        del units[op.index : op.index + op.length]
    elif isinstance(op, InsertBlock):
        _check_index(op.index, size, "insert block")
        units.insert(op.index, BlockSpan(op.marker))
    elif isinstance(op, UpdateBlock):
        _check_range(op.index, op.index + 1, size, "update block")
        if not isinstance(units[op.index], BlockSpan):
            raise ValueError(f"No block marker at index {op.index}")
        units[op.index] = BlockSpan(op.marker)
    elif isinstance(op, AddMark):
        _check_range(op.start, op.end, size, "mark")
        for i in range(op.start, op.end):
            unit = units[i]
            if isinstance(unit, TextSpan):
                marks = dict(unit.marks)
                if op.value is None:
                    marks.pop(op.name, None)
                else:
                    marks[op.name] = op.value
                units[i] = TextSpan(unit.value, marks)
    elif isinstance(op, RemoveMark):
        _check_range(op.start, op.end, size, "unmark")
        for i in range(op.start, op.end):
            unit = units[i]
            if isinstance(unit, TextSpan) and op.name in unit.marks:
                units[i] = TextSpan(unit.value, {k: v for k, v in unit.marks.items() if k != op.name})
    else:
        raise TypeError(f"Not a domain operation: {op!r}")

    return units_to_spans(units)


def apply_ops(spans: list[Span], ops: list[DomainOp]) -> list[Span]:
    for op in ops:
        spans = apply_op(spans, op)
    return spans


def ops_for_spans(spans: list[Span], index: int = 0) -> list[DomainOp]:
    """Return the insert operations that write *spans* starting at *index*."""
    ops: list[DomainOp] = []
    for span in spans:
        if isinstance(span, TextSpan):
            if span.value:
                ops.append(SpliceText(index, span.value, dict(span.marks)))
        else:
            ops.append(InsertBlock(index, span.marker))
        index += span.length
    return ops
