"""Translate between domain operations and tree steps.

Forward, :func:`domain_ops_to_tree` replays a batch of domain operations onto
an editor transaction.  Reverse, :func:`tree_steps_to_domain_ops` turns the
steps of local transactions into domain operations.

Both directions try a narrow mapping first: text splices, single-run
deletions and mark changes map position by position.  Everything else falls
back to a diff, of canonical trees going forward and of unit sequences going
backward.
"""

from __future__ import annotations

import difflib
import json
import logging
from dataclasses import replace

from braid.core.builder import build_tree
from braid.core.events import TextEvent
from braid.core.extract import extract_spans
from braid.core.grammar import UNKNOWN_MARKS, GrammarAdapter
from braid.core.positions import (
    domain_splice_index_to_tree_index,
    indexed_events,
    node_range_to_domain_range,
)
from braid.core.spans import BlockSpan, Span, TextSpan, normalize_spans, text_length
from braid.errors import TransformError
from braid.sync.ops import (
    MARK_OPS,
    AddMark,
    DeleteRange,
    DomainOp,
    RemoveMark,
    SpliceText,
    UpdateBlock,
    apply_op,
    ops_for_spans,
    spans_to_units,
)
from braid.tree.model import Fragment, Node
from braid.tree.steps import AddMarkStep, RemoveMarkStep, ReplaceStep, Step, Transform

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Domain -> tree
# ---------------------------------------------------------------------------


def domain_ops_to_tree(
    adapter: GrammarAdapter, spans_before: list[Span], ops: list[DomainOp], tr: Transform
) -> Transform:
    """Replay *ops*, which apply to *spans_before*, as steps on *tr*.

    *tr* must start from a tree whose content corresponds to *spans_before*.
    """
    spans = list(spans_before)
    for op in ops:
        after = apply_op(spans, op)
        if not _apply_mapped(adapter, spans, after, op, tr):
            logger.debug("Rebuilding the changed tree range for %s", op)
            replace_differing_range(tr, build_tree(adapter, after))
        spans = after
    return tr


def _apply_mapped(
    adapter: GrammarAdapter, spans: list[Span], after: list[Span], op: DomainOp, tr: Transform
) -> bool:
    """Apply *op* position by position.  Returns False when it needs a rebuild."""
    if isinstance(op, SpliceText):
        if not op.value:
            return True
        if not _splice_lands_inline(adapter, spans_to_units(spans), op.index):
            return False
        pos = domain_splice_index_to_tree_index(adapter, spans, op.index)
        if pos is None:
            return False
        tr.insert_text(op.value, pos, marks=adapter.tree_mark_set(op.marks))
        return True

    if isinstance(op, DeleteRange):
        if op.length <= 0:
            return True
        if not _deletion_keeps_structure(adapter, spans_to_units(spans), op, bool(after)):
            return False
        pos = domain_splice_index_to_tree_index(adapter, spans, op.index)
        if pos is None:
            return False
        tr.delete(pos, pos + op.length)
        return True

    if isinstance(op, MARK_OPS):
        mapping = adapter.mark_mapping_for_name(op.name)
        if mapping is None:
            # Unknown marks live in the carrier's attributes.
            return False
        ranges = _text_ranges(adapter, spans, op.start, op.end)
        if isinstance(op, AddMark) and op.value is not None:
            mark = mapping.tree_mark_type.create(mapping.codec.from_domain(op.value))
            for from_, to in ranges:
                tr.add_mark(from_, to, mark)
        else:
            for from_, to in ranges:
                tr.remove_mark(from_, to, mapping.tree_mark_type)
        return True

    return False


def _is_boundary(unit: Span) -> bool:
    return isinstance(unit, BlockSpan) and not unit.marker.is_embed


def _content_is_textblock(adapter: GrammarAdapter, unit: Span) -> bool:
    marker = unit.marker
    node_type, _ = adapter.nodes_for_block(marker.kind, marker.is_embed)
    if marker.is_embed:
        return node_type.is_inline
    return node_type.is_textblock


def _splice_lands_inline(adapter: GrammarAdapter, units: list[Span], index: int) -> bool:
    """True when text spliced at *index* joins inline content that already exists."""
    if index == 0:
        return not units or not _is_boundary(units[0])
    prev = units[index - 1]
    if isinstance(prev, TextSpan):
        return True
    return _content_is_textblock(adapter, prev)


def _deletion_keeps_structure(
    adapter: GrammarAdapter, units: list[Span], op: DeleteRange, nonempty_after: bool
) -> bool:
    """True when deleting the range removes characters and nothing else."""
    removed = units[op.index : op.index + op.length]
    if len(removed) != op.length or not all(isinstance(u, TextSpan) for u in removed):
        return False
    seg_start = op.index
    while seg_start > 0 and not _is_boundary(units[seg_start - 1]):
        seg_start -= 1
    seg_end = op.index + op.length
    while seg_end < len(units) and not _is_boundary(units[seg_end]):
        seg_end += 1
    if seg_end - seg_start > op.length or not nonempty_after:
        return True
    # The run empties its block: only an explicit textblock survives that.
    if seg_start == 0:
        return False
    return _content_is_textblock(adapter, units[seg_start - 1])


def _text_ranges(adapter: GrammarAdapter, spans: list[Span], start: int, end: int) -> list[tuple[int, int]]:
    """Tree ranges covering the characters in domain range ``[start, end)``."""
    ranges: list[tuple[int, int]] = []
    for state in indexed_events(adapter, spans):
        if not isinstance(state.event, TextEvent):
            continue
        first = state.before.domain + 1
        last = state.after.domain + 1
        lo, hi = max(start, first), min(end, last)
        if lo >= hi:
            continue
        from_ = state.before.tree + (lo - first)
        to = from_ + (hi - lo)
        if ranges and ranges[-1][1] == from_:
            ranges[-1] = (ranges[-1][0], to)
        else:
            ranges.append((from_, to))
    return ranges


def replace_differing_range(tr: Transform, target: Node) -> bool:
    """Make ``tr.doc`` equal *target* by replacing only the range that differs.

    Returns False when the documents are already equal.
    """
    doc = tr.doc
    start = doc.content.find_diff_start(target.content)
    if start is None:
        return False
    end_a, end_b = doc.content.find_diff_end(target.content)
    overlap = start - min(end_a, end_b)
    if overlap > 0:
        end_a += overlap
        end_b += overlap
    try:
        tr.replace(start, end_a, target.slice(start, end_b))
    except TransformError as exc:
        logger.debug("Range replace [%d, %d) failed (%s); replacing top-level blocks", start, end_a, exc)
    if not tr.doc.eq(target):
        _replace_top_level(tr, target)
    return True


def _replace_top_level(tr: Transform, target: Node) -> None:
    doc = tr.doc
    count_a, count_b = doc.child_count, target.child_count
    head = 0
    while head < min(count_a, count_b) and doc.child(head).eq(target.child(head)):
        head += 1
    tail = 0
    while (
        tail < min(count_a, count_b) - head
        and doc.child(count_a - 1 - tail).eq(target.child(count_b - 1 - tail))
    ):
        tail += 1
    from_ = sum(doc.child(i).node_size for i in range(head))
    to = from_ + sum(doc.child(i).node_size for i in range(head, count_a - tail))
    content = [target.child(i) for i in range(head, count_b - tail)]
    tr.replace_with(from_, to, Fragment.from_array(content))


# ---------------------------------------------------------------------------
# Tree -> domain
# ---------------------------------------------------------------------------


def tree_steps_to_domain_ops(
    adapter: GrammarAdapter, spans: list[Span], steps: list[Step], doc_before: Node
) -> list[DomainOp]:
    """Translate *steps*, starting from *doc_before*, into domain operations.

    *spans* is the domain state the operations apply to.  Each operation is
    validated against it as it is produced.
    """
    ops: list[DomainOp] = []
    current = list(spans)
    doc = doc_before
    for step in steps:
        result = step.apply(doc)
        if result.failed is not None:
            raise TransformError(f"Step {step!r} does not apply: {result.failed}")
        doc_after = result.doc
        for op in _step_to_ops(adapter, step, doc, doc_after):
            current = apply_op(current, op)
            _append_merged(ops, op, current)
        doc = doc_after
    return ops


def _step_to_ops(adapter: GrammarAdapter, step: Step, doc: Node, doc_after: Node) -> list[DomainOp]:
    if isinstance(step, (AddMarkStep, RemoveMarkStep)):
        return _mark_step_ops(adapter, step, doc)
    if isinstance(step, ReplaceStep) and _is_inline_text_replace(doc, step):
        return _text_replace_ops(adapter, step, doc)
    return diff_span_ops(extract_spans(adapter, doc), extract_spans(adapter, doc_after))


def _mark_step_ops(adapter: GrammarAdapter, step: AddMarkStep | RemoveMarkStep, doc: Node) -> list[DomainOp]:
    rng = node_range_to_domain_range(adapter, doc, step.from_, step.to)
    if rng.end <= rng.start:
        return []
    adding = isinstance(step, AddMarkStep)
    mark = step.mark
    if mark.type is adapter.unknown_mark:
        entries = mark.attrs.get(UNKNOWN_MARKS) or {}
        if adding:
            return [AddMark(rng.start, rng.end, name, value) for name, value in entries.items()]
        return [RemoveMark(rng.start, rng.end, name) for name in entries]
    mapping = adapter.mark_mapping_for_type(mark.type)
    if mapping is None:
        logger.debug("Mark %s has no domain mapping; not synced", mark.type.name)
        return []
    if adding:
        return [AddMark(rng.start, rng.end, mapping.domain_name, mapping.codec.from_tree(mark))]
    return [RemoveMark(rng.start, rng.end, mapping.domain_name)]


def _is_inline_text_replace(doc: Node, step: ReplaceStep) -> bool:
    """True for a step that swaps text for text inside a single textblock."""
    slice = step.slice
    if slice.open_start or slice.open_end:
        return False
    if not all(child.is_text for child in slice.content):
        return False
    rfrom = doc.resolve(step.from_)
    rto = doc.resolve(step.to)
    if not rfrom.parent.inline_content:
        return False
    if rfrom.depth != rto.depth or rfrom.start() != rto.start():
        return False
    return all(child.is_text for child in doc.slice(step.from_, step.to).content)


def _text_replace_ops(adapter: GrammarAdapter, step: ReplaceStep, doc: Node) -> list[DomainOp]:
    rng = node_range_to_domain_range(adapter, doc, step.from_, step.to)
    ops: list[DomainOp] = []
    if rng.end > rng.start:
        ops.append(DeleteRange(rng.start, rng.end - rng.start))
    index = rng.start
    for child in step.slice.content:
        ops.append(SpliceText(index, child.text, adapter.domain_marks_from_tree(child.marks)))
        index += text_length(child.text)
    return ops


def _append_merged(ops: list[DomainOp], op: DomainOp, spans: list[Span]) -> None:
    """Append *op*, folding it into the previous mark op when only block
    markers lie between them."""
    prev = ops[-1] if ops else None
    if (
        isinstance(op, MARK_OPS)
        and type(prev) is type(op)
        and prev.name == op.name
        and (not isinstance(op, AddMark) or prev.value == op.value)
        and prev.start <= op.start
    ):
        if op.start <= prev.end or _only_blocks_between(spans, prev.end, op.start):
            ops[-1] = replace(prev, end=max(prev.end, op.end))
            return
    ops.append(op)


def _only_blocks_between(spans: list[Span], start: int, end: int) -> bool:
    units = spans_to_units(spans)
    return all(isinstance(unit, BlockSpan) for unit in units[start:end])


# ---------------------------------------------------------------------------
# Unit-level diff
# ---------------------------------------------------------------------------


def _unit_key(unit: Span) -> tuple:
    if isinstance(unit, TextSpan):
        return ("text", unit.value, json.dumps(unit.marks, sort_keys=True, default=str))
    return ("block", json.dumps(unit.marker.to_dict(), sort_keys=True, default=str))


def _same_shape(old: list[Span], new: list[Span]) -> bool:
    if len(old) != len(new):
        return False
    for a, b in zip(old, new):
        if isinstance(a, TextSpan) != isinstance(b, TextSpan):
            return False
        if isinstance(a, TextSpan) and a.value != b.value:
            return False
    return True


def diff_span_ops(before: list[Span], after: list[Span]) -> list[DomainOp]:
    """Return operations turning *before* into *after*, touching only what differs."""
    old_units = spans_to_units(before)
    new_units = spans_to_units(after)
    matcher = difflib.SequenceMatcher(
        None,
        [_unit_key(u) for u in old_units],
        [_unit_key(u) for u in new_units],
        autojunk=False,
    )
    ops: list[DomainOp] = []
    shift = 0
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        index = i1 + shift
        old = old_units[i1:i2]
        new = new_units[j1:j2]
        if tag == "replace" and _same_shape(old, new):
            ops.extend(_in_place_ops(index, old, new))
            continue
        if old:
            ops.append(DeleteRange(index, len(old)))
        ops.extend(ops_for_spans(normalize_spans(new), index))
        shift += len(new) - len(old)
    return ops


def _in_place_ops(index: int, old: list[Span], new: list[Span]) -> list[DomainOp]:
    """Marker updates and mark changes between two same-shape unit runs."""
    ops: list[DomainOp] = []
    for offset, (a, b) in enumerate(zip(old, new)):
        if isinstance(a, BlockSpan) and a.marker != b.marker:
            ops.append(UpdateBlock(index + offset, b.marker))

    names = sorted({name for unit in old + new if isinstance(unit, TextSpan) for name in unit.marks})
    for name in names:
        pending: DomainOp | None = None
        for offset, (a, b) in enumerate(zip(old, new)):
            op: DomainOp | None = None
            if isinstance(a, TextSpan):
                old_value, new_value = a.marks.get(name), b.marks.get(name)
                if old_value != new_value:
                    pos = index + offset
                    if new_value is None:
                        op = RemoveMark(pos, pos + 1, name)
                    else:
                        op = AddMark(pos, pos + 1, name, new_value)
            if pending is not None and op is not None and _extends(pending, op):
                pending = replace(pending, end=op.end)
                continue
            if pending is not None:
                ops.append(pending)
            pending = op
        if pending is not None:
            ops.append(pending)
    return ops


def _extends(prev: DomainOp, op: DomainOp) -> bool:
    if type(prev) is not type(op) or prev.end != op.start:
        return False
    return not isinstance(op, AddMark) or prev.value == op.value
