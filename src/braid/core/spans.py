"""Span model: the flat, replicated-friendly serialization of a rich-text field.

A text field is a sequence of spans.  A :class:`TextSpan` is a run of
characters sharing one mark set; a :class:`BlockSpan` carries a
:class:`BlockMarker`, which opens a new block.  Each block marker occupies
one index in the domain sequence, each character occupies one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

MarkSet = dict[str, Any]


def text_length(value: str) -> int:
    """Number of domain indexes *value* occupies: one per code point."""
    return len(value)


def text_units(value: str) -> list[str]:
    """Split *value* into its domain index units."""
    return list(value)


@dataclass(frozen=True)
class BlockMarker:
    """A block boundary in the flat sequence.

    ``parents`` lists the ancestor block kinds from outermost to innermost
    and never includes ``kind`` itself.
    """

    kind: str
    parents: tuple[str, ...] = ()
    attrs: dict = field(default_factory=dict)
    is_embed: bool = False

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "parents": list(self.parents),
            "attrs": dict(self.attrs),
            "isEmbed": self.is_embed,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> BlockMarker:
        """Normalize a marker read from an untyped source.

        A missing or non-string kind becomes ``paragraph``, non-string
        parents are dropped, non-mapping attrs become empty.
        """
        if not isinstance(raw, dict):
            raw = {}
        kind = raw.get("type")
        if not isinstance(kind, str):
            kind = "paragraph"
        raw_parents = raw.get("parents")
        parents: tuple[str, ...] = ()
        if isinstance(raw_parents, (list, tuple)):
            parents = tuple(p for p in raw_parents if isinstance(p, str))
        raw_attrs = raw.get("attrs")
        attrs = dict(raw_attrs) if isinstance(raw_attrs, dict) else {}
        return cls(kind, parents, attrs, bool(raw.get("isEmbed")))


@dataclass(frozen=True)
class TextSpan:
    value: str
    marks: MarkSet = field(default_factory=dict)

    @property
    def length(self) -> int:
        return text_length(self.value)


@dataclass(frozen=True)
class BlockSpan:
    marker: BlockMarker

    @property
    def length(self) -> int:
        return 1


Span = Union[TextSpan, BlockSpan]


def spans_length(spans: list[Span]) -> int:
    """Total number of domain indexes the spans occupy."""
    return sum(span.length for span in spans)


def spans_to_json(spans: list[Span]) -> list[dict]:
    out = []
    for span in spans:
        if isinstance(span, TextSpan):
            out.append({"type": "text", "value": span.value, "marks": dict(span.marks)})
        else:
            out.append({"type": "block", "value": span.marker.to_dict()})
    return out


def spans_from_json(data: list[dict]) -> list[Span]:
    """Parse spans from their JSON form, normalizing block markers."""
    spans: list[Span] = []
    for item in data:
        if item.get("type") == "text":
            spans.append(TextSpan(str(item.get("value", "")), dict(item.get("marks") or {})))
        elif item.get("type") == "block":
            spans.append(BlockSpan(BlockMarker.from_dict(item.get("value"))))
        else:
            raise ValueError(f"Unknown span type: {item.get('type')!r}")
    return spans


def normalize_spans(spans: list[Span]) -> list[Span]:
    """Drop empty text spans and join adjacent text spans with equal marks."""
    out: list[Span] = []
    for span in spans:
        if isinstance(span, TextSpan):
            if not span.value:
                continue
            prev = out[-1] if out else None
            if isinstance(prev, TextSpan) and prev.marks == span.marks:
                out[-1] = TextSpan(prev.value + span.value, prev.marks)
                continue
        out.append(span)
    return out
