"""Traversal events shared by the forward and reverse codec directions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Union

from braid.core.spans import BlockMarker, MarkSet, text_length


class Role(enum.Enum):
    """Whether a tree node is backed by a domain block marker."""

    EXPLICIT = "explicit"
    RENDER_ONLY = "render-only"


@dataclass(frozen=True)
class OpenTag:
    tag: str
    role: Role
    attrs: dict | None = None


@dataclass(frozen=True)
class CloseTag:
    tag: str
    role: Role


@dataclass(frozen=True)
class LeafNode:
    tag: str
    role: Role


@dataclass(frozen=True)
class TextEvent:
    text: str
    marks: MarkSet = field(default_factory=dict)


@dataclass(frozen=True)
class BlockEvent:
    marker: BlockMarker
    is_unknown: bool = False


TraversalEvent = Union[OpenTag, CloseTag, LeafNode, TextEvent, BlockEvent]


@dataclass(frozen=True)
class Indexes:
    domain: int
    tree: int


@dataclass(frozen=True)
class IndexedEvent:
    event: TraversalEvent
    before: Indexes
    after: Indexes


def events_with_index_changes(
    events: Iterable[TraversalEvent], root: str = "doc"
) -> Iterator[IndexedEvent]:
    """Annotate each event with the domain and tree indexes around it.

    The domain counter starts at -1, so the first domain unit sits at index
    0 once consumed.  Tags named *root* do not move the tree counter.
    """
    tree = 0
    domain = -1
    for event in events:
        before = Indexes(domain, tree)
        if isinstance(event, (OpenTag, CloseTag)):
            if event.tag != root:
                tree += 1
        elif isinstance(event, LeafNode):
            tree += 1
        elif isinstance(event, TextEvent):
            domain += text_length(event.text)
            tree += len(event.text)
        elif isinstance(event, BlockEvent):
            domain += 1
        yield IndexedEvent(event, before, Indexes(domain, tree))
