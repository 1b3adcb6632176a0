"""Codec between span sequences and grammar-constrained trees."""

from __future__ import annotations

from braid.core.builder import build_tree
from braid.core.extract import extract_spans
from braid.core.grammar import AttrCodec, GrammarAdapter, MarkCodec, add_state_attrs
from braid.core.positions import (
    DomainRange,
    domain_index_to_tree_block_start,
    domain_splice_index_to_tree_index,
    tree_range_to_domain_range,
)
from braid.core.spans import BlockMarker, BlockSpan, TextSpan
from braid.core.traversal import block_at_index, traverse_node, traverse_spans

__all__ = [
    "AttrCodec",
    "BlockMarker",
    "BlockSpan",
    "DomainRange",
    "GrammarAdapter",
    "MarkCodec",
    "TextSpan",
    "add_state_attrs",
    "block_at_index",
    "build_tree",
    "domain_index_to_tree_block_start",
    "domain_splice_index_to_tree_index",
    "extract_spans",
    "traverse_node",
    "traverse_spans",
    "tree_range_to_domain_range",
]
