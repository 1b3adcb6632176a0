"""Tests for core/grammar.py: mapping tables and mark conversion."""

from __future__ import annotations

import logging

import pytest

from braid.core.grammar import (
    EXPLICIT_BLOCK,
    IMPLIED_WRAPPER,
    UNKNOWN_ATTRS,
    UNKNOWN_BLOCK,
    UNKNOWN_MARKS,
    UNKNOWN_PARENT_BLOCK,
    GrammarAdapter,
    add_state_attrs,
    link_codec,
)
from braid.errors import GrammarConfigError
from braid.tree.schema import Schema


def _minimal_nodes() -> dict:
    return {
        "doc": {"content": "block+"},
        "paragraph": {"content": "text*", "group": "block", "domain": {"block": "paragraph"}},
        "text": {},
    }


class TestConfiguration:
    def test_missing_unknown_block(self) -> None:
        with pytest.raises(GrammarConfigError, match="No unknown block"):
            GrammarAdapter(Schema({"nodes": _minimal_nodes()}))

    def test_two_unknown_blocks(self) -> None:
        nodes = _minimal_nodes()
        nodes["box_a"] = {"content": "block+", "group": "block", "domain": {"unknown_block": True}}
        nodes["box_b"] = {"content": "block+", "group": "block", "domain": {"unknown_block": True}}
        with pytest.raises(GrammarConfigError, match="Only one node"):
            GrammarAdapter(Schema({"nodes": nodes}))

    def test_carriers_found(self, adapter) -> None:
        assert adapter.unknown_block.name == "unknown_block"
        assert adapter.unknown_leaf.name == "unknown_leaf"
        assert adapter.unknown_mark.name == "unknown_mark"

    def test_lookups(self, adapter) -> None:
        assert adapter.mapping_for_kind("code-block").tree_type.name == "code_block"
        assert adapter.mapping_for_type(adapter.schema.nodes["heading"]).domain_kind == "heading"
        assert adapter.mapping_for_kind("nope") is None
        assert adapter.mark_mapping_for_name("code") is None

    def test_image_is_embed(self, adapter) -> None:
        assert adapter.mapping_for_kind("image").is_embed


class TestNodesForBlock:
    def test_known_kind(self, adapter) -> None:
        node_type, attrs = adapter.nodes_for_block("heading", False)
        assert node_type.name == "heading"
        assert attrs is None

    def test_unknown_kind_uses_block_carrier(self, adapter) -> None:
        node_type, attrs = adapter.nodes_for_block("callout", False)
        assert node_type is adapter.unknown_block
        assert attrs == {UNKNOWN_PARENT_BLOCK: "callout"}

    def test_unknown_embed_uses_leaf_carrier(self, adapter) -> None:
        node_type, attrs = adapter.nodes_for_block("video", True)
        assert node_type is adapter.unknown_leaf
        assert attrs is None


class TestMarks:
    def test_tree_marks_from_domain(self, adapter) -> None:
        marks = adapter.tree_marks_from_domain({"strong": True, "em": None, "highlight": "yellow"})
        assert [m.type.name for m in marks] == ["strong", "unknown_mark"]
        assert marks[1].attrs[UNKNOWN_MARKS] == {"highlight": "yellow"}

    def test_domain_marks_from_tree(self, adapter) -> None:
        marks = adapter.tree_mark_set({"strong": True, "highlight": "yellow"})
        assert adapter.domain_marks_from_tree(marks) == {"strong": True, "highlight": "yellow"}

    def test_unmapped_tree_mark_is_dropped(self, adapter) -> None:
        code = adapter.schema.mark("code")
        assert adapter.domain_marks_from_tree((code,)) == {}

    def test_mark_set_is_ordered_by_rank(self, adapter) -> None:
        marks = adapter.tree_mark_set({"strong": True, "em": True})
        assert [m.type.name for m in marks] == ["em", "strong"]


class TestLinkCodec:
    def test_round_trip(self, adapter) -> None:
        codec = link_codec()
        attrs = codec.from_domain('{"href": "https://example.com", "title": "Ex"}')
        assert attrs == {"href": "https://example.com", "title": "Ex"}
        mark = adapter.schema.mark("link", attrs)
        assert codec.from_tree(mark) == '{"href": "https://example.com", "title": "Ex"}'

    def test_bad_json_logs_and_defaults(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="braid.core.grammar"):
            attrs = link_codec().from_domain("not json")
        assert attrs == {"href": "", "title": ""}
        assert "Failed to parse link mark" in caplog.text

    def test_non_string_value(self) -> None:
        assert link_codec().from_domain(True) == {"href": "", "title": ""}


class TestAddStateAttrs:
    def test_adds_bookkeeping_attrs(self) -> None:
        nodes = {
            "doc": {"content": "block+"},
            "box": {"content": "block+", "domain": {"unknown_block": True}},
            "text": {},
        }
        add_state_attrs(nodes)
        assert set(nodes["doc"]["attrs"]) == {EXPLICIT_BLOCK, UNKNOWN_ATTRS, IMPLIED_WRAPPER}
        assert set(nodes["box"]["attrs"]) == {
            EXPLICIT_BLOCK,
            UNKNOWN_ATTRS,
            IMPLIED_WRAPPER,
            UNKNOWN_PARENT_BLOCK,
            UNKNOWN_BLOCK,
        }
        assert "attrs" not in nodes["text"]
