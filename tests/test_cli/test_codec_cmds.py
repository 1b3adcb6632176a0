"""Tests for the codec inspection commands: tree, spans, indexes."""

from __future__ import annotations

import json

from braid.core.basic_schema import basic_adapter
from braid.core.builder import build_tree
from braid.core.spans import spans_to_json

HEADING_SPANS = [
    {"type": "block", "value": {"type": "heading", "parents": [], "attrs": {"level": 2}, "isEmbed": False}},
    {"type": "text", "value": "Title", "marks": {}},
]


class TestTreeCommand:
    def test_human_output(self, invoke, write_json) -> None:
        result = invoke("tree", write_json("spans.json", HEADING_SPANS))
        assert result.exit_code == 0
        assert result.output.splitlines()[:3] == [
            "doc",
            '  heading {"explicit_block": true, "level": 2}',
            '    "Title"',
        ]

    def test_json_output(self, invoke_json, write_json) -> None:
        parsed, code = invoke_json("tree", write_json("spans.json", HEADING_SPANS))
        assert code == 0
        assert parsed["ok"] is True
        heading = parsed["data"]["content"][0]
        assert heading["type"] == "heading"
        assert heading["attrs"]["level"] == 2

    def test_not_an_array(self, invoke_json, write_json) -> None:
        parsed, code = invoke_json("tree", write_json("spans.json", {"type": "text"}))
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_SPANS"

    def test_bad_span_type(self, invoke_json, write_json) -> None:
        parsed, code = invoke_json("tree", write_json("spans.json", [{"type": "video"}]))
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_SPANS"

    def test_invalid_json(self, invoke_json, tmp_path) -> None:
        path = tmp_path / "broken.json"
        path.write_text("[{")
        parsed, code = invoke_json("tree", str(path))
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_JSON"

    def test_human_error_goes_to_stderr(self, invoke, write_json) -> None:
        result = invoke("tree", write_json("spans.json", {}))
        assert result.exit_code == 1
        assert "Error:" in result.output


class TestSpansCommand:
    def test_extracts_spans(self, invoke_json, write_json, bullet_items) -> None:
        tree = build_tree(basic_adapter(), bullet_items).to_json()
        parsed, code = invoke_json("spans", write_json("tree.json", tree))
        assert code == 0
        assert parsed["data"] == spans_to_json(bullet_items)

    def test_human_output_is_one_span_per_line(self, invoke, write_json, bullet_items) -> None:
        tree = build_tree(basic_adapter(), bullet_items).to_json()
        result = invoke("spans", write_json("tree.json", tree))
        lines = result.output.splitlines()
        assert len(lines) == 4
        assert json.loads(lines[1]) == {"type": "text", "value": "item 1", "marks": {}}

    def test_editor_list_without_bookkeeping(self, invoke_json, write_json) -> None:
        paragraph = {"type": "paragraph", "content": [{"type": "text", "text": "one"}]}
        tree = {
            "type": "doc",
            "content": [
                {"type": "ordered_list", "content": [{"type": "list_item", "content": [paragraph]}]},
            ],
        }
        parsed, code = invoke_json("spans", write_json("tree.json", tree))
        assert code == 0
        assert parsed["data"] == [
            {
                "type": "block",
                "value": {"type": "list_item", "parents": ["ordered_list"], "attrs": {}, "isEmbed": False},
            },
            {"type": "text", "value": "one", "marks": {}},
        ]

    def test_invalid_tree(self, invoke_json, write_json) -> None:
        parsed, code = invoke_json("spans", write_json("tree.json", {"type": "nope"}))
        assert code == 1
        assert parsed["error"]["code"] == "INVALID_TREE"


class TestIndexesCommand:
    def test_rows(self, invoke_json, write_json) -> None:
        parsed, code = invoke_json("indexes", write_json("spans.json", HEADING_SPANS))
        assert code == 0
        rows = parsed["data"]
        assert rows[0]["event"] == "block heading []"
        text = next(row for row in rows if row["event"].startswith('"Title"'))
        assert (text["domain_before"], text["domain_after"]) == (0, 5)
        assert (text["tree_before"], text["tree_after"]) == (1, 6)

    def test_human_table(self, invoke, write_json) -> None:
        result = invoke("indexes", write_json("spans.json", HEADING_SPANS))
        assert result.exit_code == 0
        assert result.output.splitlines()[0].split() == ["domain", "tree", "event"]
