"""A ready-made grammar covering paragraphs, headings, lists, quotes, asides,
code blocks, images, and tables, with domain bindings for each."""

from __future__ import annotations

from braid.core.grammar import (
    AttrCodec,
    GrammarAdapter,
    add_state_attrs,
    link_codec,
    pick_attrs,
)
from braid.tree.schema import Schema


def _image_codec() -> AttrCodec:
    return AttrCodec(
        from_tree=lambda node: {
            "src": node.attrs.get("src"),
            "alt": node.attrs.get("alt"),
            "title": node.attrs.get("title"),
        },
        from_domain=lambda marker: {
            "src": str(marker.attrs["src"]) if marker.attrs.get("src") else None,
            "alt": marker.attrs.get("alt"),
            "title": marker.attrs.get("title"),
        },
    )


def basic_schema_spec() -> dict:
    """Return a fresh grammar description, with bookkeeping attributes added."""
    cell_attrs = {
        "colspan": {"default": 1},
        "rowspan": {"default": 1},
        "colwidth": {"default": None},
    }
    nodes = {
        "doc": {"content": "block+"},
        "paragraph": {
            "content": "inline*",
            "group": "block",
            "domain": {"block": "paragraph"},
        },
        "blockquote": {
            "content": "block+",
            "group": "block",
            "domain": {"block": "blockquote"},
        },
        "horizontal_rule": {"group": "block"},
        "heading": {
            "attrs": {"level": {"default": 1}},
            "content": "inline*",
            "group": "block",
            "domain": {"block": "heading", "attrs": pick_attrs("level")},
        },
        "code_block": {
            "content": "text*",
            "group": "block",
            "domain": {"block": "code-block"},
        },
        "text": {"group": "inline"},
        "image": {
            "inline": True,
            "attrs": {
                "src": {},
                "alt": {"default": None},
                "title": {"default": None},
            },
            "group": "inline",
            "domain": {"block": "image", "is_embed": True, "attrs": _image_codec()},
        },
        "ordered_list": {
            "content": "list_item+",
            "group": "block",
            "attrs": {"order": {"default": 1}},
            "domain": {"block": "ordered_list"},
        },
        "bullet_list": {
            "content": "list_item+",
            "group": "block",
            "domain": {"block": "bullet_list"},
        },
        "list_item": {
            "content": "paragraph block*",
            "domain": {"block": "list_item"},
        },
        "aside": {
            "content": "block+",
            "group": "block",
            "domain": {"block": "aside"},
        },
        "unknown_block": {
            "content": "block+",
            "group": "block",
            "domain": {"unknown_block": True},
        },
        "unknown_leaf": {
            "inline": True,
            "attrs": {"unknown_block": {"default": None}},
            "group": "inline",
            "domain": {"unknown_leaf": True},
        },
        "table": {
            "content": "table_row+",
            "group": "block",
            "attrs": {"class": {"default": None}},
            "domain": {"block": "table", "attrs": pick_attrs("class")},
        },
        "table_row": {
            "content": "(table_cell | table_header)*",
            "domain": {"block": "table_row"},
        },
        "table_header": {
            "content": "block+",
            "attrs": dict(cell_attrs),
            "domain": {"block": "table_header"},
        },
        "table_cell": {
            "content": "block+",
            "attrs": dict(cell_attrs),
            "domain": {"block": "table_cell"},
        },
    }
    marks = {
        "link": {
            "attrs": {"href": {}, "title": {"default": None}},
            "domain": {"mark": "link", "codec": link_codec()},
        },
        "em": {"domain": {"mark": "em"}},
        "strong": {"domain": {"mark": "strong"}},
        "code": {},
        "unknown_mark": {
            "attrs": {"unknown_marks": {"default": None}},
            "domain": {"unknown_mark": True},
        },
    }
    add_state_attrs(nodes)
    return {"nodes": nodes, "marks": marks}


def basic_schema() -> Schema:
    return Schema(basic_schema_spec())


def basic_adapter() -> GrammarAdapter:
    return GrammarAdapter(basic_schema())
