"""Grammar-constrained document tree used as the editor-side model."""

from __future__ import annotations

from braid.tree.content import ContentMatch
from braid.tree.model import Fragment, Mark, Node, ResolvedPos, Slice, TextNode
from braid.tree.schema import MarkType, NodeType, Schema
from braid.tree.state import Editor, EditorState, TextSelection, Transaction
from braid.tree.steps import (
    AddMarkStep,
    Mapping,
    RemoveMarkStep,
    ReplaceStep,
    Step,
    StepMap,
    StepResult,
    Transform,
)

__all__ = [
    "AddMarkStep",
    "ContentMatch",
    "Editor",
    "EditorState",
    "Fragment",
    "Mapping",
    "Mark",
    "MarkType",
    "Node",
    "NodeType",
    "RemoveMarkStep",
    "ReplaceStep",
    "ResolvedPos",
    "Schema",
    "Slice",
    "Step",
    "StepMap",
    "StepResult",
    "TextNode",
    "TextSelection",
    "Transaction",
    "Transform",
]
