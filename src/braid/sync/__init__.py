"""Sync layer: domain operations, the span document handle, and the orchestrator.

The Automerge-backed store is imported from ``braid.sync.store`` directly.
"""

from __future__ import annotations

from braid.sync.domain import DomainChange, SpanDocument, SpanTransaction
from braid.sync.loader import load_tree_into_domain
from braid.sync.ops import (
    AddMark,
    DeleteRange,
    InsertBlock,
    RemoveMark,
    SpliceText,
    UpdateBlock,
    apply_op,
    apply_ops,
)
from braid.sync.orchestrator import SyncOrchestrator, SyncState
from braid.sync.translate import domain_ops_to_tree, tree_steps_to_domain_ops

__all__ = [
    "AddMark",
    "DeleteRange",
    "DomainChange",
    "InsertBlock",
    "RemoveMark",
    "SpanDocument",
    "SpanTransaction",
    "SpliceText",
    "SyncOrchestrator",
    "SyncState",
    "UpdateBlock",
    "apply_op",
    "apply_ops",
    "domain_ops_to_tree",
    "load_tree_into_domain",
    "tree_steps_to_domain_ops",
]
