"""Sync configuration management.

Stored in ``.braid/config.json``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TypedDict

from braid.core.ids import generate_peer_id

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.json"


class SyncConfig(TypedDict, total=False):
    text_field: str
    peer_id: str
    repair_on_drift: bool
    log_drift_details: bool


def default_sync_config() -> SyncConfig:
    """Return default sync configuration."""
    return {
        "text_field": "text",
        "peer_id": generate_peer_id(),
        "repair_on_drift": True,
        "log_drift_details": False,
    }


def load_sync_config(braid_dir: Path) -> SyncConfig:
    """Load sync configuration, filling in defaults for missing keys."""
    config = default_sync_config()
    config_path = braid_dir / CONFIG_FILE
    if config_path.exists():
        stored = json.loads(config_path.read_text())
        if not isinstance(stored, dict):
            raise ValueError(f"{config_path} does not contain a JSON object")
        unknown = sorted(set(stored) - set(config))
        if unknown:
            logger.debug("Ignoring unknown sync config keys: %s", ", ".join(unknown))
        config.update({k: v for k, v in stored.items() if k in config})
    return config


def save_sync_config(braid_dir: Path, config: SyncConfig) -> None:
    """Save sync configuration to disk."""
    from braid.storage.fs import atomic_write

    braid_dir.mkdir(parents=True, exist_ok=True)
    atomic_write(
        braid_dir / CONFIG_FILE,
        json.dumps(config, sort_keys=True, indent=2) + "\n",
    )
