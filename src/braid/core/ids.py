"""ULID-based identifiers for documents, peers, and changes."""

from __future__ import annotations

import re

from ulid import ULID

# Crockford Base32 alphabet: 0-9 A-Z excluding I, L, O, U
_CROCKFORD_B32_RE = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$", re.IGNORECASE)


def generate_document_id() -> str:
    """Generate a new document ID with the doc_ prefix."""
    return f"doc_{ULID()}"


def generate_peer_id() -> str:
    """Generate a new peer ID with the peer_ prefix."""
    return f"peer_{ULID()}"


def generate_change_id() -> str:
    """Generate a new change ID with the chg_ prefix."""
    return f"chg_{ULID()}"


def validate_id(id_str: str, expected_prefix: str) -> bool:
    """Validate a ``<prefix>_<ulid>`` identifier.

    The ULID portion must be exactly 26 characters of valid Crockford
    Base32 (0-9, A-Z excluding I, L, O, U -- case insensitive).
    """
    if not isinstance(id_str, str) or not isinstance(expected_prefix, str):
        return False

    parts = id_str.split("_", maxsplit=1)
    if len(parts) != 2:
        return False

    prefix, ulid_part = parts
    if prefix != expected_prefix:
        return False

    return bool(_CROCKFORD_B32_RE.match(ulid_part))
