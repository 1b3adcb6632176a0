"""Exception hierarchy shared by the tree model, the codec, and the sync layer."""

from __future__ import annotations


class BraidError(Exception):
    """Base class for every error raised by braid."""


class SchemaError(BraidError):
    """Raised for an invalid grammar description or an invalid node."""


class GrammarConfigError(BraidError):
    """Raised when a grammar's domain annotations are inconsistent."""


class TraversalInvariantError(BraidError):
    """Raised when an event stream or a tree violates a codec invariant."""


class ReplaceError(BraidError):
    """Raised when a slice cannot be fitted into a document range."""


class TransformError(BraidError):
    """Raised when a step fails to apply to a transform's document."""


class SyncError(BraidError):
    """Raised when a local edit could not be committed to the domain."""
