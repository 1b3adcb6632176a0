"""Keep a flat, replicated span sequence and an editor's document tree in sync."""

__version__ = "0.1.0"
