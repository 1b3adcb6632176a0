"""File-backed persistence of span sequences as Automerge documents.

Each document gets a binary ``.automerge`` file in ``.braid/docs/``.  The
span sequence is stored in its JSON form as an ``ImmutableString`` under
``spans``; the plain text of the field is kept alongside as collaborative
Text under the configured text field name.  Writes go through
``atomic_write()``.
"""

from __future__ import annotations

import json
from pathlib import Path

from automerge import Document, ImmutableString, core

from braid.core.spans import BlockSpan, Span, TextSpan, spans_from_json, spans_to_json
from braid.storage.fs import atomic_write
from braid.storage.locks import braid_lock

SPANS_KEY = "spans"
META_KEY = "_meta"
FORMAT_VERSION = 1


def plain_text(spans: list[Span]) -> str:
    """The field's characters, with a newline standing in for each non-leading block."""
    parts: list[str] = []
    for span in spans:
        if isinstance(span, TextSpan):
            parts.append(span.value)
        elif isinstance(span, BlockSpan) and parts and not span.marker.is_embed:
            parts.append("\n")
    return "".join(parts)


def spans_to_automerge(doc: Document, doc_id: str, spans: list[Span], text_field: str = "text") -> None:
    """Overwrite the stored spans of *doc* in one change."""
    with doc.change() as d:
        d[META_KEY] = {}
        d[META_KEY]["id"] = ImmutableString(doc_id)
        d[META_KEY]["format_version"] = ImmutableString(str(FORMAT_VERSION))
        d[META_KEY]["text_field"] = ImmutableString(text_field)
        d[SPANS_KEY] = ImmutableString(json.dumps(spans_to_json(spans), sort_keys=True))
        d[text_field] = plain_text(spans)


def automerge_to_spans(doc: Document) -> list[Span]:
    """Read the span sequence back out of *doc*.  Empty when none is stored."""
    data = doc.to_py()
    raw = data.get(SPANS_KEY)
    if raw is None:
        return []
    return spans_from_json(json.loads(str(raw)))


class AutomergeStore:
    """Load, cache, and persist Automerge documents to disk."""

    def __init__(self, braid_dir: Path) -> None:
        self.docs_dir = braid_dir / "docs"
        self.locks_dir = braid_dir / "locks"
        self.docs_dir.mkdir(parents=True, exist_ok=True)
        self._cache: dict[str, Document] = {}

    def has(self, doc_id: str) -> bool:
        """Check if a document exists on disk or in cache."""
        return doc_id in self._cache or self._doc_path(doc_id).exists()

    def get_or_create(self, doc_id: str) -> Document:
        """Load an existing Automerge doc or create a new empty one."""
        if doc_id in self._cache:
            return self._cache[doc_id]

        path = self._doc_path(doc_id)
        if path.exists():
            doc = _wrap_core_doc(core.Document.load(path.read_bytes()))
        else:
            doc = Document()

        self._cache[doc_id] = doc
        return doc

    def save(self, doc_id: str, doc: Document) -> None:
        """Persist an Automerge document to disk atomically."""
        path = self._doc_path(doc_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write(path, doc._doc.save())
        self._cache[doc_id] = doc

    def write_spans(self, doc_id: str, spans: list[Span], text_field: str = "text") -> None:
        """Store *spans* under *doc_id*, holding the document's lock.

        The document is reloaded from disk under the lock so a write from
        another process is built on rather than overwritten.
        """
        with braid_lock(self.locks_dir, doc_id):
            self._cache.pop(doc_id, None)
            doc = self.get_or_create(doc_id)
            spans_to_automerge(doc, doc_id, spans, text_field)
            self.save(doc_id, doc)

    def read_spans(self, doc_id: str) -> list[Span]:
        if not self.has(doc_id):
            raise KeyError(doc_id)
        return automerge_to_spans(self.get_or_create(doc_id))

    def remove(self, doc_id: str) -> None:
        """Remove a document from cache and disk."""
        with braid_lock(self.locks_dir, doc_id):
            self._cache.pop(doc_id, None)
            path = self._doc_path(doc_id)
            if path.exists():
                path.unlink()

    def list_document_ids(self) -> list[str]:
        """Return ids for all stored documents."""
        ids = []
        if self.docs_dir.exists():
            for path in self.docs_dir.glob("*.automerge"):
                ids.append(path.stem)
        return sorted(ids)

    def _doc_path(self, doc_id: str) -> Path:
        return self.docs_dir / f"{doc_id}.automerge"


def _wrap_core_doc(core_doc: core.Document) -> Document:
    """Wrap a loaded core.Document in the high-level Document class."""
    from automerge.document import MapReadProxy

    doc = Document.__new__(Document)
    doc._doc = core_doc
    MapReadProxy.__init__(doc, core_doc, core.ROOT, None)
    return doc
