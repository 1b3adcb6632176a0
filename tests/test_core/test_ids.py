"""Tests for core/ids.py: ULID-based identifiers."""

from __future__ import annotations

from braid.core.ids import generate_change_id, generate_document_id, generate_peer_id, validate_id

_VALID_ULID = "01ARZ3NDEKTSV4RRFFQ69G5FAV"


class TestGenerate:
    def test_prefixes(self) -> None:
        assert generate_document_id().startswith("doc_")
        assert generate_peer_id().startswith("peer_")
        assert generate_change_id().startswith("chg_")

    def test_generated_ids_validate(self) -> None:
        assert validate_id(generate_document_id(), "doc")
        assert validate_id(generate_peer_id(), "peer")
        assert validate_id(generate_change_id(), "chg")

    def test_unique(self) -> None:
        ids = {generate_document_id() for _ in range(100)}
        assert len(ids) == 100


class TestValidateId:
    def test_valid(self) -> None:
        assert validate_id("doc_" + _VALID_ULID, "doc") is True

    def test_lowercase_ulid_accepted(self) -> None:
        assert validate_id("doc_" + _VALID_ULID.lower(), "doc") is True

    def test_wrong_prefix(self) -> None:
        assert validate_id("peer_" + _VALID_ULID, "doc") is False
        assert validate_id(generate_document_id(), "chg") is False

    def test_missing_separator(self) -> None:
        assert validate_id("doc" + _VALID_ULID, "doc") is False

    def test_wrong_length(self) -> None:
        assert validate_id("doc_" + "0" * 25, "doc") is False
        assert validate_id("doc_" + "0" * 27, "doc") is False

    def test_excluded_crockford_letters(self) -> None:
        for letter in "ILOU":
            assert validate_id("doc_" + "0" * 25 + letter, "doc") is False

    def test_non_string(self) -> None:
        assert validate_id(None, "doc") is False  # type: ignore[arg-type]
        assert validate_id(42, "doc") is False  # type: ignore[arg-type]

    def test_extra_underscore(self) -> None:
        assert validate_id("doc_x_" + _VALID_ULID, "doc") is False
