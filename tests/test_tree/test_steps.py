"""Tests for tree/steps.py: steps, step maps, and transforms."""

from __future__ import annotations

import pytest

from braid.errors import TransformError
from braid.tree.model import Fragment, Slice
from braid.tree.steps import AddMarkStep, Mapping, RemoveMarkStep, ReplaceStep, Step, StepMap, Transform


def _doc(schema, *texts: str):
    return schema.node("doc", None, [schema.node("paragraph", None, [schema.text(t)]) for t in texts])


class TestStepMap:
    def test_insertion_shifts_later_positions(self) -> None:
        step_map = StepMap(((3, 0, 2),))
        assert step_map.map(1) == 1
        assert step_map.map(5) == 7

    def test_insertion_point_follows_assoc(self) -> None:
        step_map = StepMap(((3, 0, 2),))
        assert step_map.map(3) == 5
        assert step_map.map(3, -1) == 3

    def test_deletion_collapses_range(self) -> None:
        step_map = StepMap(((2, 4, 0),))
        assert step_map.map(4) == 2
        assert step_map.map(10) == 6

    def test_mapping_composes(self) -> None:
        mapping = Mapping([StepMap(((0, 0, 3),)), StepMap(((1, 2, 0),))])
        assert mapping.map(5) == 6


class TestReplaceStep:
    def test_apply_and_map(self, schema) -> None:
        step = ReplaceStep(3, 3, Slice(Fragment.from_(schema.text("XY")), 0, 0))
        result = step.apply(_doc(schema, "abcd"))
        assert result.failed is None
        assert result.doc.eq(_doc(schema, "abXYcd"))
        assert step.get_map().map(4) == 6

    def test_failure_is_reported(self, schema) -> None:
        step = ReplaceStep(0, 6, Slice(Fragment.from_(schema.text("x")), 0, 0))
        result = step.apply(_doc(schema, "abcd"))
        assert result.doc is None
        assert result.failed

    def test_json_round_trip(self, schema) -> None:
        step = ReplaceStep(1, 2, Slice(Fragment.from_(schema.text("z")), 0, 0))
        again = Step.from_json(schema, step.to_json())
        assert isinstance(again, ReplaceStep)
        assert (again.from_, again.to) == (1, 2)
        assert again.slice.eq(step.slice)

    def test_unknown_step_type(self, schema) -> None:
        with pytest.raises(TransformError):
            Step.from_json(schema, {"stepType": "attr"})


class TestMarkSteps:
    def test_add_mark_splits_text(self, schema) -> None:
        strong = schema.mark("strong")
        result = AddMarkStep(2, 4, strong).apply(_doc(schema, "abcd"))
        paragraph = result.doc.child(0)
        assert [child.text for child in paragraph.content] == ["a", "bc", "d"]
        assert paragraph.child(1).marks == (strong,)

    def test_remove_mark_rejoins_text(self, schema) -> None:
        strong = schema.mark("strong")
        marked = AddMarkStep(2, 4, strong).apply(_doc(schema, "abcd")).doc
        result = RemoveMarkStep(1, 5, strong).apply(marked)
        assert result.doc.eq(_doc(schema, "abcd"))

    def test_add_mark_across_blocks(self, schema) -> None:
        em = schema.mark("em")
        result = AddMarkStep(1, 7, em).apply(_doc(schema, "ab", "cd"))
        for paragraph in result.doc.content:
            assert all(child.marks == (em,) for child in paragraph.content)


class TestTransform:
    def test_tracks_docs_and_steps(self, schema) -> None:
        start = _doc(schema, "abc")
        tr = Transform(start)
        tr.insert_text("X", 2).delete(1, 2)
        assert len(tr.steps) == 2
        assert tr.before is start
        assert tr.docs[1].eq(_doc(schema, "aXbc"))
        assert tr.doc.eq(_doc(schema, "Xbc"))
        assert tr.doc_changed

    def test_noop_replace_adds_no_step(self, schema) -> None:
        tr = Transform(_doc(schema, "abc"))
        tr.replace(2, 2)
        assert not tr.doc_changed

    def test_failed_step_raises(self, schema) -> None:
        tr = Transform(_doc(schema, "abc"))
        with pytest.raises(TransformError):
            tr.replace_with(0, 5, schema.text("x"))
        assert not tr.steps

    def test_mapping_follows_steps(self, schema) -> None:
        tr = Transform(_doc(schema, "abc"))
        tr.insert_text("XY", 1)
        assert tr.mapping.map(3) == 5

    def test_remove_mark_by_type(self, schema) -> None:
        link = schema.mark("link", {"href": "https://a.example"})
        tr = Transform(_doc(schema, "abcd"))
        tr.add_mark(1, 5, link)
        tr.remove_mark(1, 5, schema.marks["link"])
        assert tr.doc.eq(_doc(schema, "abcd"))
        assert isinstance(tr.steps[-1], RemoveMarkStep)
