"""Hypothesis property-based tests for the span <-> tree codec."""

from __future__ import annotations

from hypothesis import given, settings, strategies as st

from braid.core.basic_schema import basic_adapter
from braid.core.builder import build_tree
from braid.core.extract import extract_spans
from braid.core.positions import domain_splice_index_to_tree_index, indexed_events
from braid.core.spans import BlockMarker, BlockSpan, TextSpan, normalize_spans, spans_length
from braid.sync.ops import SpliceText, apply_op
from braid.sync.translate import domain_ops_to_tree
from braid.tree.steps import Transform

ADAPTER = basic_adapter()

# ---------------------------------------------------------------------------
# Reusable strategies
# ---------------------------------------------------------------------------

markers = st.one_of(
    st.just(BlockMarker("paragraph")),
    st.integers(min_value=1, max_value=3).map(lambda n: BlockMarker("heading", (), {"level": n})),
    st.sampled_from(["bullet_list", "ordered_list"]).map(lambda p: BlockMarker("list_item", (p,))),
)
mark_sets = st.sampled_from([{}, {"em": True}, {"strong": True}, {"em": True, "strong": True}])
text_runs = st.builds(TextSpan, st.text(alphabet="abc xyz", min_size=1, max_size=8), mark_sets)
blocks = st.tuples(markers, st.lists(text_runs, max_size=3))


@st.composite
def span_docs(draw) -> list:
    """Span sequences that open with a block marker, already normalized."""
    spans: list = []
    for marker, runs in draw(st.lists(blocks, min_size=1, max_size=6)):
        spans.append(BlockSpan(marker))
        spans.extend(runs)
    return normalize_spans(spans)


unknown_parents = st.sampled_from(["mystery", "riddle"])
unknown_markers = st.one_of(
    markers,
    st.sampled_from(["callout", "figure"]).map(lambda kind: BlockMarker(kind, (), {"tone": "warm"})),
    st.tuples(markers, unknown_parents).map(
        lambda pair: BlockMarker(pair[0].kind, (pair[1],) + pair[0].parents, pair[0].attrs)
    ),
    unknown_parents.map(lambda parent: BlockMarker("list_item", (parent,))),
)
unknown_mark_sets = st.sampled_from(
    [{}, {"em": True}, {"highlight": "yellow"}, {"strong": True, "comment": "c1"}, {"highlight": "blue"}]
)
unknown_embeds = st.sampled_from(["video", "widget"]).map(
    lambda kind: BlockSpan(BlockMarker(kind, (), {"url": f"{kind}.bin"}, True))
)
unknown_runs = st.one_of(
    st.builds(TextSpan, st.text(alphabet="abc xyz", min_size=1, max_size=8), unknown_mark_sets),
    unknown_embeds,
)
unknown_blocks = st.tuples(unknown_markers, st.lists(unknown_runs, max_size=3))


@st.composite
def unknown_span_docs(draw) -> list:
    """Span sequences mixing unknown kinds, parents, embeds and marks with known ones."""
    spans: list = []
    for marker, runs in draw(st.lists(unknown_blocks, min_size=1, max_size=6)):
        spans.append(BlockSpan(marker))
        spans.extend(runs)
    return normalize_spans(spans)


class TestCodecProperties:
    @given(spans=span_docs())
    @settings(max_examples=150)
    def test_extract_inverts_build(self, spans) -> None:
        assert extract_spans(ADAPTER, build_tree(ADAPTER, spans)) == spans

    @given(spans=span_docs())
    @settings(max_examples=100)
    def test_built_tree_is_valid(self, spans) -> None:
        build_tree(ADAPTER, spans).check()


class TestUnknownContentProperties:
    @given(spans=unknown_span_docs())
    @settings(max_examples=200)
    def test_extract_inverts_build(self, spans) -> None:
        assert extract_spans(ADAPTER, build_tree(ADAPTER, spans)) == spans

    @given(spans=unknown_span_docs())
    @settings(max_examples=100)
    def test_built_tree_is_valid(self, spans) -> None:
        build_tree(ADAPTER, spans).check()

    @given(spans=unknown_span_docs())
    @settings(max_examples=100)
    def test_indexes_are_contiguous(self, spans) -> None:
        states = list(indexed_events(ADAPTER, spans))
        for prev, cur in zip(states, states[1:]):
            assert prev.after == cur.before


class TestIndexProperties:
    @given(spans=span_docs())
    @settings(max_examples=100)
    def test_indexes_are_contiguous(self, spans) -> None:
        states = list(indexed_events(ADAPTER, spans))
        for prev, cur in zip(states, states[1:]):
            assert prev.after == cur.before

    @given(spans=span_docs())
    @settings(max_examples=100)
    def test_scan_covers_both_sequences(self, spans) -> None:
        states = list(indexed_events(ADAPTER, spans))
        assert states[-1].after.tree == build_tree(ADAPTER, spans).content.size
        assert states[-1].after.domain + 1 == spans_length(spans)

    @given(data=st.data(), spans=span_docs())
    @settings(max_examples=100)
    def test_splice_index_lands_in_inline_content(self, data, spans) -> None:
        index = data.draw(st.integers(min_value=0, max_value=spans_length(spans)))
        doc = build_tree(ADAPTER, spans)
        pos = domain_splice_index_to_tree_index(ADAPTER, spans, index)
        assert doc.resolve(pos).parent.inline_content


class TestForwardProperties:
    @given(data=st.data(), spans=span_docs(), value=st.text(alphabet="pq", min_size=1, max_size=3))
    @settings(max_examples=100)
    def test_splice_matches_rebuilt_tree(self, data, spans, value) -> None:
        index = data.draw(st.integers(min_value=1, max_value=spans_length(spans)))
        op = SpliceText(index, value)
        tr = domain_ops_to_tree(ADAPTER, spans, [op], Transform(build_tree(ADAPTER, spans)))
        assert tr.doc.eq(build_tree(ADAPTER, apply_op(spans, op)))
