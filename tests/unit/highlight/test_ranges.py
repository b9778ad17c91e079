"""Tests for resolve_ranges(): overlapping anchors -> disjoint ranges."""

from __future__ import annotations

from marginalia.highlight.ranges import AnchoredSpan, resolve_ranges


def _bounds(ranges) -> list[tuple[int, int, tuple[str, ...]]]:
    return [(r.start, r.end, r.annotation_ids) for r in ranges]


class TestResolveRanges:
    """Sweep output shape."""

    def test_no_spans(self) -> None:
        assert resolve_ranges([]) == []

    def test_disjoint_spans(self) -> None:
        ranges = resolve_ranges(
            [AnchoredSpan("b", 20, 25), AnchoredSpan("a", 0, 5)]
        )
        assert _bounds(ranges) == [(0, 5, ("a",)), (20, 25, ("b",))]

    def test_identical_spans_collapse(self) -> None:
        ranges = resolve_ranges([AnchoredSpan("a", 3, 8), AnchoredSpan("b", 3, 8)])
        assert _bounds(ranges) == [(3, 8, ("a", "b"))]

    def test_partial_overlap_splits_into_three(self) -> None:
        ranges = resolve_ranges([AnchoredSpan("a", 0, 10), AnchoredSpan("b", 5, 15)])
        assert _bounds(ranges) == [
            (0, 5, ("a",)),
            (5, 10, ("a", "b")),
            (10, 15, ("b",)),
        ]

    def test_containment(self) -> None:
        ranges = resolve_ranges([AnchoredSpan("a", 0, 20), AnchoredSpan("b", 5, 10)])
        assert _bounds(ranges) == [
            (0, 5, ("a",)),
            (5, 10, ("a", "b")),
            (10, 20, ("a",)),
        ]

    def test_adjacent_spans_do_not_merge(self) -> None:
        ranges = resolve_ranges([AnchoredSpan("a", 0, 5), AnchoredSpan("b", 5, 9)])
        assert _bounds(ranges) == [(0, 5, ("a",)), (5, 9, ("b",))]

    def test_ids_follow_input_order(self) -> None:
        ranges = resolve_ranges([AnchoredSpan("z", 5, 9), AnchoredSpan("a", 0, 9)])
        assert _bounds(ranges) == [(0, 5, ("a",)), (5, 9, ("z", "a"))]

    def test_ranges_ascending_and_disjoint(self) -> None:
        spans = [
            AnchoredSpan("a", 2, 30),
            AnchoredSpan("b", 10, 12),
            AnchoredSpan("c", 11, 40),
            AnchoredSpan("d", 0, 3),
        ]
        ranges = resolve_ranges(spans)
        for before, after in zip(ranges, ranges[1:], strict=False):
            assert before.end <= after.start
        assert all(r.start < r.end for r in ranges)
        assert ranges[0].start == 0
        assert ranges[-1].end == 40

    def test_keys_are_sequential(self) -> None:
        ranges = resolve_ranges([AnchoredSpan("a", 0, 10), AnchoredSpan("b", 5, 15)])
        assert [r.key for r in ranges] == ["hl-0", "hl-1", "hl-2"]

    def test_empty_span_ignored(self) -> None:
        ranges = resolve_ranges([AnchoredSpan("a", 4, 4), AnchoredSpan("b", 0, 2)])
        assert _bounds(ranges) == [(0, 2, ("b",))]

    def test_repeated_id_keeps_first_span(self) -> None:
        ranges = resolve_ranges([AnchoredSpan("a", 0, 2), AnchoredSpan("a", 5, 8)])
        assert _bounds(ranges) == [(0, 2, ("a",))]

    def test_deterministic(self) -> None:
        spans = [AnchoredSpan("a", 0, 10), AnchoredSpan("b", 5, 15)]
        assert resolve_ranges(spans) == resolve_ranges(list(spans))
