"""Tests for timeline span collection and greedy row packing."""

from __future__ import annotations

import random

import pytest

from planscope.config import Config
from planscope.parser.models import ExplainOptions, PlanFormat, PlanNode, QueryPlanAnalysis
from planscope.timeline import Span, build_timeline, collect_spans, pack_rows


def measured(node_id: str, start: float, end: float, children: list[PlanNode] | None = None) -> PlanNode:
    return PlanNode(
        node_id=node_id,
        node_type="Seq Scan",
        actual_startup_time=start,
        actual_total_time=end,
        children=children or [],
    )


def envelope(root: PlanNode, fmt: PlanFormat = PlanFormat.JSON) -> QueryPlanAnalysis:
    return QueryPlanAnalysis(format=fmt, root_node=root, options=ExplainOptions(format=fmt))


# =============================================================================
# Row packing
# =============================================================================

class TestPackRows:
    def test_disjoint_spans_share_a_row(self) -> None:
        rows = pack_rows([Span("a", 0.0, 40.0), Span("b", 50.0, 40.0)])
        assert [i.row for i in rows] == [0, 0]

    def test_overlapping_spans_get_separate_rows(self) -> None:
        rows = pack_rows([Span("a", 0.0, 60.0), Span("b", 10.0, 80.0)])
        assert [i.row for i in rows] == [0, 1]

    def test_touching_spans_share_a_row(self) -> None:
        rows = pack_rows([Span("a", 0.0, 50.0), Span("b", 50.0, 10.0)])
        assert [i.row for i in rows] == [0, 0]

    def test_first_fit_reuses_earliest_free_row(self) -> None:
        rows = pack_rows([
            Span("a", 0.0, 30.0),
            Span("b", 10.0, 50.0),
            Span("c", 40.0, 10.0),
        ])
        assert [i.row for i in rows] == [0, 1, 0]

    def test_empty(self) -> None:
        assert pack_rows([]) == []

    def test_no_overlap_within_a_row(self) -> None:
        rng = random.Random(42)
        spans = []
        for n in range(200):
            start = rng.uniform(0.0, 95.0)
            spans.append(Span(f"n{n}", start, rng.uniform(1.0, 100.0 - start)))

        intervals = pack_rows(spans)
        assert len(intervals) == len(spans)

        by_row: dict[int, list] = {}
        for interval in intervals:
            by_row.setdefault(interval.row, []).append(interval)

        assert sorted(by_row) == list(range(len(by_row)))
        for row in by_row.values():
            for earlier, later in zip(row, row[1:]):
                assert earlier.end_percent <= later.start_percent


# =============================================================================
# Spans from a plan tree
# =============================================================================

class TestCollectSpans:
    def test_actual_times_relative_to_root(self) -> None:
        root = measured("root", 0.0, 100.0, [measured("a", 0.0, 40.0), measured("b", 50.0, 90.0)])
        spans = collect_spans(root)

        assert [s.node_id for s in spans] == ["root", "a", "b"]
        assert spans[2].start_percent == pytest.approx(50.0)
        assert spans[2].width_percent == pytest.approx(40.0)

    def test_estimates_used_without_actuals(self) -> None:
        root = PlanNode(node_id="root", node_type="Limit", startup_cost=0.0, total_cost=200.0, children=[
            PlanNode(node_id="a", node_type="Seq Scan", startup_cost=100.0, total_cost=150.0),
        ])
        spans = collect_spans(root)

        assert spans[1].start_percent == pytest.approx(50.0)
        assert spans[1].width_percent == pytest.approx(25.0)

    def test_minimum_width(self) -> None:
        root = measured("root", 0.0, 100.0, [measured("a", 50.0, 50.1)])
        spans = collect_spans(root, min_width=1.0)
        assert spans[1].width_percent == 1.0

    def test_zero_total(self) -> None:
        root = PlanNode(node_id="root", node_type="Result")
        (span,) = collect_spans(root)
        assert span.start_percent == 0.0
        assert span.width_percent == 1.0


# =============================================================================
# Full layout
# =============================================================================

class TestBuildTimeline:
    def test_sibling_rows_under_root(self) -> None:
        """The root spans everything, so children start on the row below it."""
        disjoint = measured("root", 0.0, 100.0, [measured("a", 0.0, 40.0), measured("b", 50.0, 90.0)])
        overlapping = measured("root", 0.0, 100.0, [measured("a", 0.0, 60.0), measured("b", 10.0, 90.0)])

        assert [i.row for i in build_timeline(envelope(disjoint))] == [0, 1, 1]
        assert [i.row for i in build_timeline(envelope(overlapping))] == [0, 1, 2]

    def test_one_interval_per_node(self) -> None:
        root = measured("root", 0.0, 10.0, [measured("a", 0.0, 5.0, [measured("b", 0.0, 2.0)])])
        intervals = build_timeline(envelope(root))
        assert [i.node_id for i in intervals] == [n.node_id for n in root.iter_nodes()]

    def test_configured_width(self) -> None:
        root = measured("root", 0.0, 1000.0, [measured("a", 10.0, 10.0)])
        config = Config(timeline_min_width_percent=5.0)
        intervals = build_timeline(envelope(root), config.timeline_min_width_percent)
        assert intervals[1].width_percent == 5.0

    @pytest.mark.parametrize("fmt", [PlanFormat.TEXT, PlanFormat.XML, PlanFormat.YAML])
    def test_no_tree_no_timeline(self, fmt: PlanFormat) -> None:
        placeholder = PlanNode.placeholder("p")
        assert build_timeline(envelope(placeholder, fmt)) == []
