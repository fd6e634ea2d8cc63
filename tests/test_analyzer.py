"""
End-to-end tests for the analysis pipeline: parse, metrics, warnings.

These run the full PlanAnalyzer against raw EXPLAIN text, the same way a
caller would, with an explicit default Config so the environment cannot
leak thresholds into the results.
"""

from __future__ import annotations

import json
from typing import Any

import pytest

from planscope import (
    AnalysisError,
    ExplainOptions,
    MalformedPlanError,
    PlanFormat,
    QueryPlanAnalysis,
    Severity,
    WarningKind,
    analyze,
)
from planscope.analyzer import PlanAnalyzer
from planscope.config import Config


@pytest.fixture
def analyzer() -> PlanAnalyzer:
    return PlanAnalyzer(Config())


ANALYZE_OPTIONS = ExplainOptions(analyze=True, buffers=True)

# EXPLAIN (ANALYZE, BUFFERS, FORMAT JSON) of a report query over an
# unindexed orders table.
REPORT_PLAN: list[dict[str, Any]] = [{
    "Plan": {
        "Node Type": "Limit",
        "Startup Cost": 48211.40, "Total Cost": 48211.65,
        "Plan Rows": 100, "Plan Width": 44,
        "Actual Startup Time": 812.301, "Actual Total Time": 812.330,
        "Actual Rows": 100, "Actual Loops": 1,
        "Shared Hit Blocks": 120, "Shared Read Blocks": 8850,
        "Plans": [{
            "Node Type": "Sort",
            "Parent Relationship": "Outer",
            "Startup Cost": 48211.40, "Total Cost": 48461.40,
            "Plan Rows": 100000, "Plan Width": 44,
            "Actual Startup Time": 812.299, "Actual Total Time": 812.316,
            "Actual Rows": 100, "Actual Loops": 1,
            "Sort Key": ["o.created_at DESC"],
            "Sort Method": "external merge",
            "Sort Space Used": 40960, "Sort Space Type": "Disk",
            "Shared Hit Blocks": 120, "Shared Read Blocks": 8850,
            "Plans": [{
                "Node Type": "Hash Join",
                "Parent Relationship": "Outer",
                "Join Type": "Inner",
                "Startup Cost": 30.50, "Total Cost": 41036.00,
                "Plan Rows": 100000, "Plan Width": 44,
                "Actual Startup Time": 0.412, "Actual Total Time": 640.880,
                "Actual Rows": 250000, "Actual Loops": 1,
                "Hash Cond": "(o.user_id = u.id)",
                "Shared Hit Blocks": 120, "Shared Read Blocks": 8850,
                "Plans": [
                    {
                        "Node Type": "Seq Scan",
                        "Parent Relationship": "Outer",
                        "Relation Name": "orders", "Alias": "o",
                        "Startup Cost": 0.00, "Total Cost": 36000.00,
                        "Plan Rows": 100000, "Plan Width": 36,
                        "Actual Startup Time": 0.010, "Actual Total Time": 410.500,
                        "Actual Rows": 250000, "Actual Loops": 1,
                        "Filter": "(status = 'shipped')",
                        "Rows Removed by Filter": 750000,
                        "Shared Hit Blocks": 100, "Shared Read Blocks": 8800,
                    },
                    {
                        "Node Type": "Hash",
                        "Parent Relationship": "Inner",
                        "Startup Cost": 18.00, "Total Cost": 18.00,
                        "Plan Rows": 1000, "Plan Width": 12,
                        "Actual Startup Time": 0.390, "Actual Total Time": 0.391,
                        "Actual Rows": 1000, "Actual Loops": 1,
                        "Hash Buckets": 1024, "Hash Batches": 1, "Peak Memory Usage": 52,
                        "Shared Hit Blocks": 20, "Shared Read Blocks": 50,
                        "Plans": [{
                            "Node Type": "Seq Scan",
                            "Parent Relationship": "Outer",
                            "Relation Name": "users", "Alias": "u",
                            "Startup Cost": 0.00, "Total Cost": 18.00,
                            "Plan Rows": 1000, "Plan Width": 12,
                            "Actual Startup Time": 0.005, "Actual Total Time": 0.180,
                            "Actual Rows": 1000, "Actual Loops": 1,
                            "Shared Hit Blocks": 20, "Shared Read Blocks": 50,
                        }],
                    },
                ],
            }],
        }],
    },
    "Planning Time": 0.250,
    "Triggers": [],
    "Execution Time": 813.100,
}]


def explain(plan: dict[str, Any], **root: Any) -> str:
    return json.dumps([{"Plan": plan, **root}])


def strip_ids(data: Any) -> Any:
    """Drop node ids (fresh per run) so two analyses can be compared."""
    if isinstance(data, dict):
        return {k: strip_ids(v) for k, v in data.items() if k != "node_id"}
    if isinstance(data, list):
        return [strip_ids(v) for v in data]
    return data


# =============================================================================
# Core scenarios
# =============================================================================

class TestScenarios:
    def test_single_large_seq_scan(self, analyzer: PlanAnalyzer) -> None:
        raw = explain({
            "Node Type": "Seq Scan",
            "Relation Name": "t",
            "Startup Cost": 0, "Total Cost": 1000,
            "Plan Rows": 50000, "Plan Width": 4,
            "Actual Startup Time": 0.01, "Actual Total Time": 120.0,
            "Actual Rows": 50000, "Actual Loops": 1,
        })
        analysis = analyzer.analyze(raw, ANALYZE_OPTIONS)

        assert isinstance(analysis, QueryPlanAnalysis)
        root = analysis.root_node
        assert [w.kind for w in root.warnings] == [WarningKind.LARGE_SEQ_SCAN]
        assert root.is_slowest is True
        assert root.percent_of_total == 100.0
        assert root.exclusive_time_ms == 120.0

    def test_disk_sort(self, analyzer: PlanAnalyzer) -> None:
        raw = explain({
            "Node Type": "Sort",
            "Startup Cost": 10, "Total Cost": 20,
            "Plan Rows": 10, "Plan Width": 4,
            "Sort Space Type": "Disk", "Sort Space Used": 40960,
        })
        analysis = analyzer.analyze(raw)

        assert isinstance(analysis, QueryPlanAnalysis)
        warnings = analysis.root_node.warnings
        assert len(warnings) == 1
        assert warnings[0].kind is WarningKind.DISK_SORT
        assert warnings[0].severity is Severity.CRITICAL

    @pytest.mark.parametrize(("first", "second", "rows"), [
        ((0.0, 40.0), (50.0, 90.0), [0, 1, 1]),
        ((0.0, 60.0), (10.0, 90.0), [0, 1, 2]),
    ])
    def test_sibling_timeline(
        self,
        analyzer: PlanAnalyzer,
        first: tuple[float, float],
        second: tuple[float, float],
        rows: list[int],
    ) -> None:
        def scan(start: float, end: float) -> dict[str, Any]:
            return {
                "Node Type": "Seq Scan", "Total Cost": 1.0,
                "Actual Startup Time": start, "Actual Total Time": end,
                "Actual Rows": 1, "Actual Loops": 1,
            }

        raw = explain({
            "Node Type": "Append", "Total Cost": 2.0,
            "Actual Startup Time": 0.0, "Actual Total Time": 100.0,
            "Actual Rows": 2, "Actual Loops": 1,
            "Plans": [scan(*first), scan(*second)],
        })
        analysis = analyzer.analyze(raw, ANALYZE_OPTIONS)
        assert isinstance(analysis, QueryPlanAnalysis)

        assert [i.row for i in analyzer.timeline(analysis)] == rows

    @pytest.mark.parametrize("raw", [
        '{"not": "a plan"}',
        "[1, 2]",
        "[{\"Plan\": ",
        "",
        '[{"Plan": {"Node Type": "Seq Scan", "Plan Rows": Infinity}}]',
        '[{"Plan": {"Node Type": "Seq Scan", "Actual Rows": NaN}}]',
        "[" * 200_000 + "]" * 200_000,
    ], ids=["object", "array", "truncated", "empty", "infinity", "nan", "nested"])
    def test_malformed_input(self, analyzer: PlanAnalyzer, raw: str) -> None:
        result = analyzer.analyze(raw)

        assert isinstance(result, AnalysisError)
        assert result.kind == "malformed"
        assert result.message == "could not parse execution plan"
        assert result.raw_text == raw
        assert result.detail

    def test_text_format(self, analyzer: PlanAnalyzer) -> None:
        raw = "Seq Scan on t  (cost=0.00..35.50 rows=2550 width=4)"
        analysis = analyzer.analyze(raw, ExplainOptions(format=PlanFormat.TEXT))

        assert isinstance(analysis, QueryPlanAnalysis)
        assert analysis.format is PlanFormat.TEXT
        assert analysis.root_node.node_type == "Unparsed"
        assert analysis.root_node.warnings == []
        assert analysis.raw_text == raw
        assert analyzer.timeline(analysis) == []


# =============================================================================
# Realistic plan
# =============================================================================

class TestReportPlan:
    @pytest.fixture
    def analysis(self, analyzer: PlanAnalyzer) -> QueryPlanAnalysis:
        result = analyzer.analyze(json.dumps(REPORT_PLAN), ANALYZE_OPTIONS)
        assert isinstance(result, QueryPlanAnalysis)
        return result

    def test_envelope(self, analysis: QueryPlanAnalysis) -> None:
        assert analysis.node_count == 6
        assert analysis.planning_time_ms == 0.25
        assert analysis.execution_time_ms == 813.1
        assert analysis.total_time_ms == pytest.approx(813.35)
        assert analysis.options == ANALYZE_OPTIONS

    def test_slowest_is_orders_scan(self, analysis: QueryPlanAnalysis) -> None:
        slowest = analysis.slowest_node
        assert slowest is not None
        assert slowest.label == "Seq Scan on orders o"
        assert sum(n.is_slowest for n in analysis.iter_nodes()) == 1

    def test_sort_exclusive_time(self, analysis: QueryPlanAnalysis) -> None:
        sort = analysis.root_node.children[0]
        assert sort.exclusive_time_ms == pytest.approx(812.316 - 640.880)

    def test_warnings(self, analysis: QueryPlanAnalysis) -> None:
        found = {(node.label, w.kind) for node, w in analysis.all_warnings()}

        assert ("Sort", WarningKind.DISK_SORT) in found
        assert ("Seq Scan on orders o", WarningKind.LARGE_SEQ_SCAN) in found
        assert ("Seq Scan on orders o", WarningKind.LOW_CACHE_HIT) in found
        assert ("Hash", WarningKind.HASH_SPILL) not in found
        assert not any(label == "Seq Scan on users u" for label, _ in found)

    def test_warnings_most_severe_first(self, analysis: QueryPlanAnalysis) -> None:
        severities = [w.severity for _, w in analysis.all_warnings()]
        assert severities[0] is Severity.CRITICAL
        assert severities == sorted(severities)

    def test_tree_invariants(self, analysis: QueryPlanAnalysis) -> None:
        ids = [n.node_id for n in analysis.iter_nodes()]
        assert len(ids) == len(set(ids))

        for node in analysis.iter_nodes():
            assert node.percent_of_total >= 0
            assert node.exclusive_time_ms >= 0
            for child in node.children:
                assert child.depth == node.depth + 1

    def test_json_round_trip(self, analysis: QueryPlanAnalysis) -> None:
        restored = QueryPlanAnalysis.from_json(analysis.to_json())
        assert restored.to_dict() == analysis.to_dict()
        assert restored.root_node.children[0].warnings == analysis.root_node.children[0].warnings
        assert QueryPlanAnalysis.from_dict(analysis.to_dict()).to_dict() == analysis.to_dict()

    def test_deterministic(self, analyzer: PlanAnalyzer, analysis: QueryPlanAnalysis) -> None:
        again = analyzer.analyze(json.dumps(REPORT_PLAN), ANALYZE_OPTIONS)
        assert isinstance(again, QueryPlanAnalysis)
        assert strip_ids(again.to_dict()) == strip_ids(analysis.to_dict())

    def test_find_node(self, analysis: QueryPlanAnalysis) -> None:
        leaf = analysis.root_node.children[0].children[0].children[1].children[0]
        assert analysis.find_node(leaf.node_id) is leaf
        assert analysis.find_node("missing") is None

    def test_timeline_covers_every_node(self, analyzer: PlanAnalyzer, analysis: QueryPlanAnalysis) -> None:
        intervals = analyzer.timeline(analysis)
        assert [i.node_id for i in intervals] == [n.node_id for n in analysis.iter_nodes()]
        assert all(i.width_percent >= 1.0 for i in intervals)


# =============================================================================
# Facade behaviour
# =============================================================================

class TestFacade:
    def test_estimate_only_plan(self, analyzer: PlanAnalyzer) -> None:
        raw = explain({
            "Node Type": "Limit", "Startup Cost": 0, "Total Cost": 400,
            "Plan Rows": 10, "Plan Width": 4,
            "Plans": [{"Node Type": "Seq Scan", "Startup Cost": 0, "Total Cost": 100,
                       "Plan Rows": 10, "Plan Width": 4}],
        })
        analysis = analyzer.analyze(raw)

        assert isinstance(analysis, QueryPlanAnalysis)
        assert analysis.root_node.children[0].percent_of_total == 25.0
        assert analysis.slowest_node is None
        assert analysis.total_time_ms == 400.0

    def test_analyze_or_raise(self, analyzer: PlanAnalyzer) -> None:
        with pytest.raises(MalformedPlanError) as exc_info:
            analyzer.analyze_or_raise('[{"Plan": {"Plans": []}}]')
        assert exc_info.value.location == "$[0].Plan"

    def test_error_location_carried(self, analyzer: PlanAnalyzer) -> None:
        raw = explain({"Node Type": "Append", "Plans": ["oops"]})
        result = analyzer.analyze(raw)
        assert isinstance(result, AnalysisError)
        assert result.location == "$[0].Plan.Plans[0]"

    def test_disabled_rules(self) -> None:
        analyzer = PlanAnalyzer(Config(disabled_rules="disk_sort"))
        raw = explain({"Node Type": "Sort", "Sort Space Type": "Disk"})
        analysis = analyzer.analyze(raw)
        assert isinstance(analysis, QueryPlanAnalysis)
        assert analysis.root_node.warnings == []

    def test_module_level_analyze(self) -> None:
        result = analyze(json.dumps(REPORT_PLAN), ANALYZE_OPTIONS, config=Config())
        assert isinstance(result, QueryPlanAnalysis)
        assert result.node_count == 6

    def test_each_call_builds_a_new_tree(self, analyzer: PlanAnalyzer) -> None:
        raw = json.dumps(REPORT_PLAN)
        first = analyzer.analyze(raw)
        second = analyzer.analyze(raw)
        assert isinstance(first, QueryPlanAnalysis)
        assert isinstance(second, QueryPlanAnalysis)
        assert first.root_node is not second.root_node
        assert first.root_node.node_id != second.root_node.node_id
