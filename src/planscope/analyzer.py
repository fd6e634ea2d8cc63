"""
PlanAnalyzer - single entry point for analyzing an execution plan.

Pipeline:
    parse  ->  propagate metrics  ->  detect warnings  ->  (timeline on demand)

The pipeline is a pure, synchronous function of (raw, options, config): no
I/O, no shared mutable state, safe to run on worker threads concurrently.
Each call builds an entirely new tree.

Usage:
    from planscope import ExplainOptions, analyze

    result = analyze(raw, ExplainOptions(analyze=True, buffers=True))
    if isinstance(result, AnalysisError):
        show_raw_text(result.raw_text)
    else:
        for node, warning in result.all_warnings():
            print(node.label, warning.message)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from planscope.config import get_config
from planscope.detector import WarningDetector
from planscope.exceptions import MalformedPlanError
from planscope.metrics import propagate_metrics
from planscope.parser.models import AnalysisError, ExplainOptions, QueryPlanAnalysis
from planscope.parser.parser import parse_plan
from planscope.timeline import build_timeline

if TYPE_CHECKING:
    from planscope.config import Config
    from planscope.parser.models import TimelineInterval

logger = logging.getLogger(__name__)


class PlanAnalyzer:
    """
    Orchestrates parsing, metric propagation and warning detection.

    Example:
        analyzer = PlanAnalyzer()
        analysis = analyzer.analyze_or_raise(raw, ExplainOptions(analyze=True))
        print(analysis.slowest_node.label)
        bars = analyzer.timeline(analysis)
    """

    def __init__(self, config: Config | None = None) -> None:
        self.config = config or get_config()
        self.detector = WarningDetector(self.config)

    def analyze_or_raise(
        self,
        raw: str,
        options: ExplainOptions | None = None,
    ) -> QueryPlanAnalysis:
        """
        Analyze raw EXPLAIN output.

        Raises:
            MalformedPlanError: If the input is not a parseable plan
        """
        analysis = parse_plan(raw, options, self.config.parser)

        if not analysis.is_tree_available:
            return analysis

        root = analysis.root_node
        propagate_metrics(root)
        self.detector.detect(root)
        return analysis

    def analyze(
        self,
        raw: str,
        options: ExplainOptions | None = None,
    ) -> QueryPlanAnalysis | AnalysisError:
        """
        Analyze raw EXPLAIN output, returning malformed input as a value.

        Returns:
            The analysis, or an AnalysisError carrying the raw text for a
            literal fallback view
        """
        try:
            return self.analyze_or_raise(raw, options)
        except MalformedPlanError as e:
            logger.warning("Could not parse execution plan: %s (at %s)", e.message, e.location)
            return AnalysisError(
                detail=e.message if e.detail is None else f"{e.message}: {e.detail}",
                location=e.location,
                raw_text=raw,
            )

    def timeline(self, analysis: QueryPlanAnalysis) -> list[TimelineInterval]:
        """Row layout for the analysis, recomputed on every call."""
        return build_timeline(analysis, self.config.timeline_min_width_percent)


def analyze(
    raw: str,
    options: ExplainOptions | None = None,
    config: Config | None = None,
) -> QueryPlanAnalysis | AnalysisError:
    """Analyze raw EXPLAIN output with a one-off PlanAnalyzer."""
    return PlanAnalyzer(config).analyze(raw, options)


def analyze_or_raise(
    raw: str,
    options: ExplainOptions | None = None,
    config: Config | None = None,
) -> QueryPlanAnalysis:
    """Like analyze(), but raises MalformedPlanError for malformed input."""
    return PlanAnalyzer(config).analyze_or_raise(raw, options)
