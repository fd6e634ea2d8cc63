"""
Timeline layout for plan nodes.

Each node becomes a horizontal bar positioned by its start/end time as a
percentage of the grand total. Bars that overlap in real elapsed time
(parallel branches, repeated CTE references, a parent spanning its
children) are spread over rows with a greedy first-fit packing.

Nodes are packed in pre-order, not sorted by start time. This keeps a
parent's bar above its children at the cost of sometimes using more rows
than the optimal interval-graph colouring.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable

from planscope.config import TIMELINE_MIN_WIDTH_PERCENT
from planscope.metrics import grand_total, is_measured, percent_of_total
from planscope.parser.models import TimelineInterval

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode, QueryPlanAnalysis


@dataclass(frozen=True)
class Span:
    """A node's bar before row assignment."""

    node_id: str
    start_percent: float
    width_percent: float

    @property
    def end_percent(self) -> float:
        return self.start_percent + self.width_percent


def collect_spans(
    root: PlanNode,
    min_width: float = TIMELINE_MIN_WIDTH_PERCENT,
) -> list[Span]:
    """
    One span per node, in pre-order.

    Uses actual startup/total time when every node was measured, otherwise
    startup/total cost (same tree-wide policy as the metrics passes).
    """
    use_actuals = is_measured(root)
    total = grand_total(root, use_actuals)

    spans: list[Span] = []
    for node in root.iter_nodes():
        if use_actuals:
            start = node.actual_startup_time or 0.0
            end = node.actual_total_time or 0.0
        else:
            start = node.startup_cost
            end = node.total_cost

        start_pct = percent_of_total(start, total)
        end_pct = percent_of_total(end, total)
        spans.append(Span(
            node_id=node.node_id,
            start_percent=start_pct,
            width_percent=max(min_width, end_pct - start_pct),
        ))
    return spans


def pack_rows(spans: Iterable[Span]) -> list[TimelineInterval]:
    """
    Greedy first-fit row assignment.

    Each span goes into the first row whose last bar ends at or before the
    span's start; otherwise a new row is opened. Spans are taken in the
    order given.
    """
    row_ends: list[float] = []
    intervals: list[TimelineInterval] = []

    for span in spans:
        for row, row_end in enumerate(row_ends):
            if row_end <= span.start_percent:
                break
        else:
            row = len(row_ends)
            row_ends.append(0.0)

        row_ends[row] = span.end_percent
        intervals.append(TimelineInterval(
            node_id=span.node_id,
            start_percent=span.start_percent,
            width_percent=span.width_percent,
            row=row,
        ))

    return intervals


def build_timeline(
    analysis: QueryPlanAnalysis,
    min_width: float = TIMELINE_MIN_WIDTH_PERCENT,
) -> list[TimelineInterval]:
    """
    Lay out every node of an analysis as non-overlapping timeline rows.

    Returns an empty list when the analysis carries no tree (TEXT/XML/YAML).
    Recomputed on every call; the result is not stored on the analysis.
    """
    if not analysis.is_tree_available:
        return []
    return pack_rows(collect_spans(analysis.root_node, min_width))
