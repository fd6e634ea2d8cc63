"""
Rule: Large Sequential Scan

Detects full-table scans that read more rows than a configured threshold.

Why it matters:
- A sequential scan reads every page of the table regardless of selectivity
- Cost grows linearly with table size, so it gets worse as data grows
- Often indicates a missing index on filter or join columns

Row count uses actual rows when the plan was executed, otherwise the
planner's estimate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from planscope.detector.registry import register_rule
from planscope.detector.rules.base import Rule, target_name
from planscope.parser.models import PlanWarning, Severity, WarningKind

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode


@register_rule
class LargeSeqScan(Rule):
    """Flag Seq Scan nodes over large row counts."""

    kind = WarningKind.LARGE_SEQ_SCAN
    severity = Severity.WARNING
    description = "Detects sequential scans over large tables"

    # Text-format plans and some tools prefix the parallel variant
    SCAN_TYPES = {"Seq Scan", "Parallel Seq Scan"}

    def check(self, node: PlanNode) -> PlanWarning | None:
        if node.node_type not in self.SCAN_TYPES:
            return None

        rows = node.row_count
        limit = self.thresholds.large_seq_scan_rows
        if rows <= limit:
            return None

        table = target_name(node)
        suggestion = f"Add an index on {table} covering the filtered columns"
        if node.filter:
            suggestion += f" (Filter: {node.filter})"
        suggestion += ", or narrow the query so an existing index can be used."

        return self.warn(
            message=f"Sequential scan on {table} reads {rows:,} rows",
            suggestion=suggestion,
            details={"rows": rows, "threshold": limit},
        )
