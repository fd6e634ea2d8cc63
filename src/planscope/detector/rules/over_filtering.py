"""
Rule: Over-Filtering

Detects nodes that read many rows only to discard most of them. The
rows-removed figure is the normalized sum of Filter, Index Recheck and
Join Filter removals.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from planscope.detector.registry import register_rule
from planscope.detector.rules.base import Rule, target_name
from planscope.parser.models import PlanWarning, Severity, WarningKind

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode


@register_rule
class OverFiltering(Rule):
    kind = WarningKind.OVER_FILTERING
    severity = Severity.INFO
    description = "Detects nodes discarding most of the rows they read"

    def check(self, node: PlanNode) -> PlanWarning | None:
        removed = node.rows_removed
        kept = node.actual_rows
        if removed is None or kept is None:
            return None

        examined = removed + kept
        if examined == 0:
            return None

        ratio = removed / examined
        if ratio <= self.thresholds.over_filter_ratio:
            return None

        condition = node.filter or node.join_filter or node.recheck_cond
        suggestion = f"An index matching the condition on {target_name(node)}"
        if condition:
            suggestion += f" ({condition})"
        suggestion += " would avoid reading rows that are thrown away."

        return self.warn(
            message=f"{ratio:.0%} of examined rows were discarded ({removed:,} of {examined:,})",
            suggestion=suggestion,
            details={
                "rows_removed": removed,
                "rows_kept": kept,
                "removed_ratio": round(ratio, 4),
            },
        )
