"""
Rule: Hot Nested Loop

Detects Nested Loop joins executed many times, the plan-level shape of an
N+1 access pattern.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from planscope.detector.registry import register_rule
from planscope.detector.rules.base import Rule
from planscope.parser.models import PlanWarning, Severity, WarningKind

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode


@register_rule
class HotNestedLoop(Rule):
    kind = WarningKind.HOT_NESTED_LOOP
    severity = Severity.WARNING
    description = "Detects nested loop joins with very high loop counts"

    def check(self, node: PlanNode) -> PlanWarning | None:
        if node.node_type != "Nested Loop" or node.actual_loops is None:
            return None

        limit = self.thresholds.nested_loop_max_loops
        if node.actual_loops <= limit:
            return None

        return self.warn(
            message=f"Nested loop executed {node.actual_loops:,} times",
            suggestion=(
                "Check the row estimate of the outer input; with accurate statistics "
                "the planner may pick a hash or merge join. An index on the inner "
                "join key also makes each iteration cheaper."
            ),
            details={"loops": node.actual_loops, "threshold": limit},
        )
