"""
Rule: Estimate Mismatch

Detects nodes where the planner's row estimate is far from the measured
row count.

Why it matters:
- Join strategy, join order and memory sizing are all chosen from estimates
- Underestimates lead to nested loops over huge inputs and hash spills
- Usually caused by stale statistics or correlated columns

Requires EXPLAIN ANALYZE (actual rows are runtime data).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from planscope.detector.registry import register_rule
from planscope.detector.rules.base import Rule, target_name
from planscope.parser.models import PlanWarning, Severity, WarningKind

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode


@register_rule
class EstimateMismatch(Rule):
    """
    Flag nodes whose actual/estimated row ratio leaves the tolerated band.

    The band is symmetric in log space: [1/x, x]. Leaving the warning band
    is a WARNING; leaving the wider critical band is CRITICAL.
    """

    kind = WarningKind.ESTIMATE_MISMATCH
    severity = Severity.WARNING
    description = "Detects planner row estimates far from actual rows"

    def check(self, node: PlanNode) -> PlanWarning | None:
        estimated = node.plan_rows
        actual = node.actual_rows
        if estimated <= 0 or actual is None or actual <= 0:
            return None

        ratio = actual / estimated
        warn_at = self.thresholds.estimate_ratio_warning
        critical_at = self.thresholds.estimate_ratio_critical

        if ratio > critical_at or ratio < 1 / critical_at:
            severity = Severity.CRITICAL
        elif ratio > warn_at or ratio < 1 / warn_at:
            severity = Severity.WARNING
        else:
            return None

        factor = ratio if ratio >= 1 else 1 / ratio
        direction = "underestimated" if ratio > 1 else "overestimated"

        return self.warn(
            message=(
                f"Planner {direction} rows by {factor:.1f}x "
                f"({estimated:,} estimated, {actual:,} actual)"
            ),
            suggestion=(
                f"Run ANALYZE on {target_name(node)} to refresh statistics; if the "
                "estimate stays off, raise the column statistics target or add "
                "extended statistics for correlated columns."
            ),
            details={
                "estimated_rows": estimated,
                "actual_rows": actual,
                "ratio": round(ratio, 4),
            },
            severity=severity,
        )
