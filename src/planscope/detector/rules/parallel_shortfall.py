"""Rule: Parallel Shortfall - fewer parallel workers launched than planned."""

from __future__ import annotations

from typing import TYPE_CHECKING

from planscope.detector.registry import register_rule
from planscope.detector.rules.base import Rule
from planscope.parser.models import PlanWarning, Severity, WarningKind

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode


@register_rule
class ParallelShortfall(Rule):
    kind = WarningKind.PARALLEL_SHORTFALL
    severity = Severity.INFO
    description = "Detects Gather nodes that launched fewer workers than planned"

    def check(self, node: PlanNode) -> PlanWarning | None:
        planned = node.workers_planned
        launched = node.workers_launched
        if planned is None or launched is None or launched >= planned:
            return None

        return self.warn(
            message=f"Only {launched} of {planned} planned parallel workers were launched",
            suggestion=(
                "The worker pool was exhausted at execution time. Check "
                "max_worker_processes and max_parallel_workers against concurrent load."
            ),
            details={"workers_planned": planned, "workers_launched": launched},
        )
