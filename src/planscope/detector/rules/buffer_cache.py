"""
Rule: Low Buffer Cache Hit Ratio

Detects nodes that read a large share of their pages from outside
shared_buffers. Requires EXPLAIN (BUFFERS).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from planscope.detector.registry import register_rule
from planscope.detector.rules.base import Rule, target_name
from planscope.parser.models import PlanWarning, Severity, WarningKind

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode


@register_rule
class LowCacheHit(Rule):
    kind = WarningKind.LOW_CACHE_HIT
    severity = Severity.WARNING
    description = "Detects poor shared buffer cache hit ratios"

    def check(self, node: PlanNode) -> PlanWarning | None:
        ratio = node.buffer_hit_ratio
        if ratio is None:
            return None

        hits = node.shared_hit_blocks or 0
        reads = node.shared_read_blocks or 0
        accesses = hits + reads
        if accesses <= self.thresholds.buffer_min_accesses:
            return None
        if ratio >= self.thresholds.buffer_hit_ratio:
            return None

        return self.warn(
            message=f"Buffer cache hit ratio is {ratio:.1%} ({reads:,} of {accesses:,} blocks read from disk)",
            suggestion=(
                f"The working set of {target_name(node)} does not fit in shared_buffers. "
                "Read fewer pages with a more selective index, or review shared_buffers sizing."
            ),
            details={
                "shared_hit_blocks": hits,
                "shared_read_blocks": reads,
                "hit_ratio": round(ratio, 4),
            },
        )
