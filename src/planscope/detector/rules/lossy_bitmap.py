"""
Rule: Lossy Bitmap Heap Blocks

Detects bitmap scans operating in lossy mode, where individual row
pointers are lost and entire heap pages must be rechecked.

Why it matters:
- Lossy bitmaps keep only page-level bits, not row-level pointers
- Every row on affected pages is rechecked against the original condition
- Indicates work_mem is too small for the bitmap

Requires EXPLAIN ANALYZE (lossy/exact block counts are runtime data).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from planscope.detector.registry import register_rule
from planscope.detector.rules.base import Rule, target_name
from planscope.parser.models import PlanWarning, Severity, WarningKind

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode


@register_rule
class LossyBitmap(Rule):
    """Flag bitmap scans where most heap blocks are lossy."""

    kind = WarningKind.LOSSY_BITMAP
    severity = Severity.WARNING
    description = "Detects bitmap heap scans degraded to lossy mode"

    def check(self, node: PlanNode) -> PlanWarning | None:
        if "bitmap" not in node.node_type.lower():
            return None

        lossy = node.lossy_heap_blocks or 0
        exact = node.exact_heap_blocks or 0
        total = lossy + exact
        if total == 0:
            return None

        ratio = lossy / total
        if ratio <= self.thresholds.lossy_bitmap_ratio:
            return None

        recommended_mb = max(int(total * 8 / 1024) * 2, 64)
        suggestion = f"SET work_mem = '{recommended_mb}MB' so the bitmap stays exact"
        if node.recheck_cond:
            suggestion += f"; every row on lossy pages is rechecked against {node.recheck_cond}"
        suggestion += "."

        return self.warn(
            message=(
                f"Lossy bitmap on {target_name(node)} "
                f"({lossy:,} lossy / {total:,} total heap blocks)"
            ),
            suggestion=suggestion,
            details={
                "lossy_heap_blocks": lossy,
                "exact_heap_blocks": exact,
                "lossy_ratio": round(ratio, 4),
            },
        )
