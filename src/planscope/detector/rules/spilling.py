"""
Rules: Disk Sort and Hash Spill

Detects Sort and Hash operations that exceeded work_mem and spilled to disk.

Why it matters:
- In-memory operations are 10-100x faster than disk-based ones
- Sort spilling switches to external merge sort
- Hash spilling splits the build side into batches written to temp files
- Indicates work_mem is too low for the workload

When to fix:
- Increase work_mem (per-operation setting)
- Add indexes to avoid sorts
- Reduce result set size before sorting or hashing
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from planscope.detector.registry import register_rule
from planscope.detector.rules.base import Rule
from planscope.parser.models import PlanWarning, Severity, WarningKind

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode


def _recommended_work_mem_mb(spilled_kb: int, multiplier: float) -> int:
    """work_mem large enough to keep the spilled data in memory, at least 64MB."""
    return int(max(spilled_kb / 1024 * multiplier, 64))


@register_rule
class DiskSort(Rule):
    """Flag Sort / Incremental Sort nodes whose sort space type is Disk."""

    kind = WarningKind.DISK_SORT
    severity = Severity.CRITICAL
    description = "Detects sorts spilling to disk"

    def check(self, node: PlanNode) -> PlanWarning | None:
        if "Sort" not in node.node_type:
            return None
        if (node.sort_space_type or "").lower() != "disk":
            return None

        space_kb = node.sort_space_used or 0
        recommended_mb = _recommended_work_mem_mb(space_kb, 2.0)
        method = f" using {node.sort_method}" if node.sort_method else ""

        suggestion = f"SET work_mem = '{recommended_mb}MB' for this query and re-run EXPLAIN ANALYZE"
        if node.sort_key:
            suggestion += f", or add an index on ({', '.join(node.sort_key[:3])}) to avoid the sort"
        suggestion += "."

        return self.warn(
            message=f"Sort spilled {space_kb / 1024:.1f}MB to disk{method}",
            suggestion=suggestion,
            details={
                "sort_space_used_kb": space_kb,
                "recommended_work_mem_mb": recommended_mb,
            },
        )


@register_rule
class HashSpill(Rule):
    """Flag hash operations that needed more than one batch."""

    kind = WarningKind.HASH_SPILL
    severity = Severity.WARNING
    description = "Detects hash tables spilling to disk in multiple batches"

    def check(self, node: PlanNode) -> PlanWarning | None:
        batches = node.hash_batches
        if batches is None or batches <= self.thresholds.hash_max_batches:
            return None

        memory_kb = node.peak_memory_usage or 0
        recommended_mb = min(_recommended_work_mem_mb(max(memory_kb, 4096) * batches, 1.5), 4096)

        details: dict[str, float] = {
            "hash_batches": batches,
            "recommended_work_mem_mb": recommended_mb,
        }
        if node.original_hash_batches is not None:
            details["original_hash_batches"] = node.original_hash_batches
        if node.peak_memory_usage is not None:
            details["peak_memory_kb"] = memory_kb

        return self.warn(
            message=f"Hash used {batches} batches (spilled to disk)",
            suggestion=(
                f"SET work_mem = '{recommended_mb}MB' so the hash table fits in one batch, "
                "or reduce the rows reaching the hash with a more selective filter."
            ),
            details=details,
        )
