"""
Per-node performance metrics over an already-built plan tree.

Three ordered passes, each mutating the tree in place:

1. Percent of total: every node's time as a share of the grand total
2. Exclusive time (post-order): a node's own time minus its children's
3. Slowest node: the single node with the largest exclusive time

Actual vs. estimate policy: the choice is made once per tree. Measured
(actual) figures are used only when every node carries actual timing;
otherwise cost estimates are used tree-wide. Mixing an actual-based total
with a node's cost-based time would produce meaningless percentages.
"""

from __future__ import annotations

import logging

from planscope.parser.models import PlanNode

logger = logging.getLogger(__name__)


def is_measured(root: PlanNode) -> bool:
    """True when every node in the tree carries actual total time."""
    return all(node.has_actuals for node in root.iter_nodes())


def node_time(node: PlanNode, use_actuals: bool) -> float:
    """Actual total time (ms) or total cost, per the tree-wide choice."""
    if use_actuals and node.actual_total_time is not None:
        return node.actual_total_time
    return node.total_cost


def grand_total(root: PlanNode, use_actuals: bool) -> float:
    """The root's time: every other node's percentage is relative to this."""
    return node_time(root, use_actuals)


def percent_of_total(time: float, total: float) -> float:
    """
    100 × time / total, never negative.

    May exceed 100 under parallel-worker measurement jitter; callers clamp
    for display only.
    """
    if total <= 0:
        return 0.0
    return max(0.0, 100.0 * time / total)


def propagate_percentages(root: PlanNode, use_actuals: bool | None = None) -> float:
    """
    Set percent_of_total on every node.

    Returns:
        The grand total the percentages are relative to
    """
    if use_actuals is None:
        use_actuals = is_measured(root)

    total = grand_total(root, use_actuals)
    logger.debug(
        "Grand total %.3f (%s)", total, "actual ms" if use_actuals else "cost units"
    )

    for node in root.iter_nodes():
        node.percent_of_total = percent_of_total(node_time(node, use_actuals), total)

    return total


def propagate_exclusive_times(root: PlanNode) -> None:
    """
    Set exclusive_time_ms on every node, children before parents.

    exclusive = max(0, actual_total(node) - sum(actual_total(children))).
    Children without actuals contribute 0; nodes without actuals get 0.
    """
    for child in root.children:
        propagate_exclusive_times(child)

    if root.actual_total_time is None:
        root.exclusive_time_ms = 0.0
        return

    children_time = sum(child.actual_total_time or 0.0 for child in root.children)
    root.exclusive_time_ms = max(0.0, root.actual_total_time - children_time)


def mark_slowest(root: PlanNode) -> PlanNode | None:
    """
    Flag the node with the largest exclusive time.

    Only nodes with actual timing are candidates; ties go to the first node
    in pre-order. No node is flagged when none has actuals.
    """
    slowest: PlanNode | None = None

    for node in root.iter_nodes():
        node.is_slowest = False
        if not node.has_actuals:
            continue
        if slowest is None or node.exclusive_time_ms > slowest.exclusive_time_ms:
            slowest = node

    if slowest is not None:
        slowest.is_slowest = True

    return slowest


def propagate_metrics(root: PlanNode) -> PlanNode | None:
    """
    Run all metric passes in order.

    Returns:
        The slowest node, or None if the plan was not executed
    """
    propagate_percentages(root)
    propagate_exclusive_times(root)
    return mark_slowest(root)
