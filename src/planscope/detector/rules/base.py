"""
Base class for warning rules.

All rules must inherit from Rule and implement check(). A rule looks at one
node's own fields only, so rules are independent of each other and of
evaluation order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from planscope.config import WarningThresholds
from planscope.parser.models import PlanWarning, Severity, WarningKind

if TYPE_CHECKING:
    from planscope.parser.models import PlanNode


class Rule(ABC):
    """
    Abstract base class for per-node warning rules.

    Each rule detects one class of performance issue. Rules should be:
    - Deterministic: Same node always produces the same warning
    - Local: Only the node's own fields are consulted
    - Total: Missing fields or zero denominators skip the rule, never raise

    Attributes:
        kind: The WarningKind this rule emits (unique per rule)
        severity: Default severity for warnings from this rule
        description: One-line description for documentation
    """

    kind: WarningKind
    severity: Severity
    description: str = ""

    def __init__(self, thresholds: WarningThresholds | None = None) -> None:
        self.thresholds = thresholds or WarningThresholds()

    @abstractmethod
    def check(self, node: PlanNode) -> PlanWarning | None:
        """
        Evaluate the rule against one node.

        Returns:
            A warning if the rule fires, otherwise None
        """

    def warn(
        self,
        message: str,
        suggestion: str,
        details: dict[str, float] | None = None,
        severity: Severity | None = None,
    ) -> PlanWarning:
        """Build a warning of this rule's kind."""
        return PlanWarning(
            kind=self.kind,
            severity=severity or self.severity,
            message=message,
            suggestion=suggestion,
            details=details,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value!r})"


def target_name(node: PlanNode) -> str:
    """Table (or CTE/function) the node works on, for messages."""
    return node.relation_name or node.cte_name or node.function_name or "this relation"
