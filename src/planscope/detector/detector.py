"""
WarningDetector - runs every enabled rule against every plan node.

Rules are purely local to one node, so each node is evaluated
independently and a node may collect zero, one or several warnings.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from planscope.config import get_config
from planscope.detector.registry import get_registry

# Registers the built-in rules
import planscope.detector.rules  # noqa: F401

if TYPE_CHECKING:
    from planscope.config import Config
    from planscope.detector.rules.base import Rule
    from planscope.parser.models import PlanNode, PlanWarning

logger = logging.getLogger(__name__)


class WarningDetector:
    """
    Attach performance warnings to plan nodes.

    Example:
        detector = WarningDetector()
        count = detector.detect(analysis.root_node)
        for node in analysis.iter_nodes():
            for warning in node.warnings:
                print(node.label, warning.severity, warning.message)
    """

    def __init__(
        self,
        config: Config | None = None,
        rules: list[Rule] | None = None,
    ) -> None:
        """
        Args:
            config: Thresholds and disabled rules. Defaults to get_config().
            rules: Explicit rule instances; bypasses the registry (for testing).
        """
        self.config = config or get_config()

        if rules is not None:
            self.rules = rules
        else:
            self.rules = [
                rule_cls(self.config.thresholds)
                for rule_cls in get_registry().filter(exclude=self.config.disabled_rules)
            ]

    def check_node(self, node: PlanNode) -> int:
        """
        Evaluate every rule against one node, replacing its warnings.

        Re-running on the same node yields the same list, never duplicates.

        Returns:
            Number of warnings now attached to the node
        """
        warnings: list[PlanWarning] = []
        for rule in self.rules:
            warning = rule.check(node)
            if warning is not None:
                warnings.append(warning)
        node.warnings = warnings
        return len(warnings)

    def detect(self, root: PlanNode) -> int:
        """
        Evaluate every rule against every node in the tree.

        Returns:
            Total number of warnings attached
        """
        total = sum(self.check_node(node) for node in root.iter_nodes())
        logger.debug("Detected %d warnings using %d rules", total, len(self.rules))
        return total
