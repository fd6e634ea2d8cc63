"""Heuristic warning detection over plan nodes."""

from planscope.detector.detector import WarningDetector
from planscope.detector.registry import RuleRegistry, get_registry, register_rule
from planscope.detector.rules import Rule

__all__ = [
    "WarningDetector",
    "Rule",
    "RuleRegistry",
    "get_registry",
    "register_rule",
]
