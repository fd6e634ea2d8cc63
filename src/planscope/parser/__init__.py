"""EXPLAIN plan parsing module."""

from planscope.parser.config import DEFAULT_CONFIG, ParserConfig
from planscope.parser.fields import FieldExtractor
from planscope.parser.models import (
    AnalysisError,
    ExplainOptions,
    PlanFormat,
    PlanNode,
    PlanWarning,
    QueryPlanAnalysis,
    Severity,
    TimelineInterval,
    WarningKind,
)
from planscope.parser.parser import parse_plan

__all__ = [
    "AnalysisError",
    "ExplainOptions",
    "FieldExtractor",
    "PlanFormat",
    "PlanNode",
    "PlanWarning",
    "QueryPlanAnalysis",
    "Severity",
    "TimelineInterval",
    "WarningKind",
    "parse_plan",
    "ParserConfig",
    "DEFAULT_CONFIG",
]
