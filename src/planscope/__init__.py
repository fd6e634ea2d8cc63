"""PlanScope - execution plan analysis engine for PostgreSQL EXPLAIN output."""

__version__ = "0.1.0"
__license__ = "MIT"

# Exception hierarchy (import first so other modules can use it)
from planscope.exceptions import (
    PlanScopeError,
    MalformedPlanError,
    ConfigurationError,
)

from planscope.parser import (
    AnalysisError,
    ExplainOptions,
    FieldExtractor,
    PlanFormat,
    PlanNode,
    PlanWarning,
    QueryPlanAnalysis,
    Severity,
    TimelineInterval,
    WarningKind,
    parse_plan,
)
from planscope.config import Config, WarningThresholds, get_config
from planscope.metrics import propagate_metrics
from planscope.detector import WarningDetector
from planscope.timeline import build_timeline
from planscope.analyzer import PlanAnalyzer, analyze, analyze_or_raise

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "PlanScopeError",
    "MalformedPlanError",
    "ConfigurationError",
    # Models
    "AnalysisError",
    "ExplainOptions",
    "PlanFormat",
    "PlanNode",
    "PlanWarning",
    "QueryPlanAnalysis",
    "Severity",
    "TimelineInterval",
    "WarningKind",
    # Pipeline
    "FieldExtractor",
    "parse_plan",
    "propagate_metrics",
    "WarningDetector",
    "build_timeline",
    "PlanAnalyzer",
    "analyze",
    "analyze_or_raise",
    # Config
    "Config",
    "WarningThresholds",
    "get_config",
]
