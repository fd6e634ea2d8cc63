"""
Pydantic models for an analyzed PostgreSQL execution plan.

The structure is:
- QueryPlanAnalysis: Root envelope with plan-level timing, triggers and JIT info
- PlanNode: Recursive structure representing each operator in the plan tree
- PlanWarning: A diagnostic attached to exactly one PlanNode
- TimelineInterval: Derived row layout for a node, never stored in the envelope

The PostgreSQL wire format ("Title Case" keys) is read by the parser through
FieldExtractor. These models use snake_case names and are the interchange
format: QueryPlanAnalysis round-trips losslessly through to_json()/from_json().

Reference: https://www.postgresql.org/docs/current/using-explain.html
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field


class PlanFormat(str, Enum):
    """EXPLAIN output formats. Only JSON is parsed into a tree."""
    JSON = "json"
    TEXT = "text"
    XML = "xml"
    YAML = "yaml"


class Severity(str, Enum):
    """
    Severity levels for warnings.

    CRITICAL: Severe performance impact, fix first
    WARNING: Significant performance issue that should be addressed
    INFO: Optimization opportunity
    """
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"

    def __lt__(self, other: object) -> bool:
        """Enable sorting by severity (CRITICAL > WARNING > INFO)."""
        if not isinstance(other, Severity):
            return NotImplemented
        order = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}
        return order[self] < order[other]


class WarningKind(str, Enum):
    """Closed set of diagnostic categories a node can be flagged with."""
    LARGE_SEQ_SCAN = "large_seq_scan"
    ESTIMATE_MISMATCH = "estimate_mismatch"
    HOT_NESTED_LOOP = "hot_nested_loop"
    DISK_SORT = "disk_sort"
    HASH_SPILL = "hash_spill"
    OVER_FILTERING = "over_filtering"
    LOW_CACHE_HIT = "low_cache_hit"
    PARALLEL_SHORTFALL = "parallel_shortfall"
    LOSSY_BITMAP = "lossy_bitmap"


class ExplainOptions(BaseModel):
    """
    The EXPLAIN options that produced a raw plan.

    Mirrors EXPLAIN (ANALYZE, VERBOSE, COSTS, BUFFERS, TIMING, WAL, SETTINGS,
    SUMMARY, FORMAT). The engine never runs the statement; these are
    recorded as provenance and `format` decides whether a tree is built.
    """

    model_config = ConfigDict(frozen=True)

    analyze: bool = Field(default=False, description="Query was executed and measured")
    verbose: bool = False
    costs: bool = True
    buffers: bool = False
    timing: bool = True
    wal: bool = False
    settings: bool = False
    summary: bool = False
    format: PlanFormat = PlanFormat.JSON


class PlanWarning(BaseModel):
    """
    A performance anti-pattern detected on one plan node.

    Attributes:
        kind: Which rule fired.
        severity: How serious the issue is.
        message: Human-readable one-line summary.
        suggestion: Actionable fix recommendation.
        details: Quantitative data behind the warning.
    """

    model_config = ConfigDict(frozen=True)

    kind: WarningKind
    severity: Severity
    message: str = Field(..., min_length=1)
    suggestion: str = Field(..., min_length=1)
    details: dict[str, float] | None = None


class WorkerDetail(BaseModel):
    """Per-worker measurements reported under a parallel-aware node."""

    worker_number: int | None = None
    actual_startup_time: float | None = None
    actual_total_time: float | None = None
    actual_rows: int | None = None
    actual_loops: int | None = None
    sort_method: str | None = None
    sort_space_used: int | None = None
    sort_space_type: str | None = None
    shared_hit_blocks: int | None = None
    shared_read_blocks: int | None = None
    temp_read_blocks: int | None = None
    temp_written_blocks: int | None = None


class TriggerTiming(BaseModel):
    """Time spent in one trigger (EXPLAIN ANALYZE of a modifying statement)."""

    trigger_name: str
    constraint_name: str | None = None
    relation: str | None = None
    time_ms: float | None = None
    calls: int | None = None


class JitInfo(BaseModel):
    """JIT compilation statistics (PostgreSQL 11+)."""

    worker_number: int | None = None
    functions: int | None = None
    options: dict[str, bool] = Field(default_factory=dict)
    timing: dict[str, float] = Field(default_factory=dict)

    @property
    def total_time_ms(self) -> float | None:
        return self.timing.get("Total")


class PlanNode(BaseModel):
    """
    A single operator in the execution plan.

    Each node exclusively owns its `children`; there are no back references.
    The parser fills the extracted fields; the metrics and warning passes
    fill the computed-only fields afterwards.

    Fields are divided into:
    - Identity and cost estimates: present on all nodes
    - Actuals: only when the plan was executed (ANALYZE)
    - I/O counters: only when BUFFERS was requested
    - Node-specific counters: sort, hash, bitmap, parallel
    - Computed-only: depth, percent_of_total, exclusive_time_ms, is_slowest, warnings
    """

    # =========================================================================
    # Identity
    # =========================================================================

    node_id: str = Field(..., description="Unique within one analysis")
    node_type: str
    parent_relationship: str | None = None
    subplan_name: str | None = None
    relation_name: str | None = None
    alias: str | None = None
    schema_name: str | None = None
    index_name: str | None = None
    cte_name: str | None = None
    function_name: str | None = None
    join_type: str | None = None
    strategy: str | None = None
    scan_direction: str | None = None
    parallel_aware: bool | None = None
    async_capable: bool | None = None
    output: list[str] | None = None

    # =========================================================================
    # Cost estimates (always present)
    # =========================================================================

    startup_cost: float = 0.0
    total_cost: float = 0.0
    plan_rows: int = 0
    plan_width: int = 0

    # =========================================================================
    # Actuals (ANALYZE only)
    # =========================================================================

    actual_startup_time: float | None = None
    actual_total_time: float | None = None
    actual_rows: int | None = None
    actual_loops: int | None = None

    # =========================================================================
    # Predicates (opaque text)
    # =========================================================================

    filter: str | None = None
    index_cond: str | None = None
    recheck_cond: str | None = None
    join_filter: str | None = None
    hash_cond: str | None = None
    merge_cond: str | None = None
    sort_key: list[str] | None = None
    group_key: list[str] | None = None

    # =========================================================================
    # Row removal
    # =========================================================================

    rows_removed_by_filter: int | None = None
    rows_removed_by_index_recheck: int | None = None
    rows_removed_by_join_filter: int | None = None
    rows_removed: int | None = Field(
        default=None,
        description="Sum of whichever rows-removed sources are present",
    )
    heap_fetches: int | None = None
    exact_heap_blocks: int | None = None
    lossy_heap_blocks: int | None = None

    # =========================================================================
    # I/O counters (BUFFERS only)
    # =========================================================================

    shared_hit_blocks: int | None = None
    shared_read_blocks: int | None = None
    shared_dirtied_blocks: int | None = None
    shared_written_blocks: int | None = None
    local_hit_blocks: int | None = None
    local_read_blocks: int | None = None
    local_dirtied_blocks: int | None = None
    local_written_blocks: int | None = None
    temp_read_blocks: int | None = None
    temp_written_blocks: int | None = None
    io_read_time: float | None = None
    io_write_time: float | None = None

    # WAL (WAL only)
    wal_records: int | None = None
    wal_fpi: int | None = None
    wal_bytes: int | None = None

    # =========================================================================
    # Parallel, sort and hash counters
    # =========================================================================

    workers_planned: int | None = None
    workers_launched: int | None = None
    workers: list[WorkerDetail] = Field(default_factory=list)

    sort_method: str | None = None
    sort_space_used: int | None = None
    sort_space_type: str | None = None

    hash_buckets: int | None = None
    original_hash_buckets: int | None = None
    hash_batches: int | None = None
    original_hash_batches: int | None = None
    peak_memory_usage: int | None = None

    # =========================================================================
    # Tree structure and computed-only fields
    # =========================================================================

    children: list[PlanNode] = Field(default_factory=list)
    depth: int = Field(default=0, ge=0)

    percent_of_total: float = Field(default=0.0, ge=0.0)
    exclusive_time_ms: float = Field(default=0.0, ge=0.0)
    is_slowest: bool = False
    warnings: list[PlanWarning] = Field(default_factory=list)

    # =========================================================================
    # Computed properties
    # =========================================================================

    @property
    def has_actuals(self) -> bool:
        """Check if measured timing is present on this node."""
        return self.actual_total_time is not None

    @property
    def row_count(self) -> int:
        """Actual rows when measured, otherwise the planner's estimate."""
        return self.actual_rows if self.actual_rows is not None else self.plan_rows

    @property
    def buffer_hit_ratio(self) -> float | None:
        """
        Share of shared-buffer accesses served from cache.

        Returns None without BUFFERS data or when nothing was accessed.
        """
        if self.shared_hit_blocks is None and self.shared_read_blocks is None:
            return None
        hits = self.shared_hit_blocks or 0
        total = hits + (self.shared_read_blocks or 0)
        if total == 0:
            return None
        return hits / total

    @property
    def label(self) -> str:
        """Short display label, e.g. 'Seq Scan on orders o'."""
        target = self.relation_name or self.cte_name or self.function_name
        if not target:
            return self.node_type
        if self.alias and self.alias != target:
            return f"{self.node_type} on {target} {self.alias}"
        return f"{self.node_type} on {target}"

    def iter_nodes(self) -> Iterator[PlanNode]:
        """Walk this node and all descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    @classmethod
    def placeholder(cls, node_id: str) -> PlanNode:
        """Degenerate root used when the plan format is not tree-parsed."""
        return cls(node_id=node_id, node_type="Unparsed")


class TimelineInterval(BaseModel):
    """
    One bar in the timeline view.

    Positions are percentages of the plan's grand total; `row` is assigned
    so that no two bars sharing a row overlap.
    """

    model_config = ConfigDict(frozen=True)

    node_id: str
    start_percent: float
    width_percent: float
    row: int = Field(..., ge=0)

    @property
    def end_percent(self) -> float:
        return self.start_percent + self.width_percent


class AnalysisError(BaseModel):
    """
    Result value for input that could not be parsed.

    The raw text is carried along so a presentation layer can still show
    the literal plan.
    """

    model_config = ConfigDict(frozen=True)

    kind: str = "malformed"
    message: str = "could not parse execution plan"
    detail: str | None = None
    location: str = "$"
    raw_text: str


class QueryPlanAnalysis(BaseModel):
    """
    Root envelope for one analyzed plan.

    For non-JSON formats no tree is built: `root_node` is a placeholder and
    `raw_text` holds the input verbatim. Check `is_tree_available` (or
    `format`) before expecting node-level data.

    Usage:
        analysis = analyze(raw, ExplainOptions(analyze=True))
        for node in analysis.iter_nodes():
            for warning in node.warnings:
                print(node.label, warning.message)
    """

    model_config = ConfigDict(frozen=True)

    format: PlanFormat
    root_node: PlanNode
    options: ExplainOptions = Field(default_factory=ExplainOptions)
    planning_time_ms: float | None = None
    execution_time_ms: float | None = None
    total_time_ms: float = 0.0
    trigger_timings: list[TriggerTiming] = Field(default_factory=list)
    jit_info: JitInfo | None = None
    query_text: str | None = None
    settings: dict[str, str] | None = None
    raw_text: str | None = None

    # =========================================================================
    # Computed properties
    # =========================================================================

    @property
    def is_tree_available(self) -> bool:
        return self.format is PlanFormat.JSON

    @property
    def node_count(self) -> int:
        if not self.is_tree_available:
            return 0
        return sum(1 for _ in self.root_node.iter_nodes())

    @property
    def slowest_node(self) -> PlanNode | None:
        return next((n for n in self.iter_nodes() if n.is_slowest), None)

    def iter_nodes(self) -> Iterator[PlanNode]:
        """All nodes in pre-order; empty for non-JSON formats."""
        if not self.is_tree_available:
            return iter(())
        return self.root_node.iter_nodes()

    def find_node(self, node_id: str) -> PlanNode | None:
        return next((n for n in self.iter_nodes() if n.node_id == node_id), None)

    def all_warnings(self) -> list[tuple[PlanNode, PlanWarning]]:
        """Every warning with its node, most severe first."""
        pairs = [(node, w) for node in self.iter_nodes() for w in node.warnings]
        return sorted(pairs, key=lambda pair: pair[1].severity)

    # =========================================================================
    # Interchange
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    def to_json(self, indent: int | None = None) -> str:
        return self.model_dump_json(indent=indent)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QueryPlanAnalysis:
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, text: str) -> QueryPlanAnalysis:
        return cls.model_validate_json(text)
