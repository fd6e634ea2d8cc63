"""
Parser for PostgreSQL EXPLAIN output.

This module handles:
- Decoding EXPLAIN (FORMAT JSON) text
- Validating the single-element array / 'Plan' object shape
- Building a strongly-typed PlanNode tree by recursive descent
- Extracting root-level metadata (planning/execution time, triggers, JIT)
- Enforcing resource limits (depth, node count)

TEXT, XML and YAML output is never tree-parsed: the raw text is kept
verbatim and the analysis carries a placeholder root.

Error handling philosophy: Fail fast with a location hint. Unknown keys are
always ignored because the wire format grows with every PostgreSQL release;
missing optional keys default to None.
"""

from __future__ import annotations

import json
import logging
import math
import uuid
from typing import Any

from planscope.exceptions import MalformedPlanError
from planscope.parser.config import DEFAULT_CONFIG, ParserConfig
from planscope.parser.fields import FieldExtractor
from planscope.parser.models import (
    ExplainOptions,
    JitInfo,
    PlanFormat,
    PlanNode,
    QueryPlanAnalysis,
    TriggerTiming,
    WorkerDetail,
)

logger = logging.getLogger(__name__)

ROWS_REMOVED_KEYS = (
    "Rows Removed by Filter",
    "Rows Removed by Index Recheck",
    "Rows Removed by Join Filter",
)

_BODY_LOCATION = "$[0]"


def new_node_id() -> str:
    """Fresh node id; unique within (and across) analyses."""
    return uuid.uuid4().hex


def parse_plan(
    raw: str,
    options: ExplainOptions | None = None,
    config: ParserConfig | None = None,
) -> QueryPlanAnalysis:
    """
    Parse raw EXPLAIN output into a QueryPlanAnalysis.

    The returned tree carries extracted fields only; metrics and warnings
    are left at their defaults for the later passes.

    Args:
        raw: EXPLAIN output exactly as the database returned it
        options: The EXPLAIN options that produced `raw`. Defaults to
            plain EXPLAIN (FORMAT JSON).
        config: Parser configuration with resource limits. If None,
            uses DEFAULT_CONFIG (depth 100, 50K nodes).

    Returns:
        QueryPlanAnalysis with an unannotated tree (JSON), or with a
        placeholder root and `raw_text` set (TEXT/XML/YAML)

    Raises:
        MalformedPlanError: If JSON input does not have the EXPLAIN shape
            or exceeds resource limits
    """
    options = options or ExplainOptions()
    config = config or DEFAULT_CONFIG

    if options.format is not PlanFormat.JSON:
        logger.debug("Keeping %s plan as raw text (%d chars)", options.format.value, len(raw))
        return QueryPlanAnalysis(
            format=options.format,
            root_node=PlanNode.placeholder(new_node_id()),
            options=options,
            raw_text=raw,
        )

    data = _decode_json(raw)
    body = _unwrap_array(data)
    base = _BODY_LOCATION if isinstance(data, list) else "$"

    plan = body.get("Plan")
    if not isinstance(plan, dict):
        raise MalformedPlanError(
            "Missing 'Plan' object - this doesn't look like EXPLAIN output",
            location=f"{base}.Plan",
            detail="EXPLAIN (FORMAT JSON) output must contain a 'Plan' object",
        )

    builder = _TreeBuilder(max_depth=config.max_depth, max_nodes=config.max_nodes)
    root = builder.build(plan, depth=0, location=f"{base}.Plan")

    analysis = _build_envelope(FieldExtractor(body), root, options)
    logger.debug(
        "Parsed plan: %d nodes, root %r, measured=%s",
        builder.node_count,
        root.node_type,
        root.has_actuals,
    )
    return analysis


def _decode_json(raw: str) -> Any:
    if not raw or not raw.strip():
        raise MalformedPlanError("Empty input - no EXPLAIN output found", source="json_decode")

    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except json.JSONDecodeError as e:
        raise MalformedPlanError(
            "Invalid JSON format",
            location=f"line {e.lineno}, column {e.colno}",
            source="json_decode",
            detail=e.msg,
        ) from e
    except RecursionError as e:
        raise MalformedPlanError(
            "Plan too deeply nested to decode",
            source="resource_limit",
            detail="JSON nesting exceeds the interpreter recursion limit",
        ) from e


def _reject_constant(name: str) -> Any:
    """NaN and Infinity are not JSON; PostgreSQL never emits them."""
    raise MalformedPlanError(
        f"Invalid JSON constant {name!r}",
        source="json_decode",
        detail="NaN, Infinity and -Infinity are not valid JSON numbers",
    )


def _unwrap_array(data: Any) -> dict[str, Any]:
    """
    Unwrap the single-element array that PostgreSQL EXPLAIN returns.

    EXPLAIN (FORMAT JSON) returns: [{"Plan": {...}}]
    We want just: {"Plan": {...}}
    """
    if isinstance(data, dict):
        return data

    if not isinstance(data, list):
        raise MalformedPlanError(
            f"Expected array or object, got {type(data).__name__}",
            detail="PostgreSQL EXPLAIN (FORMAT JSON) returns a single-element array",
        )

    if len(data) == 0:
        raise MalformedPlanError(
            "Empty array - no EXPLAIN output found",
            detail="PostgreSQL EXPLAIN (FORMAT JSON) returns a single-element array",
        )

    if len(data) > 1:
        raise MalformedPlanError(
            f"Expected single EXPLAIN output, got {len(data)} elements",
            detail="Did you concatenate multiple EXPLAIN outputs? Analyze one at a time.",
        )

    inner = data[0]
    if not isinstance(inner, dict):
        raise MalformedPlanError(
            f"Expected object inside array, got {type(inner).__name__}",
            location=_BODY_LOCATION,
        )

    return inner


class _TreeBuilder:
    """Recursive descent over 'Plans', counting nodes against the limits."""

    def __init__(self, max_depth: int, max_nodes: int) -> None:
        self.max_depth = max_depth
        self.max_nodes = max_nodes
        self.node_count = 0

    def build(self, data: dict[str, Any], depth: int, location: str) -> PlanNode:
        if depth >= self.max_depth:
            raise MalformedPlanError(
                f"Plan too deeply nested: depth exceeds {self.max_depth}",
                location=location,
                source="resource_limit",
                detail="This may indicate a pathological query or corrupted EXPLAIN output",
            )

        self.node_count += 1
        if self.node_count > self.max_nodes:
            raise MalformedPlanError(
                f"Plan too large: more than {self.max_nodes:,} nodes",
                location=location,
                source="resource_limit",
                detail="Consider analyzing a simpler query or increasing max_nodes in config",
            )

        fields = FieldExtractor(data)
        if fields.get_str("Node Type") is None:
            raise MalformedPlanError(
                "Plan node is missing required key 'Node Type'",
                location=location,
            )

        children: list[PlanNode] = []
        for index, child in enumerate(fields.get_list("Plans") or []):
            child_location = f"{location}.Plans[{index}]"
            if not isinstance(child, dict):
                raise MalformedPlanError(
                    f"Expected plan node object, got {type(child).__name__}",
                    location=child_location,
                )
            children.append(self.build(child, depth + 1, child_location))

        return _build_node(fields, children, depth)


def _rows_removed(fields: FieldExtractor) -> int | None:
    """Sum of the rows-removed sources present; None iff all are absent."""
    present = [v for v in (fields.get_count(k) for k in ROWS_REMOVED_KEYS) if v is not None]
    return sum(present) if present else None


def _build_node(fields: FieldExtractor, children: list[PlanNode], depth: int) -> PlanNode:
    return PlanNode(
        node_id=new_node_id(),
        node_type=fields.get_str("Node Type") or "",
        parent_relationship=fields.get_str("Parent Relationship"),
        subplan_name=fields.get_str("Subplan Name"),
        relation_name=fields.get_str("Relation Name"),
        alias=fields.get_str("Alias"),
        schema_name=fields.get_str("Schema"),
        index_name=fields.get_str("Index Name"),
        cte_name=fields.get_str("CTE Name"),
        function_name=fields.get_str("Function Name"),
        join_type=fields.get_str("Join Type"),
        strategy=fields.get_str("Strategy"),
        scan_direction=fields.get_str("Scan Direction"),
        parallel_aware=fields.get_bool("Parallel Aware"),
        async_capable=fields.get_bool("Async Capable"),
        output=fields.get_str_list("Output"),
        startup_cost=fields.get_float_or("Startup Cost"),
        total_cost=fields.get_float_or("Total Cost"),
        plan_rows=fields.get_count("Plan Rows") or 0,
        plan_width=fields.get_int_or("Plan Width"),
        actual_startup_time=fields.get_float("Actual Startup Time"),
        actual_total_time=fields.get_float("Actual Total Time"),
        actual_rows=fields.get_count("Actual Rows"),
        actual_loops=fields.get_int("Actual Loops"),
        filter=fields.get_str("Filter"),
        index_cond=fields.get_str("Index Cond"),
        recheck_cond=fields.get_str("Recheck Cond"),
        join_filter=fields.get_str("Join Filter"),
        hash_cond=fields.get_str("Hash Cond"),
        merge_cond=fields.get_str("Merge Cond"),
        sort_key=fields.get_str_list("Sort Key"),
        group_key=fields.get_str_list("Group Key"),
        rows_removed_by_filter=fields.get_count("Rows Removed by Filter"),
        rows_removed_by_index_recheck=fields.get_count("Rows Removed by Index Recheck"),
        rows_removed_by_join_filter=fields.get_count("Rows Removed by Join Filter"),
        rows_removed=_rows_removed(fields),
        heap_fetches=fields.get_int("Heap Fetches"),
        exact_heap_blocks=fields.get_int("Exact Heap Blocks"),
        lossy_heap_blocks=fields.get_int("Lossy Heap Blocks"),
        shared_hit_blocks=fields.get_int("Shared Hit Blocks"),
        shared_read_blocks=fields.get_int("Shared Read Blocks"),
        shared_dirtied_blocks=fields.get_int("Shared Dirtied Blocks"),
        shared_written_blocks=fields.get_int("Shared Written Blocks"),
        local_hit_blocks=fields.get_int("Local Hit Blocks"),
        local_read_blocks=fields.get_int("Local Read Blocks"),
        local_dirtied_blocks=fields.get_int("Local Dirtied Blocks"),
        local_written_blocks=fields.get_int("Local Written Blocks"),
        temp_read_blocks=fields.get_int("Temp Read Blocks"),
        temp_written_blocks=fields.get_int("Temp Written Blocks"),
        # PostgreSQL 17 renamed these to "Shared I/O Read Time"
        io_read_time=_first_float(fields, "I/O Read Time", "Shared I/O Read Time"),
        io_write_time=_first_float(fields, "I/O Write Time", "Shared I/O Write Time"),
        wal_records=fields.get_int("WAL Records"),
        wal_fpi=fields.get_int("WAL FPI"),
        wal_bytes=fields.get_int("WAL Bytes"),
        workers_planned=fields.get_int("Workers Planned"),
        workers_launched=fields.get_int("Workers Launched"),
        workers=[
            _build_worker(FieldExtractor(w))
            for w in fields.get_list("Workers") or []
            if isinstance(w, dict)
        ],
        sort_method=fields.get_str("Sort Method"),
        sort_space_used=fields.get_int("Sort Space Used"),
        sort_space_type=fields.get_str("Sort Space Type"),
        hash_buckets=fields.get_int("Hash Buckets"),
        original_hash_buckets=fields.get_int("Original Hash Buckets"),
        hash_batches=fields.get_int("Hash Batches"),
        original_hash_batches=fields.get_int("Original Hash Batches"),
        peak_memory_usage=fields.get_int("Peak Memory Usage"),
        children=children,
        depth=depth,
    )


def _first_float(fields: FieldExtractor, *keys: str) -> float | None:
    for key in keys:
        value = fields.get_float(key)
        if value is not None:
            return value
    return None


def _build_worker(fields: FieldExtractor) -> WorkerDetail:
    return WorkerDetail(
        worker_number=fields.get_int("Worker Number"),
        actual_startup_time=fields.get_float("Actual Startup Time"),
        actual_total_time=fields.get_float("Actual Total Time"),
        actual_rows=fields.get_count("Actual Rows"),
        actual_loops=fields.get_int("Actual Loops"),
        sort_method=fields.get_str("Sort Method"),
        sort_space_used=fields.get_int("Sort Space Used"),
        sort_space_type=fields.get_str("Sort Space Type"),
        shared_hit_blocks=fields.get_int("Shared Hit Blocks"),
        shared_read_blocks=fields.get_int("Shared Read Blocks"),
        temp_read_blocks=fields.get_int("Temp Read Blocks"),
        temp_written_blocks=fields.get_int("Temp Written Blocks"),
    )


def _build_triggers(entries: list[Any] | None) -> list[TriggerTiming]:
    triggers: list[TriggerTiming] = []
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        fields = FieldExtractor(entry)
        triggers.append(TriggerTiming(
            trigger_name=fields.get_str("Trigger Name") or "unnamed",
            constraint_name=fields.get_str("Constraint Name"),
            relation=fields.get_str("Relation"),
            time_ms=fields.get_float("Time"),
            calls=fields.get_int("Calls"),
        ))
    return triggers


def _build_jit(data: dict[str, Any] | None) -> JitInfo | None:
    if data is None:
        return None
    fields = FieldExtractor(data)
    options = fields.get_dict("Options") or {}
    timing = fields.get_dict("Timing") or {}
    return JitInfo(
        worker_number=fields.get_int("Worker Number"),
        functions=fields.get_int("Functions"),
        options={k: v for k, v in options.items() if isinstance(v, bool)},
        # PostgreSQL 15+ nests Generation as {"Deform": .., "Total": ..}
        timing={
            k: float(v["Total"] if isinstance(v, dict) else v)
            for k, v in timing.items()
            if _is_number(v) or (isinstance(v, dict) and _is_number(v.get("Total")))
        },
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _build_envelope(
    fields: FieldExtractor,
    root: PlanNode,
    options: ExplainOptions,
) -> QueryPlanAnalysis:
    planning_time = fields.get_float("Planning Time")
    execution_time = fields.get_float("Execution Time")

    if execution_time is not None:
        total_time = (planning_time or 0.0) + execution_time
    elif root.actual_total_time is not None:
        total_time = root.actual_total_time
    else:
        total_time = root.total_cost

    settings = fields.get_dict("Settings")

    return QueryPlanAnalysis(
        format=PlanFormat.JSON,
        root_node=root,
        options=options,
        planning_time_ms=planning_time,
        execution_time_ms=execution_time,
        total_time_ms=total_time,
        trigger_timings=_build_triggers(fields.get_list("Triggers")),
        jit_info=_build_jit(fields.get_dict("JIT")),
        query_text=fields.get_str("Query Text"),
        settings={k: str(v) for k, v in settings.items()} if settings is not None else None,
    )
