"""
Configuration system for PlanScope.

Warning thresholds are fixed heuristics, but they are exposed as named
constants and a frozen config model so they can be tested and tuned
independently of the rule logic.

Sources, in order of precedence:
- PLANSCOPE_CONFIG_FILE (JSON) if set
- Environment variables
- Built-in defaults

Usage:
    from planscope.config import get_config

    config = get_config()
    config.thresholds.large_seq_scan_rows   # 10000
    config.is_rule_enabled(WarningKind.DISK_SORT)

Environment variables:
    PLANSCOPE_LARGE_SEQ_SCAN_ROWS=50000
    PLANSCOPE_BUFFER_HIT_RATIO=0.95
    PLANSCOPE_DISABLED_RULES=over_filtering,parallel_shortfall
    PLANSCOPE_MAX_DEPTH=200
    PLANSCOPE_MAX_NODES=100000
"""

from __future__ import annotations

import json
import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from planscope.exceptions import ConfigurationError
from planscope.parser.config import ParserConfig
from planscope.parser.models import WarningKind

logger = logging.getLogger(__name__)

ENV_PREFIX = "PLANSCOPE_"

# Default warning thresholds
LARGE_SEQ_SCAN_ROWS = 10_000
ESTIMATE_RATIO_WARNING = 10.0
ESTIMATE_RATIO_CRITICAL = 100.0
NESTED_LOOP_MAX_LOOPS = 1_000
HASH_MAX_BATCHES = 1
OVER_FILTER_RATIO = 0.9
BUFFER_MIN_ACCESSES = 100
BUFFER_HIT_RATIO = 0.90
LOSSY_BITMAP_RATIO = 0.5

TIMELINE_MIN_WIDTH_PERCENT = 1.0


class WarningThresholds(BaseModel):
    """
    Thresholds for the per-node warning rules.

    Attributes:
        large_seq_scan_rows: Row count above which a sequential scan is flagged.
        estimate_ratio_warning: actual/estimated rows outside [1/x, x] is a warning.
        estimate_ratio_critical: actual/estimated rows outside [1/x, x] is critical.
        nested_loop_max_loops: Loop count above which a nested loop is hot.
        hash_max_batches: Hash batch count above which the hash spilled.
        over_filter_ratio: Share of rows discarded above which filtering is wasteful.
        buffer_min_accesses: Minimum hits+reads before cache hit ratio is judged.
        buffer_hit_ratio: Shared buffer hit ratio below which caching is poor.
        lossy_bitmap_ratio: Share of lossy heap blocks above which a bitmap is degraded.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    large_seq_scan_rows: int = Field(default=LARGE_SEQ_SCAN_ROWS, ge=0)
    estimate_ratio_warning: float = Field(default=ESTIMATE_RATIO_WARNING, gt=1.0)
    estimate_ratio_critical: float = Field(default=ESTIMATE_RATIO_CRITICAL, gt=1.0)
    nested_loop_max_loops: int = Field(default=NESTED_LOOP_MAX_LOOPS, ge=0)
    hash_max_batches: int = Field(default=HASH_MAX_BATCHES, ge=1)
    over_filter_ratio: float = Field(default=OVER_FILTER_RATIO, ge=0.0, le=1.0)
    buffer_min_accesses: int = Field(default=BUFFER_MIN_ACCESSES, ge=0)
    buffer_hit_ratio: float = Field(default=BUFFER_HIT_RATIO, ge=0.0, le=1.0)
    lossy_bitmap_ratio: float = Field(default=LOSSY_BITMAP_RATIO, ge=0.0, le=1.0)


class Config(BaseModel):
    """
    PlanScope configuration.

    Loaded from environment variables and an optional JSON file.
    """

    model_config = ConfigDict(frozen=True)

    thresholds: WarningThresholds = Field(
        default_factory=WarningThresholds,
        description="Per-rule warning thresholds",
    )

    disabled_rules: frozenset[WarningKind] = Field(
        default_factory=frozenset,
        description="Warning kinds that are never emitted",
    )

    parser: ParserConfig = Field(
        default_factory=ParserConfig,
        description="Parser resource limits",
    )

    timeline_min_width_percent: float = Field(
        default=TIMELINE_MIN_WIDTH_PERCENT,
        ge=0.0,
        le=100.0,
        description="Minimum rendered width of a timeline bar",
    )

    @field_validator("disabled_rules", mode="before")
    @classmethod
    def _split_rule_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    def is_rule_enabled(self, kind: WarningKind) -> bool:
        """Check if a warning rule is enabled."""
        return kind not in self.disabled_rules


def _parse_env_number(key: str, value: str) -> int | float:
    """Parse a numeric environment variable, keeping ints as ints."""
    try:
        return float(value) if "." in value else int(value)
    except ValueError as e:
        raise ConfigurationError(
            f"Could not parse {key}={value!r} as a number",
            config_key=key,
        ) from e


def _build_config(data: dict[str, Any], origin: str) -> Config:
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(x) for x in first["loc"])
        raise ConfigurationError(
            f"Invalid configuration from {origin}: {key}: {first['msg']}",
            config_key=key,
        ) from e


def load_config_from_env(environ: Mapping[str, str] | None = None) -> Config:
    """
    Load configuration from environment variables.

    Each threshold field maps to PLANSCOPE_<FIELD_NAME_UPPER>.

    Raises:
        ConfigurationError: If a value is not numeric or out of range,
            or if an unknown rule is disabled.
    """
    env: Mapping[str, str] = os.environ if environ is None else environ

    thresholds: dict[str, int | float] = {}
    for name in WarningThresholds.model_fields:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in env:
            thresholds[name] = _parse_env_number(key, env[key])

    data: dict[str, Any] = {"thresholds": thresholds}

    limits: dict[str, int | float] = {}
    for name in ParserConfig.model_fields:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in env:
            limits[name] = _parse_env_number(key, env[key])
    data["parser"] = limits

    key = f"{ENV_PREFIX}TIMELINE_MIN_WIDTH_PERCENT"
    if key in env:
        data["timeline_min_width_percent"] = _parse_env_number(key, env[key])

    disabled = env.get(f"{ENV_PREFIX}DISABLED_RULES")
    if disabled:
        data["disabled_rules"] = disabled

    return _build_config(data, "environment")


def load_config_from_file(path: Path) -> Config:
    """
    Load configuration from a JSON file.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file: {path}", config_key=str(path)) from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Config file is not valid JSON: {path} (line {e.lineno}, column {e.colno})",
            config_key=str(path),
        ) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config file must contain a JSON object: {path}",
            config_key=str(path),
        )

    config = _build_config(data, str(path))
    logger.info("Loaded PlanScope config from %s", path)
    return config


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the global configuration instance.

    Loads from PLANSCOPE_CONFIG_FILE if set, else from the environment.
    Result is cached for the lifetime of the process.
    """
    config_file = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")

    if config_file:
        return load_config_from_file(Path(config_file))

    return load_config_from_env()


def reset_config() -> None:
    """Reset the cached configuration (mainly for testing)."""
    get_config.cache_clear()
