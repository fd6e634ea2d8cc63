"""
Typed, tolerant accessors over a generic EXPLAIN node.

EXPLAIN (FORMAT JSON) omits dozens of keys depending on the options that
produced it (ANALYZE, BUFFERS, VERBOSE, WAL) and on the node type. Every
accessor here returns None when a key is absent or holds a value of the
wrong runtime shape (including non-finite numbers); none of them raise.
"""

from __future__ import annotations

import math
from typing import Any


class FieldExtractor:
    """
    Read typed values out of one plan node mapping.

    Example:
        fields = FieldExtractor({"Node Type": "Seq Scan", "Plan Rows": 42})
        fields.get_str("Node Type")     # "Seq Scan"
        fields.get_int("Plan Rows")     # 42
        fields.get_float("Plan Rows")   # 42.0
        fields.get_str("Filter")        # None
    """

    __slots__ = ("_data",)

    def __init__(self, data: dict[str, Any]) -> None:
        self._data = data

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def get_str(self, key: str) -> str | None:
        value = self._data.get(key)
        return value if isinstance(value, str) else None

    def get_float(self, key: str) -> float | None:
        value = self._data.get(key)
        # bool is an int subclass; "true" is never a measurement
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        if not math.isfinite(value):
            return None
        return float(value)

    def get_int(self, key: str) -> int | None:
        value = self._data.get(key)
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return None

    def get_count(self, key: str) -> int | None:
        """Row count; PostgreSQL 18 reports fractional per-loop averages."""
        value = self.get_float(key)
        return None if value is None else int(round(value))

    def get_bool(self, key: str) -> bool | None:
        value = self._data.get(key)
        return value if isinstance(value, bool) else None

    def get_list(self, key: str) -> list[Any] | None:
        value = self._data.get(key)
        return value if isinstance(value, list) else None

    def get_str_list(self, key: str) -> list[str] | None:
        """List of strings; non-string items are dropped."""
        values = self.get_list(key)
        if values is None:
            return None
        return [v for v in values if isinstance(v, str)]

    def get_dict(self, key: str) -> dict[str, Any] | None:
        value = self._data.get(key)
        return value if isinstance(value, dict) else None

    def get_float_or(self, key: str, default: float = 0.0) -> float:
        value = self.get_float(key)
        return default if value is None else value

    def get_int_or(self, key: str, default: int = 0) -> int:
        value = self.get_int(key)
        return default if value is None else value
