"""
Package-level exception hierarchy for PlanScope.

All exceptions inherit from PlanScopeError, enabling:
- Catching all PlanScope errors with a single except clause
- Rich context fields for debugging (location, source, config_key)
- Structured serialization via to_dict() for JSON error responses

Hierarchy:
    PlanScopeError
    ├── MalformedPlanError  – Input is not a parseable execution plan
    └── ConfigurationError  – Invalid thresholds or config file
"""

from __future__ import annotations

from typing import Any


class PlanScopeError(Exception):
    """
    Base exception for all PlanScope errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON error responses."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }


# ── Parse Errors ─────────────────────────────────────────────────────────


class MalformedPlanError(PlanScopeError):
    """
    Raw input could not be interpreted as an execution plan.

    Raised for truncated JSON, a wrong top-level type, a missing 'Plan'
    object, a non-object child node, or a plan exceeding resource limits.

    Attributes:
        location: Where in the input the problem was found (e.g. "$[0].Plan.Plans[1]").
        source: Which stage rejected the input ("json_decode", "structure", "resource_limit").
        detail: Technical details for debugging (optional).
    """

    def __init__(
        self,
        message: str,
        *,
        location: str = "$",
        source: str = "structure",
        detail: str | None = None,
    ) -> None:
        self.location = location
        self.source = source
        self.detail = detail
        super().__init__(message)

    def __str__(self) -> str:
        text = f"{self.message} (at {self.location})"
        if self.detail:
            return f"{text}\n\nDetails: {self.detail}"
        return text

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["location"] = self.location
        result["source"] = self.source
        result["detail"] = self.detail
        return result


# ── Configuration Errors ─────────────────────────────────────────────────


class ConfigurationError(PlanScopeError):
    """
    A threshold, limit or rule name from the environment or a config file
    was rejected.

    Attributes:
        config_key: The configuration key that caused the error (if known).
    """

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result
