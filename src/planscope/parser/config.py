"""
Resource limits for building a plan tree.

A plan is untrusted input: a corrupted or adversarial document can nest
thousands of levels deep or fan out into millions of nodes. The tree builder
checks both counts as it descends and rejects the plan with a
resource_limit MalformedPlanError once either is crossed.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ParserConfig(BaseModel):
    """
    Limits enforced while the tree is built.

    Attributes:
        max_nodes: Upper bound on the number of plan nodes. Real plans from
            partitioned tables with a huge Append stay well under it.
        max_depth: Upper bound on nesting. The builder recurses once per
            level, so this also bounds Python stack use.

    Example:
        # Plans pasted by end users
        limits = ParserConfig(max_nodes=1000, max_depth=32)
    """

    model_config = ConfigDict(frozen=True)

    max_nodes: int = Field(default=50_000, gt=0, description="Plan nodes allowed per analysis")
    max_depth: int = Field(default=100, gt=0, description="Nesting levels allowed below the root")


DEFAULT_CONFIG = ParserConfig()
