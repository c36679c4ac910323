"""
Pydantic schemas for rule endpoints.

`RuleFields` is the bound request body for create and edit. Only the
shape is enforced here (types, defaults); business checks such as
pattern syntax or "at least one condition" live in
`vigil.rules.validation` so they surface as domain errors.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from vigil.models.rule import RuleLevel


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================


class RuleFields(BaseModel):
    """
    Request body for POST /projects/{id}/rules and PUT /rules/{id}.

    Example:
        {
            "pattern": "svc.*.latency",
            "trend_up": true,
            "comment": "latency going up",
            "level": 0
        }
    """

    pattern: str = Field(
        default="",
        description="Metric name pattern, '*' matches within one segment",
        examples=["svc.*.latency", "timer.count_ps.api.*"],
    )
    trend_up: bool = False
    trend_down: bool = False
    threshold_max: float = 0.0
    threshold_min: float = 0.0
    comment: str = Field(
        default="",
        description="What this rule watches (required)",
    )
    level: int = Field(
        default=int(RuleLevel.LOW),
        description="Severity: 0=low, 1=medium, 2=high",
    )
    disabled: bool = False
    disabled_for: int = Field(
        default=0,
        description="Minutes the rule stays disabled",
    )
    track_idle: bool = False
    never_fill_zero: bool = False


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================


class RuleRead(BaseModel):
    """
    Immutable snapshot of a persisted rule.

    This is what the rule cache stores: frozen, so a reader holding one
    can never see it change underneath.
    """

    id: int
    project_id: int
    pattern: str
    trend_up: bool
    trend_down: bool
    threshold_max: float
    threshold_min: float
    comment: str
    level: int
    disabled: bool
    disabled_for: int
    disabled_at: Optional[datetime] = None
    track_idle: bool
    never_fill_zero: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True, "frozen": True}


class RuleResponse(RuleRead):
    """
    Rule returned from the API, enriched with the live metric count.

    Example:
        {
            "id": 1,
            "project_id": 1,
            "pattern": "svc.*.latency",
            ...
            "num_metrics": 3
        }
    """

    num_metrics: int = 0

    @classmethod
    def from_snapshot(cls, snapshot: RuleRead, num_metrics: int) -> "RuleResponse":
        return cls(**snapshot.model_dump(), num_metrics=num_metrics)


class RuleListResponse(BaseModel):
    """List of rules (no pagination - a project has few rules)."""

    items: list[RuleResponse]
    total: int
