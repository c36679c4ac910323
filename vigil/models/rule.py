"""
Rule model - represents the 'rules' table in the database.

A rule selects metric names by pattern (e.g. "svc.*.latency") and says
when a metric should alert: on an upward/downward trend, or when it
crosses a fixed threshold. The evaluation path reads rules from the
in-memory rule cache, never from this table directly.
"""

import enum
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vigil.core.db import Base, UTCDateTime, utcnow

if TYPE_CHECKING:
    from vigil.models.project import Project


class RuleLevel(enum.IntEnum):
    """Alert severity. Stored as an integer."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2


class Rule(Base):
    """
    Rule model - an alerting condition bound to a project.

    Attributes:
        id: Primary key
        project_id: Owning project (immutable after creation)
        pattern: Metric name pattern, unique across all rules
        trend_up / trend_down: Alert on anomalous trend in that direction
        threshold_max / threshold_min: Fixed bounds, 0 means unset
        comment: Human description of the rule
        level: Severity (RuleLevel)
        disabled / disabled_for / disabled_at: Temporary muting
        track_idle: Alert when matching metrics stop arriving
        never_fill_zero: Do not treat missing points as zero
        created_at / updated_at: Bookkeeping timestamps
    """

    __tablename__ = "rules"

    id: Mapped[int] = mapped_column(primary_key=True)

    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id"),
        nullable=False,
        index=True,
    )

    # PATTERN
    # -------
    # Dot-separated segments, "*" matches within one segment.
    # Unique across ALL projects: two rules can't watch the same pattern.

    pattern: Mapped[str] = mapped_column(
        String(256),
        unique=True,
        nullable=False,
    )

    # CONDITIONS
    # ----------
    # At least one must be set (trend flag or non-zero threshold);
    # the validator enforces this before anything reaches the table.

    trend_up: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trend_down: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    threshold_max: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    threshold_min: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    comment: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=int(RuleLevel.LOW),
    )

    # DISABLE STATE
    # -------------
    # disabled_for is in minutes, counted from disabled_at.
    # disabled_at is reset to "now" on every create and edit.

    disabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    disabled_for: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    disabled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    track_idle: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    never_fill_zero: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Both timestamps are filled in Python, so the object holds the
    # written values right after commit without a reload.

    created_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    updated_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    # ==========================================================================
    # RELATIONSHIPS
    # ==========================================================================

    project: Mapped["Project"] = relationship(
        "Project",
        back_populates="rules",
    )

    def __repr__(self) -> str:
        status = "disabled" if self.disabled else "enabled"
        return f"<Rule id={self.id} pattern='{self.pattern}' project={self.project_id} {status}>"
