"""
Project model - represents the 'projects' table in the database.

A project groups the rules that watch one monitored system
(a service, an environment, a team's metrics).
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vigil.core.db import Base, UTCDateTime, utcnow

if TYPE_CHECKING:
    from vigil.models.rule import Rule


class Project(Base):
    """
    Project model - owner of alerting rules.

    Attributes:
        id: Primary key
        name: Unique project name (e.g., "payment-service-prod")
        description: Optional longer description
        created_at: When the project was created
    """

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
        index=True,
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    # ==========================================================================
    # RELATIONSHIPS
    # ==========================================================================

    rules: Mapped[list["Rule"]] = relationship(
        "Rule",
        back_populates="project",
    )

    def __repr__(self) -> str:
        return f"<Project id={self.id} name='{self.name}'>"
