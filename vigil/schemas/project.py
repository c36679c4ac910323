"""
Pydantic schemas for project endpoints.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ProjectCreateRequest(BaseModel):
    """
    Request body for POST /projects

    Example:
        {
            "name": "payment-service",
            "description": "Production metrics for payments"
        }
    """

    name: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Unique project name",
        examples=["payment-service"],
    )

    description: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Optional project description",
    )


class ProjectResponse(BaseModel):
    """Project information returned from API."""

    id: int
    name: str
    description: Optional[str]
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
