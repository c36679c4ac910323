"""
Project routes.

Just enough to own rules: create a project and read it back.
"""

from fastapi import APIRouter, Depends, status

from vigil.api.deps import get_rule_service
from vigil.models import Project
from vigil.rules.service import RuleService
from vigil.schemas.project import ProjectCreateRequest, ProjectResponse

router = APIRouter(
    prefix="/projects",
    tags=["Projects"],
)


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new project",
)
async def create_project(
    request: ProjectCreateRequest,
    service: RuleService = Depends(get_rule_service),
) -> Project:
    """Create a project. Project names must be unique."""
    return await service.create_project(request.name, request.description)


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="Get project by ID",
)
async def get_project(
    project_id: int,
    service: RuleService = Depends(get_rule_service),
) -> Project:
    return await service.get_project(project_id)
