"""
Rule management routes.

Rules are created under their project and addressed by id afterwards:
- POST   /projects/{project_id}/rules
- GET    /projects/{project_id}/rules
- GET    /rules/{rule_id}
- PUT    /rules/{rule_id}
- DELETE /rules/{rule_id}

Handlers stay thin: RuleService raises RuleError subclasses, which the
application-level handler in vigil.main turns into JSON error responses.
"""

from fastapi import APIRouter, Depends, status

from vigil.api.deps import get_rule_service
from vigil.rules.service import RuleService
from vigil.schemas.rule import RuleFields, RuleListResponse, RuleResponse


project_router = APIRouter(
    prefix="/projects/{project_id}/rules",
    tags=["Rules"],
)

router = APIRouter(
    prefix="/rules",
    tags=["Rules"],
)


# =============================================================================
# PROJECT RULES
# =============================================================================


@project_router.get(
    "",
    response_model=RuleListResponse,
    summary="List a project's rules",
)
async def list_project_rules(
    project_id: int,
    service: RuleService = Depends(get_rule_service),
) -> RuleListResponse:
    """List every rule of a project, each with its current metric count."""
    rules = await service.list_for_project(project_id)
    return RuleListResponse(items=rules, total=len(rules))


@project_router.post(
    "",
    response_model=RuleResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a rule",
)
async def create_rule(
    project_id: int,
    fields: RuleFields,
    service: RuleService = Depends(get_rule_service),
) -> RuleResponse:
    """
    Create a rule in a project.

    - The pattern must be unique across all projects
    - At least one condition (trend or threshold) is required
    """
    return await service.create(project_id, fields)


# =============================================================================
# SINGLE RULE
# =============================================================================


@router.get(
    "/{rule_id}",
    response_model=RuleResponse,
    summary="Get a rule by ID",
)
async def get_rule(
    rule_id: int,
    service: RuleService = Depends(get_rule_service),
) -> RuleResponse:
    return await service.get(rule_id)


@router.put(
    "/{rule_id}",
    response_model=RuleResponse,
    summary="Edit a rule",
)
async def edit_rule(
    rule_id: int,
    fields: RuleFields,
    service: RuleService = Depends(get_rule_service),
) -> RuleResponse:
    """
    Replace all editable fields of a rule.

    The owning project can't be changed. disabled_at is reset to now.
    """
    return await service.edit(rule_id, fields)


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a rule",
)
async def delete_rule(
    rule_id: int,
    service: RuleService = Depends(get_rule_service),
) -> None:
    await service.delete(rule_id)
