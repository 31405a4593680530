"""API routes for checklist templates and checklist instances."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..core import CurrentUserDep, OfficerDep, SessionDep
from ..models import ChecklistStatus, ChecklistType
from ..schemas import (
    ChecklistComplete,
    ChecklistCreate,
    ChecklistResponse,
    ChecklistUpdate,
    TemplateCreate,
    TemplateResponse,
    TemplateUpdate,
)
from ..services import ChecklistService, ItemUpdate

router = APIRouter(prefix="/checklists", tags=["checklists"])


def get_checklist_service(session: SessionDep) -> ChecklistService:
    return ChecklistService(session)


ChecklistServiceDep = Annotated[ChecklistService, Depends(get_checklist_service)]


# =============================================================================
# TEMPLATES
# =============================================================================


@router.get("/templates", response_model=list[TemplateResponse])
async def list_templates(
    current_user: CurrentUserDep,
    service: ChecklistServiceDep,
    checklist_type: Annotated[ChecklistType | None, Query(alias="type")] = None,
    include_inactive: Annotated[bool, Query(alias="includeInactive")] = False,
):
    templates = await service.list_templates(checklist_type, include_inactive=include_inactive)
    return [TemplateResponse.model_validate(t) for t in templates]


@router.post("/templates", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(data: TemplateCreate, current_user: OfficerDep, service: ChecklistServiceDep):
    template = await service.create_template(
        name=data.name,
        checklist_type=data.type,
        items=[item.model_dump() for item in data.items],
        actor=current_user.user,
        description=data.description,
        is_locked=data.is_locked,
    )
    return TemplateResponse.model_validate(template)


@router.get("/templates/{template_id}", response_model=TemplateResponse)
async def get_template(template_id: UUID, current_user: CurrentUserDep, service: ChecklistServiceDep):
    template = await service.get_template(template_id)
    return TemplateResponse.model_validate(template)


@router.put("/templates/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: UUID,
    data: TemplateUpdate,
    current_user: CurrentUserDep,
    service: ChecklistServiceDep,
):
    """Edit a template; every edit bumps its version."""
    changes = data.model_dump(exclude_unset=True)
    template = await service.update_template(template_id, changes, current_user.user)
    return TemplateResponse.model_validate(template)


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(template_id: UUID, current_user: OfficerDep, service: ChecklistServiceDep):
    await service.deactivate_template(template_id, current_user.user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# CHECKLISTS
# =============================================================================


@router.get("", response_model=list[ChecklistResponse])
async def list_checklists(
    current_user: CurrentUserDep,
    service: ChecklistServiceDep,
    assigned_to: Annotated[UUID | None, Query(alias="assignedTo")] = None,
    status_filter: Annotated[ChecklistStatus | None, Query(alias="status")] = None,
    checklist_type: Annotated[ChecklistType | None, Query(alias="type")] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Members see checklists assigned to them; officers and admins see all."""
    checklists = await service.list_checklists(
        current_user.user,
        assigned_to=assigned_to,
        status=status_filter,
        checklist_type=checklist_type,
        limit=limit,
        offset=offset,
    )
    return [ChecklistResponse.model_validate(c) for c in checklists]


@router.post("", response_model=ChecklistResponse, status_code=status.HTTP_201_CREATED)
async def create_checklist(data: ChecklistCreate, current_user: CurrentUserDep, service: ChecklistServiceDep):
    checklist = await service.create_checklist(
        data.template_id,
        current_user.user,
        title=data.title,
        assigned_to=data.assigned_to,
    )
    return ChecklistResponse.model_validate(checklist)


@router.get("/{checklist_id}", response_model=ChecklistResponse)
async def get_checklist(checklist_id: UUID, current_user: CurrentUserDep, service: ChecklistServiceDep):
    checklist = await service.get_checklist(checklist_id, current_user.user)
    return ChecklistResponse.model_validate(checklist)


@router.put("/{checklist_id}", response_model=ChecklistResponse)
async def update_checklist(
    checklist_id: UUID,
    data: ChecklistUpdate,
    current_user: CurrentUserDep,
    service: ChecklistServiceDep,
):
    """Update item status, responses and notes; overall status is derived."""
    checklist = await service.update_items(
        checklist_id,
        [ItemUpdate(**item.model_dump(exclude_unset=True)) for item in data.items],
        current_user.user,
        notes=data.notes,
    )
    return ChecklistResponse.model_validate(checklist)


@router.post("/{checklist_id}/complete", response_model=ChecklistResponse)
async def complete_checklist(
    checklist_id: UUID,
    data: ChecklistComplete,
    current_user: CurrentUserDep,
    service: ChecklistServiceDep,
):
    checklist = await service.complete(
        checklist_id, current_user.user, signature=data.signature, notes=data.notes
    )
    return ChecklistResponse.model_validate(checklist)


@router.post("/{checklist_id}/cancel", response_model=ChecklistResponse)
async def cancel_checklist(checklist_id: UUID, current_user: CurrentUserDep, service: ChecklistServiceDep):
    checklist = await service.cancel(checklist_id, current_user.user)
    return ChecklistResponse.model_validate(checklist)
