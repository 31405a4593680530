"""API routes for equipment, inspections and assignment."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..core import CurrentUserDep, OfficerDep, SessionDep
from ..models import EquipmentCategory, EquipmentStatus
from ..schemas import (
    AssignRequest,
    EquipmentCreate,
    EquipmentResponse,
    EquipmentUpdate,
    InspectionCreate,
    InspectionResponse,
)
from ..services import AssetService

router = APIRouter(prefix="/equipment", tags=["equipment"])


def get_asset_service(session: SessionDep) -> AssetService:
    return AssetService(session)


AssetServiceDep = Annotated[AssetService, Depends(get_asset_service)]


@router.get("", response_model=list[EquipmentResponse])
async def list_equipment(
    current_user: CurrentUserDep,
    service: AssetServiceDep,
    category: EquipmentCategory | None = None,
    status_filter: Annotated[EquipmentStatus | None, Query(alias="status")] = None,
    assigned_to: Annotated[UUID | None, Query(alias="assignedTo")] = None,
):
    items = await service.list_equipment(
        category=category, status=status_filter, assigned_to=assigned_to
    )
    return [EquipmentResponse.model_validate(e) for e in items]


@router.post("", response_model=EquipmentResponse, status_code=status.HTTP_201_CREATED)
async def create_equipment(data: EquipmentCreate, current_user: OfficerDep, service: AssetServiceDep):
    equipment = await service.create_equipment(data.model_dump(), current_user.user)
    return EquipmentResponse.model_validate(equipment)


@router.get("/{equipment_id}", response_model=EquipmentResponse)
async def get_equipment(equipment_id: UUID, current_user: CurrentUserDep, service: AssetServiceDep):
    equipment = await service.get_equipment(equipment_id)
    return EquipmentResponse.model_validate(equipment)


@router.put("/{equipment_id}", response_model=EquipmentResponse)
async def update_equipment(
    equipment_id: UUID,
    data: EquipmentUpdate,
    current_user: OfficerDep,
    service: AssetServiceDep,
):
    equipment = await service.update_equipment(
        equipment_id, data.model_dump(exclude_unset=True), current_user.user
    )
    return EquipmentResponse.model_validate(equipment)


@router.delete("/{equipment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_equipment(equipment_id: UUID, current_user: OfficerDep, service: AssetServiceDep):
    await service.delete_equipment(equipment_id, current_user.user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# INSPECTIONS & ASSIGNMENT
# =============================================================================


@router.get("/{equipment_id}/inspections", response_model=list[InspectionResponse])
async def list_inspections(equipment_id: UUID, current_user: CurrentUserDep, service: AssetServiceDep):
    inspections = await service.list_inspections(equipment_id)
    return [InspectionResponse.model_validate(i) for i in inspections]


@router.post(
    "/{equipment_id}/inspections",
    response_model=InspectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_inspection(
    equipment_id: UUID,
    data: InspectionCreate,
    current_user: CurrentUserDep,
    service: AssetServiceDep,
):
    """Record an inspection; rolls the equipment's inspection dates forward."""
    inspection = await service.add_inspection(
        equipment_id,
        data.condition,
        current_user.user,
        notes=data.notes,
        photos=data.photos,
        next_inspection_date=data.next_inspection_date,
    )
    return InspectionResponse.model_validate(inspection)


@router.post("/{equipment_id}/assign", response_model=EquipmentResponse)
async def assign_equipment(
    equipment_id: UUID,
    data: AssignRequest,
    current_user: OfficerDep,
    service: AssetServiceDep,
):
    equipment = await service.assign_equipment(equipment_id, data.user_id, current_user.user)
    return EquipmentResponse.model_validate(equipment)


@router.post("/{equipment_id}/return", response_model=EquipmentResponse)
async def return_equipment(equipment_id: UUID, current_user: CurrentUserDep, service: AssetServiceDep):
    equipment = await service.return_equipment(equipment_id, current_user.user)
    return EquipmentResponse.model_validate(equipment)
