"""API routes for vehicles and their maintenance logs."""

from dataclasses import asdict
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..core import CurrentUserDep, OfficerDep, SessionDep
from ..models import VehicleStatus, VehicleType
from ..schemas import (
    MaintenanceLogCreate,
    MaintenanceLogResponse,
    MaintenanceReminderResponse,
    VehicleCreate,
    VehicleResponse,
    VehicleUpdate,
)
from ..services import AssetService

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


def get_asset_service(session: SessionDep) -> AssetService:
    return AssetService(session)


AssetServiceDep = Annotated[AssetService, Depends(get_asset_service)]


@router.get("", response_model=list[VehicleResponse])
async def list_vehicles(
    current_user: CurrentUserDep,
    service: AssetServiceDep,
    status_filter: Annotated[VehicleStatus | None, Query(alias="status")] = None,
    vehicle_type: Annotated[VehicleType | None, Query(alias="vehicleType")] = None,
):
    vehicles = await service.list_vehicles(status=status_filter, vehicle_type=vehicle_type)
    return [VehicleResponse.model_validate(v) for v in vehicles]


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(data: VehicleCreate, current_user: OfficerDep, service: AssetServiceDep):
    vehicle = await service.create_vehicle(data.model_dump(), current_user.user)
    return VehicleResponse.model_validate(vehicle)


@router.get("/maintenance/reminders", response_model=list[MaintenanceReminderResponse])
async def maintenance_reminders(current_user: CurrentUserDep, service: AssetServiceDep):
    """Due and overdue maintenance, overdue first. Computed when read."""
    reminders = await service.maintenance_reminders()
    return [MaintenanceReminderResponse(**asdict(r)) for r in reminders]


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(vehicle_id: UUID, current_user: CurrentUserDep, service: AssetServiceDep):
    vehicle = await service.get_vehicle(vehicle_id)
    return VehicleResponse.model_validate(vehicle)


@router.put("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: UUID,
    data: VehicleUpdate,
    current_user: OfficerDep,
    service: AssetServiceDep,
):
    vehicle = await service.update_vehicle(
        vehicle_id, data.model_dump(exclude_unset=True), current_user.user
    )
    return VehicleResponse.model_validate(vehicle)


@router.delete("/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_vehicle(vehicle_id: UUID, current_user: OfficerDep, service: AssetServiceDep):
    await service.delete_vehicle(vehicle_id, current_user.user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# MAINTENANCE
# =============================================================================


@router.get("/{vehicle_id}/maintenance", response_model=list[MaintenanceLogResponse])
async def list_maintenance(vehicle_id: UUID, current_user: CurrentUserDep, service: AssetServiceDep):
    logs = await service.list_maintenance_logs(vehicle_id)
    return [MaintenanceLogResponse.model_validate(log) for log in logs]


@router.post(
    "/{vehicle_id}/maintenance",
    response_model=MaintenanceLogResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_maintenance(
    vehicle_id: UUID,
    data: MaintenanceLogCreate,
    current_user: CurrentUserDep,
    service: AssetServiceDep,
):
    log = await service.add_maintenance_log(vehicle_id, data.model_dump(), current_user.user)
    return MaintenanceLogResponse.model_validate(log)
