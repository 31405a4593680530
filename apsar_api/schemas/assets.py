"""Pydantic schemas for vehicles, maintenance and equipment."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import (
    EquipmentCategory,
    EquipmentCondition,
    EquipmentStatus,
    MaintenanceType,
    VehicleStatus,
    VehicleType,
)
from .base import ApiModel, TimestampMixin, UTCTimestamp


# =============================================================================
# VEHICLES
# =============================================================================


class VehicleCreate(ApiModel):
    unit_number: str = Field(..., min_length=1, max_length=50)
    vehicle_type: VehicleType
    make: str | None = Field(default=None, max_length=100)
    model: str | None = Field(default=None, max_length=100)
    year: int | None = Field(default=None, ge=1900, le=2100)
    vin: str | None = Field(default=None, max_length=50)
    license_plate: str | None = Field(default=None, max_length=20)
    current_mileage: int | None = Field(default=None, ge=0)
    status: VehicleStatus = VehicleStatus.READY
    notes: str | None = None


class VehicleUpdate(ApiModel):
    unit_number: str | None = Field(default=None, min_length=1, max_length=50)
    vehicle_type: VehicleType | None = None
    make: str | None = None
    model: str | None = None
    year: int | None = Field(default=None, ge=1900, le=2100)
    vin: str | None = None
    license_plate: str | None = None
    current_mileage: int | None = Field(default=None, ge=0)
    status: VehicleStatus | None = None
    notes: str | None = None


class VehicleResponse(ApiModel, TimestampMixin):
    id: UUID
    unit_number: str
    vehicle_type: VehicleType
    make: str | None = None
    model: str | None = None
    year: int | None = None
    vin: str | None = None
    license_plate: str | None = None
    current_mileage: int | None = None
    status: VehicleStatus
    notes: str | None = None


class MaintenanceLogCreate(ApiModel):
    maintenance_type: MaintenanceType
    description: str = Field(..., min_length=1)
    mileage: int | None = Field(default=None, ge=0)
    cost: float | None = Field(default=None, ge=0)
    performed_at: UTCTimestamp | None = None
    next_due_mileage: int | None = Field(default=None, ge=0)
    next_due_date: UTCTimestamp | None = None
    documents: list[str] = Field(default_factory=list)


class MaintenanceLogResponse(ApiModel):
    id: UUID
    vehicle_id: UUID
    maintenance_type: MaintenanceType
    description: str
    mileage: int | None = None
    cost: float | None = None
    performed_by: UUID | None = None
    performed_by_name: str | None = None
    performed_at: datetime
    next_due_mileage: int | None = None
    next_due_date: datetime | None = None
    documents: list[str] = Field(default_factory=list)
    created_at: datetime


class MaintenanceReminderResponse(ApiModel):
    vehicle_id: UUID
    unit_number: str
    maintenance_type: MaintenanceType
    last_performed_at: datetime
    due_date: datetime | None = None
    due_mileage: int | None = None
    current_mileage: int | None = None
    is_overdue: bool


# =============================================================================
# EQUIPMENT
# =============================================================================


class EquipmentCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: EquipmentCategory
    serial_number: str | None = Field(default=None, max_length=100)
    manufacturer: str | None = Field(default=None, max_length=100)
    model: str | None = Field(default=None, max_length=100)
    condition: EquipmentCondition = EquipmentCondition.READY
    location: str | None = Field(default=None, max_length=255)
    expiration_date: UTCTimestamp | None = None
    next_inspection_date: UTCTimestamp | None = None
    inspection_frequency: int | None = Field(default=None, ge=1, description="Days between inspections")
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)


class EquipmentUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    category: EquipmentCategory | None = None
    serial_number: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    condition: EquipmentCondition | None = None
    status: EquipmentStatus | None = None
    location: str | None = None
    expiration_date: UTCTimestamp | None = None
    next_inspection_date: UTCTimestamp | None = None
    inspection_frequency: int | None = Field(default=None, ge=1)
    notes: str | None = None
    photos: list[str] | None = None


class EquipmentResponse(ApiModel, TimestampMixin):
    id: UUID
    name: str
    category: EquipmentCategory
    serial_number: str | None = None
    manufacturer: str | None = None
    model: str | None = None
    condition: EquipmentCondition
    status: EquipmentStatus
    assigned_to: UUID | None = None
    assigned_to_name: str | None = None
    location: str | None = None
    expiration_date: datetime | None = None
    last_inspection_date: datetime | None = None
    next_inspection_date: datetime | None = None
    inspection_frequency: int | None = None
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)


class AssignRequest(ApiModel):
    user_id: UUID


class InspectionCreate(ApiModel):
    condition: EquipmentCondition
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)
    next_inspection_date: UTCTimestamp | None = None


class InspectionResponse(ApiModel):
    id: UUID
    equipment_id: UUID
    equipment_name: str | None = None
    inspected_by: UUID
    inspected_by_name: str | None = None
    inspected_at: datetime
    condition: EquipmentCondition
    notes: str | None = None
    photos: list[str] = Field(default_factory=list)
    next_inspection_date: datetime | None = None
