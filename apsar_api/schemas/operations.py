"""Pydantic schemas for incidents, incident resources and SAR missions."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import (
    AreaStatus,
    IncidentStatus,
    MissionStatus,
    MissionType,
    ResourceStatus,
    ResourceType,
)
from .base import ApiModel, TimestampMixin


# =============================================================================
# INCIDENTS
# =============================================================================


class IncidentCreate(ApiModel):
    title: str = Field(..., min_length=1, max_length=255)
    type: str = Field(..., min_length=1, max_length=100, description="Free-text classification")
    description: str | None = None
    location: dict | None = None
    incident_commander_id: UUID | None = None


class ResourceAssign(ApiModel):
    resource_type: ResourceType
    resource_name: str = Field(..., min_length=1, max_length=255)
    resource_id: UUID | None = Field(
        default=None, description="User, vehicle or equipment the assignment refers to"
    )
    notes: str | None = None


class ResourceStatusUpdate(ApiModel):
    status: ResourceStatus
    notes: str | None = None


class IncidentResourceResponse(ApiModel):
    id: UUID
    incident_id: UUID
    resource_type: ResourceType
    resource_id: UUID | None = None
    resource_name: str
    status: ResourceStatus
    assigned_at: datetime
    notes: str | None = None
    updated_at: datetime | None = None


class IncidentResponse(ApiModel):
    id: UUID
    title: str
    description: str | None = None
    type: str
    status: IncidentStatus
    incident_commander_id: UUID | None = None
    incident_commander_name: str | None = None
    location: dict | None = None
    created_by: UUID
    started_at: datetime
    resolved_at: datetime | None = None
    cancelled_at: datetime | None = None
    resources: list[IncidentResourceResponse] | None = None


# =============================================================================
# SAR MISSIONS
# =============================================================================


class MissionCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    mission_type: MissionType = MissionType.TRAINING
    description: str | None = None
    incident_commander_id: UUID | None = None
    is_public_visible: bool = False
    public_message: str | None = None


class MissionUpdate(ApiModel):
    description: str | None = None
    incident_commander_id: UUID | None = None
    is_public_visible: bool | None = None
    public_message: str | None = None


class AreaCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    coordinates: list = Field(default_factory=list)
    assigned_to: UUID | None = None
    notes: str | None = None


class AreaUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    coordinates: list | None = None
    status: AreaStatus | None = None
    assigned_to: UUID | None = None
    notes: str | None = None


class AreaResponse(ApiModel, TimestampMixin):
    id: UUID
    mission_id: UUID
    position: int
    name: str
    coordinates: list = Field(default_factory=list)
    status: AreaStatus
    assigned_to: UUID | None = None
    assigned_to_name: str | None = None
    notes: str | None = None


class MissionResponse(ApiModel, TimestampMixin):
    id: UUID
    name: str
    description: str | None = None
    mission_type: MissionType
    status: MissionStatus
    incident_commander_id: UUID | None = None
    incident_commander_name: str | None = None
    created_by: UUID
    started_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    is_public_visible: bool
    public_message: str | None = None
    areas: list[AreaResponse] | None = None


class PublicMission(ApiModel):
    id: UUID
    name: str
    public_message: str | None = None
    started_at: datetime | None = None


class PublicStatusResponse(ApiModel):
    active: bool
    message: str
    missions: list[PublicMission]
