"""API routes for incidents and their assigned resources."""

from typing import Annotated, Sequence
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core import CommandDep, CurrentUserDep, SessionDep
from ..models import Incident, IncidentResource, IncidentStatus
from ..schemas import (
    IncidentCreate,
    IncidentResourceResponse,
    IncidentResponse,
    ResourceAssign,
    ResourceStatusUpdate,
)
from ..services import AssignResourceInput, CreateIncidentInput, IncidentEngine

router = APIRouter(prefix="/personnel/incidents", tags=["incidents"])


def get_incident_engine(session: SessionDep) -> IncidentEngine:
    return IncidentEngine(session)


IncidentEngineDep = Annotated[IncidentEngine, Depends(get_incident_engine)]


# =============================================================================
# HELPERS
# =============================================================================


def incident_to_response(
    incident: Incident,
    resources: Sequence[IncidentResource] | None = None,
) -> IncidentResponse:
    """Convert an Incident model to a response schema."""
    return IncidentResponse(
        id=incident.id,
        title=incident.title,
        description=incident.description,
        type=incident.incident_type,
        status=incident.status,
        incident_commander_id=incident.incident_commander_id,
        incident_commander_name=incident.incident_commander_name,
        location=incident.location,
        created_by=incident.created_by,
        started_at=incident.started_at,
        resolved_at=incident.resolved_at,
        cancelled_at=incident.cancelled_at,
        resources=(
            [IncidentResourceResponse.model_validate(r) for r in resources]
            if resources is not None
            else None
        ),
    )


# =============================================================================
# INCIDENTS
# =============================================================================


@router.get("", response_model=list[IncidentResponse])
async def list_incidents(
    current_user: CurrentUserDep,
    engine: IncidentEngineDep,
    status_filter: Annotated[IncidentStatus | None, Query(alias="status")] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    incidents = await engine.list_incidents(status=status_filter, limit=limit, offset=offset)
    return [incident_to_response(i) for i in incidents]


@router.post("", response_model=IncidentResponse, status_code=status.HTTP_201_CREATED)
async def create_incident(data: IncidentCreate, current_user: CommandDep, engine: IncidentEngineDep):
    incident = await engine.create_incident(
        CreateIncidentInput(
            title=data.title,
            incident_type=data.type,
            description=data.description,
            location=data.location,
            incident_commander_id=data.incident_commander_id,
        ),
        current_user.user,
    )
    return incident_to_response(incident, resources=[])


@router.put("/resources/{resource_id}/status", response_model=IncidentResourceResponse)
async def update_resource_status(
    resource_id: UUID,
    data: ResourceStatusUpdate,
    current_user: CurrentUserDep,
    engine: IncidentEngineDep,
):
    """Move a resource along assigned -> en_route -> on_scene (or unavailable)."""
    resource = await engine.transition_resource(
        resource_id, data.status, current_user.user, notes=data.notes
    )
    return IncidentResourceResponse.model_validate(resource)


@router.get("/{incident_id}", response_model=IncidentResponse)
async def get_incident(incident_id: UUID, current_user: CurrentUserDep, engine: IncidentEngineDep):
    incident = await engine.get_incident(incident_id)
    resources = await engine.list_resources(incident_id)
    return incident_to_response(incident, resources)


@router.post("/{incident_id}/resolve", response_model=IncidentResponse)
async def resolve_incident(incident_id: UUID, current_user: CommandDep, engine: IncidentEngineDep):
    """Resolve an incident. Resolving a resolved incident returns it unchanged."""
    incident = await engine.resolve_incident(incident_id, current_user.user)
    return incident_to_response(incident, await engine.list_resources(incident_id))


@router.post("/{incident_id}/cancel", response_model=IncidentResponse)
async def cancel_incident(incident_id: UUID, current_user: CommandDep, engine: IncidentEngineDep):
    incident = await engine.cancel_incident(incident_id, current_user.user)
    return incident_to_response(incident, await engine.list_resources(incident_id))


# =============================================================================
# RESOURCES
# =============================================================================


@router.get("/{incident_id}/resources", response_model=list[IncidentResourceResponse])
async def list_resources(incident_id: UUID, current_user: CurrentUserDep, engine: IncidentEngineDep):
    resources = await engine.list_resources(incident_id)
    return [IncidentResourceResponse.model_validate(r) for r in resources]


@router.post(
    "/{incident_id}/resources",
    response_model=IncidentResourceResponse,
    status_code=status.HTTP_201_CREATED,
)
async def assign_resource(
    incident_id: UUID,
    data: ResourceAssign,
    current_user: CommandDep,
    engine: IncidentEngineDep,
):
    """Assign personnel, equipment or a vehicle to an active incident."""
    resource = await engine.assign_resource(
        incident_id,
        AssignResourceInput(
            resource_type=data.resource_type,
            resource_name=data.resource_name,
            resource_ref_id=data.resource_id,
            notes=data.notes,
        ),
        current_user.user,
    )
    return IncidentResourceResponse.model_validate(resource)
