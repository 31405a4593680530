"""API routes for SAR missions and their search areas."""

from typing import Annotated, Sequence
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core import CommandDep, CurrentUserDep, SessionDep
from ..models import MissionStatus, MissionType, SARMission, SARMissionArea
from ..schemas import (
    AreaCreate,
    AreaResponse,
    AreaUpdate,
    MissionCreate,
    MissionResponse,
    MissionUpdate,
)
from ..services import (
    AreaInput,
    CreateMissionInput,
    MissionEngine,
    UpdateAreaInput,
    UpdateMissionInput,
)

router = APIRouter(prefix="/personnel/sar/missions", tags=["sar"])
admin_router = APIRouter(prefix="/admin/sar/missions", tags=["sar"])


def get_mission_engine(session: SessionDep) -> MissionEngine:
    return MissionEngine(session)


MissionEngineDep = Annotated[MissionEngine, Depends(get_mission_engine)]


# =============================================================================
# HELPERS
# =============================================================================


def mission_to_response(
    mission: SARMission,
    areas: Sequence[SARMissionArea] | None = None,
) -> MissionResponse:
    """Convert a SARMission model to a response schema."""
    return MissionResponse(
        id=mission.id,
        name=mission.name,
        description=mission.description,
        mission_type=mission.mission_type,
        status=mission.status,
        incident_commander_id=mission.incident_commander_id,
        incident_commander_name=mission.incident_commander_name,
        created_by=mission.created_by,
        started_at=mission.started_at,
        completed_at=mission.completed_at,
        cancelled_at=mission.cancelled_at,
        is_public_visible=mission.is_public_visible,
        public_message=mission.public_message,
        created_at=mission.created_at,
        updated_at=mission.updated_at,
        areas=[AreaResponse.model_validate(a) for a in areas] if areas is not None else None,
    )


async def _create(data: MissionCreate, actor, engine: MissionEngine) -> MissionResponse:
    mission = await engine.create_mission(
        CreateMissionInput(
            name=data.name,
            mission_type=data.mission_type,
            description=data.description,
            incident_commander_id=data.incident_commander_id,
            is_public_visible=data.is_public_visible,
            public_message=data.public_message,
        ),
        actor,
    )
    return mission_to_response(mission, areas=[])


# =============================================================================
# MISSIONS
# =============================================================================


@router.get("", response_model=list[MissionResponse])
async def list_missions(
    current_user: CurrentUserDep,
    engine: MissionEngineDep,
    status_filter: Annotated[MissionStatus | None, Query(alias="status")] = None,
    mission_type: Annotated[MissionType | None, Query(alias="missionType")] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    missions = await engine.list_missions(
        status=status_filter, mission_type=mission_type, limit=limit, offset=offset
    )
    return [mission_to_response(m) for m in missions]


@router.post("", response_model=MissionResponse, status_code=status.HTTP_201_CREATED)
async def create_mission(data: MissionCreate, current_user: CurrentUserDep, engine: MissionEngineDep):
    """Any member may create a training mission; active missions need command."""
    return await _create(data, current_user.user, engine)


@admin_router.post("", response_model=MissionResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_mission(data: MissionCreate, current_user: CommandDep, engine: MissionEngineDep):
    return await _create(data, current_user.user, engine)


@router.get("/{mission_id}", response_model=MissionResponse)
async def get_mission(mission_id: UUID, current_user: CurrentUserDep, engine: MissionEngineDep):
    mission = await engine.get_mission(mission_id)
    return mission_to_response(mission, await engine.list_areas(mission_id))


@router.put("/{mission_id}", response_model=MissionResponse)
async def update_mission(
    mission_id: UUID,
    data: MissionUpdate,
    current_user: CurrentUserDep,
    engine: MissionEngineDep,
):
    mission = await engine.update_mission(
        mission_id,
        UpdateMissionInput(**data.model_dump(exclude_unset=True)),
        current_user.user,
    )
    return mission_to_response(mission, await engine.list_areas(mission_id))


@router.post("/{mission_id}/start", response_model=MissionResponse)
async def start_mission(mission_id: UUID, current_user: CurrentUserDep, engine: MissionEngineDep):
    mission = await engine.start_mission(mission_id, current_user.user)
    return mission_to_response(mission, await engine.list_areas(mission_id))


@router.post("/{mission_id}/complete", response_model=MissionResponse)
async def complete_mission(mission_id: UUID, current_user: CurrentUserDep, engine: MissionEngineDep):
    mission = await engine.complete_mission(mission_id, current_user.user)
    return mission_to_response(mission, await engine.list_areas(mission_id))


@router.post("/{mission_id}/cancel", response_model=MissionResponse)
async def cancel_mission(mission_id: UUID, current_user: CurrentUserDep, engine: MissionEngineDep):
    mission = await engine.cancel_mission(mission_id, current_user.user)
    return mission_to_response(mission, await engine.list_areas(mission_id))


# =============================================================================
# AREAS
# =============================================================================


@router.get("/{mission_id}/areas", response_model=list[AreaResponse])
async def list_areas(mission_id: UUID, current_user: CurrentUserDep, engine: MissionEngineDep):
    areas = await engine.list_areas(mission_id)
    return [AreaResponse.model_validate(a) for a in areas]


@router.post("/{mission_id}/areas", response_model=AreaResponse, status_code=status.HTTP_201_CREATED)
async def create_area(
    mission_id: UUID,
    data: AreaCreate,
    current_user: CurrentUserDep,
    engine: MissionEngineDep,
):
    area = await engine.create_area(
        mission_id,
        AreaInput(
            name=data.name,
            coordinates=data.coordinates,
            assigned_to=data.assigned_to,
            notes=data.notes,
        ),
        current_user.user,
    )
    return AreaResponse.model_validate(area)


@router.put("/{mission_id}/areas/{area_id}", response_model=AreaResponse)
async def update_area(
    mission_id: UUID,
    area_id: UUID,
    data: AreaUpdate,
    current_user: CurrentUserDep,
    engine: MissionEngineDep,
):
    """Update an area. The assigned searcher may change only status and notes."""
    area = await engine.update_area(
        mission_id,
        area_id,
        UpdateAreaInput(**data.model_dump(exclude_unset=True)),
        current_user.user,
    )
    return AreaResponse.model_validate(area)
