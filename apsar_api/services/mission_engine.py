"""
Mission Engine: SAR mission lifecycle and search-area management.

Mission status is monotonic:
    planning -> active -> completed
    planning | active -> cancelled
Area status:
    unassigned -> searching -> cleared | completed

Active (real-world) missions are managed by command; training missions
may also be managed by the member who created them.
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    COMMAND_ROLE,
    AreaStatus,
    AuditAction,
    MissionStatus,
    MissionType,
    SARMission,
    SARMissionArea,
    User,
    has_role,
    utcnow,
)
from .audit import AuditService
from .errors import (
    ForbiddenError,
    InvalidStateError,
    InvalidTransitionError,
    MissionClosedError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

AREA_TRANSITIONS: dict[AreaStatus, set[AreaStatus]] = {
    AreaStatus.UNASSIGNED: {AreaStatus.SEARCHING},
    AreaStatus.SEARCHING: {AreaStatus.CLEARED, AreaStatus.COMPLETED},
    AreaStatus.CLEARED: set(),
    AreaStatus.COMPLETED: set(),
}

# Statuses a mission may be in for each lifecycle action to apply
MISSION_ACTIONS: dict[MissionStatus, tuple[MissionStatus, ...]] = {
    MissionStatus.ACTIVE: (MissionStatus.PLANNING,),
    MissionStatus.COMPLETED: (MissionStatus.ACTIVE,),
    MissionStatus.CANCELLED: (MissionStatus.PLANNING, MissionStatus.ACTIVE),
}


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class CreateMissionInput:
    name: str
    mission_type: MissionType
    description: str | None = None
    incident_commander_id: UUID | None = None
    is_public_visible: bool = False
    public_message: str | None = None


@dataclass
class UpdateMissionInput:
    """Only fields that are set are applied."""
    description: str | None = None
    incident_commander_id: UUID | None = None
    is_public_visible: bool | None = None
    public_message: str | None = None


@dataclass
class AreaInput:
    name: str
    coordinates: list = field(default_factory=list)
    assigned_to: UUID | None = None
    notes: str | None = None


@dataclass
class UpdateAreaInput:
    name: str | None = None
    coordinates: list | None = None
    status: AreaStatus | None = None
    assigned_to: UUID | None = None
    notes: str | None = None


@dataclass
class PublicStatus:
    active: bool
    message: str
    missions: list[SARMission]


# =============================================================================
# MISSION ENGINE
# =============================================================================


class MissionEngine:
    """Sole writer of SARMission and SARMissionArea rows."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)

    async def _get_mission_or_raise(self, mission_id: UUID) -> SARMission:
        result = await self._session.execute(
            select(SARMission)
            .where(SARMission.id == mission_id)
            .execution_options(populate_existing=True)
        )
        mission = result.scalar_one_or_none()
        if mission is None:
            raise NotFoundError("Mission", mission_id)
        return mission

    async def _get_user_or_raise(self, user_id: UUID) -> User:
        user = await self._session.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def _can_manage(self, mission: SARMission, actor: User) -> bool:
        if has_role(actor.role, COMMAND_ROLE):
            return True
        return mission.mission_type == MissionType.TRAINING and mission.created_by == actor.id

    def _require_manager(self, mission: SARMission, actor: User) -> None:
        if not self._can_manage(mission, actor):
            raise ForbiddenError("Only command can manage active missions")

    # =========================================================================
    # MISSIONS
    # =========================================================================

    async def create_mission(self, input: CreateMissionInput, actor: User) -> SARMission:
        """Create a mission in planning. Active missions require command."""
        if input.mission_type == MissionType.ACTIVE and not has_role(actor.role, COMMAND_ROLE):
            raise ForbiddenError("Only command can create active missions")

        commander_name = None
        if input.incident_commander_id:
            commander_name = (await self._get_user_or_raise(input.incident_commander_id)).name

        mission = SARMission(
            id=uuid4(),
            name=input.name,
            description=input.description,
            mission_type=input.mission_type,
            status=MissionStatus.PLANNING,
            incident_commander_id=input.incident_commander_id,
            incident_commander_name=commander_name,
            created_by=actor.id,
            is_public_visible=input.is_public_visible,
            public_message=input.public_message,
            areas=[],
        )
        self._session.add(mission)
        await self._session.flush()

        self._audit.log_event(
            actor,
            AuditAction.CREATE,
            "sar_mission",
            mission.id,
            entity_name=mission.name,
            changes={"missionType": mission.mission_type.value},
        )
        logger.info(f"{mission.mission_type.value.capitalize()} mission {mission.id} created by {actor.id}")
        return mission

    async def get_mission(self, mission_id: UUID) -> SARMission:
        return await self._get_mission_or_raise(mission_id)

    async def list_missions(
        self,
        status: MissionStatus | None = None,
        mission_type: MissionType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[SARMission]:
        query = select(SARMission)
        if status is not None:
            query = query.where(SARMission.status == status)
        if mission_type is not None:
            query = query.where(SARMission.mission_type == mission_type)
        query = query.order_by(SARMission.created_at.desc()).limit(limit).offset(offset)

        result = await self._session.execute(query)
        return result.scalars().all()

    async def update_mission(
        self,
        mission_id: UUID,
        input: UpdateMissionInput,
        actor: User,
    ) -> SARMission:
        mission = await self._get_mission_or_raise(mission_id)
        self._require_manager(mission, actor)
        if mission.is_terminal:
            raise MissionClosedError(f"Mission is {mission.status.value}")

        changes = {}
        if input.description is not None:
            mission.description = input.description
            changes["description"] = input.description
        if input.incident_commander_id is not None:
            commander = await self._get_user_or_raise(input.incident_commander_id)
            mission.incident_commander_id = commander.id
            mission.incident_commander_name = commander.name
            changes["incidentCommanderId"] = str(commander.id)
        if input.is_public_visible is not None:
            mission.is_public_visible = input.is_public_visible
            changes["isPublicVisible"] = input.is_public_visible
        if input.public_message is not None:
            mission.public_message = input.public_message
            changes["publicMessage"] = input.public_message

        await self._session.flush()
        if changes:
            self._audit.log_event(
                actor, AuditAction.UPDATE, "sar_mission", mission.id,
                entity_name=mission.name, changes=changes,
            )
        return mission

    async def start_mission(self, mission_id: UUID, actor: User) -> SARMission:
        """planning -> active, stamping started_at."""
        return await self._transition(mission_id, MissionStatus.ACTIVE, actor)

    async def complete_mission(self, mission_id: UUID, actor: User) -> SARMission:
        """active -> completed, stamping completed_at. Idempotent."""
        return await self._transition(mission_id, MissionStatus.COMPLETED, actor)

    async def cancel_mission(self, mission_id: UUID, actor: User) -> SARMission:
        """planning | active -> cancelled. Idempotent."""
        return await self._transition(mission_id, MissionStatus.CANCELLED, actor)

    async def _transition(
        self,
        mission_id: UUID,
        target: MissionStatus,
        actor: User,
    ) -> SARMission:
        """
        Apply a lifecycle action with a conditional UPDATE.

        Flow:
        1. Target already reached -> return unchanged
        2. Mission terminal -> MissionClosed
        3. Current status not a legal source -> InvalidTransition
        4. UPDATE ... WHERE status IN (sources); zero rows means another
           request moved the mission first
        """
        mission = await self._get_mission_or_raise(mission_id)
        self._require_manager(mission, actor)

        if mission.status == target:
            return mission
        if mission.is_terminal:
            raise MissionClosedError(f"Mission is {mission.status.value}")

        sources = MISSION_ACTIONS[target]
        if mission.status not in sources:
            raise InvalidTransitionError(
                f"Cannot move mission from {mission.status.value} to {target.value}"
            )

        now = utcnow()
        values = {"status": target, "updated_at": now}
        if target == MissionStatus.ACTIVE:
            values["started_at"] = now
        elif target == MissionStatus.COMPLETED:
            values["completed_at"] = now
        else:
            values["cancelled_at"] = now

        old_status = mission.status
        result = await self._session.execute(
            update(SARMission)
            .where(SARMission.id == mission_id, SARMission.status.in_(sources))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        mission = await self._get_mission_or_raise(mission_id)
        if not result.rowcount:
            if mission.status == target:
                return mission
            raise InvalidStateError(f"Mission is now {mission.status.value}")

        self._audit.log_event(
            actor,
            AuditAction.COMPLETE if target == MissionStatus.COMPLETED else AuditAction.UPDATE,
            "sar_mission",
            mission.id,
            entity_name=mission.name,
            changes={"status": {"old": old_status.value, "new": target.value}},
        )
        logger.info(f"Mission {mission.id}: {old_status.value} -> {target.value}")
        return mission

    # =========================================================================
    # AREAS
    # =========================================================================

    async def list_areas(self, mission_id: UUID) -> Sequence[SARMissionArea]:
        await self._get_mission_or_raise(mission_id)
        result = await self._session.execute(
            select(SARMissionArea)
            .where(SARMissionArea.mission_id == mission_id)
            .order_by(SARMissionArea.position.asc())
        )
        return result.scalars().all()

    async def create_area(
        self,
        mission_id: UUID,
        input: AreaInput,
        actor: User,
    ) -> SARMissionArea:
        mission = await self._get_mission_or_raise(mission_id)
        self._require_manager(mission, actor)
        if mission.is_terminal:
            raise MissionClosedError(f"Mission is {mission.status.value}")

        assigned_name = None
        if input.assigned_to:
            assigned_name = (await self._get_user_or_raise(input.assigned_to)).name

        result = await self._session.execute(
            select(func.coalesce(func.max(SARMissionArea.position), -1)).where(
                SARMissionArea.mission_id == mission_id
            )
        )
        position = result.scalar_one() + 1

        area = SARMissionArea(
            id=uuid4(),
            mission_id=mission_id,
            position=position,
            name=input.name,
            coordinates=list(input.coordinates),
            status=AreaStatus.UNASSIGNED,
            assigned_to=input.assigned_to,
            assigned_to_name=assigned_name,
            notes=input.notes,
        )
        self._session.add(area)
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.CREATE, "sar_mission_area", area.id,
            entity_name=area.name, changes={"missionId": str(mission_id)},
        )
        return area

    async def update_area(
        self,
        mission_id: UUID,
        area_id: UUID,
        input: UpdateAreaInput,
        actor: User,
    ) -> SARMissionArea:
        """Managers edit anything; the assigned searcher may report status and notes."""
        mission = await self._get_mission_or_raise(mission_id)
        if mission.is_terminal:
            raise MissionClosedError(f"Mission is {mission.status.value}")

        result = await self._session.execute(
            select(SARMissionArea).where(
                SARMissionArea.id == area_id,
                SARMissionArea.mission_id == mission_id,
            )
        )
        area = result.scalar_one_or_none()
        if area is None:
            raise NotFoundError("Mission area", area_id)

        is_manager = self._can_manage(mission, actor)
        if not is_manager:
            if area.assigned_to != actor.id:
                raise ForbiddenError("Only command or the assigned searcher can update this area")
            if input.name is not None or input.coordinates is not None or input.assigned_to is not None:
                raise ForbiddenError("Searchers may only update area status and notes")

        changes = {}
        if input.status is not None and input.status != area.status:
            if input.status not in AREA_TRANSITIONS[area.status]:
                raise InvalidTransitionError(
                    f"Cannot move area from {area.status.value} to {input.status.value}"
                )
            changes["status"] = {"old": area.status.value, "new": input.status.value}
            area.status = input.status
        if input.name is not None:
            area.name = input.name
        if input.coordinates is not None:
            area.coordinates = list(input.coordinates)
        if input.assigned_to is not None:
            searcher = await self._get_user_or_raise(input.assigned_to)
            area.assigned_to = searcher.id
            area.assigned_to_name = searcher.name
            changes["assignedTo"] = str(searcher.id)
        if input.notes is not None:
            area.notes = input.notes

        await self._session.flush()
        self._audit.log_event(
            actor, AuditAction.UPDATE, "sar_mission_area", area.id,
            entity_name=area.name, changes=changes,
        )
        return area

    # =========================================================================
    # PUBLIC STATUS
    # =========================================================================

    async def public_status(self) -> PublicStatus:
        """Active missions flagged for public visibility."""
        result = await self._session.execute(
            select(SARMission)
            .where(
                SARMission.status == MissionStatus.ACTIVE,
                SARMission.is_public_visible.is_(True),
            )
            .order_by(SARMission.started_at.desc())
        )
        missions = list(result.scalars().all())
        if not missions:
            return PublicStatus(active=False, message="No active search operations", missions=[])

        message = missions[0].public_message or "Search and rescue operation in progress"
        return PublicStatus(active=True, message=message, missions=missions)
