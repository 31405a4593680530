"""
Incident Engine: incident lifecycle and resource assignment.

Resource status edges:
    assigned -> en_route -> on_scene
    assigned | en_route | on_scene -> unavailable

A resource name holds at most one live (non-unavailable) assignment per
incident. That is checked up front and backed by a partial unique index so
that two concurrent assignments cannot both land.
"""

import logging
from dataclasses import dataclass
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    COMMAND_ROLE,
    AuditAction,
    Incident,
    IncidentResource,
    IncidentStatus,
    ResourceStatus,
    ResourceType,
    User,
    has_role,
    utcnow,
)
from .audit import AuditService
from .errors import (
    ConflictError,
    ForbiddenError,
    IncidentClosedError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ResourceAlreadyAssignedError,
)

logger = logging.getLogger(__name__)

RESOURCE_TRANSITIONS: dict[ResourceStatus, set[ResourceStatus]] = {
    ResourceStatus.ASSIGNED: {ResourceStatus.EN_ROUTE, ResourceStatus.UNAVAILABLE},
    ResourceStatus.EN_ROUTE: {ResourceStatus.ON_SCENE, ResourceStatus.UNAVAILABLE},
    ResourceStatus.ON_SCENE: {ResourceStatus.UNAVAILABLE},
    ResourceStatus.UNAVAILABLE: set(),
}


def can_transition(current: ResourceStatus, new: ResourceStatus) -> bool:
    return new in RESOURCE_TRANSITIONS[current]


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class CreateIncidentInput:
    title: str
    incident_type: str
    description: str | None = None
    location: dict | None = None
    incident_commander_id: UUID | None = None


@dataclass
class AssignResourceInput:
    resource_type: ResourceType
    resource_name: str
    resource_ref_id: UUID | None = None
    notes: str | None = None


# =============================================================================
# INCIDENT ENGINE
# =============================================================================


class IncidentEngine:
    """Sole writer of Incident and IncidentResource rows."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)

    async def _get_incident_or_raise(self, incident_id: UUID) -> Incident:
        result = await self._session.execute(
            select(Incident)
            .where(Incident.id == incident_id)
            .execution_options(populate_existing=True)
        )
        incident = result.scalar_one_or_none()
        if incident is None:
            raise NotFoundError("Incident", incident_id)
        return incident

    async def _get_resource_or_raise(self, resource_id: UUID) -> IncidentResource:
        result = await self._session.execute(
            select(IncidentResource)
            .where(IncidentResource.id == resource_id)
            .execution_options(populate_existing=True)
        )
        resource = result.scalar_one_or_none()
        if resource is None:
            raise NotFoundError("Incident resource", resource_id)
        return resource

    def _require_command(self, actor: User, what: str) -> None:
        if not has_role(actor.role, COMMAND_ROLE):
            raise ForbiddenError(f"Only command can {what}")

    # =========================================================================
    # INCIDENTS
    # =========================================================================

    async def create_incident(self, input: CreateIncidentInput, actor: User) -> Incident:
        """Open a new incident. Incidents start active: they are ongoing events."""
        self._require_command(actor, "open incidents")

        commander_name = None
        if input.incident_commander_id:
            commander = await self._session.get(User, input.incident_commander_id)
            if commander is None:
                raise NotFoundError("User", input.incident_commander_id)
            commander_name = commander.name

        incident = Incident(
            id=uuid4(),
            title=input.title,
            description=input.description,
            incident_type=input.incident_type,
            status=IncidentStatus.ACTIVE,
            incident_commander_id=input.incident_commander_id,
            incident_commander_name=commander_name,
            location=input.location,
            created_by=actor.id,
            started_at=utcnow(),
            resources=[],
        )
        self._session.add(incident)
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.CREATE, "incident", incident.id, entity_name=incident.title
        )
        logger.info(f"Incident {incident.id} opened by {actor.id}")
        return incident

    async def get_incident(self, incident_id: UUID) -> Incident:
        return await self._get_incident_or_raise(incident_id)

    async def list_incidents(
        self,
        status: IncidentStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Incident]:
        query = select(Incident)
        if status is not None:
            query = query.where(Incident.status == status)
        query = query.order_by(Incident.started_at.desc()).limit(limit).offset(offset)

        result = await self._session.execute(query)
        return result.scalars().all()

    async def resolve_incident(self, incident_id: UUID, actor: User) -> Incident:
        """active -> resolved, stamping resolved_at. Idempotent."""
        return await self._close(incident_id, IncidentStatus.RESOLVED, actor)

    async def cancel_incident(self, incident_id: UUID, actor: User) -> Incident:
        """active -> cancelled. Idempotent."""
        return await self._close(incident_id, IncidentStatus.CANCELLED, actor)

    async def _close(self, incident_id: UUID, target: IncidentStatus, actor: User) -> Incident:
        self._require_command(actor, f"set incidents {target.value}")
        incident = await self._get_incident_or_raise(incident_id)

        if incident.status == target:
            return incident
        if incident.status != IncidentStatus.ACTIVE:
            raise InvalidStateError(
                f"Incident is {incident.status.value}, cannot mark it {target.value}"
            )

        now = utcnow()
        values = {"status": target, "updated_at": now}
        if target == IncidentStatus.RESOLVED:
            values["resolved_at"] = now
        else:
            values["cancelled_at"] = now

        result = await self._session.execute(
            update(Incident)
            .where(Incident.id == incident_id, Incident.status == IncidentStatus.ACTIVE)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        incident = await self._get_incident_or_raise(incident_id)
        if not result.rowcount:
            # Lost a race: the winner's outcome stands if it matches
            if incident.status == target:
                return incident
            raise InvalidStateError(f"Incident is already {incident.status.value}")

        self._audit.log_event(
            actor,
            AuditAction.COMPLETE if target == IncidentStatus.RESOLVED else AuditAction.UPDATE,
            "incident",
            incident.id,
            entity_name=incident.title,
            changes={"status": {"old": IncidentStatus.ACTIVE.value, "new": target.value}},
        )
        logger.info(f"Incident {incident.id} {target.value} by {actor.id}")
        return incident

    # =========================================================================
    # RESOURCES
    # =========================================================================

    async def list_resources(self, incident_id: UUID) -> Sequence[IncidentResource]:
        await self._get_incident_or_raise(incident_id)
        result = await self._session.execute(
            select(IncidentResource)
            .where(IncidentResource.incident_id == incident_id)
            .order_by(IncidentResource.assigned_at.asc())
        )
        return result.scalars().all()

    async def assign_resource(
        self,
        incident_id: UUID,
        input: AssignResourceInput,
        actor: User,
    ) -> IncidentResource:
        """
        Attach a resource to an open incident.

        Flow:
        1. Require command; reject terminal incidents
        2. Reject a name that already holds a live assignment
        3. Insert and flush; an index violation from a concurrent assignment
           surfaces as ResourceAlreadyAssigned and aborts the transaction
        """
        self._require_command(actor, "assign resources")
        incident = await self._get_incident_or_raise(incident_id)
        if incident.is_terminal:
            raise IncidentClosedError(f"Incident is {incident.status.value}")

        existing = await self._session.execute(
            select(IncidentResource.id).where(
                IncidentResource.incident_id == incident_id,
                IncidentResource.resource_name == input.resource_name,
                IncidentResource.status != ResourceStatus.UNAVAILABLE,
            )
        )
        if existing.first() is not None:
            raise ResourceAlreadyAssignedError(
                f"{input.resource_name} is already assigned to this incident"
            )

        resource = IncidentResource(
            id=uuid4(),
            incident_id=incident_id,
            resource_type=input.resource_type,
            resource_ref_id=input.resource_ref_id,
            resource_name=input.resource_name,
            status=ResourceStatus.ASSIGNED,
            assigned_at=utcnow(),
            assigned_by=actor.id,
            notes=input.notes,
        )
        self._session.add(resource)
        try:
            await self._session.flush()
        except IntegrityError:
            raise ResourceAlreadyAssignedError(
                f"{input.resource_name} is already assigned to this incident"
            )

        self._audit.log_event(
            actor,
            AuditAction.ASSIGN,
            "incident_resource",
            resource.id,
            entity_name=resource.resource_name,
            changes={"incidentId": str(incident_id), "resourceType": resource.resource_type.value},
        )
        logger.info(f"Assigned {resource.resource_name} to incident {incident_id}")
        return resource

    async def transition_resource(
        self,
        resource_id: UUID,
        new_status: ResourceStatus,
        actor: User,
        notes: str | None = None,
    ) -> IncidentResource:
        """
        Move a resource along its allowed edges.

        Command may move any resource; a person may move their own personnel
        assignment. Re-applying the current status is a no-op.
        """
        resource = await self._get_resource_or_raise(resource_id)
        is_own = (
            resource.resource_type == ResourceType.PERSONNEL
            and resource.resource_ref_id == actor.id
        )
        if not is_own and not has_role(actor.role, COMMAND_ROLE):
            raise ForbiddenError("Only command or the assigned person can update this resource")

        incident = await self._get_incident_or_raise(resource.incident_id)
        if incident.is_terminal:
            raise IncidentClosedError(f"Incident is {incident.status.value}")

        current = resource.status
        if new_status == current:
            return resource
        if not can_transition(current, new_status):
            raise InvalidTransitionError(
                f"Cannot move resource from {current.value} to {new_status.value}"
            )

        values = {"status": new_status, "updated_at": utcnow()}
        if notes is not None:
            values["notes"] = notes
        result = await self._session.execute(
            update(IncidentResource)
            .where(IncidentResource.id == resource_id, IncidentResource.status == current)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            raise ConflictError("Resource status changed concurrently; reload and retry")

        resource = await self._get_resource_or_raise(resource_id)
        self._audit.log_event(
            actor,
            AuditAction.UPDATE,
            "incident_resource",
            resource.id,
            entity_name=resource.resource_name,
            changes={"status": {"old": current.value, "new": new_status.value}},
        )
        logger.info(
            f"Resource {resource.id} on incident {resource.incident_id}: "
            f"{current.value} -> {new_status.value}"
        )
        return resource
