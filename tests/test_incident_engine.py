"""
Tests for the Incident Engine.

These tests verify:
1. LIFECYCLE: active -> resolved | cancelled, idempotent, terminal
2. ASSIGN: one live assignment per resource name per incident
3. TRANSITIONS: assigned -> en_route -> on_scene, anything -> unavailable
"""

from uuid import uuid4

import pytest

from apsar_api.models import IncidentStatus, ResourceStatus, ResourceType
from apsar_api.services import (
    AssignResourceInput,
    CreateIncidentInput,
    ForbiddenError,
    IncidentClosedError,
    IncidentEngine,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ResourceAlreadyAssignedError,
)


@pytest.fixture
def incidents(session) -> IncidentEngine:
    return IncidentEngine(session)


@pytest.fixture
async def incident(incidents, officer):
    return await incidents.create_incident(
        CreateIncidentInput(title="Climber fall", incident_type="technical rescue"),
        officer,
    )


def personnel(user) -> AssignResourceInput:
    return AssignResourceInput(
        resource_type=ResourceType.PERSONNEL,
        resource_name=user.name,
        resource_ref_id=user.id,
    )


# =============================================================================
# TEST: LIFECYCLE
# =============================================================================


class TestIncidentLifecycle:
    async def test_incident_starts_active(self, incident, officer):
        assert incident.status == IncidentStatus.ACTIVE
        assert incident.created_by == officer.id
        assert incident.started_at is not None

    async def test_commander_name_is_snapshotted(self, incidents, officer, admin):
        incident = await incidents.create_incident(
            CreateIncidentInput(title="x", incident_type="y", incident_commander_id=admin.id),
            officer,
        )
        assert incident.incident_commander_name == admin.name

    async def test_member_cannot_open_incident(self, incidents, member_a):
        with pytest.raises(ForbiddenError):
            await incidents.create_incident(
                CreateIncidentInput(title="x", incident_type="y"), member_a
            )

    async def test_resolve_stamps_resolved_at(self, incidents, incident, officer):
        resolved = await incidents.resolve_incident(incident.id, officer)

        assert resolved.status == IncidentStatus.RESOLVED
        assert resolved.resolved_at is not None
        assert resolved.cancelled_at is None

    async def test_resolve_is_idempotent(self, incidents, incident, officer):
        first = await incidents.resolve_incident(incident.id, officer)
        again = await incidents.resolve_incident(incident.id, officer)
        assert again.resolved_at == first.resolved_at

    async def test_cannot_cancel_resolved_incident(self, incidents, incident, officer):
        await incidents.resolve_incident(incident.id, officer)

        with pytest.raises(InvalidStateError):
            await incidents.cancel_incident(incident.id, officer)

    async def test_unknown_incident(self, incidents, officer):
        with pytest.raises(NotFoundError):
            await incidents.resolve_incident(uuid4(), officer)


# =============================================================================
# TEST: ASSIGN RESOURCES
# =============================================================================


class TestAssignResource:
    async def test_assign_starts_assigned(self, incidents, incident, officer, member_a):
        resource = await incidents.assign_resource(incident.id, personnel(member_a), officer)

        assert resource.status == ResourceStatus.ASSIGNED
        assert resource.resource_id == member_a.id
        assert resource.assigned_by == officer.id

    async def test_duplicate_live_assignment_rejected(self, incidents, incident, officer, member_a):
        await incidents.assign_resource(incident.id, personnel(member_a), officer)

        with pytest.raises(ResourceAlreadyAssignedError):
            await incidents.assign_resource(incident.id, personnel(member_a), officer)

    async def test_reassign_after_unavailable(self, incidents, incident, officer, member_a):
        first = await incidents.assign_resource(incident.id, personnel(member_a), officer)
        await incidents.transition_resource(first.id, ResourceStatus.UNAVAILABLE, officer)

        second = await incidents.assign_resource(incident.id, personnel(member_a), officer)

        assert second.id != first.id
        assert len(await incidents.list_resources(incident.id)) == 2

    async def test_same_name_on_another_incident_is_allowed(self, incidents, incident, officer, member_a):
        other = await incidents.create_incident(
            CreateIncidentInput(title="Second", incident_type="medical"), officer
        )
        await incidents.assign_resource(incident.id, personnel(member_a), officer)
        await incidents.assign_resource(other.id, personnel(member_a), officer)

    async def test_cannot_assign_to_closed_incident(self, incidents, incident, officer, member_a):
        await incidents.cancel_incident(incident.id, officer)

        with pytest.raises(IncidentClosedError):
            await incidents.assign_resource(incident.id, personnel(member_a), officer)

    async def test_member_cannot_assign(self, incidents, incident, member_a):
        with pytest.raises(ForbiddenError):
            await incidents.assign_resource(incident.id, personnel(member_a), member_a)


# =============================================================================
# TEST: RESOURCE STATUS
# =============================================================================


class TestResourceTransitions:
    async def test_forward_path(self, incidents, incident, officer, member_a):
        resource = await incidents.assign_resource(incident.id, personnel(member_a), officer)

        resource = await incidents.transition_resource(resource.id, ResourceStatus.EN_ROUTE, officer)
        assert resource.status == ResourceStatus.EN_ROUTE
        resource = await incidents.transition_resource(resource.id, ResourceStatus.ON_SCENE, officer)
        assert resource.status == ResourceStatus.ON_SCENE

    async def test_cannot_skip_en_route(self, incidents, incident, officer, member_a):
        resource = await incidents.assign_resource(incident.id, personnel(member_a), officer)

        with pytest.raises(InvalidTransitionError):
            await incidents.transition_resource(resource.id, ResourceStatus.ON_SCENE, officer)

    async def test_on_scene_cannot_return_to_assigned(self, incidents, incident, officer, member_a):
        resource = await incidents.assign_resource(incident.id, personnel(member_a), officer)
        await incidents.transition_resource(resource.id, ResourceStatus.EN_ROUTE, officer)
        await incidents.transition_resource(resource.id, ResourceStatus.ON_SCENE, officer)

        with pytest.raises(InvalidTransitionError):
            await incidents.transition_resource(resource.id, ResourceStatus.ASSIGNED, officer)

    async def test_unavailable_is_terminal(self, incidents, incident, officer, member_a):
        resource = await incidents.assign_resource(incident.id, personnel(member_a), officer)
        await incidents.transition_resource(resource.id, ResourceStatus.UNAVAILABLE, officer)

        with pytest.raises(InvalidTransitionError):
            await incidents.transition_resource(resource.id, ResourceStatus.EN_ROUTE, officer)

    async def test_same_status_is_noop(self, incidents, incident, officer, member_a):
        resource = await incidents.assign_resource(incident.id, personnel(member_a), officer)
        same = await incidents.transition_resource(resource.id, ResourceStatus.ASSIGNED, officer)
        assert same.status == ResourceStatus.ASSIGNED

    async def test_person_may_update_own_assignment(self, incidents, incident, officer, member_a):
        resource = await incidents.assign_resource(incident.id, personnel(member_a), officer)

        updated = await incidents.transition_resource(
            resource.id, ResourceStatus.EN_ROUTE, member_a, notes="leaving now"
        )
        assert updated.status == ResourceStatus.EN_ROUTE
        assert updated.notes == "leaving now"

    async def test_other_member_is_forbidden(self, incidents, incident, officer, member_a, member_b):
        resource = await incidents.assign_resource(incident.id, personnel(member_a), officer)

        with pytest.raises(ForbiddenError):
            await incidents.transition_resource(resource.id, ResourceStatus.EN_ROUTE, member_b)

    async def test_closed_incident_freezes_resources(self, incidents, incident, officer, member_a):
        resource = await incidents.assign_resource(incident.id, personnel(member_a), officer)
        await incidents.resolve_incident(incident.id, officer)

        with pytest.raises(IncidentClosedError):
            await incidents.transition_resource(resource.id, ResourceStatus.EN_ROUTE, officer)
