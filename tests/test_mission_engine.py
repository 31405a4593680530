"""
Tests for the Mission Engine.

These tests verify:
1. CREATE: active missions need command; training missions anyone
2. LIFECYCLE: planning -> active -> completed, cancel from either, monotonic
3. AREAS: ordered positions, searcher status reports, area edges
4. PUBLIC STATUS: only active, publicly visible missions
"""

import pytest

from apsar_api.models import AreaStatus, MissionStatus, MissionType
from apsar_api.services import (
    AreaInput,
    CreateMissionInput,
    ForbiddenError,
    InvalidTransitionError,
    MissionClosedError,
    MissionEngine,
    UpdateAreaInput,
    UpdateMissionInput,
)


@pytest.fixture
def missions(session) -> MissionEngine:
    return MissionEngine(session)


@pytest.fixture
async def mission(missions, officer):
    return await missions.create_mission(
        CreateMissionInput(name="Missing hunter", mission_type=MissionType.ACTIVE),
        officer,
    )


# =============================================================================
# TEST: CREATE
# =============================================================================


class TestCreateMission:
    async def test_mission_starts_in_planning(self, mission, officer):
        assert mission.status == MissionStatus.PLANNING
        assert mission.created_by == officer.id
        assert mission.started_at is None

    async def test_member_cannot_create_active_mission(self, missions, member_a):
        with pytest.raises(ForbiddenError):
            await missions.create_mission(
                CreateMissionInput(name="Real", mission_type=MissionType.ACTIVE), member_a
            )

    async def test_member_can_run_own_training_mission(self, missions, member_a):
        drill = await missions.create_mission(
            CreateMissionInput(name="Drill", mission_type=MissionType.TRAINING), member_a
        )
        started = await missions.start_mission(drill.id, member_a)
        assert started.status == MissionStatus.ACTIVE

    async def test_member_cannot_manage_others_training(self, missions, member_a, member_b):
        drill = await missions.create_mission(
            CreateMissionInput(name="Drill", mission_type=MissionType.TRAINING), member_a
        )
        with pytest.raises(ForbiddenError):
            await missions.start_mission(drill.id, member_b)


# =============================================================================
# TEST: LIFECYCLE
# =============================================================================


class TestMissionLifecycle:
    async def test_full_lifecycle_stamps_times(self, missions, mission, officer):
        started = await missions.start_mission(mission.id, officer)
        assert started.status == MissionStatus.ACTIVE
        assert started.started_at is not None

        completed = await missions.complete_mission(mission.id, officer)
        assert completed.status == MissionStatus.COMPLETED
        assert completed.completed_at is not None

    async def test_cannot_complete_from_planning(self, missions, mission, officer):
        with pytest.raises(InvalidTransitionError):
            await missions.complete_mission(mission.id, officer)

    async def test_cancel_from_planning(self, missions, mission, officer):
        cancelled = await missions.cancel_mission(mission.id, officer)
        assert cancelled.status == MissionStatus.CANCELLED
        assert cancelled.cancelled_at is not None

    async def test_repeat_action_is_noop(self, missions, mission, officer):
        await missions.start_mission(mission.id, officer)
        await missions.complete_mission(mission.id, officer)
        again = await missions.complete_mission(mission.id, officer)
        assert again.status == MissionStatus.COMPLETED

    async def test_terminal_mission_is_closed(self, missions, mission, officer):
        await missions.cancel_mission(mission.id, officer)

        with pytest.raises(MissionClosedError):
            await missions.start_mission(mission.id, officer)
        with pytest.raises(MissionClosedError):
            await missions.update_mission(mission.id, UpdateMissionInput(description="late"), officer)

    async def test_member_cannot_start_active_mission(self, missions, mission, member_a):
        with pytest.raises(ForbiddenError):
            await missions.start_mission(mission.id, member_a)

    async def test_update_only_applies_set_fields(self, missions, mission, officer, admin):
        updated = await missions.update_mission(
            mission.id,
            UpdateMissionInput(incident_commander_id=admin.id, public_message="Trail closed"),
            officer,
        )
        assert updated.incident_commander_name == admin.name
        assert updated.public_message == "Trail closed"
        assert updated.is_public_visible is False


# =============================================================================
# TEST: AREAS
# =============================================================================


class TestSearchAreas:
    async def test_positions_are_sequential(self, missions, mission, officer):
        first = await missions.create_area(mission.id, AreaInput(name="Sector 1"), officer)
        second = await missions.create_area(mission.id, AreaInput(name="Sector 2"), officer)

        assert (first.position, second.position) == (0, 1)
        assert [a.name for a in await missions.list_areas(mission.id)] == ["Sector 1", "Sector 2"]

    async def test_searcher_reports_status(self, missions, mission, officer, member_a):
        area = await missions.create_area(
            mission.id, AreaInput(name="Gully", assigned_to=member_a.id), officer
        )
        assert area.assigned_to_name == member_a.name

        area = await missions.update_area(
            mission.id, area.id, UpdateAreaInput(status=AreaStatus.SEARCHING), member_a
        )
        area = await missions.update_area(
            mission.id, area.id, UpdateAreaInput(status=AreaStatus.CLEARED, notes="Nothing found"), member_a
        )
        assert area.status == AreaStatus.CLEARED
        assert area.notes == "Nothing found"

    async def test_searcher_cannot_redraw_area(self, missions, mission, officer, member_a):
        area = await missions.create_area(
            mission.id, AreaInput(name="Gully", assigned_to=member_a.id), officer
        )
        with pytest.raises(ForbiddenError):
            await missions.update_area(
                mission.id, area.id, UpdateAreaInput(coordinates=[[1, 2]]), member_a
            )

    async def test_unassigned_member_cannot_update(self, missions, mission, officer, member_b):
        area = await missions.create_area(mission.id, AreaInput(name="Gully"), officer)
        with pytest.raises(ForbiddenError):
            await missions.update_area(
                mission.id, area.id, UpdateAreaInput(status=AreaStatus.SEARCHING), member_b
            )

    async def test_area_cannot_skip_searching(self, missions, mission, officer):
        area = await missions.create_area(mission.id, AreaInput(name="Gully"), officer)
        with pytest.raises(InvalidTransitionError):
            await missions.update_area(
                mission.id, area.id, UpdateAreaInput(status=AreaStatus.COMPLETED), officer
            )


# =============================================================================
# TEST: PUBLIC STATUS
# =============================================================================


class TestPublicStatus:
    async def test_no_operations(self, missions):
        status = await missions.public_status()
        assert status.active is False
        assert status.missions == []

    async def test_only_visible_active_missions(self, missions, officer):
        hidden = await missions.create_mission(
            CreateMissionInput(name="Hidden", mission_type=MissionType.ACTIVE), officer
        )
        shown = await missions.create_mission(
            CreateMissionInput(
                name="Shown",
                mission_type=MissionType.ACTIVE,
                is_public_visible=True,
                public_message="Avoid the north trail",
            ),
            officer,
        )
        await missions.start_mission(hidden.id, officer)
        await missions.start_mission(shown.id, officer)

        status = await missions.public_status()
        assert status.active is True
        assert status.message == "Avoid the north trail"
        assert [m.id for m in status.missions] == [shown.id]

    async def test_planning_mission_is_not_public(self, missions, officer):
        await missions.create_mission(
            CreateMissionInput(name="Soon", mission_type=MissionType.ACTIVE, is_public_visible=True),
            officer,
        )
        assert (await missions.public_status()).active is False
