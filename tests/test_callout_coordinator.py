"""
Tests for the Call-Out Coordinator.

These tests verify:
1. RESPOND: one response per (call-out, user), updated in place
2. COUNT: responseCount is the number of distinct responders
3. VISIBILITY: members only see their own responses
4. CLOSE: active -> completed|cancelled, idempotent
5. EXPIRY: computed at read time; expired call-outs reject responses
"""

from datetime import timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from apsar_api.models import (
    CallOut,
    CallOutResponse,
    CallOutResponseStatus,
    CallOutStatus,
    CallOutType,
    Notification,
    NotificationType,
    utcnow,
)
from apsar_api.services import (
    CallOutClosedError,
    CallOutCoordinator,
    CreateCallOutInput,
    ForbiddenError,
    NotFoundError,
    RespondInput,
    ValidationFailedError,
)


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def coordinator(session: AsyncSession) -> CallOutCoordinator:
    return CallOutCoordinator(session)


@pytest.fixture
async def call_out(coordinator, officer):
    view = await coordinator.create_call_out(
        CreateCallOutInput(title="Lost skier", message="Muster at base"),
        officer,
    )
    return view.call_out


# =============================================================================
# TEST: CREATE
# =============================================================================


class TestCreateCallOut:
    async def test_create_starts_active_and_notifies_recipients(
        self, session, coordinator, officer, team
    ):
        view = await coordinator.create_call_out(
            CreateCallOutInput(title="Avalanche", message="Slide on east bowl"),
            officer,
        )

        assert view.call_out.status == CallOutStatus.ACTIVE
        assert view.response_count == 0
        assert view.is_expired is False

        result = await session.execute(
            select(func.count(Notification.id)).where(
                Notification.notification_type == NotificationType.CALLOUT
            )
        )
        # Everyone but the creator
        assert result.scalar_one() == len(team) - 1

    async def test_unit_call_out_only_reaches_unit(self, session, coordinator, officer, member_c):
        await coordinator.create_call_out(
            CreateCallOutInput(
                title="Team A only",
                message="Rope rescue",
                call_out_type=CallOutType.UNIT,
                target_unit="Team A",
            ),
            officer,
        )

        result = await session.execute(
            select(Notification.user_id).where(Notification.notification_type == NotificationType.CALLOUT)
        )
        assert member_c.id not in set(result.scalars().all())

    async def test_member_cannot_create(self, coordinator, member_a):
        with pytest.raises(ForbiddenError):
            await coordinator.create_call_out(
                CreateCallOutInput(title="Nope", message="Nope"), member_a
            )

    async def test_unit_call_out_requires_unit(self, coordinator, officer):
        with pytest.raises(ValidationFailedError):
            await coordinator.create_call_out(
                CreateCallOutInput(title="x", message="y", call_out_type=CallOutType.UNIT),
                officer,
            )

    async def test_expiry_must_be_in_future(self, coordinator, officer):
        with pytest.raises(ValidationFailedError):
            await coordinator.create_call_out(
                CreateCallOutInput(
                    title="x", message="y", expires_at=utcnow() - timedelta(minutes=1)
                ),
                officer,
            )

    async def test_naive_expiry_is_read_as_utc(self, coordinator, officer):
        naive = (utcnow() + timedelta(hours=1)).replace(tzinfo=None)

        view = await coordinator.create_call_out(
            CreateCallOutInput(title="x", message="y", expires_at=naive),
            officer,
        )

        assert view.is_expired is False
        assert view.call_out.expires_at == naive.replace(tzinfo=timezone.utc)

    async def test_naive_past_expiry_rejected(self, coordinator, officer):
        naive = (utcnow() - timedelta(minutes=1)).replace(tzinfo=None)

        with pytest.raises(ValidationFailedError):
            await coordinator.create_call_out(
                CreateCallOutInput(title="x", message="y", expires_at=naive), officer
            )


# =============================================================================
# TEST: RESPOND
# =============================================================================


class TestRespond:
    async def test_second_response_updates_in_place(self, session, coordinator, call_out, member_a):
        first = await coordinator.respond(
            call_out.id, RespondInput(status=CallOutResponseStatus.AVAILABLE), member_a
        )
        second = await coordinator.respond(
            call_out.id,
            RespondInput(status=CallOutResponseStatus.EN_ROUTE, notes="10 min"),
            member_a,
        )

        assert second.id == first.id
        assert second.status == CallOutResponseStatus.EN_ROUTE
        assert second.notes == "10 min"

        result = await session.execute(
            select(func.count(CallOutResponse.id)).where(CallOutResponse.call_out_id == call_out.id)
        )
        assert result.scalar_one() == 1

    async def test_response_count_is_distinct_responders(
        self, coordinator, call_out, member_a, member_b
    ):
        await coordinator.respond(call_out.id, RespondInput(status=CallOutResponseStatus.AVAILABLE), member_a)
        await coordinator.respond(call_out.id, RespondInput(status=CallOutResponseStatus.EN_ROUTE), member_a)
        await coordinator.respond(call_out.id, RespondInput(status=CallOutResponseStatus.UNAVAILABLE), member_b)

        assert await coordinator.response_count(call_out.id) == 2

    async def test_creator_is_notified_of_response(self, session, coordinator, call_out, officer, member_a):
        await coordinator.respond(call_out.id, RespondInput(status=CallOutResponseStatus.AVAILABLE), member_a)

        result = await session.execute(
            select(Notification).where(
                Notification.user_id == officer.id,
                Notification.notification_type == NotificationType.CALLOUT_RESPONSE,
            )
        )
        notification = result.scalar_one()
        assert notification.data["callOutId"] == str(call_out.id)

    async def test_untargeted_member_is_forbidden(self, coordinator, officer, member_c):
        view = await coordinator.create_call_out(
            CreateCallOutInput(
                title="Team A", message="m", call_out_type=CallOutType.UNIT, target_unit="Team A"
            ),
            officer,
        )
        with pytest.raises(ForbiddenError):
            await coordinator.respond(
                view.call_out.id, RespondInput(status=CallOutResponseStatus.AVAILABLE), member_c
            )

    async def test_respond_to_closed_call_out_fails(self, coordinator, call_out, officer, member_a):
        await coordinator.close_call_out(call_out.id, CallOutStatus.COMPLETED, officer)

        with pytest.raises(CallOutClosedError, match="completed"):
            await coordinator.respond(
                call_out.id, RespondInput(status=CallOutResponseStatus.AVAILABLE), member_a
            )

    async def test_respond_to_expired_call_out_fails(self, session, coordinator, call_out, member_a):
        # Expire it directly: creation rejects past expiries
        call_out.expires_at = utcnow() - timedelta(seconds=1)
        await session.flush()

        with pytest.raises(CallOutClosedError, match="expired"):
            await coordinator.respond(
                call_out.id, RespondInput(status=CallOutResponseStatus.AVAILABLE), member_a
            )

        view = await coordinator.get_call_out(call_out.id, member_a)
        assert view.is_expired is True
        # Expiry is never written back
        assert view.call_out.status == CallOutStatus.ACTIVE

    async def test_unknown_call_out(self, coordinator, member_a):
        with pytest.raises(NotFoundError):
            await coordinator.respond(
                uuid4(), RespondInput(status=CallOutResponseStatus.AVAILABLE), member_a
            )

    async def test_responses_stay_with_their_call_out(self, session, coordinator, call_out, officer, member_a):
        other = (
            await coordinator.create_call_out(
                CreateCallOutInput(title="Overdue party", message="Ridge trail"), officer
            )
        ).call_out
        kept = await coordinator.respond(
            other.id, RespondInput(status=CallOutResponseStatus.AVAILABLE, notes="ready"), member_a
        )

        await coordinator.respond(
            call_out.id, RespondInput(status=CallOutResponseStatus.UNAVAILABLE), member_a
        )

        result = await session.execute(
            select(CallOutResponse)
            .where(CallOutResponse.call_out_id == other.id)
            .execution_options(populate_existing=True)
        )
        untouched = result.scalar_one()
        assert untouched.id == kept.id
        assert untouched.status == CallOutResponseStatus.AVAILABLE
        assert untouched.notes == "ready"
        assert await coordinator.response_count(other.id) == 1
        assert await coordinator.response_count(call_out.id) == 1


# =============================================================================
# TEST: READ
# =============================================================================


class TestVisibility:
    async def test_member_sees_only_own_response(
        self, coordinator, call_out, officer, member_a, member_b
    ):
        await coordinator.respond(call_out.id, RespondInput(status=CallOutResponseStatus.AVAILABLE), member_a)
        await coordinator.respond(call_out.id, RespondInput(status=CallOutResponseStatus.AVAILABLE), member_b)

        own = await coordinator.list_responses(call_out.id, member_a)
        assert [r.user_id for r in own] == [member_a.id]

        everyone = await coordinator.list_responses(call_out.id, officer)
        assert {r.user_id for r in everyone} == {member_a.id, member_b.id}

    async def test_member_list_excludes_untargeted(self, coordinator, officer, member_a, member_c):
        await coordinator.create_call_out(
            CreateCallOutInput(
                title="Team A", message="m", call_out_type=CallOutType.UNIT, target_unit="Team A"
            ),
            officer,
        )

        assert len(await coordinator.list_call_outs(member_a)) == 1
        assert await coordinator.list_call_outs(member_c) == []
        assert len(await coordinator.list_call_outs(officer)) == 1

    async def test_command_list_pages_without_overlap(self, coordinator, officer):
        for title in ("one", "two", "three"):
            await coordinator.create_call_out(CreateCallOutInput(title=title, message="m"), officer)

        first = await coordinator.list_call_outs(officer, limit=2)
        second = await coordinator.list_call_outs(officer, limit=2, offset=2)

        assert len(first) == 2
        assert len(second) == 1
        ids = {v.call_out.id for v in first + second}
        assert len(ids) == 3

    async def test_member_list_pages_after_filtering(self, coordinator, officer, member_a):
        await coordinator.create_call_out(
            CreateCallOutInput(
                title="Team B", message="m", call_out_type=CallOutType.UNIT, target_unit="Team B"
            ),
            officer,
        )
        for title in ("one", "two"):
            await coordinator.create_call_out(CreateCallOutInput(title=title, message="m"), officer)

        page = await coordinator.list_call_outs(member_a, limit=1, offset=1)

        assert len(page) == 1
        assert page[0].call_out.call_out_type == CallOutType.ALL


# =============================================================================
# TEST: CLOSE
# =============================================================================


class TestClose:
    async def test_close_sets_outcome(self, coordinator, call_out, officer):
        view = await coordinator.close_call_out(call_out.id, CallOutStatus.CANCELLED, officer)

        assert view.call_out.status == CallOutStatus.CANCELLED
        assert view.call_out.closed_by == officer.id
        assert view.call_out.closed_at is not None

    async def test_close_is_idempotent(self, coordinator, call_out, officer):
        first = await coordinator.close_call_out(call_out.id, CallOutStatus.COMPLETED, officer)
        again = await coordinator.close_call_out(call_out.id, CallOutStatus.CANCELLED, officer)

        assert again.call_out.status == CallOutStatus.COMPLETED
        assert again.call_out.closed_at == first.call_out.closed_at

    async def test_member_cannot_close(self, coordinator, call_out, member_a):
        with pytest.raises(ForbiddenError):
            await coordinator.close_call_out(call_out.id, CallOutStatus.COMPLETED, member_a)

    async def test_close_rejects_active_outcome(self, coordinator, call_out, officer):
        with pytest.raises(ValidationFailedError):
            await coordinator.close_call_out(call_out.id, CallOutStatus.ACTIVE, officer)

    async def test_closed_call_out_persists(self, session, coordinator, call_out, officer):
        await coordinator.close_call_out(call_out.id, CallOutStatus.COMPLETED, officer)
        await session.commit()

        stored = await session.get(CallOut, call_out.id)
        assert stored.status == CallOutStatus.COMPLETED
