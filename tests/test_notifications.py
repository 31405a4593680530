"""
Tests for notifications: inbox, after-commit outbox, push delivery and jobs.

These tests verify:
1. INBOX: recipients own their notifications; read state and counts
2. OUTBOX: push work is handed over only after a successful commit
3. DELIVERY: batching, retry on 5xx, no retry on 4xx
4. JOBS: retention cleanup and asset reminders
"""

from datetime import timedelta
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import func, select

from apsar_api.core import get_session_context, take_outbox
from apsar_api.jobs import run_asset_reminder_job, run_cleanup_job
from apsar_api.models import (
    Equipment,
    EquipmentCategory,
    Notification,
    NotificationType,
    UserRole,
    utcnow,
)
from apsar_api.services import (
    ForbiddenError,
    NotificationDispatcher,
    NotificationService,
    OutboundNotification,
    PushChannel,
)


@pytest.fixture
def notifications(session) -> NotificationService:
    return NotificationService(session)


def outbound(tokens: list[str]) -> OutboundNotification:
    return OutboundNotification(
        notification_type=NotificationType.GENERAL,
        title="Test",
        body="Body",
        recipient_ids=[uuid4() for _ in tokens],
        push_tokens=tokens,
    )


# =============================================================================
# TEST: INBOX
# =============================================================================


class TestInbox:
    async def test_notify_skips_inactive_users(self, session, notifications, member_a, member_b):
        member_b.is_active = False
        await session.flush()

        count = await notifications.notify_users(
            [member_a.id, member_b.id], NotificationType.GENERAL, "Hi", "Hello"
        )
        assert count == 1

    async def test_notify_role_includes_higher_roles(self, notifications, officer, admin):
        count = await notifications.notify_role(UserRole.OFFICER, NotificationType.GENERAL, "t", "m")
        assert count == 2

    async def test_read_state_and_counts(self, notifications, member_a):
        await notifications.notify_users([member_a.id], NotificationType.GENERAL, "One", "1")
        await notifications.notify_users([member_a.id], NotificationType.CHAT, "Two", "2")
        assert await notifications.unread_count(member_a.id) == 2

        first = (await notifications.list_for_user(member_a.id, notification_type=NotificationType.GENERAL))[0]
        await notifications.mark_read(first.id, member_a.id)
        assert await notifications.unread_count(member_a.id) == 1

        assert await notifications.mark_all_read(member_a.id) == 1
        assert await notifications.unread_count(member_a.id) == 0

    async def test_cannot_touch_someone_elses(self, notifications, member_a, member_b):
        await notifications.notify_users([member_a.id], NotificationType.GENERAL, "Mine", "m")
        mine = (await notifications.list_for_user(member_a.id))[0]

        with pytest.raises(ForbiddenError):
            await notifications.mark_read(mine.id, member_b.id)
        with pytest.raises(ForbiddenError):
            await notifications.delete(mine.id, member_b.id)

    async def test_fan_out_queues_push_tokens(self, session, notifications, member_a, member_b):
        await notifications.notify_users([member_a.id, member_b.id], NotificationType.GENERAL, "t", "m")

        pending = take_outbox(session)
        assert len(pending) == 1
        # Only member_a registered a device
        assert pending[0].push_tokens == ["ExponentPushToken[a]"]
        assert set(pending[0].recipient_ids) == {member_a.id, member_b.id}


# =============================================================================
# TEST: AFTER-COMMIT OUTBOX
# =============================================================================


class TestOutbox:
    async def test_scheduled_after_commit(self, session_factory, dispatcher, member_a):
        async with get_session_context(session_factory, dispatcher=dispatcher) as session:
            await NotificationService(session).notify_users(
                [member_a.id], NotificationType.GENERAL, "t", "m"
            )
            assert dispatcher.scheduled == []

        assert len(dispatcher.scheduled) == 1

    async def test_dropped_on_rollback(self, session_factory, dispatcher, member_a):
        with pytest.raises(RuntimeError):
            async with get_session_context(session_factory, dispatcher=dispatcher) as session:
                await NotificationService(session).notify_users(
                    [member_a.id], NotificationType.GENERAL, "t", "m"
                )
                raise RuntimeError("boom")

        assert dispatcher.scheduled == []
        async with get_session_context(session_factory) as session:
            count = (await session.execute(select(func.count(Notification.id)))).scalar_one()
        assert count == 0


# =============================================================================
# TEST: PUSH DELIVERY
# =============================================================================


class TestPushDelivery:
    async def test_batches_tokens(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"data": []})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        dispatcher = NotificationDispatcher(
            PushChannel("https://push.test/send", retry_delay_seconds=0, client=client),
            batch_size=2,
        )

        result = await dispatcher.deliver(outbound(["t1", "t2", "t3"]))

        assert result.batches_sent == 2
        assert result.batches_failed == 0
        assert len(calls) == 2
        await client.aclose()

    async def test_retries_server_errors(self):
        statuses = iter([503, 502, 200])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(next(statuses))

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        channel = PushChannel("https://push.test/send", max_retries=3, retry_delay_seconds=0, client=client)

        success, error = await channel.send(outbound(["t1"]), ["t1"])

        assert success is True
        assert error is None
        await client.aclose()

    async def test_client_error_is_not_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        channel = PushChannel("https://push.test/send", max_retries=3, retry_delay_seconds=0, client=client)

        success, error = await channel.send(outbound(["t1"]), ["t1"])

        assert success is False
        assert "400" in error
        assert len(calls) == 1
        await client.aclose()

    async def test_no_tokens_sends_nothing(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        dispatcher = NotificationDispatcher(PushChannel("https://push.test/send", client=client))

        result = await dispatcher.deliver(outbound([]))

        assert result.batches_sent == 0
        assert calls == []
        await client.aclose()


# =============================================================================
# TEST: JOBS
# =============================================================================


class TestJobs:
    async def test_cleanup_purges_old_read_only(self, session, session_factory, member_a):
        old = utcnow() - timedelta(days=120)
        session.add_all([
            Notification(user_id=member_a.id, notification_type=NotificationType.GENERAL,
                         title="old read", message="m", is_read=True, created_at=old),
            Notification(user_id=member_a.id, notification_type=NotificationType.GENERAL,
                         title="old unread", message="m", is_read=False, created_at=old),
            Notification(user_id=member_a.id, notification_type=NotificationType.GENERAL,
                         title="new read", message="m", is_read=True),
        ])
        await session.commit()

        results = await run_cleanup_job(retention_days=90, session_factory=session_factory)

        assert results["purged_count"] == 1
        remaining = (await session.execute(select(Notification.title))).scalars().all()
        assert sorted(remaining) == ["new read", "old unread"]

    async def test_asset_reminder_job(self, session, session_factory, dispatcher, officer):
        session.add(
            Equipment(
                name="Rope 12",
                category=EquipmentCategory.ROPE,
                next_inspection_date=utcnow() + timedelta(days=2),
            )
        )
        await session.commit()

        results = await run_asset_reminder_job(session_factory=session_factory, dispatcher=dispatcher)

        assert results["reminders_sent"] == 1
        assert len(dispatcher.scheduled) == 1
        assert dispatcher.scheduled[0].notification_type == NotificationType.EQUIPMENT_INSPECTION
