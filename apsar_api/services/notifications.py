"""
Notification Service: in-app notification rows and the after-commit outbox.

Fan-out works in two halves:
1. Inside the request transaction, one bulk INSERT writes a Notification
   row per recipient and an OutboundNotification is queued on the session.
2. After COMMIT, the session dependency hands the queued items to the
   process-wide NotificationDispatcher for push delivery.

A rolled-back request therefore never produces a push, and push failures
never roll back the domain write.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Sequence
from uuid import UUID, uuid4

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import get_settings
from ..core.database import enqueue_after_commit
from ..models import (
    ROLE_RANK,
    Notification,
    NotificationChannel,
    NotificationType,
    User,
    UserRole,
    utcnow,
)
from .errors import ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)
settings = get_settings()

DEFAULT_CHANNELS = [NotificationChannel.IN_APP.value, NotificationChannel.PUSH.value]


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class OutboundNotification:
    """A committed fan-out waiting for push delivery.

    Push tokens are resolved while the request session is still open so that
    delivery never needs a database session of its own.
    """
    notification_type: NotificationType
    title: str
    body: str
    recipient_ids: list[UUID]
    push_tokens: list[str]
    data: dict[str, Any] = field(default_factory=dict)


# =============================================================================
# NOTIFICATION SERVICE
# =============================================================================


class NotificationService:
    """Creates, lists and expires in-app notifications."""

    def __init__(self, session: AsyncSession):
        self._session = session

    # =========================================================================
    # FAN-OUT
    # =========================================================================

    async def notify_users(
        self,
        user_ids: Iterable[UUID],
        notification_type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        channels: list[str] | None = None,
        action_url: str | None = None,
    ) -> int:
        """Notify the active users among ``user_ids``. Returns the recipient count."""
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return 0

        result = await self._session.execute(
            select(User).where(User.id.in_(ids), User.is_active.is_(True))
        )
        recipients = result.scalars().all()
        return await self._fan_out(
            recipients, notification_type, title, message, data, channels, action_url
        )

    async def notify_role(
        self,
        minimum: UserRole,
        notification_type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        exclude: Iterable[UUID] = (),
    ) -> int:
        """Notify every active user at or above ``minimum``."""
        roles = [role for role, rank in ROLE_RANK.items() if rank >= ROLE_RANK[minimum]]
        excluded = set(exclude)

        result = await self._session.execute(
            select(User).where(User.role.in_(roles), User.is_active.is_(True))
        )
        recipients = [u for u in result.scalars().all() if u.id not in excluded]
        return await self._fan_out(recipients, notification_type, title, message, data)

    async def _fan_out(
        self,
        recipients: Sequence[User],
        notification_type: NotificationType,
        title: str,
        message: str,
        data: dict[str, Any] | None = None,
        channels: list[str] | None = None,
        action_url: str | None = None,
    ) -> int:
        if not recipients:
            return 0

        now = utcnow()
        payload = dict(data or {})
        payload.setdefault("type", notification_type.value)
        rows = [
            {
                "id": uuid4(),
                "user_id": user.id,
                "notification_type": notification_type,
                "title": title,
                "message": message,
                "data": payload,
                "channels": list(channels or DEFAULT_CHANNELS),
                "is_read": False,
                "action_url": action_url,
                "created_at": now,
            }
            for user in recipients
        ]
        await self._session.execute(insert(Notification), rows)

        enqueue_after_commit(
            self._session,
            OutboundNotification(
                notification_type=notification_type,
                title=title,
                body=message,
                recipient_ids=[user.id for user in recipients],
                push_tokens=[user.push_token for user in recipients if user.push_token],
                data=payload,
            ),
        )

        logger.info(
            f"Queued {notification_type.value} notification for {len(rows)} recipient(s)"
        )
        return len(rows)

    # =========================================================================
    # INBOX
    # =========================================================================

    async def list_for_user(
        self,
        user_id: UUID,
        is_read: bool | None = None,
        notification_type: NotificationType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if is_read is not None:
            query = query.where(Notification.is_read.is_(is_read))
        if notification_type is not None:
            query = query.where(Notification.notification_type == notification_type)
        query = query.order_by(Notification.created_at.desc()).limit(limit).offset(offset)

        result = await self._session.execute(query)
        return result.scalars().all()

    async def unread_count(self, user_id: UUID) -> int:
        result = await self._session.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    async def _get_owned_or_raise(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._session.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        if notification.user_id != user_id:
            raise ForbiddenError("Notifications can only be changed by their recipient")
        return notification

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._get_owned_or_raise(notification_id, user_id)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
        await self._session.flush()
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        result = await self._session.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete(self, notification_id: UUID, user_id: UUID) -> None:
        notification = await self._get_owned_or_raise(notification_id, user_id)
        await self._session.delete(notification)
        await self._session.flush()

    # =========================================================================
    # EXPIRY CLEANUP
    # =========================================================================

    async def purge_read_before(self, cutoff: datetime) -> int:
        """Delete read notifications created before ``cutoff``."""
        result = await self._session.execute(
            delete(Notification)
            .where(Notification.is_read.is_(True), Notification.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Purged {result.rowcount} read notification(s) older than {cutoff.isoformat()}")
        return result.rowcount

    async def purge_expired(self, retention_days: int | None = None) -> int:
        days = retention_days or settings.notification_retention_days
        return await self.purge_read_before(utcnow() - timedelta(days=days))
