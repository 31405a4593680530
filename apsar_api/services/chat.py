"""Chat rooms, messages and read receipts.

The message log is append-only. Edits keep the previous text in
``edit_history``; deletes and moderation only set flags, so moderators can
always see what was said.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    AuditAction,
    ChatMessage,
    ChatMessageType,
    ChatRoom,
    ChatRoomMember,
    ChatRoomType,
    MessageReadReceipt,
    ModerationStatus,
    NotificationType,
    User,
    UserRole,
    has_role,
    utcnow,
)
from .audit import AuditService
from .errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationFailedError
from .notifications import NotificationService

logger = logging.getLogger(__name__)

DELETED_TEXT = "[message deleted]"
HIDDEN_TEXT = "[message hidden by moderator]"

MODERATION_ACTIONS = {
    "approve": ModerationStatus.APPROVED,
    "hide": ModerationStatus.HIDDEN,
    "remove": ModerationStatus.REMOVED,
}


@dataclass
class MessageView:
    """A message as one viewer is allowed to see it."""
    message: ChatMessage
    text: str
    read_by: list[UUID]


class ChatService:
    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)
        self._notifications = NotificationService(session)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _get_room_or_raise(self, room_id: UUID) -> ChatRoom:
        result = await self._session.execute(
            select(ChatRoom).where(ChatRoom.id == room_id).execution_options(populate_existing=True)
        )
        room = result.scalar_one_or_none()
        if room is None:
            raise NotFoundError("Chat room", room_id)
        return room

    async def _get_membership(self, room_id: UUID, actor: User) -> ChatRoomMember:
        result = await self._session.execute(
            select(ChatRoomMember).where(
                ChatRoomMember.room_id == room_id, ChatRoomMember.user_id == actor.id
            )
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise ForbiddenError("You are not a member of this room")
        return member

    async def _get_message_or_raise(self, message_id: UUID) -> ChatMessage:
        message = await self._session.get(ChatMessage, message_id)
        if message is None:
            raise NotFoundError("Message", message_id)
        return message

    def _is_moderator(self, member: ChatRoomMember | None, actor: User) -> bool:
        if has_role(actor.role, UserRole.OFFICER):
            return True
        return member is not None and member.role in ("moderator", "admin")

    def display_text(self, message: ChatMessage, can_moderate: bool) -> str:
        if can_moderate:
            return message.message
        if message.moderation_status == ModerationStatus.REMOVED or message.is_deleted:
            return DELETED_TEXT
        if message.moderation_status == ModerationStatus.HIDDEN:
            return HIDDEN_TEXT
        return message.message

    async def _receipts_for(self, message_ids: list[UUID]) -> dict[UUID, list[UUID]]:
        if not message_ids:
            return {}
        result = await self._session.execute(
            select(MessageReadReceipt.message_id, MessageReadReceipt.user_id)
            .where(MessageReadReceipt.message_id.in_(message_ids))
            .order_by(MessageReadReceipt.read_at.asc())
        )
        receipts: dict[UUID, list[UUID]] = {}
        for message_id, user_id in result.all():
            receipts.setdefault(message_id, []).append(user_id)
        return receipts

    # =========================================================================
    # ROOMS
    # =========================================================================

    async def list_rooms(self, actor: User) -> Sequence[ChatRoom]:
        result = await self._session.execute(
            select(ChatRoom)
            .join(ChatRoomMember, ChatRoomMember.room_id == ChatRoom.id)
            .where(ChatRoomMember.user_id == actor.id)
            .order_by(ChatRoom.created_at.desc())
        )
        return result.scalars().unique().all()

    async def get_room(self, room_id: UUID, actor: User) -> ChatRoom:
        await self._get_membership(room_id, actor)
        return await self._get_room_or_raise(room_id)

    async def create_room(
        self,
        actor: User,
        room_type: ChatRoomType,
        name: str | None = None,
        member_ids: list[UUID] | None = None,
        unit_name: str | None = None,
        is_moderated: bool = False,
    ) -> ChatRoom:
        """
        Create a room and its membership.

        - direct: the caller plus exactly one other user
        - group: the caller plus ``member_ids``
        - unit: every active user of ``unit_name``
        - general: every active user (officers and admins only)
        """
        others = [uid for uid in dict.fromkeys(member_ids or []) if uid != actor.id]

        if room_type == ChatRoomType.DIRECT:
            if len(others) != 1:
                raise ValidationFailedError("Direct rooms have exactly two members")
            query = select(User).where(User.id.in_(others))
        elif room_type == ChatRoomType.GROUP:
            query = select(User).where(User.id.in_(others))
        elif room_type == ChatRoomType.UNIT:
            if not unit_name:
                raise ValidationFailedError("unitName is required for unit rooms")
            query = select(User).where(User.unit == unit_name, User.is_active.is_(True))
        else:
            if not has_role(actor.role, UserRole.OFFICER):
                raise ForbiddenError("Only officers and admins can create general rooms")
            query = select(User).where(User.is_active.is_(True))

        users = [u for u in (await self._session.execute(query)).scalars().all() if u.id != actor.id]
        if room_type in (ChatRoomType.DIRECT, ChatRoomType.GROUP) and len(users) != len(others):
            raise NotFoundError("User")

        room = ChatRoom(
            id=uuid4(),
            name=name,
            room_type=room_type,
            unit_name=unit_name,
            created_by=actor.id,
            is_moderated=is_moderated,
            members=[],
        )
        now = utcnow()
        room.members.append(
            ChatRoomMember(id=uuid4(), user_id=actor.id, user_name=actor.name, role="admin", joined_at=now)
        )
        for user in users:
            room.members.append(
                ChatRoomMember(id=uuid4(), user_id=user.id, user_name=user.name, role="member", joined_at=now)
            )
        self._session.add(room)
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.CREATE, "chat_room", room.id,
            entity_name=name, changes={"roomType": room_type.value, "members": len(room.members)},
        )
        return room

    # =========================================================================
    # MESSAGES
    # =========================================================================

    async def list_messages(
        self,
        room_id: UUID,
        actor: User,
        limit: int = 50,
        before: datetime | None = None,
    ) -> list[MessageView]:
        """A page of messages, oldest first, ending just before ``before``."""
        member = await self._get_membership(room_id, actor)
        can_moderate = self._is_moderator(member, actor)

        query = select(ChatMessage).where(ChatMessage.room_id == room_id)
        if before is not None:
            query = query.where(ChatMessage.created_at < before)
        query = query.order_by(ChatMessage.created_at.desc()).limit(limit)
        messages = list(reversed((await self._session.execute(query)).scalars().all()))

        receipts = await self._receipts_for([m.id for m in messages])
        return [
            MessageView(
                message=m,
                text=self.display_text(m, can_moderate),
                read_by=receipts.get(m.id, []),
            )
            for m in messages
        ]

    async def send_message(
        self,
        room_id: UUID,
        actor: User,
        text: str,
        message_type: ChatMessageType = ChatMessageType.TEXT,
        file_url: str | None = None,
    ) -> MessageView:
        member = await self._get_membership(room_id, actor)
        room = await self._get_room_or_raise(room_id)
        now = utcnow()
        if member.is_muted and (member.muted_until is None or member.muted_until > now):
            raise ForbiddenError("You are muted in this room")
        if message_type in (ChatMessageType.IMAGE, ChatMessageType.FILE):
            if not room.allow_file_uploads:
                raise ForbiddenError("File uploads are disabled in this room")
            if not file_url:
                raise ValidationFailedError("fileUrl is required for file and image messages")

        message = ChatMessage(
            id=uuid4(),
            room_id=room_id,
            user_id=actor.id,
            user_name=actor.name,
            message=text,
            message_type=message_type,
            file_url=file_url,
            edit_history=[],
            moderation_status=ModerationStatus.PENDING if room.is_moderated else None,
        )
        self._session.add(message)
        await self._session.flush()

        others = [m.user_id for m in room.members if m.user_id != actor.id]
        await self._notifications.notify_users(
            others,
            NotificationType.CHAT,
            title=room.name or actor.name,
            message=f"{actor.name}: {text[:120]}",
            data={"roomId": str(room_id), "messageId": str(message.id)},
        )
        return MessageView(message=message, text=message.message, read_by=[])

    async def edit_message(self, message_id: UUID, actor: User, text: str) -> MessageView:
        message = await self._get_message_or_raise(message_id)
        if message.user_id != actor.id:
            raise ForbiddenError("Only the author can edit a message")
        if message.is_deleted:
            raise InvalidStateError("Deleted messages cannot be edited")

        message.edit_history = [
            *(message.edit_history or []),
            {"message": message.message, "edited_at": utcnow().isoformat()},
        ]
        message.message = text
        message.is_edited = True
        await self._session.flush()
        return MessageView(message=message, text=message.message, read_by=[])

    async def delete_message(self, message_id: UUID, actor: User) -> ChatMessage:
        """Soft delete by the author or a moderator. Idempotent."""
        message = await self._get_message_or_raise(message_id)
        if message.user_id != actor.id:
            member = await self._get_membership(message.room_id, actor)
            if not self._is_moderator(member, actor):
                raise ForbiddenError("Only the author or a moderator can delete a message")
        if message.is_deleted:
            return message

        message.is_deleted = True
        message.deleted_at = utcnow()
        message.deleted_by = actor.id
        await self._session.flush()
        self._audit.log_event(actor, AuditAction.DELETE, "chat_message", message.id)
        return message

    async def flag_message(self, message_id: UUID, actor: User, reason: str | None = None) -> ChatMessage:
        message = await self._get_message_or_raise(message_id)
        await self._get_membership(message.room_id, actor)

        message.is_flagged = True
        message.flagged_by = actor.id
        message.flagged_at = utcnow()
        message.flag_reason = reason
        message.moderation_status = ModerationStatus.PENDING
        await self._session.flush()
        logger.info(f"Message {message.id} flagged by {actor.id}")
        return message

    async def moderate_message(self, message_id: UUID, actor: User, action: str) -> ChatMessage:
        if not has_role(actor.role, UserRole.OFFICER):
            raise ForbiddenError("Only officers and admins can moderate messages")
        if action not in MODERATION_ACTIONS:
            raise ValidationFailedError("action must be approve, hide or remove")

        message = await self._get_message_or_raise(message_id)
        message.moderation_status = MODERATION_ACTIONS[action]
        if action == "approve":
            message.is_flagged = False
        elif action == "remove" and not message.is_deleted:
            message.is_deleted = True
            message.deleted_at = utcnow()
            message.deleted_by = actor.id
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.UPDATE, "chat_message", message.id,
            changes={"moderation": action},
        )
        return message

    # =========================================================================
    # READ RECEIPTS
    # =========================================================================

    async def mark_read(self, room_id: UUID, message_id: UUID, actor: User) -> MessageReadReceipt:
        """Record that the caller read a message. One receipt per (message, user)."""
        member = await self._get_membership(room_id, actor)
        message = await self._get_message_or_raise(message_id)
        if message.room_id != room_id:
            raise NotFoundError("Message", message_id)

        result = await self._session.execute(
            select(MessageReadReceipt).where(
                MessageReadReceipt.message_id == message_id,
                MessageReadReceipt.user_id == actor.id,
            )
        )
        receipt = result.scalar_one_or_none()
        if receipt is None:
            receipt = MessageReadReceipt(
                id=uuid4(),
                message_id=message_id,
                room_id=room_id,
                user_id=actor.id,
                user_name=actor.name,
                read_at=utcnow(),
            )
            self._session.add(receipt)
        member.last_read_at = utcnow()
        await self._session.flush()
        return receipt

    async def mark_room_read(self, room_id: UUID, actor: User) -> int:
        """Receipt every unread message in the room. Returns how many were added."""
        member = await self._get_membership(room_id, actor)
        already_read = (
            select(MessageReadReceipt.message_id)
            .where(MessageReadReceipt.user_id == actor.id, MessageReadReceipt.room_id == room_id)
        )
        result = await self._session.execute(
            select(ChatMessage.id).where(
                ChatMessage.room_id == room_id,
                ChatMessage.user_id != actor.id,
                ChatMessage.id.not_in(already_read),
            )
        )
        now = utcnow()
        unread = result.scalars().all()
        for message_id in unread:
            self._session.add(
                MessageReadReceipt(
                    id=uuid4(),
                    message_id=message_id,
                    room_id=room_id,
                    user_id=actor.id,
                    user_name=actor.name,
                    read_at=now,
                )
            )
        member.last_read_at = now
        await self._session.flush()
        return len(unread)

    async def list_receipts(
        self, room_id: UUID, message_id: UUID, actor: User
    ) -> Sequence[MessageReadReceipt]:
        await self._get_membership(room_id, actor)
        result = await self._session.execute(
            select(MessageReadReceipt)
            .where(
                MessageReadReceipt.room_id == room_id,
                MessageReadReceipt.message_id == message_id,
            )
            .order_by(MessageReadReceipt.read_at.asc())
        )
        return result.scalars().all()
