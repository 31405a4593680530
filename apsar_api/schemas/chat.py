"""Pydantic schemas for chat rooms, messages and read receipts."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import ChatMessageType, ChatRoomType, ModerationStatus
from .base import ApiModel, TimestampMixin


# =============================================================================
# ROOMS
# =============================================================================


class RoomCreate(ApiModel):
    type: ChatRoomType
    name: str | None = Field(default=None, max_length=255)
    member_ids: list[UUID] = Field(default_factory=list)
    unit_name: str | None = Field(default=None, max_length=100)
    is_moderated: bool = False


class RoomMemberResponse(ApiModel):
    user_id: UUID
    user_name: str
    role: str
    joined_at: datetime
    last_read_at: datetime | None = None
    is_muted: bool = False


class RoomResponse(ApiModel, TimestampMixin):
    id: UUID
    name: str | None = None
    type: ChatRoomType
    unit_name: str | None = None
    created_by: UUID | None = None
    is_moderated: bool
    allow_file_uploads: bool
    members: list[RoomMemberResponse] = Field(default_factory=list)


# =============================================================================
# MESSAGES
# =============================================================================


class MessageCreate(ApiModel):
    room_id: UUID
    message: str = Field(..., min_length=1, max_length=4000)
    message_type: ChatMessageType = ChatMessageType.TEXT
    file_url: str | None = Field(default=None, max_length=500)


class MessageUpdate(ApiModel):
    message: str = Field(..., min_length=1, max_length=4000)


class FlagRequest(ApiModel):
    reason: str | None = Field(default=None, max_length=1000)


class ModerateRequest(ApiModel):
    action: str = Field(..., pattern="^(approve|hide|remove)$")


class ChatMessageResponse(ApiModel, TimestampMixin):
    """A message as the caller is allowed to see it."""

    id: UUID
    room_id: UUID
    user_id: UUID
    user_name: str
    message: str
    message_type: ChatMessageType
    file_url: str | None = None
    is_edited: bool = False
    is_deleted: bool = False
    is_flagged: bool = False
    moderation_status: ModerationStatus | None = None
    read_by: list[UUID] = Field(default_factory=list)


class ReceiptResponse(ApiModel):
    message_id: UUID
    room_id: UUID
    user_id: UUID
    user_name: str | None = None
    read_at: datetime


class RoomReadResponse(ApiModel):
    marked: int
