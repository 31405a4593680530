"""API routes for personnel chat."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core import CurrentUserDep, OfficerDep, SessionDep
from ..models import ChatMessage
from ..schemas import (
    ChatMessageResponse,
    FlagRequest,
    MessageCreate,
    MessageUpdate,
    ModerateRequest,
    ReceiptResponse,
    RoomCreate,
    RoomReadResponse,
    RoomResponse,
)
from ..services import ChatService, MessageView

router = APIRouter(prefix="/personnel/chat", tags=["chat"])


def get_chat_service(session: SessionDep) -> ChatService:
    return ChatService(session)


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]


# =============================================================================
# HELPERS
# =============================================================================


def message_to_response(message: ChatMessage, text: str, read_by=()) -> ChatMessageResponse:
    """Convert a ChatMessage to a response, showing ``text`` in place of the stored body."""
    return ChatMessageResponse(
        id=message.id,
        room_id=message.room_id,
        user_id=message.user_id,
        user_name=message.user_name,
        message=text,
        message_type=message.message_type,
        file_url=message.file_url,
        is_edited=message.is_edited,
        is_deleted=message.is_deleted,
        is_flagged=message.is_flagged,
        moderation_status=message.moderation_status,
        read_by=list(read_by),
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


def view_to_response(view: MessageView) -> ChatMessageResponse:
    return message_to_response(view.message, view.text, view.read_by)


# =============================================================================
# ROOMS
# =============================================================================


@router.get("/rooms", response_model=list[RoomResponse])
async def list_rooms(current_user: CurrentUserDep, service: ChatServiceDep):
    """Rooms the caller belongs to."""
    rooms = await service.list_rooms(current_user.user)
    return [RoomResponse.model_validate(r) for r in rooms]


@router.post("/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(data: RoomCreate, current_user: CurrentUserDep, service: ChatServiceDep):
    room = await service.create_room(
        current_user.user,
        data.type,
        name=data.name,
        member_ids=data.member_ids,
        unit_name=data.unit_name,
        is_moderated=data.is_moderated,
    )
    return RoomResponse.model_validate(room)


@router.get("/rooms/{room_id}", response_model=RoomResponse)
async def get_room(room_id: UUID, current_user: CurrentUserDep, service: ChatServiceDep):
    room = await service.get_room(room_id, current_user.user)
    return RoomResponse.model_validate(room)


@router.get("/rooms/{room_id}/messages", response_model=list[ChatMessageResponse])
async def list_messages(
    room_id: UUID,
    current_user: CurrentUserDep,
    service: ChatServiceDep,
    limit: int = Query(50, ge=1, le=200),
    before: datetime | None = None,
):
    """A page of messages, oldest first, ending just before ``before``."""
    views = await service.list_messages(room_id, current_user.user, limit=limit, before=before)
    return [view_to_response(v) for v in views]


@router.post("/rooms/{room_id}/read", response_model=RoomReadResponse)
async def mark_room_read(room_id: UUID, current_user: CurrentUserDep, service: ChatServiceDep):
    marked = await service.mark_room_read(room_id, current_user.user)
    return RoomReadResponse(marked=marked)


@router.post("/rooms/{room_id}/messages/{message_id}/read", response_model=ReceiptResponse)
async def mark_message_read(
    room_id: UUID,
    message_id: UUID,
    current_user: CurrentUserDep,
    service: ChatServiceDep,
):
    receipt = await service.mark_read(room_id, message_id, current_user.user)
    return ReceiptResponse.model_validate(receipt)


@router.get("/rooms/{room_id}/messages/{message_id}/receipts", response_model=list[ReceiptResponse])
async def list_receipts(
    room_id: UUID,
    message_id: UUID,
    current_user: CurrentUserDep,
    service: ChatServiceDep,
):
    receipts = await service.list_receipts(room_id, message_id, current_user.user)
    return [ReceiptResponse.model_validate(r) for r in receipts]


# =============================================================================
# MESSAGES
# =============================================================================


@router.post("/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(data: MessageCreate, current_user: CurrentUserDep, service: ChatServiceDep):
    view = await service.send_message(
        data.room_id,
        current_user.user,
        data.message,
        message_type=data.message_type,
        file_url=data.file_url,
    )
    return view_to_response(view)


@router.put("/messages/{message_id}", response_model=ChatMessageResponse)
async def edit_message(
    message_id: UUID,
    data: MessageUpdate,
    current_user: CurrentUserDep,
    service: ChatServiceDep,
):
    """Author edit. The previous text is kept in the edit history."""
    view = await service.edit_message(message_id, current_user.user, data.message)
    return view_to_response(view)


@router.delete("/messages/{message_id}", response_model=ChatMessageResponse)
async def delete_message(message_id: UUID, current_user: CurrentUserDep, service: ChatServiceDep):
    """Soft delete by the author or a moderator."""
    message = await service.delete_message(message_id, current_user.user)
    return message_to_response(message, service.display_text(message, current_user.is_officer))


@router.post("/messages/{message_id}/flag", response_model=ChatMessageResponse)
async def flag_message(
    message_id: UUID,
    data: FlagRequest,
    current_user: CurrentUserDep,
    service: ChatServiceDep,
):
    message = await service.flag_message(message_id, current_user.user, reason=data.reason)
    return message_to_response(message, service.display_text(message, current_user.is_officer))


@router.post("/messages/{message_id}/moderate", response_model=ChatMessageResponse)
async def moderate_message(
    message_id: UUID,
    data: ModerateRequest,
    current_user: OfficerDep,
    service: ChatServiceDep,
):
    """Approve, hide or remove a message."""
    message = await service.moderate_message(message_id, current_user.user, data.action)
    return message_to_response(message, message.message)
