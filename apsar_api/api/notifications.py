"""API routes for the caller's in-app notifications."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..core import CurrentUserDep, SessionDep
from ..models import NotificationType
from ..schemas import NotificationResponse, UnreadCountResponse
from ..services import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_notification_service(session: SessionDep) -> NotificationService:
    return NotificationService(session)


NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
    is_read: Annotated[bool | None, Query(alias="isRead")] = None,
    notification_type: Annotated[NotificationType | None, Query(alias="type")] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """The caller's notifications, newest first."""
    notifications = await service.list_for_user(
        current_user.id,
        is_read=is_read,
        notification_type=notification_type,
        limit=limit,
        offset=offset,
    )
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(current_user: CurrentUserDep, service: NotificationServiceDep):
    return UnreadCountResponse(count=await service.unread_count(current_user.id))


@router.post("/read-all", status_code=status.HTTP_204_NO_CONTENT)
async def mark_all_read(current_user: CurrentUserDep, service: NotificationServiceDep):
    await service.mark_all_read(current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_read(notification_id: UUID, current_user: CurrentUserDep, service: NotificationServiceDep):
    await service.mark_read(notification_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID,
    current_user: CurrentUserDep,
    service: NotificationServiceDep,
):
    await service.delete(notification_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
