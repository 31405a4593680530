"""Pydantic schemas for in-app notifications and the audit trail."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import AuditAction, NotificationType
from .base import ApiModel


class NotificationResponse(ApiModel):
    id: UUID
    type: NotificationType
    title: str
    message: str
    data: dict = Field(default_factory=dict)
    is_read: bool
    read_at: datetime | None = None
    action_url: str | None = None
    created_at: datetime


class UnreadCountResponse(ApiModel):
    count: int


class AuditLogResponse(ApiModel):
    id: UUID
    user_id: UUID | None = None
    user_name: str | None = None
    action: AuditAction
    entity: str
    entity_id: UUID
    entity_name: str | None = None
    changes: dict = Field(default_factory=dict)
    created_at: datetime
