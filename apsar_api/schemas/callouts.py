"""Pydantic schemas for call-outs and call-out responses."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import CallOutResponseStatus, CallOutStatus, CallOutType, UserRole
from .base import ApiModel, TimestampMixin, UTCTimestamp


class CallOutCreate(ApiModel):
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    expires_at: UTCTimestamp | None = None
    call_out_type: CallOutType = CallOutType.ALL
    target_unit: str | None = None
    target_role: UserRole | None = None
    target_user_ids: list[UUID] = Field(default_factory=list)


class CallOutRespond(ApiModel):
    status: CallOutResponseStatus
    estimated_arrival: UTCTimestamp | None = None
    notes: str | None = Field(default=None, max_length=2000)


class CallOutClose(ApiModel):
    outcome: CallOutStatus = CallOutStatus.COMPLETED


class CallOutResponseRead(ApiModel):
    """One member's availability for a call-out."""

    id: UUID
    call_out_id: UUID
    user_id: UUID
    user_name: str
    status: CallOutResponseStatus
    estimated_arrival: datetime | None = None
    notes: str | None = None
    responded_at: datetime
    updated_at: datetime


class CallOutSummary(ApiModel, TimestampMixin):
    id: UUID
    title: str
    message: str
    status: CallOutStatus
    call_out_type: CallOutType
    target_unit: str | None = None
    target_role: str | None = None
    target_user_ids: list[str] = Field(default_factory=list)
    expires_at: datetime | None = None
    created_by: UUID
    closed_at: datetime | None = None
    closed_by: UUID | None = None
    response_count: int = 0
    is_expired: bool = False


class CallOutDetail(CallOutSummary):
    responses: list[CallOutResponseRead] = Field(default_factory=list)
