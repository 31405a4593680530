"""Pydantic schemas for callout reports and their review history."""

from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from ..models import ReportStatus, ReviewAction
from .base import ApiModel, TimestampMixin, UTCTimestamp


class ReportContent(ApiModel):
    """Fields the author may edit while a report is draft or rejected."""

    start_time: UTCTimestamp | None = None
    end_time: UTCTimestamp | None = None
    location: dict | None = None
    location_description: str | None = None
    role_on_scene: str | None = Field(default=None, max_length=100)
    equipment_used: list[str] | None = None
    notes: str | None = None
    observations: str | None = None
    photos: list[str] | None = None
    documents: list[str] | None = None


class ReportCreate(ReportContent):
    callout_id: UUID | None = None
    mission_id: UUID | None = None
    date: UTCTimestamp
    incident_type: str = Field(..., min_length=1, max_length=100)


class ReportUpdate(ReportContent):
    callout_id: UUID | None = None
    mission_id: UUID | None = None
    date: UTCTimestamp | None = None
    incident_type: str | None = Field(default=None, min_length=1, max_length=100)

    @field_validator("date", "incident_type")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not set to null")
        return value


class ReviewRequest(ApiModel):
    action: ReviewAction
    notes: str | None = Field(default=None, max_length=4000)


class ReviewHistoryEntry(ApiModel):
    id: UUID
    action: ReviewAction
    reviewer_id: UUID
    reviewer_name: str | None = None
    notes: str | None = None
    reviewed_at: datetime


class ReportResponse(ApiModel, TimestampMixin):
    id: UUID
    callout_id: UUID | None = None
    mission_id: UUID | None = None
    submitted_by: UUID
    submitted_by_name: str | None = None
    date: datetime
    start_time: datetime | None = None
    end_time: datetime | None = None
    incident_type: str
    location: dict | None = None
    location_description: str | None = None
    role_on_scene: str | None = None
    equipment_used: list[str] = Field(default_factory=list)
    notes: str | None = None
    observations: str | None = None
    photos: list[str] = Field(default_factory=list)
    documents: list[str] = Field(default_factory=list)
    status: ReportStatus
    submitted_at: datetime | None = None
    reviewed_by: UUID | None = None
    reviewed_by_name: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    review_history: list[ReviewHistoryEntry] | None = None
