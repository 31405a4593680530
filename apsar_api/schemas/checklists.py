"""Pydantic schemas for checklist templates and checklist instances."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from ..models import ChecklistItemStatus, ChecklistStatus, ChecklistType
from .base import ApiModel, TimestampMixin


# =============================================================================
# TEMPLATES
# =============================================================================


class TemplateItemInput(ApiModel):
    id: str | None = None
    text: str = Field(..., min_length=1)
    description: str | None = None
    required: bool = True
    item_type: str = "checkbox"
    options: list[str] | None = None


class TemplateItem(TemplateItemInput):
    id: str
    order: int


class TemplateCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: ChecklistType
    description: str | None = None
    items: list[TemplateItemInput] = Field(..., min_length=1)
    is_locked: bool = False


class TemplateUpdate(ApiModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    items: list[TemplateItemInput] | None = Field(default=None, min_length=1)
    is_locked: bool | None = None
    is_active: bool | None = None


class TemplateResponse(ApiModel, TimestampMixin):
    id: UUID
    name: str
    type: ChecklistType
    description: str | None = None
    items: list[TemplateItem]
    version: int
    is_locked: bool
    is_active: bool
    created_by: UUID | None = None
    updated_by: UUID | None = None


# =============================================================================
# INSTANCES
# =============================================================================


class ChecklistCreate(ApiModel):
    template_id: UUID
    title: str | None = Field(default=None, max_length=255)
    assigned_to: UUID | None = None


class ChecklistItemUpdate(ApiModel):
    item_id: str
    status: ChecklistItemStatus | None = None
    response: str | None = None
    notes: str | None = None
    photo_url: str | None = None


class ChecklistUpdate(ApiModel):
    items: list[ChecklistItemUpdate] = Field(default_factory=list)
    notes: str | None = None


class ChecklistComplete(ApiModel):
    signature: str | None = None
    notes: str | None = None


class ChecklistItemResponse(ApiModel):
    item_id: str
    item_text: str
    required: bool = True
    status: ChecklistItemStatus
    response: str | None = None
    notes: str | None = None
    photo_url: str | None = None
    completed_at: datetime | None = None


class ChecklistResponse(ApiModel, TimestampMixin):
    id: UUID
    template_id: UUID
    template_name: str | None = None
    template_version: int | None = None
    type: ChecklistType
    title: str
    assigned_to: UUID
    assigned_to_name: str | None = None
    assigned_by: UUID | None = None
    assigned_by_name: str | None = None
    status: ChecklistStatus
    items: list[ChecklistItemResponse]
    completed_at: datetime | None = None
    completed_by: UUID | None = None
    signature: str | None = None
    notes: str | None = None
