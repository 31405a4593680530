"""Base schemas and common types for the APSAR API.

JSON field names are camelCase to match the mobile client; request bodies
accept either camelCase or snake_case.
"""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models import as_utc

# Request-side timestamp; always timezone-aware once validated
UTCTimestamp = Annotated[datetime, AfterValidator(as_utc)]


# =============================================================================
# BASE SCHEMAS
# =============================================================================


class ApiModel(BaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,  # Enable ORM mode
        populate_by_name=True,
        alias_generator=to_camel,
    )


class TimestampMixin(BaseModel):
    """Mixin for created/updated timestamps."""

    created_at: datetime
    updated_at: datetime | None = None


class ListParams(ApiModel):
    """Limit/offset for list endpoints; lists are returned as plain arrays."""

    limit: int = Field(default=50, ge=1, le=200)
    offset: int = Field(default=0, ge=0)


# =============================================================================
# ERROR RESPONSES
# =============================================================================


class ErrorResponse(ApiModel):
    """Standard error envelope: ``{"error": <Kind>, "message": ...}``."""

    error: str
    message: str


class MessageResponse(ApiModel):
    message: str


# =============================================================================
# COMMON REFERENCE SCHEMAS
# =============================================================================


class UserRef(ApiModel):
    """Minimal user reference for embedding in responses."""

    id: UUID
    name: str
    role: str
    unit: str | None = None
