"""Schemas for authentication and user administration."""

from datetime import datetime
from uuid import UUID

from pydantic import EmailStr, Field, model_validator

from ..models import UserRole
from .base import ApiModel, TimestampMixin


class LoginRequest(ApiModel):
    email_or_phone: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)


class RefreshRequest(ApiModel):
    refresh_token: str


class PushTokenRequest(ApiModel):
    push_token: str | None = Field(default=None, max_length=255)


class UserResponse(ApiModel, TimestampMixin):
    id: UUID
    name: str
    email: str | None = None
    phone: str | None = None
    role: UserRole
    unit: str | None = None
    badge_number: str | None = None
    is_active: bool
    last_login_at: datetime | None = None


class TokenResponse(ApiModel):
    user: UserResponse
    token: str
    refresh_token: str
    expires_at: datetime


class VerifyResponse(ApiModel):
    valid: bool
    user_id: UUID
    role: UserRole


class UserCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=50)
    password: str = Field(..., min_length=8)
    role: UserRole = UserRole.MEMBER
    unit: str | None = Field(default=None, max_length=100)
    badge_number: str | None = Field(default=None, max_length=50)

    @model_validator(mode="after")
    def require_contact(self) -> "UserCreate":
        if not self.email and not self.phone:
            raise ValueError("email or phone is required")
        return self


class RoleUpdate(ApiModel):
    role: UserRole
