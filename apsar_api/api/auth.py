"""Authentication API routes.

Bearer tokens are issued here and validated by ``core.dependencies``.
Logout is stateless: clients discard their tokens.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from ..core import CurrentUserDep, SessionDep
from ..core.security import create_access_token, create_refresh_token, decode_token
from ..schemas import (
    LoginRequest,
    MessageResponse,
    PushTokenRequest,
    RefreshRequest,
    TokenResponse,
    UserResponse,
    VerifyResponse,
)
from ..services import CoordinationError, UserService

router = APIRouter(prefix="/auth", tags=["authentication"])


def get_user_service(session: SessionDep) -> UserService:
    return UserService(session)


UserServiceDep = Annotated[UserService, Depends(get_user_service)]


def issue_tokens(user) -> TokenResponse:
    token, expires_at = create_access_token(user.id, user.role)
    return TokenResponse(
        user=UserResponse.model_validate(user),
        token=token,
        refresh_token=create_refresh_token(user.id),
        expires_at=expires_at,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, service: UserServiceDep):
    """Exchange email/phone and password for a token pair."""
    user = await service.authenticate(data.email_or_phone, data.password)
    return issue_tokens(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(data: RefreshRequest, service: UserServiceDep):
    """Exchange a refresh token for a new token pair."""
    payload = decode_token(data.refresh_token)
    if payload is None or payload.type != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )
    try:
        user = await service.get_active_user(UUID(payload.sub))
    except (ValueError, CoordinationError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return issue_tokens(user)


@router.post("/logout", response_model=MessageResponse)
async def logout(current_user: CurrentUserDep):
    return MessageResponse(message="Logged out")


@router.get("/verify", response_model=VerifyResponse)
async def verify(current_user: CurrentUserDep):
    """Validate the caller's bearer token."""
    return VerifyResponse(valid=True, user_id=current_user.id, role=current_user.role)


@router.put("/push-token", response_model=UserResponse)
async def register_push_token(
    data: PushTokenRequest,
    current_user: CurrentUserDep,
    service: UserServiceDep,
):
    """Register (or clear) the caller's device token for push delivery."""
    user = await service.register_push_token(current_user.user, data.push_token)
    return UserResponse.model_validate(user)
