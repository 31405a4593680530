"""Admin routes: user provisioning and the audit trail."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core import AdminDep, SessionDep
from ..models import UserRole
from ..schemas import AuditLogResponse, RoleUpdate, UserCreate, UserResponse
from ..services import AuditService, UserService

router = APIRouter(prefix="/admin", tags=["admin"])


def get_user_service(session: SessionDep) -> UserService:
    return UserService(session)


def get_audit_service(session: SessionDep) -> AuditService:
    return AuditService(session)


UserServiceDep = Annotated[UserService, Depends(get_user_service)]
AuditServiceDep = Annotated[AuditService, Depends(get_audit_service)]


# =============================================================================
# USERS
# =============================================================================


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    current_user: AdminDep,
    service: UserServiceDep,
    role: UserRole | None = None,
    unit: str | None = None,
    include_inactive: Annotated[bool, Query(alias="includeInactive")] = False,
):
    users = await service.list_users(role=role, unit=unit, include_inactive=include_inactive)
    return [UserResponse.model_validate(u) for u in users]


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, current_user: AdminDep, service: UserServiceDep):
    """Provision a user with a role. Email or phone is the login identifier."""
    user = await service.create_user(
        current_user.user,
        name=data.name,
        password=data.password,
        role=data.role,
        email=str(data.email) if data.email else None,
        phone=data.phone,
        unit=data.unit,
        badge_number=data.badge_number,
    )
    return UserResponse.model_validate(user)


@router.put("/users/{user_id}/role", response_model=UserResponse)
async def change_role(
    user_id: UUID,
    data: RoleUpdate,
    current_user: AdminDep,
    service: UserServiceDep,
):
    user = await service.change_role(user_id, data.role, current_user.user)
    return UserResponse.model_validate(user)


@router.post("/users/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(user_id: UUID, current_user: AdminDep, service: UserServiceDep):
    """Deactivate a user. Users are never deleted."""
    user = await service.deactivate(user_id, current_user.user)
    return UserResponse.model_validate(user)


# =============================================================================
# AUDIT TRAIL
# =============================================================================


@router.get("/audit-logs", response_model=list[AuditLogResponse])
async def list_audit_logs(
    current_user: AdminDep,
    audit: AuditServiceDep,
    entity: str | None = None,
    entity_id: Annotated[UUID | None, Query(alias="entityId")] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Audit entries, newest first."""
    events = await audit.list_events(entity=entity, entity_id=entity_id, limit=limit, offset=offset)
    return [AuditLogResponse.model_validate(e) for e in events]
