"""API routes for call-outs and availability responses."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core import CommandDep, CurrentUserDep, OfficerDep, SessionDep
from ..models import CallOutStatus
from ..schemas import (
    CallOutClose,
    CallOutCreate,
    CallOutDetail,
    CallOutRespond,
    CallOutResponseRead,
    CallOutSummary,
)
from ..services import CallOutCoordinator, CallOutView, CreateCallOutInput, RespondInput

router = APIRouter(prefix="/personnel/call-outs", tags=["call-outs"])
admin_router = APIRouter(prefix="/admin/call-outs", tags=["call-outs"])


def get_coordinator(session: SessionDep) -> CallOutCoordinator:
    return CallOutCoordinator(session)


CoordinatorDep = Annotated[CallOutCoordinator, Depends(get_coordinator)]


# =============================================================================
# HELPERS
# =============================================================================


def view_to_summary(view: CallOutView, schema: type[CallOutSummary] = CallOutSummary) -> CallOutSummary:
    """Convert a CallOutView to a response schema."""
    call_out = view.call_out
    return schema(
        id=call_out.id,
        title=call_out.title,
        message=call_out.message,
        status=call_out.status,
        call_out_type=call_out.call_out_type,
        target_unit=call_out.target_unit,
        target_role=call_out.target_role,
        target_user_ids=call_out.target_user_ids or [],
        expires_at=call_out.expires_at,
        created_by=call_out.created_by,
        closed_at=call_out.closed_at,
        closed_by=call_out.closed_by,
        created_at=call_out.created_at,
        updated_at=call_out.updated_at,
        response_count=view.response_count,
        is_expired=view.is_expired,
    )


def view_to_detail(view: CallOutView) -> CallOutDetail:
    detail = view_to_summary(view, CallOutDetail)
    detail.responses = [CallOutResponseRead.model_validate(r) for r in view.responses or []]
    return detail


async def _create(data: CallOutCreate, actor, coordinator: CallOutCoordinator) -> CallOutDetail:
    view = await coordinator.create_call_out(
        CreateCallOutInput(
            title=data.title,
            message=data.message,
            expires_at=data.expires_at,
            call_out_type=data.call_out_type,
            target_unit=data.target_unit,
            target_role=data.target_role,
            target_user_ids=data.target_user_ids,
        ),
        actor,
    )
    return view_to_detail(view)


# =============================================================================
# PERSONNEL
# =============================================================================


@router.get("", response_model=list[CallOutSummary])
async def list_call_outs(
    current_user: CurrentUserDep,
    coordinator: CoordinatorDep,
    status_filter: Annotated[CallOutStatus | None, Query(alias="status")] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Call-outs visible to the caller, newest first."""
    views = await coordinator.list_call_outs(
        current_user.user, status=status_filter, limit=limit, offset=offset
    )
    return [view_to_summary(v) for v in views]


@router.post("", response_model=CallOutDetail, status_code=status.HTTP_201_CREATED)
async def create_call_out(data: CallOutCreate, current_user: CommandDep, coordinator: CoordinatorDep):
    return await _create(data, current_user.user, coordinator)


@router.get("/{call_out_id}", response_model=CallOutDetail)
async def get_call_out(call_out_id: UUID, current_user: CurrentUserDep, coordinator: CoordinatorDep):
    """Call-out with response count, expiry and the responses the caller may see."""
    view = await coordinator.get_call_out(call_out_id, current_user.user)
    return view_to_detail(view)


@router.post("/{call_out_id}/respond", response_model=CallOutResponseRead)
async def respond(
    call_out_id: UUID,
    data: CallOutRespond,
    current_user: CurrentUserDep,
    coordinator: CoordinatorDep,
):
    """Record or update the caller's availability. Re-responding updates in place."""
    response = await coordinator.respond(
        call_out_id,
        RespondInput(
            status=data.status,
            estimated_arrival=data.estimated_arrival,
            notes=data.notes,
        ),
        current_user.user,
    )
    return CallOutResponseRead.model_validate(response)


# =============================================================================
# ADMIN
# =============================================================================


@admin_router.post("", response_model=CallOutDetail, status_code=status.HTTP_201_CREATED)
async def admin_create_call_out(data: CallOutCreate, current_user: CommandDep, coordinator: CoordinatorDep):
    return await _create(data, current_user.user, coordinator)


@admin_router.get("/{call_out_id}/responses", response_model=list[CallOutResponseRead])
async def list_responses(call_out_id: UUID, current_user: OfficerDep, coordinator: CoordinatorDep):
    responses = await coordinator.list_responses(call_out_id, current_user.user)
    return [CallOutResponseRead.model_validate(r) for r in responses]


@admin_router.post("/{call_out_id}/close", response_model=CallOutDetail)
async def close_call_out(
    call_out_id: UUID,
    data: CallOutClose,
    current_user: OfficerDep,
    coordinator: CoordinatorDep,
):
    """Close as completed or cancelled. Closing a closed call-out returns it unchanged."""
    view = await coordinator.close_call_out(call_out_id, data.outcome, current_user.user)
    return view_to_detail(view)
