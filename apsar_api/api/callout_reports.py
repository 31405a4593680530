"""API routes for callout reports and their review."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from ..core import CurrentUserDep, OfficerDep, SessionDep
from ..models import ReportStatus
from ..schemas import (
    ReportCreate,
    ReportResponse,
    ReportUpdate,
    ReviewHistoryEntry,
    ReviewRequest,
)
from ..services import ReportInput, ReportView, ReviewWorkflow

router = APIRouter(prefix="/callout-reports", tags=["callout-reports"])


def get_review_workflow(session: SessionDep) -> ReviewWorkflow:
    return ReviewWorkflow(session)


ReviewWorkflowDep = Annotated[ReviewWorkflow, Depends(get_review_workflow)]


def view_to_response(view: ReportView) -> ReportResponse:
    response = ReportResponse.model_validate(view.report)
    response.review_history = [ReviewHistoryEntry.model_validate(r) for r in view.history]
    return response


def to_input(data: ReportCreate | ReportUpdate) -> ReportInput:
    fields = data.model_dump(exclude_unset=True, exclude={"callout_id", "mission_id"})
    return ReportInput(fields=fields, callout_id=data.callout_id, mission_id=data.mission_id)


# =============================================================================
# REPORTS
# =============================================================================


@router.get("", response_model=list[ReportResponse])
async def list_reports(
    current_user: CurrentUserDep,
    workflow: ReviewWorkflowDep,
    callout_id: Annotated[UUID | None, Query(alias="calloutId")] = None,
    mission_id: Annotated[UUID | None, Query(alias="missionId")] = None,
    status_filter: Annotated[ReportStatus | None, Query(alias="status")] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """Members see their own reports; officers and admins see all."""
    reports = await workflow.list_reports(
        current_user.user,
        callout_id=callout_id,
        mission_id=mission_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    return [ReportResponse.model_validate(r) for r in reports]


@router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(data: ReportCreate, current_user: CurrentUserDep, workflow: ReviewWorkflowDep):
    """Create a draft report owned by the caller."""
    view = await workflow.create_report(to_input(data), current_user.user)
    return view_to_response(view)


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(report_id: UUID, current_user: CurrentUserDep, workflow: ReviewWorkflowDep):
    view = await workflow.get_report(report_id, current_user.user)
    return view_to_response(view)


@router.put("/{report_id}", response_model=ReportResponse)
async def update_report(
    report_id: UUID,
    data: ReportUpdate,
    current_user: CurrentUserDep,
    workflow: ReviewWorkflowDep,
):
    """Edit a draft or rejected report. Only the author may edit."""
    view = await workflow.update_report(report_id, to_input(data), current_user.user)
    return view_to_response(view)


# =============================================================================
# REVIEW
# =============================================================================


@router.post("/{report_id}/submit", response_model=ReportResponse)
async def submit_report(report_id: UUID, current_user: CurrentUserDep, workflow: ReviewWorkflowDep):
    view = await workflow.submit(report_id, current_user.user)
    return view_to_response(view)


@router.post("/{report_id}/claim", response_model=ReportResponse)
async def claim_report(report_id: UUID, current_user: OfficerDep, workflow: ReviewWorkflowDep):
    """Take a submitted report under review."""
    view = await workflow.claim(report_id, current_user.user)
    return view_to_response(view)


@router.post("/{report_id}/review", response_model=ReportResponse)
async def review_report(
    report_id: UUID,
    data: ReviewRequest,
    current_user: OfficerDep,
    workflow: ReviewWorkflowDep,
):
    """Approve or reject. Approval is final."""
    view = await workflow.review(report_id, data.action, current_user.user, notes=data.notes)
    return view_to_response(view)
