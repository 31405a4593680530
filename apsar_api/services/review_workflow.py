"""
Review Workflow: callout report submission and review.

State machine:
    draft --submit--> submitted --claim--> under_review
    submitted | under_review --approve--> approved   (final)
    submitted | under_review --reject---> rejected --submit--> submitted

Every transition is a conditional UPDATE keyed on the report id and the
set of statuses it may leave from, so two reviewers acting at once
serialize and the loser gets InvalidState. Review decisions are appended
to callout_report_reviews; nothing there is ever overwritten.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    AuditAction,
    CallOut,
    CalloutReport,
    CalloutReportReview,
    NotificationType,
    ReportStatus,
    ReviewAction,
    SARMission,
    User,
    UserRole,
    has_role,
    utcnow,
)
from .audit import AuditService
from .errors import ForbiddenError, InvalidStateError, NotFoundError
from .notifications import NotificationService

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (ReportStatus.DRAFT, ReportStatus.REJECTED)
SUBMITTABLE_STATUSES = (ReportStatus.DRAFT, ReportStatus.REJECTED)
REVIEWABLE_STATUSES = (ReportStatus.SUBMITTED, ReportStatus.UNDER_REVIEW)

REPORT_FIELDS = (
    "date",
    "start_time",
    "end_time",
    "incident_type",
    "location",
    "location_description",
    "role_on_scene",
    "equipment_used",
    "notes",
    "observations",
    "photos",
    "documents",
)
LIST_FIELDS = ("equipment_used", "photos", "documents")


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class ReportInput:
    """Report content. On update, only keys present in ``fields`` are applied."""
    fields: dict[str, Any] = field(default_factory=dict)
    callout_id: UUID | None = None
    mission_id: UUID | None = None


@dataclass
class ReportView:
    report: CalloutReport
    history: list[CalloutReportReview]


# =============================================================================
# REVIEW WORKFLOW
# =============================================================================


class ReviewWorkflow:
    """Sole writer of a report's status and review fields."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)
        self._notifications = NotificationService(session)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _get_report_or_raise(self, report_id: UUID) -> CalloutReport:
        result = await self._session.execute(
            select(CalloutReport)
            .where(CalloutReport.id == report_id)
            .execution_options(populate_existing=True)
        )
        report = result.scalar_one_or_none()
        if report is None:
            raise NotFoundError("Callout report", report_id)
        return report

    async def _history(self, report_id: UUID) -> list[CalloutReportReview]:
        result = await self._session.execute(
            select(CalloutReportReview)
            .where(CalloutReportReview.report_id == report_id)
            .order_by(CalloutReportReview.reviewed_at.asc())
        )
        return list(result.scalars().all())

    async def _view(self, report: CalloutReport) -> ReportView:
        return ReportView(report=report, history=await self._history(report.id))

    async def _conditional_status_update(
        self,
        report_id: UUID,
        sources: tuple[ReportStatus, ...],
        values: dict[str, Any],
    ) -> bool:
        result = await self._session.execute(
            update(CalloutReport)
            .where(CalloutReport.id == report_id, CalloutReport.status.in_(sources))
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return bool(result.rowcount)

    async def _check_links(self, input: ReportInput) -> None:
        if input.callout_id and await self._session.get(CallOut, input.callout_id) is None:
            raise NotFoundError("Call-out", input.callout_id)
        if input.mission_id and await self._session.get(SARMission, input.mission_id) is None:
            raise NotFoundError("Mission", input.mission_id)

    # =========================================================================
    # AUTHORING
    # =========================================================================

    async def create_report(self, input: ReportInput, actor: User) -> ReportView:
        """Create a draft owned by the caller."""
        await self._check_links(input)
        content = {k: v for k, v in input.fields.items() if k in REPORT_FIELDS}
        for key in LIST_FIELDS:
            content[key] = list(content.get(key) or [])

        report = CalloutReport(
            id=uuid4(),
            callout_id=input.callout_id,
            mission_id=input.mission_id,
            submitted_by=actor.id,
            submitted_by_name=actor.name,
            status=ReportStatus.DRAFT,
            reviews=[],
            **content,
        )
        self._session.add(report)
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.CREATE, "callout_report", report.id,
            entity_name=report.incident_type,
        )
        return ReportView(report=report, history=[])

    async def update_report(
        self,
        report_id: UUID,
        input: ReportInput,
        actor: User,
    ) -> ReportView:
        """Owner edits while the report is draft or rejected."""
        report = await self._get_report_or_raise(report_id)
        if report.submitted_by != actor.id:
            raise ForbiddenError("Only the report's author can edit it")
        if report.status not in EDITABLE_STATUSES:
            raise InvalidStateError(f"Report is {report.status.value} and can no longer be edited")

        await self._check_links(input)
        changed = []
        for key, value in input.fields.items():
            if key in REPORT_FIELDS:
                if key in LIST_FIELDS:
                    value = list(value or [])
                setattr(report, key, value)
                changed.append(key)
        if input.callout_id is not None:
            report.callout_id = input.callout_id
        if input.mission_id is not None:
            report.mission_id = input.mission_id
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.UPDATE, "callout_report", report.id,
            changes={"fields": changed},
        )
        return await self._view(report)

    async def get_report(self, report_id: UUID, actor: User) -> ReportView:
        report = await self._get_report_or_raise(report_id)
        if report.submitted_by != actor.id and not has_role(actor.role, UserRole.OFFICER):
            raise ForbiddenError("Members can only view their own reports")
        return await self._view(report)

    async def list_reports(
        self,
        actor: User,
        callout_id: UUID | None = None,
        mission_id: UUID | None = None,
        status: ReportStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[CalloutReport]:
        query = select(CalloutReport)
        if not has_role(actor.role, UserRole.OFFICER):
            query = query.where(CalloutReport.submitted_by == actor.id)
        if callout_id:
            query = query.where(CalloutReport.callout_id == callout_id)
        if mission_id:
            query = query.where(CalloutReport.mission_id == mission_id)
        if status is not None:
            query = query.where(CalloutReport.status == status)
        query = query.order_by(CalloutReport.created_at.desc()).limit(limit).offset(offset)

        result = await self._session.execute(query)
        return result.scalars().all()

    # =========================================================================
    # SUBMIT
    # =========================================================================

    async def submit(self, report_id: UUID, actor: User) -> ReportView:
        """
        Enter the review queue.

        Flow:
        1. Caller must own the report
        2. draft | rejected -> submitted (conditional update)
        3. Notify officers and admins (report_review_requested)
        """
        report = await self._get_report_or_raise(report_id)
        if report.submitted_by != actor.id:
            raise ForbiddenError("Only the report's author can submit it")
        if report.status not in SUBMITTABLE_STATUSES:
            raise InvalidStateError(f"Report is already {report.status.value}")

        old_status = report.status
        if not await self._conditional_status_update(
            report_id, SUBMITTABLE_STATUSES,
            {"status": ReportStatus.SUBMITTED, "submitted_at": utcnow()},
        ):
            report = await self._get_report_or_raise(report_id)
            raise InvalidStateError(f"Report is already {report.status.value}")

        report = await self._get_report_or_raise(report_id)
        await self._notifications.notify_role(
            UserRole.OFFICER,
            NotificationType.REPORT_REVIEW_REQUESTED,
            title="Report ready for review",
            message=f"{report.submitted_by_name or 'A member'} submitted a {report.incident_type} report",
            data={"reportId": str(report.id)},
            exclude=[actor.id],
        )
        self._audit.log_event(
            actor, AuditAction.UPDATE, "callout_report", report.id,
            changes={"status": {"old": old_status.value, "new": ReportStatus.SUBMITTED.value}},
        )
        logger.info(f"Report {report.id} submitted by {actor.id} (from {old_status.value})")
        return await self._view(report)

    # =========================================================================
    # REVIEW
    # =========================================================================

    async def claim(self, report_id: UUID, actor: User) -> ReportView:
        """An officer takes a submitted report: submitted -> under_review."""
        if not has_role(actor.role, UserRole.OFFICER):
            raise ForbiddenError("Only officers and admins can review reports")

        report = await self._get_report_or_raise(report_id)
        if report.status == ReportStatus.UNDER_REVIEW:
            return await self._view(report)
        if report.status != ReportStatus.SUBMITTED:
            raise InvalidStateError(f"Cannot claim a {report.status.value} report")

        if not await self._conditional_status_update(
            report_id, (ReportStatus.SUBMITTED,), {"status": ReportStatus.UNDER_REVIEW}
        ):
            report = await self._get_report_or_raise(report_id)
            if report.status != ReportStatus.UNDER_REVIEW:
                raise InvalidStateError(f"Report is now {report.status.value}")
            return await self._view(report)

        report = await self._get_report_or_raise(report_id)
        self._audit.log_event(
            actor, AuditAction.UPDATE, "callout_report", report.id,
            changes={"status": {"old": "submitted", "new": "under_review"}},
        )
        return await self._view(report)

    async def review(
        self,
        report_id: UUID,
        action: ReviewAction,
        actor: User,
        notes: str | None = None,
    ) -> ReportView:
        """
        Approve or reject a submitted report.

        Flow:
        1. Require officer or admin
        2. Reject approved (final) and draft/rejected (nothing to review)
        3. Conditional update stamps reviewedBy/reviewedAt/reviewNotes
        4. Append the decision to review history
        5. Notify the submitter
        """
        if not has_role(actor.role, UserRole.OFFICER):
            raise ForbiddenError("Only officers and admins can review reports")

        report = await self._get_report_or_raise(report_id)
        if report.status == ReportStatus.APPROVED:
            raise InvalidStateError("Report is already approved")
        if report.status not in REVIEWABLE_STATUSES:
            raise InvalidStateError(f"Report is {report.status.value}; nothing to review")

        new_status = ReportStatus.APPROVED if action == ReviewAction.APPROVE else ReportStatus.REJECTED
        reviewed_at = utcnow()
        if not await self._conditional_status_update(
            report_id,
            REVIEWABLE_STATUSES,
            {
                "status": new_status,
                "reviewed_by": actor.id,
                "reviewed_by_name": actor.name,
                "reviewed_at": reviewed_at,
                "review_notes": notes,
            },
        ):
            report = await self._get_report_or_raise(report_id)
            raise InvalidStateError(f"Report was concurrently moved to {report.status.value}")

        self._session.add(
            CalloutReportReview(
                id=uuid4(),
                report_id=report_id,
                action=action,
                reviewer_id=actor.id,
                reviewer_name=actor.name,
                notes=notes,
                reviewed_at=reviewed_at,
            )
        )
        await self._session.flush()
        report = await self._get_report_or_raise(report_id)

        approved = action == ReviewAction.APPROVE
        await self._notifications.notify_users(
            [report.submitted_by],
            NotificationType.REPORT_APPROVED if approved else NotificationType.REPORT_REJECTED,
            title="Report approved" if approved else "Report needs changes",
            message=notes or f"Your {report.incident_type} report was {new_status.value}",
            data={"reportId": str(report.id)},
        )
        self._audit.log_event(
            actor,
            AuditAction.APPROVE if approved else AuditAction.REJECT,
            "callout_report",
            report.id,
            changes={"notes": notes} if notes else None,
        )
        logger.info(f"Report {report.id} {new_status.value} by {actor.id}")
        return await self._view(report)

    async def history(self, report_id: UUID, actor: User) -> list[CalloutReportReview]:
        return (await self.get_report(report_id, actor)).history
