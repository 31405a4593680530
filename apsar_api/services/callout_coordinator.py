"""
Call-Out Coordinator: broadcast call-outs and aggregate member responses.

Guarantees:
1. At most one CallOutResponse per (call-out, user); re-responding updates
   the row in place through a native INSERT ... ON CONFLICT upsert
2. Concurrent writes for the same key resolve last-write-wins on updated_at
3. Expiry is computed at read time (now > expires_at); nothing sweeps status
4. Closing is a conditional UPDATE on status='active' and is idempotent
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import distinct, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import UPSERT_INSERTS
from ..models import (
    COMMAND_ROLE,
    AuditAction,
    CallOut,
    CallOutResponse,
    CallOutResponseStatus,
    CallOutStatus,
    CallOutType,
    NotificationType,
    User,
    UserRole,
    as_utc,
    has_role,
    utcnow,
)
from .audit import AuditService
from .errors import (
    CallOutClosedError,
    ForbiddenError,
    NotFoundError,
    ValidationFailedError,
)
from .notifications import NotificationService

logger = logging.getLogger(__name__)

CLOSE_OUTCOMES = (CallOutStatus.COMPLETED, CallOutStatus.CANCELLED)


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class CreateCallOutInput:
    """Input for broadcasting a call-out."""
    title: str
    message: str
    expires_at: datetime | None = None
    call_out_type: CallOutType = CallOutType.ALL
    target_unit: str | None = None
    target_role: UserRole | None = None
    target_user_ids: list[UUID] = field(default_factory=list)


@dataclass
class RespondInput:
    status: CallOutResponseStatus
    estimated_arrival: datetime | None = None
    notes: str | None = None


@dataclass
class CallOutView:
    """A call-out with its read-time aggregates."""
    call_out: CallOut
    response_count: int
    is_expired: bool
    responses: list[CallOutResponse] | None = None


# =============================================================================
# COORDINATOR
# =============================================================================


class CallOutCoordinator:
    """Sole writer of CallOut and CallOutResponse rows."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)
        self._notifications = NotificationService(session)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _get_call_out_or_raise(self, call_out_id: UUID) -> CallOut:
        result = await self._session.execute(
            select(CallOut)
            .where(CallOut.id == call_out_id)
            .execution_options(populate_existing=True)
        )
        call_out = result.scalar_one_or_none()
        if call_out is None:
            raise NotFoundError("Call-out", call_out_id)
        return call_out

    def _insert(self):
        """Dialect-specific INSERT supporting ON CONFLICT; build_engine admits no others."""
        return UPSERT_INSERTS[self._session.bind.dialect.name]

    async def _response_counts(self, call_out_ids: list[UUID]) -> dict[UUID, int]:
        """Distinct responder count per call-out."""
        if not call_out_ids:
            return {}
        result = await self._session.execute(
            select(
                CallOutResponse.call_out_id,
                func.count(distinct(CallOutResponse.user_id)),
            )
            .where(CallOutResponse.call_out_id.in_(call_out_ids))
            .group_by(CallOutResponse.call_out_id)
        )
        return {call_out_id: count for call_out_id, count in result.all()}

    async def response_count(self, call_out_id: UUID) -> int:
        counts = await self._response_counts([call_out_id])
        return counts.get(call_out_id, 0)

    async def _recipients(self, call_out: CallOut) -> list[User]:
        result = await self._session.execute(
            select(User).where(User.is_active.is_(True), User.id != call_out.created_by)
        )
        return [user for user in result.scalars().all() if call_out.targets(user)]

    def _validate_target(self, input: CreateCallOutInput) -> None:
        if input.call_out_type == CallOutType.UNIT and not input.target_unit:
            raise ValidationFailedError("targetUnit is required for unit call-outs")
        if input.call_out_type == CallOutType.ROLE and not input.target_role:
            raise ValidationFailedError("targetRole is required for role call-outs")
        if input.call_out_type == CallOutType.SPECIFIC_USERS and not input.target_user_ids:
            raise ValidationFailedError("targetUserIds is required for specific_users call-outs")

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_call_out(self, input: CreateCallOutInput, actor: User) -> CallOutView:
        """
        Broadcast a new call-out.

        Flow:
        1. Require command role
        2. Validate target and expiry
        3. Persist CallOut with status=active
        4. Fan out a `callout` notification to active users in scope
        5. Log audit event
        """
        if not has_role(actor.role, COMMAND_ROLE):
            raise ForbiddenError("Only officers and admins can create call-outs")

        self._validate_target(input)
        now = utcnow()
        expires_at = as_utc(input.expires_at) if input.expires_at is not None else None
        if expires_at is not None and expires_at <= now:
            raise ValidationFailedError("expiresAt must be in the future")

        call_out = CallOut(
            id=uuid4(),
            title=input.title,
            message=input.message,
            call_out_type=input.call_out_type,
            target_unit=input.target_unit,
            target_role=input.target_role.value if input.target_role else None,
            target_user_ids=[str(uid) for uid in input.target_user_ids],
            status=CallOutStatus.ACTIVE,
            expires_at=expires_at,
            created_by=actor.id,
        )
        self._session.add(call_out)
        await self._session.flush()

        recipients = await self._recipients(call_out)
        await self._notifications.notify_users(
            [user.id for user in recipients],
            NotificationType.CALLOUT,
            title=call_out.title,
            message=call_out.message,
            data={"callOutId": str(call_out.id)},
        )

        self._audit.log_event(
            actor,
            AuditAction.CREATE,
            "call_out",
            call_out.id,
            entity_name=call_out.title,
            changes={"callOutType": call_out.call_out_type.value, "recipients": len(recipients)},
        )
        logger.info(
            f"Call-out {call_out.id} created by {actor.id} for {len(recipients)} recipient(s)"
        )
        return CallOutView(call_out=call_out, response_count=0, is_expired=False, responses=[])

    # =========================================================================
    # READ
    # =========================================================================

    async def get_call_out(self, call_out_id: UUID, actor: User) -> CallOutView:
        call_out = await self._get_call_out_or_raise(call_out_id)
        is_command = has_role(actor.role, COMMAND_ROLE)
        if not is_command and not call_out.targets(actor):
            raise ForbiddenError("This call-out is not addressed to you")

        return CallOutView(
            call_out=call_out,
            response_count=await self.response_count(call_out.id),
            is_expired=call_out.is_expired(),
            responses=list(await self.list_responses(call_out.id, actor)),
        )

    async def list_call_outs(
        self,
        actor: User,
        status: CallOutStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CallOutView]:
        """Command sees every call-out; members see those addressed to them.

        Member lists are filtered on targets() and paged after filtering;
        command callers page in SQL.
        """
        query = select(CallOut).order_by(CallOut.created_at.desc(), CallOut.id)
        if status is not None:
            query = query.where(CallOut.status == status)

        if has_role(actor.role, COMMAND_ROLE):
            result = await self._session.execute(query.limit(limit).offset(offset))
            call_outs = list(result.scalars().all())
        else:
            result = await self._session.execute(query)
            visible = [c for c in result.scalars().all() if c.targets(actor)]
            call_outs = visible[offset:offset + limit]

        counts = await self._response_counts([c.id for c in call_outs])
        now = utcnow()
        return [
            CallOutView(
                call_out=c,
                response_count=counts.get(c.id, 0),
                is_expired=c.is_expired(now),
            )
            for c in call_outs
        ]

    async def list_responses(self, call_out_id: UUID, actor: User) -> Sequence[CallOutResponse]:
        """Officers and admins see all responses; members only their own."""
        query = (
            select(CallOutResponse)
            .where(CallOutResponse.call_out_id == call_out_id)
            .order_by(CallOutResponse.responded_at.asc())
        )
        if not has_role(actor.role, UserRole.OFFICER):
            query = query.where(CallOutResponse.user_id == actor.id)

        result = await self._session.execute(query)
        return result.scalars().all()

    # =========================================================================
    # RESPOND
    # =========================================================================

    async def respond(
        self,
        call_out_id: UUID,
        input: RespondInput,
        actor: User,
    ) -> CallOutResponse:
        """
        Record the caller's availability for a call-out.

        Flow:
        1. Load call-out; reject once it has left active or expired
        2. Upsert keyed on (call_out_id, user_id): the conflict branch only
           applies when the stored row is not newer than this write
        3. Notify the call-out's creator
        """
        call_out = await self._get_call_out_or_raise(call_out_id)
        now = utcnow()
        if not call_out.accepts_responses(now):
            if call_out.status == CallOutStatus.ACTIVE:
                raise CallOutClosedError("Call-out has expired")
            raise CallOutClosedError(f"Call-out is {call_out.status.value}")
        if not call_out.targets(actor) and not has_role(actor.role, COMMAND_ROLE):
            raise ForbiddenError("This call-out is not addressed to you")

        insert = self._insert()
        stmt = insert(CallOutResponse).values(
            id=uuid4(),
            call_out_id=call_out.id,
            user_id=actor.id,
            user_name=actor.name,
            status=input.status,
            estimated_arrival=input.estimated_arrival,
            notes=input.notes,
            responded_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["call_out_id", "user_id"],
            set_={
                "status": stmt.excluded.status,
                "estimated_arrival": stmt.excluded.estimated_arrival,
                "notes": stmt.excluded.notes,
                "user_name": stmt.excluded.user_name,
                "updated_at": stmt.excluded.updated_at,
            },
            where=CallOutResponse.updated_at <= stmt.excluded.updated_at,
        )
        await self._session.execute(stmt)

        result = await self._session.execute(
            select(CallOutResponse)
            .where(
                CallOutResponse.call_out_id == call_out.id,
                CallOutResponse.user_id == actor.id,
            )
            .execution_options(populate_existing=True)
        )
        response = result.scalar_one()

        if call_out.created_by != actor.id:
            await self._notifications.notify_users(
                [call_out.created_by],
                NotificationType.CALLOUT_RESPONSE,
                title=f"{actor.name} responded",
                message=f"{actor.name} is {response.status.value.replace('_', ' ')} for '{call_out.title}'",
                data={"callOutId": str(call_out.id), "responseStatus": response.status.value},
            )

        logger.info(
            f"User {actor.id} responded {response.status.value} to call-out {call_out.id}"
        )
        return response

    # =========================================================================
    # CLOSE
    # =========================================================================

    async def close_call_out(
        self,
        call_out_id: UUID,
        outcome: CallOutStatus,
        actor: User,
    ) -> CallOutView:
        """Move active -> completed|cancelled. Closing a closed call-out is a no-op."""
        if not has_role(actor.role, UserRole.OFFICER):
            raise ForbiddenError("Only officers and admins can close call-outs")
        if outcome not in CLOSE_OUTCOMES:
            raise ValidationFailedError("outcome must be completed or cancelled")

        await self._get_call_out_or_raise(call_out_id)

        now = utcnow()
        result = await self._session.execute(
            update(CallOut)
            .where(CallOut.id == call_out_id, CallOut.status == CallOutStatus.ACTIVE)
            .values(status=outcome, closed_at=now, closed_by=actor.id, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        call_out = await self._get_call_out_or_raise(call_out_id)

        if result.rowcount:
            self._audit.log_event(
                actor,
                AuditAction.COMPLETE if outcome == CallOutStatus.COMPLETED else AuditAction.UPDATE,
                "call_out",
                call_out.id,
                entity_name=call_out.title,
                changes={"status": {"old": CallOutStatus.ACTIVE.value, "new": outcome.value}},
            )
            logger.info(f"Call-out {call_out.id} closed as {outcome.value} by {actor.id}")

        return CallOutView(
            call_out=call_out,
            response_count=await self.response_count(call_out.id),
            is_expired=call_out.is_expired(),
        )
