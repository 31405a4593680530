"""Audit service: who changed what, recorded in the caller's transaction."""

from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import AuditAction, AuditLog, User, utcnow


class AuditService:
    """Service for audit logging."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def log_event(
        self,
        actor: User | None,
        action: AuditAction,
        entity: str,
        entity_id: UUID,
        entity_name: str | None = None,
        changes: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Stage an audit row; it commits or rolls back with the change itself."""
        entry = AuditLog(
            id=uuid4(),
            user_id=actor.id if actor else None,
            user_name=actor.name if actor else None,
            action=action,
            entity=entity,
            entity_id=entity_id,
            entity_name=entity_name,
            changes=changes or {},
            created_at=utcnow(),
        )
        self.session.add(entry)
        return entry

    async def list_events(
        self,
        entity: str | None = None,
        entity_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[AuditLog]:
        query = select(AuditLog)
        if entity:
            query = query.where(AuditLog.entity == entity)
        if entity_id:
            query = query.where(AuditLog.entity_id == entity_id)
        query = query.order_by(AuditLog.created_at.desc()).limit(limit).offset(offset)

        result = await self.session.execute(query)
        return result.scalars().all()
