"""Checklist templates and checklist instances.

An instance snapshots its template's items when created; later template
edits bump the template version and leave existing instances alone. The
overall status of an instance is always derived from its items.
"""

import logging
from dataclasses import dataclass
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    AuditAction,
    Checklist,
    ChecklistItemStatus,
    ChecklistStatus,
    ChecklistTemplate,
    ChecklistType,
    NotificationType,
    User,
    UserRole,
    has_role,
    utcnow,
)
from .audit import AuditService
from .errors import ForbiddenError, InvalidStateError, NotFoundError, ValidationFailedError
from .notifications import NotificationService

logger = logging.getLogger(__name__)

DONE_ITEM_STATUSES = {ChecklistItemStatus.COMPLETE.value, ChecklistItemStatus.NA.value}


def derive_status(items: list[dict]) -> ChecklistStatus:
    """completed iff every item is complete or na; not_started while all pending."""
    statuses = [item["status"] for item in items]
    if all(s in DONE_ITEM_STATUSES for s in statuses):
        return ChecklistStatus.COMPLETED
    if all(s == ChecklistItemStatus.PENDING.value for s in statuses):
        return ChecklistStatus.NOT_STARTED
    return ChecklistStatus.IN_PROGRESS


def normalize_template_items(items: list[dict]) -> list[dict]:
    if not items:
        raise ValidationFailedError("A checklist template needs at least one item")
    return [
        {
            "id": item.get("id") or str(uuid4()),
            "text": item["text"],
            "description": item.get("description"),
            "required": item.get("required", True),
            "order": index,
            "item_type": item.get("item_type", "checkbox"),
            "options": item.get("options"),
        }
        for index, item in enumerate(items)
    ]


@dataclass
class ItemUpdate:
    item_id: str
    status: ChecklistItemStatus | None = None
    response: str | None = None
    notes: str | None = None
    photo_url: str | None = None


class ChecklistService:
    """Templates (officer-managed) and assigned checklist instances."""

    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)
        self._notifications = NotificationService(session)

    # =========================================================================
    # TEMPLATES
    # =========================================================================

    async def _get_template_or_raise(self, template_id: UUID) -> ChecklistTemplate:
        template = await self._session.get(ChecklistTemplate, template_id)
        if template is None:
            raise NotFoundError("Checklist template", template_id)
        return template

    async def list_templates(
        self,
        checklist_type: ChecklistType | None = None,
        include_inactive: bool = False,
    ) -> Sequence[ChecklistTemplate]:
        query = select(ChecklistTemplate)
        if checklist_type is not None:
            query = query.where(ChecklistTemplate.checklist_type == checklist_type)
        if not include_inactive:
            query = query.where(ChecklistTemplate.is_active.is_(True))
        result = await self._session.execute(query.order_by(ChecklistTemplate.name.asc()))
        return result.scalars().all()

    async def get_template(self, template_id: UUID) -> ChecklistTemplate:
        return await self._get_template_or_raise(template_id)

    async def create_template(
        self,
        name: str,
        checklist_type: ChecklistType,
        items: list[dict],
        actor: User,
        description: str | None = None,
        is_locked: bool = False,
    ) -> ChecklistTemplate:
        if not has_role(actor.role, UserRole.OFFICER):
            raise ForbiddenError("Only officers and admins can create checklist templates")

        template = ChecklistTemplate(
            id=uuid4(),
            name=name,
            checklist_type=checklist_type,
            description=description,
            items=normalize_template_items(items),
            version=1,
            is_locked=is_locked,
            is_active=True,
            created_by=actor.id,
        )
        self._session.add(template)
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.CREATE, "checklist_template", template.id, entity_name=name
        )
        return template

    async def update_template(
        self,
        template_id: UUID,
        changes: dict[str, Any],
        actor: User,
    ) -> ChecklistTemplate:
        """Apply ``changes`` (name, description, items, is_locked, is_active); bumps version."""
        template = await self._get_template_or_raise(template_id)
        is_officer = has_role(actor.role, UserRole.OFFICER)
        if template.is_locked and not is_officer:
            raise ForbiddenError("Locked templates can only be edited by officers")
        if not is_officer and template.created_by != actor.id:
            raise ForbiddenError("Only the template's creator or an officer can edit it")
        if "is_locked" in changes and not is_officer:
            raise ForbiddenError("Only officers can lock or unlock templates")

        if "name" in changes:
            template.name = changes["name"]
        if "description" in changes:
            template.description = changes["description"]
        if "items" in changes:
            template.items = normalize_template_items(changes["items"])
        if "is_locked" in changes:
            template.is_locked = bool(changes["is_locked"])
        if "is_active" in changes:
            template.is_active = bool(changes["is_active"])
        template.version += 1
        template.updated_by = actor.id
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.UPDATE, "checklist_template", template.id,
            entity_name=template.name, changes={"fields": sorted(changes), "version": template.version},
        )
        return template

    async def deactivate_template(self, template_id: UUID, actor: User) -> None:
        if not has_role(actor.role, UserRole.OFFICER):
            raise ForbiddenError("Only officers and admins can delete checklist templates")
        template = await self._get_template_or_raise(template_id)
        template.is_active = False
        template.updated_by = actor.id
        await self._session.flush()
        self._audit.log_event(
            actor, AuditAction.DELETE, "checklist_template", template.id, entity_name=template.name
        )

    # =========================================================================
    # INSTANCES
    # =========================================================================

    async def _get_checklist_or_raise(self, checklist_id: UUID) -> Checklist:
        checklist = await self._session.get(Checklist, checklist_id)
        if checklist is None:
            raise NotFoundError("Checklist", checklist_id)
        return checklist

    def _require_access(self, checklist: Checklist, actor: User) -> None:
        if checklist.assigned_to != actor.id and not has_role(actor.role, UserRole.OFFICER):
            raise ForbiddenError("This checklist is assigned to someone else")

    async def create_checklist(
        self,
        template_id: UUID,
        actor: User,
        title: str | None = None,
        assigned_to: UUID | None = None,
    ) -> Checklist:
        """
        Start a checklist from a template.

        Flow:
        1. Template must be active
        2. Assigning to someone else requires officer
        3. Snapshot template items as pending
        4. Notify the assignee when it is not the caller
        """
        template = await self._get_template_or_raise(template_id)
        if not template.is_active:
            raise InvalidStateError("Checklist template is no longer active")

        assignee = actor
        if assigned_to and assigned_to != actor.id:
            if not has_role(actor.role, UserRole.OFFICER):
                raise ForbiddenError("Only officers can assign checklists to others")
            assignee = await self._session.get(User, assigned_to)
            if assignee is None:
                raise NotFoundError("User", assigned_to)

        items = [
            {
                "item_id": item["id"],
                "item_text": item["text"],
                "required": item.get("required", True),
                "status": ChecklistItemStatus.PENDING.value,
                "response": None,
                "notes": None,
                "photo_url": None,
                "completed_at": None,
            }
            for item in sorted(template.items, key=lambda i: i.get("order", 0))
        ]
        checklist = Checklist(
            id=uuid4(),
            template_id=template.id,
            template_name=template.name,
            template_version=template.version,
            checklist_type=template.checklist_type,
            title=title or template.name,
            assigned_to=assignee.id,
            assigned_to_name=assignee.name,
            assigned_by=actor.id,
            assigned_by_name=actor.name,
            status=ChecklistStatus.NOT_STARTED,
            items=items,
        )
        self._session.add(checklist)
        await self._session.flush()

        if assignee.id != actor.id:
            await self._notifications.notify_users(
                [assignee.id],
                NotificationType.CHECKLIST_ASSIGNED,
                title="Checklist assigned",
                message=f"{actor.name} assigned you '{checklist.title}'",
                data={"checklistId": str(checklist.id)},
            )
        self._audit.log_event(
            actor, AuditAction.ASSIGN, "checklist", checklist.id,
            entity_name=checklist.title, changes={"assignedTo": str(assignee.id)},
        )
        return checklist

    async def get_checklist(self, checklist_id: UUID, actor: User) -> Checklist:
        checklist = await self._get_checklist_or_raise(checklist_id)
        self._require_access(checklist, actor)
        return checklist

    async def list_checklists(
        self,
        actor: User,
        assigned_to: UUID | None = None,
        status: ChecklistStatus | None = None,
        checklist_type: ChecklistType | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Checklist]:
        query = select(Checklist)
        if not has_role(actor.role, UserRole.OFFICER):
            query = query.where(Checklist.assigned_to == actor.id)
        elif assigned_to:
            query = query.where(Checklist.assigned_to == assigned_to)
        if status is not None:
            query = query.where(Checklist.status == status)
        if checklist_type is not None:
            query = query.where(Checklist.checklist_type == checklist_type)
        query = query.order_by(Checklist.created_at.desc()).limit(limit).offset(offset)

        result = await self._session.execute(query)
        return result.scalars().all()

    async def update_items(
        self,
        checklist_id: UUID,
        updates: list[ItemUpdate],
        actor: User,
        notes: str | None = None,
    ) -> Checklist:
        """Apply item updates and re-derive the overall status."""
        checklist = await self._get_checklist_or_raise(checklist_id)
        self._require_access(checklist, actor)
        if checklist.is_terminal:
            raise InvalidStateError(f"Checklist is {checklist.status.value}")

        items = [dict(item) for item in checklist.items]
        by_id = {item["item_id"]: item for item in items}
        now = utcnow()
        for update in updates:
            item = by_id.get(update.item_id)
            if item is None:
                raise ValidationFailedError(f"Unknown checklist item {update.item_id}")
            if update.status is not None:
                item["status"] = update.status.value
                item["completed_at"] = (
                    now.isoformat() if update.status.value in DONE_ITEM_STATUSES else None
                )
            if update.response is not None:
                item["response"] = update.response
            if update.notes is not None:
                item["notes"] = update.notes
            if update.photo_url is not None:
                item["photo_url"] = update.photo_url

        # JSON columns only track reassignment
        checklist.items = items
        if notes is not None:
            checklist.notes = notes
        self._apply_derived_status(checklist, actor)
        await self._session.flush()
        return checklist

    def _apply_derived_status(self, checklist: Checklist, actor: User) -> None:
        status = derive_status(checklist.items)
        if status == ChecklistStatus.COMPLETED and checklist.status != ChecklistStatus.COMPLETED:
            checklist.completed_at = utcnow()
            checklist.completed_by = actor.id
            self._audit.log_event(
                actor, AuditAction.COMPLETE, "checklist", checklist.id, entity_name=checklist.title
            )
        checklist.status = status

    async def complete(
        self,
        checklist_id: UUID,
        actor: User,
        signature: str | None = None,
        notes: str | None = None,
    ) -> Checklist:
        """Sign off a checklist whose items are all complete or na."""
        checklist = await self._get_checklist_or_raise(checklist_id)
        self._require_access(checklist, actor)
        if checklist.status == ChecklistStatus.CANCELLED:
            raise InvalidStateError("Checklist is cancelled")
        if derive_status(checklist.items) != ChecklistStatus.COMPLETED:
            raise InvalidStateError("Checklist still has pending items")

        if checklist.status != ChecklistStatus.COMPLETED:
            self._apply_derived_status(checklist, actor)
        # A completed checklist may still receive its one sign-off
        if signature and not checklist.signature:
            checklist.signature = signature
        if notes and not checklist.notes:
            checklist.notes = notes
        await self._session.flush()
        return checklist

    async def cancel(self, checklist_id: UUID, actor: User) -> Checklist:
        checklist = await self._get_checklist_or_raise(checklist_id)
        self._require_access(checklist, actor)
        if checklist.status == ChecklistStatus.CANCELLED:
            return checklist
        if checklist.status == ChecklistStatus.COMPLETED:
            raise InvalidStateError("Checklist is completed")

        checklist.status = ChecklistStatus.CANCELLED
        await self._session.flush()
        self._audit.log_event(
            actor, AuditAction.UPDATE, "checklist", checklist.id,
            changes={"status": {"new": ChecklistStatus.CANCELLED.value}},
        )
        return checklist
