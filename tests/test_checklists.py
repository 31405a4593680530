"""Tests for checklist templates and instances."""

import pytest

from apsar_api.models import ChecklistItemStatus, ChecklistStatus, ChecklistType
from apsar_api.services import (
    ChecklistService,
    ForbiddenError,
    InvalidStateError,
    ItemUpdate,
    ValidationFailedError,
    derive_status,
)


@pytest.fixture
def checklists(session) -> ChecklistService:
    return ChecklistService(session)


@pytest.fixture
async def template(checklists, officer):
    return await checklists.create_template(
        name="Truck check",
        checklist_type=ChecklistType.VEHICLE,
        items=[{"text": "Fuel"}, {"text": "Tyres"}, {"text": "Winch", "required": False}],
        actor=officer,
    )


def item_ids(checklist) -> list[str]:
    return [item["item_id"] for item in checklist.items]


# =============================================================================
# TEST: DERIVED STATUS
# =============================================================================


class TestDeriveStatus:
    def test_all_pending_is_not_started(self):
        assert derive_status([{"status": "pending"}, {"status": "pending"}]) == ChecklistStatus.NOT_STARTED

    def test_mixed_is_in_progress(self):
        assert derive_status([{"status": "complete"}, {"status": "pending"}]) == ChecklistStatus.IN_PROGRESS

    def test_complete_or_na_is_completed(self):
        assert derive_status([{"status": "complete"}, {"status": "na"}]) == ChecklistStatus.COMPLETED


# =============================================================================
# TEST: TEMPLATES
# =============================================================================


class TestTemplates:
    async def test_items_get_ids_and_order(self, template):
        assert [item["order"] for item in template.items] == [0, 1, 2]
        assert all(item["id"] for item in template.items)
        assert template.version == 1

    async def test_member_cannot_create_template(self, checklists, member_a):
        with pytest.raises(ForbiddenError):
            await checklists.create_template(
                name="x", checklist_type=ChecklistType.GENERAL, items=[{"text": "a"}], actor=member_a
            )

    async def test_template_needs_items(self, checklists, officer):
        with pytest.raises(ValidationFailedError):
            await checklists.create_template(
                name="x", checklist_type=ChecklistType.GENERAL, items=[], actor=officer
            )

    async def test_update_bumps_version_without_touching_instances(
        self, checklists, template, officer, member_a
    ):
        checklist = await checklists.create_checklist(template.id, member_a)
        updated = await checklists.update_template(
            template.id, {"items": [{"text": "Only this"}]}, officer
        )

        assert updated.version == 2
        assert len(checklist.items) == 3
        assert checklist.template_version == 1

    async def test_deactivated_template_cannot_start_checklists(
        self, checklists, template, officer, member_a
    ):
        await checklists.deactivate_template(template.id, officer)

        assert await checklists.list_templates() == []
        with pytest.raises(InvalidStateError):
            await checklists.create_checklist(template.id, member_a)


# =============================================================================
# TEST: INSTANCES
# =============================================================================


class TestChecklistInstances:
    async def test_new_checklist_snapshots_items(self, checklists, template, member_a):
        checklist = await checklists.create_checklist(template.id, member_a)

        assert checklist.status == ChecklistStatus.NOT_STARTED
        assert checklist.assigned_to == member_a.id
        assert checklist.title == "Truck check"
        assert [i["status"] for i in checklist.items] == ["pending"] * 3

    async def test_member_cannot_assign_to_others(self, checklists, template, member_a, member_b):
        with pytest.raises(ForbiddenError):
            await checklists.create_checklist(template.id, member_a, assigned_to=member_b.id)

    async def test_status_follows_items(self, checklists, template, member_a):
        checklist = await checklists.create_checklist(template.id, member_a)
        ids = item_ids(checklist)

        checklist = await checklists.update_items(
            checklist.id, [ItemUpdate(item_id=ids[0], status=ChecklistItemStatus.COMPLETE)], member_a
        )
        assert checklist.status == ChecklistStatus.IN_PROGRESS

        checklist = await checklists.update_items(
            checklist.id,
            [
                ItemUpdate(item_id=ids[1], status=ChecklistItemStatus.COMPLETE),
                ItemUpdate(item_id=ids[2], status=ChecklistItemStatus.NA),
            ],
            member_a,
        )
        assert checklist.status == ChecklistStatus.COMPLETED
        assert checklist.completed_by == member_a.id

    async def test_unknown_item_rejected(self, checklists, template, member_a):
        checklist = await checklists.create_checklist(template.id, member_a)
        with pytest.raises(ValidationFailedError):
            await checklists.update_items(checklist.id, [ItemUpdate(item_id="nope")], member_a)

    async def test_other_member_cannot_touch(self, checklists, template, member_a, member_b):
        checklist = await checklists.create_checklist(template.id, member_a)
        with pytest.raises(ForbiddenError):
            await checklists.get_checklist(checklist.id, member_b)

    async def test_complete_requires_done_items(self, checklists, template, member_a):
        checklist = await checklists.create_checklist(template.id, member_a)
        with pytest.raises(InvalidStateError):
            await checklists.complete(checklist.id, member_a, signature="AA")

    async def test_signature_recorded_once(self, checklists, template, member_a):
        checklist = await checklists.create_checklist(template.id, member_a)
        await checklists.update_items(
            checklist.id,
            [ItemUpdate(item_id=i, status=ChecklistItemStatus.COMPLETE) for i in item_ids(checklist)],
            member_a,
        )

        signed = await checklists.complete(checklist.id, member_a, signature="first")
        again = await checklists.complete(checklist.id, member_a, signature="second")

        assert signed.status == ChecklistStatus.COMPLETED
        assert again.signature == "first"

    async def test_cancel_then_frozen(self, checklists, template, member_a):
        checklist = await checklists.create_checklist(template.id, member_a)
        cancelled = await checklists.cancel(checklist.id, member_a)
        assert cancelled.status == ChecklistStatus.CANCELLED

        with pytest.raises(InvalidStateError):
            await checklists.update_items(
                checklist.id, [ItemUpdate(item_id=item_ids(checklist)[0])], member_a
            )
