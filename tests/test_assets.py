"""Tests for vehicles, maintenance, equipment and inspections."""

from datetime import timedelta

import pytest
from sqlalchemy import select

from apsar_api.models import (
    EquipmentCategory,
    EquipmentCondition,
    EquipmentStatus,
    MaintenanceType,
    Notification,
    NotificationType,
    VehicleStatus,
    VehicleType,
    utcnow,
)
from apsar_api.services import AssetService, ForbiddenError, InvalidStateError, NotFoundError


@pytest.fixture
def assets(session) -> AssetService:
    return AssetService(session)


@pytest.fixture
async def truck(assets, officer):
    return await assets.create_vehicle(
        {"unit_number": "R-1", "vehicle_type": VehicleType.TRUCK, "current_mileage": 1000},
        officer,
    )


@pytest.fixture
async def radio(assets, officer):
    return await assets.create_equipment(
        {"name": "Radio 3", "category": EquipmentCategory.COMMS, "inspection_frequency": 30},
        officer,
    )


# =============================================================================
# TEST: VEHICLES
# =============================================================================


class TestVehicles:
    async def test_member_cannot_add_vehicle(self, assets, member_a):
        with pytest.raises(ForbiddenError):
            await assets.create_vehicle({"unit_number": "X", "vehicle_type": VehicleType.ATV}, member_a)

    async def test_status_change_notifies_officers(self, session, assets, truck, officer, admin):
        await assets.update_vehicle(truck.id, {"status": VehicleStatus.MAINTENANCE}, officer)

        result = await session.execute(
            select(Notification.user_id).where(
                Notification.notification_type == NotificationType.VEHICLE_STATUS_CHANGE
            )
        )
        # The officer made the change
        assert result.scalars().all() == [admin.id]

    async def test_deleted_vehicle_disappears(self, assets, truck, officer):
        await assets.delete_vehicle(truck.id, officer)

        assert await assets.list_vehicles() == []
        with pytest.raises(NotFoundError):
            await assets.get_vehicle(truck.id)

    async def test_maintenance_log_moves_mileage_forward(self, assets, truck, member_a):
        await assets.add_maintenance_log(
            truck.id,
            {"maintenance_type": MaintenanceType.REPAIR, "description": "Brakes", "mileage": 1500},
            member_a,
        )
        await assets.add_maintenance_log(
            truck.id,
            {"maintenance_type": MaintenanceType.REPAIR, "description": "Typo", "mileage": 900},
            member_a,
        )
        assert truck.current_mileage == 1500


# =============================================================================
# TEST: REMINDERS
# =============================================================================


class TestMaintenanceReminders:
    async def test_reminders_use_latest_log_per_type(self, assets, truck, officer):
        now = utcnow()
        await assets.add_maintenance_log(
            truck.id,
            {
                "maintenance_type": MaintenanceType.OIL_CHANGE,
                "description": "Old",
                "performed_at": now - timedelta(days=200),
                "next_due_date": now - timedelta(days=20),
            },
            officer,
        )
        await assets.add_maintenance_log(
            truck.id,
            {
                "maintenance_type": MaintenanceType.OIL_CHANGE,
                "description": "New",
                "performed_at": now - timedelta(days=10),
                "next_due_date": now + timedelta(days=80),
            },
            officer,
        )

        reminders = await assets.maintenance_reminders(now)
        assert len(reminders) == 1
        assert reminders[0].is_overdue is False

    async def test_mileage_overdue(self, assets, truck, officer):
        await assets.add_maintenance_log(
            truck.id,
            {"maintenance_type": MaintenanceType.ROUTINE, "description": "Service", "next_due_mileage": 1000},
            officer,
        )
        reminders = await assets.maintenance_reminders()
        assert reminders[0].is_overdue is True

    async def test_send_due_reminders(self, session, assets, truck, radio, officer, admin):
        await assets.add_maintenance_log(
            truck.id,
            {
                "maintenance_type": MaintenanceType.INSPECTION,
                "description": "Annual",
                "next_due_date": utcnow() - timedelta(days=1),
            },
            officer,
        )
        await assets.update_equipment(
            radio.id, {"next_inspection_date": utcnow() + timedelta(days=3)}, officer
        )

        assert await assets.send_due_reminders() == 2

        result = await session.execute(
            select(Notification.notification_type).where(Notification.user_id == admin.id)
        )
        assert set(result.scalars().all()) == {
            NotificationType.MAINTENANCE_OVERDUE,
            NotificationType.EQUIPMENT_INSPECTION,
        }


# =============================================================================
# TEST: EQUIPMENT
# =============================================================================


class TestEquipment:
    async def test_assign_and_return(self, session, assets, radio, officer, member_a):
        assigned = await assets.assign_equipment(radio.id, member_a.id, officer)
        assert assigned.status == EquipmentStatus.ASSIGNED
        assert assigned.assigned_to_name == member_a.name

        returned = await assets.return_equipment(radio.id, member_a)
        assert returned.status == EquipmentStatus.AVAILABLE
        assert returned.assigned_to is None

        result = await session.execute(
            select(Notification).where(
                Notification.user_id == member_a.id,
                Notification.notification_type == NotificationType.EQUIPMENT_ASSIGNED,
            )
        )
        assert result.scalar_one() is not None

    async def test_cannot_assign_twice(self, assets, radio, officer, member_a, member_b):
        await assets.assign_equipment(radio.id, member_a.id, officer)
        with pytest.raises(InvalidStateError):
            await assets.assign_equipment(radio.id, member_b.id, officer)

    async def test_only_holder_or_officer_returns(self, assets, radio, officer, member_a, member_b):
        await assets.assign_equipment(radio.id, member_a.id, officer)
        with pytest.raises(ForbiddenError):
            await assets.return_equipment(radio.id, member_b)

    async def test_return_unassigned_is_noop(self, assets, radio, member_b):
        returned = await assets.return_equipment(radio.id, member_b)
        assert returned.status == EquipmentStatus.AVAILABLE

    async def test_inspection_rolls_dates_forward(self, assets, radio, member_a):
        inspection = await assets.add_inspection(
            radio.id, EquipmentCondition.NEEDS_SERVICE, member_a, notes="Cracked antenna"
        )

        assert radio.condition == EquipmentCondition.NEEDS_SERVICE
        assert radio.last_inspection_date == inspection.inspected_at
        assert radio.next_inspection_date == inspection.inspected_at + timedelta(days=30)
        assert [i.id for i in await assets.list_inspections(radio.id)] == [inspection.id]

    async def test_deleted_equipment_is_retired(self, assets, radio, officer):
        await assets.delete_equipment(radio.id, officer)

        assert radio.status == EquipmentStatus.RETIRED
        assert await assets.list_equipment() == []
