"""Vehicles, maintenance logs, equipment and inspections.

Asset records are written by officers and admins and read by everyone.
Maintenance reminders and inspection due-dates are computed when read.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    AuditAction,
    Equipment,
    EquipmentCategory,
    EquipmentCondition,
    EquipmentInspection,
    EquipmentStatus,
    MaintenanceLog,
    MaintenanceType,
    NotificationType,
    User,
    UserRole,
    Vehicle,
    VehicleStatus,
    VehicleType,
    has_role,
    utcnow,
)
from .audit import AuditService
from .errors import ForbiddenError, InvalidStateError, NotFoundError
from .notifications import NotificationService

logger = logging.getLogger(__name__)

VEHICLE_FIELDS = (
    "unit_number", "vehicle_type", "make", "model", "year", "vin",
    "license_plate", "current_mileage", "status", "notes",
)
EQUIPMENT_FIELDS = (
    "name", "category", "serial_number", "manufacturer", "model", "condition",
    "status", "location", "expiration_date", "next_inspection_date",
    "inspection_frequency", "notes", "photos",
)


@dataclass
class MaintenanceReminder:
    vehicle_id: UUID
    unit_number: str
    maintenance_type: MaintenanceType
    last_performed_at: datetime
    due_date: datetime | None
    due_mileage: int | None
    current_mileage: int | None
    is_overdue: bool


def _require_officer(actor: User, what: str) -> None:
    if not has_role(actor.role, UserRole.OFFICER):
        raise ForbiddenError(f"Only officers and admins can {what}")


def _serialize(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class AssetService:
    def __init__(self, session: AsyncSession):
        self._session = session
        self._audit = AuditService(session)
        self._notifications = NotificationService(session)

    # =========================================================================
    # VEHICLES
    # =========================================================================

    async def _get_vehicle_or_raise(self, vehicle_id: UUID) -> Vehicle:
        vehicle = await self._session.get(Vehicle, vehicle_id)
        if vehicle is None or vehicle.is_deleted:
            raise NotFoundError("Vehicle", vehicle_id)
        return vehicle

    async def list_vehicles(
        self,
        status: VehicleStatus | None = None,
        vehicle_type: VehicleType | None = None,
    ) -> Sequence[Vehicle]:
        query = select(Vehicle).where(Vehicle.deleted_at.is_(None))
        if status is not None:
            query = query.where(Vehicle.status == status)
        if vehicle_type is not None:
            query = query.where(Vehicle.vehicle_type == vehicle_type)
        result = await self._session.execute(query.order_by(Vehicle.unit_number.asc()))
        return result.scalars().all()

    async def get_vehicle(self, vehicle_id: UUID) -> Vehicle:
        return await self._get_vehicle_or_raise(vehicle_id)

    async def create_vehicle(self, data: dict[str, Any], actor: User) -> Vehicle:
        _require_officer(actor, "add vehicles")
        vehicle = Vehicle(
            id=uuid4(),
            created_by=actor.id,
            **{k: v for k, v in data.items() if k in VEHICLE_FIELDS},
        )
        self._session.add(vehicle)
        await self._session.flush()
        self._audit.log_event(
            actor, AuditAction.CREATE, "vehicle", vehicle.id, entity_name=vehicle.unit_number
        )
        return vehicle

    async def update_vehicle(self, vehicle_id: UUID, data: dict[str, Any], actor: User) -> Vehicle:
        _require_officer(actor, "edit vehicles")
        vehicle = await self._get_vehicle_or_raise(vehicle_id)
        old_status = vehicle.status

        changes = {}
        for key, value in data.items():
            if key in VEHICLE_FIELDS:
                setattr(vehicle, key, value)
                changes[key] = _serialize(value)
        await self._session.flush()

        if vehicle.status != old_status:
            await self._notifications.notify_role(
                UserRole.OFFICER,
                NotificationType.VEHICLE_STATUS_CHANGE,
                title=f"Vehicle {vehicle.unit_number} status changed",
                message=f"{vehicle.unit_number} is now {vehicle.status.value.replace('_', ' ')}",
                data={"vehicleId": str(vehicle.id)},
                exclude=[actor.id],
            )
        self._audit.log_event(
            actor, AuditAction.UPDATE, "vehicle", vehicle.id,
            entity_name=vehicle.unit_number, changes=changes,
        )
        return vehicle

    async def delete_vehicle(self, vehicle_id: UUID, actor: User) -> None:
        _require_officer(actor, "remove vehicles")
        vehicle = await self._get_vehicle_or_raise(vehicle_id)
        vehicle.soft_delete()
        await self._session.flush()
        self._audit.log_event(
            actor, AuditAction.DELETE, "vehicle", vehicle.id, entity_name=vehicle.unit_number
        )

    async def list_maintenance_logs(self, vehicle_id: UUID) -> Sequence[MaintenanceLog]:
        await self._get_vehicle_or_raise(vehicle_id)
        result = await self._session.execute(
            select(MaintenanceLog)
            .where(MaintenanceLog.vehicle_id == vehicle_id)
            .order_by(MaintenanceLog.performed_at.desc())
        )
        return result.scalars().all()

    async def add_maintenance_log(
        self,
        vehicle_id: UUID,
        data: dict[str, Any],
        actor: User,
    ) -> MaintenanceLog:
        """Any member may log maintenance; mileage only moves forward."""
        vehicle = await self._get_vehicle_or_raise(vehicle_id)
        log = MaintenanceLog(
            id=uuid4(),
            vehicle_id=vehicle.id,
            maintenance_type=data["maintenance_type"],
            description=data["description"],
            mileage=data.get("mileage"),
            cost=data.get("cost"),
            performed_by=actor.id,
            performed_by_name=actor.name,
            performed_at=data.get("performed_at") or utcnow(),
            next_due_mileage=data.get("next_due_mileage"),
            next_due_date=data.get("next_due_date"),
            documents=list(data.get("documents") or []),
            created_by=actor.id,
        )
        self._session.add(log)
        if log.mileage is not None and (vehicle.current_mileage or 0) < log.mileage:
            vehicle.current_mileage = log.mileage
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.CREATE, "maintenance_log", log.id,
            entity_name=vehicle.unit_number,
            changes={"maintenanceType": _serialize(log.maintenance_type)},
        )
        return log

    async def maintenance_reminders(self, now: datetime | None = None) -> list[MaintenanceReminder]:
        """Latest log per (vehicle, maintenance type) that carries a next-due marker."""
        now = now or utcnow()
        result = await self._session.execute(
            select(MaintenanceLog, Vehicle)
            .join(Vehicle, Vehicle.id == MaintenanceLog.vehicle_id)
            .where(Vehicle.deleted_at.is_(None))
            .order_by(MaintenanceLog.performed_at.desc())
        )

        latest: dict[tuple[UUID, MaintenanceType], tuple[MaintenanceLog, Vehicle]] = {}
        for log, vehicle in result.all():
            latest.setdefault((vehicle.id, log.maintenance_type), (log, vehicle))

        reminders = []
        for log, vehicle in latest.values():
            if log.next_due_date is None and log.next_due_mileage is None:
                continue
            overdue_by_date = log.next_due_date is not None and now > log.next_due_date
            overdue_by_mileage = (
                log.next_due_mileage is not None
                and vehicle.current_mileage is not None
                and vehicle.current_mileage >= log.next_due_mileage
            )
            reminders.append(
                MaintenanceReminder(
                    vehicle_id=vehicle.id,
                    unit_number=vehicle.unit_number,
                    maintenance_type=log.maintenance_type,
                    last_performed_at=log.performed_at,
                    due_date=log.next_due_date,
                    due_mileage=log.next_due_mileage,
                    current_mileage=vehicle.current_mileage,
                    is_overdue=overdue_by_date or overdue_by_mileage,
                )
            )
        reminders.sort(key=lambda r: (not r.is_overdue, r.due_date or datetime.max.replace(tzinfo=now.tzinfo)))
        return reminders

    async def send_due_reminders(
        self,
        now: datetime | None = None,
        inspection_window_days: int = 7,
    ) -> int:
        """
        Notify officers about due or overdue maintenance and upcoming inspections.

        Flow:
        1. Compute maintenance reminders (overdue first)
        2. Find equipment whose next inspection falls inside the window
        3. One fan-out per finding; returns how many findings were sent
        """
        now = now or utcnow()
        sent = 0

        for reminder in await self.maintenance_reminders(now):
            if reminder.is_overdue:
                notification_type = NotificationType.MAINTENANCE_OVERDUE
                title = f"Maintenance overdue: {reminder.unit_number}"
                message = "Maintenance is overdue. Please schedule service immediately."
            else:
                notification_type = NotificationType.MAINTENANCE_DUE
                title = f"Maintenance due: {reminder.unit_number}"
                message = f"{reminder.maintenance_type.value.replace('_', ' ').capitalize()} is coming due"
            await self._notifications.notify_role(
                UserRole.OFFICER,
                notification_type,
                title=title,
                message=message,
                data={"vehicleId": str(reminder.vehicle_id)},
            )
            sent += 1

        result = await self._session.execute(
            select(Equipment).where(
                Equipment.deleted_at.is_(None),
                Equipment.status != EquipmentStatus.RETIRED,
                Equipment.next_inspection_date.is_not(None),
                Equipment.next_inspection_date <= now + timedelta(days=inspection_window_days),
            )
        )
        for equipment in result.scalars().all():
            await self._notifications.notify_role(
                UserRole.OFFICER,
                NotificationType.EQUIPMENT_INSPECTION,
                title=f"Equipment inspection due: {equipment.name}",
                message=f"Inspection due on {equipment.next_inspection_date.date().isoformat()}",
                data={"equipmentId": str(equipment.id)},
            )
            sent += 1

        logger.info(f"Sent {sent} asset reminder(s)")
        return sent

    # =========================================================================
    # EQUIPMENT
    # =========================================================================

    async def _get_equipment_or_raise(self, equipment_id: UUID) -> Equipment:
        equipment = await self._session.get(Equipment, equipment_id)
        if equipment is None or equipment.is_deleted:
            raise NotFoundError("Equipment", equipment_id)
        return equipment

    async def list_equipment(
        self,
        category: EquipmentCategory | None = None,
        status: EquipmentStatus | None = None,
        assigned_to: UUID | None = None,
    ) -> Sequence[Equipment]:
        query = select(Equipment).where(Equipment.deleted_at.is_(None))
        if category is not None:
            query = query.where(Equipment.category == category)
        if status is not None:
            query = query.where(Equipment.status == status)
        if assigned_to is not None:
            query = query.where(Equipment.assigned_to == assigned_to)
        result = await self._session.execute(query.order_by(Equipment.name.asc()))
        return result.scalars().all()

    async def get_equipment(self, equipment_id: UUID) -> Equipment:
        return await self._get_equipment_or_raise(equipment_id)

    async def create_equipment(self, data: dict[str, Any], actor: User) -> Equipment:
        _require_officer(actor, "add equipment")
        fields = {k: v for k, v in data.items() if k in EQUIPMENT_FIELDS}
        fields["photos"] = list(fields.get("photos") or [])
        equipment = Equipment(id=uuid4(), created_by=actor.id, **fields)
        self._session.add(equipment)
        await self._session.flush()
        self._audit.log_event(
            actor, AuditAction.CREATE, "equipment", equipment.id, entity_name=equipment.name
        )
        return equipment

    async def update_equipment(self, equipment_id: UUID, data: dict[str, Any], actor: User) -> Equipment:
        _require_officer(actor, "edit equipment")
        equipment = await self._get_equipment_or_raise(equipment_id)
        changes = {}
        for key, value in data.items():
            if key in EQUIPMENT_FIELDS:
                setattr(equipment, key, list(value) if isinstance(value, list) else value)
                changes[key] = _serialize(value) if not isinstance(value, list) else value
        await self._session.flush()
        self._audit.log_event(
            actor, AuditAction.UPDATE, "equipment", equipment.id,
            entity_name=equipment.name, changes=changes,
        )
        return equipment

    async def delete_equipment(self, equipment_id: UUID, actor: User) -> None:
        _require_officer(actor, "remove equipment")
        equipment = await self._get_equipment_or_raise(equipment_id)
        equipment.soft_delete()
        equipment.status = EquipmentStatus.RETIRED
        await self._session.flush()
        self._audit.log_event(
            actor, AuditAction.DELETE, "equipment", equipment.id, entity_name=equipment.name
        )

    async def list_inspections(self, equipment_id: UUID) -> Sequence[EquipmentInspection]:
        await self._get_equipment_or_raise(equipment_id)
        result = await self._session.execute(
            select(EquipmentInspection)
            .where(EquipmentInspection.equipment_id == equipment_id)
            .order_by(EquipmentInspection.inspected_at.desc())
        )
        return result.scalars().all()

    async def add_inspection(
        self,
        equipment_id: UUID,
        condition: EquipmentCondition,
        actor: User,
        notes: str | None = None,
        photos: list[str] | None = None,
        next_inspection_date: datetime | None = None,
    ) -> EquipmentInspection:
        """Record an inspection and roll the equipment's inspection dates forward."""
        equipment = await self._get_equipment_or_raise(equipment_id)
        inspected_at = utcnow()
        if next_inspection_date is None and equipment.inspection_frequency:
            next_inspection_date = inspected_at + timedelta(days=equipment.inspection_frequency)

        inspection = EquipmentInspection(
            id=uuid4(),
            equipment_id=equipment.id,
            equipment_name=equipment.name,
            inspected_by=actor.id,
            inspected_by_name=actor.name,
            inspected_at=inspected_at,
            condition=condition,
            notes=notes,
            photos=list(photos or []),
            next_inspection_date=next_inspection_date,
        )
        self._session.add(inspection)

        equipment.condition = condition
        equipment.last_inspection_date = inspected_at
        equipment.next_inspection_date = next_inspection_date
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.CREATE, "equipment_inspection", inspection.id,
            entity_name=equipment.name, changes={"condition": condition.value},
        )
        return inspection

    async def assign_equipment(self, equipment_id: UUID, user_id: UUID, actor: User) -> Equipment:
        _require_officer(actor, "assign equipment")
        equipment = await self._get_equipment_or_raise(equipment_id)
        if equipment.status != EquipmentStatus.AVAILABLE:
            raise InvalidStateError(f"Equipment is {equipment.status.value}")

        assignee = await self._session.get(User, user_id)
        if assignee is None or not assignee.is_active:
            raise NotFoundError("User", user_id)

        equipment.assigned_to = assignee.id
        equipment.assigned_to_name = assignee.name
        equipment.status = EquipmentStatus.ASSIGNED
        await self._session.flush()

        await self._notifications.notify_users(
            [assignee.id],
            NotificationType.EQUIPMENT_ASSIGNED,
            title="Equipment assigned",
            message=f"{equipment.name} has been assigned to you",
            data={"equipmentId": str(equipment.id)},
        )
        self._audit.log_event(
            actor, AuditAction.ASSIGN, "equipment", equipment.id,
            entity_name=equipment.name, changes={"assignedTo": str(assignee.id)},
        )
        return equipment

    async def return_equipment(self, equipment_id: UUID, actor: User) -> Equipment:
        """Hand equipment back. Returning unassigned equipment is a no-op."""
        equipment = await self._get_equipment_or_raise(equipment_id)
        if equipment.assigned_to is None:
            return equipment
        if equipment.assigned_to != actor.id:
            _require_officer(actor, "return equipment assigned to someone else")

        previous = equipment.assigned_to
        equipment.assigned_to = None
        equipment.assigned_to_name = None
        equipment.status = EquipmentStatus.AVAILABLE
        await self._session.flush()

        self._audit.log_event(
            actor, AuditAction.UPDATE, "equipment", equipment.id,
            entity_name=equipment.name, changes={"returnedBy": str(previous)},
        )
        return equipment
