#!/usr/bin/env python3
"""
Seed Data Script for the APSAR API

Creates a small alpine rescue team for local development:
- 5 Users (admin, officer, three members across two units)
- 1 Pre-deployment checklist template
- 1 Active call-out with two responses
- 1 Training mission with a search area
- 1 Vehicle with a maintenance log, 1 radio assigned to a member

Every record goes through the services, so audit rows and in-app
notifications are created the same way the API creates them.

Run with: python seed_data.py
"""

import asyncio
from datetime import timedelta

from sqlalchemy import func, select, text

from apsar_api.core import get_session_context, hash_password, init_db
from apsar_api.models import (
    CallOutResponseStatus,
    CallOutType,
    ChecklistType,
    EquipmentCategory,
    MaintenanceType,
    MissionType,
    User,
    UserRole,
    VehicleType,
    utcnow,
)
from apsar_api.services import (
    AreaInput,
    AssetService,
    CallOutCoordinator,
    ChecklistService,
    CreateCallOutInput,
    CreateMissionInput,
    MissionEngine,
    RespondInput,
    UserService,
)

DEMO_PASSWORD = "rescue123"

# Children before parents so foreign keys never block the delete
TABLES = [
    "audit_logs",
    "notifications",
    "message_read_receipts",
    "chat_messages",
    "chat_room_members",
    "chat_rooms",
    "equipment_inspections",
    "equipment",
    "maintenance_logs",
    "vehicles",
    "checklists",
    "checklist_templates",
    "callout_report_reviews",
    "callout_reports",
    "incident_resources",
    "incidents",
    "sar_mission_areas",
    "sar_missions",
    "call_out_responses",
    "call_outs",
    "users",
]


async def clear_database(session) -> None:
    """Clear all data from the database (in correct order for FK constraints)."""
    for table in TABLES:
        await session.execute(text(f"DELETE FROM {table}"))


async def seed_database():
    """Main seeding function."""
    await init_db()

    async with get_session_context() as session:
        print("🌱 Starting database seed...")

        count = (await session.execute(select(func.count(User.id)))).scalar_one()
        if count:
            print("⚠️  Database already has data. Clearing existing data...")
            await clear_database(session)

        # =================================================================
        # CREATE USERS
        # =================================================================
        print("\n👥 Creating users...")

        # The first admin cannot be provisioned by another admin
        admin = User(
            name="Avery Admin",
            email="admin@apsar.org",
            role=UserRole.ADMIN,
            unit="HQ",
            is_active=True,
            password_hash=hash_password(DEMO_PASSWORD),
        )
        session.add(admin)
        await session.flush()

        users = UserService(session)
        officer = await users.create_user(
            admin, "Olivia Officer", DEMO_PASSWORD,
            role=UserRole.OFFICER, email="officer@apsar.org", unit="Team A", badge_number="O-1",
        )
        morgan = await users.create_user(
            admin, "Morgan Member", DEMO_PASSWORD,
            email="morgan@apsar.org", phone="+15550100", unit="Team A", badge_number="M-7",
        )
        riley = await users.create_user(
            admin, "Riley Member", DEMO_PASSWORD, email="riley@apsar.org", unit="Team A",
        )
        sam = await users.create_user(
            admin, "Sam Member", DEMO_PASSWORD, email="sam@apsar.org", unit="Team B",
        )
        for user in (admin, officer, morgan, riley, sam):
            print(f"   ✓ {user.name} ({user.role.value}, {user.unit})")

        # =================================================================
        # CHECKLIST TEMPLATE
        # =================================================================
        print("\n📋 Creating checklist template...")

        template = await ChecklistService(session).create_template(
            name="Pre-deployment kit check",
            checklist_type=ChecklistType.CALLOUT,
            items=[
                {"text": "Radio charged and on team channel"},
                {"text": "Headlamp and spare batteries"},
                {"text": "Avalanche transceiver tested"},
                {"text": "Personal first aid kit", "required": False},
            ],
            actor=officer,
            description="Run before leaving for any call-out",
        )
        print(f"   ✓ {template.name} ({len(template.items)} items)")

        # =================================================================
        # CALL-OUT
        # =================================================================
        print("\n🚨 Broadcasting call-out...")

        coordinator = CallOutCoordinator(session)
        view = await coordinator.create_call_out(
            CreateCallOutInput(
                title="Overdue hiker, north ridge",
                message="Party of two overdue since 18:00. Muster at the trailhead.",
                expires_at=utcnow() + timedelta(hours=6),
                call_out_type=CallOutType.UNIT,
                target_unit="Team A",
            ),
            officer,
        )
        await coordinator.respond(
            view.call_out.id, RespondInput(status=CallOutResponseStatus.EN_ROUTE, notes="20 min out"), morgan
        )
        await coordinator.respond(
            view.call_out.id, RespondInput(status=CallOutResponseStatus.UNAVAILABLE), riley
        )
        print(f"   ✓ {view.call_out.title} (2 responses)")

        # =================================================================
        # TRAINING MISSION
        # =================================================================
        print("\n🏔️  Creating training mission...")

        missions = MissionEngine(session)
        mission = await missions.create_mission(
            CreateMissionInput(
                name="Spring crevasse rescue drill",
                mission_type=MissionType.TRAINING,
                description="Glacier travel and pulley systems",
            ),
            morgan,
        )
        await missions.create_area(
            mission.id,
            AreaInput(name="Lower icefall", coordinates=[[46.55, 8.01], [46.56, 8.02]], assigned_to=riley.id),
            morgan,
        )
        print(f"   ✓ {mission.name}")

        # =================================================================
        # VEHICLES AND EQUIPMENT
        # =================================================================
        print("\n🚙 Creating vehicles and equipment...")

        assets = AssetService(session)
        truck = await assets.create_vehicle(
            {
                "unit_number": "R-1",
                "vehicle_type": VehicleType.TRUCK,
                "make": "Toyota",
                "model": "Land Cruiser",
                "year": 2019,
                "current_mileage": 84000,
            },
            officer,
        )
        await assets.add_maintenance_log(
            truck.id,
            {
                "maintenance_type": MaintenanceType.OIL_CHANGE,
                "description": "Oil and filter",
                "mileage": 84000,
                "next_due_mileage": 89000,
                "next_due_date": utcnow() + timedelta(days=90),
            },
            officer,
        )
        radio = await assets.create_equipment(
            {
                "name": "Handheld radio #3",
                "category": EquipmentCategory.COMMS,
                "serial_number": "HR-0003",
                "inspection_frequency": 30,
                "next_inspection_date": utcnow() + timedelta(days=5),
            },
            officer,
        )
        await assets.assign_equipment(radio.id, morgan.id, officer)
        print(f"   ✓ Vehicle {truck.unit_number}")
        print(f"   ✓ {radio.name} assigned to {morgan.name}")

    print("\n✅ Seed complete. Log in with any of the emails above and password "
          f"'{DEMO_PASSWORD}'.")


if __name__ == "__main__":
    asyncio.run(seed_database())
