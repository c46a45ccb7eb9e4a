"""
Database seeding script for initial data.

Creates an ADMIN user, one OPERATOR and the default vehicle types with
their rates. Run this script after database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.models.user import User
from backend.app.models.audit_log import AuditLog
from backend.app.models.vehicle import Vehicle
from backend.app.models.vehicle_rate import VehicleRate
from backend.app.models.print_token import PrintToken
from backend.app.models.enums import UserRole
from backend.app.core.security import get_password_hash
from sqlalchemy import select

DEFAULT_VEHICLE_RATES = {
    "Tractor": 150.0,
    "Truck 6 Wheel": 300.0,
    "Truck 10 Wheel": 450.0,
    "Truck 12 Wheel": 550.0,
    "Dumper": 500.0,
}


async def seed_users(db):
    """
    Seed initial users.

    Creates:
    - 1 ADMIN user
    - 1 OPERATOR user (token prefix JDOE)
    """
    result = await db.execute(select(User).where(User.username == "admin"))
    if result.scalar_one_or_none():
        print("ℹ️  ADMIN user already exists, skipping user seeding")
        return

    db.add(User(
        username="admin",
        phone="9000000000",
        route=None,
        hashed_password=get_password_hash("admin123"),
        role=UserRole.ADMIN,
        is_active=True,
    ))
    print("✅ Created ADMIN user (username: admin, password: admin123)")

    db.add(User(
        username="jdoe",
        phone="9000000001",
        route="Main Gate",
        hashed_password=get_password_hash("operator123"),
        role=UserRole.OPERATOR,
        is_active=True,
    ))
    print("✅ Created OPERATOR user (username: jdoe, password: operator123)")


async def seed_vehicle_rates(db):
    """Seed vehicle types and rates that are not there yet."""
    for vehicle_type, rate in DEFAULT_VEHICLE_RATES.items():
        result = await db.execute(select(Vehicle).where(Vehicle.vehicle_type == vehicle_type))
        if result.scalar_one_or_none():
            print(f"ℹ️  Vehicle '{vehicle_type}' already exists, skipping")
            continue

        vehicle = Vehicle(vehicle_type=vehicle_type, is_active=True)
        db.add(vehicle)
        await db.flush()
        db.add(VehicleRate(vehicle_id=vehicle.id, rate=rate, is_active=True))
        print(f"✅ Created vehicle '{vehicle_type}' at rate {rate}")


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")
        await seed_users(db)
        await seed_vehicle_rates(db)
        await db.commit()

    await engine.dispose()
    print("\n🎉 Seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(seed())
