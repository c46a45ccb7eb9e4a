"""
Vehicle Rate Resolver.

Read-only lookup from a vehicle id to its type and current rate.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ResourceNotFoundError
from backend.app.models.vehicle import Vehicle
from backend.app.models.vehicle_rate import VehicleRate


@dataclass(frozen=True)
class RateSnapshot:
    """Owned copy of a vehicle's type and rate, stored on a token."""
    vehicle_id: int
    vehicle_type: str
    vehicle_rate: float


class RateResolver:

    @staticmethod
    async def find_vehicle(db: AsyncSession, vehicle_id: int) -> Optional[Vehicle]:
        result = await db.execute(
            select(Vehicle).where(Vehicle.id == vehicle_id, Vehicle.is_active == True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def find_rate_for_vehicle(db: AsyncSession, vehicle_id: int) -> Optional[VehicleRate]:
        result = await db.execute(
            select(VehicleRate).where(VehicleRate.vehicle_id == vehicle_id, VehicleRate.is_active == True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def resolve_snapshot(db: AsyncSession, vehicle_id: int) -> RateSnapshot:
        """
        Resolve the vehicle and its current rate into a snapshot.

        Raises:
            ResourceNotFoundError: If the vehicle is unknown/inactive, or no
                rate is configured for its type.
        """
        vehicle = await RateResolver.find_vehicle(db, vehicle_id)
        if not vehicle:
            raise ResourceNotFoundError("Vehicle", vehicle_id)

        rate = await RateResolver.find_rate_for_vehicle(db, vehicle_id)
        if not rate:
            raise ResourceNotFoundError(
                "Vehicle rate",
                vehicle_id,
                message=f"Rate not configured for vehicle type '{vehicle.vehicle_type}'"
            )

        return RateSnapshot(
            vehicle_id=vehicle.id,
            vehicle_type=vehicle.vehicle_type,
            vehicle_rate=rate.rate,
        )
