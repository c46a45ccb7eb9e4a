"""
Vehicle rate endpoints.

Read-only: the counter clients need the vehicle list with current rates to
issue tokens. Rates are maintained outside this API (see seed_data.py).
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from backend.app.db.session import get_db
from backend.app.core.guards import require_role
from backend.app.models.enums import UserRole
from backend.app.models.vehicle import Vehicle
from backend.app.models.vehicle_rate import VehicleRate
from backend.app.schemas.vehicle import VehicleRateItem, VehicleRateListResponse

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


@router.get("/rates", response_model=VehicleRateListResponse)
async def list_vehicle_rates(
    current_user: dict = Depends(require_role([UserRole.OPERATOR, UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """List active vehicle types that have an active rate."""
    result = await db.execute(
        select(Vehicle.id, Vehicle.vehicle_type, VehicleRate.rate)
        .join(VehicleRate, VehicleRate.vehicle_id == Vehicle.id)
        .where(Vehicle.is_active == True, VehicleRate.is_active == True)
        .order_by(Vehicle.vehicle_type)
    )
    rates = [
        VehicleRateItem(vehicle_id=row.id, vehicle_type=row.vehicle_type, rate=row.rate)
        for row in result.all()
    ]
    return VehicleRateListResponse(rates=rates, total=len(rates))
