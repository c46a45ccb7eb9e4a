"""
Vehicle rate Pydantic schemas.

Read-only view used by the token issuing screen.
"""

from pydantic import BaseModel
from typing import List


class VehicleRateItem(BaseModel):
    vehicle_id: int
    vehicle_type: str
    rate: float


class VehicleRateListResponse(BaseModel):
    rates: List[VehicleRateItem]
    total: int
