"""
Vehicle rate database model.

One current rate per vehicle type. Tokens copy the rate at issuance,
so changing a rate never alters tokens already issued.
"""

from sqlalchemy import Column, Integer, Float, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base


class VehicleRate(Base):
    __tablename__ = "vehicle_rates"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey('vehicles.id'), unique=True, nullable=False, index=True)
    rate = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<VehicleRate(vehicle_id={self.vehicle_id}, rate={self.rate})>"
