"""
Trip model for load movements and their expense ledger.
"""
from sqlalchemy import Column, String, Float, Numeric, Date, DateTime, Text, ForeignKey, Integer, Enum as SQLEnum
from sqlalchemy.orm import relationship
from fleetcost.db.base import BaseModel
import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration, in lifecycle order."""
    ACTIVE = "active"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"


TRIP_STATUS_ORDER = [TripStatus.ACTIVE, TripStatus.SHIPPED, TripStatus.DELIVERED, TripStatus.COMPLETED]


class Trip(BaseModel):
    """Trip model owning an ordered list of cost entries."""
    __tablename__ = "trips"

    fleet_asset_id = Column(Integer, ForeignKey("fleet_assets.id"), nullable=True, index=True)
    route = Column(String(200), nullable=False)
    client_name = Column(String(200), nullable=True)
    driver_name = Column(String(100), nullable=True)
    start_date = Column(Date, nullable=True, index=True)
    end_date = Column(Date, nullable=True, index=True)
    base_revenue = Column(Numeric(15, 2), nullable=False, default=0)
    revenue_currency = Column(String(3), nullable=False, default="ZAR")
    distance_km = Column(Float, nullable=True)
    status = Column(SQLEnum(TripStatus), default=TripStatus.ACTIVE, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(String(100), nullable=True)
    auto_completed_reason = Column(Text, nullable=True)

    version_id = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version_id}

    # Relationships
    fleet_asset = relationship("FleetAsset")
    costs = relationship("CostEntry", back_populates="trip", cascade="all, delete-orphan", order_by="CostEntry.id")
