"""
Efficiency norm model: expected consumption and tolerance per asset.
"""
from typing import Tuple
from sqlalchemy import Column, String, Float, Boolean, ForeignKey, Integer
from sqlalchemy.orm import relationship
from fleetcost.db.base import BaseModel


class EfficiencyNorm(BaseModel):
    """Expected km/l (towing) or l/h (reefer) with a tolerance band."""
    __tablename__ = "efficiency_norms"

    fleet_asset_id = Column(Integer, ForeignKey("fleet_assets.id"), nullable=False, unique=True, index=True)
    is_refrigeration_unit = Column(Boolean, default=False, nullable=False)
    expected_value = Column(Float, nullable=False)
    tolerance_percent = Column(Float, nullable=False)
    updated_by = Column(String(100), nullable=True)

    # Relationships
    fleet_asset = relationship("FleetAsset", back_populates="norm")

    @property
    def acceptable_range(self) -> Tuple[float, float]:
        spread = self.tolerance_percent / 100
        return self.expected_value * (1 - spread), self.expected_value * (1 + spread)
