"""
Fleet asset model: towing units (horses) and refrigeration trailers.
"""
from sqlalchemy import Column, String, Boolean, Enum as SQLEnum
from sqlalchemy.orm import relationship
from fleetcost.db.base import BaseModel
import enum


class AssetClass(str, enum.Enum):
    """How an asset is metered: by distance or by engine hours."""
    TOWING_UNIT = "towing_unit"
    REFRIGERATION_UNIT = "refrigeration_unit"


class FleetAsset(BaseModel):
    """A vehicle or trailer that takes on fuel."""
    __tablename__ = "fleet_assets"

    fleet_number = Column(String(20), unique=True, nullable=False, index=True)
    asset_class = Column(SQLEnum(AssetClass), nullable=False)
    has_probe = Column(Boolean, default=False, nullable=False)  # Tank probe fitted
    description = Column(String(200), nullable=True)

    # Relationships
    records = relationship("ConsumptionRecord", back_populates="fleet_asset")
    norm = relationship("EfficiencyNorm", back_populates="fleet_asset", uselist=False, cascade="all, delete-orphan")

    @property
    def is_refrigeration_unit(self) -> bool:
        return self.asset_class == AssetClass.REFRIGERATION_UNIT
