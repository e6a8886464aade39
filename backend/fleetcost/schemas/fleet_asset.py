"""
Pydantic schemas for FleetAsset entity.
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime
from fleetcost.models.fleet_asset import AssetClass


class FleetAssetCreate(BaseModel):
    """Schema for registering a fleet asset."""
    fleet_number: str
    asset_class: AssetClass
    has_probe: bool = False
    description: Optional[str] = None


class FleetAssetResponse(FleetAssetCreate):
    """Schema for fleet asset response."""
    id: int
    created_at: datetime

    class Config:
        from_attributes = True
