"""
Pydantic schemas for EfficiencyNorm entity and classifications.
"""
from pydantic import BaseModel
from typing import Optional, Tuple
from datetime import datetime
from fleetcost.services.norms_service import Directionality


class NormUpsert(BaseModel):
    """Schema for creating or editing an asset's norm."""
    expected_value: float
    tolerance_percent: float


class NormResponse(NormUpsert):
    """Schema for norm response."""
    id: int
    fleet_asset_id: int
    is_refrigeration_unit: bool
    acceptable_range: Tuple[float, float]
    updated_by: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


class ClassificationResponse(BaseModel):
    """Schema for a record's classification against its norm."""
    within_tolerance: bool
    directionality: Directionality
    requires_debrief: bool
    metric_value: Optional[float] = None
    expected_value: Optional[float] = None
    tolerance_percent: Optional[float] = None
    acceptable_range: Optional[Tuple[float, float]] = None

    class Config:
        from_attributes = True
