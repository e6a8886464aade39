"""
Pydantic schemas for Trip, CostEntry and Investigation entities.
"""
from pydantic import BaseModel
from typing import List, Optional
from datetime import date, datetime, date as dt_date
from decimal import Decimal
from fleetcost.models.cost_entry import InvestigationStatus
from fleetcost.models.trip import TripStatus


class TripBase(BaseModel):
    """Base trip schema."""
    route: str
    base_revenue: Decimal = Decimal("0")
    revenue_currency: Optional[str] = None
    distance_km: Optional[float] = None
    fleet_asset_id: Optional[int] = None
    client_name: Optional[str] = None
    driver_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class TripCreate(TripBase):
    """Schema for trip creation."""
    pass


class TripStatusUpdate(BaseModel):
    """Schema for a status change."""
    status: TripStatus


class InvestigationResponse(BaseModel):
    """Schema for investigation response."""
    id: int
    status: InvestigationStatus
    flag_reason: str
    opened_by: Optional[str] = None
    investigation_notes: Optional[str] = None
    started_at: Optional[datetime] = None
    started_by: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class CostEntryCreate(BaseModel):
    """Schema for adding a non-diesel cost to a trip."""
    category: str
    amount: Decimal
    currency: Optional[str] = None
    sub_category: Optional[str] = None
    reference_number: Optional[str] = None
    date: Optional[dt_date] = None
    notes: Optional[str] = None
    is_system_generated: bool = False
    system_cost_type: Optional[str] = None


class CostEntryResponse(BaseModel):
    """Schema for cost entry response."""
    id: int
    trip_id: int
    category: str
    sub_category: Optional[str] = None
    amount: Decimal
    currency: str
    reference_number: Optional[str] = None
    source_consumption_record_id: Optional[int] = None
    date: Optional[dt_date] = None
    notes: Optional[str] = None
    is_flagged: bool
    flag_reason: Optional[str] = None
    flagged_at: Optional[datetime] = None
    flagged_by: Optional[str] = None
    is_system_generated: bool
    system_cost_type: Optional[str] = None
    investigation_status: Optional[InvestigationStatus] = None
    investigations: List[InvestigationResponse] = []

    class Config:
        from_attributes = True


class TripResponse(TripBase):
    """Schema for trip response."""
    id: int
    revenue_currency: str
    status: TripStatus
    completed_at: Optional[datetime] = None
    completed_by: Optional[str] = None
    auto_completed_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TripDetailResponse(TripResponse):
    """Schema for detailed trip response with its cost list."""
    costs: List[CostEntryResponse] = []


class FlagCreate(BaseModel):
    """Schema for raising a flag."""
    reason: str


class InvestigationStart(BaseModel):
    """Schema for starting an investigation."""
    notes: Optional[str] = None


class FlagResolve(BaseModel):
    """Schema for resolving a flag, with optional corrections."""
    resolution_comment: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    notes: Optional[str] = None


class FinancialSummaryResponse(BaseModel):
    """Schema for trip financials."""
    trip_id: int
    currency: str
    revenue: Decimal
    total_cost: Decimal
    flagged_cost: Decimal
    system_generated_cost: Decimal
    diesel_cost: Decimal
    gross_margin: Decimal
    margin_percent: Optional[float] = None
    distance_km: Optional[float] = None
    revenue_per_km: Optional[Decimal] = None
    cost_per_km: Optional[Decimal] = None
    diesel_volume: float
    fuel_efficiency: Optional[float] = None
    unresolved_flag_count: int
    cost_entry_count: int

    class Config:
        from_attributes = True
