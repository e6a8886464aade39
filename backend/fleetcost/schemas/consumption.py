"""
Pydantic schemas for ConsumptionRecord entity and its workflows.
"""
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import date, datetime, date as dt_date
from decimal import Decimal
from fleetcost.models.consumption import AllocationKind, ProbeVerdict
from fleetcost.models.fleet_asset import AssetClass
from fleetcost.schemas.norm import ClassificationResponse


class RecordBase(BaseModel):
    """Fields entered for a fuel fill."""
    date: date
    volume_filled: float
    total_cost: Decimal
    unit_cost: Optional[Decimal] = None
    currency: Optional[str] = None
    odometer_reading: Optional[float] = None
    previous_odometer_reading: Optional[float] = None
    hours_operated: Optional[float] = None
    fuel_station: Optional[str] = None
    driver_name: Optional[str] = None
    notes: Optional[str] = None


class RecordCreate(RecordBase):
    """Schema for record creation; the asset is named by id or fleet number."""
    fleet_asset_id: Optional[int] = None
    fleet_number: Optional[str] = None
    trip_id: Optional[int] = None  # Towing units
    towing_unit_id: Optional[int] = None  # Reefers: the towing unit's record id


class RecordUpdate(BaseModel):
    """Schema for record update."""
    date: Optional[dt_date] = None
    volume_filled: Optional[float] = None
    total_cost: Optional[Decimal] = None
    unit_cost: Optional[Decimal] = None
    currency: Optional[str] = None
    odometer_reading: Optional[float] = None
    previous_odometer_reading: Optional[float] = None
    hours_operated: Optional[float] = None
    fuel_station: Optional[str] = None
    driver_name: Optional[str] = None
    notes: Optional[str] = None


class RecordResponse(RecordBase):
    """Schema for record response."""
    id: int
    fleet_asset_id: int
    asset_class: AssetClass
    is_refrigeration_unit: bool
    distance_travelled: Optional[float] = None
    efficiency: Optional[float] = None
    volume_per_hour: Optional[float] = None
    allocation_kind: AllocationKind
    trip_id: Optional[int] = None
    linked_towing_unit_id: Optional[int] = None
    probe_reading: Optional[float] = None
    probe_discrepancy: Optional[float] = None
    probe_discrepancy_percent: Optional[float] = None
    probe_verdict: Optional[ProbeVerdict] = None
    probe_verified: Optional[bool] = None
    probe_verified_at: Optional[datetime] = None
    probe_witness: Optional[str] = None
    is_debriefed: bool
    debriefed_at: Optional[datetime] = None
    debriefed_by: Optional[str] = None
    debrief_notes: Optional[str] = None
    root_cause: Optional[str] = None
    action_taken: Optional[str] = None
    acknowledged_by_subject: bool = False
    debrief_directionality: Optional[str] = None
    debrief_within_tolerance: Optional[bool] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RecordImport(BaseModel):
    """Schema for bulk import."""
    rows: List[RecordCreate]


class ImportResultResponse(BaseModel):
    """Schema for bulk import result."""
    imported: List[int]
    skipped: List[Dict[str, Any]]
    failed: List[Dict[str, Any]]
    imported_count: int
    skipped_count: int
    failed_count: int

    class Config:
        from_attributes = True


class AllocationRequest(BaseModel):
    """Allocate a towing unit to a trip, or a reefer to a towing unit record."""
    trip_id: Optional[int] = None
    towing_unit_id: Optional[int] = None


class DebriefRequest(BaseModel):
    """Schema for debriefing a record."""
    notes: str
    root_cause: str
    action_taken: Optional[str] = None
    acknowledged_by_subject: bool = False
    probe_reading: Optional[float] = None
    witness: Optional[str] = None


class ProbeVerificationRequest(BaseModel):
    """Schema for a probe check."""
    probe_reading: float
    witness: str
    notes: Optional[str] = None


class VerificationResponse(BaseModel):
    """Schema for probe verification result."""
    probe_reading: float
    discrepancy: float
    discrepancy_percent: float
    verdict: ProbeVerdict
    verified: bool

    class Config:
        from_attributes = True


class PendingDebriefResponse(BaseModel):
    """A record awaiting debrief with its live classification."""
    record: RecordResponse
    classification: ClassificationResponse

    class Config:
        from_attributes = True
