"""
Consumption record model for fuel purchases.
"""
from dataclasses import dataclass
from typing import Optional, Union
from sqlalchemy import (
    Column, String, Float, Numeric, Date, DateTime, Boolean, ForeignKey, Integer, Text, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from fleetcost.db.base import BaseModel
from fleetcost.models.fleet_asset import AssetClass
import enum


class AllocationKind(str, enum.Enum):
    """Storage tag for AllocationTarget."""
    UNALLOCATED = "unallocated"
    DIRECT = "direct"
    VIA_TOWING_UNIT = "via_towing_unit"


class ProbeVerdict(str, enum.Enum):
    """Outcome of comparing a probe reading to the filled volume."""
    VERIFIED = "verified"
    ACCEPTABLE = "acceptable"
    DISCREPANCY = "discrepancy"


@dataclass(frozen=True)
class Unallocated:
    pass


@dataclass(frozen=True)
class Direct:
    """Towing unit fuel charged straight to a trip."""
    trip_id: int


@dataclass(frozen=True)
class ViaTowingUnit:
    """Reefer fuel charged to whatever trip the towing unit's record is on."""
    unit_id: int


AllocationTarget = Union[Unallocated, Direct, ViaTowingUnit]


class ConsumptionRecord(BaseModel):
    """A single fuel fill for one fleet asset."""
    __tablename__ = "consumption_records"

    fleet_asset_id = Column(Integer, ForeignKey("fleet_assets.id"), nullable=False, index=True)
    asset_class = Column(SQLEnum(AssetClass), nullable=False)  # Resolved from the asset at ingestion
    date = Column(Date, nullable=False, index=True)
    fuel_station = Column(String(100), nullable=True)
    driver_name = Column(String(100), nullable=True)

    # Quantities
    volume_filled = Column(Float, nullable=False)
    odometer_reading = Column(Float, nullable=True)
    previous_odometer_reading = Column(Float, nullable=True)
    hours_operated = Column(Float, nullable=True)
    total_cost = Column(Numeric(15, 2), nullable=False)
    unit_cost = Column(Numeric(15, 2), nullable=True)
    currency = Column(String(3), nullable=True)
    notes = Column(Text, nullable=True)

    # Derived metrics
    distance_travelled = Column(Float, nullable=True)
    efficiency = Column(Float, nullable=True)  # km per litre
    volume_per_hour = Column(Float, nullable=True)  # litres per hour

    # Allocation
    allocation_kind = Column(SQLEnum(AllocationKind), default=AllocationKind.UNALLOCATED, nullable=False)
    allocation_target_id = Column(Integer, nullable=True, index=True)

    # Probe verification
    probe_reading = Column(Float, nullable=True)
    probe_discrepancy = Column(Float, nullable=True)
    probe_discrepancy_percent = Column(Float, nullable=True)
    probe_verdict = Column(SQLEnum(ProbeVerdict), nullable=True)
    probe_verified = Column(Boolean, nullable=True)
    probe_verified_at = Column(DateTime, nullable=True)
    probe_witness = Column(String(100), nullable=True)
    probe_notes = Column(Text, nullable=True)

    # Debrief
    debriefed_at = Column(DateTime, nullable=True)
    debriefed_by = Column(String(100), nullable=True)
    debrief_notes = Column(Text, nullable=True)
    root_cause = Column(Text, nullable=True)
    action_taken = Column(Text, nullable=True)
    acknowledged_by_subject = Column(Boolean, default=False, nullable=False)
    # Classification seen at debrief time; later norm edits leave it alone
    debrief_directionality = Column(String(10), nullable=True)
    debrief_within_tolerance = Column(Boolean, nullable=True)
    debrief_expected_value = Column(Float, nullable=True)
    debrief_tolerance_percent = Column(Float, nullable=True)

    version_id = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version_id}

    # Relationships
    fleet_asset = relationship("FleetAsset", back_populates="records")
    cost_entries = relationship("CostEntry", back_populates="source_record")

    @property
    def is_refrigeration_unit(self) -> bool:
        return self.asset_class == AssetClass.REFRIGERATION_UNIT

    @property
    def allocation(self) -> AllocationTarget:
        if self.allocation_kind == AllocationKind.DIRECT:
            return Direct(self.allocation_target_id)
        if self.allocation_kind == AllocationKind.VIA_TOWING_UNIT:
            return ViaTowingUnit(self.allocation_target_id)
        return Unallocated()

    @allocation.setter
    def allocation(self, target: AllocationTarget) -> None:
        if isinstance(target, Direct):
            self.allocation_kind = AllocationKind.DIRECT
            self.allocation_target_id = target.trip_id
        elif isinstance(target, ViaTowingUnit):
            self.allocation_kind = AllocationKind.VIA_TOWING_UNIT
            self.allocation_target_id = target.unit_id
        else:
            self.allocation_kind = AllocationKind.UNALLOCATED
            self.allocation_target_id = None

    @property
    def trip_id(self) -> Optional[int]:
        """Directly linked trip, towing units only."""
        target = self.allocation
        return target.trip_id if isinstance(target, Direct) else None

    @property
    def linked_towing_unit_id(self) -> Optional[int]:
        """Linked towing unit record, reefer units only."""
        target = self.allocation
        return target.unit_id if isinstance(target, ViaTowingUnit) else None

    @property
    def is_debriefed(self) -> bool:
        return self.debriefed_at is not None
