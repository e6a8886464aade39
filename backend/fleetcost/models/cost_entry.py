"""
Cost entry and investigation models for a trip's expense ledger.
"""
from typing import Optional
from sqlalchemy import Column, String, Numeric, Date, DateTime, Boolean, ForeignKey, Integer, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from fleetcost.db.base import BaseModel
import enum

DIESEL_CATEGORY = "Diesel"


class InvestigationStatus(str, enum.Enum):
    """Investigation state; RESOLVED is terminal."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"


class CostEntry(BaseModel):
    """A single line item on a trip's expense ledger."""
    __tablename__ = "cost_entries"

    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    category = Column(String(50), nullable=False)
    sub_category = Column(String(200), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    reference_number = Column(String(100), nullable=True, index=True)
    # Unique: a record's mirrored entry can sit on one trip only
    source_consumption_record_id = Column(
        Integer, ForeignKey("consumption_records.id"), nullable=True, unique=True
    )
    date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    # Flag metadata
    is_flagged = Column(Boolean, default=False, nullable=False)
    flag_reason = Column(Text, nullable=True)
    flagged_at = Column(DateTime, nullable=True)
    flagged_by = Column(String(100), nullable=True)

    # System-generated costs (per-km / per-day estimates) stay out of the baseline total
    is_system_generated = Column(Boolean, default=False, nullable=False)
    system_cost_type = Column(String(20), nullable=True)

    # Relationships
    trip = relationship("Trip", back_populates="costs")
    source_record = relationship("ConsumptionRecord", back_populates="cost_entries")
    investigations = relationship(
        "Investigation", back_populates="cost_entry", cascade="all, delete-orphan", order_by="Investigation.id"
    )

    @property
    def current_investigation(self) -> Optional["Investigation"]:
        return self.investigations[-1] if self.investigations else None

    @property
    def investigation_status(self) -> Optional[InvestigationStatus]:
        investigation = self.current_investigation
        return investigation.status if investigation else None

    @property
    def has_unresolved_flag(self) -> bool:
        if not self.is_flagged:
            return False
        return self.investigation_status != InvestigationStatus.RESOLVED


class Investigation(BaseModel):
    """Review of a flagged cost entry, from raising to resolution."""
    __tablename__ = "investigations"

    cost_entry_id = Column(Integer, ForeignKey("cost_entries.id"), nullable=False, index=True)
    status = Column(SQLEnum(InvestigationStatus), default=InvestigationStatus.PENDING, nullable=False)
    flag_reason = Column(Text, nullable=False)
    opened_by = Column(String(100), nullable=True)
    investigation_notes = Column(Text, nullable=True)
    started_at = Column(DateTime, nullable=True)
    started_by = Column(String(100), nullable=True)
    resolution_notes = Column(Text, nullable=True)
    resolved_by = Column(String(100), nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    # Relationships
    cost_entry = relationship("CostEntry", back_populates="investigations")
