"""
Audit log model for state-changing engine operations.
"""
from sqlalchemy import Column, String, DateTime, JSON
from fleetcost.db.base import BaseModel
from fleetcost.core.utils import utcnow


class AuditEntry(BaseModel):
    """One audit event: who did what to which entity."""
    __tablename__ = "audit_entries"

    action = Column(String(50), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False, index=True)
    entity_id = Column(String(50), nullable=False, index=True)
    actor = Column(String(100), nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
    details = Column(JSON, nullable=True)  # before/after snapshots or operation details
