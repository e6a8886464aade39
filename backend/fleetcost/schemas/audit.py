"""
Pydantic schemas for audit log and reconciliation output.
"""
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime


class AuditEntryResponse(BaseModel):
    """Schema for audit entry response."""
    id: int
    action: str
    entity_type: str
    entity_id: str
    actor: str
    timestamp: datetime
    details: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class AllocationIssueResponse(BaseModel):
    """Schema for a ledger disagreement."""
    kind: str
    record_id: Optional[int] = None
    expected_trip_id: Optional[int] = None
    cost_entry_ids: List[int] = []
    trip_ids: List[int] = []

    class Config:
        from_attributes = True


class ReconciliationResponse(BaseModel):
    """Schema for a reconciliation run."""
    issues: List[AllocationIssueResponse]
    repaired: List[Dict[str, Any]]
    blocked: List[Dict[str, Any]]
