"""
Audit log routes.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from fleetcost.db.session import get_db
from fleetcost.schemas.audit import AuditEntryResponse
from fleetcost.services import audit_service

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=List[AuditEntryResponse])
def list_audit_entries(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db)
):
    """Audit entries, newest first."""
    return audit_service.list_audit_entries(db, entity_type, entity_id, action, limit)
