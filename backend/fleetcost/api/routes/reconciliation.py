"""
Allocation ledger reconciliation routes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from fleetcost.db.session import get_db
from fleetcost.schemas.audit import AllocationIssueResponse, ReconciliationResponse
from fleetcost.api.dependencies import get_current_actor
from fleetcost.services import reconciliation_service

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


@router.get("", response_model=List[AllocationIssueResponse])
def find_allocation_issues(db: Session = Depends(get_db)):
    """Records and diesel cost entries that disagree."""
    return reconciliation_service.find_allocation_issues(db)


@router.post("", response_model=ReconciliationResponse)
def reconcile_allocations(actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Repair every reported issue."""
    return reconciliation_service.reconcile_allocations(db, actor)
