"""
Flag and investigation routes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
from fleetcost.db.session import get_db
from fleetcost.models.cost_entry import InvestigationStatus
from fleetcost.schemas.trip import CostEntryResponse, FlagCreate, FlagResolve, InvestigationStart
from fleetcost.api.dependencies import get_current_actor
from fleetcost.services import flag_service

router = APIRouter(prefix="/flags", tags=["flags"])


@router.get("", response_model=List[CostEntryResponse])
def list_flags(
    status: Optional[InvestigationStatus] = None,
    trip_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Flagged cost entries with their investigations."""
    return flag_service.list_flags(db, status=status, trip_id=trip_id)


@router.post("/costs/{cost_entry_id}", response_model=CostEntryResponse)
def raise_flag(
    cost_entry_id: int,
    flag_data: FlagCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Flag a cost entry for investigation."""
    return flag_service.raise_flag(db, cost_entry_id, flag_data.reason, actor)


@router.post("/costs/{cost_entry_id}/investigation", response_model=CostEntryResponse)
def start_investigation(
    cost_entry_id: int,
    investigation_data: InvestigationStart,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Mark a flag's investigation as in progress."""
    return flag_service.start_investigation(db, cost_entry_id, actor, notes=investigation_data.notes)


@router.post("/costs/{cost_entry_id}/resolve", response_model=CostEntryResponse)
def resolve_flag(
    cost_entry_id: int,
    resolution: FlagResolve,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Resolve a flag; the trip completes once nothing else is open."""
    return flag_service.resolve_flag(
        db,
        cost_entry_id,
        resolution.resolution_comment,
        actor,
        amount=resolution.amount,
        currency=resolution.currency,
        notes=resolution.notes,
    )
