"""
Trip routes: administration, non-diesel costs, status and financials.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from fleetcost.db.session import get_db
from fleetcost.models.trip import TripStatus
from fleetcost.schemas.trip import (
    CostEntryCreate, CostEntryResponse, FinancialSummaryResponse, TripCreate, TripDetailResponse,
    TripResponse, TripStatusUpdate
)
from fleetcost.api.dependencies import get_current_actor
from fleetcost.services import financials_service, trip_service

router = APIRouter(prefix="/trips", tags=["trips"])


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
def create_trip(
    trip_data: TripCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Create a new trip."""
    return trip_service.create_trip(db, actor=actor, **trip_data.model_dump())


@router.get("", response_model=List[TripResponse])
def list_trips(status: Optional[TripStatus] = None, db: Session = Depends(get_db)):
    """List trips, optionally by status."""
    return trip_service.list_trips(db, status)


@router.get("/{trip_id}", response_model=TripDetailResponse)
def get_trip(trip_id: int, db: Session = Depends(get_db)):
    """Get a trip with its cost list."""
    return trip_service.get_trip(db, trip_id)


@router.post("/{trip_id}/costs", response_model=CostEntryResponse, status_code=status.HTTP_201_CREATED)
def add_cost_entry(
    trip_id: int,
    cost_data: CostEntryCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Add a non-diesel cost to a trip."""
    data = cost_data.model_dump()
    entry_date = data.pop("date")
    return trip_service.add_cost_entry(db, trip_id, actor=actor, entry_date=entry_date, **data)


@router.put("/{trip_id}/status", response_model=TripResponse)
def update_trip_status(
    trip_id: int,
    status_data: TripStatusUpdate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Move a trip forward; completion requires every flag resolved."""
    return trip_service.update_trip_status(db, trip_id, status_data.status, actor)


@router.get("/{trip_id}/financials", response_model=FinancialSummaryResponse)
def get_trip_financials(trip_id: int, db: Session = Depends(get_db)):
    """Revenue, costs, margin and per-km figures for a trip."""
    return financials_service.get_trip_financials(db, trip_id)
