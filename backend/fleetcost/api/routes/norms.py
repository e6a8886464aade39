"""
Efficiency norm administration routes.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List
from fleetcost.db.session import get_db
from fleetcost.schemas.norm import NormResponse, NormUpsert
from fleetcost.api.dependencies import get_current_actor
from fleetcost.services import norms_service

router = APIRouter(prefix="/norms", tags=["norms"])


@router.get("", response_model=List[NormResponse])
def list_norms(db: Session = Depends(get_db)):
    """List all norms."""
    return norms_service.list_norms(db)


@router.post("/reset", response_model=List[NormResponse])
def reset_norms(actor: str = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Give every asset the configured default norm for its class."""
    return norms_service.reset_norms_to_defaults(db, actor)


@router.put("/{fleet_asset_id}", response_model=NormResponse)
def upsert_norm(
    fleet_asset_id: int,
    norm_data: NormUpsert,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Create or edit an asset's norm."""
    return norms_service.upsert_norm(
        db, fleet_asset_id, norm_data.expected_value, norm_data.tolerance_percent, actor
    )


@router.delete("/{fleet_asset_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_norm(
    fleet_asset_id: int,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Remove an asset's norm. Stored debrief verdicts are unaffected."""
    norms_service.delete_norm(db, fleet_asset_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
