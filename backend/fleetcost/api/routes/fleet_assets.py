"""
Fleet asset registry routes.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List
from fleetcost.db.session import get_db
from fleetcost.schemas.fleet_asset import FleetAssetCreate, FleetAssetResponse
from fleetcost.api.dependencies import get_current_actor
from fleetcost.services import fleet_service

router = APIRouter(prefix="/fleet-assets", tags=["fleet-assets"])


@router.post("", response_model=FleetAssetResponse, status_code=status.HTTP_201_CREATED)
def create_fleet_asset(
    asset_data: FleetAssetCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Register a towing or refrigeration unit."""
    return fleet_service.create_asset(
        db,
        fleet_number=asset_data.fleet_number,
        asset_class=asset_data.asset_class,
        actor=actor,
        has_probe=asset_data.has_probe,
        description=asset_data.description,
    )


@router.get("", response_model=List[FleetAssetResponse])
def list_fleet_assets(db: Session = Depends(get_db)):
    """List registered fleet assets."""
    return fleet_service.list_assets(db)


@router.get("/{asset_id}", response_model=FleetAssetResponse)
def get_fleet_asset(asset_id: int, db: Session = Depends(get_db)):
    """Get a fleet asset."""
    return fleet_service.get_asset(db, asset_id)
