"""
Fleet asset registry.
"""
from typing import List, Optional
from sqlalchemy.orm import Session
from fleetcost.core.exceptions import ValidationError
from fleetcost.db.stores import FleetAssetStore
from fleetcost.db.transaction import persistence_retry, unit_of_work
from fleetcost.models.fleet_asset import AssetClass, FleetAsset
from fleetcost.services.audit_service import AuditAction, record_audit, snapshot


@persistence_retry
def create_asset(
    db: Session,
    fleet_number: str,
    asset_class: AssetClass,
    actor: str,
    has_probe: bool = False,
    description: Optional[str] = None,
) -> FleetAsset:
    fleet_number = (fleet_number or "").strip().upper()
    if not fleet_number:
        raise ValidationError("fleet_number is required", "fleet_asset")

    with unit_of_work(db, "fleet_asset", fleet_number):
        assets = FleetAssetStore(db)
        if assets.get_by_fleet_number(fleet_number):
            raise ValidationError(f"Fleet number {fleet_number} is already registered", "fleet_asset", fleet_number)
        asset = assets.add(
            FleetAsset(
                fleet_number=fleet_number,
                asset_class=AssetClass(asset_class),
                has_probe=has_probe,
                description=description,
            )
        )
        record_audit(db, AuditAction.ASSET_CREATE, "fleet_asset", asset.id, actor, {"after": snapshot(asset)})
    return asset


def get_asset(db: Session, asset_id: int) -> FleetAsset:
    return FleetAssetStore(db).get(asset_id)


def list_assets(db: Session) -> List[FleetAsset]:
    return FleetAssetStore(db).list()
