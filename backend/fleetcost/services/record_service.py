"""
Consumption record ingestion: manual entry, edits, deletion and bulk import.

Each record is validated for its asset class, gets its derived metrics
and, when asked, is allocated in the same unit of work so its cost entry
appears together with the record.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from fleetcost.core.exceptions import FleetCostError, ValidationError
from fleetcost.core.utils import round_currency
from fleetcost.db.stores import ConsumptionRecordStore, FleetAssetStore
from fleetcost.db.transaction import persistence_retry, unit_of_work
from fleetcost.models.consumption import ConsumptionRecord
from fleetcost.models.fleet_asset import FleetAsset
from fleetcost.services.allocation_service import allocate_in_session, detach_record, sync_cost_entry
from fleetcost.services.audit_service import AuditAction, record_audit, snapshot
from fleetcost.services.metrics_service import compute_metrics

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {
    "date",
    "fuel_station",
    "driver_name",
    "volume_filled",
    "odometer_reading",
    "previous_odometer_reading",
    "hours_operated",
    "total_cost",
    "unit_cost",
    "currency",
    "notes",
}
REQUIRED_FIELDS = {"date", "volume_filled", "total_cost"}


@dataclass
class ImportResult:
    """Outcome of a bulk import."""
    imported: List[int] = field(default_factory=list)
    skipped: List[Dict[str, Any]] = field(default_factory=list)
    failed: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.imported)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


def _resolve_asset(db: Session, data: Dict[str, Any]) -> FleetAsset:
    assets = FleetAssetStore(db)
    if data.get("fleet_asset_id") is not None:
        return assets.get(data["fleet_asset_id"])
    fleet_number = data.get("fleet_number")
    if fleet_number:
        asset = assets.get_by_fleet_number(str(fleet_number).strip().upper())
        if asset is None:
            raise ValidationError(f"Unknown fleet number {fleet_number}", "fleet_asset", fleet_number)
        return asset
    raise ValidationError("fleet_asset_id or fleet_number is required", "consumption_record")


def _check_quantities_for_class(record: ConsumptionRecord) -> None:
    """Towing units are metered by odometer, reefers by engine hours; never both."""
    if record.is_refrigeration_unit:
        if record.odometer_reading is not None or record.previous_odometer_reading is not None:
            raise ValidationError(
                "Refrigeration units are metered by hours; odometer readings are not accepted",
                "consumption_record",
                record.id,
            )
        if record.hours_operated is None:
            raise ValidationError("hours_operated is required for refrigeration units", "consumption_record", record.id)
    else:
        if record.hours_operated is not None:
            raise ValidationError(
                "Towing units are metered by odometer; hours_operated is not accepted",
                "consumption_record",
                record.id,
            )
        if record.odometer_reading is None:
            raise ValidationError("odometer_reading is required for towing units", "consumption_record", record.id)
        if record.previous_odometer_reading is not None and record.previous_odometer_reading < 0:
            raise ValidationError("previous_odometer_reading cannot be negative", "consumption_record", record.id)


def _apply_metrics(record: ConsumptionRecord) -> None:
    metrics = compute_metrics(record)
    record.distance_travelled = metrics.distance_travelled
    record.efficiency = metrics.efficiency
    record.volume_per_hour = metrics.volume_per_hour
    record.unit_cost = metrics.unit_cost


def _derive_previous_odometer(db: Session, record: ConsumptionRecord) -> None:
    if record.is_refrigeration_unit or record.previous_odometer_reading is not None:
        return
    previous = ConsumptionRecordStore(db).find_previous_odometer_record(
        record.fleet_asset_id, record.date, exclude_id=record.id
    )
    if previous is not None:
        record.previous_odometer_reading = previous.odometer_reading


def create_record_in_session(db: Session, data: Dict[str, Any], actor: str) -> ConsumptionRecord:
    asset = _resolve_asset(db, data)
    if data.get("date") is None:
        raise ValidationError("date is required", "consumption_record")
    record = ConsumptionRecord(
        fleet_asset_id=asset.id,
        asset_class=asset.asset_class,
        date=data["date"],
        fuel_station=data.get("fuel_station"),
        driver_name=data.get("driver_name"),
        volume_filled=data.get("volume_filled"),
        odometer_reading=data.get("odometer_reading"),
        previous_odometer_reading=data.get("previous_odometer_reading"),
        hours_operated=data.get("hours_operated"),
        total_cost=round_currency(data.get("total_cost")),
        unit_cost=data.get("unit_cost"),
        currency=data.get("currency"),
        notes=data.get("notes"),
    )
    _check_quantities_for_class(record)
    _derive_previous_odometer(db, record)
    _apply_metrics(record)
    ConsumptionRecordStore(db).add(record)
    record_audit(db, AuditAction.RECORD_CREATE, "consumption_record", record.id, actor, {"after": snapshot(record)})

    trip_id = data.get("trip_id")
    towing_unit_id = data.get("towing_unit_id")
    if trip_id is not None or towing_unit_id is not None:
        allocate_in_session(db, record.id, actor, trip_id=trip_id, towing_unit_id=towing_unit_id)
    return record


@persistence_retry
def create_record(db: Session, data: Dict[str, Any], actor: str) -> ConsumptionRecord:
    """
    Store a new fill, optionally allocating it.

    ``data`` holds the record fields plus optional ``trip_id`` (towing
    units) or ``towing_unit_id`` (reefers).
    """
    with unit_of_work(db, "consumption_record"):
        record = create_record_in_session(db, data, actor)
    return record


def get_record(db: Session, record_id: int) -> ConsumptionRecord:
    return ConsumptionRecordStore(db).get(record_id)


def list_records(
    db: Session,
    fleet_asset_id: Optional[int] = None,
    trip_id: Optional[int] = None,
    debriefed: Optional[bool] = None,
) -> List[ConsumptionRecord]:
    return ConsumptionRecordStore(db).list(fleet_asset_id=fleet_asset_id, trip_id=trip_id, debriefed=debriefed)


@persistence_retry
def update_record(db: Session, record_id: int, changes: Dict[str, Any], actor: str) -> ConsumptionRecord:
    """
    Edit a record, recompute its metrics and refresh its mirrored cost entry.

    Asset and allocation are not editable here; use allocate/deallocate.
    A changed volume or total cost re-derives the unit cost unless one is
    supplied with the change.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(
            f"Fields cannot be edited: {', '.join(sorted(unknown))}", "consumption_record", record_id
        )
    for name in sorted(REQUIRED_FIELDS):
        if name in changes and changes[name] is None:
            raise ValidationError(f"{name} is required", "consumption_record", record_id)

    with unit_of_work(db, "consumption_record", record_id):
        record = ConsumptionRecordStore(db).get(record_id, for_update=True)
        before = snapshot(record)
        for name, value in changes.items():
            setattr(record, name, round_currency(value) if name == "total_cost" else value)
        if ("volume_filled" in changes or "total_cost" in changes) and "unit_cost" not in changes:
            record.unit_cost = None
        _check_quantities_for_class(record)
        _apply_metrics(record)
        db.flush()
        ledger = sync_cost_entry(db, record)
        record_audit(
            db,
            AuditAction.RECORD_UPDATE,
            "consumption_record",
            record.id,
            actor,
            {"before": before, "after": snapshot(record), "ledger": ledger},
        )
    return record


@persistence_retry
def delete_record(db: Session, record_id: int, actor: str) -> bool:
    """
    Delete a record with its cost entry, unlinking reefers towed through it.

    Returns False when the record is already gone.

    Raises:
        ValidationError: a cost entry involved still has an unresolved flag.
    """
    with unit_of_work(db, "consumption_record", record_id):
        records = ConsumptionRecordStore(db)
        record = records.find(record_id)
        if record is None:
            logger.debug(f"Consumption record {record_id} already deleted")
            return False
        before = snapshot(record)
        detached = detach_record(db, record)
        records.delete(record)
        record_audit(
            db,
            AuditAction.RECORD_DELETE,
            "consumption_record",
            record_id,
            actor,
            {"before": before, **detached},
        )
    return True


def import_records(db: Session, rows: List[Dict[str, Any]], actor: str) -> ImportResult:
    """
    Bulk-create records, one unit of work per row.

    Rows matching an existing record (same asset, date, volume and
    odometer or hours) are skipped. A failing row is reported with its
    error and does not stop the rest.
    """
    result = ImportResult()
    for index, row in enumerate(rows):
        try:
            asset = _resolve_asset(db, row)
            duplicate = ConsumptionRecordStore(db).find_duplicate(
                asset.id,
                row.get("date"),
                row.get("volume_filled"),
                row.get("odometer_reading"),
                row.get("hours_operated"),
            )
            if duplicate is not None:
                result.skipped.append({"row": index, "reason": "duplicate", "record_id": duplicate.id})
                continue
            record = create_record(db, {**row, "fleet_asset_id": asset.id}, actor)
            result.imported.append(record.id)
        except FleetCostError as exc:
            logger.warning(f"Import row {index} failed: {exc.message}")
            result.failed.append({"row": index, **exc.to_dict()})

    with unit_of_work(db, "consumption_record", "import"):
        record_audit(
            db,
            AuditAction.RECORD_IMPORT,
            "consumption_record",
            "import",
            actor,
            {
                "imported": result.imported,
                "skipped": result.skipped,
                "failed": result.failed,
            },
        )
    logger.info(
        f"Imported {result.imported_count} record(s), skipped {result.skipped_count}, failed {result.failed_count}"
    )
    return result
