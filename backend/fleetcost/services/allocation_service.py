"""
Allocation ledger: pairs consumption records with diesel cost entries.

A towing unit's fill is charged directly to a trip. A refrigeration
unit's fill is linked to a towing unit's record and charged to whatever
trip that record is on, or deferred while it is on none. For every
record that resolves to a trip there is exactly one cost entry on that
trip pointing back at it, and nowhere else.

``sync_cost_entry`` is the single place that makes the ledger agree
with a record's allocation; allocate, deallocate, record edits and the
reconciliation pass all go through it inside one unit of work.
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from fleetcost.core.config import settings
from fleetcost.core.exceptions import InvalidAssetClassError, ValidationError
from fleetcost.core.utils import round_currency
from fleetcost.db.stores import ConsumptionRecordStore, TripStore
from fleetcost.db.transaction import persistence_retry, unit_of_work
from fleetcost.models.consumption import (
    AllocationTarget, ConsumptionRecord, Direct, Unallocated, ViaTowingUnit
)
from fleetcost.models.cost_entry import CostEntry, DIESEL_CATEGORY
from fleetcost.models.trip import Trip
from fleetcost.services.audit_service import AuditAction, record_audit

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "DIESEL-"
REEFER_REFERENCE_PREFIX = "DIESEL-REEFER-"


def reference_number_for(record: ConsumptionRecord) -> str:
    """Readable reference: DIESEL-<id> or DIESEL-REEFER-<id>."""
    prefix = REEFER_REFERENCE_PREFIX if record.is_refrigeration_unit else REFERENCE_PREFIX
    return f"{prefix}{record.id}"


def legacy_reference_numbers(record_id: int) -> List[str]:
    return [f"{REFERENCE_PREFIX}{record_id}", f"{REEFER_REFERENCE_PREFIX}{record_id}"]


def parse_reference_number(reference_number: Optional[str]) -> Optional[int]:
    """Record id encoded in a diesel reference number, if any."""
    if not reference_number:
        return None
    for prefix in (REEFER_REFERENCE_PREFIX, REFERENCE_PREFIX):
        if reference_number.startswith(prefix):
            suffix = reference_number[len(prefix):]
            return int(suffix) if suffix.isdigit() else None
    return None


def describe_target(target: AllocationTarget) -> Dict[str, Any]:
    if isinstance(target, Direct):
        return {"kind": "direct", "trip_id": target.trip_id}
    if isinstance(target, ViaTowingUnit):
        return {"kind": "via_towing_unit", "towing_unit_id": target.unit_id}
    return {"kind": "unallocated"}


def resolve_trip_id(db: Session, record: ConsumptionRecord) -> Optional[int]:
    """The trip a record's cost belongs on right now, following a reefer's towing unit."""
    target = record.allocation
    if isinstance(target, Direct):
        return target.trip_id
    if isinstance(target, ViaTowingUnit):
        unit = ConsumptionRecordStore(db).find(target.unit_id)
        return unit.trip_id if unit else None
    return None


def _entry_text(record: ConsumptionRecord) -> Dict[str, str]:
    suffix = " (Reefer)" if record.is_refrigeration_unit else ""
    station = record.fuel_station or "unknown station"
    fleet_number = record.fleet_asset.fleet_number if record.fleet_asset else str(record.fleet_asset_id)
    return {
        "sub_category": f"{station} - {fleet_number}{suffix}",
        "notes": f"Diesel: {record.volume_filled:g} litres at {station}{suffix}",
    }


def _entry_currency(record: ConsumptionRecord, trip: Trip) -> str:
    return record.currency or trip.revenue_currency or settings.DEFAULT_CURRENCY


def _build_cost_entry(record: ConsumptionRecord, trip: Trip) -> CostEntry:
    return CostEntry(
        category=DIESEL_CATEGORY,
        amount=round_currency(record.total_cost),
        currency=_entry_currency(record, trip),
        reference_number=reference_number_for(record),
        source_consumption_record_id=record.id,
        date=record.date,
        **_entry_text(record),
    )


def _refresh_cost_entry(entry: CostEntry, record: ConsumptionRecord, trip: Trip) -> bool:
    """Bring a kept entry in line with its record. Returns True if anything changed."""
    wanted = {
        "amount": round_currency(record.total_cost),
        "currency": _entry_currency(record, trip),
        "reference_number": reference_number_for(record),
        "source_consumption_record_id": record.id,
        "date": record.date,
        **_entry_text(record),
    }
    changed = False
    for field, value in wanted.items():
        if getattr(entry, field) != value:
            setattr(entry, field, value)
            changed = True
    return changed


def _ensure_removable(entry: CostEntry, record_id: int) -> None:
    if entry.has_unresolved_flag:
        raise ValidationError(
            f"Cost entry {entry.id} for consumption record {record_id} has an unresolved flag; "
            f"resolve it before moving or removing the record",
            "cost_entry",
            entry.id,
        )


def sync_cost_entry(db: Session, record: ConsumptionRecord) -> Dict[str, Any]:
    """
    Make the ledger match the record's current allocation.

    Keeps at most one mirrored entry, on the trip the record resolves to,
    removes every other entry that refers to the record (including legacy
    entries matched by reference number) and creates the entry if it is
    missing. Flushes but never commits.

    Returns:
        Summary of what changed: target trip, created entry, removed
        entries and whether the kept entry was refreshed.
    """
    trips = TripStore(db)
    desired_trip_id = resolve_trip_id(db, record)
    entries = trips.cost_entries_for_record(record.id, legacy_reference_numbers(record.id))
    locked = trips.lock([desired_trip_id] + [entry.trip_id for entry in entries])
    desired_trip = locked.get(desired_trip_id) if desired_trip_id is not None else None
    if desired_trip_id is not None and desired_trip is None:
        logger.warning(f"Consumption record {record.id} points at missing trip {desired_trip_id}")

    kept = None
    stale = []
    for entry in entries:
        if kept is None and desired_trip is not None and entry.trip_id == desired_trip.id:
            kept = entry
        else:
            stale.append(entry)

    for entry in stale:
        _ensure_removable(entry, record.id)

    removed = []
    for entry in stale:
        owner = locked.get(entry.trip_id)
        removed.append({"cost_entry_id": entry.id, "trip_id": entry.trip_id})
        if owner is not None and entry in owner.costs:
            owner.costs.remove(entry)
            trips.touch(owner)
        else:
            db.delete(entry)
    if removed:
        # Deletes must reach the database before a replacement reuses the record id
        db.flush()

    created = None
    refreshed = False
    if desired_trip is not None:
        if kept is None:
            created = _build_cost_entry(record, desired_trip)
            desired_trip.costs.append(created)
            trips.touch(desired_trip)
        elif _refresh_cost_entry(kept, record, desired_trip):
            refreshed = True
            trips.touch(desired_trip)
    db.flush()

    return {
        "record_id": record.id,
        "trip_id": desired_trip.id if desired_trip is not None else None,
        "created_cost_entry_id": created.id if created is not None else None,
        "removed": removed,
        "refreshed": refreshed,
    }


def ledger_changed(changes: Dict[str, Any]) -> bool:
    return bool(changes["created_cost_entry_id"] or changes["removed"] or changes["refreshed"])


def _sync_linked_reefers(db: Session, record: ConsumptionRecord) -> List[Dict[str, Any]]:
    """Carry reefer costs along with the towing unit they are linked to."""
    if record.is_refrigeration_unit:
        return []
    return [sync_cost_entry(db, reefer) for reefer in ConsumptionRecordStore(db).list_linked_to_towing_unit(record.id)]


def _resolve_target(
    db: Session,
    record: ConsumptionRecord,
    trip_id: Optional[int],
    towing_unit_id: Optional[int],
) -> AllocationTarget:
    if record.is_refrigeration_unit:
        if trip_id is not None:
            raise InvalidAssetClassError(
                f"Consumption record {record.id} is a refrigeration unit; link it to a towing unit, not a trip",
                "consumption_record",
                record.id,
            )
        if towing_unit_id is None:
            raise ValidationError(
                "towing_unit_id is required to allocate a refrigeration unit", "consumption_record", record.id
            )
        unit = ConsumptionRecordStore(db).get(towing_unit_id)
        if unit.is_refrigeration_unit:
            raise InvalidAssetClassError(
                f"Consumption record {unit.id} is a refrigeration unit and cannot act as a towing unit",
                "consumption_record",
                unit.id,
            )
        return ViaTowingUnit(unit.id)

    if towing_unit_id is not None:
        raise InvalidAssetClassError(
            f"Consumption record {record.id} is a towing unit; allocate it to a trip, not a towing unit",
            "consumption_record",
            record.id,
        )
    if trip_id is None:
        raise ValidationError("trip_id is required to allocate a towing unit", "consumption_record", record.id)
    TripStore(db).get(trip_id)
    return Direct(trip_id)


def allocate_in_session(
    db: Session,
    record_id: int,
    actor: str,
    trip_id: Optional[int] = None,
    towing_unit_id: Optional[int] = None,
) -> ConsumptionRecord:
    """Allocate inside the caller's unit of work."""
    record = ConsumptionRecordStore(db).get(record_id, for_update=True)
    target = _resolve_target(db, record, trip_id, towing_unit_id)
    before = record.allocation

    # Re-allocation: the old trip's entry goes and the new one appears in the same flush sequence
    record.allocation = target
    db.flush()
    changes = sync_cost_entry(db, record)
    reefer_changes = _sync_linked_reefers(db, record)

    if before == target and not ledger_changed(changes) and not any(ledger_changed(c) for c in reefer_changes):
        logger.debug(f"Consumption record {record.id} already allocated to {describe_target(target)}")
        return record

    if changes["trip_id"] is None and isinstance(target, ViaTowingUnit):
        logger.info(
            f"Reefer record {record.id} linked to towing unit {target.unit_id}; "
            f"cost entry deferred until that unit is on a trip"
        )
    record_audit(
        db,
        AuditAction.ALLOCATE,
        "consumption_record",
        record.id,
        actor,
        {
            "before": describe_target(before),
            "after": describe_target(target),
            "ledger": changes,
            "linked_reefers": reefer_changes,
        },
    )
    return record


@persistence_retry
def allocate(
    db: Session,
    record_id: int,
    actor: str,
    trip_id: Optional[int] = None,
    towing_unit_id: Optional[int] = None,
) -> ConsumptionRecord:
    """
    Allocate a record: a towing unit to ``trip_id``, a reefer to ``towing_unit_id``.

    Any previous allocation is undone in the same transaction. Calling it
    again with the same target leaves exactly one cost entry.

    Raises:
        NotFoundError: record, trip or towing unit record missing.
        InvalidAssetClassError: target does not suit the record's asset class.
        ValidationError: no target given, or the old entry has an open flag.
    """
    with unit_of_work(db, "consumption_record", record_id):
        record = allocate_in_session(db, record_id, actor, trip_id=trip_id, towing_unit_id=towing_unit_id)
    return record


def deallocate_in_session(db: Session, record_id: int, actor: str) -> ConsumptionRecord:
    """Deallocate inside the caller's unit of work."""
    record = ConsumptionRecordStore(db).get(record_id, for_update=True)
    before = record.allocation
    record.allocation = Unallocated()
    db.flush()
    changes = sync_cost_entry(db, record)
    reefer_changes = _sync_linked_reefers(db, record)

    if isinstance(before, Unallocated) and not ledger_changed(changes):
        logger.debug(f"Consumption record {record.id} is not allocated, nothing to remove")
        return record

    record_audit(
        db,
        AuditAction.DEALLOCATE,
        "consumption_record",
        record.id,
        actor,
        {"before": describe_target(before), "ledger": changes, "linked_reefers": reefer_changes},
    )
    return record


@persistence_retry
def deallocate(db: Session, record_id: int, actor: str) -> ConsumptionRecord:
    """
    Remove a record's cost entry from its trip and clear the link.

    Reefers linked to a deallocated towing unit keep their link but lose
    their cost entry until the unit is allocated again.
    """
    with unit_of_work(db, "consumption_record", record_id):
        record = deallocate_in_session(db, record_id, actor)
    return record


def detach_record(db: Session, record: ConsumptionRecord) -> Dict[str, Any]:
    """Clear a record's allocation and unlink reefers towed through it, ahead of deletion."""
    record.allocation = Unallocated()
    db.flush()
    changes = sync_cost_entry(db, record)
    unlinked = []
    if not record.is_refrigeration_unit:
        for reefer in ConsumptionRecordStore(db).list_linked_to_towing_unit(record.id):
            reefer.allocation = Unallocated()
            db.flush()
            sync_cost_entry(db, reefer)
            unlinked.append(reefer.id)
    db.expire(record, ["cost_entries"])
    return {"ledger": changes, "unlinked_reefers": unlinked}
