"""
Reconciliation pass over the allocation ledger.

Finds diesel cost entries that disagree with their records' current
allocation (left behind by an interrupted write or written before cost
entries carried a record id) and repairs them through the same sync
the ledger uses.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from fleetcost.core.exceptions import ValidationError
from fleetcost.db.stores import ConsumptionRecordStore, TripStore
from fleetcost.db.transaction import persistence_retry, unit_of_work
from fleetcost.services.allocation_service import (
    legacy_reference_numbers, parse_reference_number, resolve_trip_id, sync_cost_entry
)
from fleetcost.services.audit_service import AuditAction, record_audit

logger = logging.getLogger(__name__)

MISSING = "missing"
DUPLICATED = "duplicated"
WRONG_TRIP = "wrong_trip"
ORPHANED = "orphaned"
LEGACY_REFERENCE = "legacy_reference"


@dataclass
class AllocationIssue:
    kind: str
    record_id: Optional[int]
    expected_trip_id: Optional[int] = None
    cost_entry_ids: List[int] = field(default_factory=list)
    trip_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "record_id": self.record_id,
            "expected_trip_id": self.expected_trip_id,
            "cost_entry_ids": self.cost_entry_ids,
            "trip_ids": self.trip_ids,
        }


def _expected_trip_id(db: Session, record) -> Optional[int]:
    trip_id = resolve_trip_id(db, record)
    if trip_id is not None and TripStore(db).find(trip_id) is None:
        return None
    return trip_id


def find_allocation_issues(db: Session) -> List[AllocationIssue]:
    """List every disagreement between records and diesel cost entries."""
    trips = TripStore(db)
    issues = []
    record_ids = set()

    for record in ConsumptionRecordStore(db).list():
        record_ids.add(record.id)
        expected = _expected_trip_id(db, record)
        entries = trips.cost_entries_for_record(record.id, legacy_reference_numbers(record.id))
        entry_ids = [entry.id for entry in entries]
        trip_ids = [entry.trip_id for entry in entries]

        def issue(kind: str) -> AllocationIssue:
            return AllocationIssue(kind, record.id, expected, entry_ids, trip_ids)

        if expected is not None and not entries:
            issues.append(issue(MISSING))
        elif len(entries) > 1:
            issues.append(issue(DUPLICATED))
        elif entries and expected is None:
            issues.append(issue(ORPHANED))
        elif entries and entries[0].trip_id != expected:
            issues.append(issue(WRONG_TRIP))
        if any(entry.source_consumption_record_id is None for entry in entries):
            issues.append(issue(LEGACY_REFERENCE))

    for entry in trips.diesel_cost_entries():
        if entry.source_consumption_record_id is not None:
            continue
        record_id = parse_reference_number(entry.reference_number)
        if record_id is not None and record_id not in record_ids:
            issues.append(AllocationIssue(ORPHANED, None, None, [entry.id], [entry.trip_id]))
    return issues


def _remove_orphan(db: Session, issue: AllocationIssue) -> Dict[str, Any]:
    trips = TripStore(db)
    removed = []
    for entry_id in issue.cost_entry_ids:
        entry = trips.get_cost_entry(entry_id)
        if entry.has_unresolved_flag:
            raise ValidationError(
                f"Orphaned cost entry {entry.id} has an unresolved flag", "cost_entry", entry.id
            )
        trip = trips.get(entry.trip_id, for_update=True)
        trip.costs.remove(entry)
        trips.touch(trip)
        removed.append({"cost_entry_id": entry_id, "trip_id": trip.id})
    db.flush()
    return {"record_id": None, "removed": removed}


@persistence_retry
def reconcile_allocations(db: Session, actor: str) -> Dict[str, Any]:
    """
    Repair every issue ``find_allocation_issues`` reports.

    Entries held by an unresolved flag are left alone and reported as
    blocked; everything else is fixed in one transaction.
    """
    with unit_of_work(db, "allocation", "reconcile"):
        issues = find_allocation_issues(db)
        repaired = []
        blocked = []
        synced = set()
        records = ConsumptionRecordStore(db)
        for issue in issues:
            try:
                if issue.record_id is None:
                    repaired.append(_remove_orphan(db, issue))
                elif issue.record_id not in synced:
                    synced.add(issue.record_id)
                    repaired.append(sync_cost_entry(db, records.get(issue.record_id)))
            except ValidationError as exc:
                logger.warning(f"Reconciliation skipped {issue.kind} issue: {exc.message}")
                blocked.append({**issue.to_dict(), "error": exc.message})

        result = {
            "issues": [issue.to_dict() for issue in issues],
            "repaired": repaired,
            "blocked": blocked,
        }
        if issues:
            record_audit(db, AuditAction.RECONCILE, "allocation", "reconcile", actor, result)
            logger.info(f"Reconciliation repaired {len(repaired)} of {len(issues)} issue(s)")
    return result
