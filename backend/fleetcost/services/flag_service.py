"""
Flag / investigation workflow for cost entries, and the trip completion gate.

Investigation states run Pending -> InProgress -> Resolved, with the
InProgress step optional. Resolved is terminal. A trip completes only
once none of its cost entries carry an unresolved flag; resolving the
last one completes it automatically.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from fleetcost.core.exceptions import TripCompletionBlockedError, ValidationError
from fleetcost.core.utils import round_currency, utcnow
from fleetcost.db.stores import TripStore
from fleetcost.db.transaction import persistence_retry, unit_of_work
from fleetcost.models.cost_entry import CostEntry, Investigation, InvestigationStatus
from fleetcost.models.trip import Trip, TripStatus
from fleetcost.services.audit_service import AuditAction, record_audit

logger = logging.getLogger(__name__)

AUTO_COMPLETED_REASON = "All flagged cost entries resolved"


def _require_text(value: Optional[str], field: str, entity_type: str, entity_id: Any) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} is required", entity_type, entity_id)
    return value.strip()


def unresolved_flags(trip: Trip) -> List[CostEntry]:
    return [entry for entry in trip.costs if entry.has_unresolved_flag]


def raise_flag_on_entry(db: Session, entry: CostEntry, reason: str, actor: str) -> CostEntry:
    """
    Flag a cost entry inside the caller's unit of work.

    Opens a Pending investigation. Flagging an entry that already has an
    unresolved flag is a no-op.
    """
    reason = _require_text(reason, "reason", "cost_entry", entry.id)
    trip = TripStore(db).get(entry.trip_id, for_update=True)
    if trip.status == TripStatus.COMPLETED:
        raise ValidationError(
            f"Trip {trip.id} is completed; its cost entries can no longer be flagged", "cost_entry", entry.id
        )
    if entry.has_unresolved_flag:
        logger.debug(f"Cost entry {entry.id} already has an open flag")
        return entry

    now = utcnow()
    entry.is_flagged = True
    entry.flag_reason = reason
    entry.flagged_at = now
    entry.flagged_by = actor
    entry.investigations.append(
        Investigation(status=InvestigationStatus.PENDING, flag_reason=reason, opened_by=actor)
    )
    TripStore(db).touch(trip)
    db.flush()
    record_audit(
        db,
        AuditAction.FLAG_RAISE,
        "cost_entry",
        entry.id,
        actor,
        {"trip_id": trip.id, "reason": reason, "investigation_id": entry.current_investigation.id},
    )
    return entry


@persistence_retry
def raise_flag(db: Session, cost_entry_id: int, reason: str, actor: str) -> CostEntry:
    """Flag a cost entry for review."""
    with unit_of_work(db, "cost_entry", cost_entry_id):
        entry = raise_flag_on_entry(db, TripStore(db).get_cost_entry(cost_entry_id), reason, actor)
    return entry


@persistence_retry
def start_investigation(db: Session, cost_entry_id: int, actor: str, notes: Optional[str] = None) -> CostEntry:
    """Move a flagged entry's investigation from Pending to InProgress."""
    with unit_of_work(db, "cost_entry", cost_entry_id):
        entry = TripStore(db).get_cost_entry(cost_entry_id)
        investigation = entry.current_investigation
        if investigation is None:
            raise ValidationError(f"Cost entry {entry.id} has not been flagged", "cost_entry", entry.id)
        if investigation.status == InvestigationStatus.RESOLVED:
            raise ValidationError(
                f"Investigation on cost entry {entry.id} is already resolved", "cost_entry", entry.id
            )
        if investigation.status == InvestigationStatus.IN_PROGRESS:
            logger.debug(f"Investigation on cost entry {entry.id} already in progress")
            return entry

        investigation.status = InvestigationStatus.IN_PROGRESS
        investigation.started_at = utcnow()
        investigation.started_by = actor
        investigation.investigation_notes = notes
        TripStore(db).touch(TripStore(db).get(entry.trip_id, for_update=True))
        record_audit(
            db,
            AuditAction.FLAG_INVESTIGATE,
            "cost_entry",
            entry.id,
            actor,
            {"investigation_id": investigation.id, "notes": notes},
        )
    return entry


def _apply_correction(entry: CostEntry, amount: Any, currency: Optional[str], notes: Optional[str]) -> Dict[str, Any]:
    changes = {}
    if amount is not None:
        corrected = round_currency(amount)
        if corrected < Decimal("0"):
            raise ValidationError("amount cannot be negative", "cost_entry", entry.id)
        if corrected != entry.amount:
            changes["amount"] = {"before": entry.amount, "after": corrected}
            entry.amount = corrected
    if currency is not None and currency != entry.currency:
        changes["currency"] = {"before": entry.currency, "after": currency}
        entry.currency = currency
    if notes is not None and notes != entry.notes:
        changes["notes"] = {"before": entry.notes, "after": notes}
        entry.notes = notes
    return changes


def mark_completed(db: Session, trip: Trip, actor: str, reason: Optional[str] = None) -> Trip:
    """Stamp a trip completed and audit it. The caller has already checked the gate."""
    before = trip.status
    trip.status = TripStatus.COMPLETED
    trip.completed_at = utcnow()
    trip.completed_by = actor
    trip.auto_completed_reason = reason
    record_audit(
        db,
        AuditAction.TRIP_COMPLETE,
        "trip",
        trip.id,
        actor,
        {"before": before, "after": TripStatus.COMPLETED, "auto_completed_reason": reason},
    )
    return trip


def complete_trip_in_session(db: Session, trip: Trip, actor: str) -> Trip:
    """
    Complete a trip inside the caller's unit of work.

    Raises:
        TripCompletionBlockedError: some cost entry still has an unresolved flag.
    """
    if trip.status == TripStatus.COMPLETED:
        logger.debug(f"Trip {trip.id} already completed")
        return trip
    blocking = unresolved_flags(trip)
    if blocking:
        raise TripCompletionBlockedError(trip.id, [entry.id for entry in blocking])
    return mark_completed(db, trip, actor)


@persistence_retry
def complete_trip(db: Session, trip_id: int, actor: str) -> Trip:
    with unit_of_work(db, "trip", trip_id):
        trip = complete_trip_in_session(db, TripStore(db).get(trip_id, for_update=True), actor)
    return trip


def _complete_trip_if_clear(db: Session, trip: Trip, actor: str) -> bool:
    if trip.status == TripStatus.COMPLETED or unresolved_flags(trip):
        return False
    mark_completed(db, trip, actor, reason=AUTO_COMPLETED_REASON)
    logger.info(f"Trip {trip.id} auto-completed after its last flag was resolved")
    return True


@persistence_retry
def resolve_flag(
    db: Session,
    cost_entry_id: int,
    resolution_comment: str,
    actor: str,
    amount: Any = None,
    currency: Optional[str] = None,
    notes: Optional[str] = None,
) -> CostEntry:
    """
    Resolve a flagged cost entry, optionally correcting it.

    Clears the flag, closes the investigation and then re-checks the
    owning trip, completing it when nothing else is outstanding.
    Resolving an already resolved investigation is a no-op.

    Raises:
        NotFoundError: cost entry or its trip does not exist.
        ValidationError: empty comment, or the entry was never flagged.
    """
    resolution_comment = _require_text(resolution_comment, "resolution_comment", "cost_entry", cost_entry_id)
    with unit_of_work(db, "cost_entry", cost_entry_id):
        trips = TripStore(db)
        entry = trips.get_cost_entry(cost_entry_id)
        trip = trips.get(entry.trip_id, for_update=True)
        investigation = entry.current_investigation
        if investigation is None:
            raise ValidationError(f"Cost entry {entry.id} has not been flagged", "cost_entry", entry.id)
        if investigation.status == InvestigationStatus.RESOLVED:
            logger.debug(f"Investigation on cost entry {entry.id} already resolved")
            return entry

        changes = _apply_correction(entry, amount, currency, notes)
        investigation.status = InvestigationStatus.RESOLVED
        investigation.resolution_notes = resolution_comment
        investigation.resolved_by = actor
        investigation.resolved_at = utcnow()
        entry.is_flagged = False
        trips.touch(trip)
        db.flush()
        record_audit(
            db,
            AuditAction.FLAG_RESOLVE,
            "cost_entry",
            entry.id,
            actor,
            {
                "trip_id": trip.id,
                "investigation_id": investigation.id,
                "resolution": resolution_comment,
                "changes": changes,
            },
        )
        _complete_trip_if_clear(db, trip, actor)
    return entry


def list_flags(
    db: Session, status: Optional[InvestigationStatus] = None, trip_id: Optional[int] = None
) -> List[CostEntry]:
    """Flagged cost entries (current or past) with their current investigation."""
    entries = TripStore(db).flagged_cost_entries(trip_id)
    if status is not None:
        entries = [entry for entry in entries if entry.investigation_status == status]
    return entries
