"""
Trip administration: creation, non-diesel costs and status transitions.
"""
import logging
from datetime import date
from typing import Any, List, Optional
from sqlalchemy.orm import Session
from fleetcost.core.config import settings
from fleetcost.core.exceptions import ValidationError
from fleetcost.core.utils import round_currency
from fleetcost.db.stores import FleetAssetStore, TripStore
from fleetcost.db.transaction import persistence_retry, unit_of_work
from fleetcost.models.cost_entry import CostEntry, DIESEL_CATEGORY
from fleetcost.models.trip import Trip, TripStatus, TRIP_STATUS_ORDER
from fleetcost.services.audit_service import AuditAction, record_audit, snapshot
from fleetcost.services.flag_service import complete_trip_in_session

logger = logging.getLogger(__name__)


@persistence_retry
def create_trip(
    db: Session,
    route: str,
    actor: str,
    base_revenue: Any = 0,
    revenue_currency: Optional[str] = None,
    distance_km: Optional[float] = None,
    fleet_asset_id: Optional[int] = None,
    client_name: Optional[str] = None,
    driver_name: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> Trip:
    if not route or not route.strip():
        raise ValidationError("route is required", "trip")
    if distance_km is not None and distance_km < 0:
        raise ValidationError("distance_km cannot be negative", "trip")
    if start_date and end_date and end_date < start_date:
        raise ValidationError("end_date cannot be before start_date", "trip")

    with unit_of_work(db, "trip"):
        if fleet_asset_id is not None:
            FleetAssetStore(db).get(fleet_asset_id)
        trip = Trip(
            route=route.strip(),
            base_revenue=round_currency(base_revenue or 0),
            revenue_currency=revenue_currency or settings.DEFAULT_CURRENCY,
            distance_km=distance_km,
            fleet_asset_id=fleet_asset_id,
            client_name=client_name,
            driver_name=driver_name,
            start_date=start_date,
            end_date=end_date,
            status=TripStatus.ACTIVE,
        )
        TripStore(db).add(trip)
        record_audit(db, AuditAction.TRIP_CREATE, "trip", trip.id, actor, {"after": snapshot(trip)})
    return trip


def get_trip(db: Session, trip_id: int) -> Trip:
    return TripStore(db).get(trip_id)


def list_trips(db: Session, status: Optional[TripStatus] = None) -> List[Trip]:
    return TripStore(db).list(status)


@persistence_retry
def add_cost_entry(
    db: Session,
    trip_id: int,
    category: str,
    amount: Any,
    actor: str,
    currency: Optional[str] = None,
    sub_category: Optional[str] = None,
    reference_number: Optional[str] = None,
    entry_date: Optional[date] = None,
    notes: Optional[str] = None,
    is_system_generated: bool = False,
    system_cost_type: Optional[str] = None,
) -> CostEntry:
    """
    Add a non-diesel cost to a trip.

    Diesel entries are written only by the allocation ledger.
    """
    if not category or not category.strip():
        raise ValidationError("category is required", "trip", trip_id)
    if category.strip().lower() == DIESEL_CATEGORY.lower():
        raise ValidationError(
            "Diesel costs come from consumption records; allocate the record instead", "trip", trip_id
        )
    amount = round_currency(amount)
    if amount is None or amount < 0:
        raise ValidationError("amount must be zero or more", "trip", trip_id)

    with unit_of_work(db, "trip", trip_id):
        trips = TripStore(db)
        trip = trips.get(trip_id, for_update=True)
        if trip.status == TripStatus.COMPLETED:
            raise ValidationError(f"Trip {trip.id} is completed; no further costs can be added", "trip", trip.id)
        entry = CostEntry(
            category=category.strip(),
            sub_category=sub_category,
            amount=amount,
            currency=currency or trip.revenue_currency or settings.DEFAULT_CURRENCY,
            reference_number=reference_number,
            date=entry_date,
            notes=notes,
            is_system_generated=is_system_generated,
            system_cost_type=system_cost_type,
        )
        trip.costs.append(entry)
        trips.touch(trip)
        db.flush()
        record_audit(db, AuditAction.COST_ADD, "trip", trip.id, actor, {"cost_entry": snapshot(entry)})
    return entry


@persistence_retry
def update_trip_status(db: Session, trip_id: int, status: TripStatus, actor: str) -> Trip:
    """
    Move a trip forward through active, shipped, delivered and completed.

    Moving to the current status is a no-op; moving backwards is refused.
    Completion goes through the unresolved-flag gate.
    """
    with unit_of_work(db, "trip", trip_id):
        trip = TripStore(db).get(trip_id, for_update=True)
        if status == trip.status:
            logger.debug(f"Trip {trip.id} already {status.value}")
            return trip
        if TRIP_STATUS_ORDER.index(status) < TRIP_STATUS_ORDER.index(trip.status):
            raise ValidationError(
                f"Trip {trip.id} cannot move from {trip.status.value} back to {status.value}", "trip", trip.id
            )
        if status == TripStatus.COMPLETED:
            complete_trip_in_session(db, trip, actor)
        else:
            before = trip.status
            trip.status = status
            record_audit(db, AuditAction.TRIP_STATUS, "trip", trip.id, actor, {"before": before, "after": status})
    return trip
