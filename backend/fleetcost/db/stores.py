"""
Narrow read/write interfaces over the SQLAlchemy session.

Services talk to these stores instead of querying models ad hoc, so the
engine only depends on the handful of lookups it actually needs.
Lookups that take ``for_update`` lock the row (SELECT ... FOR UPDATE) on
backends that support it, which serializes writers on the same trip or
record while leaving unrelated trips uncontended. Several trips are locked
together in ascending id order, so two moves in opposite directions wait
on each other rather than deadlock.
"""
from datetime import date
from typing import Dict, Iterable, List, Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from fleetcost.core.exceptions import NotFoundError
from fleetcost.core.utils import utcnow
from fleetcost.models.fleet_asset import FleetAsset
from fleetcost.models.consumption import ConsumptionRecord, AllocationKind
from fleetcost.models.trip import Trip, TripStatus
from fleetcost.models.cost_entry import CostEntry, DIESEL_CATEGORY
from fleetcost.models.norm import EfficiencyNorm


class FleetAssetStore:
    """Fleet asset lookups."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, asset_id: int) -> FleetAsset:
        asset = self.db.query(FleetAsset).filter(FleetAsset.id == asset_id).first()
        if not asset:
            raise NotFoundError("fleet_asset", asset_id)
        return asset

    def get_by_fleet_number(self, fleet_number: str) -> Optional[FleetAsset]:
        return self.db.query(FleetAsset).filter(FleetAsset.fleet_number == fleet_number).first()

    def list(self) -> List[FleetAsset]:
        return self.db.query(FleetAsset).order_by(FleetAsset.fleet_number).all()

    def add(self, asset: FleetAsset) -> FleetAsset:
        self.db.add(asset)
        self.db.flush()
        return asset


class ConsumptionRecordStore:
    """Consumption record lookups."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, record_id: int, for_update: bool = False) -> ConsumptionRecord:
        query = self.db.query(ConsumptionRecord).filter(ConsumptionRecord.id == record_id)
        if for_update:
            query = query.with_for_update()
        record = query.first()
        if not record:
            raise NotFoundError("consumption_record", record_id)
        return record

    def find(self, record_id: int) -> Optional[ConsumptionRecord]:
        return self.db.query(ConsumptionRecord).filter(ConsumptionRecord.id == record_id).first()

    def find_previous_odometer_record(
        self, fleet_asset_id: int, record_date: date, exclude_id: Optional[int] = None
    ) -> Optional[ConsumptionRecord]:
        """Most recent earlier fill of the same asset that has an odometer reading."""
        query = self.db.query(ConsumptionRecord).filter(
            ConsumptionRecord.fleet_asset_id == fleet_asset_id,
            ConsumptionRecord.date <= record_date,
            ConsumptionRecord.odometer_reading.isnot(None),
        )
        if exclude_id is not None:
            query = query.filter(ConsumptionRecord.id != exclude_id)
        return query.order_by(ConsumptionRecord.date.desc(), ConsumptionRecord.id.desc()).first()

    def find_duplicate(
        self,
        fleet_asset_id: int,
        record_date: date,
        volume_filled: float,
        odometer_reading: Optional[float],
        hours_operated: Optional[float],
    ) -> Optional[ConsumptionRecord]:
        query = self.db.query(ConsumptionRecord).filter(
            ConsumptionRecord.fleet_asset_id == fleet_asset_id,
            ConsumptionRecord.date == record_date,
            ConsumptionRecord.volume_filled == volume_filled,
        )
        if odometer_reading is not None:
            query = query.filter(ConsumptionRecord.odometer_reading == odometer_reading)
        if hours_operated is not None:
            query = query.filter(ConsumptionRecord.hours_operated == hours_operated)
        return query.first()

    def list(
        self,
        fleet_asset_id: Optional[int] = None,
        trip_id: Optional[int] = None,
        debriefed: Optional[bool] = None,
    ) -> List[ConsumptionRecord]:
        query = self.db.query(ConsumptionRecord)
        if fleet_asset_id is not None:
            query = query.filter(ConsumptionRecord.fleet_asset_id == fleet_asset_id)
        if trip_id is not None:
            query = query.filter(
                ConsumptionRecord.allocation_kind == AllocationKind.DIRECT,
                ConsumptionRecord.allocation_target_id == trip_id,
            )
        if debriefed is True:
            query = query.filter(ConsumptionRecord.debriefed_at.isnot(None))
        elif debriefed is False:
            query = query.filter(ConsumptionRecord.debriefed_at.is_(None))
        return query.order_by(ConsumptionRecord.date, ConsumptionRecord.id).all()

    def list_linked_to_towing_unit(self, unit_id: int) -> List[ConsumptionRecord]:
        return self.db.query(ConsumptionRecord).filter(
            ConsumptionRecord.allocation_kind == AllocationKind.VIA_TOWING_UNIT,
            ConsumptionRecord.allocation_target_id == unit_id,
        ).order_by(ConsumptionRecord.id).all()

    def add(self, record: ConsumptionRecord) -> ConsumptionRecord:
        self.db.add(record)
        self.db.flush()
        return record

    def delete(self, record: ConsumptionRecord) -> None:
        self.db.delete(record)
        self.db.flush()


class TripStore:
    """Trip and cost entry lookups."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, trip_id: int, for_update: bool = False) -> Trip:
        trip = self.find(trip_id, for_update=for_update)
        if not trip:
            raise NotFoundError("trip", trip_id)
        return trip

    def find(self, trip_id: int, for_update: bool = False) -> Optional[Trip]:
        query = self.db.query(Trip).filter(Trip.id == trip_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def lock(self, trip_ids: Iterable[Optional[int]]) -> Dict[int, Trip]:
        """Lock several trips, always in ascending id order."""
        ids = sorted({trip_id for trip_id in trip_ids if trip_id is not None})
        if not ids:
            return {}
        query = self.db.query(Trip).filter(Trip.id.in_(ids)).order_by(Trip.id).with_for_update()
        return {trip.id: trip for trip in query.all()}

    def list(self, status: Optional[TripStatus] = None) -> List[Trip]:
        query = self.db.query(Trip)
        if status is not None:
            query = query.filter(Trip.status == status)
        return query.order_by(Trip.id).all()

    def add(self, trip: Trip) -> Trip:
        self.db.add(trip)
        self.db.flush()
        return trip

    def touch(self, trip: Trip) -> None:
        """Mark the trip row dirty so its version check guards the cost list."""
        trip.updated_at = utcnow()

    def get_cost_entry(self, cost_entry_id: int) -> CostEntry:
        entry = self.db.query(CostEntry).filter(CostEntry.id == cost_entry_id).first()
        if not entry:
            raise NotFoundError("cost_entry", cost_entry_id)
        return entry

    def cost_entries_for_record(self, record_id: int, reference_numbers: List[str] = ()) -> List[CostEntry]:
        """Entries mirroring a record, by foreign key or by legacy reference number."""
        conditions = [CostEntry.source_consumption_record_id == record_id]
        if reference_numbers:
            conditions.append(
                (CostEntry.source_consumption_record_id.is_(None))
                & (CostEntry.category == DIESEL_CATEGORY)
                & (CostEntry.reference_number.in_(list(reference_numbers)))
            )
        return self.db.query(CostEntry).filter(or_(*conditions)).order_by(CostEntry.id).all()

    def diesel_cost_entries(self) -> List[CostEntry]:
        return self.db.query(CostEntry).filter(CostEntry.category == DIESEL_CATEGORY).order_by(CostEntry.id).all()

    def flagged_cost_entries(self, trip_id: Optional[int] = None) -> List[CostEntry]:
        """Entries that are or were flagged (with at least one investigation)."""
        query = self.db.query(CostEntry).filter(
            or_(CostEntry.is_flagged.is_(True), CostEntry.investigations.any())
        )
        if trip_id is not None:
            query = query.filter(CostEntry.trip_id == trip_id)
        return query.order_by(CostEntry.id).all()


class NormStore:
    """Efficiency norm lookups."""

    def __init__(self, db: Session):
        self.db = db

    def get_for_asset(self, fleet_asset_id: int) -> Optional[EfficiencyNorm]:
        return self.db.query(EfficiencyNorm).filter(EfficiencyNorm.fleet_asset_id == fleet_asset_id).first()

    def list(self) -> List[EfficiencyNorm]:
        return self.db.query(EfficiencyNorm).order_by(EfficiencyNorm.fleet_asset_id).all()

    def save(self, norm: EfficiencyNorm) -> EfficiencyNorm:
        self.db.add(norm)
        self.db.flush()
        return norm

    def delete(self, norm: EfficiencyNorm) -> None:
        self.db.delete(norm)
        self.db.flush()
