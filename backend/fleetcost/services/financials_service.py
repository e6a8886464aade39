"""
Trip financial aggregator: revenue against the trip's current cost list.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session
from fleetcost.core.utils import round_currency
from fleetcost.db.stores import TripStore
from fleetcost.models.cost_entry import DIESEL_CATEGORY
from fleetcost.models.trip import Trip

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class FinancialSummary:
    """Read-only roll-up of a trip. Amounts are summed as recorded, without currency conversion."""
    trip_id: int
    currency: str
    revenue: Decimal
    total_cost: Decimal
    flagged_cost: Decimal
    system_generated_cost: Decimal
    diesel_cost: Decimal
    gross_margin: Decimal
    margin_percent: Optional[float]
    distance_km: Optional[float]
    revenue_per_km: Optional[Decimal]
    cost_per_km: Optional[Decimal]
    diesel_volume: float
    fuel_efficiency: Optional[float]
    unresolved_flag_count: int
    cost_entry_count: int


def _per_km(amount: Decimal, distance: Optional[float]) -> Optional[Decimal]:
    if not distance or distance <= 0:
        return None
    return round_currency(amount / Decimal(str(distance)))


def summarize(trip: Trip) -> FinancialSummary:
    """
    Summarise a trip's costs against its revenue.

    The baseline total excludes flagged and system-generated entries;
    those are reported on their own. Diesel volume counts towing unit
    fills only, so fuel efficiency is trip distance per litre burned by
    the towing vehicle.
    """
    revenue = round_currency(trip.base_revenue or 0)
    total_cost = flagged_cost = system_cost = diesel_cost = ZERO
    diesel_volume = 0.0
    unresolved = 0

    for entry in trip.costs:
        amount = round_currency(entry.amount or 0)
        if entry.has_unresolved_flag:
            unresolved += 1
        if entry.is_flagged:
            flagged_cost += amount
        elif entry.is_system_generated:
            system_cost += amount
        else:
            total_cost += amount
            if entry.category == DIESEL_CATEGORY:
                diesel_cost += amount
        record = entry.source_record
        if entry.category == DIESEL_CATEGORY and record is not None and not record.is_refrigeration_unit:
            diesel_volume += record.volume_filled or 0.0

    gross_margin = revenue - total_cost
    margin_percent = float(round_currency(gross_margin / revenue * 100)) if revenue > 0 else None
    distance = trip.distance_km
    fuel_efficiency = distance / diesel_volume if distance and diesel_volume > 0 else None

    return FinancialSummary(
        trip_id=trip.id,
        currency=trip.revenue_currency,
        revenue=revenue,
        total_cost=total_cost,
        flagged_cost=flagged_cost,
        system_generated_cost=system_cost,
        diesel_cost=diesel_cost,
        gross_margin=gross_margin,
        margin_percent=margin_percent,
        distance_km=distance,
        revenue_per_km=_per_km(revenue, distance),
        cost_per_km=_per_km(total_cost, distance),
        diesel_volume=diesel_volume,
        fuel_efficiency=fuel_efficiency,
        unresolved_flag_count=unresolved,
        cost_entry_count=len(trip.costs),
    )


def get_trip_financials(db: Session, trip_id: int) -> FinancialSummary:
    return summarize(TripStore(db).get(trip_id))
