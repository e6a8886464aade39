"""
Metrics calculator for consumption records.

Pure functions: distance travelled and km/l for towing units, litres per
hour for refrigeration units, and the unit cost of a fill. Physical
quantities stay unrounded; currency is rounded to cents.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional
from fleetcost.core.exceptions import ValidationError
from fleetcost.core.utils import round_currency


@dataclass(frozen=True)
class DerivedMetrics:
    """Values computed from a fill, never entered by hand."""
    distance_travelled: Optional[float] = None
    efficiency: Optional[float] = None
    volume_per_hour: Optional[float] = None
    unit_cost: Optional[Decimal] = None


def distance_travelled(odometer_reading: Optional[float], previous_odometer_reading: Optional[float]) -> Optional[float]:
    """Distance since the previous fill; None unless strictly positive."""
    if odometer_reading is None or previous_odometer_reading is None:
        return None
    distance = odometer_reading - previous_odometer_reading
    return distance if distance > 0 else None


def efficiency(distance: Optional[float], volume_filled: Optional[float]) -> Optional[float]:
    """Kilometres per litre."""
    if distance is None or volume_filled is None or distance <= 0 or volume_filled <= 0:
        return None
    return distance / volume_filled


def volume_per_hour(volume_filled: Optional[float], hours_operated: Optional[float]) -> Optional[float]:
    """Litres per engine hour for refrigeration units."""
    if volume_filled is None or hours_operated is None or volume_filled <= 0 or hours_operated <= 0:
        return None
    return volume_filled / hours_operated


def unit_cost(total_cost: Any, volume_filled: float, supplied: Any = None) -> Optional[Decimal]:
    """Supplied unit cost as-is, otherwise total cost over volume to the cent."""
    if supplied is not None:
        return Decimal(str(supplied))
    if total_cost is None:
        return None
    return round_currency(Decimal(str(total_cost)) / Decimal(str(volume_filled)))


def compute_metrics(record: Any) -> DerivedMetrics:
    """
    Derive metrics for a record.

    ``record`` needs ``is_refrigeration_unit``, ``volume_filled``,
    ``total_cost``, ``unit_cost`` and the class-specific quantities
    (odometer readings for towing units, ``hours_operated`` for reefers).

    Raises:
        ValidationError: a required quantity is missing or out of range.
    """
    record_id = getattr(record, "id", None)
    volume = record.volume_filled
    if volume is None or volume <= 0:
        raise ValidationError("volume_filled must be greater than zero", "consumption_record", record_id)
    if record.total_cost is None or Decimal(str(record.total_cost)) < 0:
        raise ValidationError("total_cost must be zero or more", "consumption_record", record_id)

    cost = unit_cost(record.total_cost, volume, record.unit_cost)

    if record.is_refrigeration_unit:
        hours = record.hours_operated
        if hours is None or hours <= 0:
            raise ValidationError(
                "hours_operated must be greater than zero for refrigeration units",
                "consumption_record",
                record_id,
            )
        return DerivedMetrics(volume_per_hour=volume_per_hour(volume, hours), unit_cost=cost)

    odometer = record.odometer_reading
    if odometer is None or odometer < 0:
        raise ValidationError(
            "odometer_reading is required for towing units and cannot be negative",
            "consumption_record",
            record_id,
        )
    distance = distance_travelled(odometer, record.previous_odometer_reading)
    return DerivedMetrics(
        distance_travelled=distance,
        efficiency=efficiency(distance, volume),
        unit_cost=cost,
    )
