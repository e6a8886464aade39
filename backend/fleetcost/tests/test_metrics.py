"""
Tests for the metrics calculator.
"""
from decimal import Decimal
from types import SimpleNamespace
import pytest
from fleetcost.core.exceptions import ValidationError
from fleetcost.services.metrics_service import (
    compute_metrics, distance_travelled, efficiency, unit_cost, volume_per_hour
)


def towing(**overrides):
    values = dict(
        id=None,
        is_refrigeration_unit=False,
        volume_filled=450,
        total_cost=Decimal("8325"),
        unit_cost=None,
        odometer_reading=125000,
        previous_odometer_reading=123560,
        hours_operated=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def reefer(**overrides):
    values = dict(
        id=None,
        is_refrigeration_unit=True,
        volume_filled=35,
        total_cost=Decimal("647.50"),
        unit_cost=None,
        odometer_reading=None,
        previous_odometer_reading=None,
        hours_operated=10,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_towing_example_record():
    """Test distance, efficiency and unit cost for the reference fill."""
    metrics = compute_metrics(towing())
    assert metrics.distance_travelled == 1440
    assert metrics.efficiency == pytest.approx(3.2)
    assert metrics.unit_cost == Decimal("18.50")
    assert metrics.volume_per_hour is None


def test_efficiency_undefined_without_previous_odometer():
    """Test that a first fill has no distance or efficiency."""
    metrics = compute_metrics(towing(previous_odometer_reading=None))
    assert metrics.distance_travelled is None
    assert metrics.efficiency is None


def test_distance_never_negative():
    """Test a rolled-back odometer yields no distance."""
    metrics = compute_metrics(towing(odometer_reading=123000))
    assert metrics.distance_travelled is None
    assert metrics.efficiency is None
    assert distance_travelled(100, 100) is None


@pytest.mark.parametrize("odometer,previous,volume", [(1000, 500, 100), (98765, 98000, 255.5), (10, 9, 0.5)])
def test_efficiency_is_distance_over_volume(odometer, previous, volume):
    """Test efficiency for several fills."""
    metrics = compute_metrics(towing(odometer_reading=odometer, previous_odometer_reading=previous, volume_filled=volume))
    assert metrics.efficiency == pytest.approx((odometer - previous) / volume)


def test_reefer_volume_per_hour():
    """Test litres per hour for a refrigeration unit."""
    metrics = compute_metrics(reefer())
    assert metrics.volume_per_hour == pytest.approx(3.5)
    assert metrics.distance_travelled is None
    assert metrics.efficiency is None
    assert metrics.unit_cost == Decimal("18.50")


def test_helpers_return_none_for_non_positive_inputs():
    """Test undefined metrics never raise from the helpers."""
    assert volume_per_hour(35, 0) is None
    assert volume_per_hour(35, -2) is None
    assert efficiency(None, 450) is None
    assert efficiency(1440, 0) is None


def test_supplied_unit_cost_is_kept():
    """Test a supplied unit cost is used as-is."""
    assert unit_cost(Decimal("8325"), 450, supplied=Decimal("18.499")) == Decimal("18.499")
    assert compute_metrics(towing(unit_cost=Decimal("19.10"))).unit_cost == Decimal("19.10")


def test_unit_cost_rounds_half_up():
    """Test currency rounding to the cent."""
    assert unit_cost(Decimal("10"), 3) == Decimal("3.33")
    assert unit_cost(Decimal("0.05"), 2) == Decimal("0.03")


@pytest.mark.parametrize("record", [
    towing(volume_filled=0),
    towing(volume_filled=None),
    towing(total_cost=Decimal("-1")),
    towing(odometer_reading=None),
    towing(odometer_reading=-5),
    reefer(hours_operated=0),
    reefer(hours_operated=None),
])
def test_invalid_quantities_raise(record):
    """Test missing or non-positive quantities are rejected."""
    with pytest.raises(ValidationError):
        compute_metrics(record)
