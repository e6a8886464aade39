"""
Tests for consumption record ingestion.
"""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
import pytest
from fleetcost.core.exceptions import NotFoundError, ValidationError
from fleetcost.models.consumption import ConsumptionRecord
from fleetcost.models.cost_entry import CostEntry
from fleetcost.models.fleet_asset import AssetClass
from fleetcost.services.flag_service import raise_flag
from fleetcost.services.record_service import delete_record, get_record, import_records, update_record
from conftest import ACTOR


def test_create_derives_previous_odometer(db, make_asset, make_record):
    """Test the previous reading comes from the asset's last fill."""
    asset = make_asset()
    make_record(asset, date=date(2024, 2, 27), odometer_reading=123560, previous_odometer_reading=None)
    record = make_record(asset, previous_odometer_reading=None)

    assert record.previous_odometer_reading == 123560
    assert record.distance_travelled == 1440
    assert record.efficiency == pytest.approx(3.2)
    assert record.unit_cost == Decimal("18.50")
    assert record.asset_class == AssetClass.TOWING_UNIT


def test_create_reefer_record(db, make_asset, make_record):
    """Test reefer records carry litres per hour only."""
    record = make_record(make_asset(asset_class=AssetClass.REFRIGERATION_UNIT))
    assert record.is_refrigeration_unit
    assert record.volume_per_hour == pytest.approx(3.5)
    assert record.efficiency is None
    assert record.distance_travelled is None


@pytest.mark.parametrize("asset_class,overrides", [
    (AssetClass.TOWING_UNIT, {"hours_operated": 5}),
    (AssetClass.TOWING_UNIT, {"odometer_reading": None}),
    (AssetClass.TOWING_UNIT, {"volume_filled": 0}),
    (AssetClass.REFRIGERATION_UNIT, {"odometer_reading": 1000}),
    (AssetClass.REFRIGERATION_UNIT, {"hours_operated": None}),
    (AssetClass.REFRIGERATION_UNIT, {"hours_operated": 0}),
])
def test_create_rejects_wrong_quantities(db, make_asset, make_record, asset_class, overrides):
    """Test class-specific quantities are enforced."""
    asset = make_asset(asset_class=asset_class)
    with pytest.raises(ValidationError):
        make_record(asset, **overrides)
    assert db.query(ConsumptionRecord).count() == 0


def test_create_for_unknown_asset(db, make_record):
    """Test records need a registered asset."""
    with pytest.raises(NotFoundError):
        make_record(SimpleNamespace(id=404, is_refrigeration_unit=False))


def test_update_recomputes_and_refreshes_entry(db, make_asset, make_trip, make_record):
    """Test editing a fill flows through to its cost entry."""
    trip = make_trip()
    record = make_record(make_asset(), trip_id=trip.id)
    update_record(db, record.id, {"volume_filled": 400, "total_cost": Decimal("7600")}, ACTOR)

    assert record.efficiency == pytest.approx(3.6)
    assert record.unit_cost == Decimal("19.00")
    entry = db.query(CostEntry).filter(CostEntry.source_consumption_record_id == record.id).one()
    assert entry.amount == Decimal("7600.00")
    assert entry.notes == "Diesel: 400 litres at Engen Beitbridge"


def test_update_rejects_unknown_fields(db, make_asset, make_record):
    """Test asset and allocation are not editable as plain fields."""
    record = make_record(make_asset())
    with pytest.raises(ValidationError):
        update_record(db, record.id, {"fleet_asset_id": 2}, ACTOR)


def test_delete_removes_entry_and_unlinks_reefers(db, make_asset, make_trip, make_record):
    """Test deletion leaves no cost entry or dangling reefer link."""
    trip = make_trip()
    towing = make_record(make_asset(), trip_id=trip.id)
    reefer = make_record(make_asset(asset_class=AssetClass.REFRIGERATION_UNIT), towing_unit_id=towing.id)
    assert len(trip.costs) == 2

    towing_id = towing.id
    assert delete_record(db, towing_id, ACTOR) is True
    assert trip.costs == []
    assert reefer.linked_towing_unit_id is None
    with pytest.raises(NotFoundError):
        get_record(db, towing_id)
    assert delete_record(db, towing_id, ACTOR) is False


def test_delete_refused_while_flag_open(db, make_asset, make_trip, make_record):
    """Test investigations are never removed by deleting their record."""
    trip = make_trip()
    record = make_record(make_asset(), trip_id=trip.id)
    raise_flag(db, trip.costs[0].id, "Pump not calibrated", ACTOR)
    with pytest.raises(ValidationError):
        delete_record(db, record.id, ACTOR)
    assert get_record(db, record.id).trip_id == trip.id


def test_import_skips_duplicates_and_reports_failures(db, make_asset, make_record):
    """Test bulk import counts."""
    asset = make_asset()
    existing = make_record(asset)
    rows = [
        {
            "fleet_number": "h1",
            "date": date(2024, 3, 1),
            "volume_filled": 450,
            "odometer_reading": 125000,
            "total_cost": Decimal("8325"),
        },
        {
            "fleet_number": "H1",
            "date": date(2024, 3, 4),
            "volume_filled": 430,
            "odometer_reading": 126400,
            "total_cost": Decimal("7955"),
        },
        {
            "fleet_number": "H1",
            "date": date(2024, 3, 7),
            "volume_filled": 440,
            "odometer_reading": 127800,
            "total_cost": Decimal("8140"),
        },
        {
            "fleet_number": "X99",
            "date": date(2024, 3, 7),
            "volume_filled": 100,
            "odometer_reading": 1,
            "total_cost": Decimal("1850"),
        },
    ]
    result = import_records(db, rows, ACTOR)

    assert result.imported_count == 2
    assert result.skipped == [{"row": 0, "reason": "duplicate", "record_id": existing.id}]
    assert result.failed_count == 1
    assert result.failed[0]["row"] == 3
    assert result.failed[0]["error"] == "ValidationError"
    imported = get_record(db, result.imported[0])
    assert imported.previous_odometer_reading == 125000
    assert imported.distance_travelled == 1400


@pytest.mark.parametrize("field", ["date", "volume_filled", "total_cost"])
def test_update_rejects_clearing_required_fields(db, make_asset, make_record, field):
    """Test required fields cannot be nulled out."""
    record = make_record(make_asset())
    with pytest.raises(ValidationError) as exc_info:
        update_record(db, record.id, {field: None}, ACTOR)
    assert exc_info.value.entity_id == record.id
    assert get_record(db, record.id).date == date(2024, 3, 1)
