"""
Tests for the norms registry.
"""
from types import SimpleNamespace
import pytest
from fleetcost.core.exceptions import NotFoundError, ValidationError
from fleetcost.models.audit import AuditEntry
from fleetcost.models.fleet_asset import AssetClass
from fleetcost.models.norm import EfficiencyNorm
from fleetcost.services.norms_service import (
    Directionality, classify, classify_record, delete_norm, list_norms, reset_norms_to_defaults, upsert_norm
)
from conftest import ACTOR


def record_with(efficiency=None, volume_per_hour=None, reefer=False):
    return SimpleNamespace(is_refrigeration_unit=reefer, efficiency=efficiency, volume_per_hour=volume_per_hour)


def test_acceptable_range():
    """Test the range is expected value plus or minus the tolerance."""
    low, high = EfficiencyNorm(expected_value=3.2, tolerance_percent=10).acceptable_range
    assert low == pytest.approx(2.88)
    assert high == pytest.approx(3.52)


def test_within_tolerance():
    """Test the reference fill against a 3.2 km/l norm."""
    result = classify(record_with(efficiency=3.2), EfficiencyNorm(expected_value=3.2, tolerance_percent=10))
    assert result.within_tolerance is True
    assert result.directionality == Directionality.WITHIN
    assert result.requires_debrief is False


def test_below_tolerance():
    """Test the reference fill against a 4.0 km/l norm."""
    result = classify(record_with(efficiency=3.2), EfficiencyNorm(expected_value=4.0, tolerance_percent=10))
    assert result.within_tolerance is False
    assert result.directionality == Directionality.BELOW
    assert result.acceptable_range == (pytest.approx(3.6), pytest.approx(4.4))
    assert result.requires_debrief is True


def test_above_tolerance():
    """Test a metric above the range."""
    result = classify(record_with(efficiency=3.2), EfficiencyNorm(expected_value=2.5, tolerance_percent=10))
    assert result.directionality == Directionality.ABOVE
    assert result.within_tolerance is False


def test_range_bounds_are_inclusive():
    """Test a metric exactly on the lower bound is within tolerance."""
    result = classify(record_with(efficiency=1440 / 450), EfficiencyNorm(expected_value=4.0, tolerance_percent=20))
    assert result.within_tolerance is True


def test_reefer_compares_volume_per_hour():
    """Test reefers are classified on litres per hour."""
    norm = EfficiencyNorm(expected_value=3.5, tolerance_percent=15, is_refrigeration_unit=True)
    result = classify(record_with(efficiency=9.9, volume_per_hour=4.5, reefer=True), norm)
    assert result.directionality == Directionality.ABOVE


def test_missing_norm_or_metric_is_unknown():
    """Test absent data never requires a debrief."""
    assert classify(record_with(efficiency=3.2), None).directionality == Directionality.UNKNOWN
    result = classify(record_with(efficiency=None), EfficiencyNorm(expected_value=4.0, tolerance_percent=10))
    assert result.directionality == Directionality.UNKNOWN
    assert result.within_tolerance is True


def test_upsert_norm_creates_then_edits(db, make_asset):
    """Test one norm per asset, audited on every write."""
    asset = make_asset()
    upsert_norm(db, asset.id, 3.2, 10, ACTOR)
    norm = upsert_norm(db, asset.id, 3.4, 12.5, ACTOR)
    assert len(list_norms(db)) == 1
    assert norm.expected_value == 3.4
    assert norm.tolerance_percent == 12.5
    assert norm.updated_by == ACTOR
    assert db.query(AuditEntry).filter(AuditEntry.action == "norm.upsert").count() == 2


@pytest.mark.parametrize("expected,tolerance", [(0, 10), (-1, 10), (3.2, -1), (3.2, 50.5)])
def test_upsert_norm_rejects_out_of_range(db, make_asset, expected, tolerance):
    """Test tolerance bounds and positive expected value."""
    asset = make_asset()
    with pytest.raises(ValidationError):
        upsert_norm(db, asset.id, expected, tolerance, ACTOR)


def test_upsert_norm_accepts_bounds(db, make_asset):
    """Test 0 and 50 percent are allowed."""
    asset = make_asset()
    assert upsert_norm(db, asset.id, 3.2, 0, ACTOR).tolerance_percent == 0
    assert upsert_norm(db, asset.id, 3.2, 50, ACTOR).tolerance_percent == 50


def test_upsert_norm_unknown_asset(db):
    """Test norms need a registered asset."""
    with pytest.raises(NotFoundError):
        upsert_norm(db, 404, 3.2, 10, ACTOR)


def test_delete_norm(db, make_asset):
    """Test deletion is a no-op the second time."""
    asset = make_asset()
    upsert_norm(db, asset.id, 3.2, 10, ACTOR)
    assert delete_norm(db, asset.id, ACTOR) is True
    assert delete_norm(db, asset.id, ACTOR) is False
    assert list_norms(db) == []


def test_reset_norms_to_defaults(db, make_asset):
    """Test every asset receives the default for its class."""
    horse = make_asset()
    reefer = make_asset(asset_class=AssetClass.REFRIGERATION_UNIT)
    upsert_norm(db, horse.id, 9.9, 40, ACTOR)
    norms = {norm.fleet_asset_id: norm for norm in reset_norms_to_defaults(db, ACTOR)}
    assert (norms[horse.id].expected_value, norms[horse.id].tolerance_percent) == (3.2, 10.0)
    assert (norms[reefer.id].expected_value, norms[reefer.id].tolerance_percent) == (3.5, 15.0)
    assert norms[reefer.id].is_refrigeration_unit is True


def test_classify_stored_record(db, make_asset, make_record):
    """Test live classification of a stored record."""
    asset = make_asset()
    record = make_record(asset)
    assert classify_record(db, record.id).directionality == Directionality.UNKNOWN
    upsert_norm(db, asset.id, 4.0, 10, ACTOR)
    assert classify_record(db, record.id).directionality == Directionality.BELOW
