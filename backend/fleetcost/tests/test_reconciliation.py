"""
Tests for the reconciliation pass.
"""
from decimal import Decimal
import pytest
from fleetcost.models.audit import AuditEntry
from fleetcost.models.consumption import Unallocated
from fleetcost.models.cost_entry import CostEntry, DIESEL_CATEGORY
from fleetcost.services.flag_service import raise_flag
from fleetcost.services.reconciliation_service import (
    DUPLICATED, LEGACY_REFERENCE, MISSING, ORPHANED, WRONG_TRIP, find_allocation_issues, reconcile_allocations
)
from conftest import ACTOR


@pytest.fixture
def allocated(make_asset, make_trip, make_record):
    trip = make_trip()
    record = make_record(make_asset(), trip_id=trip.id)
    return record, trip


def kinds(db):
    return sorted(issue.kind for issue in find_allocation_issues(db))


def entries_for(db, record):
    return db.query(CostEntry).filter(
        (CostEntry.source_consumption_record_id == record.id)
        | (CostEntry.reference_number == f"DIESEL-{record.id}")
    ).all()


def legacy_entry(reference_number, amount="8325.00"):
    return CostEntry(
        category=DIESEL_CATEGORY,
        amount=Decimal(amount),
        currency="ZAR",
        reference_number=reference_number,
    )


def test_clean_ledger_has_no_issues(db, allocated):
    """Test a consistent ledger reports nothing and reconcile is a no-op."""
    assert find_allocation_issues(db) == []
    result = reconcile_allocations(db, ACTOR)
    assert result["issues"] == []
    assert db.query(AuditEntry).filter(AuditEntry.action == "allocation.reconcile").count() == 0


def test_legacy_entry_gets_record_id(db, allocated):
    """Test entries matched only by reference number are backfilled."""
    record, trip = allocated
    trip.costs[0].source_consumption_record_id = None
    db.commit()
    assert kinds(db) == [LEGACY_REFERENCE]

    reconcile_allocations(db, ACTOR)
    assert trip.costs[0].source_consumption_record_id == record.id
    assert find_allocation_issues(db) == []


def test_duplicate_on_second_trip_is_removed(db, allocated, make_trip):
    """Test an entry left on another trip by an interrupted move."""
    record, trip = allocated
    other = make_trip(route="Durban - Harare")
    other.costs.append(legacy_entry(f"DIESEL-{record.id}"))
    db.commit()
    assert kinds(db) == [DUPLICATED, LEGACY_REFERENCE]

    result = reconcile_allocations(db, ACTOR)
    assert [entry.trip_id for entry in entries_for(db, record)] == [trip.id]
    assert other.costs == []
    assert len(result["repaired"]) == 1
    assert db.query(AuditEntry).filter(AuditEntry.action == "allocation.reconcile").count() == 1


def test_missing_entry_is_recreated(db, allocated):
    """Test an allocated record without its entry."""
    record, trip = allocated
    trip.costs.remove(trip.costs[0])
    db.commit()
    assert kinds(db) == [MISSING]

    reconcile_allocations(db, ACTOR)
    assert [entry.trip_id for entry in entries_for(db, record)] == [trip.id]


def test_entry_on_wrong_trip_is_moved(db, allocated, make_trip):
    """Test an entry sitting on a trip the record is not allocated to."""
    record, trip = allocated
    other = make_trip(route="Durban - Harare")
    trip.costs[0].trip_id = other.id
    db.commit()
    assert kinds(db) == [WRONG_TRIP]

    reconcile_allocations(db, ACTOR)
    assert [entry.trip_id for entry in entries_for(db, record)] == [trip.id]
    assert other.costs == []


def test_entry_of_unallocated_record_is_removed(db, allocated):
    """Test an entry whose record no longer points at any trip."""
    record, trip = allocated
    record.allocation = Unallocated()
    db.commit()
    assert kinds(db) == [ORPHANED]

    reconcile_allocations(db, ACTOR)
    assert trip.costs == []


def test_entry_for_deleted_record_is_removed(db, make_trip):
    """Test legacy entries pointing at a record that no longer exists."""
    trip = make_trip()
    trip.costs.append(legacy_entry("DIESEL-999", amount="100.00"))
    db.commit()
    issues = find_allocation_issues(db)
    assert [(issue.kind, issue.record_id) for issue in issues] == [(ORPHANED, None)]

    reconcile_allocations(db, ACTOR)
    assert trip.costs == []


def test_flagged_orphan_is_reported_as_blocked(db, make_trip):
    """Test entries under investigation are left for the investigation to close."""
    trip = make_trip()
    trip.costs.append(legacy_entry("DIESEL-999", amount="100.00"))
    db.commit()
    raise_flag(db, trip.costs[0].id, "Unknown fill", ACTOR)

    result = reconcile_allocations(db, ACTOR)
    assert len(result["blocked"]) == 1
    assert result["repaired"] == []
    assert len(trip.costs) == 1
