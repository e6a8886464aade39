"""
Consumption record routes: ingestion, allocation, debrief and probe checks.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional
from fleetcost.db.session import get_db
from fleetcost.schemas.consumption import (
    AllocationRequest, DebriefRequest, ImportResultResponse, PendingDebriefResponse,
    ProbeVerificationRequest, RecordCreate, RecordImport, RecordResponse, RecordUpdate, VerificationResponse
)
from fleetcost.schemas.norm import ClassificationResponse
from fleetcost.api.dependencies import get_current_actor
from fleetcost.services import (
    allocation_service, debrief_service, norms_service, probe_service, record_service
)

router = APIRouter(prefix="/records", tags=["records"])


@router.post("", response_model=RecordResponse, status_code=status.HTTP_201_CREATED)
def create_record(
    record_data: RecordCreate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Create a consumption record, allocating it when a trip or towing unit is given."""
    return record_service.create_record(db, record_data.model_dump(), actor)


@router.post("/import", response_model=ImportResultResponse)
def import_records(
    import_data: RecordImport,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Bulk import; duplicates are skipped and failing rows reported."""
    rows = [row.model_dump() for row in import_data.rows]
    result = record_service.import_records(db, rows, actor)
    return ImportResultResponse.model_validate(result)


@router.get("", response_model=List[RecordResponse])
def list_records(
    fleet_asset_id: Optional[int] = None,
    trip_id: Optional[int] = None,
    debriefed: Optional[bool] = None,
    db: Session = Depends(get_db)
):
    """List records, optionally by asset, trip or debrief state."""
    return record_service.list_records(db, fleet_asset_id=fleet_asset_id, trip_id=trip_id, debriefed=debriefed)


@router.get("/pending-debrief", response_model=List[PendingDebriefResponse])
def list_pending_debrief(fleet_asset_id: Optional[int] = None, db: Session = Depends(get_db)):
    """Records outside tolerance that have not been debriefed."""
    pending = debrief_service.list_pending_debrief(db, fleet_asset_id=fleet_asset_id)
    return [PendingDebriefResponse.model_validate(item) for item in pending]


@router.get("/{record_id}", response_model=RecordResponse)
def get_record(record_id: int, db: Session = Depends(get_db)):
    """Get a consumption record."""
    return record_service.get_record(db, record_id)


@router.patch("/{record_id}", response_model=RecordResponse)
def update_record(
    record_id: int,
    record_data: RecordUpdate,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Edit a record; metrics and the mirrored cost entry follow."""
    changes = record_data.model_dump(exclude_unset=True)
    return record_service.update_record(db, record_id, changes, actor)


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_record(
    record_id: int,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Delete a record and its cost entry."""
    record_service.delete_record(db, record_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{record_id}/allocation", response_model=RecordResponse)
def allocate_record(
    record_id: int,
    allocation: AllocationRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Allocate a record to a trip (towing) or towing unit record (reefer)."""
    return allocation_service.allocate(
        db, record_id, actor, trip_id=allocation.trip_id, towing_unit_id=allocation.towing_unit_id
    )


@router.delete("/{record_id}/allocation", response_model=RecordResponse)
def deallocate_record(
    record_id: int,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Remove a record's allocation and its cost entry."""
    return allocation_service.deallocate(db, record_id, actor)


@router.get("/{record_id}/classification", response_model=ClassificationResponse)
def classify_record(record_id: int, db: Session = Depends(get_db)):
    """Live classification against the asset's current norm."""
    return ClassificationResponse.model_validate(norms_service.classify_record(db, record_id))


@router.post("/{record_id}/debrief", response_model=RecordResponse)
def debrief_record(
    record_id: int,
    debrief: DebriefRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Debrief a record, with an optional probe reading."""
    return debrief_service.debrief_record(
        db,
        record_id,
        notes=debrief.notes,
        root_cause=debrief.root_cause,
        actor=actor,
        action_taken=debrief.action_taken,
        acknowledged_by_subject=debrief.acknowledged_by_subject,
        probe_reading=debrief.probe_reading,
        witness=debrief.witness,
    )


@router.post("/{record_id}/probe-verification", response_model=VerificationResponse)
def verify_probe(
    record_id: int,
    verification: ProbeVerificationRequest,
    actor: str = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """Check the filled volume against a probe reading."""
    result = probe_service.verify_probe(
        db,
        record_id,
        probe_reading=verification.probe_reading,
        witness=verification.witness,
        actor=actor,
        notes=verification.notes,
    )
    return VerificationResponse.model_validate(result)
