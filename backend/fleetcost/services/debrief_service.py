"""
Debrief workflow for out-of-tolerance consumption records.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy.orm import Session
from fleetcost.core.exceptions import ValidationError
from fleetcost.core.utils import utcnow
from fleetcost.db.stores import ConsumptionRecordStore, NormStore
from fleetcost.db.transaction import persistence_retry, unit_of_work
from fleetcost.models.consumption import ConsumptionRecord
from fleetcost.services.audit_service import AuditAction, record_audit
from fleetcost.services.norms_service import Classification, classify
from fleetcost.services.probe_service import apply_probe_verification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingDebrief:
    record: ConsumptionRecord
    classification: Classification


def list_pending_debrief(db: Session, fleet_asset_id: Optional[int] = None) -> List[PendingDebrief]:
    """
    Records outside their norm that nobody has debriefed yet.

    Computed from the current norms on every call; nothing is stored.
    """
    norms = {norm.fleet_asset_id: norm for norm in NormStore(db).list()}
    pending = []
    for record in ConsumptionRecordStore(db).list(fleet_asset_id=fleet_asset_id, debriefed=False):
        classification = classify(record, norms.get(record.fleet_asset_id))
        if classification.requires_debrief:
            pending.append(PendingDebrief(record=record, classification=classification))
    return pending


@persistence_retry
def debrief_record(
    db: Session,
    record_id: int,
    notes: str,
    root_cause: str,
    actor: str,
    action_taken: Optional[str] = None,
    acknowledged_by_subject: bool = False,
    probe_reading: Optional[float] = None,
    witness: Optional[str] = None,
) -> ConsumptionRecord:
    """
    Move a record from pending to debriefed.

    Stores the classification seen right now so later norm edits leave
    the verdict alone. When the asset has a probe and a reading is
    supplied, probe verification runs in the same transaction, with the
    debriefing operator as witness unless one is named.

    Raises:
        ValidationError: notes or root cause missing.
        NotFoundError: record does not exist.
    """
    if not notes or not notes.strip():
        raise ValidationError("notes are required to debrief a record", "consumption_record", record_id)
    if not root_cause or not root_cause.strip():
        raise ValidationError("root_cause is required to debrief a record", "consumption_record", record_id)

    with unit_of_work(db, "consumption_record", record_id):
        record = ConsumptionRecordStore(db).get(record_id, for_update=True)
        if record.is_debriefed:
            logger.debug(f"Consumption record {record.id} already debriefed at {record.debriefed_at}")
            return record

        classification = classify(record, NormStore(db).get_for_asset(record.fleet_asset_id))
        probe = None
        if probe_reading is not None:
            if record.fleet_asset.has_probe:
                probe = apply_probe_verification(db, record, probe_reading, witness or actor, actor)
            else:
                logger.info(
                    f"Ignoring probe reading for record {record.id}: "
                    f"fleet {record.fleet_asset.fleet_number} has no probe"
                )

        record.debriefed_at = utcnow()
        record.debriefed_by = actor
        record.debrief_notes = notes.strip()
        record.root_cause = root_cause.strip()
        record.action_taken = action_taken
        record.acknowledged_by_subject = acknowledged_by_subject
        record.debrief_directionality = classification.directionality.value
        record.debrief_within_tolerance = classification.within_tolerance
        record.debrief_expected_value = classification.expected_value
        record.debrief_tolerance_percent = classification.tolerance_percent

        record_audit(
            db,
            AuditAction.DEBRIEF,
            "consumption_record",
            record.id,
            actor,
            {
                "classification": {
                    "directionality": classification.directionality,
                    "within_tolerance": classification.within_tolerance,
                    "metric_value": classification.metric_value,
                    "expected_value": classification.expected_value,
                    "tolerance_percent": classification.tolerance_percent,
                },
                "root_cause": record.root_cause,
                "action_taken": action_taken,
                "acknowledged_by_subject": acknowledged_by_subject,
                "probe_verdict": probe.verdict if probe else None,
            },
        )
    return record
