"""
Probe verification: checks a recorded fill against a tank probe reading.
"""
import logging
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import Session
from fleetcost.core.config import settings
from fleetcost.core.exceptions import ValidationError
from fleetcost.core.utils import utcnow
from fleetcost.db.stores import ConsumptionRecordStore, TripStore
from fleetcost.db.transaction import persistence_retry, unit_of_work
from fleetcost.models.consumption import ConsumptionRecord, ProbeVerdict
from fleetcost.models.trip import TripStatus
from fleetcost.services.audit_service import AuditAction, record_audit
from fleetcost.services.flag_service import raise_flag_on_entry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    probe_reading: float
    discrepancy: float
    discrepancy_percent: float
    verdict: ProbeVerdict

    @property
    def verified(self) -> bool:
        return self.verdict != ProbeVerdict.DISCREPANCY


def evaluate_probe(volume_filled: float, probe_reading: float) -> VerificationResult:
    """
    Compare a filled volume with a probe reading.

    The percentage is rounded to 6 places before the bands are applied so
    that float noise does not push an exact 2% or 5% over the edge.
    """
    if volume_filled is None or volume_filled <= 0:
        raise ValidationError("volume_filled must be greater than zero", "consumption_record")
    if probe_reading is None or probe_reading < 0:
        raise ValidationError("probe_reading cannot be negative", "consumption_record")

    discrepancy = volume_filled - probe_reading
    percent = round(discrepancy / volume_filled * 100, 6)
    if abs(percent) <= settings.PROBE_VERIFIED_PERCENT:
        verdict = ProbeVerdict.VERIFIED
    elif abs(percent) <= settings.PROBE_ACCEPTABLE_PERCENT:
        verdict = ProbeVerdict.ACCEPTABLE
    else:
        verdict = ProbeVerdict.DISCREPANCY
    return VerificationResult(
        probe_reading=probe_reading,
        discrepancy=discrepancy,
        discrepancy_percent=percent,
        verdict=verdict,
    )


def verify(record: ConsumptionRecord, probe_reading: float, witness: str) -> VerificationResult:
    """Evaluate a probe reading for a record; a witness is mandatory."""
    if witness is None or not witness.strip():
        raise ValidationError("witness is required for probe verification", "consumption_record", record.id)
    try:
        return evaluate_probe(record.volume_filled, probe_reading)
    except ValidationError as exc:
        exc.entity_id = record.id
        raise


def _flag_discrepancy(db: Session, record: ConsumptionRecord, result: VerificationResult, actor: str) -> None:
    trips = TripStore(db)
    for entry in trips.cost_entries_for_record(record.id):
        trip = trips.get(entry.trip_id)
        if trip.status == TripStatus.COMPLETED:
            logger.warning(
                f"Probe discrepancy on record {record.id} not flagged: trip {trip.id} is already completed"
            )
            continue
        reason = (
            f"Probe discrepancy of {result.discrepancy_percent:.2f}% on consumption record {record.id} "
            f"(filled {record.volume_filled:g} l, probe {result.probe_reading:g} l)"
        )
        raise_flag_on_entry(db, entry, reason, actor)


def apply_probe_verification(
    db: Session,
    record: ConsumptionRecord,
    probe_reading: float,
    witness: str,
    actor: str,
    notes: Optional[str] = None,
) -> VerificationResult:
    """Verify and persist the verdict on the record inside the caller's unit of work."""
    result = verify(record, probe_reading, witness)
    before = {
        "probe_reading": record.probe_reading,
        "probe_verdict": record.probe_verdict,
        "probe_verified": record.probe_verified,
    }
    record.probe_reading = result.probe_reading
    record.probe_discrepancy = result.discrepancy
    record.probe_discrepancy_percent = result.discrepancy_percent
    record.probe_verdict = result.verdict
    record.probe_verified = result.verified
    record.probe_verified_at = utcnow()
    record.probe_witness = witness.strip()
    if notes is not None:
        record.probe_notes = notes
    db.flush()

    record_audit(
        db,
        AuditAction.PROBE_VERIFY,
        "consumption_record",
        record.id,
        actor,
        {
            "before": before,
            "after": {
                "probe_reading": result.probe_reading,
                "probe_discrepancy": result.discrepancy,
                "probe_discrepancy_percent": result.discrepancy_percent,
                "probe_verdict": result.verdict,
                "probe_verified": result.verified,
            },
            "witness": record.probe_witness,
        },
    )
    if result.verdict == ProbeVerdict.DISCREPANCY:
        _flag_discrepancy(db, record, result, actor)
    return result


@persistence_retry
def verify_probe(
    db: Session,
    record_id: int,
    probe_reading: float,
    witness: str,
    actor: str,
    notes: Optional[str] = None,
) -> VerificationResult:
    with unit_of_work(db, "consumption_record", record_id):
        record = ConsumptionRecordStore(db).get(record_id, for_update=True)
        result = apply_probe_verification(db, record, probe_reading, witness, actor, notes)
    return result
