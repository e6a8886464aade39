"""
Norms registry: expected efficiency per fleet asset and tolerance checks.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple
from sqlalchemy.orm import Session
from fleetcost.core.config import settings
from fleetcost.core.exceptions import ValidationError
from fleetcost.db.stores import ConsumptionRecordStore, FleetAssetStore, NormStore
from fleetcost.db.transaction import persistence_retry, unit_of_work
from fleetcost.models.norm import EfficiencyNorm
from fleetcost.services.audit_service import AuditAction, record_audit, snapshot

logger = logging.getLogger(__name__)


class Directionality(str, enum.Enum):
    """Where a record's metric sits relative to its norm."""
    ABOVE = "above"
    BELOW = "below"
    WITHIN = "within"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Classification:
    """Result of checking a record against its norm."""
    within_tolerance: bool
    directionality: Directionality
    metric_value: Optional[float] = None
    expected_value: Optional[float] = None
    tolerance_percent: Optional[float] = None
    acceptable_range: Optional[Tuple[float, float]] = None

    @property
    def requires_debrief(self) -> bool:
        return not self.within_tolerance


UNKNOWN = Classification(within_tolerance=True, directionality=Directionality.UNKNOWN)


def record_metric(record: Any) -> Optional[float]:
    """The metric a norm is compared with: l/h for reefers, km/l otherwise."""
    if record.is_refrigeration_unit:
        return record.volume_per_hour
    return record.efficiency


def classify(record: Any, norm: Optional[EfficiencyNorm]) -> Classification:
    """
    Compare a record's derived metric with its asset's norm.

    Missing norms and undefined metrics classify as unknown and count as
    within tolerance, so absent data never triggers a debrief.
    """
    metric = record_metric(record)
    if norm is None or metric is None:
        return UNKNOWN

    low, high = norm.acceptable_range
    details = dict(
        metric_value=metric,
        expected_value=norm.expected_value,
        tolerance_percent=norm.tolerance_percent,
        acceptable_range=(low, high),
    )
    if low <= metric <= high:
        return Classification(within_tolerance=True, directionality=Directionality.WITHIN, **details)
    direction = Directionality.ABOVE if metric > norm.expected_value else Directionality.BELOW
    return Classification(within_tolerance=False, directionality=direction, **details)


def validate_norm_values(expected_value: float, tolerance_percent: float, fleet_asset_id: Any = None) -> None:
    """Reject non-positive expectations and tolerances outside 0..MAX_TOLERANCE_PERCENT."""
    if expected_value is None or expected_value <= 0:
        raise ValidationError("expected_value must be greater than zero", "efficiency_norm", fleet_asset_id)
    if tolerance_percent is None or not 0 <= tolerance_percent <= settings.MAX_TOLERANCE_PERCENT:
        raise ValidationError(
            f"tolerance_percent must be between 0 and {settings.MAX_TOLERANCE_PERCENT:g}",
            "efficiency_norm",
            fleet_asset_id,
        )


def get_norm(db: Session, fleet_asset_id: int) -> Optional[EfficiencyNorm]:
    return NormStore(db).get_for_asset(fleet_asset_id)


def list_norms(db: Session) -> List[EfficiencyNorm]:
    return NormStore(db).list()


def classify_record(db: Session, record_id: int) -> Classification:
    """Live classification of a stored record against the current norm."""
    record = ConsumptionRecordStore(db).get(record_id)
    return classify(record, NormStore(db).get_for_asset(record.fleet_asset_id))


def _upsert(db: Session, fleet_asset_id: int, expected_value: float, tolerance_percent: float, actor: str) -> EfficiencyNorm:
    validate_norm_values(expected_value, tolerance_percent, fleet_asset_id)
    asset = FleetAssetStore(db).get(fleet_asset_id)
    norms = NormStore(db)
    norm = norms.get_for_asset(asset.id)
    before = snapshot(norm) if norm else None
    if norm is None:
        norm = EfficiencyNorm(fleet_asset_id=asset.id)
    norm.is_refrigeration_unit = asset.is_refrigeration_unit
    norm.expected_value = expected_value
    norm.tolerance_percent = tolerance_percent
    norm.updated_by = actor
    norms.save(norm)
    record_audit(db, AuditAction.NORM_UPSERT, "efficiency_norm", asset.id, actor, {"before": before, "after": snapshot(norm)})
    return norm


@persistence_retry
def upsert_norm(db: Session, fleet_asset_id: int, expected_value: float, tolerance_percent: float, actor: str) -> EfficiencyNorm:
    """Create or edit the norm for an asset."""
    with unit_of_work(db, "efficiency_norm", fleet_asset_id):
        norm = _upsert(db, fleet_asset_id, expected_value, tolerance_percent, actor)
    return norm


@persistence_retry
def delete_norm(db: Session, fleet_asset_id: int, actor: str) -> bool:
    """
    Remove an asset's norm.

    Debrief verdicts already stored on records are snapshots and stay as
    they are; only future classifications see the missing norm.
    """
    with unit_of_work(db, "efficiency_norm", fleet_asset_id):
        norms = NormStore(db)
        norm = norms.get_for_asset(fleet_asset_id)
        if norm is None:
            logger.debug(f"No norm for fleet asset {fleet_asset_id}, nothing to delete")
            return False
        before = snapshot(norm)
        norms.delete(norm)
        record_audit(db, AuditAction.NORM_DELETE, "efficiency_norm", fleet_asset_id, actor, {"before": before})
    return True


@persistence_retry
def reset_norms_to_defaults(db: Session, actor: str) -> List[EfficiencyNorm]:
    """Give every registered asset the configured default norm for its class."""
    with unit_of_work(db, "efficiency_norm", "*"):
        norms = []
        for asset in FleetAssetStore(db).list():
            if asset.is_refrigeration_unit:
                expected = settings.DEFAULT_REEFER_EXPECTED_VOLUME_PER_HOUR
                tolerance = settings.DEFAULT_REEFER_TOLERANCE_PERCENT
            else:
                expected = settings.DEFAULT_TOWING_EXPECTED_EFFICIENCY
                tolerance = settings.DEFAULT_TOWING_TOLERANCE_PERCENT
            norms.append(_upsert(db, asset.id, expected, tolerance, actor))
        record_audit(db, AuditAction.NORM_RESET, "efficiency_norm", "*", actor, {"count": len(norms)})
    return norms
