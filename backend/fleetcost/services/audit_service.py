"""
Audit service for recording state-changing engine operations.
"""
import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
from fleetcost.core.utils import serialize_value, utcnow
from fleetcost.models.audit import AuditEntry

logger = logging.getLogger(__name__)


class AuditAction:
    """Standard audit action types."""

    # Fleet assets
    ASSET_CREATE = "fleet_asset.create"

    # Consumption records
    RECORD_CREATE = "consumption.create"
    RECORD_UPDATE = "consumption.update"
    RECORD_DELETE = "consumption.delete"
    RECORD_IMPORT = "consumption.import"

    # Allocation ledger
    ALLOCATE = "allocation.allocate"
    DEALLOCATE = "allocation.deallocate"
    RECONCILE = "allocation.reconcile"

    # Review workflows
    DEBRIEF = "debrief.complete"
    PROBE_VERIFY = "probe.verify"
    FLAG_RAISE = "flag.raise"
    FLAG_INVESTIGATE = "flag.investigate"
    FLAG_RESOLVE = "flag.resolve"

    # Trips
    TRIP_CREATE = "trip.create"
    TRIP_STATUS = "trip.status"
    TRIP_COMPLETE = "trip.complete"
    COST_ADD = "cost.add"

    # Norms
    NORM_UPSERT = "norm.upsert"
    NORM_DELETE = "norm.delete"
    NORM_RESET = "norm.reset"


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    return serialize_value(value)


def snapshot(obj: Any) -> Dict[str, Any]:
    """Column values of a model instance, ready for JSON."""
    return {column.name: _jsonable(getattr(obj, column.name)) for column in obj.__table__.columns}


def record_audit(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: Any,
    actor: str,
    details: Optional[Dict[str, Any]] = None,
) -> AuditEntry:
    """Add an audit entry to the current unit of work."""
    entry = AuditEntry(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        actor=actor,
        timestamp=utcnow(),
        details=_jsonable(details) if details is not None else None,
    )
    db.add(entry)
    logger.info(f"{action} {entity_type} {entity_id} by {actor}")
    return entry


def list_audit_entries(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    action: Optional[str] = None,
    limit: int = 100,
) -> List[AuditEntry]:
    """Audit entries, newest first."""
    query = db.query(AuditEntry)
    if entity_type:
        query = query.filter(AuditEntry.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditEntry.entity_id == str(entity_id))
    if action:
        query = query.filter(AuditEntry.action == action)
    return query.order_by(AuditEntry.timestamp.desc(), AuditEntry.id.desc()).limit(limit).all()
