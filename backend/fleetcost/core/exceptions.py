"""
Engine error taxonomy.

Every error carries the type and id of the entity it concerns so that
callers can surface which record, trip or cost entry failed.
"""
from typing import Any, List, Optional


class FleetCostError(Exception):
    """Base class for all engine errors."""
    retryable = False

    def __init__(self, message: str, entity_type: Optional[str] = None, entity_id: Any = None):
        super().__init__(message)
        self.message = message
        self.entity_type = entity_type
        self.entity_id = entity_id

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "retryable": self.retryable,
        }


class ValidationError(FleetCostError):
    """Malformed or out-of-range input. Never retried."""


class NotFoundError(FleetCostError):
    """A referenced record, trip, asset or cost entry does not exist."""

    def __init__(self, entity_type: str, entity_id: Any):
        super().__init__(f"{entity_type} {entity_id} not found", entity_type, entity_id)


class InvalidAssetClassError(FleetCostError):
    """Towing/reefer mismatch between a record and its allocation target."""


class ConflictError(FleetCostError):
    """Concurrent mutation detected; re-read current state and reapply."""
    retryable = True


class PersistenceTimeoutError(FleetCostError):
    """Downstream store did not answer in time."""
    retryable = True


class TripCompletionBlockedError(ValidationError):
    """Trip cannot complete while cost entries carry unresolved flags."""

    def __init__(self, trip_id: int, blocking_cost_entry_ids: List[int]):
        super().__init__(
            f"Trip {trip_id} has {len(blocking_cost_entry_ids)} unresolved flag(s)",
            "trip",
            trip_id,
        )
        self.blocking_cost_entry_ids = blocking_cost_entry_ids

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["blocking_cost_entry_ids"] = self.blocking_cost_entry_ids
        return data
