"""
Unit-of-work and retry helpers for mutating operations.

A service operation performs all of its reads and writes on one session
and commits exactly once, so a reader never sees a half-applied
allocation. Optimistic version checks on trips and records turn a lost
race into a ConflictError, which the retry policy replays against fresh
state.
"""
import logging
from contextlib import contextmanager
from typing import Any, Optional
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from fleetcost.core.config import settings
from fleetcost.core.exceptions import ConflictError, PersistenceTimeoutError

logger = logging.getLogger(__name__)

# MySQL: lock wait timeout, server has gone away, lost connection during query
_TIMEOUT_ERROR_CODES = {1205, 2006, 2013}
# MySQL: deadlock found when trying to get lock
_CONFLICT_ERROR_CODES = {1213}


def _error_code(exc: OperationalError) -> Any:
    args = getattr(getattr(exc, "orig", None), "args", ())
    return args[0] if args else None


def _is_conflict(exc: OperationalError) -> bool:
    """Return True when the database aborted the transaction to break a deadlock."""
    return _error_code(exc) in _CONFLICT_ERROR_CODES


def _is_timeout(exc: OperationalError) -> bool:
    """Return True when an OperationalError means the store did not answer."""
    if _error_code(exc) in _TIMEOUT_ERROR_CODES:
        return True
    return "timed out" in str(exc).lower()


@contextmanager
def unit_of_work(db: Session, entity_type: Optional[str] = None, entity_id: Any = None):
    """Commit once on success, roll back and translate store errors on failure."""
    try:
        yield db
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConflictError(
            f"Concurrent update detected on {entity_type} {entity_id}",
            entity_type,
            entity_id,
        ) from exc
    except PoolTimeoutError as exc:
        db.rollback()
        raise PersistenceTimeoutError(
            f"Timed out waiting for a database connection ({entity_type} {entity_id})",
            entity_type,
            entity_id,
        ) from exc
    except OperationalError as exc:
        db.rollback()
        if _is_conflict(exc):
            raise ConflictError(
                f"Deadlock detected while updating {entity_type} {entity_id}",
                entity_type,
                entity_id,
            ) from exc
        if _is_timeout(exc):
            raise PersistenceTimeoutError(
                f"Database did not respond while updating {entity_type} {entity_id}",
                entity_type,
                entity_id,
            ) from exc
        raise
    except Exception:
        db.rollback()
        raise


def _log_retry(retry_state) -> None:
    exc = retry_state.outcome.exception()
    logger.warning(
        f"Attempt {retry_state.attempt_number} of {retry_state.fn.__name__} failed "
        f"({type(exc).__name__}: {exc}), retrying in {retry_state.next_action.sleep:.2f}s"
    )


persistence_retry = retry(
    retry=retry_if_exception_type((ConflictError, PersistenceTimeoutError)),
    stop=stop_after_attempt(settings.PERSISTENCE_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.05, max=settings.PERSISTENCE_RETRY_MAX_WAIT),
    before_sleep=_log_retry,
    reraise=True,
)
