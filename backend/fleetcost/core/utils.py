"""
Utility functions for the application.
"""
from typing import Any, Optional
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
import enum

CENT = Decimal("0.01")


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the database hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def round_currency(value: Any) -> Optional[Decimal]:
    """Round a monetary value to 2 decimal places (half up)."""
    if value is None:
        return None
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def serialize_value(obj: Any) -> Any:
    """Serialize dates and decimals for JSON audit payloads."""
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, enum.Enum):
        return obj.value
    return obj
