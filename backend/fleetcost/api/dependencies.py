"""
FastAPI dependencies.
"""
from typing import Optional
from fastapi import Header
from fleetcost.core.config import settings


def get_current_actor(x_actor: Optional[str] = Header(default=None)) -> str:
    """Operator named by the X-Actor header, or the system actor."""
    if x_actor and x_actor.strip():
        return x_actor.strip()
    return settings.SYSTEM_ACTOR
