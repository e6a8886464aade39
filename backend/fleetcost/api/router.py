"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from fleetcost.api.routes import (
    fleet_assets, records, norms, trips, flags, audit, reconciliation
)

api_router = APIRouter()

# Include all route modules
api_router.include_router(fleet_assets.router)
api_router.include_router(records.router)
api_router.include_router(norms.router)
api_router.include_router(trips.router)
api_router.include_router(flags.router)
api_router.include_router(audit.router)
api_router.include_router(reconciliation.router)
