"""Models package - Import all models for SQLAlchemy registration."""
from fleetcost.models.fleet_asset import FleetAsset, AssetClass
from fleetcost.models.consumption import (
    ConsumptionRecord, AllocationKind, AllocationTarget, Direct, ViaTowingUnit, Unallocated, ProbeVerdict
)
from fleetcost.models.trip import Trip, TripStatus
from fleetcost.models.cost_entry import CostEntry, Investigation, InvestigationStatus, DIESEL_CATEGORY
from fleetcost.models.norm import EfficiencyNorm
from fleetcost.models.audit import AuditEntry

__all__ = [
    "FleetAsset",
    "AssetClass",
    "ConsumptionRecord",
    "AllocationKind",
    "AllocationTarget",
    "Direct",
    "ViaTowingUnit",
    "Unallocated",
    "ProbeVerdict",
    "Trip",
    "TripStatus",
    "CostEntry",
    "Investigation",
    "InvestigationStatus",
    "DIESEL_CATEGORY",
    "EfficiencyNorm",
    "AuditEntry",
]
