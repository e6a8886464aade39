"""
Shared fixtures: in-memory database, entity factories and API client.
"""
import itertools
from datetime import date
from decimal import Decimal
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
import fleetcost.models  # noqa: F401
from fleetcost.db.base import Base
from fleetcost.db.session import get_db
from fleetcost.main import app
from fleetcost.models.fleet_asset import AssetClass
from fleetcost.services import fleet_service, record_service, trip_service

ACTOR = "controller"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_asset(db):
    counter = itertools.count(1)

    def _make(asset_class=AssetClass.TOWING_UNIT, has_probe=False, fleet_number=None):
        prefix = "R" if asset_class == AssetClass.REFRIGERATION_UNIT else "H"
        return fleet_service.create_asset(
            db,
            fleet_number=fleet_number or f"{prefix}{next(counter)}",
            asset_class=asset_class,
            actor=ACTOR,
            has_probe=has_probe,
        )

    return _make


@pytest.fixture
def make_trip(db):
    def _make(**overrides):
        data = {
            "route": "Johannesburg - Cape Town",
            "base_revenue": Decimal("50000"),
            "distance_km": 1400,
        }
        data.update(overrides)
        return trip_service.create_trip(db, actor=ACTOR, **data)

    return _make


@pytest.fixture
def make_record(db):
    def _make(asset, **overrides):
        if asset.is_refrigeration_unit:
            data = {
                "volume_filled": 35,
                "total_cost": Decimal("647.50"),
                "hours_operated": 10,
            }
        else:
            data = {
                "volume_filled": 450,
                "total_cost": Decimal("8325"),
                "odometer_reading": 125000,
                "previous_odometer_reading": 123560,
            }
        data.update(
            fleet_asset_id=asset.id,
            date=date(2024, 3, 1),
            currency="ZAR",
            fuel_station="Engen Beitbridge",
        )
        data.update(overrides)
        return record_service.create_record(db, data, ACTOR)

    return _make
