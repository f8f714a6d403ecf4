"""Shared fixtures: in-memory SQLite database, store, units and a registered vehicle."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.database import create_tables
from app.models.unit import Unit
from app.services.movement_lifecycle import MovementLifecycle
from app.services.permissions import Capabilities
from app.services.storage import SqlMovementStore
from app.services.vehicle_service import create_vehicle

REGISTERED_AT = datetime(2026, 3, 1, 7, 0)
NOW = datetime(2026, 3, 2, 8, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return SqlMovementStore(db)


@pytest.fixture
def caps():
    return Capabilities.full()


@pytest.fixture
def units(db):
    u1 = Unit(name="Matriz", code="U1", address="Av. Central, 100")
    u2 = Unit(name="Filial Norte", code="U2", address="Rod. Norte, km 12")
    db.add_all([u1, u2])
    db.commit()
    return u1, u2


@pytest.fixture
def vehicle(store, caps, units):
    """Vehicle in the yard of U1 with 1000 km."""
    return create_vehicle(store, caps, plate="abc 1d23", make="Fiat", model="Strada",
                          unit_id=units[0].id, mileage=1000, color="Branco", year=2022,
                          now=lambda: REGISTERED_AT)


@pytest.fixture
def lifecycle(store):
    return MovementLifecycle(store, now=lambda: NOW)
