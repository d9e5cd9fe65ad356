# tests/conftest.py
"""Shared fixtures: in-memory SQLite store and registry helpers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before terminal.config is imported anywhere.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("API_KEY", "")
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
from terminal.database import Base, SessionLocal, engine
from terminal.models.vehicle import Vehicle, PenaltyStatus, VehicleStatus
from terminal.utils.clock import utcnow
import terminal.models  # noqa: F401  (registers every table on Base.metadata)


@pytest.fixture(name="db")
def db_fixture():
    """Create tables and provide a session on the shared in-memory database."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_vehicle(db):
    """Register a vehicle directly in the store."""
    def _make(plate="ABC-123", fd="FD1", pass_type=None, rfid=None,
              penalty_status=PenaltyStatus.NONE, status=VehicleStatus.OK, **fields):
        vehicle = Vehicle(
            plate_number=plate.upper(),
            rfid=rfid,
            driver_name=fields.pop("driver_name", f"Driver {plate}"),
            route=fields.pop("route", "SanJose - Cabanatuan City"),
            fd=fd,
            pass_type=pass_type,
            status=status,
            penalty_status=penalty_status,
            created_at=fields.pop("created_at", utcnow()),
            **fields,
        )
        db.add(vehicle)
        db.commit()
        return vehicle
    return _make
