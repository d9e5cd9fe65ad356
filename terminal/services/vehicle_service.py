# terminal/services/vehicle_service.py
"""
Vehicle Registry helpers.
Used by the lane engine, ticket/penalty services and the vehicles router.
Plates are stored upper-case; lookups are case-insensitive on plate.
"""

from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from terminal.config import settings
from terminal.models.vehicle import UNKNOWN_FD, Vehicle, PassType
from terminal.schemas.vehicle import VehicleCreate
from terminal.utils.clock import utcnow
from terminal.utils.logger import get_logger

logger = get_logger(__name__)


def normalize_plate(plate_number: str) -> str:
    return plate_number.strip().upper()


def default_pass_type(fd: Optional[str]) -> str:
    """Pila for the queue-numbered route class, Taxi for everything else."""
    return PassType.PILA if fd == settings.PILA_FD_CODE else PassType.TAXI


def fd_for_route(route: Optional[str]) -> str:
    return settings.ROUTE_FD_MAP.get(route or "", UNKNOWN_FD)


def lookup_vehicle_by_plate(db: Session, plate_number: str) -> Optional[Vehicle]:
    """Find a registered vehicle by plate number. Returns None if not found."""
    return db.query(Vehicle).filter(Vehicle.plate_number == normalize_plate(plate_number)).first()


def find_vehicle_by_identifier(db: Session, identifier: str) -> Optional[Vehicle]:
    """Resolve an RFID tag or a plate number to a vehicle."""
    identifier = identifier.strip()
    if not identifier:
        return None
    return db.query(Vehicle).filter(
        or_(Vehicle.rfid == identifier, Vehicle.plate_number == identifier.upper())
    ).first()


def update_vehicle(db: Session, plate_number: str, **fields) -> Optional[Vehicle]:
    """Apply field changes to a vehicle. Flushes only; the caller owns the commit."""
    vehicle = lookup_vehicle_by_plate(db, plate_number)
    if not vehicle:
        return None
    for name, value in fields.items():
        setattr(vehicle, name, value)
    db.flush()
    return vehicle


def register_vehicle(db: Session, body: VehicleCreate) -> Optional[Vehicle]:
    """Create a registry entry. Returns None when the plate is already registered."""
    plate = normalize_plate(body.plate_number)
    if lookup_vehicle_by_plate(db, plate):
        return None
    vehicle = Vehicle(
        plate_number=plate,
        rfid=body.rfid or None,
        driver_name=body.driver_name,
        operator=body.operator,
        route=body.route,
        fd=body.fd or fd_for_route(body.route),
        pass_type=body.pass_type,
        expiry_date=body.expiry_date,
        created_at=utcnow(),
    )
    db.add(vehicle)
    db.commit()
    logger.info(f"[REGISTRY] Registered {plate} fd={vehicle.fd}")
    return vehicle
