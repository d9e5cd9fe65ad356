# terminal/routers/vehicles.py
"""Vehicle registry: registration, listing, lookup and status check."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from terminal.database import get_db
from terminal.models.vehicle import Vehicle
from terminal.schemas.vehicle import VehicleCreate, VehicleOut, VehicleStatusOut
from terminal.services import vehicle_service

router = APIRouter()


@router.get("/vehicles", response_model=list[VehicleOut], summary="List registered vehicles")
def list_vehicles(fd: str = None, pass_type: str = None, db: Session = Depends(get_db)):
    q = db.query(Vehicle)
    if fd:
        q = q.filter(Vehicle.fd == fd)
    if pass_type:
        q = q.filter(Vehicle.pass_type == pass_type)
    return q.order_by(Vehicle.plate_number).all()


@router.post("/vehicles", response_model=VehicleOut, summary="Register a new vehicle")
def register_vehicle(body: VehicleCreate, db: Session = Depends(get_db)):
    """Plate is stored upper-case; FD is derived from the route when omitted."""
    vehicle = vehicle_service.register_vehicle(db, body)
    if not vehicle:
        raise HTTPException(status_code=400, detail=f"Plate {body.plate_number} already registered")
    return vehicle


@router.get("/vehicles/lookup/{identifier}", response_model=VehicleOut, summary="Look up by RFID or plate")
def lookup_vehicle(identifier: str, db: Session = Depends(get_db)):
    vehicle = vehicle_service.find_vehicle_by_identifier(db, identifier)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


@router.get("/vehicles/{plate}/status", response_model=VehicleStatusOut, summary="Registration and penalty status")
def check_vehicle_status(plate: str, db: Session = Depends(get_db)):
    vehicle = vehicle_service.lookup_vehicle_by_plate(db, plate)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return VehicleStatusOut(
        success=True,
        plate_number=vehicle.plate_number,
        status=vehicle.status,
        penalty_status=vehicle.penalty_status,
    )
