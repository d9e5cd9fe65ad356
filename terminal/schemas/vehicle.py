# terminal/schemas/vehicle.py
from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional


class VehicleCreate(BaseModel):
    plate_number: str
    driver_name: str
    route: Optional[str] = None
    fd: Optional[str] = None         # derived from route when omitted
    operator: Optional[str] = None
    rfid: Optional[str] = None
    pass_type: Optional[str] = None  # Pila | Taxi | SP
    expiry_date: Optional[date] = None


class VehicleOut(BaseModel):
    id: int
    plate_number: str
    rfid: Optional[str]
    driver_name: str
    operator: Optional[str]
    route: Optional[str]
    fd: Optional[str]
    pass_type: Optional[str]
    status: str
    penalty_status: str
    penalty_lifted_at: Optional[datetime]
    expiry_date: Optional[date]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class VehicleStatusOut(BaseModel):
    success: bool
    plate_number: str
    status: str
    penalty_status: str
