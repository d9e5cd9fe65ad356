# terminal/schemas/lane.py
"""Lane engine request/response models (present, clear, system snapshot)."""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class VehicleView(BaseModel):
    """Denormalized vehicle + visit view shown on lane terminals."""
    plate_number: str
    driver_name: str = ""
    route: Optional[str] = None
    fd: Optional[str] = None
    pass_type: Optional[str] = None
    queue_number: Optional[int] = None
    time_in: Optional[datetime] = None
    status: str = "Ok"
    penalty_status: str = "None"
    action: Optional[str] = None
    state: Optional[str] = None
    ticket_id: Optional[str] = None
    qr_payload: Optional[str] = None


class PresentRequest(BaseModel):
    identifier: str                  # RFID tag or plate number


class PresentResult(BaseModel):
    success: bool
    outcome: str
    message: str
    action: Optional[str] = None
    state: Optional[str] = None
    queue_position: Optional[int] = None   # 1-based position in the checkpoint queue
    vehicle: Optional[VehicleView] = None


class ClearRequest(BaseModel):
    plate_number: str
    is_exit: bool = False


class ClearResult(BaseModel):
    success: bool
    outcome: str
    promoted: bool = False
    vehicle: Optional[VehicleView] = None  # promoted vehicle
    ticket_id: Optional[str] = None
    qr_payload: Optional[str] = None
    touchdown: Optional[str] = None


class SystemSnapshot(BaseModel):
    entry_occupied: bool
    exit_occupied: bool
    entry_vehicle: Optional[VehicleView] = None
    exit_vehicle: Optional[VehicleView] = None
    entry_queue: list[VehicleView] = []
    exit_queue: list[VehicleView] = []


class NextQueueNumberOut(BaseModel):
    success: bool
    queue_number: int
