# terminal/schemas/penalty.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class PenaltyApply(BaseModel):
    plate_number: str
    touchdown: str
    entry_log_id: Optional[int] = None


class PenaltyLift(BaseModel):
    plate_number: str
    entry_log_id: Optional[int] = None


class PenaltyResult(BaseModel):
    success: bool
    outcome: str
    plate_number: str
    penalty_status: Optional[str] = None
    touchdown: Optional[str] = None
    penalty_lifted_at: Optional[datetime] = None


class PenaltyVehicleOut(BaseModel):
    plate_number: str
    penalty_status: str
    created_at: Optional[datetime]
    reason: str
    time_out: Optional[datetime]
    entry_log_id: Optional[int]


class SweepResult(BaseModel):
    ran: bool
    expired_vehicles: int = 0
    penalties_reset: int = 0
    last_run_date: Optional[str] = None
