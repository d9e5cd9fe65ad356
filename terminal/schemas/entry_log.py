# terminal/schemas/entry_log.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class EntryLogOut(BaseModel):
    id: int
    visit_id: str
    plate_number: str
    action: str
    state: str
    cleared: bool
    timestamp: datetime
    time_in: Optional[datetime]
    time_out: Optional[datetime]
    route: Optional[str]
    fd: Optional[str]
    pass_type: Optional[str]
    queue_number: Optional[int]
    touchdown: str
    ticket_id: Optional[str]
    qr_payload: Optional[str]

    class Config:
        from_attributes = True


class PassUpdate(BaseModel):
    plate_number: str
    pass_type: str                   # Pila | Taxi | SP
    queue_number: Optional[int] = None


class FdUpdate(BaseModel):
    plate_number: str
    fd: str


class DashboardCountsOut(BaseModel):
    date: str
    total_trips: int
    pila_count: int
    taxi_count: int
    special_pass_count: int
