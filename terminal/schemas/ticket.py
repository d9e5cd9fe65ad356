# terminal/schemas/ticket.py
from pydantic import BaseModel
from typing import Optional


class QrScanRequest(BaseModel):
    qr_data: str


class QrScanResult(BaseModel):
    success: bool
    outcome: str
    message: str
    touchdown: Optional[str] = None
    plate_number: Optional[str] = None
    ticket_id: Optional[str] = None
