# terminal/routers/tickets.py
"""
Exit ticket endpoints.
POST /tickets/validate/{fd_code} : QR scan at the FD1..FD4 endpoint checkpoints
GET  /tickets/{ticket_id}/qr.png : QR image of an issued ticket
"""

import io
import qrcode
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from terminal.config import settings
from terminal.database import get_db
from terminal.models.entry_log import EntryLog
from terminal.schemas.ticket import QrScanRequest, QrScanResult
from terminal.services.errors import Outcome
from terminal.services.ticket_service import validate_qr

router = APIRouter()


@router.post("/tickets/validate/{fd_code}", response_model=QrScanResult, summary="Scan an exit ticket at an endpoint")
async def validate(fd_code: str, body: QrScanRequest, db: Session = Depends(get_db)):
    """
    Scanning at the wrong endpoint, after the validity window, or without a
    recorded exit puts the vehicle under penalty (success=false in the body).
    """
    fd_code = fd_code.upper()
    if fd_code not in settings.FD_CODES:
        raise HTTPException(status_code=404, detail=f"Unknown endpoint {fd_code}")

    result = await validate_qr(db, body.qr_data, fd_code)
    if result.outcome == Outcome.MALFORMED_QR:
        raise HTTPException(status_code=400, detail=result.message)
    if result.outcome == Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail=result.message)
    return result


@router.get("/tickets/{ticket_id}/qr.png", summary="QR image for an issued ticket")
def ticket_qr(ticket_id: str, db: Session = Depends(get_db)):
    log = (
        db.query(EntryLog)
        .filter(EntryLog.ticket_id == ticket_id, EntryLog.qr_payload != None)  # noqa: E711
        .order_by(EntryLog.id.desc())
        .first()
    )
    if not log:
        raise HTTPException(status_code=404, detail="Ticket not found")

    buf = io.BytesIO()
    qrcode.make(log.qr_payload).save(buf, format="PNG")
    buf.seek(0)
    return StreamingResponse(buf, media_type="image/png")
