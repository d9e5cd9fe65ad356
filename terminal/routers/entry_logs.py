# terminal/routers/entry_logs.py
"""Visit records: dashboard tables, search, attendant corrections and daily counts."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from terminal.database import get_db
from terminal.models.vehicle import PassType
from terminal.schemas.entry_log import DashboardCountsOut, EntryLogOut, FdUpdate, PassUpdate
from terminal.services import entry_log_service
from typing import Optional

router = APIRouter()


@router.get("/entry-logs", response_model=list[EntryLogOut], summary="Most recent visits")
def recent_logs(limit: int = entry_log_service.RECENT_LIMIT, db: Session = Depends(get_db)):
    return entry_log_service.list_recent_logs(db, limit)


@router.get("/entry-logs/active", response_model=list[EntryLogOut], summary="Visits still at a checkpoint")
def active_logs(db: Session = Depends(get_db)):
    return entry_log_service.list_active_logs(db)


@router.get("/entry-logs/search", response_model=list[EntryLogOut], summary="Search by plate and touchdown")
def search(plate_number: Optional[str] = None, touchdown: Optional[str] = None, db: Session = Depends(get_db)):
    return entry_log_service.search_logs(db, plate_number, touchdown)


@router.get("/entry-logs/dashboard", response_model=DashboardCountsOut, summary="Today's completed trips by pass")
def dashboard(db: Session = Depends(get_db)):
    return entry_log_service.dashboard_counts(db)


@router.put("/entry-logs/pass", response_model=EntryLogOut, summary="Correct the pass of an open visit")
async def update_pass(body: PassUpdate, db: Session = Depends(get_db)):
    if body.pass_type not in PassType.ALL:
        raise HTTPException(status_code=400, detail=f"Pass must be one of {list(PassType.ALL)}")
    log = await entry_log_service.update_pass(db, body.plate_number, body.pass_type, body.queue_number)
    if not log:
        raise HTTPException(status_code=404, detail="No open visit for this vehicle")
    return log


@router.put("/entry-logs/fd", response_model=EntryLogOut, summary="Correct the FD of an open visit")
async def update_fd(body: FdUpdate, db: Session = Depends(get_db)):
    log = await entry_log_service.update_fd(db, body.plate_number, body.fd)
    if not log:
        raise HTTPException(status_code=404, detail="No open visit for this vehicle")
    return log
