# terminal/routers/lanes.py
"""
Lane terminal endpoints.
POST /lanes/present : RFID tap / typed plate at the entry or exit lane
POST /lanes/clear : attendant clears the vehicle at its checkpoint
GET  /lanes/state : current occupants + waiting lists of both checkpoints
GET  /lanes/queue/next : queue number the next Pila entry would receive
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from terminal.database import get_db
from terminal.schemas.lane import (
    ClearRequest, ClearResult, NextQueueNumberOut, PresentRequest, PresentResult, SystemSnapshot,
)
from terminal.services.errors import Outcome
from terminal.services.lane_service import clear_checkpoint, present_vehicle
from terminal.services.sequence_service import peek_queue_number
from terminal.services.state_service import get_system_snapshot

router = APIRouter()


@router.post("/lanes/present", response_model=PresentResult, summary="Vehicle presents at a lane terminal")
async def present(body: PresentRequest, db: Session = Depends(get_db)):
    """
    First presentation of a visit occupies (or queues for) the entry checkpoint,
    the next one after entry is cleared goes to the exit checkpoint.
    Penalized and already-present vehicles come back with success=false.
    """
    result = await present_vehicle(db, body.identifier)
    if result.outcome == Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return result


@router.post("/lanes/clear", response_model=ClearResult, summary="Clear a vehicle from its checkpoint")
async def clear(body: ClearRequest, db: Session = Depends(get_db)):
    """Exit clears return the issued ticket id and QR payload."""
    result = await clear_checkpoint(db, body.plate_number, body.is_exit)
    if result.outcome == Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="No open visit for this vehicle")
    return result


@router.get("/lanes/state", response_model=SystemSnapshot, summary="Entry/exit occupancy and queues")
def lane_state(db: Session = Depends(get_db)):
    return get_system_snapshot(db)


@router.get("/lanes/queue/next", response_model=NextQueueNumberOut, summary="Preview the next Pila queue number")
def next_queue_number(db: Session = Depends(get_db)):
    return NextQueueNumberOut(success=True, queue_number=peek_queue_number(db))
