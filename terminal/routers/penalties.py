# terminal/routers/penalties.py
"""Penalty administration: apply, lift, list, count and the manual status sweep."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from terminal.database import get_db
from terminal.schemas.penalty import PenaltyApply, PenaltyLift, PenaltyResult, PenaltyVehicleOut, SweepResult
from terminal.services.errors import Outcome
from terminal.services.penalty_service import apply_penalty, count_penalized, lift_penalty, list_penalized
from terminal.services.status_sweep import status_sweep
from terminal.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/penalties", response_model=list[PenaltyVehicleOut], summary="Vehicles under penalty")
def penalized_vehicles(db: Session = Depends(get_db)):
    return list_penalized(db)


@router.get("/penalties/count", summary="Number of vehicles under penalty")
def penalized_count(db: Session = Depends(get_db)):
    return {"success": True, "count": count_penalized(db)}


@router.post("/penalties/apply", response_model=PenaltyResult, summary="Put a vehicle under penalty")
async def apply(body: PenaltyApply, db: Session = Depends(get_db)):
    result = await apply_penalty(db, body.plate_number, body.touchdown, body.entry_log_id)
    if result.outcome == Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Vehicle or visit not found")
    return result


@router.post("/penalties/lift", response_model=PenaltyResult, summary="Lift a vehicle's penalty")
async def lift(body: PenaltyLift, db: Session = Depends(get_db)):
    """Lifted returns to None on the first status sweep after PENALTY_LIFT_HOURS."""
    result = await lift_penalty(db, body.plate_number, body.entry_log_id)
    if result.outcome == Outcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Vehicle or visit not found")
    return result


@router.post("/penalties/sweep", response_model=SweepResult, summary="Run the vehicle status sweep now")
def run_sweep():
    logger.info("[SWEEP] Manual sweep triggered")
    return status_sweep.run(force=True)
