# terminal/services/penalty_service.py
"""
Penalty Lifecycle.

Apply: QR validation failures (no exit record, expired ticket, wrong endpoint)
       or an administrator's action set penalty_status = Penalty.
Lift:  an administrator sets penalty_status = Lifted and stamps the time; the
       visit that caused the penalty is relabelled "Penalty Lifted".
Reset: the status sweep returns Lifted → None after PENALTY_LIFT_HOURS.

penalty_status is independent of the registration status (Ok / Expired).
"""

from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from terminal.models.entry_log import EntryLog, Touchdown
from terminal.models.vehicle import Vehicle, PenaltyStatus
from terminal.schemas.penalty import PenaltyResult, PenaltyVehicleOut
from terminal.services.errors import Outcome, TransientStoreError
from terminal.services.notifier import broadcaster, EntryLogsChanged, PenaltyLifted, SystemStateChanged
from terminal.services.vehicle_service import lookup_vehicle_by_plate, normalize_plate
from terminal.utils.clock import utcnow
from terminal.utils.logger import get_logger

logger = get_logger(__name__)


def mark_penalized(db: Session, plate_number: str) -> int:
    """Set Penalty on the vehicle inside the caller's transaction."""
    return db.query(Vehicle).filter(
        Vehicle.plate_number == normalize_plate(plate_number)
    ).update({"penalty_status": PenaltyStatus.PENALTY}, synchronize_session="fetch")


def latest_log_for_plate(db: Session, plate_number: str) -> Optional[EntryLog]:
    return (
        db.query(EntryLog)
        .filter(EntryLog.plate_number == normalize_plate(plate_number))
        .order_by(EntryLog.timestamp.desc(), EntryLog.id.desc())
        .first()
    )


def _target_log(db: Session, vehicle: Vehicle, entry_log_id: Optional[int]) -> Optional[EntryLog]:
    if entry_log_id is not None:
        return db.query(EntryLog).filter(
            EntryLog.id == entry_log_id, EntryLog.vehicle_id == vehicle.id
        ).first()
    return latest_log_for_plate(db, vehicle.plate_number)


def is_liftable_touchdown(touchdown: Optional[str]) -> bool:
    """Penalty outcomes get relabelled on lift; in-trip states never do."""
    if not touchdown or touchdown in Touchdown.IN_TRIP:
        return False
    return "Penalty" in touchdown or touchdown.startswith("Exited/")


async def apply_penalty(db: Session, plate_number: str, touchdown: str,
                        entry_log_id: Optional[int] = None) -> PenaltyResult:
    """Administrative penalty: flag the vehicle and record the reason on its visit."""
    vehicle = lookup_vehicle_by_plate(db, plate_number)
    if not vehicle:
        return PenaltyResult(success=False, outcome=Outcome.NOT_FOUND, plate_number=plate_number)

    log = _target_log(db, vehicle, entry_log_id)
    if entry_log_id is not None and not log:
        return PenaltyResult(success=False, outcome=Outcome.NOT_FOUND, plate_number=vehicle.plate_number)

    try:
        vehicle.penalty_status = PenaltyStatus.PENALTY
        if log:
            log.touchdown = touchdown
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise TransientStoreError(f"applyPenalty failed: {e}") from e

    logger.warning(f"[PENALTY] Applied to {vehicle.plate_number}: {touchdown}")
    broadcaster.publish(SystemStateChanged(), EntryLogsChanged())
    return PenaltyResult(success=True, outcome=Outcome.OK, plate_number=vehicle.plate_number,
                         penalty_status=vehicle.penalty_status,
                         touchdown=log.touchdown if log else None)


async def lift_penalty(db: Session, plate_number: str, entry_log_id: Optional[int] = None) -> PenaltyResult:
    """Lift a vehicle's penalty. In-trip visits keep their touchdown."""
    vehicle = lookup_vehicle_by_plate(db, plate_number)
    if not vehicle:
        return PenaltyResult(success=False, outcome=Outcome.NOT_FOUND, plate_number=plate_number)

    log = _target_log(db, vehicle, entry_log_id)
    if entry_log_id is not None and not log:
        return PenaltyResult(success=False, outcome=Outcome.NOT_FOUND, plate_number=vehicle.plate_number)

    now = utcnow()
    try:
        vehicle.penalty_status = PenaltyStatus.LIFTED
        vehicle.penalty_lifted_at = now
        vehicle.updated_at = now
        if log and is_liftable_touchdown(log.touchdown):
            log.touchdown = Touchdown.PENALTY_LIFTED
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise TransientStoreError(f"liftPenalty failed: {e}") from e

    logger.info(f"[PENALTY] Lifted for {vehicle.plate_number} (visit touchdown={log.touchdown if log else None})")
    broadcaster.publish(PenaltyLifted(plate_number=vehicle.plate_number, vehicle_id=vehicle.id),
                        EntryLogsChanged())
    return PenaltyResult(success=True, outcome=Outcome.OK, plate_number=vehicle.plate_number,
                         penalty_status=vehicle.penalty_status,
                         touchdown=log.touchdown if log else None,
                         penalty_lifted_at=vehicle.penalty_lifted_at)


def list_penalized(db: Session) -> list[PenaltyVehicleOut]:
    """Vehicles currently under penalty, with the touchdown of their latest visit as reason."""
    vehicles = (
        db.query(Vehicle)
        .filter(Vehicle.penalty_status == PenaltyStatus.PENALTY)
        .order_by(Vehicle.created_at.desc())
        .all()
    )
    result = []
    for vehicle in vehicles:
        log = (
            db.query(EntryLog)
            .filter(EntryLog.plate_number == vehicle.plate_number)
            .order_by(EntryLog.time_out.desc().nulls_last(), EntryLog.id.desc())
            .first()
        )
        result.append(PenaltyVehicleOut(
            plate_number=vehicle.plate_number,
            penalty_status=vehicle.penalty_status,
            created_at=vehicle.created_at,
            reason=log.touchdown if log else vehicle.penalty_status,
            time_out=log.time_out if log else None,
            entry_log_id=log.id if log else None,
        ))
    return result


def count_penalized(db: Session) -> int:
    return db.query(Vehicle).filter(Vehicle.penalty_status == PenaltyStatus.PENALTY).count()
