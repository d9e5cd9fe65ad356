# terminal/services/lane_service.py
"""
Lane Occupancy & Queue Engine: entry and exit checkpoints.

present_vehicle:
  - RFID / plate scan at a lane terminal resolves the vehicle
  - first presentation of a visit → ENTRY checkpoint (new entry log row)
  - next presentation after the entry was cleared → EXIT checkpoint
    (the same row is reopened with action=exit)
  - a checkpoint holds one active vehicle; later arrivals wait in FIFO order
  - FD1 / Pila entries draw the terminal's daily queue number

clear_checkpoint:
  - the attendant waves the active vehicle through
  - exit clears issue the ticket + QR payload the driver scans at the endpoint
  - the oldest waiting vehicle of that checkpoint becomes active

Every write re-checks its guard in the UPDATE itself (cleared = false,
state = queued) and the entry_logs partial unique indexes reject a second open
visit per plate or a second active occupant per checkpoint. A conflicting
concurrent write rolls back and the whole operation is re-run.
"""

import uuid
from typing import Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from terminal.config import settings
from terminal.models.entry_log import EntryLog, LaneAction, LaneState, Touchdown
from terminal.models.vehicle import UNKNOWN_FD, PassType, PenaltyStatus
from terminal.schemas.lane import ClearResult, PresentResult
from terminal.services.errors import Outcome, TransientStoreError
from terminal.services.notifier import broadcaster, EntryLogsChanged, SystemStateChanged
from terminal.services.sequence_service import next_queue_number
from terminal.services.state_service import (
    build_vehicle_view, find_paired_entry, queue_position, visit_time_in,
)
from terminal.services.ticket_service import issue_ticket, encode_qr_payload
from terminal.services.vehicle_service import (
    default_pass_type, find_vehicle_by_identifier, normalize_plate, update_vehicle,
)
from terminal.utils.clock import utcnow
from terminal.utils.logger import get_logger

logger = get_logger(__name__)

MAX_ATTEMPTS = 3


def is_pila(fd: Optional[str], pass_type: Optional[str]) -> bool:
    return fd == settings.PILA_FD_CODE and pass_type == PassType.PILA


def _latest_log(db: Session, vehicle_id: int) -> Optional[EntryLog]:
    return (
        db.query(EntryLog)
        .filter(EntryLog.vehicle_id == vehicle_id)
        .order_by(EntryLog.timestamp.desc(), EntryLog.id.desc())
        .first()
    )


def _checkpoint_busy(db: Session, action: str) -> bool:
    return db.query(EntryLog.id).filter(
        EntryLog.action == action,
        EntryLog.cleared == False,  # noqa: E712
    ).first() is not None


# ── presentVehicle ───────────────────────────────────────────────────────────

def _present_once(db: Session, identifier: str) -> PresentResult:
    vehicle = find_vehicle_by_identifier(db, identifier)
    if not vehicle:
        return PresentResult(success=False, outcome=Outcome.NOT_FOUND, message="Vehicle not found")

    if vehicle.penalty_status == PenaltyStatus.PENALTY:
        return PresentResult(success=False, outcome=Outcome.PENALTY_BLOCKED,
                             message="Vehicle has penalty status")

    if not vehicle.pass_type:
        update_vehicle(db, vehicle.plate_number, pass_type=default_pass_type(vehicle.fd))

    last_log = _latest_log(db, vehicle.id)
    if last_log and not last_log.cleared:
        return PresentResult(
            success=False,
            outcome=Outcome.ALREADY_IN_SYSTEM,
            message="Vehicle already in system",
            action=last_log.action,
            state=last_log.state,
            vehicle=build_vehicle_view(last_log, visit_time_in(db, last_log)),
        )

    next_action = LaneAction.EXIT if last_log and last_log.action == LaneAction.ENTRY else LaneAction.ENTRY
    now = utcnow()

    queue_number = None
    if next_action == LaneAction.ENTRY and is_pila(vehicle.fd, vehicle.pass_type):
        queue_number = next_queue_number(db, now)

    state = LaneState.QUEUED if _checkpoint_busy(db, next_action) else LaneState.ACTIVE

    if next_action == LaneAction.ENTRY:
        log = EntryLog(
            visit_id=str(uuid.uuid4()),
            vehicle_id=vehicle.id,
            plate_number=vehicle.plate_number,
            action=LaneAction.ENTRY,
            state=state,
            timestamp=now,
            cleared=False,
            time_in=now,
            route=vehicle.route,
            fd=vehicle.fd or UNKNOWN_FD,
            pass_type=vehicle.pass_type,
            queue_number=queue_number,
            touchdown=Touchdown.PROCESSING,
        )
        db.add(log)
    else:
        # One row per physical visit: the cleared entry row becomes the exit occupancy.
        log = last_log
        log.action = LaneAction.EXIT
        log.state = state
        log.cleared = False
        log.timestamp = now
    db.flush()

    queued = state == LaneState.QUEUED
    return PresentResult(
        success=True,
        outcome=Outcome.OK,
        message=("Checkpoint occupied - vehicle added to queue" if queued
                 else f"Vehicle accepted at {next_action}"),
        action=next_action,
        state=state,
        queue_position=queue_position(db, log) if queued else None,
        vehicle=build_vehicle_view(log, visit_time_in(db, log)),
    )


async def present_vehicle(db: Session, identifier: str) -> PresentResult:
    """A vehicle presents itself at a lane terminal (RFID tap or typed plate)."""
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            result = _present_once(db, identifier)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"[LANE] Concurrent write while presenting {identifier} (attempt {attempt}), re-running")
            continue
        except SQLAlchemyError as e:
            db.rollback()
            raise TransientStoreError(f"presentVehicle failed: {e}") from e

        if result.success:
            logger.info(
                f"[LANE] {result.vehicle.plate_number} → {result.action} ({result.state})"
                f" queue_no={result.vehicle.queue_number} position={result.queue_position}"
            )
            broadcaster.publish(SystemStateChanged(), EntryLogsChanged())
        else:
            logger.info(f"[LANE] Present {identifier} rejected: {result.outcome}")
        return result

    raise TransientStoreError(f"presentVehicle {identifier}: write conflicts persisted")


# ── clearCheckpoint ──────────────────────────────────────────────────────────

def _promote_next(db: Session, action: str) -> Optional[EntryLog]:
    """Flip the oldest waiting log of a checkpoint to active. At most one."""
    for _ in range(MAX_ATTEMPTS):
        candidate = (
            db.query(EntryLog)
            .filter(
                EntryLog.action == action,
                EntryLog.state == LaneState.QUEUED,
                EntryLog.cleared == False,  # noqa: E712
            )
            .order_by(EntryLog.timestamp.asc(), EntryLog.id.asc())
            .first()
        )
        if candidate is None:
            return None
        promoted = db.query(EntryLog).filter(
            EntryLog.id == candidate.id,
            EntryLog.state == LaneState.QUEUED,
            EntryLog.cleared == False,  # noqa: E712
        ).update({"state": LaneState.ACTIVE}, synchronize_session="fetch")
        if promoted == 1:
            return candidate
    return None


def _clear_once(db: Session, plate_number: str, is_exit: bool) -> ClearResult:
    plate = normalize_plate(plate_number)
    log = db.query(EntryLog).filter(
        EntryLog.plate_number == plate,
        EntryLog.cleared == False,  # noqa: E712
    ).first()
    if not log:
        return ClearResult(success=False, outcome=Outcome.NOT_FOUND)

    checkpoint = log.action
    checkpoint_was_active = log.state == LaneState.ACTIVE
    now = utcnow()
    ticket_id = qr_payload = None

    if is_exit:
        ticket_id = issue_ticket(db)
        qr_payload = encode_qr_payload(plate, ticket_id, log.fd or UNKNOWN_FD)
        touchdown = Touchdown.DISPATCH if is_pila(log.fd, log.pass_type) else Touchdown.ONGOING
        changes = {"cleared": True, "time_out": now, "action": LaneAction.EXIT,
                   "ticket_id": ticket_id, "qr_payload": qr_payload, "touchdown": touchdown}
        paired_changes = {"time_out": now, "ticket_id": ticket_id, "qr_payload": qr_payload}
    else:
        touchdown = Touchdown.WAITING
        changes = {"cleared": True, "touchdown": touchdown}
        paired_changes = {"touchdown": touchdown}

    cleared = db.query(EntryLog).filter(
        EntryLog.id == log.id,
        EntryLog.cleared == False,  # noqa: E712
    ).update(changes, synchronize_session="fetch")
    if cleared != 1:
        # Another terminal cleared it between our read and write.
        return ClearResult(success=False, outcome=Outcome.NOT_FOUND)

    paired = find_paired_entry(db, log)
    if paired:
        for name, value in paired_changes.items():
            setattr(paired, name, value)

    # A waiter leaving the queue frees no checkpoint.
    promoted = _promote_next(db, checkpoint) if checkpoint_was_active else None
    db.flush()

    return ClearResult(
        success=True,
        outcome=Outcome.OK,
        promoted=promoted is not None,
        vehicle=build_vehicle_view(promoted, visit_time_in(db, promoted)) if promoted else None,
        ticket_id=ticket_id,
        qr_payload=qr_payload,
        touchdown=touchdown,
    )


async def clear_checkpoint(db: Session, plate_number: str, is_exit: bool) -> ClearResult:
    """Release the plate's checkpoint and promote the next waiting vehicle."""
    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            result = _clear_once(db, plate_number, is_exit)
            if not result.success:
                db.rollback()
                logger.info(f"[LANE] Clear {plate_number}: no open visit")
                return result
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"[LANE] Concurrent write while clearing {plate_number} (attempt {attempt}), re-running")
            continue
        except SQLAlchemyError as e:
            db.rollback()
            raise TransientStoreError(f"clearCheckpoint failed: {e}") from e

        logger.info(
            f"[LANE] Cleared {plate_number} exit={is_exit} touchdown={result.touchdown}"
            f" ticket={result.ticket_id} promoted={result.vehicle.plate_number if result.vehicle else None}"
        )
        broadcaster.publish(SystemStateChanged(), EntryLogsChanged())
        return result

    raise TransientStoreError(f"clearCheckpoint {plate_number}: write conflicts persisted")
