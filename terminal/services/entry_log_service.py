# terminal/services/entry_log_service.py
"""
Entry log queries and attendant corrections.

Listing / search back the dashboard tables; pass and FD corrections only touch
the plate's open visit. Dashboard counts use the terminal's local calendar day.
"""

from datetime import timedelta
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from terminal.models.entry_log import EntryLog, Touchdown
from terminal.models.vehicle import PassType
from terminal.schemas.entry_log import DashboardCountsOut
from terminal.services.errors import TransientStoreError
from terminal.services.notifier import broadcaster, EntryLogsChanged, SystemStateChanged
from terminal.services.vehicle_service import normalize_plate
from terminal.utils.clock import local_today, start_of_local_day, utcnow
from terminal.utils.logger import get_logger

logger = get_logger(__name__)

RECENT_LIMIT = 50


def list_recent_logs(db: Session, limit: int = RECENT_LIMIT) -> list[EntryLog]:
    return (
        db.query(EntryLog)
        .order_by(EntryLog.time_in.desc().nulls_last(), EntryLog.id.desc())
        .limit(limit)
        .all()
    )


def list_active_logs(db: Session) -> list[EntryLog]:
    """Visits still occupying or waiting for a checkpoint."""
    return (
        db.query(EntryLog)
        .filter(EntryLog.cleared == False)  # noqa: E712
        .order_by(EntryLog.timestamp.asc(), EntryLog.id.asc())
        .all()
    )


def search_logs(db: Session, plate_number: Optional[str] = None, touchdown: Optional[str] = None) -> list[EntryLog]:
    q = db.query(EntryLog)
    if plate_number:
        q = q.filter(EntryLog.plate_number == normalize_plate(plate_number))
    if touchdown:
        q = q.filter(EntryLog.touchdown == touchdown)
    return q.order_by(EntryLog.time_out.desc().nulls_last(), EntryLog.id.desc()).all()


def _open_log(db: Session, plate_number: str) -> Optional[EntryLog]:
    return db.query(EntryLog).filter(
        EntryLog.plate_number == normalize_plate(plate_number),
        EntryLog.cleared == False,  # noqa: E712
    ).first()


def _commit(db: Session, operation: str):
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise TransientStoreError(f"{operation} failed: {e}") from e


async def update_pass(db: Session, plate_number: str, pass_type: str,
                      queue_number: Optional[int] = None) -> Optional[EntryLog]:
    """
    Correct the pass of the plate's open visit.
    Pila keeps (or sets) a queue number; Taxi and SP never carry one.
    Returns None when the plate has no open visit.
    """
    log = _open_log(db, plate_number)
    if not log:
        return None

    log.pass_type = pass_type
    if pass_type == PassType.PILA:
        if queue_number is not None:
            log.queue_number = queue_number
    else:
        log.queue_number = None
    _commit(db, "updatePass")

    logger.info(f"[LANE] Pass for {log.plate_number} set to {pass_type} (queue_no={log.queue_number})")
    broadcaster.publish(SystemStateChanged(), EntryLogsChanged())
    return log


async def update_fd(db: Session, plate_number: str, fd: str) -> Optional[EntryLog]:
    """Correct the route class of the plate's open visit."""
    log = _open_log(db, plate_number)
    if not log:
        return None

    log.fd = fd
    _commit(db, "updateFd")

    logger.info(f"[LANE] FD for {log.plate_number} set to {fd}")
    broadcaster.publish(SystemStateChanged(), EntryLogsChanged())
    return log


def dashboard_counts(db: Session, now=None) -> DashboardCountsOut:
    """Trips completed today (left the terminal and no longer ongoing), by pass."""
    now = now or utcnow()
    day_start = start_of_local_day(now)
    day_end = day_start + timedelta(days=1)

    rows = (
        db.query(EntryLog.pass_type)
        .filter(
            EntryLog.time_out >= day_start,
            EntryLog.time_out < day_end,
            EntryLog.touchdown != Touchdown.ONGOING,
        )
        .all()
    )
    passes = [row.pass_type for row in rows]
    return DashboardCountsOut(
        date=local_today(now).isoformat(),
        total_trips=len(passes),
        pila_count=passes.count(PassType.PILA),
        taxi_count=passes.count(PassType.TAXI),
        special_pass_count=passes.count(PassType.SP),
    )
