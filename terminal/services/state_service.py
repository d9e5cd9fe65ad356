# terminal/services/state_service.py
"""
Read side of the lane engine: denormalized vehicle views, visit pairing,
queue positions and the entry/exit system snapshot pushed to lane terminals.
"""

from typing import Optional
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session
from terminal.models.entry_log import EntryLog, LaneAction, LaneState
from terminal.models.vehicle import VehicleStatus, PenaltyStatus
from terminal.schemas.lane import SystemSnapshot, VehicleView
from terminal.services.vehicle_service import default_pass_type


def build_vehicle_view(log: EntryLog, time_in=None) -> VehicleView:
    vehicle = log.vehicle
    return VehicleView(
        plate_number=log.plate_number,
        driver_name=vehicle.driver_name if vehicle else "",
        route=log.route or (vehicle.route if vehicle else None),
        fd=log.fd or (vehicle.fd if vehicle else None),
        pass_type=log.pass_type or (vehicle.pass_type if vehicle else None) or default_pass_type(log.fd),
        queue_number=log.queue_number,
        time_in=time_in or log.time_in,
        status=vehicle.status if vehicle else VehicleStatus.OK,
        penalty_status=vehicle.penalty_status if vehicle else PenaltyStatus.NONE,
        action=log.action,
        state=log.state,
        ticket_id=log.ticket_id,
        qr_payload=log.qr_payload,
    )


def find_paired_entry(db: Session, log: EntryLog) -> Optional[EntryLog]:
    """Separate entry row recorded for the same visit, if there is one."""
    return (
        db.query(EntryLog)
        .filter(
            EntryLog.visit_id == log.visit_id,
            EntryLog.id != log.id,
            EntryLog.action == LaneAction.ENTRY,
        )
        .order_by(EntryLog.timestamp.desc(), EntryLog.id.desc())
        .first()
    )


def visit_time_in(db: Session, log: EntryLog):
    """When the vehicle originally entered for this visit."""
    if log.time_in:
        return log.time_in
    paired = find_paired_entry(db, log)
    return paired.time_in if paired else None


def _queue_query(db: Session, action: str):
    return (
        db.query(EntryLog)
        .filter(
            EntryLog.action == action,
            EntryLog.state == LaneState.QUEUED,
            EntryLog.cleared == False,  # noqa: E712
        )
    )


def queued_logs(db: Session, action: str) -> list[EntryLog]:
    """Waiting list for a checkpoint, first-in first."""
    return _queue_query(db, action).order_by(EntryLog.timestamp.asc(), EntryLog.id.asc()).all()


def queue_position(db: Session, log: EntryLog) -> int:
    """1-based position of a queued log in its checkpoint's waiting list."""
    return _queue_query(db, log.action).filter(
        or_(
            EntryLog.timestamp < log.timestamp,
            and_(EntryLog.timestamp == log.timestamp, EntryLog.id <= log.id),
        )
    ).count()


def active_occupant(db: Session, action: str) -> Optional[EntryLog]:
    return db.query(EntryLog).filter(
        EntryLog.action == action,
        EntryLog.state == LaneState.ACTIVE,
        EntryLog.cleared == False,  # noqa: E712
    ).first()


def get_system_snapshot(db: Session) -> SystemSnapshot:
    """Current occupant and waiting list of both checkpoints."""
    entry_log = active_occupant(db, LaneAction.ENTRY)
    exit_log = active_occupant(db, LaneAction.EXIT)
    return SystemSnapshot(
        entry_occupied=entry_log is not None,
        exit_occupied=exit_log is not None,
        entry_vehicle=build_vehicle_view(entry_log) if entry_log else None,
        exit_vehicle=build_vehicle_view(exit_log, visit_time_in(db, exit_log)) if exit_log else None,
        entry_queue=[build_vehicle_view(log) for log in queued_logs(db, LaneAction.ENTRY)],
        exit_queue=[build_vehicle_view(log, visit_time_in(db, log)) for log in queued_logs(db, LaneAction.EXIT)],
    )
