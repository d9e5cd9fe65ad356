# terminal/services/ticket_service.py
"""
Ticket & QR Validation State Machine.

An exit clear issues a ticket (global 8-digit id) whose QR payload the driver
scans at the destination endpoint. One validator serves every endpoint; the
endpoint's FD code is its only parameter.

Scan outcomes (touchdown written on the visit):
  malformed payload          → MALFORMED_QR    (no change)
  unknown plate/ticket       → NOT_FOUND       (no change)
  already Exited Successfully→ ALREADY_SCANNED (no change)
  no exit recorded           → NO_EXIT_RECORD  "Exited/No ticket or no exit" + Penalty
  older than validity window → EXPIRED         "Exited/Expired ticket"       + Penalty
  FD differs from endpoint   → WRONG_ENDPOINT  "Exited/Wrong Endpoint"       + Penalty
  FD matches                 → OK              "Exited Successfully"

The penalty and the touchdown are committed together.
"""

from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from terminal.config import settings
from terminal.models.entry_log import EntryLog, Touchdown
from terminal.schemas.ticket import QrScanResult
from terminal.services.errors import Outcome, TransientStoreError
from terminal.services.notifier import broadcaster, EntryLogsChanged
from terminal.services.penalty_service import mark_penalized
from terminal.services.sequence_service import next_ticket_id
from terminal.utils.clock import hours_since
from terminal.utils.logger import get_logger
from terminal.utils.qr_payload import encode_qr_payload, parse_qr_payload

logger = get_logger(__name__)

__all__ = ["issue_ticket", "encode_qr_payload", "validate_qr"]

MAX_ATTEMPTS = 3

_UNCHANGED = (Outcome.MALFORMED_QR, Outcome.NOT_FOUND, Outcome.ALREADY_SCANNED)

_FAILURE_MESSAGES = {
    Outcome.NO_EXIT_RECORD: "No exit recorded for this ticket, Penalty applied",
    Outcome.EXPIRED: "Expired ticket, Penalty applied",
    Outcome.WRONG_ENDPOINT: "Wrong FD, Penalty applied",
}


def issue_ticket(db: Session) -> str:
    """Next exit ticket id. Runs inside the caller's transaction."""
    ticket_id = next_ticket_id(db)
    logger.debug(f"[TICKET] allocated {ticket_id}")
    return ticket_id


def _judge(log: EntryLog, expected_fd: str) -> tuple[str, str]:
    """Decide (outcome, new touchdown) for a scan of `log` at endpoint `expected_fd`."""
    if not log.ticket_id or not log.time_out:
        return Outcome.NO_EXIT_RECORD, Touchdown.EXITED_NO_EXIT
    if hours_since(log.time_out) > settings.TICKET_VALIDITY_HOURS:
        return Outcome.EXPIRED, Touchdown.EXITED_EXPIRED_TICKET
    if log.fd == expected_fd:
        return Outcome.OK, Touchdown.EXITED_SUCCESSFULLY
    return Outcome.WRONG_ENDPOINT, Touchdown.EXITED_WRONG_ENDPOINT


def _scan_once(db: Session, qr_data: str, expected_fd: str) -> Optional[QrScanResult]:
    payload = parse_qr_payload(qr_data)
    if payload is None:
        return QrScanResult(success=False, outcome=Outcome.MALFORMED_QR,
                            message="Invalid QR format. Expected vehicle:plate|ticket:id|fd:FD")

    plate = payload.plate_number.upper()
    log = (
        db.query(EntryLog)
        .filter(EntryLog.plate_number == plate, EntryLog.ticket_id == payload.ticket_id)
        .order_by(EntryLog.id.desc())
        .first()
    )
    if not log:
        return QrScanResult(success=False, outcome=Outcome.NOT_FOUND,
                            message="Ticket not found for this vehicle",
                            plate_number=plate, ticket_id=payload.ticket_id)

    if log.touchdown == Touchdown.EXITED_SUCCESSFULLY:
        return QrScanResult(success=False, outcome=Outcome.ALREADY_SCANNED, message="Ticket already scanned",
                            touchdown=log.touchdown, plate_number=plate, ticket_id=payload.ticket_id)

    outcome, touchdown = _judge(log, expected_fd)

    # Guard on the touchdown we judged, so two simultaneous scans resolve once.
    updated = db.query(EntryLog).filter(
        EntryLog.id == log.id, EntryLog.touchdown == log.touchdown
    ).update({"touchdown": touchdown}, synchronize_session="fetch")
    if updated != 1:
        return None
    if outcome != Outcome.OK:
        mark_penalized(db, plate)

    return QrScanResult(
        success=outcome == Outcome.OK,
        outcome=outcome,
        message="Exit Successfully" if outcome == Outcome.OK else _FAILURE_MESSAGES[outcome],
        touchdown=touchdown,
        plate_number=plate,
        ticket_id=payload.ticket_id,
    )


async def validate_qr(db: Session, qr_data: str, expected_fd: str) -> QrScanResult:
    """Scan an exit ticket at the endpoint for route class `expected_fd`."""
    for _ in range(MAX_ATTEMPTS):
        try:
            result = _scan_once(db, qr_data, expected_fd)
            if result is None:
                db.rollback()
                continue
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise TransientStoreError(f"validateQr failed: {e}") from e

        if result.outcome == Outcome.OK:
            logger.info(f"[QR] {result.plate_number} ticket={result.ticket_id} exited at {expected_fd}")
        else:
            logger.warning(f"[QR] Scan at {expected_fd} rejected: {result.outcome} ({result.plate_number})")
        if result.outcome not in _UNCHANGED:
            broadcaster.publish(EntryLogsChanged())
        return result

    raise TransientStoreError("validateQr: touchdown kept changing under concurrent scans")
