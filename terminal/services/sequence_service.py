# terminal/services/sequence_service.py
"""
Counters for Pila queue numbers and exit ticket ids.

Each counter is a row in sequence_counters, advanced with a single
`UPDATE ... SET value = value + 1` inside the caller's transaction, so two
concurrent callers can never be handed the same number. The first time a key
is used it is seeded from what the entry log already holds:

  queue:<local date>  → highest queue number issued since local midnight
                        (a new calendar day therefore starts again at 1)
  ticket              → highest ticket id ever issued
"""

from datetime import datetime
from typing import Callable, Optional
from sqlalchemy import func, insert, select, update
from sqlalchemy.orm import Session
from terminal.models.entry_log import EntryLog
from terminal.models.sequence_counter import SequenceCounter
from terminal.utils.clock import local_today, start_of_local_day, utcnow
from terminal.utils.logger import get_logger

logger = get_logger(__name__)

TICKET_COUNTER = "ticket"
TICKET_ID_WIDTH = 8


def queue_counter_key(now: datetime = None) -> str:
    return f"queue:{local_today(now).isoformat()}"


def format_ticket_id(number: int) -> str:
    return str(number).zfill(TICKET_ID_WIDTH)


def _seed_queue(db: Session, now: datetime) -> int:
    highest = db.query(func.max(EntryLog.queue_number)).filter(
        EntryLog.queue_number != None,  # noqa: E711
        EntryLog.time_in >= start_of_local_day(now),
    ).scalar()
    return highest or 0


def _seed_ticket(db: Session) -> int:
    highest = db.query(func.max(EntryLog.ticket_id)).filter(EntryLog.ticket_id != None).scalar()  # noqa: E711
    return int(highest) if highest else 0


def _current(db: Session, key: str) -> Optional[int]:
    return db.execute(select(SequenceCounter.value).where(SequenceCounter.key == key)).scalar()


def _increment(db: Session, key: str, seed: Callable[[], int]) -> int:
    """
    Advance counter `key` and return the new value.
    A concurrent first use of the same key surfaces as IntegrityError on the
    insert; callers re-run their whole operation in that case.
    """
    now = utcnow()
    if _current(db, key) is None:
        db.execute(insert(SequenceCounter).values(key=key, value=seed(), updated_at=now))
    db.execute(
        update(SequenceCounter)
        .where(SequenceCounter.key == key)
        .values(value=SequenceCounter.value + 1, updated_at=now)
    )
    return _current(db, key)


def next_queue_number(db: Session, now: datetime = None) -> int:
    """Allocate the next Pila queue number for the terminal's current day."""
    now = now or utcnow()
    number = _increment(db, queue_counter_key(now), lambda: _seed_queue(db, now))
    logger.debug(f"[SEQ] Queue number {number} allocated")
    return number


def peek_queue_number(db: Session, now: datetime = None) -> int:
    """The number the next Pila entry would receive. Allocates nothing."""
    now = now or utcnow()
    current = _current(db, queue_counter_key(now))
    if current is None:
        current = _seed_queue(db, now)
    return current + 1


def next_ticket_id(db: Session) -> str:
    """Allocate the next global exit ticket id (zero-padded, 8 digits)."""
    ticket_id = format_ticket_id(_increment(db, TICKET_COUNTER, lambda: _seed_ticket(db)))
    logger.debug(f"[SEQ] Ticket {ticket_id} allocated")
    return ticket_id
