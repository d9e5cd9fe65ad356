# terminal/models/entry_log.py
"""
Entry log table: one row per vehicle visit through the terminal lanes.
The row is created when the vehicle presents at the entry checkpoint, reopened
in place when it presents at the exit checkpoint, and carries the exit ticket.
Rows are never deleted (audit trail).

Route / FD / pass are copied from the vehicle when the row is created so later
registry edits don't rewrite history.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Index, Text, and_
from sqlalchemy.orm import relationship
from terminal.database import Base
from terminal.utils.clock import utcnow


class LaneAction:
    ENTRY = "entry"
    EXIT = "exit"


class LaneState:
    ACTIVE = "active"
    QUEUED = "queued"


class Touchdown:
    PROCESSING = "processing"
    WAITING = "waiting"
    DISPATCH = "dispatch"
    ONGOING = "ongoing"
    EXITED_SUCCESSFULLY = "Exited Successfully"
    EXITED_WRONG_ENDPOINT = "Exited/Wrong Endpoint"
    EXITED_EXPIRED_TICKET = "Exited/Expired ticket"
    EXITED_NO_EXIT = "Exited/No ticket or no exit"
    PENALTY_LIFTED = "Penalty Lifted"

    IN_TRIP = (ONGOING, WAITING, DISPATCH)


class EntryLog(Base):
    __tablename__ = "entry_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    visit_id = Column(String(36), nullable=False, index=True)   # shared by the rows of one physical pass
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    plate_number = Column(String(50), nullable=False, index=True)
    action = Column(String(10), nullable=False)                 # entry | exit
    state = Column(String(10), nullable=False, default=LaneState.ACTIVE)  # active | queued
    timestamp = Column(DateTime, nullable=False, default=utcnow, index=True)
    cleared = Column(Boolean, nullable=False, default=False)
    time_in = Column(DateTime)
    time_out = Column(DateTime)
    route = Column(String(200))
    fd = Column(String(20))
    pass_type = Column(String(20))
    queue_number = Column(Integer)           # Pila entries only
    touchdown = Column(String(50), nullable=False, default=Touchdown.PROCESSING)
    ticket_id = Column(String(8), index=True)
    qr_payload = Column(Text)

    vehicle = relationship("Vehicle")

    def __repr__(self):
        return (f"<EntryLog {self.id} plate={self.plate_number} action={self.action} "
                f"state={self.state} cleared={self.cleared}>")


# At most one open visit per plate ("vehicle already in system").
Index(
    "uq_entry_logs_open_plate",
    EntryLog.plate_number,
    unique=True,
    postgresql_where=(EntryLog.cleared == False),  # noqa: E712
    sqlite_where=(EntryLog.cleared == False),      # noqa: E712
)

# At most one active occupant per checkpoint.
Index(
    "uq_entry_logs_active_checkpoint",
    EntryLog.action,
    unique=True,
    postgresql_where=and_(EntryLog.cleared == False, EntryLog.state == LaneState.ACTIVE),  # noqa: E712
    sqlite_where=and_(EntryLog.cleared == False, EntryLog.state == LaneState.ACTIVE),      # noqa: E712
)
