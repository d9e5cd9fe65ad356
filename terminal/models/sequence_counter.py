# terminal/models/sequence_counter.py
"""
Named monotonic counters (daily Pila queue numbers, global ticket ids).
Incremented with a single UPDATE ... SET value = value + 1 so concurrent
callers never read the same next value.
"""

from sqlalchemy import Column, Integer, String, DateTime
from terminal.database import Base


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    key = Column(String(64), primary_key=True)   # "ticket" | "queue:2026-10-18"
    value = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<SequenceCounter {self.key}={self.value}>"
