# terminal/models/vehicle.py
"""
Registered vehicles table (Vehicle Registry).
Stores terminal vehicles by plate number and optional RFID tag.
`status` tracks registration validity, `penalty_status` tracks conduct;
the two are independent.
"""

from sqlalchemy import Column, Integer, String, DateTime, Date
from terminal.database import Base
from terminal.utils.clock import utcnow


UNKNOWN_FD = "Unknown"


class PassType:
    PILA = "Pila"
    TAXI = "Taxi"
    SP = "SP"

    ALL = (PILA, TAXI, SP)


class VehicleStatus:
    OK = "Ok"
    EXPIRED = "Expired"


class PenaltyStatus:
    NONE = "None"
    PENALTY = "Penalty"
    LIFTED = "Lifted"


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plate_number = Column(String(50), unique=True, nullable=False, index=True)  # upper-case
    rfid = Column(String(100), unique=True, index=True)
    driver_name = Column(String(200), nullable=False)
    operator = Column(String(200))
    route = Column(String(200))
    fd = Column(String(20))                  # FD1 | FD2 | FD3 | FD4 | Unknown
    pass_type = Column(String(20))           # Pila | Taxi | SP (null until first presentation)
    status = Column(String(20), default=VehicleStatus.OK, nullable=False)
    penalty_status = Column(String(20), default=PenaltyStatus.NONE, nullable=False, index=True)
    penalty_lifted_at = Column(DateTime)
    expiry_date = Column(Date)               # Registration document expiry
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, onupdate=utcnow)

    def __repr__(self):
        return f"<Vehicle {self.plate_number} fd={self.fd} penalty={self.penalty_status}>"
