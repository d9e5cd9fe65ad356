# terminal/utils/qr_payload.py
"""
Exit ticket QR payload codec.

Wire format (ASCII, exactly two '|' separators):
    vehicle:<PLATE>|ticket:<8-digit ticket id>|fd:<FD CODE>
"""

import re
from dataclasses import dataclass
from typing import Optional

SEGMENT_KEYS = ("vehicle", "ticket", "fd")
TICKET_ID_RE = re.compile(r"^\d{8}$")


@dataclass(frozen=True)
class QrPayload:
    plate_number: str
    ticket_id: str
    fd: str


def encode_qr_payload(plate_number: str, ticket_id: str, fd: str) -> str:
    return f"vehicle:{plate_number}|ticket:{ticket_id}|fd:{fd}"


def parse_qr_payload(raw: str) -> Optional[QrPayload]:
    """Parse a scanned payload. Returns None on any deviation from the format."""
    if not raw or not raw.isascii():
        return None

    segments = raw.split("|")
    if len(segments) != len(SEGMENT_KEYS):
        return None

    values = []
    for segment, expected_key in zip(segments, SEGMENT_KEYS):
        key, sep, value = segment.partition(":")
        if not sep or key != expected_key or not value:
            return None
        values.append(value)

    plate_number, ticket_id, fd = values
    if not TICKET_ID_RE.match(ticket_id):
        return None
    return QrPayload(plate_number=plate_number, ticket_id=ticket_id, fd=fd)
