# terminal/services/errors.py
"""
Outcome codes shared by the lane, ticket and penalty services.

Business-rule outcomes (already in system, penalty blocked, QR rejections)
are returned to the caller as structured results. Only TransientStoreError is
raised: the backing store failed and the whole operation may be retried.
"""


class Outcome:
    OK = "ok"
    NOT_FOUND = "not_found"
    ALREADY_IN_SYSTEM = "already_in_system"
    PENALTY_BLOCKED = "penalty_blocked"
    MALFORMED_QR = "malformed_qr"
    ALREADY_SCANNED = "already_scanned"
    NO_EXIT_RECORD = "no_exit_record"
    EXPIRED = "expired"
    WRONG_ENDPOINT = "wrong_endpoint"


class TransientStoreError(Exception):
    """Backing store unavailable or timed out. Safe to retry the whole call."""
