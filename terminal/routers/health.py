# terminal/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + status sweep + connected lane terminals.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from terminal.database import get_db
from terminal.services.notifier import manager
from terminal.services.status_sweep import status_sweep
from terminal.utils.clock import utcnow

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Status sweep bookkeeping (is_running, last_run_date)
    - Number of connected websocket clients
    """
    result = {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "sweep": status_sweep.status(),
        "clients": len(manager.active),
    }

    # Check database
    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
