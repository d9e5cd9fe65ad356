# terminal/services/status_sweep.py
"""
Vehicle Status Sweep: periodic housekeeping on the vehicle registry.

  1. penalty_status Lifted → None once PENALTY_LIFT_HOURS have passed since the
     lift (falls back to updated_at, then created_at, when no lift time is set)
  2. status Ok → Expired for every vehicle whose expiry_date is today or
     earlier (covers days missed while the backend was down)

Schedule (APScheduler BackgroundScheduler, terminal timezone):
  - daily primary run at SWEEP_DAILY_HOUR:00
  - wake-up check every SWEEP_CHECK_MINUTES
  - catch-up run SWEEP_STARTUP_DELAY_SECONDS after startup

A run is skipped when one already completed on the current local date, and a
run that starts while another is in progress is ignored.
"""

import asyncio
import threading
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from terminal.config import settings
from terminal.database import SessionLocal
from terminal.models.vehicle import Vehicle, PenaltyStatus, VehicleStatus
from terminal.schemas.penalty import SweepResult
from terminal.services.errors import TransientStoreError
from terminal.services.notifier import broadcaster, SystemStateChanged
from terminal.utils.clock import local_today, terminal_tz, utcnow
from terminal.utils.logger import get_logger

logger = get_logger(__name__)


class VehicleStatusSweep:
    def __init__(self, session_factory: Callable = SessionLocal):
        self.session_factory = session_factory
        self.last_run_date: Optional[date] = None
        self._lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def should_run(self, now: datetime = None) -> bool:
        return self.last_run_date != local_today(now)

    def _reset_lifted_penalties(self, db, now: datetime) -> int:
        cutoff = now - timedelta(hours=settings.PENALTY_LIFT_HOURS)
        lifted_since = func.coalesce(Vehicle.penalty_lifted_at, Vehicle.updated_at, Vehicle.created_at)
        return db.query(Vehicle).filter(
            Vehicle.penalty_status == PenaltyStatus.LIFTED,
            lifted_since <= cutoff,
        ).update(
            {"penalty_status": PenaltyStatus.NONE, "penalty_lifted_at": None, "updated_at": now},
            synchronize_session=False,
        )

    def _expire_registrations(self, db, now: datetime) -> int:
        return db.query(Vehicle).filter(
            Vehicle.status == VehicleStatus.OK,
            Vehicle.expiry_date != None,  # noqa: E711
            Vehicle.expiry_date <= local_today(now),
        ).update(
            {"status": VehicleStatus.EXPIRED, "updated_at": now},
            synchronize_session=False,
        )

    def _apply(self, now: datetime) -> tuple[int, int]:
        db = self.session_factory()
        try:
            penalties_reset = self._reset_lifted_penalties(db, now)
            expired = self._expire_registrations(db, now)
            db.commit()
            return penalties_reset, expired
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[SWEEP] Sweep failed: {e}", exc_info=True)
            raise TransientStoreError(f"status sweep failed: {e}") from e
        finally:
            db.close()

    def run(self, force: bool = False, now: datetime = None) -> SweepResult:
        """
        Apply the time-based status transitions.
        `force` ignores the already-ran-today bookkeeping (manual trigger).
        """
        now = now or utcnow()
        if not force and not self.should_run(now):
            logger.debug(f"[SWEEP] Already ran on {self.last_run_date}, skipping")
            return SweepResult(ran=False, last_run_date=self._last_run_iso())

        if not self._lock.acquire(blocking=False):
            logger.info("[SWEEP] Sweep already running, ignoring trigger")
            return SweepResult(ran=False, last_run_date=self._last_run_iso())

        try:
            penalties_reset, expired = self._apply(now)
            self.last_run_date = local_today(now)
        finally:
            self._lock.release()

        logger.info(
            f"[SWEEP] {self.last_run_date}: {penalties_reset} penalties reset, "
            f"{expired} registrations expired"
        )
        if (penalties_reset or expired) and self._loop is not None:
            self._loop.call_soon_threadsafe(broadcaster.publish, SystemStateChanged())
        return SweepResult(ran=True, expired_vehicles=expired, penalties_reset=penalties_reset,
                           last_run_date=self._last_run_iso())

    def scheduled_run(self):
        """Scheduler entry point. Store faults are logged and retried at the next check."""
        try:
            self.run()
        except TransientStoreError:
            logger.warning("[SWEEP] Store unavailable, retrying at the next check")

    def _last_run_iso(self) -> Optional[str]:
        return self.last_run_date.isoformat() if self.last_run_date else None

    def start(self):
        """Start the background schedule. Call from the running event loop."""
        if self._scheduler is not None:
            return
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None

        tz = terminal_tz()
        self._scheduler = BackgroundScheduler(timezone=tz)
        self._scheduler.add_job(
            func=self.scheduled_run,
            trigger=CronTrigger(hour=settings.SWEEP_DAILY_HOUR, minute=0, timezone=tz),
            id="daily_status_sweep",
            name="Daily vehicle status sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.add_job(
            func=self.scheduled_run,
            trigger=IntervalTrigger(minutes=settings.SWEEP_CHECK_MINUTES, timezone=tz),
            id="status_sweep_check",
            name="Missed status sweep check",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.add_job(
            func=self.scheduled_run,
            trigger=DateTrigger(
                run_date=datetime.now(tz) + timedelta(seconds=settings.SWEEP_STARTUP_DELAY_SECONDS),
                timezone=tz,
            ),
            id="status_sweep_startup",
            name="Startup status sweep catch-up",
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(
            f"[SWEEP] Scheduler started: daily at {settings.SWEEP_DAILY_HOUR:02d}:00 {settings.TERMINAL_TIMEZONE}, "
            f"check every {settings.SWEEP_CHECK_MINUTES} min"
        )

    def stop(self):
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("[SWEEP] Scheduler stopped")

    def status(self) -> dict:
        return {
            "is_running": self.is_running,
            "last_run_date": self._last_run_iso(),
            "scheduled": self._scheduler is not None,
        }


status_sweep = VehicleStatusSweep()
