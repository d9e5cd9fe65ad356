# terminal/services/notifier.py
"""
Notification fan-out to lane terminals and dashboards.

Services call `broadcaster.publish(event)` after their transaction commits.
Publishing only drops the event on an in-process queue; a separate
broadcaster task renders it (a system snapshot is read with its own DB
session) and pushes it to every connected websocket. Nothing here can fail
or slow down the operation that published the event.

Messages sent to clients:
  {"type": "system_update", "data": <SystemSnapshot>}
  {"type": "entry_logs_update"}
  {"type": "penalty_lifted", "data": {"plateNumber": ..., "vehicleId": ...}}
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Optional
from fastapi import WebSocket
from terminal.config import settings
from terminal.database import SessionLocal
from terminal.services.state_service import get_system_snapshot
from terminal.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SystemStateChanged:
    """Occupancy or queues changed; clients should redraw both lanes."""


@dataclass
class EntryLogsChanged:
    """Visit records changed; log tables should be refetched."""


@dataclass
class PenaltyLifted:
    plate_number: str
    vehicle_id: int


class ConnectionManager:
    """Tracks connected websocket clients."""

    def __init__(self):
        self.active: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active.add(websocket)
        logger.info(f"[NOTIFY] Client connected ({len(self.active)} total)")

    def disconnect(self, websocket: WebSocket):
        self.active.discard(websocket)
        logger.info(f"[NOTIFY] Client disconnected ({len(self.active)} total)")

    async def broadcast(self, message: dict):
        for websocket in list(self.active):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"[NOTIFY] Dropping client after send failure: {e}")
                self.active.discard(websocket)


class StateBroadcaster:
    def __init__(self, manager: ConnectionManager, session_factory: Callable = SessionLocal,
                 maxsize: int = settings.NOTIFY_QUEUE_SIZE):
        self.manager = manager
        self.session_factory = session_factory
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task] = None

    def publish(self, *events):
        """Queue events for broadcast. Never blocks, never raises."""
        for event in events:
            try:
                self.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"[NOTIFY] Queue full, dropped {type(event).__name__}")

    def snapshot_message(self) -> dict:
        db = self.session_factory()
        try:
            snapshot = get_system_snapshot(db)
        finally:
            db.close()
        return {"type": "system_update", "data": snapshot.model_dump(mode="json")}

    def render(self, event) -> dict:
        if isinstance(event, SystemStateChanged):
            return self.snapshot_message()
        if isinstance(event, EntryLogsChanged):
            return {"type": "entry_logs_update"}
        if isinstance(event, PenaltyLifted):
            return {"type": "penalty_lifted",
                    "data": {"plateNumber": event.plate_number, "vehicleId": event.vehicle_id}}
        raise ValueError(f"Unknown notification event: {event!r}")

    async def deliver(self, event):
        try:
            await self.manager.broadcast(self.render(event))
        except Exception as e:
            logger.error(f"[NOTIFY] Failed to deliver {type(event).__name__}: {e}", exc_info=True)

    async def run(self):
        while True:
            event = await self.queue.get()
            await self.deliver(event)
            self.queue.task_done()

    def start(self):
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="state-broadcaster")
            logger.info("[NOTIFY] Broadcaster started")

    async def stop(self):
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("[NOTIFY] Broadcaster stopped")


manager = ConnectionManager()
broadcaster = StateBroadcaster(manager)
