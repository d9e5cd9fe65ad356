# terminal/routers/ws.py
"""
Websocket for lane terminals and dashboards.
On connect the client receives the current system snapshot. Clients may send:
  {"type": "state_change"}      → fresh snapshot broadcast to everyone
  {"type": "entry_logs_update"} → refresh hint broadcast to everyone
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from terminal.services.notifier import broadcaster, manager, EntryLogsChanged, SystemStateChanged
from terminal.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)

CLIENT_EVENTS = {
    "state_change": SystemStateChanged,
    "entry_logs_update": EntryLogsChanged,
}


@router.websocket("/ws")
async def lane_socket(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        await websocket.send_json(broadcaster.snapshot_message())
        while True:
            message = await websocket.receive_json()
            event = CLIENT_EVENTS.get(message.get("type")) if isinstance(message, dict) else None
            if event is None:
                logger.debug(f"[NOTIFY] Ignoring client message: {message}")
                continue
            broadcaster.publish(event())
    except WebSocketDisconnect as e:
        logger.debug(f"[NOTIFY] Client closed the socket (code={e.code})")
    finally:
        manager.disconnect(websocket)
