# tests/test_notifier.py
"""Notification fan-out: publishing never fails, the broadcaster task delivers to clients."""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from terminal.schemas.lane import SystemSnapshot
from terminal.services.notifier import (
    ConnectionManager, EntryLogsChanged, PenaltyLifted, StateBroadcaster, SystemStateChanged,
)


def make_socket(fail=False):
    ws = MagicMock()
    ws.accept = AsyncMock()
    ws.send_json = AsyncMock(side_effect=RuntimeError("socket closed") if fail else None)
    return ws


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_client(self):
        manager = ConnectionManager()
        a, b = make_socket(), make_socket()
        await manager.connect(a)
        await manager.connect(b)
        await manager.broadcast({"type": "entry_logs_update"})
        a.send_json.assert_awaited_once_with({"type": "entry_logs_update"})
        b.send_json.assert_awaited_once_with({"type": "entry_logs_update"})

    @pytest.mark.asyncio
    async def test_failed_client_dropped(self):
        manager = ConnectionManager()
        good, bad = make_socket(), make_socket(fail=True)
        await manager.connect(good)
        await manager.connect(bad)
        await manager.broadcast({"type": "entry_logs_update"})
        assert manager.active == {good}


class TestStateBroadcaster:
    def test_publish_on_full_queue_does_not_raise(self):
        broadcaster = StateBroadcaster(ConnectionManager(), maxsize=1)
        broadcaster.publish(EntryLogsChanged(), EntryLogsChanged(), SystemStateChanged())
        assert broadcaster.queue.qsize() == 1

    def test_render_penalty_lifted(self):
        broadcaster = StateBroadcaster(ConnectionManager())
        message = broadcaster.render(PenaltyLifted(plate_number="ABC-123", vehicle_id=5))
        assert message == {"type": "penalty_lifted", "data": {"plateNumber": "ABC-123", "vehicleId": 5}}

    def test_render_system_state_reads_snapshot(self):
        session = MagicMock()
        broadcaster = StateBroadcaster(ConnectionManager(), session_factory=lambda: session)
        snapshot = SystemSnapshot(entry_occupied=False, exit_occupied=False)
        with patch("terminal.services.notifier.get_system_snapshot", return_value=snapshot):
            message = broadcaster.render(SystemStateChanged())
        assert message["type"] == "system_update"
        assert message["data"]["entry_occupied"] is False
        session.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_deliver_swallows_render_failure(self):
        manager = MagicMock()
        manager.broadcast = AsyncMock()
        broadcaster = StateBroadcaster(manager, session_factory=MagicMock(side_effect=RuntimeError("db down")))
        await broadcaster.deliver(SystemStateChanged())
        manager.broadcast.assert_not_called()

    @pytest.mark.asyncio
    async def test_task_delivers_published_events(self):
        manager = MagicMock()
        manager.broadcast = AsyncMock()
        broadcaster = StateBroadcaster(manager)
        broadcaster.start()
        broadcaster.publish(EntryLogsChanged())
        await asyncio.wait_for(broadcaster.queue.join(), timeout=2)
        await broadcaster.stop()
        manager.broadcast.assert_awaited_once_with({"type": "entry_logs_update"})
