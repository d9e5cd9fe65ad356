# tests/test_entry_log_service.py
"""Entry log listing, attendant corrections and dashboard counts."""

import pytest
from datetime import datetime, timedelta
from terminal.models.entry_log import EntryLog, LaneAction, LaneState, Touchdown
from terminal.models.vehicle import PassType
from terminal.services import entry_log_service
from terminal.services.lane_service import present_vehicle

NOW = datetime(2026, 3, 10, 4, 0, 0)   # midday in Asia/Manila


def add_trip(db, vehicle, pass_type, touchdown, time_out, cleared=True, **fields):
    log = EntryLog(visit_id=f"visit-{vehicle.plate_number}-{time_out}", vehicle_id=vehicle.id,
                   plate_number=vehicle.plate_number, action=LaneAction.EXIT, state=LaneState.ACTIVE,
                   cleared=cleared, timestamp=time_out, time_in=time_out - timedelta(minutes=20),
                   time_out=time_out, pass_type=pass_type, touchdown=touchdown, **fields)
    db.add(log)
    db.commit()
    return log


class TestCorrections:
    @pytest.mark.asyncio
    async def test_taxi_pass_clears_queue_number(self, db, make_vehicle):
        make_vehicle("ABC-123")
        await present_vehicle(db, "ABC-123")
        log = await entry_log_service.update_pass(db, "ABC-123", PassType.TAXI)
        assert log.pass_type == PassType.TAXI
        assert log.queue_number is None

    @pytest.mark.asyncio
    async def test_pila_pass_sets_queue_number(self, db, make_vehicle):
        make_vehicle("TAX-001", fd="FD2")
        await present_vehicle(db, "TAX-001")
        log = await entry_log_service.update_pass(db, "TAX-001", PassType.PILA, queue_number=12)
        assert (log.pass_type, log.queue_number) == (PassType.PILA, 12)

    @pytest.mark.asyncio
    async def test_corrections_need_open_visit(self, db, make_vehicle):
        make_vehicle("ABC-123")
        assert await entry_log_service.update_pass(db, "ABC-123", PassType.SP) is None
        assert await entry_log_service.update_fd(db, "ABC-123", "FD2") is None

    @pytest.mark.asyncio
    async def test_fd_correction(self, db, make_vehicle):
        make_vehicle("ABC-123")
        await present_vehicle(db, "ABC-123")
        log = await entry_log_service.update_fd(db, "abc-123", "FD4")
        assert log.fd == "FD4"


class TestListings:
    def test_recent_newest_first(self, db, make_vehicle):
        vehicle = make_vehicle("ABC-123")
        old = add_trip(db, vehicle, PassType.PILA, Touchdown.EXITED_SUCCESSFULLY, NOW - timedelta(days=1))
        new = add_trip(db, vehicle, PassType.PILA, Touchdown.EXITED_SUCCESSFULLY, NOW)
        assert [log.id for log in entry_log_service.list_recent_logs(db)] == [new.id, old.id]

    @pytest.mark.asyncio
    async def test_active_only_open_visits(self, db, make_vehicle):
        done = make_vehicle("DONE-1")
        add_trip(db, done, PassType.TAXI, Touchdown.ONGOING, NOW)
        make_vehicle("OPEN-1")
        await present_vehicle(db, "OPEN-1")
        assert [log.plate_number for log in entry_log_service.list_active_logs(db)] == ["OPEN-1"]

    def test_search_by_plate_and_touchdown(self, db, make_vehicle):
        vehicle = make_vehicle("ABC-123")
        add_trip(db, vehicle, PassType.PILA, Touchdown.EXITED_SUCCESSFULLY, NOW - timedelta(days=2))
        wrong = add_trip(db, vehicle, PassType.PILA, Touchdown.EXITED_WRONG_ENDPOINT, NOW)
        found = entry_log_service.search_logs(db, "abc-123", Touchdown.EXITED_WRONG_ENDPOINT)
        assert [log.id for log in found] == [wrong.id]
        assert len(entry_log_service.search_logs(db, "ABC-123")) == 2


class TestDashboardCounts:
    def test_counts_todays_finished_trips_by_pass(self, db, make_vehicle):
        v = make_vehicle("ABC-123")
        add_trip(db, v, PassType.PILA, Touchdown.EXITED_SUCCESSFULLY, NOW - timedelta(hours=1))
        add_trip(db, v, PassType.PILA, Touchdown.DISPATCH, NOW - timedelta(hours=2))
        add_trip(db, v, PassType.TAXI, Touchdown.EXITED_WRONG_ENDPOINT, NOW - timedelta(hours=3))
        add_trip(db, v, PassType.SP, Touchdown.WAITING, NOW - timedelta(hours=2, minutes=30))
        add_trip(db, v, PassType.TAXI, Touchdown.ONGOING, NOW - timedelta(minutes=5))      # still on the road
        add_trip(db, v, PassType.PILA, Touchdown.EXITED_SUCCESSFULLY, NOW - timedelta(days=1))  # yesterday

        counts = entry_log_service.dashboard_counts(db, now=NOW)
        assert counts.date == "2026-03-10"
        assert counts.total_trips == 4
        assert (counts.pila_count, counts.taxi_count, counts.special_pass_count) == (2, 1, 1)
