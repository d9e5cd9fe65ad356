# tests/test_penalty_service.py
"""Penalty apply / lift and the penalized-vehicle listing."""

import pytest
from datetime import timedelta
from unittest.mock import patch
from terminal.models.entry_log import EntryLog, LaneAction, LaneState, Touchdown
from terminal.models.vehicle import PenaltyStatus, VehicleStatus
from terminal.services.errors import Outcome
from terminal.services.notifier import PenaltyLifted
from terminal.services.penalty_service import (
    apply_penalty, count_penalized, is_liftable_touchdown, lift_penalty, list_penalized,
)
from terminal.utils.clock import utcnow


def add_visit(db, vehicle, touchdown, minutes_ago=30, **fields):
    now = utcnow()
    log = EntryLog(visit_id=fields.pop("visit_id", f"visit-{vehicle.plate_number}-{minutes_ago}"),
                   vehicle_id=vehicle.id, plate_number=vehicle.plate_number,
                   action=LaneAction.EXIT, state=LaneState.ACTIVE, cleared=True,
                   timestamp=now - timedelta(minutes=minutes_ago),
                   time_out=now - timedelta(minutes=minutes_ago), touchdown=touchdown, **fields)
    db.add(log)
    db.commit()
    return log


class TestLiftableTouchdown:
    @pytest.mark.parametrize("touchdown", [Touchdown.ONGOING, Touchdown.WAITING, Touchdown.DISPATCH, None])
    def test_in_trip_never_relabelled(self, touchdown):
        assert not is_liftable_touchdown(touchdown)

    @pytest.mark.parametrize("touchdown", [
        Touchdown.EXITED_WRONG_ENDPOINT, Touchdown.EXITED_EXPIRED_TICKET, Touchdown.EXITED_NO_EXIT, "Penalty",
    ])
    def test_penalty_outcomes_relabelled(self, touchdown):
        assert is_liftable_touchdown(touchdown)

    def test_successful_exit_not_relabelled(self):
        assert not is_liftable_touchdown(Touchdown.EXITED_SUCCESSFULLY)


class TestApplyPenalty:
    @pytest.mark.asyncio
    async def test_apply_sets_penalty_and_reason(self, db, make_vehicle):
        vehicle = make_vehicle("ABC-123")
        log = add_visit(db, vehicle, Touchdown.DISPATCH)
        result = await apply_penalty(db, "abc-123", "Penalty: reckless driving")
        assert result.success
        db.refresh(vehicle)
        db.refresh(log)
        assert vehicle.penalty_status == PenaltyStatus.PENALTY
        assert vehicle.status == VehicleStatus.OK
        assert log.touchdown == "Penalty: reckless driving"

    @pytest.mark.asyncio
    async def test_apply_unknown_plate(self, db):
        result = await apply_penalty(db, "NOPE", "Penalty")
        assert result.outcome == Outcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_apply_to_other_vehicles_log_rejected(self, db, make_vehicle):
        mine = make_vehicle("MINE-1")
        other = make_vehicle("OTHER-1")
        log = add_visit(db, other, Touchdown.DISPATCH)
        result = await apply_penalty(db, "MINE-1", "Penalty", entry_log_id=log.id)
        assert result.outcome == Outcome.NOT_FOUND
        db.refresh(mine)
        assert mine.penalty_status == PenaltyStatus.NONE


class TestLiftPenalty:
    @pytest.mark.asyncio
    async def test_lift_relabels_penalty_visit(self, db, make_vehicle):
        vehicle = make_vehicle("ABC-123", penalty_status=PenaltyStatus.PENALTY)
        log = add_visit(db, vehicle, Touchdown.EXITED_WRONG_ENDPOINT)
        result = await lift_penalty(db, "ABC-123")
        assert result.success
        assert result.penalty_status == PenaltyStatus.LIFTED
        assert result.penalty_lifted_at is not None
        db.refresh(log)
        assert log.touchdown == Touchdown.PENALTY_LIFTED

    @pytest.mark.asyncio
    async def test_lift_while_ongoing_keeps_touchdown(self, db, make_vehicle):
        vehicle = make_vehicle("ABC-123", penalty_status=PenaltyStatus.PENALTY)
        log = add_visit(db, vehicle, Touchdown.ONGOING)
        await lift_penalty(db, "ABC-123")
        db.refresh(vehicle)
        db.refresh(log)
        assert vehicle.penalty_status == PenaltyStatus.LIFTED
        assert vehicle.penalty_lifted_at is not None
        assert log.touchdown == Touchdown.ONGOING

    @pytest.mark.asyncio
    async def test_lift_targets_latest_visit(self, db, make_vehicle):
        vehicle = make_vehicle("ABC-123", penalty_status=PenaltyStatus.PENALTY)
        older = add_visit(db, vehicle, Touchdown.EXITED_EXPIRED_TICKET, minutes_ago=300)
        newer = add_visit(db, vehicle, Touchdown.EXITED_WRONG_ENDPOINT, minutes_ago=10)
        await lift_penalty(db, "ABC-123")
        db.refresh(older)
        db.refresh(newer)
        assert older.touchdown == Touchdown.EXITED_EXPIRED_TICKET
        assert newer.touchdown == Touchdown.PENALTY_LIFTED

    @pytest.mark.asyncio
    async def test_lift_publishes_penalty_lifted(self, db, make_vehicle):
        vehicle = make_vehicle("ABC-123", penalty_status=PenaltyStatus.PENALTY)
        with patch("terminal.services.penalty_service.broadcaster") as mock_broadcaster:
            await lift_penalty(db, "ABC-123")
        events = mock_broadcaster.publish.call_args[0]
        assert PenaltyLifted(plate_number="ABC-123", vehicle_id=vehicle.id) in events


class TestPenaltyListing:
    def test_list_and_count(self, db, make_vehicle):
        bad = make_vehicle("BAD-1", penalty_status=PenaltyStatus.PENALTY)
        make_vehicle("GOOD-1")
        make_vehicle("LIFT-1", penalty_status=PenaltyStatus.LIFTED)
        log = add_visit(db, bad, Touchdown.EXITED_WRONG_ENDPOINT)

        penalized = list_penalized(db)
        assert [p.plate_number for p in penalized] == ["BAD-1"]
        assert penalized[0].reason == Touchdown.EXITED_WRONG_ENDPOINT
        assert penalized[0].entry_log_id == log.id
        assert count_penalized(db) == 1

    def test_reason_falls_back_without_visits(self, db, make_vehicle):
        make_vehicle("BAD-2", penalty_status=PenaltyStatus.PENALTY)
        assert list_penalized(db)[0].reason == PenaltyStatus.PENALTY
