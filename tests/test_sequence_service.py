# tests/test_sequence_service.py
"""Daily Pila queue numbers and global exit ticket ids."""

from datetime import datetime, timedelta
from terminal.models.entry_log import EntryLog, LaneAction, LaneState
from terminal.models.sequence_counter import SequenceCounter
from terminal.services.sequence_service import (
    format_ticket_id, next_queue_number, next_ticket_id, peek_queue_number, queue_counter_key,
)

# 04:00 UTC is midday in Asia/Manila, well clear of the local date boundary.
DAY_ONE = datetime(2026, 3, 9, 4, 0, 0)
DAY_TWO = DAY_ONE + timedelta(days=1)


def add_log(db, vehicle, **fields):
    log = EntryLog(visit_id=fields.pop("visit_id", f"v-{vehicle.plate_number}"), vehicle_id=vehicle.id,
                   plate_number=vehicle.plate_number, action=LaneAction.ENTRY, state=LaneState.ACTIVE,
                   cleared=True, **fields)
    db.add(log)
    db.commit()
    return log


class TestQueueNumbers:
    def test_sequential_within_a_day(self, db):
        assert [next_queue_number(db, DAY_ONE) for _ in range(5)] == [1, 2, 3, 4, 5]

    def test_new_day_starts_at_one(self, db, make_vehicle):
        vehicle = make_vehicle("OLD-001")
        add_log(db, vehicle, timestamp=DAY_ONE, time_in=DAY_ONE, queue_number=17)
        assert next_queue_number(db, DAY_TWO) == 1

    def test_seeded_from_todays_entries(self, db, make_vehicle):
        vehicle = make_vehicle("OLD-001")
        add_log(db, vehicle, timestamp=DAY_ONE, time_in=DAY_ONE, queue_number=4)
        assert next_queue_number(db, DAY_ONE + timedelta(hours=1)) == 5

    def test_counter_key_uses_local_date(self):
        # 17:00 UTC on the 9th is already the 10th in Manila (UTC+8).
        assert queue_counter_key(datetime(2026, 3, 9, 17, 0)) == "queue:2026-03-10"
        assert queue_counter_key(datetime(2026, 3, 9, 15, 59)) == "queue:2026-03-09"

    def test_peek_does_not_consume(self, db):
        assert peek_queue_number(db, DAY_ONE) == 1
        assert peek_queue_number(db, DAY_ONE) == 1
        assert next_queue_number(db, DAY_ONE) == 1
        assert peek_queue_number(db, DAY_ONE) == 2

    def test_counter_row_persisted(self, db):
        next_queue_number(db, DAY_ONE)
        next_queue_number(db, DAY_ONE)
        db.commit()
        row = db.query(SequenceCounter).filter(SequenceCounter.key == queue_counter_key(DAY_ONE)).one()
        assert row.value == 2


class TestTicketIds:
    def test_first_ticket(self, db):
        assert next_ticket_id(db) == "00000001"

    def test_continues_after_existing_max(self, db, make_vehicle):
        vehicle = make_vehicle("OLD-001")
        add_log(db, vehicle, visit_id="a", timestamp=DAY_ONE, ticket_id="00000003")
        add_log(db, vehicle, visit_id="b", timestamp=DAY_ONE, ticket_id="00000006")
        assert next_ticket_id(db) == "00000007"
        assert next_ticket_id(db) == "00000008"

    def test_not_reset_by_day(self, db):
        next_ticket_id(db)
        next_ticket_id(db)
        assert next_ticket_id(db) == "00000003"

    def test_format_is_zero_padded_eight_digits(self):
        assert format_ticket_id(42) == "00000042"
        assert len(format_ticket_id(12345678)) == 8
