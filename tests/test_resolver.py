import unittest
from datetime import datetime, timezone

from reservation_engine import ConflictError, ReservationRecord, resolve_conflicts


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


def _record(reservation_id: str, start: datetime, end: datetime, priority: int, room: str = "R1") -> ReservationRecord:
    return ReservationRecord(
        reservation_id=reservation_id,
        room_name=room,
        start_time=start,
        end_time=end,
        priority_level=priority,
        owner_id=f"owner-{reservation_id}",
        type="Meeting",
        created_at=_at(8),
    )


class TestResolveConflicts(unittest.TestCase):
    def test_admits_without_eviction_when_slot_is_free(self) -> None:
        candidate = _record("new", _at(10), _at(11), 1)
        resolution = resolve_conflicts(candidate, [_record("old", _at(11), _at(12), 4)])

        self.assertFalse(resolution.preempted)
        self.assertIs(resolution.candidate, candidate)

    def test_higher_priority_evicts_whole_overlap_set(self) -> None:
        first = _record("a", _at(9), _at(10), 1)
        second = _record("b", _at(10), _at(11), 2)
        candidate = _record("new", _at(9, 30), _at(10, 30), 3)

        resolution = resolve_conflicts(candidate, [first, second])

        self.assertEqual({record.reservation_id for record in resolution.evicted}, {"a", "b"})

    def test_equal_priority_keeps_incumbent(self) -> None:
        incumbent = _record("old", _at(10), _at(11), 3)
        candidate = _record("new", _at(10, 30), _at(11, 30), 3)

        with self.assertRaises(ConflictError) as context:
            resolve_conflicts(candidate, [incumbent])

        self.assertEqual(context.exception.blocking_ids, ["old"])
        self.assertEqual(context.exception.max_existing_priority, 3)

    def test_rejects_when_any_overlap_outranks_candidate(self) -> None:
        head_admin = _record("ha", _at(9), _at(10), 4)
        ceo = _record("ceo", _at(11), _at(12), 2)
        guide = _record("guide", _at(9, 30), _at(11, 30), 3)

        with self.assertRaises(ConflictError) as context:
            resolve_conflicts(guide, [head_admin, ceo])

        self.assertEqual(sorted(context.exception.blocking_ids), ["ceo", "ha"])

    def test_other_rooms_never_conflict(self) -> None:
        elsewhere = _record("x", _at(10), _at(11), 4, room="R2")
        candidate = _record("new", _at(10), _at(11), 1)

        resolution = resolve_conflicts(candidate, [elsewhere])

        self.assertEqual(resolution.evicted, ())


if __name__ == "__main__":
    unittest.main()
