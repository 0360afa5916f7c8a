import random
import threading
import time
import unittest
from datetime import datetime, timedelta, timezone

from reservation_engine import (
    ConflictError,
    DurationExceededError,
    InMemoryReservationStore,
    InvalidTimeRangeError,
    ReservationEngine,
    ReservationError,
    RoomNotAllowedForRoleError,
    RoomPolicyStore,
    UserDirectory,
)

ALL_ROLES = ["STUDENT", "CEO", "GUIDE", "HEAD_ADMIN"]


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 3, 2, hour, minute, tzinfo=timezone.utc)


class SlowReservationStore(InMemoryReservationStore):
    """Widens the read-decide-write window so unsynchronised admissions would collide."""

    def find_overlapping(self, room_name, start, end):
        found = super().find_overlapping(room_name, start, end)
        time.sleep(0.01)
        return found


class TestReservationEngine(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryReservationStore()
        self.users = UserDirectory()
        self.policies = RoomPolicyStore(
            [
                {"name": "R1", "allowed_roles": ALL_ROLES},
                {"name": "R2", "allowed_roles": ALL_ROLES},
                {"name": "Boardroom", "allowed_roles": ["CEO", "HEAD_ADMIN"]},
            ]
        )
        self.engine = ReservationEngine(
            self.store,
            self.users,
            self.policies,
            clock=lambda: datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
        )
        self.student = self.users.login("student@vut.cz", "Student")
        self.ceo = self.users.login("ceo@vut.cz", "CEO")
        self.guide = self.users.login("guide@vut.cz", "Guide")
        self.head_admin = self.users.login("admin@vut.cz", "Head Admin")

    def _submit(self, owner, start: datetime, end: datetime, room: str = "R1"):
        return self.engine.submit_reservation(
            {"owner_id": owner.id, "room_name": room, "start_time": start, "end_time": end, "type": "Meeting"}
        )

    def test_scenario_a_guide_preempts_student(self) -> None:
        student_booking = self._submit(self.student, _at(10), _at(11))
        guide_booking = self._submit(self.guide, _at(10, 30), _at(11, 30))

        self.assertEqual([record.reservation_id for record in guide_booking.evicted], [student_booking.reservation.reservation_id])
        listed = self.engine.list_reservations()
        self.assertEqual([item.reservation.reservation_id for item in listed], [guide_booking.reservation.reservation_id])
        self.assertEqual(listed[0].owner.email, "guide@vut.cz")
        self.assertEqual(listed[0].reservation.priority_level, 3)

    def test_scenario_b_student_rejected_by_guide(self) -> None:
        guide_booking = self._submit(self.guide, _at(10), _at(11))

        with self.assertRaises(ConflictError):
            self._submit(self.student, _at(10, 30), _at(10, 45))

        self.assertEqual(self.store.list_all(), [guide_booking.reservation])

    def test_scenario_c_highest_overlap_priority_decides(self) -> None:
        admin_booking = self._submit(self.head_admin, _at(9), _at(10))
        ceo_booking = self._submit(self.ceo, _at(11), _at(12))

        with self.assertRaises(ConflictError) as context:
            self._submit(self.guide, _at(9, 30), _at(11, 30))

        self.assertEqual(context.exception.max_existing_priority, 4)
        live_ids = {record.reservation_id for record in self.store.list_all()}
        self.assertEqual(live_ids, {admin_booking.reservation.reservation_id, ceo_booking.reservation.reservation_id})

    def test_scenario_d_zero_length_range(self) -> None:
        with self.assertRaises(InvalidTimeRangeError):
            self._submit(self.student, _at(10), _at(10))

    def test_scenario_e_room_not_allowed_skips_overlap_check(self) -> None:
        calls: list[str] = []
        original = self.store.find_overlapping

        def tracking(room_name, start, end):
            calls.append(room_name)
            return original(room_name, start, end)

        self.store.find_overlapping = tracking
        with self.assertRaises(RoomNotAllowedForRoleError):
            self._submit(self.student, _at(10), _at(11), room="Boardroom")
        self.assertEqual(calls, [])

    def test_rejection_is_idempotent(self) -> None:
        self._submit(self.guide, _at(10), _at(11))
        before = self.store.list_all()

        for _ in range(2):
            with self.assertRaises(ConflictError):
                self._submit(self.student, _at(10), _at(11))
            self.assertEqual(self.store.list_all(), before)

    def test_preemption_evicts_every_overlap(self) -> None:
        bookings = [
            self._submit(self.student, _at(9), _at(10)),
            self._submit(self.ceo, _at(10), _at(11)),
            self._submit(self.student, _at(11), _at(12)),
        ]

        admin_booking = self._submit(self.head_admin, _at(9, 30), _at(11, 30))

        self.assertEqual(
            {record.reservation_id for record in admin_booking.evicted},
            {booking.reservation.reservation_id for booking in bookings},
        )
        self.assertEqual(self.store.list_all(), [admin_booking.reservation])

    def test_touching_reservations_coexist(self) -> None:
        self._submit(self.head_admin, _at(10), _at(11))
        self._submit(self.student, _at(11), _at(12))
        self._submit(self.student, _at(9), _at(10))

        self.assertEqual(len(self.store.list_all()), 3)

    def test_duration_ceiling_ignores_priority(self) -> None:
        with self.assertRaises(DurationExceededError):
            self._submit(self.head_admin, _at(9), _at(12, 1))

    def test_same_slot_in_other_room_is_independent(self) -> None:
        self._submit(self.head_admin, _at(10), _at(11), room="R1")
        self._submit(self.student, _at(10), _at(11), room="R2")

        self.assertEqual(len(self.engine.list_reservations()), 2)

    def test_list_reservations_sorted_and_filtered_by_role(self) -> None:
        late = self._submit(self.student, _at(15), _at(16))
        early = self._submit(self.ceo, _at(8), _at(9), room="Boardroom")
        middle = self._submit(self.student, _at(12), _at(13), room="R2")

        all_ids = [item.reservation.reservation_id for item in self.engine.list_reservations()]
        self.assertEqual(
            all_ids,
            [early.reservation.reservation_id, middle.reservation.reservation_id, late.reservation.reservation_id],
        )

        student_ids = [item.reservation.reservation_id for item in self.engine.list_reservations(role="Student")]
        self.assertEqual(student_ids, [middle.reservation.reservation_id, late.reservation.reservation_id])

    def test_random_sequences_never_leave_overlaps(self) -> None:
        rng = random.Random("no-overlap")
        owners = [self.student, self.ceo, self.guide, self.head_admin]
        for _ in range(200):
            start = _at(8) + timedelta(minutes=15 * rng.randint(0, 40))
            end = start + timedelta(minutes=15 * rng.randint(1, 12))
            try:
                self._submit(rng.choice(owners), start, end, room=rng.choice(["R1", "R2"]))
            except ReservationError:
                pass

            live = self.store.list_all()
            for index, first in enumerate(live):
                for second in live[index + 1 :]:
                    if first.room_name != second.room_name:
                        continue
                    self.assertFalse(
                        first.start_time < second.end_time and second.start_time < first.end_time,
                        f"{first} overlaps {second}",
                    )


class TestEngineConcurrency(unittest.TestCase):
    def setUp(self) -> None:
        self.store = SlowReservationStore()
        self.users = UserDirectory()
        self.policies = RoomPolicyStore([{"name": "R1", "allowed_roles": ALL_ROLES}, {"name": "R2", "allowed_roles": ALL_ROLES}])
        self.engine = ReservationEngine(self.store, self.users, self.policies)

    def test_concurrent_requests_for_same_slot_admit_one(self) -> None:
        owners = [self.users.login(f"student{index}@vut.cz", "Student") for index in range(8)]
        barrier = threading.Barrier(len(owners))
        outcomes: list[str] = []
        outcome_lock = threading.Lock()

        def attempt(owner) -> None:
            barrier.wait()
            try:
                self.engine.submit_reservation(
                    {"owner_id": owner.id, "room_name": "R1", "start_time": _at(10), "end_time": _at(11)}
                )
                result = "admitted"
            except ConflictError:
                result = "conflict"
            with outcome_lock:
                outcomes.append(result)

        threads = [threading.Thread(target=attempt, args=(owner,)) for owner in owners]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        self.assertEqual(outcomes.count("admitted"), 1)
        self.assertEqual(outcomes.count("conflict"), len(owners) - 1)
        self.assertEqual(len(self.store.list_all()), 1)

    def test_busy_room_does_not_block_other_rooms(self) -> None:
        owner = self.users.login("guide@vut.cz", "Guide")
        finished = threading.Event()

        def book_other_room() -> None:
            self.engine.submit_reservation(
                {"owner_id": owner.id, "room_name": "R2", "start_time": _at(10), "end_time": _at(11)}
            )
            finished.set()

        with self.engine._room_locks.for_room("R1"):
            worker = threading.Thread(target=book_other_room)
            worker.start()
            worker.join(timeout=5)
            self.assertTrue(finished.is_set())


if __name__ == "__main__":
    unittest.main()
