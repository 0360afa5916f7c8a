from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
import tempfile
import traceback

from reservation_engine import ConflictError, create_engine


def main() -> int:
    print("[INFO] Reservation Engine Quick Check")

    with tempfile.TemporaryDirectory() as temp_dir:
        data_dir = Path(temp_dir) / "data"
        engine = create_engine(data_dir=data_dir)

        student = engine.users.login("student@vut.cz", "Student")
        guide = engine.users.login("guide@vut.cz", "Guide")

        first = engine.submit_reservation(
            {
                "owner_id": student.id,
                "room_name": "Meeting Room",
                "start_time": datetime(2026, 3, 2, 10, 0, tzinfo=timezone.utc),
                "end_time": datetime(2026, 3, 2, 11, 0, tzinfo=timezone.utc),
            }
        )
        print(f"[OK] Student reservation admitted: {first.reservation.reservation_id}")

        second = engine.submit_reservation(
            {
                "owner_id": guide.id,
                "room_name": "Meeting Room",
                "start_time": datetime(2026, 3, 2, 10, 30, tzinfo=timezone.utc),
                "end_time": datetime(2026, 3, 2, 11, 30, tzinfo=timezone.utc),
            }
        )
        print(f"[OK] Guide reservation admitted, evicted: {[record.reservation_id for record in second.evicted]}")

        try:
            engine.submit_reservation(
                {
                    "owner_id": student.id,
                    "room_name": "Meeting Room",
                    "start_time": "2026-03-02T11:00:00+00:00",
                    "end_time": "2026-03-02T11:15:00+00:00",
                }
            )
        except ConflictError as error:
            print(f"[OK] Lower priority request rejected: {error.code}")

        live = engine.list_reservations()
        print(f"[OK] Live reservations: {len(live)}")
        print(f"[OK] Active YAML: {data_dir / 'active_reservations.yaml'}")
        print(f"[OK] Evicted YAML: {data_dir / 'evicted_reservations.yaml'}")

    print("[DONE] Quick check completed successfully.")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except Exception:
        print("[ERROR] Quick check failed.")
        traceback.print_exc()
        raise SystemExit(1)
