from __future__ import annotations

from datetime import datetime, timezone
import logging
from pathlib import Path
import shutil
import threading
from typing import Any, Iterable

import yaml

from .booking import select_overlapping
from .errors import ReservationStorageError
from .models import ReservationRecord
from .store import ReservationStore

logger = logging.getLogger(__name__)


class ReservationYamlRepository(ReservationStore):
    """Durable store keeping live reservations, the eviction archive and an event log in YAML files."""

    def __init__(self, base_dir: str | Path = "data") -> None:
        self.base_dir = Path(base_dir)
        self.active_file = self.base_dir / "active_reservations.yaml"
        self.evicted_file = self.base_dir / "evicted_reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self._lock = threading.RLock()
        self._ensure_files()

    def _ensure_files(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            for path in (self.active_file, self.evicted_file, self.log_file):
                if not path.exists():
                    path.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise ReservationStorageError(f"Cannot prepare data directory: {self.base_dir}") from error

    def _read_yaml_list(self, path: Path) -> list[dict[str, Any]]:
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            self._write_yaml_list(path, [])
            return []
        except (UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_yaml(path, error)
            return []
        except OSError as error:
            raise ReservationStorageError(f"Failed to read YAML file: {path}") from error

        if payload is None:
            return []
        if not isinstance(payload, list):
            self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"))
            return []

        sanitized: list[dict[str, Any]] = []
        for index, row in enumerate(payload):
            if isinstance(row, dict):
                sanitized.append(row)
            else:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": str(path.name),
                        "index": index,
                        "reason": "row is not a mapping",
                    },
                )
        return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise ReservationStorageError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _recover_corrupted_yaml(self, path: Path, error: Exception) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError as copy_error:
            logger.warning("Could not back up corrupted file %s: %s", path, copy_error)

        logger.warning("Recovered corrupted YAML file %s: %s", path, error)
        self._write_yaml_list(path, [])
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now(timezone.utc)).isoformat(timespec="seconds")
        events = self._read_yaml_list(self.log_file)
        events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
        self._write_yaml_list(self.log_file, events)

    def _load_records(self, path: Path) -> list[ReservationRecord]:
        records: list[ReservationRecord] = []
        for index, row in enumerate(self._read_yaml_list(path)):
            try:
                records.append(ReservationRecord.from_dict(row))
            except (KeyError, TypeError, ValueError) as error:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {"file": str(path.name), "index": index, "reason": str(error)},
                )
        return records

    def _load_active(self) -> list[ReservationRecord]:
        return self._load_records(self.active_file)

    def list_all(self) -> list[ReservationRecord]:
        with self._lock:
            return self._load_active()

    def get_evicted_reservations(self) -> list[ReservationRecord]:
        with self._lock:
            return self._load_records(self.evicted_file)

    def find_overlapping(self, room_name: str, start: datetime, end: datetime) -> list[ReservationRecord]:
        with self._lock:
            same_room = [record for record in self._load_active() if record.room_name == room_name]
        return sorted(select_overlapping(start, end, same_room), key=lambda record: record.start_time)

    def insert(self, record: ReservationRecord) -> None:
        self.commit_admission(record)

    def delete_many(self, reservation_ids: Iterable[str]) -> list[ReservationRecord]:
        ids = set(reservation_ids)
        with self._lock:
            active = self._load_active()
            removed = [record for record in active if record.reservation_id in ids]
            if not removed:
                return []
            self._write_yaml_list(self.active_file, [record.to_dict() for record in active if record.reservation_id not in ids])
            self._record_after_commit(removed, evicted_by=None)
        return removed

    def commit_admission(self, record: ReservationRecord, evicted_ids: Iterable[str] = ()) -> list[ReservationRecord]:
        """Evict and insert with a single write of the active file.

        The active-file write is the commit point. A failure before it leaves
        the store untouched; archive and event-log failures after it are
        logged, not raised.
        """
        ids = set(evicted_ids)
        with self._lock:
            active = self._load_active()
            if any(row.reservation_id == record.reservation_id for row in active):
                raise ReservationStorageError(f"Duplicate reservation id: {record.reservation_id}")

            removed = [row for row in active if row.reservation_id in ids]
            remaining = [row.to_dict() for row in active if row.reservation_id not in ids]
            remaining.append(record.to_dict())
            self._write_yaml_list(self.active_file, remaining)

            self._record_after_commit(removed, evicted_by=record.reservation_id, created=record)
        return removed

    def _record_after_commit(
        self,
        removed: list[ReservationRecord],
        evicted_by: str | None,
        created: ReservationRecord | None = None,
    ) -> None:
        try:
            if removed:
                self._archive_evicted(removed, evicted_by)
            if created is not None:
                self._log_event(
                    "RESERVATION_CREATED",
                    {
                        "reservation_id": created.reservation_id,
                        "room_name": created.room_name,
                        "start_time": created.start_time.isoformat(),
                        "end_time": created.end_time.isoformat(),
                        "priority_level": created.priority_level,
                        "owner_id": created.owner_id,
                    },
                    created.created_at,
                )
        except ReservationStorageError as error:
            logger.warning("Reservation change committed but archive/event log update failed: %s", error)

    def _archive_evicted(self, removed: list[ReservationRecord], evicted_by: str | None) -> None:
        archived = self._read_yaml_list(self.evicted_file)
        evicted_at = datetime.now(timezone.utc).isoformat(timespec="seconds")
        for record in removed:
            row = record.to_dict()
            row["evicted_at"] = evicted_at
            row["evicted_by"] = evicted_by
            archived.append(row)
        self._write_yaml_list(self.evicted_file, archived)

        for record in removed:
            self._log_event(
                "RESERVATION_EVICTED",
                {
                    "reservation_id": record.reservation_id,
                    "room_name": record.room_name,
                    "priority_level": record.priority_level,
                    "evicted_by": evicted_by,
                },
            )
