from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
import logging
import threading
from typing import Any, Callable, Iterable

from .booking import select_overlapping
from .errors import ReservationStorageError
from .models import ReservationRecord

logger = logging.getLogger(__name__)


class ReservationStore(ABC):
    """Persistence contract the engine is written against."""

    @abstractmethod
    def find_overlapping(self, room_name: str, start: datetime, end: datetime) -> list[ReservationRecord]:
        ...

    @abstractmethod
    def insert(self, record: ReservationRecord) -> None:
        ...

    @abstractmethod
    def delete_many(self, reservation_ids: Iterable[str]) -> list[ReservationRecord]:
        ...

    @abstractmethod
    def list_all(self) -> list[ReservationRecord]:
        ...

    def commit_admission(self, record: ReservationRecord, evicted_ids: Iterable[str] = ()) -> list[ReservationRecord]:
        """Evict ``evicted_ids`` and store ``record``; returns the evicted records."""
        ids = list(evicted_ids)
        evicted = self.delete_many(ids) if ids else []
        self.insert(record)
        return evicted


class InMemoryReservationStore(ReservationStore):
    def __init__(self, records: Iterable[ReservationRecord] = ()) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, ReservationRecord] = {record.reservation_id: record for record in records}

    def find_overlapping(self, room_name: str, start: datetime, end: datetime) -> list[ReservationRecord]:
        with self._lock:
            same_room = [record for record in self._records.values() if record.room_name == room_name]
        return sorted(select_overlapping(start, end, same_room), key=lambda record: record.start_time)

    def insert(self, record: ReservationRecord) -> None:
        with self._lock:
            if record.reservation_id in self._records:
                raise ReservationStorageError(f"Duplicate reservation id: {record.reservation_id}")
            self._records[record.reservation_id] = record

    def delete_many(self, reservation_ids: Iterable[str]) -> list[ReservationRecord]:
        removed: list[ReservationRecord] = []
        with self._lock:
            for reservation_id in reservation_ids:
                record = self._records.pop(reservation_id, None)
                if record is not None:
                    removed.append(record)
        return removed

    def list_all(self) -> list[ReservationRecord]:
        with self._lock:
            return list(self._records.values())


class FallbackReservationStore(ReservationStore):
    """Route calls to ``primary`` until it fails, then to an in-process substitute.

    The switch is sticky: after the first ``ReservationStorageError`` every call
    goes to the substitute until ``restore_primary`` is called. A failure of the
    substitute itself propagates to the caller.
    """

    def __init__(self, primary: ReservationStore, fallback: ReservationStore | None = None) -> None:
        self.primary = primary
        self.fallback = fallback if fallback is not None else InMemoryReservationStore()
        self._degraded = False
        self._lock = threading.Lock()

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def active(self) -> ReservationStore:
        return self.fallback if self._degraded else self.primary

    def restore_primary(self) -> None:
        with self._lock:
            self._degraded = False

    def _call(self, operation: Callable[[ReservationStore], Any]) -> Any:
        if not self._degraded:
            try:
                return operation(self.primary)
            except ReservationStorageError as error:
                with self._lock:
                    if not self._degraded:
                        logger.warning("Primary reservation store unavailable, switching to fallback: %s", error)
                        self._degraded = True
        return operation(self.fallback)

    def find_overlapping(self, room_name: str, start: datetime, end: datetime) -> list[ReservationRecord]:
        return self._call(lambda store: store.find_overlapping(room_name, start, end))

    def insert(self, record: ReservationRecord) -> None:
        self._call(lambda store: store.insert(record))

    def delete_many(self, reservation_ids: Iterable[str]) -> list[ReservationRecord]:
        ids = list(reservation_ids)
        return self._call(lambda store: store.delete_many(ids))

    def list_all(self) -> list[ReservationRecord]:
        return self._call(lambda store: store.list_all())

    def commit_admission(self, record: ReservationRecord, evicted_ids: Iterable[str] = ()) -> list[ReservationRecord]:
        ids = list(evicted_ids)
        return self._call(lambda store: store.commit_admission(record, ids))
