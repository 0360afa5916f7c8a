from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, Protocol, TypeVar


class TimeWindow(Protocol):
    start_time: datetime
    end_time: datetime


class Prioritized(Protocol):
    priority_level: float


def to_utc(value: datetime) -> datetime:
    """Normalise a datetime to an aware UTC instant; naive values are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(datetime.fromisoformat(str(value).strip()))


T = TypeVar("T", bound=TimeWindow)


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals overlap by any amount.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise ValueError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and new_end > exist_start


def select_overlapping(start: datetime, end: datetime, existing: Iterable[T]) -> list[T]:
    """Return the members of ``existing`` whose window intersects [start, end)."""
    return [item for item in existing if has_time_overlap(start, end, item.start_time, item.end_time)]


def exceeds_duration(start: datetime, end: datetime, max_duration: timedelta) -> bool:
    return (end - start) > max_duration


def max_priority(reservations: Iterable[Prioritized]) -> float:
    levels = [reservation.priority_level for reservation in reservations]
    if not levels:
        raise ValueError("reservations must not be empty")
    return max(levels)
