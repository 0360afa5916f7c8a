from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .booking import max_priority, select_overlapping
from .errors import ConflictError
from .models import ReservationRecord


@dataclass(frozen=True)
class Resolution:
    candidate: ReservationRecord
    evicted: tuple[ReservationRecord, ...] = ()

    @property
    def preempted(self) -> bool:
        return bool(self.evicted)


def resolve_conflicts(candidate: ReservationRecord, existing: Sequence[ReservationRecord]) -> Resolution:
    """Decide whether ``candidate`` may take its slot.

    ``existing`` holds the live reservations of the candidate's room. Members
    that intersect the candidate form the overlap set. A candidate ranked
    strictly above every member evicts the whole set; otherwise it is rejected
    with ``ConflictError`` and the incumbents keep the slot.
    """
    overlapping = select_overlapping(
        candidate.start_time,
        candidate.end_time,
        [record for record in existing if record.room_name == candidate.room_name],
    )
    if not overlapping:
        return Resolution(candidate=candidate)

    max_existing = max_priority(overlapping)
    if candidate.priority_level > max_existing:
        return Resolution(candidate=candidate, evicted=tuple(overlapping))

    raise ConflictError(
        candidate.room_name,
        [record.reservation_id for record in overlapping],
        max_existing,
    )
