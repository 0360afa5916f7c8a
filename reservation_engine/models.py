from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from .booking import to_utc

DEFAULT_RESERVATION_TYPE = "New Reservation"


@dataclass(frozen=True)
class ReservationRequest:
    """Raw booking request as received from the calling layer; not yet validated."""

    owner_id: Any
    room_name: Any
    start_time: Any
    end_time: Any
    priority_level: Any = None
    type: str | None = None

    @staticmethod
    def from_payload(data: Mapping[str, Any]) -> "ReservationRequest":
        def first(*keys: str) -> Any:
            for key in keys:
                value = data.get(key)
                if value is not None and value != "":
                    return value
            return None

        return ReservationRequest(
            owner_id=first("owner_id", "ownerId", "userId", "user_id"),
            room_name=first("room_name", "roomName", "roomId", "room_id"),
            start_time=first("start_time", "startTime"),
            end_time=first("end_time", "endTime"),
            priority_level=first("priority_level", "priorityLevel", "priority"),
            type=first("type", "title"),
        )


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: str
    room_name: str
    start_time: datetime
    end_time: datetime
    priority_level: float
    owner_id: str
    type: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "reservation_id": self.reservation_id,
            "room_name": self.room_name,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "priority_level": self.priority_level,
            "owner_id": self.owner_id,
            "type": self.type,
            "created_at": self.created_at.isoformat(timespec="seconds"),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ReservationRecord":
        """Load a stored row; naive timestamps are read as UTC and empty ranges are rejected."""
        level = data["priority_level"]
        start = to_utc(datetime.fromisoformat(str(data["start_time"])))
        end = to_utc(datetime.fromisoformat(str(data["end_time"])))
        if end <= start:
            raise ValueError("stored reservation ends before it starts")
        return ReservationRecord(
            reservation_id=str(data["reservation_id"]),
            room_name=str(data["room_name"]),
            start_time=start,
            end_time=end,
            priority_level=level if isinstance(level, int) else float(level),
            owner_id=str(data["owner_id"]),
            type=str(data.get("type") or DEFAULT_RESERVATION_TYPE),
            created_at=to_utc(datetime.fromisoformat(str(data["created_at"]))),
        )


@dataclass(frozen=True)
class OwnerSummary:
    id: str
    email: str
    role: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "email": self.email, "role": self.role}


@dataclass(frozen=True)
class BookedReservation:
    """A live reservation together with the resolved owner attribution."""

    reservation: ReservationRecord
    owner: OwnerSummary | None
    evicted: tuple[ReservationRecord, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload = self.reservation.to_dict()
        payload["user"] = self.owner.to_dict() if self.owner is not None else None
        if self.evicted:
            payload["evicted_ids"] = [record.reservation_id for record in self.evicted]
        return payload
