from __future__ import annotations

from typing import Any


class ReservationError(Exception):
    """Base class for every failure reported by ``submit_reservation``."""

    code = "RESERVATION_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"ok": False, "error": self.code, "message": str(self)}


class ReservationValidationError(ReservationError, ValueError):
    code = "VALIDATION_ERROR"


class MissingFieldError(ReservationValidationError):
    code = "MISSING_FIELD"

    def __init__(self, field: str) -> None:
        super().__init__(f"Required field is missing: {field}")
        self.field = field


class InvalidPriorityError(ReservationValidationError):
    code = "INVALID_PRIORITY"


class InvalidTimeRangeError(ReservationValidationError):
    code = "INVALID_TIME_RANGE"


class DurationExceededError(ReservationValidationError):
    code = "DURATION_EXCEEDED"


class ReservationAuthorizationError(ReservationError):
    code = "AUTHORIZATION_ERROR"


class OwnerNotFoundError(ReservationAuthorizationError):
    code = "OWNER_NOT_FOUND"

    def __init__(self, owner_id: str) -> None:
        super().__init__(f"User not found: {owner_id}")
        self.owner_id = owner_id


class RoomNotAllowedForRoleError(ReservationAuthorizationError):
    code = "ROOM_NOT_ALLOWED_FOR_ROLE"

    def __init__(self, room_name: str, role: str) -> None:
        super().__init__(f"Role {role} is not allowed to reserve room {room_name!r}.")
        self.room_name = room_name
        self.role = role


class ConflictError(ReservationError):
    code = "CONFLICT"

    def __init__(self, room_name: str, blocking_ids: list[str], max_existing_priority: float) -> None:
        super().__init__(
            f"Room {room_name!r} already holds a reservation with higher or equal priority "
            f"({max_existing_priority}) in this time window."
        )
        self.room_name = room_name
        self.blocking_ids = blocking_ids
        self.max_existing_priority = max_existing_priority

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["blocking_ids"] = list(self.blocking_ids)
        return payload


class ReservationStorageError(ReservationError, RuntimeError):
    code = "STORAGE_ERROR"
