from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import math
from typing import Any

from .booking import exceeds_duration, parse_instant
from .config import EngineConfig
from .errors import (
    DurationExceededError,
    InvalidPriorityError,
    InvalidTimeRangeError,
    MissingFieldError,
    OwnerNotFoundError,
    RoomNotAllowedForRoleError,
)
from .identity import User, UserDirectory
from .models import DEFAULT_RESERVATION_TYPE, ReservationRequest
from .policy import RoomPolicyStore

REQUIRED_FIELDS = ("owner_id", "room_name", "start_time", "end_time")


@dataclass(frozen=True)
class ValidatedRequest:
    owner: User
    room_name: str
    start_time: datetime
    end_time: datetime
    priority_level: float
    type: str


def validate_request(
    request: ReservationRequest,
    users: UserDirectory,
    policies: RoomPolicyStore,
    config: EngineConfig,
) -> ValidatedRequest:
    """Run the admission checks in order and stop at the first failure.

    Order: required fields, priority value, owner resolution, room access
    for the owner's role, time range, duration ceiling. Nothing is written
    whatever the outcome.
    """
    for field_name in REQUIRED_FIELDS:
        if _is_blank(getattr(request, field_name)):
            raise MissingFieldError(field_name)

    requested_priority = _parse_priority(request.priority_level)

    owner_id = str(request.owner_id).strip()
    owner = users.resolve_user(owner_id)
    if owner is None:
        raise OwnerNotFoundError(owner_id)

    room_name = str(request.room_name).strip()
    if not policies.is_room_allowed_for_role(room_name, owner.role):
        raise RoomNotAllowedForRoleError(room_name, owner.role)

    try:
        start = parse_instant(request.start_time)
        end = parse_instant(request.end_time)
    except (TypeError, ValueError) as error:
        raise InvalidTimeRangeError(f"Could not parse reservation time: {error}") from error
    if end <= start:
        raise InvalidTimeRangeError("Reservation end time must be after its start time.")

    if exceeds_duration(start, end, config.max_duration):
        limit_minutes = int(config.max_duration.total_seconds() // 60)
        raise DurationExceededError(f"Reservation may last at most {limit_minutes} minutes.")

    return ValidatedRequest(
        owner=owner,
        room_name=room_name,
        start_time=start,
        end_time=end,
        priority_level=effective_priority(requested_priority, owner.role, config),
        type=str(request.type).strip() if not _is_blank(request.type) else DEFAULT_RESERVATION_TYPE,
    )


def effective_priority(requested: float | None, role: str, config: EngineConfig) -> float:
    """Cap the requested priority at the rank the role table grants."""
    role_priority = config.priority_for_role(role)
    if role_priority is None:
        return requested if requested is not None else 1
    if requested is None:
        return role_priority
    return min(requested, role_priority)


def _parse_priority(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidPriorityError("Priority must be a number.")
    try:
        level = float(value)
    except (TypeError, ValueError) as error:
        raise InvalidPriorityError(f"Invalid priority value: {value!r}") from error
    if not math.isfinite(level):
        raise InvalidPriorityError(f"Invalid priority value: {value!r}")
    if level < 1:
        raise InvalidPriorityError("Priority must be at least 1.")
    return int(level) if level.is_integer() else level


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False
