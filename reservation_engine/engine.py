from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import logging
from pathlib import Path
import threading
from typing import Any, Callable, Mapping
from uuid import uuid4

from .booking import to_utc
from .config import EngineConfig
from .errors import ReservationStorageError
from .identity import UserDirectory, normalize_role
from .models import BookedReservation, ReservationRecord, ReservationRequest
from .policy import RoomPolicyStore
from .resolver import resolve_conflicts
from .store import FallbackReservationStore, InMemoryReservationStore, ReservationStore
from .validation import validate_request
from .yaml_store import ReservationYamlRepository

logger = logging.getLogger(__name__)


class RoomLocks:
    """One lock per room name, created on first use."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)

    def for_room(self, room_name: str) -> threading.Lock:
        with self._guard:
            return self._locks[room_name]


class ReservationEngine:
    def __init__(
        self,
        store: ReservationStore,
        users: UserDirectory,
        policies: RoomPolicyStore,
        config: EngineConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.users = users
        self.policies = policies
        self.config = config or EngineConfig()
        self.clock: Callable[[], datetime] = clock or (lambda: datetime.now(timezone.utc))
        self._room_locks = RoomLocks()

    def submit_reservation(self, request: ReservationRequest | Mapping[str, Any]) -> BookedReservation:
        """Validate a request and admit it, evicting lower-priority overlaps when it outranks them.

        Raises a ``ReservationError`` subclass on rejection; storage failures
        surface as ``ReservationStorageError``.
        """
        if not isinstance(request, ReservationRequest):
            request = ReservationRequest.from_payload(request)

        validated = validate_request(request, self.users, self.policies, self.config)

        with self._room_locks.for_room(validated.room_name):
            overlapping = self.store.find_overlapping(validated.room_name, validated.start_time, validated.end_time)
            candidate = ReservationRecord(
                reservation_id=str(uuid4()),
                room_name=validated.room_name,
                start_time=validated.start_time,
                end_time=validated.end_time,
                priority_level=validated.priority_level,
                owner_id=validated.owner.id,
                type=validated.type,
                created_at=to_utc(self.clock()),
            )
            resolution = resolve_conflicts(candidate, overlapping)
            self.store.commit_admission(
                candidate,
                [record.reservation_id for record in resolution.evicted],
            )

        if resolution.preempted:
            logger.info(
                "Priority override in %s: reservation %s (priority %s) evicted %s",
                candidate.room_name,
                candidate.reservation_id,
                candidate.priority_level,
                ", ".join(record.reservation_id for record in resolution.evicted),
            )

        return BookedReservation(
            reservation=candidate,
            owner=validated.owner.summary(),
            evicted=resolution.evicted,
        )

    def list_reservations(self, role: str | None = None) -> list[BookedReservation]:
        """Return live reservations ordered by start time, limited to the rooms ``role`` may book."""
        records = self.store.list_all()
        if role is not None:
            visible = set(self.policies.rooms_for_role(normalize_role(role, self.config.role_priorities) or role))
            records = [record for record in records if record.room_name in visible]

        records.sort(key=lambda record: (record.start_time, record.created_at, record.reservation_id))
        booked: list[BookedReservation] = []
        for record in records:
            owner = self.users.resolve_user(record.owner_id)
            booked.append(BookedReservation(reservation=record, owner=owner.summary() if owner is not None else None))
        return booked


def create_engine(
    config: EngineConfig | None = None,
    data_dir: str | Path | None = None,
    clock: Callable[[], datetime] | None = None,
) -> ReservationEngine:
    """Wire the engine to a YAML store in ``data_dir`` with an in-memory fallback."""
    effective_config = config or EngineConfig()
    try:
        primary: ReservationStore = ReservationYamlRepository(data_dir or effective_config.data_dir)
    except ReservationStorageError as error:
        logger.warning("Durable reservation store unavailable at startup, using in-memory store: %s", error)
        primary = InMemoryReservationStore()

    return ReservationEngine(
        store=FallbackReservationStore(primary),
        users=UserDirectory(effective_config.allowed_email_domains, roles=effective_config.role_priorities),
        policies=RoomPolicyStore(effective_config.room_policies, valid_roles=effective_config.role_priorities),
        config=effective_config,
        clock=clock,
    )
