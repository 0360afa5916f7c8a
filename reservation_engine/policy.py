from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Any, Iterable

from .config import DEFAULT_ROLE_PRIORITIES, DEFAULT_ROOM_POLICIES


@dataclass(frozen=True)
class RoomPolicy:
    name: str
    allowed_roles: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "allowed_roles": list(self.allowed_roles)}


class RoomPolicyStore:
    """Room name to permitted role codes, replaceable at runtime by an administrator."""

    def __init__(
        self,
        policies: Iterable[dict[str, Any]] | None = None,
        valid_roles: Iterable[str] | None = None,
    ) -> None:
        self.valid_roles = frozenset(valid_roles or DEFAULT_ROLE_PRIORITIES)
        self._lock = threading.Lock()
        self._policies: list[RoomPolicy] = []
        initial = _sanitize(policies if policies is not None else DEFAULT_ROOM_POLICIES, self.valid_roles)
        if not initial:
            raise ValueError("at least one valid room policy is required")
        self._policies = initial

    def list_policies(self) -> list[RoomPolicy]:
        with self._lock:
            return list(self._policies)

    def replace_policies(self, raw: Any) -> list[RoomPolicy]:
        """Swap in a new table; invalid entries are dropped and an all-invalid payload is ignored."""
        sanitized = _sanitize(raw, self.valid_roles)
        with self._lock:
            if sanitized:
                self._policies = sanitized
            return list(self._policies)

    def is_room_allowed_for_role(self, room_name: str, role: str) -> bool:
        with self._lock:
            return any(policy.name == room_name and role in policy.allowed_roles for policy in self._policies)

    def rooms_for_role(self, role: str) -> list[str]:
        with self._lock:
            return [policy.name for policy in self._policies if role in policy.allowed_roles]

    def room_names(self) -> list[str]:
        with self._lock:
            return [policy.name for policy in self._policies]


def _sanitize(raw: Any, valid_roles: frozenset[str]) -> list[RoomPolicy]:
    if not isinstance(raw, (list, tuple)):
        return []

    seen: set[str] = set()
    normalized: list[RoomPolicy] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        roles = item.get("allowed_roles", item.get("allowedRoles"))
        if not isinstance(name, str):
            continue
        name = name.strip()
        if not name or name in seen:
            continue
        if not isinstance(roles, (list, tuple)):
            continue

        kept = tuple(dict.fromkeys(role for role in roles if isinstance(role, str) and role in valid_roles))
        if not kept:
            continue
        seen.add(name)
        normalized.append(RoomPolicy(name=name, allowed_roles=kept))
    return normalized
