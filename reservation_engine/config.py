from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
import re
from typing import Any

import yaml

MAX_DURATION_MINUTES = 180

DEFAULT_ROLE_PRIORITIES: dict[str, int] = {
    "STUDENT": 1,
    "CEO": 2,
    "GUIDE": 3,
    "HEAD_ADMIN": 4,
}

DEFAULT_ROOM_POLICIES: list[dict[str, Any]] = [
    {"name": "Meeting Room", "allowed_roles": ["STUDENT", "CEO", "GUIDE", "HEAD_ADMIN"]},
    {"name": "Session Room", "allowed_roles": ["CEO", "GUIDE", "HEAD_ADMIN"]},
    {"name": "The Stage", "allowed_roles": ["CEO", "GUIDE", "HEAD_ADMIN"]},
    {"name": "The Aquarium", "allowed_roles": ["STUDENT", "CEO", "HEAD_ADMIN"]},
    {"name": "Panda Room", "allowed_roles": ["CEO", "HEAD_ADMIN"]},
    {"name": "P159", "allowed_roles": ["CEO", "HEAD_ADMIN"]},
]

DEFAULT_EMAIL_DOMAINS = ("@vut.cz", "@vutbr.cz")

_ROLE_ALIASES = {"HEADADMIN": "HEAD_ADMIN"}

_KNOWN_KEYS = {"max_duration_minutes", "role_priorities", "room_policies", "allowed_email_domains", "data_dir"}


@dataclass(frozen=True)
class EngineConfig:
    max_duration: timedelta = timedelta(minutes=MAX_DURATION_MINUTES)
    role_priorities: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_ROLE_PRIORITIES))
    room_policies: list[dict[str, Any]] = field(default_factory=lambda: [dict(row) for row in DEFAULT_ROOM_POLICIES])
    allowed_email_domains: tuple[str, ...] = DEFAULT_EMAIL_DOMAINS
    data_dir: Path = Path("data")

    def __post_init__(self) -> None:
        if self.max_duration <= timedelta(0):
            raise ValueError("max_duration must be positive")
        for role, level in self.role_priorities.items():
            if isinstance(level, bool) or not isinstance(level, int) or level < 1:
                raise ValueError(f"priority for role {role} must be an integer >= 1")

    @property
    def roles(self) -> list[str]:
        """Role codes ordered from lowest to highest priority."""
        return sorted(self.role_priorities, key=lambda role: self.role_priorities[role])

    def priority_for_role(self, role: str) -> int | None:
        return self.role_priorities.get(role)


def normalize_role_code(role: Any) -> str | None:
    """Turn ``Head Admin``, ``head-admin`` or ``HEAD_ADMIN`` into ``HEAD_ADMIN``; None when no code can be formed."""
    if role is None:
        return None
    code = re.sub(r"[\s\-]+", "_", str(role).strip().upper())
    code = _ROLE_ALIASES.get(code, code)
    if not re.fullmatch(r"[A-Z][A-Z0-9_]*", code):
        return None
    return code


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Build an ``EngineConfig`` from a YAML mapping; missing keys keep their defaults."""
    if path is None:
        return EngineConfig()

    payload = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if payload is None:
        return EngineConfig()
    if not isinstance(payload, dict):
        raise ValueError("top-level config YAML must be a mapping")

    unknown = set(payload) - _KNOWN_KEYS
    if unknown:
        raise ValueError(f"unknown config keys: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    if "max_duration_minutes" in payload:
        kwargs["max_duration"] = timedelta(minutes=int(payload["max_duration_minutes"]))
    if "role_priorities" in payload:
        priorities: dict[str, int] = {}
        for role, level in dict(payload["role_priorities"]).items():
            code = normalize_role_code(role)
            if code is None:
                raise ValueError(f"invalid role name in role_priorities: {role!r}")
            if code in priorities:
                raise ValueError(f"role {code} is listed more than once in role_priorities")
            priorities[code] = level
        kwargs["role_priorities"] = priorities
    if "room_policies" in payload:
        kwargs["room_policies"] = list(payload["room_policies"])
    if "allowed_email_domains" in payload:
        kwargs["allowed_email_domains"] = tuple(str(domain) for domain in payload["allowed_email_domains"])
    if "data_dir" in payload:
        kwargs["data_dir"] = Path(str(payload["data_dir"]))
    return EngineConfig(**kwargs)
