from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
import re
import threading
from typing import Iterable
from uuid import uuid4

from .config import DEFAULT_EMAIL_DOMAINS, DEFAULT_ROLE_PRIORITIES, normalize_role_code
from .models import OwnerSummary

AUTO_VERIFIED_ROLES = {"STUDENT", "HEAD_ADMIN"}


def normalize_role(role: str | None, valid_roles: Iterable[str] = DEFAULT_ROLE_PRIORITIES) -> str | None:
    """Map display names such as ``Head Admin`` or ``Student`` onto one of ``valid_roles``."""
    code = normalize_role_code(role)
    if code is None or code not in set(valid_roles):
        return None
    return code


@dataclass(frozen=True)
class User:
    id: str
    email: str
    member_id: str
    role: str
    is_verified: bool
    created_at: datetime

    def summary(self) -> OwnerSummary:
        return OwnerSummary(id=self.id, email=self.email, role=self.role)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "email": self.email,
            "member_id": self.member_id,
            "role": self.role,
            "is_verified": self.is_verified,
            "created_at": self.created_at.isoformat(timespec="seconds"),
        }


class UserDirectory:
    """In-process identity collaborator keyed by user id and e-mail."""

    def __init__(
        self,
        allowed_email_domains: tuple[str, ...] = DEFAULT_EMAIL_DOMAINS,
        roles: Iterable[str] | None = None,
    ) -> None:
        self.allowed_email_domains = allowed_email_domains
        self.roles = frozenset(roles or DEFAULT_ROLE_PRIORITIES)
        self._users: dict[str, User] = {}
        self._lock = threading.Lock()

    def resolve_user(self, user_id: str) -> User | None:
        with self._lock:
            return self._users.get(str(user_id))

    def find_by_email(self, email: str) -> User | None:
        with self._lock:
            return self._find_by_email(email)

    def login(self, email: str | None, role: str | None) -> User:
        if not email or not role:
            raise ValueError("email and role are required.")

        email = email.strip()
        if not email.endswith(self.allowed_email_domains):
            raise ValueError(f"A valid organisation e-mail is required ({', '.join(self.allowed_email_domains)}).")

        role_code = normalize_role(role, self.roles)
        if role_code is None:
            raise ValueError(f"Unknown role: {role}")

        return self.upsert_user(email, role_code)

    def upsert_user(self, email: str, role: str) -> User:
        with self._lock:
            existing = self._find_by_email(email)
            if existing is not None:
                updated = replace(existing, role=role, is_verified=role in AUTO_VERIFIED_ROLES)
                self._users[updated.id] = updated
                return updated

            created = User(
                id=str(uuid4()),
                email=email,
                member_id=self._unique_member_id(email),
                role=role,
                is_verified=role in AUTO_VERIFIED_ROLES,
                created_at=datetime.now(timezone.utc),
            )
            self._users[created.id] = created
            return created

    def _find_by_email(self, email: str) -> User | None:
        for user in self._users.values():
            if user.email == email:
                return user
        return None

    def _unique_member_id(self, email: str) -> str:
        prefix = re.sub(r"[^a-zA-Z0-9_.-]", "", email.split("@")[0]) or "user"
        base = f"vut-{prefix}"
        taken = {user.member_id for user in self._users.values()}
        candidate = base
        suffix = 1
        while candidate in taken:
            suffix += 1
            candidate = f"{base}-{suffix}"
        return candidate
