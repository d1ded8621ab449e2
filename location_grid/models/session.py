from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

"""Session and user profile models.

The auth provider owns passwords, tokens and session renewal. The grid only
consumes the resulting identity: who the user is, which organization scopes
their queries, and their role.
"""

__all__ = [
    "Role",
    "UserProfile",
    "Session",
]


class Role(Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    organization_id: str | None
    role: Role = Role.USER
    full_name: str | None = None
    email: str | None = None
    organization_name: str | None = None

    @staticmethod
    def from_record(record: dict) -> UserProfile:
        org = record.get("organizations") or {}
        try:
            role = Role(record.get("role") or "user")
        except ValueError:
            role = Role.USER
        return UserProfile(
            user_id=str(record["id"]),
            organization_id=record.get("organization_id"),
            role=role,
            full_name=record.get("full_name"),
            email=record.get("email"),
            organization_name=org.get("name") if isinstance(org, dict) else None,
        )


@dataclass(frozen=True)
class Session:
    """Authenticated identity handed over by the auth provider."""
    user_id: str
    expires_at: datetime | None = None  # None = provider manages renewal

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at
