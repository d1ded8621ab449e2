from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from location_grid.models.session import Role, Session, UserProfile

"""Session management and profile caching.

The auth provider hands over identity changes (sign in, token refresh, sign
out); SessionManager turns them into the current user profile and its
organization scope. The profile cache is an explicit object owned by the
manager and is invalidated when the identity changes (different user id) or
on sign-out, never left behind in module state.

Grid operations call require_active() first: a missing or expired session,
or a profile without an organization, refuses the operation before any
mutation happens.
"""

__all__ = [
    "SessionError",
    "ProfileCache",
    "SessionManager",
]

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """No usable session: operation refused, nothing was mutated."""


class ProfileCache:
    """Holds at most one profile, keyed by the user id it was loaded for."""

    def __init__(self) -> None:
        self._user_id: str | None = None
        self._profile: UserProfile | None = None

    def get(self, user_id: str) -> UserProfile | None:
        if self._user_id == user_id:
            return self._profile
        return None

    def put(self, profile: UserProfile) -> None:
        self._user_id = profile.user_id
        self._profile = profile

    def invalidate(self) -> None:
        self._user_id = None
        self._profile = None

    @property
    def cached_user_id(self) -> str | None:
        return self._user_id


ProfileLoader = Callable[[str], "UserProfile | dict[str, Any] | None"]


class SessionManager:
    def __init__(
        self,
        profile_loader: ProfileLoader,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._load_profile = profile_loader
        self._clock = clock or (lambda: datetime.now(UTC))
        self.cache = ProfileCache()
        self._session: Session | None = None

    # Auth provider events ---------------------------------------------
    def on_auth_change(self, user_id: str | None, expires_at: datetime | None = None) -> UserProfile | None:
        """Apply a session event from the auth provider.

        user_id=None means the provider reports no session (signed out /
        expired). A different user id invalidates the cached profile.
        """
        if user_id is None:
            self.sign_out()
            return None
        if self.cache.cached_user_id not in (None, user_id):
            logger.debug("identity changed -> profile cache invalidated")
            self.cache.invalidate()
        self._session = Session(user_id=user_id, expires_at=expires_at)
        return self.profile()

    def sign_out(self) -> None:
        self._session = None
        self.cache.invalidate()

    # Accessors ---------------------------------------------------------
    @property
    def session(self) -> Session | None:
        return self._session

    def profile(self) -> UserProfile | None:
        if self._session is None:
            return None
        cached = self.cache.get(self._session.user_id)
        if cached is not None:
            return cached
        try:
            loaded = self._load_profile(self._session.user_id)
        except Exception as e:
            # プロファイル取得失敗: ログイン状態は維持し、プロファイル無しとして扱う
            logger.error(f"failed to load profile for user {self._session.user_id}: {e}")
            return None
        if loaded is None:
            return None
        profile = loaded if isinstance(loaded, UserProfile) else UserProfile.from_record(loaded)
        self.cache.put(profile)
        return profile

    def require_active(self) -> UserProfile:
        """Return the current profile or raise SessionError."""
        if self._session is None:
            raise SessionError("no active session")
        if self._session.is_expired(self._clock()):
            raise SessionError("session expired")
        profile = self.profile()
        if profile is None:
            raise SessionError("user profile unavailable")
        if not profile.organization_id:
            raise SessionError("user has no organization")
        return profile

    @property
    def organization_id(self) -> str:
        return self.require_active().organization_id  # type: ignore[return-value]

    @property
    def is_admin(self) -> bool:
        profile = self.profile()
        return profile is not None and profile.role is Role.ADMIN

    @property
    def is_manager(self) -> bool:
        profile = self.profile()
        return profile is not None and profile.role in (Role.ADMIN, Role.MANAGER)
