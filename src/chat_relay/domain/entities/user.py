from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserSummary:
    """Participant or sender as embedded in conversations and messages."""

    id: int
    first_name: str | None = None
    name: str | None = None
    email: str | None = None
    avatar: str | None = None

    @property
    def display_name(self) -> str:
        return self.first_name or self.name or "Someone"


@dataclass(frozen=True, slots=True)
class AuthenticatedUser:
    """The user owning the session, taken from the auth token."""

    id: int
    email: str | None = None
    first_name: str | None = None
    user_type: str | None = None

    @property
    def display_name(self) -> str:
        return self.first_name or "User"
