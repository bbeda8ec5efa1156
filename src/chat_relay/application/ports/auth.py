from __future__ import annotations

from typing import Protocol


class TokenStore(Protocol):
    """Local persistent storage for the session's bearer token."""

    def get(self) -> str | None: ...
    def set(self, token: str) -> None: ...
    def clear(self) -> None: ...
