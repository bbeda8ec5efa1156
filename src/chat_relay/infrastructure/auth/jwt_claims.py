from __future__ import annotations

import jwt

from chat_relay.application.exceptions import AuthenticationError
from chat_relay.domain.entities.user import AuthenticatedUser


def user_from_token(token: str) -> AuthenticatedUser:
    """Read the session user from the token's ``user`` claim.

    The payload is ``{"user": {"id", "email", "user_type", ...}}`` as issued
    by the login endpoint. Signature verification is left to the server.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(f"Unreadable auth token: {exc}") from exc

    claims = payload.get("user") or payload
    raw_id = claims.get("id", claims.get("sub"))
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError) as exc:
        raise AuthenticationError("Auth token carries no user id") from exc

    return AuthenticatedUser(
        id=user_id,
        email=claims.get("email"),
        first_name=claims.get("firstName") or claims.get("first_name"),
        user_type=claims.get("user_type"),
    )
