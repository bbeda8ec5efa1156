from __future__ import annotations

import logging
import time
from pathlib import Path

import jwt

logger = logging.getLogger(__name__)


class FileTokenStore:
    """Keep the bearer token in a local file, the client's persistent storage.

    A token whose ``exp`` claim has passed is reported as missing; the
    signature is not checked here since the client never holds the secret.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    def get(self) -> str | None:
        try:
            token = self._path.read_text().strip()
        except FileNotFoundError:
            return None
        if not token:
            return None
        if _is_expired(token):
            logger.info("Stored token at %s has expired", self._path)
            return None
        return token

    def set(self, token: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        # Restrict the file before the token lands in it.
        self._path.touch(mode=0o600, exist_ok=True)
        self._path.chmod(0o600)
        self._path.write_text(token)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


def _is_expired(token: str) -> bool:
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.DecodeError:
        # Opaque tokens are passed through; the server decides.
        return False
    exp = claims.get("exp")
    return isinstance(exp, (int, float)) and exp <= time.time()
