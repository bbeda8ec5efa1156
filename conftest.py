"""Root conftest: test environment before any chat_relay import."""
from __future__ import annotations

import os
import tempfile
from pathlib import Path

_TEST_ENV = {
    # Keep the default token file away from the developer's real one.
    "CHAT_RELAY_TOKEN_FILE": str(Path(tempfile.gettempdir()) / "chat_relay-tests" / "token"),
    "CHAT_RELAY_API_URL": "http://chat.test",
}

for key, value in _TEST_ENV.items():
    os.environ.setdefault(key, value)
