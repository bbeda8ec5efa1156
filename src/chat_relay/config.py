from __future__ import annotations

from pathlib import Path

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_URL: str = "http://localhost:3001"
    API_PREFIX: str = "/api/messaging"
    LOGIN_PATH: str = "/auth/login?message=Session expired. Please log in again."

    TOKEN_FILE: Path = Path.home() / ".chat_relay" / "token"

    SOCKET_TRANSPORTS: list[str] = ["websocket", "polling"]
    SOCKET_CONNECT_TIMEOUT_SECONDS: float = 20.0
    HTTP_TIMEOUT_SECONDS: float = 30.0

    PRESENCE_SETTLE_SECONDS: float = 1.0
    PRESENCE_REFRESH_SECONDS: float = 30.0
    RECONNECT_DELAY_SECONDS: float = 2.0

    TYPING_TIMEOUT_SECONDS: float = 2.0
    NOTIFICATION_TTL_SECONDS: float = 5.0

    MESSAGE_HISTORY_LIMIT: int = 50

    CONVERSATION_ID: int | None = None

    @property
    def messaging_url(self) -> str:
        return f"{self.API_URL.rstrip('/')}{self.API_PREFIX}"

    model_config = ConfigDict(
        env_file=".env",
        env_prefix="CHAT_RELAY_",
        extra="ignore",
    )


settings = Settings()
