from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class AuthenticationError(AppError):
    pass


class SessionExpiredError(AuthenticationError):
    pass


class ApiError(AppError):
    """Non-success response from the messaging HTTP API."""

    def __init__(self, status: int, detail: str = "") -> None:
        self.status = status
        super().__init__(detail)


class NotFoundError(ApiError):
    pass


class ValidationError(AppError):
    pass


class MalformedEventError(AppError):
    """Inbound channel payload that does not match its event shape."""

    def __init__(self, event: str, detail: str = "") -> None:
        self.event = event
        super().__init__(detail)


class ChannelError(AppError):
    """The real-time channel could not be opened."""
