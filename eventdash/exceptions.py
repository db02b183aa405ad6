"""Error types raised by eventdash."""

from __future__ import annotations


class EventDashError(Exception):
    """Base exception for eventdash."""


class ConfigError(EventDashError):
    """Raised when the config file is missing fields or holds invalid values."""


class ApiError(EventDashError):
    """Raised when a backend request fails or returns an unusable payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
