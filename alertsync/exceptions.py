"""Errors raised by the alerts API client and converted at operation boundaries."""

from typing import Optional


class AlertSyncError(Exception):
    """Base class for alertsync errors."""


class InvalidBaseURLError(AlertSyncError):
    """The configured alerts base URL cannot be used."""

    def __init__(self, base_url: str):
        self.base_url = base_url
        super().__init__(f"Invalid alerts base URL: {base_url!r} (expected an http(s) URL)")


class ApiStatusError(AlertSyncError):
    """The server answered with a status the operation does not accept."""

    def __init__(self, status: int, body: Optional[str] = None):
        self.status = status
        self.body = body
        message = f"HTTP {status}"
        if body:
            message = f"{message} - {body[:200]}"
        super().__init__(message)


class PayloadError(AlertSyncError):
    """A response envelope could not be decoded."""
