"""
Exception types raised by the sync engine.

Only ThreadNotAccessible is treated as a permanent outcome (the thread gets
tombstoned); everything else is isolated per item by the caller.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all bbsmirror errors."""
    pass


class ConfigError(SyncError):
    """Raised when settings or credentials cannot be loaded."""
    pass


class ApiError(SyncError):
    """Non-2xx response or transport failure talking to the forum API."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class ThreadNotAccessible(ApiError):
    """The detail endpoint answered 404 or 403 for a thread."""
    pass


class MalformedPayload(SyncError):
    """A response body is missing the fields the engine needs."""
    pass
