"""
Exception classes shared by services, routes and the client adapter.
"""
from typing import List, Optional


class TrackerError(Exception):
    """Base exception for tracker errors."""

    pass


class ValidationError(TrackerError):
    """Input was incomplete or malformed; nothing was persisted."""

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.fields = list(fields or [])


class NotFoundError(TrackerError):
    """The referenced record does not exist."""

    pass


class RemoteStoreError(TrackerError):
    """The network-backed store answered with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LocalStoreError(TrackerError):
    """The on-device store could not be read or the import payload is malformed."""

    pass
