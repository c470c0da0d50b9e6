"""
Failure taxonomy for the tracking core.

The scheduler reacts to the class of a failure, never to its message:
- QuotaExceeded: wait for the quota/spacing gate, never retried in a loop
- AuthDenied: terminal for the session
- TransientError: retried with backoff inside the client
- MalformedRecord / MalformedZone: skipped item, the batch carries on
"""

from typing import Optional


class TrackingError(Exception):
    """Base class for all tracking core failures."""


class QuotaExceeded(TrackingError):
    """Daily quota or minimum request spacing prevents a request."""

    def __init__(self, message: str, retry_after: float = 0.0, remote: bool = False):
        super().__init__(message)
        self.retry_after = retry_after
        # True when the remote source answered 429, False for the local gate
        self.remote = remote


class AuthDenied(TrackingError):
    """Remote source rejected our credentials (HTTP 401/403)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientError(TrackingError):
    """Network failure, timeout, or server-side error worth retrying."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedRecord(ValueError):
    """A single state vector cannot be used."""


class MalformedZone(ValueError):
    """An airspace zone cannot be evaluated (bad polygon or altitude bound)."""
