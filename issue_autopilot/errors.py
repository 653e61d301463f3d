"""
Error taxonomy shared by the engine and its integrations.

- ConfigurationError stops the process at startup.
- TransportError covers every outbound call; its ``transient`` flag decides
  whether the retry policy may try again.
- ConflictError is a stale version token. It is never retried blindly; the
  executor re-reads and re-applies the action once.
- RetryExhaustedError is what a transient failure becomes after the last
  attempt.
"""

from __future__ import annotations

from typing import Optional

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class AutopilotError(Exception):
    """Base class for all Issue Autopilot errors."""


class ConfigurationError(AutopilotError):
    """A required setting is missing or invalid."""


class TransportError(AutopilotError):
    """An outbound call to the content store or reasoning service failed.

    Attributes:
        status_code: HTTP status, or None for connection-level failures
        transient: Whether retrying the same call may succeed
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        transient: Optional[bool] = None,
    ):
        self.message = message
        self.status_code = status_code
        if transient is None:
            transient = status_code in TRANSIENT_STATUS_CODES
        self.transient = transient
        super().__init__(message)

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"HTTP {self.status_code}: {self.message}"


class ConflictError(TransportError):
    """The store rejected a write because the version token is stale."""

    def __init__(self, message: str, status_code: Optional[int] = 409):
        super().__init__(message, status_code=status_code, transient=False)


class MalformedResponseError(TransportError):
    """A response arrived but could not be understood."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code, transient=False)


class RetryExhaustedError(AutopilotError):
    """A transient failure persisted through every allowed attempt."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"gave up after {attempts} attempts: {last_error}")

    @property
    def status_code(self) -> Optional[int]:
        return getattr(self.last_error, "status_code", None)
