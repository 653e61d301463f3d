"""
Retry/backoff policy for outbound calls.

Every content-store, issue-tracker and reasoning-service call goes through a
RetryPolicy. The policy only classifies failures; it has no knowledge of the
operation it wraps.

Transient: HTTP 429/500/502/503/504 and connection-level errors.
Terminal: everything else, surfaced immediately.
"""

from __future__ import annotations

import functools
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, TypeVar

import httpx
import structlog

from .errors import RetryExhaustedError, TransportError

if TYPE_CHECKING:
    from .config import Settings

logger = structlog.get_logger()

T = TypeVar("T")


def is_transient(error: BaseException) -> bool:
    """Return True if retrying the failed call may succeed."""
    if isinstance(error, TransportError):
        return error.transient
    return isinstance(error, httpx.TransportError)


@dataclass
class RetryPolicy:
    """Linear backoff: the delay before attempt n+1 is ``base_delay * n``."""

    max_attempts: int = 4
    base_delay: float = 0.8
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_attempts,
            base_delay=settings.retry_backoff,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        return self.base_delay * attempt

    def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Invoke ``fn`` and retry transient failures.

        Raises:
            RetryExhaustedError: the last attempt failed transiently
            Exception: any terminal failure, unchanged
        """
        attempt = 1
        while True:
            try:
                return fn(*args, **kwargs)
            except Exception as e:
                if not is_transient(e):
                    raise
                if attempt >= self.max_attempts:
                    logger.error(
                        "retry_exhausted",
                        call=getattr(fn, "__name__", repr(fn)),
                        attempts=attempt,
                        error=str(e),
                    )
                    raise RetryExhaustedError(attempt, e) from e
                delay = self.delay_for(attempt)
                logger.warning(
                    "retry_scheduled",
                    call=getattr(fn, "__name__", repr(fn)),
                    attempt=attempt,
                    delay_seconds=delay,
                    error=str(e),
                )
                self.sleep(delay)
                attempt += 1

    def wrap(self, fn: Callable[..., T]) -> Callable[..., T]:
        """Return a retrying version of ``fn``."""

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            return self.call(fn, *args, **kwargs)

        return wrapper
