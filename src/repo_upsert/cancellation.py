"""
Cancellation support for remote operations.

A CancellationToken is shared between the caller and one upsert operation.
The caller may cancel it from another thread or give it a deadline; every
remote call checks it before sending a request and bounds its HTTP timeout by
the time remaining.
"""

import threading
import time
from typing import Optional

from .errors import CancelledError


class CancellationToken:
    """Thread-safe cancel flag with an optional monotonic deadline."""

    def __init__(self, timeout_seconds: Optional[float] = None):
        """
        Initialize the token.

        Args:
            timeout_seconds: Optional budget for the whole operation. Once it
                elapses the token reports itself as cancelled.
        """
        self._event = threading.Event()
        self._deadline: Optional[float] = None
        if timeout_seconds is not None:
            if timeout_seconds <= 0:
                raise ValueError(
                    f"timeout_seconds must be greater than 0, got {timeout_seconds}"
                )
            self._deadline = time.monotonic() + timeout_seconds

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def deadline_expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.deadline_expired

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def bound_timeout(self, timeout: float) -> float:
        """Clamp a per-request timeout to the remaining deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def raise_if_cancelled(self, step: str = "operation") -> None:
        """
        Raise CancelledError if the token was cancelled.

        Args:
            step: Name of the step about to run, used in the error message
        """
        if self._event.is_set():
            raise CancelledError(f"Cancelled before {step}")
        if self.deadline_expired:
            raise CancelledError(f"Deadline expired before {step}")
