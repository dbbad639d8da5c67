"""Deadline and cancellation signal passed into store calls.

A CallContext is checked before every attempt, while SQLite executes a
statement (via the connection progress handler) and while waiting out a
retry backoff. Tripping it makes the current call roll back and raise.
"""

import threading
import time

from bd_claim.models import ClaimFailed, ErrorCode

CANCELLED_MESSAGE = "operation cancelled"
DEADLINE_MESSAGE = "deadline exceeded"


class CallContext:
    """Cancellation event plus an optional absolute deadline (time.monotonic)."""

    def __init__(self, cancel: threading.Event | None = None, deadline: float | None = None) -> None:
        self._cancel = cancel or threading.Event()
        self._deadline = deadline

    @classmethod
    def with_timeout(cls, seconds: float | None, cancel: threading.Event | None = None) -> "CallContext":
        """Context expiring seconds from now (no deadline when seconds is None)."""
        deadline = time.monotonic() + seconds if seconds is not None else None
        return cls(cancel=cancel, deadline=deadline)

    @property
    def deadline(self) -> float | None:
        return self._deadline

    def cancel(self) -> None:
        self._cancel.set()

    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def done(self) -> bool:
        return self.cancelled() or self.expired()

    def reason(self) -> str | None:
        if self.cancelled():
            return CANCELLED_MESSAGE
        if self.expired():
            return DEADLINE_MESSAGE
        return None

    def check(self) -> None:
        """Raise ClaimFailed if the call was cancelled or ran past its deadline."""
        reason = self.reason()
        if reason:
            raise ClaimFailed(ErrorCode.UNEXPECTED, reason)

    def sleep(self, seconds: float) -> None:
        """Wait up to seconds, returning early (and raising) on cancel or deadline."""
        if self._deadline is not None:
            seconds = min(seconds, max(0.0, self._deadline - time.monotonic()))
        self._cancel.wait(seconds)
        self.check()
