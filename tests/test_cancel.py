"""Tests for bd_claim.cancel (CallContext)."""

import threading
import time

import pytest

from bd_claim.cancel import CANCELLED_MESSAGE, DEADLINE_MESSAGE, CallContext
from bd_claim.models import ClaimFailed, ErrorCode


class TestCallContext:
    """Cancellation, deadlines and cancellable sleep."""

    def test_fresh_context_not_done(self) -> None:
        """A new context has no deadline and is not done."""
        ctx = CallContext()
        assert ctx.deadline is None
        assert not ctx.done()
        assert ctx.reason() is None
        ctx.check()

    def test_cancel(self) -> None:
        """cancel() trips the context with 'operation cancelled'."""
        ctx = CallContext()
        ctx.cancel()
        assert ctx.cancelled()
        with pytest.raises(ClaimFailed) as exc_info:
            ctx.check()
        assert exc_info.value.code is ErrorCode.UNEXPECTED
        assert exc_info.value.message == CANCELLED_MESSAGE

    def test_shared_event(self) -> None:
        """Setting the caller's event cancels the context."""
        event = threading.Event()
        ctx = CallContext(cancel=event)
        event.set()
        assert ctx.reason() == CANCELLED_MESSAGE

    def test_with_timeout(self) -> None:
        """with_timeout sets a monotonic deadline; None means no deadline."""
        ctx = CallContext.with_timeout(10)
        assert ctx.deadline is not None
        assert ctx.deadline > time.monotonic()
        assert CallContext.with_timeout(None).deadline is None

    def test_expired(self) -> None:
        """A past deadline reports 'deadline exceeded'."""
        ctx = CallContext(deadline=time.monotonic() - 1)
        assert ctx.expired()
        assert ctx.reason() == DEADLINE_MESSAGE

    def test_sleep_interrupted_by_cancel(self) -> None:
        """sleep() returns early and raises when cancelled from another thread."""
        ctx = CallContext()
        timer = threading.Timer(0.05, ctx.cancel)
        timer.start()
        started = time.monotonic()
        with pytest.raises(ClaimFailed):
            ctx.sleep(5)
        assert time.monotonic() - started < 2
        timer.join()

    def test_sleep_capped_by_deadline(self) -> None:
        """sleep() does not outlive the deadline."""
        ctx = CallContext.with_timeout(0.05)
        started = time.monotonic()
        with pytest.raises(ClaimFailed) as exc_info:
            ctx.sleep(5)
        assert time.monotonic() - started < 2
        assert exc_info.value.message == DEADLINE_MESSAGE
