"""
Cancellable Delay

A sleep that resolves with a distinguishable outcome instead of raising
when it is cancelled early.
"""

import asyncio
from enum import Enum
from typing import Generator, Optional


class DelayOutcome(str, Enum):
    """How a delay resolved."""
    ELAPSED = "elapsed"
    CANCELLED = "cancelled"


class CancelReason(str, Enum):
    """Why an in-flight receive or sleep was cancelled."""
    STOP = "stop"
    RESUME = "resume"


class DelayHandle:
    """
    Awaitable handle for a running delay.

    Usage:
        handle = begin_delay(5)
        ...
        handle.cancel(CancelReason.RESUME)   # from elsewhere
        outcome = await handle               # DelayOutcome.CANCELLED
    """

    def __init__(self, seconds: float):
        if seconds < 0:
            raise ValueError(f"Delay must be non-negative, got {seconds}")
        loop = asyncio.get_running_loop()
        self.seconds = seconds
        self.reason: Optional[CancelReason] = None
        self._future: asyncio.Future = loop.create_future()
        self._timer = loop.call_later(seconds, self._resolve, DelayOutcome.ELAPSED)

    def _resolve(self, outcome: DelayOutcome) -> None:
        if not self._future.done():
            self._future.set_result(outcome)

    def done(self) -> bool:
        return self._future.done()

    def cancel(self, reason: CancelReason = CancelReason.STOP) -> bool:
        """
        Resolve the delay early.

        Returns:
            False if the delay had already resolved
        """
        if self._future.done():
            return False
        self.reason = reason
        self._timer.cancel()
        self._resolve(DelayOutcome.CANCELLED)
        return True

    def __await__(self) -> Generator[None, None, DelayOutcome]:
        try:
            return (yield from asyncio.shield(self._future).__await__())
        except asyncio.CancelledError:
            # The awaiting task was cancelled; release the timer with it
            self._timer.cancel()
            raise


def begin_delay(seconds: float) -> DelayHandle:
    """Start a cancellable delay. Must be called from a running event loop."""
    return DelayHandle(seconds)
