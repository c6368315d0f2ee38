"""
Wake-up timers for the PocketBeat scheduler
"""

import threading
from typing import Callable, Optional


class ThreadingTimer:
    """
    One-shot timers on daemon threads

    Each call_later starts a threading.Timer; the scheduler arms the next one
    at the end of every tick, so ticks never overlap.
    """

    def call_later(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer

    def cancel(self, handle: threading.Timer):
        handle.cancel()


class PendingCall:
    """A callback armed on an OfflineTimer"""

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback


class OfflineTimer:
    """
    Timer that only fires when told to

    Used for offline rendering and tests, where time is advanced by
    rendering audio rather than by the wall clock.
    """

    def __init__(self):
        self.pending: Optional[PendingCall] = None
        self.armed_count = 0

    @property
    def has_pending(self) -> bool:
        return self.pending is not None

    def call_later(self, delay: float, callback: Callable[[], None]) -> PendingCall:
        self.pending = PendingCall(delay, callback)
        self.armed_count += 1
        return self.pending

    def cancel(self, handle: PendingCall):
        if self.pending is handle:
            self.pending = None

    def fire(self) -> bool:
        """Run the pending callback; False if nothing was armed"""
        call = self.pending
        if call is None:
            return False
        self.pending = None
        call.callback()
        return True
