"""Fixed-window request rate limiter keyed by caller."""
import threading
import time
from typing import Callable, Optional


class RateLimiter:
    """
    Allow at most ``max_requests`` per caller in each ``window_seconds`` window.

    Windows are aligned to the first request of each caller; counters live in
    process memory only. Expired windows are swept at most once per window, so
    callers that stop sending requests do not stay tracked.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, tuple[float, int]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    @property
    def tracked_callers(self) -> int:
        with self._lock:
            return len(self._windows)

    def hit(self, caller: str) -> Optional[int]:
        """
        Count one request for a caller.

        Returns:
            None if the request is allowed, otherwise the seconds until the
            caller's window resets
        """
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)

            started, count = self._windows.get(caller, (now, 0))
            if now - started >= self.window_seconds:
                started, count = now, 0

            if count >= self.max_requests:
                remaining = self.window_seconds - (now - started)
                return max(1, int(remaining + 0.999))

            self._windows[caller] = (started, count + 1)
            return None

    def _sweep(self, now: float) -> None:
        # Caller holds the lock
        expired = [
            caller for caller, (started, _) in self._windows.items()
            if now - started >= self.window_seconds
        ]
        for caller in expired:
            del self._windows[caller]
        self._last_sweep = now

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._last_sweep = self._clock()
