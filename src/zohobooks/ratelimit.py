import asyncio
import contextlib
import logging
import threading
import time
from collections import deque
from typing import Awaitable, Callable

DEFAULT_MAX_REQUESTS = 100
WINDOW_SECONDS = 60.0

# Minimum spacing between "waiting for a slot" log lines
SLEEP_NOTICE_INTERVAL = 5.0


# ---------- Shared window bookkeeping (synchronization handled by subclasses) ----------


class _SlidingWindow:
    def __init__(
        self,
        max_requests: int,
        window: float,
        clock: Callable[[], float],
    ):
        """Initialize a _SlidingWindow.

        Args:
            max_requests (int): admissions allowed in any trailing window
            window (float): window length in seconds
            clock (Callable[[], float]): monotonic time source

        Raises:
            ValueError: if max_requests or window is not positive
        """
        if int(max_requests) <= 0:
            raise ValueError(f"max_requests must be positive, got {max_requests!r}")
        if window <= 0:
            raise ValueError(f"window must be positive, got {window!r}")
        self.max_requests = int(max_requests)
        self.window = float(window)
        self._clock = clock
        self._timestamps: deque[float] = deque()
        self._logger = logging.getLogger("zohobooks")
        self._next_notice = 0.0

    def _now(self) -> float:
        return self._clock()

    def _purge(self, now: float) -> None:
        cutoff = now - self.window
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def _reserve(self) -> tuple[float, float]:
        """Record the next admission and return (admit_at, wait). Call with the lock held.

        Slots are appended at their future admission instant, so callers that
        arrive while another one is waiting queue up behind it.
        """
        now = self._now()
        self._purge(now)
        if len(self._timestamps) < self.max_requests:
            admit_at = now
        else:
            admit_at = max(now, self._timestamps[-self.max_requests] + self.window)
        self._timestamps.append(admit_at)
        return admit_at, admit_at - now

    def _release(self, admit_at: float) -> None:
        # caller gave up before its slot came due
        with contextlib.suppress(ValueError):
            self._timestamps.remove(admit_at)

    def _notice(self, wait: float) -> None:
        now = self._now()
        if self._next_notice <= now:
            self._logger.info(f"rate limit of {self.max_requests}/min reached; waiting {wait:.2f}s")
            self._next_notice = now + SLEEP_NOTICE_INTERVAL

    def pending(self) -> int:
        """Number of admissions currently counted against the window."""
        cutoff = self._now() - self.window
        return sum(1 for t in list(self._timestamps) if t > cutoff)


class RateLimiter(_SlidingWindow):
    """Thread-safe sliding-window limiter for the blocking client."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(max_requests, window, clock)
        self._sleep = sleep
        self._lock = threading.Lock()

    def admit(self) -> float:
        """Block until a request may be sent; return the seconds waited."""
        with self._lock:
            admit_at, wait = self._reserve()
            if wait > 0:
                self._notice(wait)
        if wait > 0:
            try:
                self._sleep(wait)
            except BaseException:
                with self._lock:
                    self._release(admit_at)
                raise
        return wait


class AsyncRateLimiter(_SlidingWindow):
    """Sliding-window limiter shared by coroutines on one event loop."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window: float = WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(max_requests, window, clock)
        self._sleep = sleep
        self._lock = asyncio.Lock()

    async def admit(self) -> float:
        async with self._lock:
            admit_at, wait = self._reserve()
            if wait > 0:
                self._notice(wait)
        if wait > 0:
            try:
                await self._sleep(wait)
            except asyncio.CancelledError:
                self._release(admit_at)
                raise
        return wait
