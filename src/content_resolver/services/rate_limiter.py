"""Rolling hourly call budget for the external provider."""

import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from content_resolver.config import settings
from content_resolver.entities import RateLimitStatus
from content_resolver.utils.clock import utcnow

WINDOW = timedelta(hours=1)


class RateLimiter:
    """Fixed one-hour window counter.

    ``allow()`` never waits: a denial is an immediate failure for the
    caller, not a pause point. The read-modify-write is serialized by a
    lock and contains no await, so it is safe across threads and
    coroutines alike.

    Example:
        ```python
        limiter = RateLimiter(max_requests_per_hour=100)
        if not limiter.allow():
            raise RateLimitExceeded("budget spent")
        ```
    """

    def __init__(
        self,
        max_requests_per_hour: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the limiter.

        Args:
            max_requests_per_hour: Budget per window. Defaults to settings.
            clock: Returns the current naive-UTC time (injectable for tests).
        """
        self._max = settings.provider_max_requests_per_hour if max_requests_per_hour is None else max_requests_per_hour
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._window_start = clock()

    def _roll(self, now: datetime) -> None:
        if now - self._window_start >= WINDOW:
            self._count = 0
            self._window_start = now

    def allow(self) -> bool:
        """Consume one call from the budget.

        Returns:
            True if the call may proceed, False if the budget is spent
        """
        with self._lock:
            self._roll(self._clock())
            if self._count >= self._max:
                return False
            self._count += 1
            return True

    def status(self) -> RateLimitStatus:
        """Snapshot of the budget (rolls the window first, consumes nothing)."""
        with self._lock:
            self._roll(self._clock())
            return RateLimitStatus(
                remaining=max(self._max - self._count, 0),
                total=self._max,
                resets_at=self._window_start + WINDOW,
            )

    @property
    def max_requests_per_hour(self) -> int:
        """Get the configured budget."""
        return self._max
