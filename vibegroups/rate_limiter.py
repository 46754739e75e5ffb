"""
Rate Limiter - Enforces a minimum delay between outbound requests
"""
import logging
import threading
import time
from typing import Optional

from .errors import AnalysisCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cooperative abort signal shared by every stage of one run.

    Cancelling never interrupts a request that is already in flight; stages
    check the token before issuing the next one.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise AnalysisCancelled("Analysis was cancelled")

    def sleep(self, seconds: float) -> None:
        """Sleep for up to ``seconds``, waking early if cancelled"""
        if self._event.wait(seconds):
            raise AnalysisCancelled("Analysis was cancelled")


class RateLimiter:
    """
    Rate limiter that enforces a minimum time between operations.

    Safe to share between threads: callers are released one at a time, so
    requests are never issued closer together than ``min_interval``.

    Usage:
        limiter = RateLimiter(min_interval=0.25)

        for item in items:
            limiter.wait()  # Will sleep if needed
            make_api_call(item)
    """

    def __init__(self, calls_per_second: Optional[float] = None, min_interval: Optional[float] = None):
        """
        Initialize rate limiter

        Args:
            calls_per_second: Maximum number of calls allowed per second
            min_interval: Minimum seconds between calls (alternative to calls_per_second)
        """
        if min_interval is None:
            if calls_per_second is None:
                calls_per_second = 4.0
            if calls_per_second <= 0:
                raise ValueError("calls_per_second must be positive")
            min_interval = 1.0 / calls_per_second
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")

        self.min_interval = min_interval
        self.last_call = 0.0
        self.total_waits = 0
        self.total_wait_time = 0.0
        self._lock = threading.Lock()

        logger.debug(f"Rate limiter initialized: min {self.min_interval:.3f}s between calls")

    def wait(self, cancel: Optional[CancellationToken] = None) -> None:
        """
        Wait if necessary to maintain the rate limit.
        Returns immediately if enough time has passed since the last call.

        Raises:
            AnalysisCancelled: if ``cancel`` fires while waiting
        """
        with self._lock:
            if cancel is not None:
                cancel.raise_if_cancelled()

            elapsed = time.monotonic() - self.last_call
            if self.last_call and elapsed < self.min_interval:
                sleep_time = self.min_interval - elapsed
                if cancel is not None:
                    cancel.sleep(sleep_time)
                else:
                    time.sleep(sleep_time)
                self.total_waits += 1
                self.total_wait_time += sleep_time

            self.last_call = time.monotonic()

    def reset(self) -> None:
        """Reset the rate limiter state"""
        with self._lock:
            self.last_call = 0.0
            self.total_waits = 0
            self.total_wait_time = 0.0

    def get_stats(self) -> dict:
        """Get statistics about rate limiting"""
        return {
            'total_waits': self.total_waits,
            'total_wait_time': self.total_wait_time,
            'avg_wait_time': self.total_wait_time / self.total_waits if self.total_waits > 0 else 0
        }
