"""
Rate limiting for Polygon.io API requests

A single fixed-window bucket is the rate-limiting authority for a process:
the client counts calls against it and fails fast when the quota is spent,
and the batch scheduler paces tickers by its `pacing_interval`.
"""

import time
from dataclasses import dataclass

from ticker_backend.exceptions import RateLimitExceeded
from ticker_backend.utils.logger import get_logger
from ticker_backend.data_collector.config import config

logger = get_logger(__name__, utility="data_collector")


@dataclass
class RateLimiter:
    """
    Fixed-window quota counter for provider calls

    Attributes:
        max_calls: Maximum calls allowed per window
        window_seconds: Length of the window in seconds
        call_count: Number of calls in current window
        window_start: Start time of current window
        last_request_time: Timestamp of last counted call

    The counter lives in process memory; two processes each get their own quota.
    """

    max_calls: int = config.REQUESTS_PER_WINDOW
    window_seconds: float = config.RATE_WINDOW_SECONDS
    call_count: int = 0
    window_start: float = 0
    last_request_time: float = 0

    def __post_init__(self):
        if self.max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.window_start = time.time()

    @property
    def pacing_interval(self) -> float:
        """Spacing between calls that never exhausts the quota (12s for 5/60s)"""
        return self.window_seconds / self.max_calls

    def _roll_window(self, current_time: float) -> None:
        if current_time - self.window_start >= self.window_seconds:
            self.window_start = current_time
            self.call_count = 0
            logger.debug("Rate limit window reset")

    def acquire(self) -> None:
        """
        Count one call against the quota

        Raises:
            RateLimitExceeded: when the quota for the current window is spent.
                The call is not queued and nothing sleeps.
        """
        current_time = time.time()
        self._roll_window(current_time)

        if self.call_count >= self.max_calls:
            retry_after = self.window_seconds - (current_time - self.window_start)
            logger.warning(
                f"Rate limit reached ({self.call_count}/{self.max_calls}), "
                f"window resets in {retry_after:.1f}s"
            )
            raise RateLimitExceeded(
                f"Local quota of {self.max_calls} calls per {self.window_seconds:.0f}s exhausted",
                source="local",
                retry_after=retry_after,
            )

        self.call_count += 1
        self.last_request_time = current_time
        logger.debug(f"Request {self.call_count}/{self.max_calls} in current window")

    def get_remaining_requests(self) -> int:
        """Get number of remaining calls in current window"""
        if time.time() - self.window_start >= self.window_seconds:
            return self.max_calls
        return max(0, self.max_calls - self.call_count)

    def get_time_until_reset(self) -> float:
        """Get time in seconds until the window resets"""
        elapsed = time.time() - self.window_start
        if elapsed >= self.window_seconds:
            return 0.0
        return self.window_seconds - elapsed

    def reset(self) -> None:
        """Manually reset the rate limiter"""
        self.window_start = time.time()
        self.call_count = 0
        logger.info("Rate limiter manually reset")

    def __str__(self) -> str:
        return (
            f"RateLimiter(calls: {self.call_count}/{self.max_calls}, "
            f"remaining: {self.get_remaining_requests()}, "
            f"reset_in: {self.get_time_until_reset():.1f}s)"
        )
