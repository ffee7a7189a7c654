from __future__ import annotations

import asyncio
import random
import time
from collections import deque
from typing import Deque

from intune_automation.graph.errors import GraphAPIError, GraphErrorCategory
from intune_automation.utils.logging import get_logger


_logger = get_logger(__name__)


class GraphThrottle:
    """Client-side view of the Intune Graph throttling windows.

    Intune allows roughly 1000 requests and 100 writes per tenant per 20 second
    window. The throttle keeps a sliding record of sent requests so a run that
    fans out (the disk-space report) slows itself down before Graph answers 429,
    and it decides how long to back off when Graph throttles anyway.
    """

    max_write_requests_per_window: int = 100
    max_total_requests_per_window: int = 1000
    window_seconds: float = 20.0

    max_retries: int = 3
    base_retry_delay: float = 1.0
    max_retry_delay: float = 32.0

    def __init__(self) -> None:
        self._request_times: Deque[float] = deque()
        self._write_request_times: Deque[float] = deque()
        self._last_rate_limit_time: float | None = None
        self._consecutive_rate_limits = 0

    @staticmethod
    def _now() -> float:
        return time.monotonic()

    def has_capacity(self, *, is_write: bool) -> bool:
        self._expire()
        if len(self._request_times) >= self.max_total_requests_per_window:
            _logger.debug(
                "Total request window full",
                limit=self.max_total_requests_per_window,
            )
            return False
        if is_write and len(self._write_request_times) >= self.max_write_requests_per_window:
            _logger.debug(
                "Write request window full",
                limit=self.max_write_requests_per_window,
            )
            return False
        return True

    def record_request(self, *, is_write: bool) -> None:
        now = self._now()
        self._request_times.append(now)
        if is_write:
            self._write_request_times.append(now)

    def record_rate_limit(self) -> None:
        self._last_rate_limit_time = self._now()
        self._consecutive_rate_limits += 1
        _logger.warning(
            "Graph throttled a request",
            consecutive=self._consecutive_rate_limits,
        )

    def record_success(self) -> None:
        if self._consecutive_rate_limits:
            _logger.info("Graph throttling cleared")
        self._consecutive_rate_limits = 0

    def pacing_delay(self, *, is_write: bool) -> float:
        """Seconds to wait before sending, growing as the window fills up."""

        self._expire()
        if (
            self._last_rate_limit_time is not None
            and self._now() - self._last_rate_limit_time < 60
        ):
            return min(self._consecutive_rate_limits * 2.0, 10.0)

        if is_write:
            utilisation = len(self._write_request_times) / self.max_write_requests_per_window
            if utilisation > 0.8:
                return 5.0 * (utilisation - 0.8)

        utilisation = len(self._request_times) / self.max_total_requests_per_window
        if utilisation > 0.8:
            return 5.0 * (utilisation - 0.8)
        return 0.0

    async def wait_for_capacity(self, *, is_write: bool) -> None:
        while not self.has_capacity(is_write=is_write):
            await asyncio.sleep(max(self.pacing_delay(is_write=is_write), 0.05))
        self.record_request(is_write=is_write)

    def retry_delay(self, *, attempt: int, retry_after_header: str | None = None) -> float:
        if retry_after_header:
            try:
                return float(retry_after_header)
            except ValueError:
                _logger.debug("Ignoring malformed Retry-After", header=retry_after_header)

        exponential = self.base_retry_delay * (2 ** max(0, attempt - 1))
        delay: float = min(exponential * random.uniform(0.8, 1.2), self.max_retry_delay)
        _logger.info("Backing off before retry", delay=round(delay, 2), attempt=attempt)
        return delay

    def should_retry(self, *, attempt: int, error: Exception) -> bool:
        if attempt > self.max_retries:
            _logger.warning("Retry budget exhausted", attempt=attempt)
            return False
        if isinstance(error, asyncio.TimeoutError):
            return True
        if isinstance(error, GraphAPIError):
            return error.is_retriable or error.category is GraphErrorCategory.NETWORK
        return False

    def _expire(self) -> None:
        cutoff = self._now() - self.window_seconds
        while self._request_times and self._request_times[0] < cutoff:
            self._request_times.popleft()
        while self._write_request_times and self._write_request_times[0] < cutoff:
            self._write_request_times.popleft()


__all__ = ["GraphThrottle"]
