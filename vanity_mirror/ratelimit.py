"""
Fixed-window request rate limiter for the dashboard's own routes.

Counts requests per client key in non-overlapping windows. The table lives in
memory; each process keeps its own counters.
"""

import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from vanity_mirror.logging import get_logger

logger = get_logger("ratelimit")

DEFAULT_MAX_REQUESTS = 30
DEFAULT_WINDOW_SECONDS = 60.0
DEFAULT_CLEANUP_INTERVAL = 5 * 60.0
UNKNOWN_CLIENT = "unknown"


@dataclass
class RateLimitEntry:
    count: int
    reset_time: float  # epoch seconds


@dataclass
class RateLimitResult:
    success: bool
    remaining: int
    reset_time: float


def client_key(headers: Mapping[str, str]) -> str:
    """
    Identify the caller from proxy headers.

    Takes the first address of ``X-Forwarded-For``, then ``X-Real-IP``;
    everything else shares the ``"unknown"`` bucket.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return UNKNOWN_CLIENT


class RateLimiter:
    """
    Allows ``max_requests`` per key in each ``window_seconds`` window.

    A window starts with the first request from a key and ends exactly at its
    ``reset_time``. Expired entries are swept lazily, at most once per
    ``cleanup_interval``.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_requests < 1:
            raise ValueError(f"max_requests must be at least 1, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._last_cleanup = clock()

    def __len__(self) -> int:
        return len(self._entries)

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.cleanup_interval:
            return
        self._last_cleanup = now
        expired = [key for key, entry in self._entries.items() if entry.reset_time <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Swept %d expired rate-limit entries", len(expired))

    def check(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and report whether it is allowed."""
        now = self._clock()
        self._cleanup(now)

        entry = self._entries.get(key)
        if entry is None or entry.reset_time <= now:
            entry = RateLimitEntry(count=1, reset_time=now + self.window_seconds)
            self._entries[key] = entry
            return RateLimitResult(True, self.max_requests - 1, entry.reset_time)

        if entry.count >= self.max_requests:
            return RateLimitResult(False, 0, entry.reset_time)

        entry.count += 1
        return RateLimitResult(True, self.max_requests - entry.count, entry.reset_time)

    def retry_after(self, result: RateLimitResult) -> int:
        """Whole seconds until the window resets, never less than one."""
        return max(1, math.ceil(result.reset_time - self._clock()))
