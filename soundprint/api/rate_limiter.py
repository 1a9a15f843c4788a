"""
Unified Rate Limiter

Client-side throttling for the feature providers. Keeps request bursts under
each upstream's published limit so the retry controller rarely sees a 429.
"""

import asyncio
import time
from collections import deque
from typing import Any, Callable, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class UnifiedRateLimiter:
    """
    Token bucket for per-second limits plus a sliding window for per-minute limits.

    One instance is shared by every client talking to the same upstream.
    """

    def __init__(
        self,
        calls_per_second: Optional[float] = None,
        calls_per_minute: Optional[int] = None,
        burst_size: Optional[int] = None,
        service_name: str = "api",
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize rate limiter with specified limits.

        Args:
            calls_per_second: Maximum sustained calls per second
            calls_per_minute: Maximum calls in any 60 second window
            burst_size: Bucket capacity (defaults to twice calls_per_second)
            service_name: Service name for logging
            clock: Monotonic time source
        """
        self.calls_per_second = calls_per_second
        self.calls_per_minute = calls_per_minute
        self.service_name = service_name
        self._clock = clock

        if calls_per_second:
            self.burst_size = burst_size or max(int(calls_per_second * 2), 1)
            self.tokens = float(self.burst_size)
        else:
            self.burst_size = None
            self.tokens = 0.0
        self.last_refill = clock()

        self.request_times: deque = deque()
        self.lock = asyncio.Lock()

        self.logger = logger.bind(service=f"RateLimiter-{service_name}")
        self.logger.debug(
            "Rate limiter initialized",
            calls_per_second=calls_per_second,
            calls_per_minute=calls_per_minute,
            burst_size=self.burst_size
        )

    @classmethod
    def for_reccobeats(cls, calls_per_second: float = 2.0) -> "UnifiedRateLimiter":
        return cls(calls_per_second=calls_per_second, service_name="ReccoBeats")

    @classmethod
    def for_track_analysis(cls, calls_per_second: float = 1.0) -> "UnifiedRateLimiter":
        return cls(calls_per_second=calls_per_second, service_name="TrackAnalysis")

    @classmethod
    def for_getsongbpm(cls, calls_per_second: float = 1.0) -> "UnifiedRateLimiter":
        return cls(calls_per_second=calls_per_second, service_name="GetSongBPM")

    @classmethod
    def for_spotify(cls, calls_per_minute: int = 120) -> "UnifiedRateLimiter":
        return cls(calls_per_minute=calls_per_minute, service_name="Spotify")

    async def wait_if_needed(self) -> None:
        """Block until a request may be sent, then record it."""
        async with self.lock:
            now = self._clock()
            wait_time = 0.0

            if self.calls_per_second:
                wait_time = max(wait_time, self._check_per_second_limit(now))
            if self.calls_per_minute:
                wait_time = max(wait_time, self._check_per_minute_limit(now))

            if wait_time > 0:
                self.logger.debug("Rate limit wait required", wait_time=wait_time)
                await asyncio.sleep(wait_time)
                now = self._clock()
                if self.calls_per_second:
                    self._refill(now)

            if self.calls_per_minute:
                self.request_times.append(now)
            if self.calls_per_second:
                self.tokens = max(0.0, self.tokens - 1)

    def _refill(self, now: float) -> None:
        elapsed = now - self.last_refill
        self.tokens = min(float(self.burst_size), self.tokens + elapsed * self.calls_per_second)
        self.last_refill = now

    def _check_per_second_limit(self, now: float) -> float:
        self._refill(now)
        if self.tokens >= 1:
            return 0.0
        return (1.0 - self.tokens) / self.calls_per_second

    def _check_per_minute_limit(self, now: float) -> float:
        window_start = now - 60
        while self.request_times and self.request_times[0] <= window_start:
            self.request_times.popleft()
        if len(self.request_times) < self.calls_per_minute:
            return 0.0
        return max(0.0, 60 - (now - self.request_times[0]))

    def reset(self) -> None:
        """Reset rate limiter state (useful for testing)."""
        self.request_times.clear()
        if self.calls_per_second:
            self.tokens = float(self.burst_size)
        self.last_refill = self._clock()

    def get_current_usage(self) -> Dict[str, Any]:
        """Current token and window usage, for diagnostics."""
        return {
            "service": self.service_name,
            "tokens_available": round(self.tokens, 2) if self.calls_per_second else None,
            "burst_size": self.burst_size,
            "calls_last_minute": len(self.request_times) if self.calls_per_minute else None,
            "calls_per_minute_limit": self.calls_per_minute,
        }
