"""
Retry and Backoff Controller

Wraps a single HTTP call with rate-limit and transient-failure handling:

- 429: honour ``Retry-After`` when present, otherwise linear backoff
- 5xx and transport errors: exponential backoff
- anything else: returned immediately

Once the attempt ceiling is reached the last response is handed back as-is,
so callers decide what a failing status means for them.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional

import aiohttp
import structlog

from .exceptions import TransportError

logger = structlog.get_logger(__name__)

HTTP_TOO_MANY_REQUESTS = 429

SendFn = Callable[[], Awaitable["HTTPResult"]]
SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class HTTPResult:
    """Fully read HTTP response."""
    status: int
    headers: Mapping[str, str] = field(default_factory=dict)
    data: Any = None
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status < 600


@dataclass
class RetryPolicy:
    """Retry configuration shared by every provider call."""
    max_retries: int = 2
    backoff_base_ms: int = 500
    timeout_seconds: float = 8.0

    def rate_limit_delay_ms(self, attempt: int, retry_after: Optional[str]) -> float:
        """Delay before retrying a 429, in milliseconds."""
        if retry_after:
            try:
                seconds = float(retry_after)
                if seconds >= 0:
                    return seconds * 1000
            except ValueError:
                pass
        return float(self.backoff_base_ms * (attempt + 1))

    def server_error_delay_ms(self, attempt: int) -> float:
        """Delay before retrying a 5xx or transport failure, in milliseconds."""
        return float(self.backoff_base_ms * (2 ** attempt))


class BackoffController:
    """
    Executes an HTTP call under a RetryPolicy.

    The call is supplied as a zero-argument coroutine factory so each attempt
    issues a fresh request.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Optional[SleepFn] = None,
        service_name: str = "api"
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep or asyncio.sleep
        self.service_name = service_name
        self.logger = logger.bind(service=service_name, component="BackoffController")

    async def execute(self, send: SendFn, description: str = "") -> HTTPResult:
        """
        Run ``send`` until it succeeds, fails permanently or retries run out.

        Args:
            send: Coroutine factory performing one attempt
            description: Short label for log lines (endpoint, track id)

        Returns:
            The final HTTPResult, successful or not

        Raises:
            TransportError: When every attempt failed at the transport level
        """
        max_retries = self.policy.max_retries
        attempts = max_retries + 1

        for attempt in range(attempts):
            try:
                result = await asyncio.wait_for(send(), timeout=self.policy.timeout_seconds)
            except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                self.logger.warning(
                    "Transport error",
                    request=description,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    error=str(e) or type(e).__name__,
                    error_type=type(e).__name__
                )
                if attempt >= max_retries:
                    raise TransportError(self.service_name, attempts, e) from e
                await self._wait(self.policy.server_error_delay_ms(attempt), description, attempt)
                continue

            if result.status == HTTP_TOO_MANY_REQUESTS:
                if attempt >= max_retries:
                    self.logger.warning(
                        "Rate limited - retries exhausted",
                        request=description,
                        attempts=attempts
                    )
                    return result
                retry_after = result.headers.get("Retry-After")
                delay_ms = self.policy.rate_limit_delay_ms(attempt, retry_after)
                self.logger.warning(
                    "Rate limited - backing off",
                    request=description,
                    attempt=attempt + 1,
                    retry_after=retry_after,
                    delay_ms=delay_ms
                )
                await self._wait(delay_ms, description, attempt)
                continue

            if result.is_server_error:
                if attempt >= max_retries:
                    self.logger.warning(
                        "Server error - retries exhausted",
                        request=description,
                        status=result.status,
                        attempts=attempts
                    )
                    return result
                await self._wait(self.policy.server_error_delay_ms(attempt), description, attempt)
                continue

            return result

        # range() always returns or raises above; kept for type checkers
        raise RuntimeError(f"{self.service_name} retry loop exited unexpectedly")

    async def _wait(self, delay_ms: float, description: str, attempt: int) -> None:
        self.logger.debug(
            "Backing off before retry",
            request=description,
            attempt=attempt + 1,
            delay_ms=delay_ms
        )
        await self._sleep(delay_ms / 1000.0)
