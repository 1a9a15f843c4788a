"""
Base API Client

Provides unified HTTP request handling, rate limiting and retry/backoff for
all external API clients in Soundprint.
"""

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import aiohttp
import structlog

from .rate_limiter import UnifiedRateLimiter
from .retry import BackoffController, HTTPResult, RetryPolicy

logger = structlog.get_logger(__name__)

QueryParams = Union[Dict[str, Any], Sequence[Tuple[str, Any]]]


class BaseAPIClient:
    """
    Base HTTP client with unified request handling.

    Every request waits on the shared rate limiter, then runs through the
    BackoffController. Responses are read fully and returned as HTTPResult;
    interpreting the status is left to the subclass.
    """

    def __init__(
        self,
        base_url: str,
        rate_limiter: Optional[UnifiedRateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        service_name: str = "api",
        backoff: Optional[BackoffController] = None
    ):
        """
        Initialize base API client.

        Args:
            base_url: Base URL for the API
            rate_limiter: Rate limiter shared by clients of the same upstream
            retry_policy: Retry/backoff configuration
            service_name: Service name for logging and identification
            backoff: Pre-built controller (tests inject one with a fake sleep)
        """
        self.base_url = base_url.rstrip('/')
        self.rate_limiter = rate_limiter
        self.retry_policy = retry_policy or RetryPolicy()
        self.service_name = service_name
        self.backoff = backoff or BackoffController(self.retry_policy, service_name=service_name)
        self.session: Optional[aiohttp.ClientSession] = None

        self.logger = logger.bind(
            service=service_name,
            component=type(self).__name__,
            base_url=self.base_url
        )

    @property
    def is_configured(self) -> bool:
        """Whether the client has everything it needs to make requests."""
        return True

    async def __aenter__(self):
        """Async context manager entry."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.retry_policy.timeout_seconds)
            )
            self.logger.debug("API client session started")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("API client session closed")

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint
        return f"{self.base_url}/{endpoint.lstrip('/')}" if endpoint else self.base_url

    async def _request(
        self,
        endpoint: str,
        params: Optional[QueryParams] = None,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> HTTPResult:
        """
        Make a rate-limited HTTP request with retry and backoff.

        Args:
            endpoint: API endpoint (relative to base_url) or absolute URL
            params: Query parameters; a list of pairs allows repeated keys
            method: HTTP method
            headers: Additional headers
            data: Form body for POST requests

        Returns:
            Final HTTPResult after retries

        Raises:
            RuntimeError: If the client session was not started
            TransportError: If every attempt failed at the transport level
        """
        if not self.session:
            self.logger.error("Client not initialized")
            raise RuntimeError(f"{self.service_name} client not initialized. Use async context manager.")

        url = self._build_url(endpoint)
        request_headers = dict(headers or {})
        request_headers.setdefault('User-Agent', f'Soundprint-{self.service_name}/1.0')
        query: Optional[Union[List[Tuple[str, str]], Dict[str, str]]] = None
        if params:
            pairs = params.items() if isinstance(params, dict) else params
            query = [(str(k), str(v)) for k, v in pairs if v is not None]

        async def send() -> HTTPResult:
            if self.rate_limiter:
                await self.rate_limiter.wait_if_needed()
            async with self.session.request(
                method=method,
                url=url,
                params=query,
                headers=request_headers,
                data=data
            ) as response:
                text = await response.text()
                return HTTPResult(
                    status=response.status,
                    headers=response.headers.copy(),
                    data=self._parse_body(text),
                    text=text
                )

        result = await self.backoff.execute(send, description=f"{method} {endpoint or '/'}")

        log = self.logger.debug if result.ok else self.logger.warning
        log(
            "API request finished",
            method=method,
            endpoint=endpoint,
            status=result.status
        )
        return result

    def _parse_body(self, text: str) -> Any:
        """
        Parse a response body as JSON; malformed bodies yield None.

        Args:
            text: Raw response body

        Returns:
            Parsed JSON or None
        """
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            self.logger.warning("Invalid JSON response", error=str(e), body_preview=text[:120])
            return None
