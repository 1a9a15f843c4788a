"""
FastAPI Logging Middleware for Soundprint

Logs every API request with timing, status code and a request id that is
bound into structlog's context for the duration of the request.
"""

import time
import uuid
from typing import Callable, List, Optional

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger("api.middleware")


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log all API requests and responses.

    Provides:
    - Request/response timing
    - Status code tracking
    - Request ID generation for tracing (echoed as ``X-Request-ID``)
    """

    def __init__(self, app, exclude_paths: Optional[List[str]] = None, slow_request_threshold: float = 10.0):
        """
        Initialize logging middleware.

        Args:
            app: FastAPI application
            exclude_paths: Paths that are not logged (progress polling is noisy)
            slow_request_threshold: Seconds after which a request is logged as slow
        """
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/health", "/docs", "/openapi.json"]
        self.slow_request_threshold = slow_request_threshold

    def _is_excluded(self, path: str) -> bool:
        return path in self.exclude_paths or path.endswith("/progress")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if self._is_excluded(request.url.path):
            return await call_next(request)

        request_id = str(uuid.uuid4())
        clear_contextvars()
        bind_contextvars(request_id=request_id)

        start_time = time.time()
        logger.info(
            "api_request_start",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else "unknown"
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "api_request_error",
                method=request.method,
                path=request.url.path,
                error_type=type(e).__name__,
                error_message=str(e),
                duration_seconds=round(time.time() - start_time, 4)
            )
            raise
        finally:
            duration = time.time() - start_time

        log = logger.warning if duration > self.slow_request_threshold else logger.info
        log(
            "api_request_complete",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_seconds=round(duration, 4)
        )

        response.headers["X-Request-ID"] = request_id
        clear_contextvars()
        return response
