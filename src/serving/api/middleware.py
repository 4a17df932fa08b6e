"""
API Middleware

Production middleware for:
- Request logging with request/tenant context
- Rate limiting of public storefront endpoints
- Security headers
"""

import time
import uuid
from collections import defaultdict
from typing import Callable, Dict, Sequence
import asyncio

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

from src.config import get_settings
from src.config.logging import bind_request_context, clear_request_context

logger = structlog.get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with timing information"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()

        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        tenant_id = request.headers.get(get_settings().security.tenant_header)

        clear_request_context()
        bind_request_context(request_id=request_id, tenant_id=tenant_id)

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("Request failed", error=str(e), error_type=type(e).__name__)
            clear_request_context()
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000

        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        clear_request_context()

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        response.headers["X-Request-ID"] = request_id

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    In-memory sliding window limiter per client address.

    Only paths starting with one of ``path_prefixes`` are limited; the
    authenticated dashboard routes sit behind the gateway's own limits.
    """

    def __init__(
        self,
        app,
        max_requests: int = 100,
        window_seconds: int = 60,
        path_prefixes: Sequence[str] = ("/",),
    ):
        super().__init__(app)
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.path_prefixes = tuple(path_prefixes)
        self._requests: Dict[str, list] = defaultdict(list)
        self._lock = asyncio.Lock()
        self._last_sweep = 0.0

    def _evict_idle(self, current_time: float) -> None:
        """Drop clients with no request inside the window."""
        idle = [
            client for client, stamps in self._requests.items()
            if not stamps or current_time - stamps[-1] >= self.window_seconds
        ]
        for client in idle:
            del self._requests[client]
        self._last_sweep = current_time

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not request.url.path.startswith(self.path_prefixes):
            return await call_next(request)

        client_id = request.client.host if request.client else "unknown"
        current_time = time.time()

        async with self._lock:
            if current_time - self._last_sweep >= self.window_seconds:
                self._evict_idle(current_time)

            recent = [
                t for t in self._requests[client_id]
                if current_time - t < self.window_seconds
            ]

            if len(recent) >= self.max_requests:
                self._requests[client_id] = recent
                logger.warning(
                    "Rate limit exceeded",
                    client=client_id,
                    requests=len(recent),
                )
                return Response(
                    content='{"success": false, "message": "Rate limit exceeded"}',
                    status_code=429,
                    media_type="application/json",
                    headers={
                        "Retry-After": str(self.window_seconds),
                        "X-RateLimit-Limit": str(self.max_requests),
                        "X-RateLimit-Remaining": "0",
                    },
                )

            recent.append(current_time)
            self._requests[client_id] = recent
            remaining = self.max_requests - len(recent)

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = str(self.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)

        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
