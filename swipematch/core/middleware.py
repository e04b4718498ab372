"""
HTTP middleware for the Swipematch API
Adds security headers, request logging, and a request size limit.
"""

import logging
import time
import uuid
from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from swipematch.config import settings


logger = logging.getLogger("swipematch.requests")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds a request id and security headers to every response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Short request id for tracing
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id

        response = await call_next(request)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Conversations and match lists are private to the user
        if "/chat/" in request.url.path or "/matching/" in request.url.path:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
            response.headers["Pragma"] = "no-cache"

        if settings.ENVIRONMENT == "production":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains; preload"
            )

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and latency of each API request."""

    SKIP_PATHS = ("/", "/health", "/docs", "/openapi.json")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        duration_ms = round((time.time() - start_time) * 1000, 2)

        # Don't log health checks to reduce noise
        if request.url.path not in self.SKIP_PATHS:
            logger.info(
                "%s %s - %d (%sms) [%s] %s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                getattr(request.state, "request_id", "N/A"),
                self._get_client_ip(request),
            )

        return response

    def _get_client_ip(self, request: Request) -> str:
        """Extract real client IP from request."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        return request.client.host if request.client else "unknown"


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects request bodies above MAX_BODY_SIZE."""

    MAX_BODY_SIZE = 1 * 1024 * 1024  # 1 MB, messages are short text

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("Content-Length")

        if content_length:
            try:
                if int(content_length) > self.MAX_BODY_SIZE:
                    return Response(
                        content='{"error": "payload_too_large", "detail": "Request body too large. Maximum size is 1MB."}',
                        status_code=413,
                        media_type="application/json",
                    )
            except ValueError:
                logger.debug("Ignoring malformed Content-Length header: %r", content_length)

        return await call_next(request)
