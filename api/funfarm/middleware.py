"""Security middleware for the API."""

from __future__ import annotations

import logging
import os
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Paths not worth a log line
QUIET_PATHS = {
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log one line per request with method, path, status and duration.

    Server errors are logged at WARNING so they stand out.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        path = request.url.path

        if request.method == "OPTIONS" or path in QUIET_PATHS:
            return response

        elapsed_ms = (time.perf_counter() - started) * 1000
        message = f"{request.method} {path} -> {response.status_code} ({elapsed_ms:.1f} ms)"
        if response.status_code >= 500:
            logger.warning(message)
        else:
            logger.debug(message)
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.

    Implements OWASP recommended security headers for a JSON API.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "geolocation=(), microphone=(), camera=(), payment=(), usb=()"
        )

        # HSTS only when served over HTTPS
        environment = os.getenv("ENVIRONMENT", "development")
        if environment == "production" or request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        return response
