"""
LetterDesk - HTTP Middleware
Request/Response logging, timing, and context management
"""

import re
import time
from typing import Callable, Set
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
from starlette.types import ASGIApp

from letterdesk.core.logging_config import (
    logger,
    set_request_id,
    set_user_id,
    set_letter_id,
    generate_request_id,
)


# Paths that should skip detailed logging (health checks, docs)
SKIP_LOGGING_PATHS: Set[str] = {
    "/health",
    "/",
    "/favicon.ico",
    "/docs",
    "/redoc",
    "/openapi.json",
}

# /api/v1/letters/<uuid>/...
LETTER_PATH_PATTERN = re.compile(r"/letters/([0-9a-fA-F-]{36})(?:/|$)")


def should_skip_logging(path: str) -> bool:
    """Check if path should skip detailed logging"""
    if path in SKIP_LOGGING_PATHS:
        return True
    if path.startswith("/static/") or path.endswith((".js", ".css", ".png", ".ico")):
        return True
    return False


def extract_letter_id(path: str) -> str:
    """Return the letter id embedded in a letters path, or an empty string"""
    match = LETTER_PATH_PATTERN.search(path)
    return match.group(1) if match else ""


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging HTTP requests and responses.

    Features:
    - Generates and tracks request IDs for correlation
    - Logs request method, path, status, and duration
    - Sets context variables for downstream logging
    - Adds X-Request-ID header to responses
    """

    def __init__(self, app: ASGIApp, slow_request_ms: float = 1000):
        super().__init__(app)
        self.slow_request_ms = slow_request_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        set_request_id(request_id)

        # user_id is set later by the auth dependency
        path = request.url.path
        letter_id = extract_letter_id(path)
        if letter_id:
            set_letter_id(letter_id)

        skip_logging = should_skip_logging(path)
        start_time = time.perf_counter()

        if not skip_logging:
            client_ip = request.client.host if request.client else "unknown"
            logger.info(
                f"→ {request.method} {path}",
                extra={
                    "event_type": "http_request_start",
                    "http_method": request.method,
                    "http_path": path,
                    "client_ip": client_ip,
                    "user_agent": request.headers.get("user-agent", ""),
                }
            )

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

            if not skip_logging:
                status_code = response.status_code

                # Determine log level based on status code
                if status_code >= 500:
                    log_level = "error"
                elif status_code >= 400:
                    log_level = "warning"
                else:
                    log_level = "info"

                log_func = getattr(logger, log_level)
                log_func(
                    f"← {request.method} {path} - {status_code} ({duration_ms:.2f}ms)",
                    extra={
                        "event_type": "http_request_complete",
                        "http_method": request.method,
                        "http_path": path,
                        "http_status": status_code,
                        "duration_ms": duration_ms,
                    }
                )

                if duration_ms > self.slow_request_ms:
                    logger.warning(
                        f"Slow request: {request.method} {path} took {duration_ms:.2f}ms",
                        extra={
                            "event_type": "slow_request",
                            "http_method": request.method,
                            "http_path": path,
                            "duration_ms": duration_ms,
                        }
                    )

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000

            logger.error(
                f"✗ {request.method} {path} - Exception ({duration_ms:.2f}ms): {type(exc).__name__}",
                exc_info=True,
                extra={
                    "event_type": "http_request_error",
                    "http_method": request.method,
                    "http_path": path,
                    "duration_ms": duration_ms,
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                }
            )
            raise

        finally:
            # Clear context variables
            set_request_id("")
            set_user_id("")
            set_letter_id("")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all responses
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-Frame-Options"] = "DENY"

        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to limit request body size
    """

    def __init__(self, app: ASGIApp, max_size: int = 1024 * 1024):  # 1MB default
        super().__init__(app)
        self.max_size = max_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")

        if content_length and content_length.isdigit() and int(content_length) > self.max_size:
            logger.warning(
                f"Request body too large: {content_length} bytes (max: {self.max_size})",
                extra={
                    "event_type": "request_too_large",
                    "content_length": int(content_length),
                    "max_size": self.max_size,
                    "http_path": request.url.path,
                }
            )
            return JSONResponse(
                status_code=413,
                content={"detail": f"Request body too large. Maximum size is {self.max_size // 1024}KB"}
            )

        return await call_next(request)


__all__ = [
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "RequestSizeLimitMiddleware",
    "should_skip_logging",
    "extract_letter_id",
    "SKIP_LOGGING_PATHS",
]
