"""
Rate Limiting for LetterDesk API
================================
Implements rate limiting using slowapi (in-memory by default, Redis via
RATE_LIMIT_STORAGE_URI).

Special endpoints have their own limits:
- /auth/login: 5 req/min (brute force protection)
- /auth/register: 3 req/min
- POST /letters: 20 req/min per student
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from letterdesk.core.config import settings
from letterdesk.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """
    Get rate limit key based on user authentication.

    Priority:
    1. Authenticated user ID (set on request.state by the auth dependency)
    2. IP address (for anonymous users)
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"

    return f"ip:{get_remote_address(request)}"


# Create limiter instance
limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """
    Custom handler for rate limit exceeded errors.

    Returns a JSON response with the error message and a Retry-After header.
    """
    retry_after = exc.detail.split(":")[-1].strip() if exc.detail else "60"

    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please slow down.",
            "code": "RATE_LIMIT_EXCEEDED",
            "details": {
                "limit": str(exc.detail),
                "retry_after_seconds": int(retry_after) if retry_after.isdigit() else 60,
            },
        },
        headers={
            "Retry-After": retry_after if retry_after.isdigit() else "60",
            "X-RateLimit-Limit": str(settings.RATE_LIMIT_PER_MINUTE),
        }
    )


def auth_rate_limit():
    """Rate limit for auth endpoints (5/min)"""
    return limiter.limit("5/minute", key_func=get_user_identifier)


def strict_rate_limit():
    """Very strict rate limit for sensitive operations (3/min)"""
    return limiter.limit("3/minute", key_func=get_user_identifier)


def letter_request_rate_limit():
    """Rate limit for submitting letter requests (20/min)"""
    return limiter.limit("20/minute", key_func=get_user_identifier)
