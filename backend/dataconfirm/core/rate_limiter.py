"""
Rate Limiting for the Data Confirmation API
===========================================
Implements rate limiting using slowapi. Storage defaults to in-process
memory; point RATE_LIMIT_STORAGE_URI at redis:// when running several workers.

Special endpoints have their own limits:
- /auth/login: 5 req/min (brute force protection)
- /auth/register: 3 req/min
- /auth/forgot-password: 3 req/min
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from dataconfirm.core.config import settings
from dataconfirm.core.logging_config import logger


def get_user_identifier(request: Request) -> str:
    """
    Get rate limit key: authenticated user id when the auth dependency
    has run, otherwise the client IP.
    """
    user_id = getattr(request.state, 'user_id', None)
    if user_id:
        return f"user:{user_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_user_identifier,
    default_limits=[f"{settings.RATE_LIMIT_PER_MINUTE}/minute"],
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Return a JSON 429 with a Retry-After header"""
    retry_after = "60"

    logger.warning(
        f"[RateLimit] Exceeded for {get_user_identifier(request)}: {exc.detail}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "RATE_LIMIT_EXCEEDED",
            "message": "Too many requests. Please slow down.",
            "details": {"limit": str(exc.detail)},
        },
        headers={"Retry-After": retry_after},
    )


def auth_rate_limit():
    """Rate limit for login (5/min)"""
    return limiter.limit("5/minute")


def strict_rate_limit():
    """Very strict rate limit for register / password reset (3/min)"""
    return limiter.limit("3/minute")
