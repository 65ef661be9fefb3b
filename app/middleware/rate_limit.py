from fastapi import Request, status
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from app.core.config import settings
import logging

logger = logging.getLogger(__name__)

def get_rate_limit_key(request: Request) -> str:
    """Rate limit key: the client IP address"""
    return get_remote_address(request)

# In-memory storage; limits are per process
limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=[settings.DEFAULT_RATE_LIMIT] if settings.RATE_LIMIT_ENABLED else [],
    enabled=settings.RATE_LIMIT_ENABLED,
)

def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.
    Returns a structured JSON response without revealing internal details.
    """
    logger.warning(
        f"Rate limit exceeded for IP: {get_remote_address(request)}, "
        f"Path: {request.url.path}, "
        f"Method: {request.method}"
    )

    retry_after = getattr(exc, 'retry_after', None) or 60
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={
            "error_type": "rate_limited",
            "message": "Too many requests. Please try again later.",
            "retry_after": retry_after
        },
        headers={"Retry-After": str(retry_after)}
    )

def create_rate_limit_middleware():
    """
    Return the SlowAPI middleware class, or None when rate limiting is disabled.
    """
    if not settings.RATE_LIMIT_ENABLED:
        logger.info("Rate limiting is disabled in settings")
        return None

    logger.info("Rate limiting middleware enabled with in-memory storage")
    return SlowAPIMiddleware
