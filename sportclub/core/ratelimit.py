"""
Rate Limiting

Per-user fixed-window limits enforced with slowapi. Counters live in Redis so
limits hold across every API instance.
"""

from functools import lru_cache

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from sportclub.config import settings


def rate_limit_key(request: Request) -> str:
    """
    Rate limit by user id when authenticated, otherwise by client IP.

    The auth dependency stores the decoded user on ``request.state``.
    """
    user = getattr(request.state, "user", None)
    if user is not None:
        return f"user:{user.user_id}"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{get_remote_address(request)}"


def default_rate_limit() -> str:
    """Limit string for mutating endpoints, read from settings on every request."""
    return f"{settings.rate_limit_max_requests} per {settings.rate_limit_window} second"


@lru_cache
def get_limiter() -> Limiter:
    """
    Create and return a cached Limiter instance.

    Uses Redis for distributed rate limit state unless
    ``rate_limit_storage_uri`` points elsewhere.
    """
    return Limiter(
        key_func=rate_limit_key,
        storage_uri=settings.rate_limit_storage_uri or str(settings.redis_url),
        strategy="fixed-window",
        key_prefix=settings.rate_limit_prefix,
        headers_enabled=True,
    )


limiter = get_limiter()
