"""Rate limiter dependencies."""

from .service import ApiRateLimiter, api_rate_limiter


def get_api_rate_limiter() -> ApiRateLimiter:
    return api_rate_limiter
