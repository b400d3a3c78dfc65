"""Rate limit exceptions."""

from fastapi import status

from ledgergate.shared.errors.exceptions import ApiException

from .service import RateLimitStatus


class RateLimitExceededException(ApiException):
    """Raised when an API key has used up its quota for the current window."""

    def __init__(self, rate_limit: RateLimitStatus):
        super().__init__(
            error="rate_limit_exceeded",
            message=f"Rate limit exceeded. Try again in {rate_limit.reset_in_seconds} seconds.",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            headers=rate_limit.exceeded_headers(),
            extra={
                "details": {
                    "limit": rate_limit.limit,
                    "current": rate_limit.current_count,
                    "reset_in_seconds": rate_limit.reset_in_seconds,
                }
            },
        )
        self.rate_limit = rate_limit
