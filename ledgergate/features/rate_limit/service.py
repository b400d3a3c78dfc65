"""Fixed-window request quotas for API keys."""

import logging
import math
import time
from collections.abc import Mapping
from dataclasses import dataclass

from limits.aio.storage import Storage
from limits.storage import storage_from_string

from ledgergate.config.settings import RateLimitTier, settings
from ledgergate.features.api_key.models import ApiKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitStatus:
    """Snapshot of one API key's counter in its current window."""

    tier: str
    limit: int
    window_seconds: int
    current_count: int
    reset_at: int
    now: float

    @property
    def allowed(self) -> bool:
        return self.current_count <= self.limit

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.current_count)

    @property
    def reset_in_seconds(self) -> int:
        return max(0, math.ceil(self.reset_at - self.now))

    def headers(self) -> dict[str, str]:
        """X-RateLimit-* headers attached to allowed API key responses."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in_seconds),
        }

    def exceeded_headers(self) -> dict[str, str]:
        """Headers for a 429 response."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(self.reset_in_seconds),
            "Retry-After": str(self.reset_in_seconds),
        }


class ApiRateLimiter:
    """Per-API-key counter over fixed, aligned windows.

    Window boundaries are `floor(now / window) * window`, so every key of a
    tier rolls over at the same instants. Counters live in a `limits` async
    storage whose increment is atomic, which makes concurrent requests on one
    key observe distinct counts. Every request increments, rejected ones
    included.
    """

    def __init__(
        self,
        storage: Storage,
        tiers: Mapping[str, RateLimitTier],
        default_tier: str,
    ):
        if default_tier not in tiers:
            raise ValueError(f"Default tier '{default_tier}' is not configured")
        self.storage = storage
        self.tiers = dict(tiers)
        self.default_tier = default_tier

    def resolve_tier(self, tier: str | None) -> tuple[str, RateLimitTier]:
        """Map a tier name to its quota; unknown names fall back to the default tier."""
        if tier and tier in self.tiers:
            return tier, self.tiers[tier]

        if tier:
            logger.warning(f"Unknown rate limit tier '{tier}', using '{self.default_tier}'")
        return self.default_tier, self.tiers[self.default_tier]

    @staticmethod
    def window_start(now: float, window_seconds: int) -> int:
        return int(now // window_seconds) * window_seconds

    @staticmethod
    def counter_key(api_key_id: int, window_start: int) -> str:
        return f"api_key_rate_limit:{api_key_id}:{window_start}"

    async def check_and_increment(self, api_key: ApiKey, now: float | None = None) -> RateLimitStatus:
        """Count one request against the key's current window.

        Returns:
            Status after the increment; `allowed` is False once the count exceeds the limit

        """
        now = time.time() if now is None else now
        tier_name, tier = self.resolve_tier(api_key.tier)
        start = self.window_start(now, tier.window_seconds)

        count = await self.storage.incr(self.counter_key(api_key.id, start), tier.window_seconds)

        status = RateLimitStatus(
            tier=tier_name,
            limit=tier.limit,
            window_seconds=tier.window_seconds,
            current_count=count,
            reset_at=start + tier.window_seconds,
            now=now,
        )
        if not status.allowed:
            logger.warning(
                f"Rate limit exceeded for API key {api_key.id}: {count}/{tier.limit} in window starting {start}"
            )
        return status

    async def usage_info(self, api_key: ApiKey, now: float | None = None) -> RateLimitStatus:
        """Read the key's current window without counting a request."""
        now = time.time() if now is None else now
        tier_name, tier = self.resolve_tier(api_key.tier)
        start = self.window_start(now, tier.window_seconds)

        count = await self.storage.get(self.counter_key(api_key.id, start))

        return RateLimitStatus(
            tier=tier_name,
            limit=tier.limit,
            window_seconds=tier.window_seconds,
            current_count=count,
            reset_at=start + tier.window_seconds,
            now=now,
        )


api_rate_limiter = ApiRateLimiter(
    storage=storage_from_string(settings.rate_limit_storage_uri),
    tiers=settings.rate_limit_tiers,
    default_tier=settings.default_api_key_tier,
)
