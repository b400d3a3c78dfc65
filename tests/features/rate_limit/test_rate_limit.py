"""Tests for the fixed-window API key rate limiter."""

import asyncio

import pytest
from limits.storage import storage_from_string

from ledgergate.config.settings import RateLimitTier
from ledgergate.features.api_key.models import ApiKey
from ledgergate.features.rate_limit.service import ApiRateLimiter

WINDOW = 3600
# Start of an aligned window
WINDOW_START = 1_700_002_800.0


def make_limiter(limit: int = 5, window_seconds: int = WINDOW) -> ApiRateLimiter:
    return ApiRateLimiter(
        storage=storage_from_string("async+memory://"),
        tiers={
            "standard": RateLimitTier(limit=limit, window_seconds=window_seconds),
            "premium": RateLimitTier(limit=limit * 10, window_seconds=window_seconds),
        },
        default_tier="standard",
    )


def make_key(key_id: int = 1, tier: str = "standard") -> ApiKey:
    return ApiKey(id=key_id, user_id=1, name="key", key_prefix="abcd1234", key_digest="x", scopes=["read"], tier=tier)


class TestWindowAlignment:
    def test_window_start_is_floor_aligned(self):
        assert WINDOW_START % WINDOW == 0
        assert ApiRateLimiter.window_start(WINDOW_START, WINDOW) == WINDOW_START
        assert ApiRateLimiter.window_start(WINDOW_START + WINDOW - 0.5, WINDOW) == WINDOW_START
        assert ApiRateLimiter.window_start(WINDOW_START + WINDOW, WINDOW) == WINDOW_START + WINDOW

    def test_counter_key_embeds_key_and_window(self):
        assert ApiRateLimiter.counter_key(7, 3600) != ApiRateLimiter.counter_key(7, 7200)
        assert ApiRateLimiter.counter_key(7, 3600) != ApiRateLimiter.counter_key(8, 3600)


class TestCheckAndIncrement:
    async def test_counts_each_request(self):
        limiter = make_limiter(limit=5)
        key = make_key()

        first = await limiter.check_and_increment(key, now=WINDOW_START + 10)
        second = await limiter.check_and_increment(key, now=WINDOW_START + 20)

        assert first.current_count == 1
        assert second.current_count == 2
        assert second.remaining == 3
        assert second.allowed is True

    async def test_rejects_after_limit_but_still_counts(self):
        limiter = make_limiter(limit=2)
        key = make_key()

        results = [await limiter.check_and_increment(key, now=WINDOW_START + 1) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, False, False]
        assert results[-1].current_count == 4
        assert results[-1].remaining == 0

    async def test_reset_at_and_retry_after(self):
        limiter = make_limiter(limit=1)
        key = make_key()

        await limiter.check_and_increment(key, now=WINDOW_START + 100)
        rejected = await limiter.check_and_increment(key, now=WINDOW_START + 100.4)

        assert rejected.reset_at == WINDOW_START + WINDOW
        assert rejected.reset_in_seconds == WINDOW - 100
        headers = rejected.exceeded_headers()
        assert headers["Retry-After"] == str(WINDOW - 100)
        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["X-RateLimit-Limit"] == "1"

    async def test_new_window_starts_fresh_counter(self):
        limiter = make_limiter(limit=3)
        key = make_key()

        for _ in range(5):
            await limiter.check_and_increment(key, now=WINDOW_START + WINDOW - 1)

        fresh = await limiter.check_and_increment(key, now=WINDOW_START + WINDOW)

        assert fresh.current_count == 1
        assert fresh.allowed is True

    async def test_keys_are_counted_independently(self):
        limiter = make_limiter(limit=1)

        await limiter.check_and_increment(make_key(1), now=WINDOW_START)
        other = await limiter.check_and_increment(make_key(2), now=WINDOW_START)

        assert other.current_count == 1
        assert other.allowed is True

    @pytest.mark.parametrize(("requests", "limit"), [(10, 25), (25, 25), (40, 25)])
    async def test_concurrent_requests_are_all_counted(self, requests, limit):
        limiter = make_limiter(limit=limit)
        key = make_key()

        results = await asyncio.gather(
            *(limiter.check_and_increment(key, now=WINDOW_START + 5) for _ in range(requests))
        )

        allowed = sum(1 for r in results if r.allowed)
        assert allowed == min(requests, limit)
        assert len(results) - allowed == max(0, requests - limit)
        assert sorted(r.current_count for r in results) == list(range(1, requests + 1))

        usage = await limiter.usage_info(key, now=WINDOW_START + 5)
        assert usage.current_count == requests


class TestUsageInfo:
    async def test_does_not_increment(self):
        limiter = make_limiter(limit=5)
        key = make_key()
        await limiter.check_and_increment(key, now=WINDOW_START)

        first = await limiter.usage_info(key, now=WINDOW_START + 1)
        second = await limiter.usage_info(key, now=WINDOW_START + 2)

        assert first.current_count == 1
        assert second.current_count == 1
        assert second.remaining == 4

    async def test_unused_key_reports_full_quota(self):
        limiter = make_limiter(limit=5)

        usage = await limiter.usage_info(make_key(), now=WINDOW_START + 600)

        assert usage.current_count == 0
        assert usage.remaining == 5
        assert usage.reset_in_seconds == WINDOW - 600


class TestTiers:
    async def test_tier_selects_quota(self):
        limiter = make_limiter(limit=5)

        status = await limiter.check_and_increment(make_key(tier="premium"), now=WINDOW_START)

        assert status.tier == "premium"
        assert status.limit == 50

    async def test_unknown_tier_falls_back_to_default(self):
        limiter = make_limiter(limit=5)

        status = await limiter.check_and_increment(make_key(tier="platinum"), now=WINDOW_START)

        assert status.tier == "standard"
        assert status.limit == 5

    def test_default_tier_must_exist(self):
        with pytest.raises(ValueError):
            ApiRateLimiter(
                storage=storage_from_string("async+memory://"),
                tiers={"standard": RateLimitTier(limit=1, window_seconds=60)},
                default_tier="premium",
            )
