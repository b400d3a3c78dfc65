"""Usage and quota reporting router."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from ledgergate.features.auth.dependencies import require_scope
from ledgergate.features.auth.principal import Principal
from ledgergate.features.auth.scopes import READ
from ledgergate.features.rate_limit.dependencies import get_api_rate_limiter
from ledgergate.features.rate_limit.service import ApiRateLimiter

from .schemas import ApiKeyUsage, ApiKeyUsageResponse, OAuthUsageResponse, RateLimitUsage

router = APIRouter(prefix="/usage", tags=["Usage"])


@router.get("", response_model=ApiKeyUsageResponse | OAuthUsageResponse)
async def get_usage(
    principal: Principal = Depends(require_scope(READ)),
    rate_limiter: ApiRateLimiter = Depends(get_api_rate_limiter),
):
    """Show the API key's quota for the current window.

    Reading usage does not count against the quota beyond this request itself.
    Bearer-token callers get an informational message instead.
    """
    api_key = principal.api_key
    if api_key is None:
        return OAuthUsageResponse()

    usage = await rate_limiter.usage_info(api_key)
    return ApiKeyUsageResponse(
        api_key=ApiKeyUsage(
            name=api_key.name,
            prefix=api_key.key_prefix,
            scopes=api_key.scopes,
            tier=api_key.tier,
            last_used_at=api_key.last_used_at,
            created_at=api_key.created_at,
        ),
        rate_limit=RateLimitUsage(
            tier=usage.tier,
            limit=usage.limit,
            current_count=usage.current_count,
            remaining=usage.remaining,
            reset_in_seconds=usage.reset_in_seconds,
            reset_at=datetime.fromtimestamp(usage.reset_at, UTC),
        ),
    )
