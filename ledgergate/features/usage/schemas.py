"""Usage schemas (DTOs)."""

from datetime import datetime

from pydantic import BaseModel


class ApiKeyUsage(BaseModel):
    name: str
    prefix: str
    scopes: list[str]
    tier: str
    last_used_at: datetime | None = None
    created_at: datetime


class RateLimitUsage(BaseModel):
    tier: str
    limit: int
    current_count: int
    remaining: int
    reset_in_seconds: int
    reset_at: datetime


class ApiKeyUsageResponse(BaseModel):
    api_key: ApiKeyUsage
    rate_limit: RateLimitUsage


class OAuthUsageResponse(BaseModel):
    authentication_method: str = "oauth"
    message: str = "Usage tracking is only available for API key authentication"
