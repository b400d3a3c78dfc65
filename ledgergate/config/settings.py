"""Application settings and configuration."""

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateLimitTier(BaseModel):
    """Quota applied to every API key of a tier: `limit` requests per fixed window."""

    limit: int = Field(..., ge=1)
    window_seconds: int = Field(..., ge=1)


def default_rate_limit_tiers() -> dict[str, RateLimitTier]:
    return {
        "standard": RateLimitTier(limit=100, window_seconds=3600),
        "premium": RateLimitTier(limit=1000, window_seconds=3600),
        "enterprise": RateLimitTier(limit=10000, window_seconds=3600),
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application (hardcoded constants)
    app_name: str = "Ledgergate API"
    app_version: str = "0.1.0"

    # Environment-specific settings
    debug: bool = False
    environment: str  # development, staging, production

    # Database
    database_url: str
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    database_echo: bool = False

    # API
    api_prefix: str = "/api/v1"

    # Security
    secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_seconds: int = 30 * 24 * 60 * 60
    default_token_scopes: list[str] = ["read_write"]
    max_failed_login_attempts: int = 5
    account_lock_minutes: int = 30

    # Signup
    require_invite_code: bool = False

    # API key quotas
    rate_limit_tiers: dict[str, RateLimitTier] = Field(default_factory=default_rate_limit_tiers)
    default_api_key_tier: str = "standard"
    rate_limit_storage_uri: str = "async+memory://"

    # Per-IP throttling of the unauthenticated auth endpoints
    auth_rate_limit: str = "10/minute"
    auth_rate_limit_enabled: bool = True

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        valid_envs = {"development", "staging", "production"}
        env = str(v).lower()
        if env not in valid_envs:
            raise ValueError(f"Environment must be one of {valid_envs}, got {env}")
        return env

    @field_validator("log_format", mode="before")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = str(v).lower()
        if fmt not in {"json", "text"}:
            raise ValueError(f"Log format must be 'json' or 'text', got {fmt}")
        return fmt

    @field_validator("rate_limit_storage_uri")
    @classmethod
    def validate_rate_limit_storage_uri(cls, v: str) -> str:
        """API-key counters are awaited, so the limits storage must be an async one."""
        if not v.startswith("async+"):
            raise ValueError(f"Rate limit storage URI must use an async+ scheme (e.g. async+redis://), got {v}")
        return v


settings = Settings()  # type: ignore[call-arg]
