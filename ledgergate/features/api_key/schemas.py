"""API key schemas (DTOs)."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


# Request schemas
class ApiKeyCreateRequest(BaseModel):
    """Create (and replace) the caller's API key.

    `scopes` accepts a single scope string or a list; business rules (non-blank
    name, allowed scopes, known tier) are checked by the service.
    """

    name: str = ""
    scopes: list[str] = Field(default_factory=list)
    tier: str | None = None

    @field_validator("scopes", mode="before")
    @classmethod
    def single_scope_as_list(cls, value):
        if isinstance(value, str):
            return [value]
        return value


# Response schemas
class ApiKeyResponse(BaseModel):
    """API key metadata. Never includes the key itself."""

    id: int
    name: str
    key_prefix: str
    display_key: str
    scopes: list[str]
    tier: str
    created_at: datetime
    last_used_at: datetime | None = None
    revoked_at: datetime | None = None

    model_config = {"from_attributes": True}


class ApiKeyCreatedResponse(ApiKeyResponse):
    """Returned once on creation with the plaintext key."""

    key: str
