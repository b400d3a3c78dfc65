"""Invite code schemas (DTOs)."""

from datetime import datetime

from pydantic import BaseModel


class InviteCodeResponse(BaseModel):
    id: int
    token: str
    created_at: datetime

    model_config = {"from_attributes": True}


class InviteCodeListResponse(BaseModel):
    """Invite code list response."""

    invite_codes: list[InviteCodeResponse]
    total: int
    page: int | None = None
    page_size: int | None = None
