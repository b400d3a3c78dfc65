"""User schemas (DTOs)."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from .models import UserRole, UserStatus


# Request schemas
class UserRegisterRequest(BaseModel):
    """User part of a signup request. Password rules are checked by the service."""

    email: EmailStr
    password: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


# Response schemas
class UserSummary(BaseModel):
    """User fields returned alongside issued tokens."""

    id: int
    email: EmailStr
    first_name: str
    last_name: str

    model_config = {"from_attributes": True}


class UserResponse(UserSummary):
    """Profile of the authenticated user."""

    family_id: int
    role: UserRole
    status: UserStatus
    otp_required: bool
    created_at: datetime
    last_login_at: datetime | None = None
