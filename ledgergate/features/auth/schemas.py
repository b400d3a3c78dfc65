"""Authentication schemas (DTOs)."""

from pydantic import BaseModel, Field

from ledgergate.features.device.schemas import DeviceInfo
from ledgergate.features.user.schemas import UserRegisterRequest, UserSummary


# Request schemas
class SignupRequest(BaseModel):
    """Signup request: new user, device descriptor and optional invite code."""

    user: UserRegisterRequest
    device: DeviceInfo | None = None
    invite_code: str | None = None


class LoginRequest(BaseModel):
    """Login request.

    `otp_code` is only needed for accounts with two-factor authentication.
    """

    email: str = Field(..., description="Email address")
    password: str
    otp_code: str | None = None
    device: DeviceInfo | None = None


class RefreshTokenRequest(BaseModel):
    """Refresh request. A missing token is reported as `bad_request`."""

    refresh_token: str | None = None
    device: DeviceInfo | None = None


class LogoutRequest(BaseModel):
    refresh_token: str | None = None


# Response schemas
class TokenResponse(BaseModel):
    """Bearer token pair response."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int  # seconds
    created_at: int  # unix timestamp


class AuthResponse(TokenResponse):
    """Token pair plus the authenticated user."""

    user: UserSummary
