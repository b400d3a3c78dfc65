"""Authentication router (signup, login, token refresh and logout)."""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledgergate.config.settings import settings
from ledgergate.database.dependencies import get_db_session
from ledgergate.features.device.service import DeviceService
from ledgergate.features.invite.exceptions import InvalidInviteCodeException
from ledgergate.features.invite.service import InviteService
from ledgergate.features.user.schemas import UserSummary
from ledgergate.features.user.service import UserService
from ledgergate.shared.throttling import limiter

from .dependencies import get_current_principal
from .exceptions import InvalidCredentialsException, MfaRequiredException
from .principal import Principal
from .schemas import AuthResponse, LoginRequest, LogoutRequest, RefreshTokenRequest, SignupRequest, TokenResponse
from .service import AuthService, TokenService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.auth_rate_limit)
async def signup(request: Request, data: SignupRequest, session: AsyncSession = Depends(get_db_session)):
    """Create a user (and family), register the device and issue tokens.

    - **invite_code**: Required when signup is invite-only
    - **user**: email, password, first_name, last_name
    - **device**: device_id, device_name, device_type, os_version, app_version
    """
    await InviteService.check_signup_code(session, data.invite_code)
    UserService.check_password_policy(data.user.password)
    DeviceService.validate_device_info(data.device)

    user = await UserService.register_user(session, data.user)
    # Each code admits a single signup
    if data.invite_code and not await InviteService.claim(session, data.invite_code):
        raise InvalidInviteCodeException()

    device = await DeviceService.upsert(session, user, data.device)
    tokens = await TokenService.issue_tokens(session, user, device)
    await session.commit()

    logger.info(f"User signed up: {user.id}")
    return AuthResponse(**tokens.model_dump(), user=UserSummary.model_validate(user))


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.auth_rate_limit)
async def login(request: Request, data: LoginRequest, session: AsyncSession = Depends(get_db_session)):
    """Login and get a token pair for the device.

    - **email**, **password**: Account credentials
    - **otp_code**: One-time code, for accounts with two-factor authentication
    - **device**: Device descriptor

    Logging in again from the same device revokes that device's previous pair;
    other devices keep theirs.
    """
    user = await AuthService.authenticate_user(session, data.email, data.password)

    if not user:
        # Persist the failed-attempt counter
        await session.commit()
        raise InvalidCredentialsException()

    if not AuthService.verify_second_factor(user, data.otp_code):
        user_id = user.id
        await session.rollback()
        logger.info(f"Login for user {user_id} needs a valid one-time code")
        raise MfaRequiredException()

    device = await DeviceService.upsert(session, user, data.device)
    tokens = await TokenService.issue_tokens(session, user, device)
    await session.commit()

    logger.info(f"User logged in: {user.id}")
    return AuthResponse(**tokens.model_dump(), user=UserSummary.model_validate(user))


@router.post("/refresh", response_model=TokenResponse)
@limiter.limit(settings.auth_rate_limit)
async def refresh_token(request: Request, data: RefreshTokenRequest, session: AsyncSession = Depends(get_db_session)):
    """Exchange a refresh token for a new pair.

    - **refresh_token**: Refresh token of the current pair (single-use)
    - **device**: Device descriptor (optional)
    """
    tokens = await TokenService.refresh_tokens(session, data.refresh_token, data.device)
    await session.commit()
    return tokens


@router.post("/logout")
async def logout(
    data: LogoutRequest,
    principal: Principal = Depends(get_current_principal),
    session: AsyncSession = Depends(get_db_session),
):
    """Logout and revoke a token pair.

    - **refresh_token**: Refresh token of the pair to revoke. When omitted,
      the pair of the access token used for this request is revoked.
    """
    if data.refresh_token:
        revoked = await TokenService.revoke_refresh_token(session, principal.user, data.refresh_token)
    elif principal.access_token is not None:
        revoked = await TokenService.revoke_token(session, principal.access_token)
    else:
        revoked = False

    if revoked:
        await session.commit()
        logger.info(f"User logged out: {principal.user.id}")
        return {"message": "Successfully logged out"}
    else:
        return {"message": "Token already revoked or not found"}
