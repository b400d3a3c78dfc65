"""Authentication service layer (login and bearer token lifecycle)."""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ledgergate.config.settings import settings
from ledgergate.database.base import utcnow
from ledgergate.features.device.models import Device
from ledgergate.features.device.schemas import DeviceInfo
from ledgergate.features.device.service import DeviceService
from ledgergate.features.user.models import User, UserStatus
from ledgergate.features.user.otp import verify_totp
from ledgergate.features.user.service import UserService
from ledgergate.shared.errors.exceptions import BadRequestException
from ledgergate.shared.validators.device import missing_device_fields

from .exceptions import InvalidRefreshTokenException
from .models import AccessToken, OAuthApplication
from .schemas import TokenResponse
from .tokens import create_access_token, generate_client_secret, generate_refresh_token, token_digest

logger = logging.getLogger(__name__)


class AuthService:
    """Service for password authentication."""

    @staticmethod
    async def authenticate_user(session: AsyncSession, email: str, password: str) -> User | None:
        """Authenticate a user with email and password.

        Consecutive failures are counted on the user; reaching
        `max_failed_login_attempts` locks the account for `account_lock_minutes`.
        The caller must commit even when authentication fails so the counter
        is persisted.

        Args:
            session: Database session
            email: Email address
            password: Plain text password

        Returns:
            User object if authentication successful, None otherwise

        """
        user = await UserService.get_user_by_email(session, email)

        if not user:
            return None

        if not user.is_active and user.status != UserStatus.LOCKED.value:
            logger.warning(f"Login attempt for inactive account: {user.id}")
            return None

        if user.is_locked():
            logger.warning(f"Login attempt for locked account: {user.id}")
            return None

        if not user.verify_password(password):
            user.failed_login_attempts += 1

            if user.failed_login_attempts >= settings.max_failed_login_attempts:
                user.locked_until = datetime.now(UTC) + timedelta(minutes=settings.account_lock_minutes)
                user.status = UserStatus.LOCKED.value
                logger.warning(f"Account locked due to failed attempts: {user.id}")

            return None

        user.failed_login_attempts = 0
        user.last_login_at = datetime.now(UTC)
        user.locked_until = None
        user.status = UserStatus.ACTIVE.value

        return user

    @staticmethod
    def verify_second_factor(user: User, otp_code: str | None) -> bool:
        """Check the TOTP code of users with two-factor authentication enabled."""
        if not user.otp_required:
            return True
        if not otp_code:
            return False
        assert user.otp_secret is not None
        return verify_totp(user.otp_secret, otp_code)


class TokenService:
    """Issue, rotate and revoke device-bound bearer token pairs."""

    MAX_ISSUE_ATTEMPTS = 3

    @staticmethod
    def _new_pair(
        application_id: int, user_id: int, scopes: list[str], now: datetime
    ) -> tuple[AccessToken, TokenResponse]:
        expires_at = now + timedelta(seconds=settings.access_token_expire_seconds)
        access_token = create_access_token(str(user_id), issued_at=now, expires_at=expires_at)
        refresh_token = generate_refresh_token()

        pair = AccessToken(
            application_id=application_id,
            resource_owner_id=user_id,
            token_digest=token_digest(access_token),
            refresh_token_digest=token_digest(refresh_token),
            scopes=list(scopes),
            created_at=now,
            expires_at=expires_at,
        )
        response = TokenResponse(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=settings.access_token_expire_seconds,
            created_at=int(now.timestamp()),
        )
        return pair, response

    @staticmethod
    async def get_application(session: AsyncSession, device: Device) -> OAuthApplication | None:
        stmt = select(OAuthApplication).where(OAuthApplication.device_id == device.id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def ensure_application(session: AsyncSession, device: Device) -> OAuthApplication:
        """Get the device's OAuth client, creating it on first issuance."""
        for _ in range(TokenService.MAX_ISSUE_ATTEMPTS):
            application = await TokenService.get_application(session, device)
            if application is not None:
                return application

            uid, secret = generate_client_secret()
            application = OAuthApplication(
                device_id=device.id,
                name=f"{device.device_name} ({device.device_type})",
                uid=uid,
                secret_digest=token_digest(secret),
                scopes=list(settings.default_token_scopes),
            )
            try:
                async with session.begin_nested():
                    session.add(application)
            except IntegrityError:
                logger.info(f"Concurrent OAuth client creation for device {device.id}, retrying")
                continue
            return application

        raise RuntimeError(f"Could not create OAuth client for device {device.id}")

    @staticmethod
    async def revoke_application_tokens(session: AsyncSession, application_id: int, now: datetime) -> int:
        """Revoke every non-revoked pair of an OAuth client. Returns the count."""
        stmt = (
            update(AccessToken)
            .where(AccessToken.application_id == application_id, AccessToken.revoked_at.is_(None))
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount

    @staticmethod
    async def issue_tokens(
        session: AsyncSession, user: User, device: Device, scopes: list[str] | None = None
    ) -> TokenResponse:
        """Issue a fresh pair for (user, device), revoking the device's previous pairs.

        Pairs of the user's other devices are left untouched.
        """
        scopes = scopes or list(settings.default_token_scopes)
        application = await TokenService.ensure_application(session, device)

        for _ in range(TokenService.MAX_ISSUE_ATTEMPTS):
            now = utcnow()
            try:
                async with session.begin_nested():
                    revoked = await TokenService.revoke_application_tokens(session, application.id, now)
                    pair, response = TokenService._new_pair(application.id, user.id, scopes, now)
                    session.add(pair)
            except IntegrityError:
                logger.info(f"Concurrent token issuance for OAuth client {application.id}, retrying")
                continue

            logger.info(f"Issued token pair for user {user.id} on device {device.id} (revoked {revoked})")
            return response

        raise RuntimeError(f"Could not issue tokens for OAuth client {application.id}")

    @staticmethod
    async def refresh_tokens(
        session: AsyncSession, refresh_token: str | None, device_info: DeviceInfo | None = None
    ) -> TokenResponse:
        """Rotate a token pair: consume the refresh token and issue a new pair.

        The consumed pair is revoked by a single conditional UPDATE as the first
        write of the transaction, so of two concurrent refreshes with the same
        token exactly one claims it and the other gets `invalid_refresh_token`.

        Raises:
            BadRequestException: If no refresh token was sent
            InvalidRefreshTokenException: If the token is unknown, revoked or already used

        """
        if not refresh_token:
            raise BadRequestException("Refresh token is required")

        now = utcnow()
        stmt = (
            update(AccessToken)
            .where(
                AccessToken.refresh_token_digest == token_digest(refresh_token),
                AccessToken.revoked_at.is_(None),
            )
            .values(revoked_at=now)
            .returning(AccessToken.id, AccessToken.application_id, AccessToken.resource_owner_id, AccessToken.scopes)
            .execution_options(synchronize_session=False)
        )
        consumed = (await session.execute(stmt)).one_or_none()

        if consumed is None:
            logger.warning("Refresh attempted with an unknown, revoked or already used refresh token")
            raise InvalidRefreshTokenException()

        user = await session.get(User, consumed.resource_owner_id)
        if user is None or not user.can_authenticate:
            logger.warning(f"Refresh attempted for unavailable user {consumed.resource_owner_id}")
            raise InvalidRefreshTokenException()

        pair, response = TokenService._new_pair(consumed.application_id, user.id, consumed.scopes, now)
        session.add(pair)
        await session.flush()

        application = await session.get(OAuthApplication, consumed.application_id)
        assert application is not None
        device = await session.get(Device, application.device_id)
        assert device is not None

        raw = device_info.model_dump() if device_info is not None else None
        if raw and not missing_device_fields(raw) and raw["device_id"].strip() == device.device_id:
            await DeviceService.upsert(session, user, device_info)
        else:
            await DeviceService.touch(session, user.id, device.device_id)

        logger.info(f"Rotated token pair {consumed.id} for user {user.id} on device {device.id}")
        return response

    @staticmethod
    async def revoke_token(session: AsyncSession, pair: AccessToken) -> bool:
        """Revoke a pair. Idempotent; returns whether it was still active."""
        if pair.revoked_at is not None:
            return False

        pair.revoked_at = utcnow()
        await session.flush()
        return True

    @staticmethod
    async def revoke_refresh_token(session: AsyncSession, user: User, refresh_token: str) -> bool:
        """Revoke the caller's own pair owning `refresh_token` (logout)."""
        stmt = select(AccessToken).where(
            AccessToken.refresh_token_digest == token_digest(refresh_token),
            AccessToken.resource_owner_id == user.id,
        )
        result = await session.execute(stmt)
        pair = result.scalar_one_or_none()

        if pair is None:
            return False
        return await TokenService.revoke_token(session, pair)
